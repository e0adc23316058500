import logging
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindlog import models, schemas
from mindlog.core.config import settings
from mindlog.core.exceptions import ConflictError, StoreFailureError, ValidationError
from mindlog.crud.log import crud_log

logger = logging.getLogger(__name__)

STATS_RANGES = ("7days", "30days", "week", "month", "all", "custom")


# ====================================================
# TIME HELPERS
# ====================================================

def server_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention for log dates."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage(value: datetime) -> datetime:
    """Normalise a datetime to naive UTC. Naive input is taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_day(reference: datetime) -> date:
    """Calendar day of `reference` in the server timezone."""
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return reference.astimezone(server_tz()).date()


def day_window(first: date, last: Optional[date] = None) -> Tuple[datetime, datetime]:
    """[start-of-day(first), end-of-day(last)] in the server timezone, as naive UTC."""
    tz = server_tz()
    start = datetime.combine(first, time.min, tzinfo=tz)
    end = datetime.combine(last or first, time.max, tzinfo=tz)
    return to_storage(start), to_storage(end)


def as_server_time(value: datetime) -> datetime:
    """Client-supplied naive datetimes are read in the server timezone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=server_tz())
    return value


def parse_iso_datetime(value: str, field: str) -> datetime:
    """Parse an ISO 8601 date or datetime query value."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"'{field}' must be an ISO 8601 date", fields=[field])
    return as_server_time(parsed)


# ====================================================
# SERVICE
# ====================================================


class LogService:
    """
    Business rules for wellbeing logs.
    """

    def list_logs(self, db: Session, *, user_id: UUID) -> List[models.Log]:
        """Most recent logs for the user, newest first, capped at LOG_RETENTION_LIMIT."""
        return crud_log.get_recent_by_user(
            db=db, user_id=user_id, limit=settings.LOG_RETENTION_LIMIT
        )

    def create_log(
        self, db: Session, *, user_id: UUID, log_in: schemas.LogCreate
    ) -> models.Log:
        """
        Persist a new log for the user.

        Only fields the client supplied are written; the rest stay NULL.
        The effective date defaults to the current server time.

        Raises:
            ConflictError: If ENFORCE_ONE_LOG_PER_DAY is on and the day
                already has a log
            StoreFailureError: If the write fails
        """
        fields = log_in.model_dump(exclude_unset=True, by_alias=False)
        effective = fields.pop("date", None)
        log_date = to_storage(as_server_time(effective)) if effective is not None else utcnow()

        if settings.ENFORCE_ONE_LOG_PER_DAY and self.has_log_for_day(
            db, user_id=user_id, reference=log_date
        ):
            raise ConflictError("A log already exists for this day")

        try:
            log = crud_log.create(db=db, user_id=user_id, date=log_date, fields=fields)
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreFailureError(f"Could not save log: {e}") from e

        logger.info("Created log %s for user %s", log.id, user_id)
        return log

    def get_log_for_day(
        self, db: Session, *, user_id: UUID, reference: Optional[datetime] = None
    ) -> Optional[models.Log]:
        start, end = day_window(local_day(reference or utcnow()))
        return crud_log.get_first_in_range(db=db, user_id=user_id, start=start, end=end)

    def has_log_for_day(
        self, db: Session, *, user_id: UUID, reference: Optional[datetime] = None
    ) -> bool:
        """True iff the user has a log within the calendar day of `reference`."""
        return self.get_log_for_day(db, user_id=user_id, reference=reference) is not None

    # ====================================================
    # STATS
    # ====================================================

    def resolve_range(
        self,
        range_name: str,
        *,
        start: Optional[str] = None,
        end: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Translate a dashboard range name into a storage-time window."""
        if range_name not in STATS_RANGES:
            raise ValidationError(
                f"range must be one of: {', '.join(STATS_RANGES)}", fields=["range"]
            )

        today = local_day(now or utcnow())

        if range_name == "all":
            return None, None
        if range_name == "7days":
            return day_window(today - timedelta(days=6), today)
        if range_name == "30days":
            return day_window(today - timedelta(days=29), today)
        if range_name == "week":
            # Weeks run Sunday to Saturday
            first = today - timedelta(days=(today.weekday() + 1) % 7)
            return day_window(first, first + timedelta(days=6))
        if range_name == "month":
            first = today.replace(day=1)
            next_month = (first + timedelta(days=32)).replace(day=1)
            return day_window(first, next_month - timedelta(days=1))

        missing = [name for name, value in (("start", start), ("end", end)) if not value]
        if missing:
            raise ValidationError("custom range requires start and end", fields=missing)
        first = local_day(parse_iso_datetime(start, "start"))
        last = local_day(parse_iso_datetime(end, "end"))
        if first > last:
            raise ValidationError("start must not be after end", fields=["start", "end"])
        return day_window(first, last)

    def get_stats(
        self,
        db: Session,
        *,
        user_id: UUID,
        range_name: str = "7days",
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Dict[str, Any]:
        window_start, window_end = self.resolve_range(range_name, start=start, end=end)
        summary = crud_log.summarize(
            db=db, user_id=user_id, start=window_start, end=window_end
        )
        return {
            "range": range_name,
            "start": window_start.replace(tzinfo=timezone.utc) if window_start else None,
            "end": window_end.replace(tzinfo=timezone.utc) if window_end else None,
            **summary,
        }


log_service = LogService()
