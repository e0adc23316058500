from sqlalchemy import func
from sqlalchemy.orm import Session
from uuid import UUID
from datetime import datetime
from typing import Optional, Dict, Any, List
from mindlog import models


# Numeric fields summarised by the stats endpoint
AVERAGED_FIELDS = (
    "mood",
    "anxiety",
    "sleep_hours",
    "sleep_quality",
    "stress",
    "activity_mins",
    "social_count",
)


class CRUDLog:
    # ====================================================
    # CREATE
    # ====================================================

    def create(
        self, db: Session, *, user_id: UUID, date: datetime, fields: Dict[str, Any]
    ) -> models.Log:
        """Insert a log; fields not present in `fields` stay NULL."""
        log = models.Log(user_id=user_id, date=date, **fields)
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    # ====================================================
    # READ
    # ====================================================

    def get_recent_by_user(
        self, db: Session, *, user_id: UUID, limit: int
    ) -> List[models.Log]:
        """Newest-first logs for a user, capped at `limit`"""
        return (
            db.query(models.Log)
            .filter(models.Log.user_id == user_id)
            .order_by(models.Log.date.desc(), models.Log.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_first_in_range(
        self, db: Session, *, user_id: UUID, start: datetime, end: datetime
    ) -> Optional[models.Log]:
        """First log whose date falls within [start, end]"""
        return (
            db.query(models.Log)
            .filter(models.Log.user_id == user_id)
            .filter(models.Log.date >= start)
            .filter(models.Log.date <= end)
            .order_by(models.Log.date.asc())
            .first()
        )

    def summarize(
        self,
        db: Session,
        *,
        user_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Count and per-field averages (NULLs ignored) within an optional window"""
        columns = [func.count(models.Log.id)] + [
            func.avg(getattr(models.Log, field)) for field in AVERAGED_FIELDS
        ]
        query = db.query(*columns).filter(models.Log.user_id == user_id)
        if start is not None:
            query = query.filter(models.Log.date >= start)
        if end is not None:
            query = query.filter(models.Log.date <= end)

        row = query.one()
        averages = {
            field: (round(float(value), 1) if value is not None else None)
            for field, value in zip(AVERAGED_FIELDS, row[1:])
        }
        return {"total_logs": row[0], "averages": averages}


crud_log = CRUDLog()
