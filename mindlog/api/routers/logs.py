from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from mindlog.core.config import get_db
from mindlog.core.security import get_current_identity
from mindlog.services.log import log_service, parse_iso_datetime
from mindlog.services.notifier import LogNotifier, get_notifier
from mindlog.schemas.log import (
    LogCreate,
    LogRead,
    LogStatsResponse,
    TodayLogResponse,
)
from mindlog.schemas.user import SessionIdentity


# ====================================================
# ROUTER
# ====================================================


router = APIRouter(prefix="/logs", tags=["Logs"])


@router.get("", response_model=List[LogRead])
def list_logs(
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Get the caller's most recent logs, newest first (max 365)."""
    return log_service.list_logs(db=db, user_id=identity.uid)


@router.post("", response_model=LogRead, status_code=status.HTTP_201_CREATED)
async def create_log(
    log_in: LogCreate,
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    notifier: LogNotifier = Depends(get_notifier),
):
    """
    Create a log and push it to the caller's open sockets.

    The push is best-effort; the response is the reliable copy.
    """
    log = await run_in_threadpool(
        log_service.create_log, db, user_id=identity.uid, log_in=log_in
    )
    payload = LogRead.model_validate(log)
    await notifier.emit_new_log(
        identity.uid, payload.model_dump(mode="json", by_alias=True)
    )
    return payload


@router.get("/today", response_model=TodayLogResponse)
def has_log_for_today(
    date: Optional[str] = Query(
        default=None, description="ISO date; defaults to the current server time"
    ),
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Check whether the caller already logged on the given calendar day."""
    reference = parse_iso_datetime(date, "date") if date else None
    log = log_service.get_log_for_day(db=db, user_id=identity.uid, reference=reference)
    return TodayLogResponse(
        has_log=log is not None,
        log=LogRead.model_validate(log) if log else None,
    )


@router.get("/stats", response_model=LogStatsResponse)
def get_stats(
    range_name: str = Query(
        default="7days", alias="range", description="7days, 30days, week, month, all or custom"
    ),
    start: Optional[str] = Query(default=None, description="Custom range start (ISO date)"),
    end: Optional[str] = Query(default=None, description="Custom range end (ISO date)"),
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Averages for the dashboard summary over a date range."""
    return log_service.get_stats(
        db=db, user_id=identity.uid, range_name=range_name, start=start, end=end
    )
