# mindlog/schemas/__init__.py

from .user import (
    UserOut,
    GoogleLoginRequest,
    AuthResponse,
    SessionIdentity,
)
from .log import (
    LogCreate,
    LogRead,
    TodayLogResponse,
    LogAverages,
    LogStatsResponse,
)


__all__ = [
    # Auth
    "UserOut", "GoogleLoginRequest", "AuthResponse", "SessionIdentity",

    # Logs
    "LogCreate", "LogRead", "TodayLogResponse", "LogAverages", "LogStatsResponse",
]
