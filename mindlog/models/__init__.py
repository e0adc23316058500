# mindlog/models/__init__.py

from mindlog.core.config import Base

# Import all models here so metadata.create_all and app-wide imports work
from .user import User
from .log import Log

__all__ = [
    "Base",
    "User",
    "Log",
]
