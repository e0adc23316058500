# schemas/user.py
from pydantic import EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from .base import CamelModel, as_utc


# =====================================================================
# READ SCHEMAS
# =====================================================================

class UserOut(CamelModel):
    """Public user fields returned with logs and on login."""
    id: UUID
    email: EmailStr
    name: Optional[str] = None
    picture_url: Optional[str] = None
    google_sub: Optional[str] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def tag_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


# =====================================================================
# AUTH SCHEMAS
# =====================================================================

class GoogleLoginRequest(CamelModel):
    id_token: str = Field(..., min_length=1, description="Google ID token from the sign-in client")


class AuthResponse(CamelModel):
    token: str
    user: UserOut


class SessionIdentity(CamelModel):
    """Identity decoded from a verified session credential."""
    uid: UUID
    email: str
