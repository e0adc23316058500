# mindlog/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from mindlog.core.config import settings
from mindlog.core.exceptions import UnauthorizedError
from mindlog.schemas.user import SessionIdentity


# =====================================================================
# JWT TOKEN CONFIGURATION
# =====================================================================

security = HTTPBearer(auto_error=False)


# =====================================================================
# TOKEN CREATION
# =====================================================================

def create_session_token(user_id: UUID, email: str, now: Optional[datetime] = None) -> str:
    """
    Create the session credential handed to the client after login.

    Args:
        user_id: Internal user id
        email: User's e-mail address
        now: Issue time, defaults to the current UTC time

    Returns:
        Encoded JWT valid for SESSION_TOKEN_EXPIRE_DAYS
    """
    issued_at = now or datetime.now(timezone.utc)
    expire = issued_at + timedelta(days=settings.SESSION_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "uid": str(user_id),
        "email": email,
        "iat": issued_at,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# =====================================================================
# TOKEN VERIFICATION
# =====================================================================

def verify_session_token(token: str) -> SessionIdentity:
    """
    Verify a session credential and return the identity it carries.

    Raises:
        UnauthorizedError: If the token is malformed, mis-signed or expired
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Could not validate credentials")

    uid = payload.get("uid")
    email = payload.get("email")
    if uid is None or email is None:
        raise UnauthorizedError("Could not validate credentials")

    try:
        return SessionIdentity(uid=UUID(str(uid)), email=email)
    except ValueError:
        raise UnauthorizedError("Could not validate credentials")


# =====================================================================
# REQUEST AUTHENTICATION DEPENDENCY
# =====================================================================

async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> SessionIdentity:
    """
    Resolve the caller's identity from the bearer session credential.

    Stateless: no database lookup is performed.

    Raises:
        UnauthorizedError: If the header is missing or the token is invalid
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authenticated")
    return verify_session_token(credentials.credentials)
