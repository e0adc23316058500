# mindlog/api/routers/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mindlog.core.config import get_db
from mindlog.core.security import get_current_identity
from mindlog.services.identity import identity_service
from mindlog.schemas.user import (
    AuthResponse,
    GoogleLoginRequest,
    SessionIdentity,
    UserOut,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# =====================================================================
# PUBLIC ENDPOINTS - No authentication required
# =====================================================================

@router.post(
    "/google",
    response_model=AuthResponse,
    summary="Sign in with a Google ID token"
)
def login_with_google(
    login_data: GoogleLoginRequest,
    db: Session = Depends(get_db)
):
    """
    Exchange a Google ID token for a session token.

    - **idToken**: ID token issued by Google Sign-In for this application

    The first sign-in creates the account (or links an existing account with
    the same e-mail). Returns a 7-day session token and the user.
    """
    user, token = identity_service.login_with_google(db, login_data.id_token)
    return AuthResponse(token=token, user=UserOut.model_validate(user))


# =====================================================================
# AUTHENTICATED ENDPOINTS
# =====================================================================

@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current user"
)
def get_me(
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Return the account behind the current session token."""
    return identity_service.get_user(db, identity.uid)
