# services/identity.py
import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import UUID

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindlog.core.config import settings
from mindlog.core.exceptions import (
    DatabaseError,
    InvalidCredentialError,
    NotFoundError,
    StoreFailureError,
)
from mindlog.core.security import create_session_token
from mindlog.crud.user import crud_user
from mindlog.models.user import User

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass(frozen=True)
class GoogleIdentity:
    sub: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


# =====================================================================
# TOKEN VERIFICATION
# =====================================================================

def verify_google_id_token(token: str) -> GoogleIdentity:
    """
    Verify a Google ID token against GOOGLE_CLIENT_ID.

    Checks signature, expiry, issuer and audience, then extracts the
    identity claims.

    Raises:
        InvalidCredentialError: If the token cannot be verified or lacks
            the sub/email claims
    """
    try:
        idinfo = google_id_token.verify_oauth2_token(
            token,
            google_requests.Request(),
            settings.GOOGLE_CLIENT_ID,
        )
    except (ValueError, google_exceptions.GoogleAuthError) as e:
        raise InvalidCredentialError("Invalid Google token") from e

    if idinfo.get("iss") not in GOOGLE_ISSUERS:
        raise InvalidCredentialError("Invalid Google token")

    sub = idinfo.get("sub")
    email = idinfo.get("email")
    if not sub or not email:
        raise InvalidCredentialError("Invalid Google token")

    return GoogleIdentity(
        sub=sub,
        email=email,
        name=idinfo.get("name"),
        picture=idinfo.get("picture"),
    )


# =====================================================================
# SERVICE CLASS
# =====================================================================


class IdentityService:
    """Resolves external identities to local users and issues sessions."""

    def __init__(self):
        self.crud = crud_user

    def login_with_google(self, db: Session, id_token: str) -> Tuple[User, str]:
        """
        Verify a Google ID token and return the local user plus a session token.

        Args:
            db: Database session
            id_token: Raw ID token from the Google sign-in client

        Returns:
            (user, session_token)

        Raises:
            InvalidCredentialError: If the token is rejected
            StoreFailureError: If the user could not be persisted
        """
        identity = verify_google_id_token(id_token)

        try:
            user = self.crud.upsert_google_identity(
                db,
                google_sub=identity.sub,
                email=identity.email,
                name=identity.name,
                picture_url=identity.picture,
            )
        except (DatabaseError, SQLAlchemyError) as e:
            db.rollback()
            raise StoreFailureError(f"Could not resolve user: {e}") from e

        logger.info("Google login resolved to user %s", user.id)
        token = create_session_token(user.id, user.email)
        return user, token

    def get_user(self, db: Session, user_id: UUID) -> User:
        user = self.crud.get(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user


# =====================================================================
# SINGLETON INSTANCE
# =====================================================================

identity_service = IdentityService()
