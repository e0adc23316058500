# crud/user.py
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy.dialects import postgresql, sqlite

from mindlog.core.exceptions import DatabaseConflictError
from mindlog.models.user import User


# Dialects that support INSERT ... ON CONFLICT
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UserCRUD:
    """CRUD operations for User model."""

    # =====================================================================
    # READ OPERATIONS
    # =====================================================================

    def get(self, db: Session, id: UUID) -> Optional[User]:
        """Get user by id."""
        return db.query(User).filter(User.id == id).first()

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """Get user by e-mail address."""
        return db.query(User).filter(User.email == email).first()

    def get_by_google_sub(self, db: Session, google_sub: str) -> Optional[User]:
        """Get user by Google subject id."""
        return db.query(User).filter(User.google_sub == google_sub).first()

    # =====================================================================
    # UPSERT
    # =====================================================================

    @staticmethod
    def _refresh_profile(user: User, name: Optional[str], picture_url: Optional[str]) -> None:
        if name is not None:
            user.name = name
        if picture_url is not None:
            user.picture_url = picture_url

    def upsert_google_identity(
        self,
        db: Session,
        *,
        google_sub: str,
        email: str,
        name: Optional[str] = None,
        picture_url: Optional[str] = None,
    ) -> User:
        """
        Resolve the local user for a verified Google identity.

        Repeat logins match on google_sub and refresh the profile. First
        logins insert atomically with ON CONFLICT (google_sub); a collision
        on email links the existing account to this google_sub instead of
        creating a duplicate.

        Args:
            db: Database session
            google_sub: Google "sub" claim
            email: Verified e-mail claim
            name: Optional display name
            picture_url: Optional avatar URL

        Returns:
            The resolved User instance

        Raises:
            DatabaseConflictError: If neither the insert nor the link succeeds
        """
        user = self.get_by_google_sub(db, google_sub)
        if user:
            self._refresh_profile(user, name, picture_url)
            db.commit()
            db.refresh(user)
            return user

        try:
            self._insert_on_conflict(
                db,
                google_sub=google_sub,
                email=email,
                name=name,
                picture_url=picture_url,
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            return self.link_google_sub(
                db,
                email=email,
                google_sub=google_sub,
                name=name,
                picture_url=picture_url,
            )

        return self.get_by_google_sub(db, google_sub)

    def _insert_on_conflict(
        self,
        db: Session,
        *,
        google_sub: str,
        email: str,
        name: Optional[str],
        picture_url: Optional[str],
    ) -> None:
        insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
        if insert is None:
            # No ON CONFLICT support: plain insert, IntegrityError handled by caller
            db.add(User(google_sub=google_sub, email=email, name=name, picture_url=picture_url))
            db.flush()
            return

        stmt = insert(User).values(
            google_sub=google_sub,
            email=email,
            name=name,
            picture_url=picture_url,
        )
        profile = {
            key: value
            for key, value in (("name", name), ("picture_url", picture_url))
            if value is not None
        }
        if profile:
            stmt = stmt.on_conflict_do_update(index_elements=["google_sub"], set_=profile)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["google_sub"])
        db.execute(stmt)

    def link_google_sub(
        self,
        db: Session,
        *,
        email: str,
        google_sub: str,
        name: Optional[str] = None,
        picture_url: Optional[str] = None,
    ) -> User:
        """Attach a Google subject id to the account that owns this e-mail."""
        user = self.get_by_email(db, email)
        if user is None:
            # Lost a race on google_sub rather than email
            user = self.get_by_google_sub(db, google_sub)
            if user is None:
                raise DatabaseConflictError(f"Could not resolve user for {email}")
            return user

        user.google_sub = google_sub
        self._refresh_profile(user, name, picture_url)
        db.commit()
        db.refresh(user)
        return user


crud_user = UserCRUD()
