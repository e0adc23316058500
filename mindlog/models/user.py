# models/user.py

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from mindlog.core.config import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    # Google "sub" claim; empty until the account is linked to a Google identity
    google_sub = Column(String(255), unique=True, nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    picture_url = Column(String(2048), nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    logs = relationship("Log", back_populates="user", cascade="all, delete-orphan")
