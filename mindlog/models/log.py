# models/log.py

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, DateTime, Float, ForeignKey, Integer, Text, Uuid
)
from sqlalchemy.orm import relationship
from mindlog.core.config import Base


class Log(Base):
    __tablename__ = "logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Effective date of the entry, naive UTC
    date = Column(DateTime, nullable=False, index=True)

    # All wellbeing fields are optional; NULL means "no data", not zero
    mood = Column(Integer, nullable=True)
    anxiety = Column(Integer, nullable=True)
    sleep_hours = Column(Float, nullable=True)
    sleep_quality = Column(Integer, nullable=True)
    activity_type = Column(Text, nullable=True)
    activity_mins = Column(Integer, nullable=True)
    social_count = Column(Integer, nullable=True)
    stress = Column(Integer, nullable=True)
    symptoms = Column(Text, nullable=True)  # comma-joined on the client
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="logs", lazy="joined")
