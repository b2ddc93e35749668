"""
User Model
Only the streak fields this service touches; the row itself is owned elsewhere.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, DateTime

from app.core.database import Base


class User(Base):
    """User entity carrying the appraisal streak counter."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)

    current_streak = Column(Integer, default=0)
    longest_streak = Column(Integer, default=0)
    last_appraisal_date = Column(Date, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
