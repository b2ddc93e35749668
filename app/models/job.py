"""
Appraisal Job Model
Database model for queued appraisal jobs.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, JSON

from app.core.database import Base


class AppraisalJob(Base):
    """One submitted appraisal request and its processing state."""

    __tablename__ = "appraisal_queue"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)

    # Request
    image_urls = Column(JSON, nullable=False)
    condition = Column(String, nullable=False, default="Good")

    # Status: pending, processing, completed, failed
    status = Column(String, default="pending", nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    # Result (set only on completion)
    result = Column(JSON, nullable=True)  # {itemName, priceRange{low,high}, currency}
    appraisal_id = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    # Lease refreshed by the owning worker while processing
    heartbeat_at = Column(DateTime, nullable=True)
