"""
Appraisal Model
Durable valuation record produced by a successful job.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Float, JSON

from app.core.database import Base


class Appraisal(Base):
    """Valuation record, immutable once written."""

    __tablename__ = "appraisals"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)

    item_name = Column(String, nullable=False)
    author = Column(String, nullable=True)
    era = Column(String, nullable=True)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    price_low = Column(Float, nullable=False)
    price_high = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="USD")

    reasoning = Column(Text, nullable=True)
    references = Column(JSON, default=list)  # [{title, url}]

    # Regenerated image, or the first input image when regeneration failed
    ai_image_url = Column(String, nullable=True)
    image_urls = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
