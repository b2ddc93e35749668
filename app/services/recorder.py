"""
Valuation Record Writer
Persists the final appraisal as an immutable row in ``appraisals``.
"""

import logging
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceError
from app.models.appraisal import Appraisal
from app.schemas.appraisal import AppraisalResult

logger = logging.getLogger(__name__)


def write_appraisal(
    db: Session,
    user_id: str,
    result: AppraisalResult,
    image_url: str,
    image_urls: Sequence[str],
    commit: bool = True,
) -> Appraisal:
    """
    Insert the valuation record and return it.

    With ``commit=False`` the row is only flushed so the caller can finish
    its own transaction around it.

    Raises:
        PersistenceError: the insert or commit failed (the session is rolled back)
    """
    appraisal = Appraisal(
        user_id=user_id,
        item_name=result.item_name,
        author=result.author,
        era=result.era,
        category=result.category,
        description=result.description,
        price_low=result.price_range.low,
        price_high=result.price_range.high,
        currency=result.currency,
        reasoning=result.reasoning,
        references=[ref.model_dump() for ref in result.references],
        ai_image_url=image_url,
        image_urls=list(image_urls),
    )
    try:
        db.add(appraisal)
        if commit:
            db.commit()
            db.refresh(appraisal)
        else:
            db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to save appraisal: {e}", cause=e) from e

    logger.info(f"Saved appraisal {appraisal.id} for user {user_id}")
    return appraisal
