"""
Appraisals API Routes
Read access to finished valuation records.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.core.exceptions import NotFoundError
from app.models.appraisal import Appraisal
from app.schemas.appraisal import AppraisalResponse
from app.services.auth import CallerIdentity

router = APIRouter()


@router.get("/{appraisal_id}", response_model=AppraisalResponse)
def get_appraisal(
    appraisal_id: str,
    user: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get one of the caller's appraisals."""
    appraisal = (
        db.query(Appraisal)
        .filter(Appraisal.id == appraisal_id, Appraisal.user_id == user.user_id)
        .first()
    )
    if not appraisal:
        raise NotFoundError("Appraisal not found", details={"appraisal_id": appraisal_id})

    return AppraisalResponse.from_appraisal(appraisal)
