# Database models package
from app.models.job import AppraisalJob
from app.models.appraisal import Appraisal
from app.models.user import User

__all__ = [
    "AppraisalJob",
    "Appraisal",
    "User",
]
