"""
API Dependencies
Common dependencies for FastAPI routes (database sessions, caller identity,
background scheduler).
"""

from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, Header, Request

from app.core.database import SessionLocal
from app.services.auth import CallerIdentity, SupabaseAuthVerifier, extract_bearer_token
from app.workers.scheduler import BackgroundTaskScheduler


def get_db() -> Generator:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def get_verifier() -> SupabaseAuthVerifier:
    return SupabaseAuthVerifier()


def get_current_user(
    authorization: Optional[str] = Header(None),
    verifier: SupabaseAuthVerifier = Depends(get_verifier),
) -> CallerIdentity:
    """Resolve the bearer token to the calling user (raises AuthError)."""
    token = extract_bearer_token(authorization)
    return verifier.verify(token)


def get_scheduler(request: Request) -> BackgroundTaskScheduler:
    """Scheduler built by the application lifespan."""
    return request.app.state.scheduler
