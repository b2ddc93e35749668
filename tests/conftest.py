"""Shared fixtures: in-memory database and fake pipeline collaborators."""

from typing import List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models import Appraisal, AppraisalJob, User  # noqa: F401
from app.schemas.appraisal import AppraisalResult, Reference
from app.schemas.job import JobStatus, PriceRange
from app.services.events import EventBus
from app.services.gemini_appraisal import GeneratedImage
from app.services.image_fetch import FetchedImage
from app.workers.appraisal import AppraisalWorker

TRUSTED_PREFIX = "https://abcdefgh.supabase.co/storage/v1/object/public/appraisal-images/"
TRUSTED_URL = TRUSTED_PREFIX + "user-1/front.jpg"
TRUSTED_URL_2 = TRUSTED_PREFIX + "user-1/back.jpg"
USER_ID = "user-1"


def make_result(item_name: str = "Silver Pocket Watch", low: float = 120.0, high: float = 280.0) -> AppraisalResult:
    return AppraisalResult(
        item_name=item_name,
        author="N/A",
        era="c. 1890s",
        category="Collectible",
        description="Hunter-case pocket watch with engraved lid.",
        price_range=PriceRange(low=low, high=high),
        currency="USD",
        reasoning="Comparable sales on major auction sites.",
        references=[Reference(title="eBay sold listings", url="https://www.ebay.com/sch/i.html?_nkw=pocket+watch")],
    )


class FakeFetcher:
    """Returns canned bytes for every URL, or raises ``error``."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[List[str]] = []

    async def fetch_all(self, urls: Sequence[str]) -> List[FetchedImage]:
        self.calls.append(list(urls))
        if self.error:
            raise self.error
        return [FetchedImage(url=url, data=b"\xff\xd8jpeg", mime_type="image/jpeg") for url in urls]


class FakeAppraiser:
    """Stands in for GeminiAppraisalService."""

    def __init__(
        self,
        result: Optional[AppraisalResult] = None,
        appraise_error: Optional[Exception] = None,
        regenerate_error: Optional[Exception] = None,
    ):
        self.result = result or make_result()
        self.appraise_error = appraise_error
        self.regenerate_error = regenerate_error
        self.conditions: List[str] = []
        self.regenerations = 0

    async def appraise(self, images, condition):
        self.conditions.append(condition)
        if self.appraise_error:
            raise self.appraise_error
        return self.result

    async def regenerate_image(self, images):
        self.regenerations += 1
        if self.regenerate_error:
            raise self.regenerate_error
        return GeneratedImage(data=b"\x89PNGdata", mime_type="image/png")


class FakeStorage:
    """Records uploads and returns a CDN-style URL."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.uploads = []

    async def upload_bytes(self, data: bytes, path: str, content_type: str = "image/png") -> str:
        if self.error:
            raise self.error
        self.uploads.append((path, content_type, data))
        return f"https://cdn.example.com/{path}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def appraiser():
    return FakeAppraiser()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def worker(session_factory, fetcher, appraiser, storage, event_bus):
    return AppraisalWorker(
        session_factory=session_factory,
        fetcher=fetcher,
        appraiser=appraiser,
        storage_service=storage,
        event_bus=event_bus,
    )


def add_job(session_factory, status: JobStatus = JobStatus.PENDING, user_id: str = USER_ID, **fields) -> str:
    """Insert a job row directly and return its id."""
    session = session_factory()
    try:
        job = AppraisalJob(
            user_id=user_id,
            image_urls=fields.pop("image_urls", [TRUSTED_URL, TRUSTED_URL_2]),
            condition=fields.pop("condition", "Good"),
            status=status.value,
            **fields,
        )
        session.add(job)
        session.commit()
        return job.id
    finally:
        session.close()


def load_job(session_factory, job_id: str) -> Optional[AppraisalJob]:
    """Read a job through a fresh session so no identity-map state leaks."""
    session = session_factory()
    try:
        return session.get(AppraisalJob, job_id)
    finally:
        session.close()


def count_appraisals(session_factory) -> int:
    session = session_factory()
    try:
        return session.query(Appraisal).count()
    finally:
        session.close()
