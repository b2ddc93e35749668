# Services package - business logic and external integrations
from app.services.auth import SupabaseAuthVerifier, CallerIdentity
from app.services.events import EventBus
from app.services.gemini_appraisal import GeminiAppraisalService
from app.services.image_fetch import ImageFetcher, FetchedImage
from app.services.storage import StorageService

__all__ = [
    "SupabaseAuthVerifier",
    "CallerIdentity",
    "EventBus",
    "GeminiAppraisalService",
    "ImageFetcher",
    "FetchedImage",
    "StorageService",
]
