"""
Image Ingress Validation
Only references into our own public storage bucket may enter the pipeline,
since the pipeline later fetches every reference server-side.
"""

import re
from functools import lru_cache
from typing import Any, List, Optional

from app.core.config import settings
from app.core.exceptions import ValidationError


@lru_cache(maxsize=8)
def _compile(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


def is_trusted_image_reference(url: str, pattern: Optional[str] = None) -> bool:
    """Check a single reference against the trusted-storage pattern."""
    if not isinstance(url, str):
        return False
    return _compile(pattern or settings.TRUSTED_IMAGE_URL_PATTERN).match(url) is not None


def validate_image_references(urls: Any, pattern: Optional[str] = None) -> List[str]:
    """
    Validate the submitted image list.

    Raises:
        ValidationError: missing or empty list, or any reference outside trusted storage
    """
    if not urls or not isinstance(urls, (list, tuple)):
        raise ValidationError("No images provided.")

    for url in urls:
        if not is_trusted_image_reference(url, pattern):
            raise ValidationError(
                "Invalid image URL. Images must be uploaded through the app.",
                details={"url": url if isinstance(url, str) else repr(url)},
            )

    return list(urls)
