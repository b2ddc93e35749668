"""
Gemini Appraisal Service
Structured valuation and canonical image re-rendering with Gemini models.
Documentation: https://ai.google.dev/gemini-api/docs/structured-output
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from google import genai
from google.genai import types
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.exceptions import RegenerationError, ValuationServiceError
from app.schemas.appraisal import AppraisalResult
from app.services.image_fetch import FetchedImage

logger = logging.getLogger(__name__)


APPRAISAL_SYSTEM_INSTRUCTION = (
    "You are an expert appraiser and archivist. Your task is to analyze images of an item and "
    "provide a detailed appraisal in a structured JSON format. If the item is a book, prioritize "
    "extracting its title, author, and publication year. Use the title for 'itemName', the author "
    "for 'author', and the year for 'era'. The 'description' should be a summary of the book. For "
    "other items, provide a descriptive name, era, and physical description. You must also "
    "determine a single-word 'category'. Provide an estimated market value and a rationale based "
    "on the item's details and its visual condition provided by the user. IMPORTANT: You must also "
    "provide 2-4 references with real URLs to external marketplaces (e.g., eBay, AbeBooks, Amazon, "
    "Heritage Auctions, Sotheby's, Christie's) or price guides that support your valuation."
)

REGENERATION_PROMPT = "Regenerate this image exactly as it is, without any changes."

APPRAISAL_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "itemName": {"type": "STRING", "description": "The title of the book or a concise name for the item."},
        "author": {"type": "STRING", "description": "The author of the book. If not a book or not visible, state 'N/A'."},
        "era": {"type": "STRING", "description": "The publication year of the book (e.g., '1924') or the estimated time period of the item (e.g., 'c. 1920s')."},
        "category": {"type": "STRING", "description": "A single-word category for the item (e.g., 'Book', 'Painting', 'Tool', 'Record', 'Toy', 'Collectible')."},
        "description": {"type": "STRING", "description": "A brief summary of the book's content or a physical description of the item."},
        "priceRange": {
            "type": "OBJECT",
            "properties": {
                "low": {"type": "NUMBER", "description": "The low end of the estimated value range as a number."},
                "high": {"type": "NUMBER", "description": "The high end of the estimated value range as a number."},
            },
            "required": ["low", "high"],
        },
        "currency": {"type": "STRING", "description": "The currency for the price range, e.g., USD."},
        "reasoning": {"type": "STRING", "description": "A step-by-step explanation of how the value was determined."},
        "references": {
            "type": "ARRAY",
            "description": "Reference sources used to determine the price range.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING", "description": "A descriptive title for the reference source."},
                    "url": {"type": "STRING", "description": "The URL to the reference source."},
                },
                "required": ["title", "url"],
            },
        },
    },
    "required": [
        "itemName", "author", "era", "category", "description",
        "priceRange", "currency", "reasoning", "references",
    ],
}


@dataclass
class GeneratedImage:
    """Image bytes returned by the regeneration model."""
    data: bytes
    mime_type: str

    @property
    def extension(self) -> str:
        return self.mime_type.split("/")[-1] or "png"


class GeminiAppraisalService:
    """Service for valuation and image regeneration using Gemini models."""

    def __init__(self, client: Optional[genai.Client] = None):
        self._client = client
        self.valuation_model = settings.GEMINI_VALUATION_MODEL
        self.image_model = settings.GEMINI_IMAGE_MODEL

    @property
    def client(self) -> genai.Client:
        """Lazily built so a missing key only fails the job that needs it."""
        if self._client is None:
            if not settings.GEMINI_API_KEY:
                raise RuntimeError("GEMINI_API_KEY not set")
            self._client = genai.Client(api_key=settings.GEMINI_API_KEY)
            logger.info(f"Gemini client initialized (valuation={self.valuation_model}, image={self.image_model})")
        return self._client

    @staticmethod
    def _image_parts(images: Sequence[FetchedImage]) -> list:
        return [types.Part.from_bytes(data=image.data, mime_type=image.mime_type) for image in images]

    async def appraise(self, images: Sequence[FetchedImage], condition: str) -> AppraisalResult:
        """
        Request a structured appraisal for the item shown in ``images``.

        Raises:
            ValuationServiceError: call failed, empty response, or unusable JSON
        """
        contents = self._image_parts(images) + [f"User-specified Condition: {condition}"]
        config = types.GenerateContentConfig(
            system_instruction=APPRAISAL_SYSTEM_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=APPRAISAL_RESPONSE_SCHEMA,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.valuation_model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise ValuationServiceError(f"Valuation request failed: {e}", cause=e) from e

        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise ValuationServiceError("No text response from AI")

        try:
            result = AppraisalResult.model_validate_json(text.strip())
        except PydanticValidationError as e:
            logger.warning(f"Unusable valuation payload: {text[:500]}")
            raise ValuationServiceError(f"Malformed valuation response: {e.error_count()} invalid field(s)", cause=e) from e

        logger.info(f"Appraised '{result.item_name}' at {result.price_range.low}-{result.price_range.high} {result.currency}")
        return result

    async def regenerate_image(self, images: Sequence[FetchedImage]) -> GeneratedImage:
        """
        Re-render the item as a single canonical image.

        Raises:
            RegenerationError: call failed or no image part came back
        """
        contents = self._image_parts(images) + [REGENERATION_PROMPT]
        config = types.GenerateContentConfig(response_modalities=["IMAGE"])

        try:
            response = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise RegenerationError(f"Image regeneration failed: {e}", cause=e) from e

        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data and inline.mime_type:
                    return GeneratedImage(data=inline.data, mime_type=inline.mime_type)

        finish_reason = "Unknown"
        if getattr(response, "candidates", None):
            finish_reason = response.candidates[0].finish_reason
        raise RegenerationError(f"No image generated. Finish Reason: {finish_reason}")
