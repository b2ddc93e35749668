"""
Appraisal Schemas
Structured valuation returned by the AI service and the stored record view.
"""

from typing import List, Optional
from pydantic import Field, model_validator

from app.schemas.job import CamelModel, PriceRange, UtcDatetime, ValuationSummary


class Reference(CamelModel):
    """A marketplace listing or price guide backing the valuation."""
    title: str
    url: str


class AppraisalResult(CamelModel):
    """Structured valuation parsed from the AI response."""
    item_name: str = Field(min_length=1)
    author: str = "N/A"
    era: str = ""
    category: str = ""
    description: str = ""
    price_range: PriceRange
    currency: str = "USD"
    reasoning: str = ""
    references: List[Reference] = []

    @model_validator(mode="after")
    def check_price_range(self):
        if self.price_range.low > self.price_range.high:
            raise ValueError(
                f"priceRange.low ({self.price_range.low}) exceeds priceRange.high ({self.price_range.high})"
            )
        return self

    def summary(self) -> ValuationSummary:
        """Compact form stored on the job row."""
        return ValuationSummary(
            item_name=self.item_name,
            price_range=self.price_range,
            currency=self.currency,
        )


class AppraisalResponse(CamelModel):
    """Schema for a stored valuation record."""
    id: str
    user_id: str
    item_name: str
    author: Optional[str] = None
    era: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    price_range: PriceRange
    currency: str
    reasoning: Optional[str] = None
    references: List[Reference] = []
    image_url: Optional[str] = None
    image_urls: List[str] = []
    created_at: UtcDatetime

    @classmethod
    def from_appraisal(cls, appraisal) -> "AppraisalResponse":
        """Build from an Appraisal row."""
        return cls(
            id=appraisal.id,
            user_id=appraisal.user_id,
            item_name=appraisal.item_name,
            author=appraisal.author,
            era=appraisal.era,
            category=appraisal.category,
            description=appraisal.description,
            price_range=PriceRange(low=appraisal.price_low, high=appraisal.price_high),
            currency=appraisal.currency,
            reasoning=appraisal.reasoning,
            references=appraisal.references or [],
            image_url=appraisal.ai_image_url,
            image_urls=appraisal.image_urls or [],
            created_at=appraisal.created_at,
        )
