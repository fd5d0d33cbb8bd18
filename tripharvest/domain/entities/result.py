"""
Scrape result envelope.
"""

from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

from .content import ExtractedContent

T = TypeVar("T", bound=ExtractedContent)


class ScrapeMetadata(BaseModel):
    """Bookkeeping for one scrape call."""

    url: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    items_found: int = Field(default=0, ge=0)
    processing_time: float = Field(default=0.0, ge=0, description="Seconds")
    pages_crawled: int = Field(default=0, ge=0)


class ScrapingResult(BaseModel, Generic[T]):
    """Outcome of scraping one URL (or one paginated listing)."""

    success: bool
    data: list[T] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    metadata: ScrapeMetadata

    @model_validator(mode="after")
    def validate_consistency(self) -> "ScrapingResult[T]":
        """Successful results count exactly the records they carry; failures explain themselves."""
        if self.success and self.metadata.items_found != len(self.data):
            raise ValueError(
                f"items_found ({self.metadata.items_found}) does not match "
                f"number of records ({len(self.data)})"
            )
        if not self.success and not self.errors:
            raise ValueError("a failed result must carry at least one error")
        return self

    @classmethod
    def ok(
        cls,
        url: str,
        data: list[T],
        processing_time: float = 0.0,
        pages_crawled: int = 1,
        errors: Optional[list[str]] = None,
    ) -> "ScrapingResult[T]":
        return cls(
            success=True,
            data=data,
            errors=errors or [],
            metadata=ScrapeMetadata(
                url=url,
                items_found=len(data),
                processing_time=processing_time,
                pages_crawled=pages_crawled,
            ),
        )

    @classmethod
    def failed(
        cls,
        url: str,
        errors: list[str],
        processing_time: float = 0.0,
    ) -> "ScrapingResult[T]":
        return cls(
            success=False,
            data=[],
            errors=errors or ["Unknown error"],
            metadata=ScrapeMetadata(
                url=url,
                items_found=0,
                processing_time=processing_time,
                pages_crawled=0,
            ),
        )
