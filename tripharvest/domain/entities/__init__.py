# Domain Entities Package
"""
Core records and scrape results as pydantic models.
"""

from .content import (
    Accommodation,
    Activity,
    Coordinates,
    Destination,
    ExtractedContent,
    GroupSize,
    RoomType,
)
from .result import ScrapeMetadata, ScrapingResult

__all__ = [
    "Accommodation",
    "Activity",
    "Coordinates",
    "Destination",
    "ExtractedContent",
    "GroupSize",
    "RoomType",
    "ScrapeMetadata",
    "ScrapingResult",
]
