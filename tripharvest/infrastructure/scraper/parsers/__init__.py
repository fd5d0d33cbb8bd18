# Parsers Package
"""
Content extraction for travel pages.

This module provides:
- HtmlDocument / HtmlNode: the parsed-document abstraction
- Field helpers: price, rating, group size, tags
- Extractors: activities, accommodations, destinations and a generic fallback
"""

from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument, HtmlNode
from tripharvest.infrastructure.scraper.parsers.selector_extractor import (
    SelectorContext,
    extract_records,
)
from tripharvest.infrastructure.scraper.parsers.activity_parser import ActivityExtractor
from tripharvest.infrastructure.scraper.parsers.accommodation_parser import AccommodationExtractor
from tripharvest.infrastructure.scraper.parsers.destination_parser import DestinationExtractor
from tripharvest.infrastructure.scraper.parsers.generic_parser import (
    GenericHeuristics,
    GenericTourExtractor,
    deduplicate,
)

__all__ = [
    "HtmlDocument",
    "HtmlNode",
    "SelectorContext",
    "extract_records",
    "ActivityExtractor",
    "AccommodationExtractor",
    "DestinationExtractor",
    "GenericHeuristics",
    "GenericTourExtractor",
    "deduplicate",
]
