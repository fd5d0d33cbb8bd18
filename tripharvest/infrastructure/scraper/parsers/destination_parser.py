"""
Destination extractor for city and region guide pages.
"""

from typing import Optional

from tripharvest.domain.entities.content import Destination
from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument, HtmlNode
from tripharvest.infrastructure.scraper.parsers.selector_extractor import SelectorContext, extract_records


class DestinationExtractor:
    """Builds ``Destination`` records: attractions, overview, best time to visit, weather."""

    def __init__(self, context: SelectorContext):
        self.context = context

    def extract(self, document: HtmlDocument) -> list[Destination]:
        return extract_records(
            document,
            self.context,
            lambda node, index: self._build(node, index, document),
            "destination",
        )

    def _build(self, node: HtmlNode, index: int, document: HtmlDocument) -> Optional[Destination]:
        s = self.context.selectors
        fields = self.context.common_fields(node, document, index)
        attractions = node.texts(s.attractions)
        category = fields.pop("category", None) or "destination"
        return Destination(
            **fields,
            category=category,
            attractions=list(dict.fromkeys(attractions)),
            overview=node.text(s.overview) if s.overview else None,
            best_time_to_visit=node.text(s.best_time_to_visit) if s.best_time_to_visit else None,
            weather=node.text(s.weather) if s.weather else None,
            country=node.text(s.country) if s.country else None,
            tags=["destination"],
        )
