"""
Activity extractor for tour and experience listings.
"""

from typing import Optional

from tripharvest.domain.entities.content import Activity
from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument, HtmlNode
from tripharvest.infrastructure.scraper.parsers.fields import activity_tags, parse_group_size
from tripharvest.infrastructure.scraper.parsers.selector_extractor import SelectorContext, extract_records


class ActivityExtractor:
    """
    Builds ``Activity`` records from selector-addressed tour cards.

    Reads duration, highlights, includes/excludes, meeting point,
    cancellation policy, group-size bounds and availability on top of the
    common fields, and derives tags from duration and keywords.

    Example:
        >>> extractor = ActivityExtractor(SelectorContext(selectors, "https://www.getyourguide.com"))
        >>> activities = extractor.extract(document)
    """

    def __init__(self, context: SelectorContext):
        self.context = context

    def extract(self, document: HtmlDocument) -> list[Activity]:
        return extract_records(
            document,
            self.context,
            lambda node, index: self._build(node, index, document),
            "activity",
        )

    def _build(self, node: HtmlNode, index: int, document: HtmlDocument) -> Optional[Activity]:
        s = self.context.selectors
        fields = self.context.common_fields(node, document, index)

        duration = node.text(s.duration) if s.duration else None
        highlights = node.texts(s.highlights)
        includes = node.texts(s.includes)
        excludes = node.texts(s.excludes)
        availability = node.texts(s.availability)

        fields["metadata"].update(
            has_highlights=bool(highlights),
            has_includes=bool(includes),
        )
        category = fields.pop("category", None) or "activity"
        return Activity(
            **fields,
            category=category,
            duration=duration,
            highlights=highlights,
            includes=includes,
            excludes=excludes,
            meeting_point=node.text(s.meeting_point) if s.meeting_point else None,
            cancel_policy=node.text(s.cancel_policy) if s.cancel_policy else None,
            availability=", ".join(availability) or None,
            group_size=parse_group_size(node.text(s.group_size)) if s.group_size else None,
            difficulty=node.text(s.difficulty) if s.difficulty else None,
            tags=activity_tags(fields["title"], highlights, duration),
        )
