"""
Selector-driven record loop shared by the site extractors.

Each element matching ``selectors.container`` becomes one record. Every
record is built inside its own error boundary: a failure is logged and
the record skipped, the rest of the page is still extracted.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from tripharvest.domain.entities.content import ExtractedContent
from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument, HtmlNode
from tripharvest.infrastructure.scraper.parsers.fields import (
    clean_text,
    extract_images,
    parse_int,
    parse_price,
    rating_from_node,
)
from tripharvest.utils.config import ErrorHandlingPolicy, ExtractionPolicy, SelectorMap
from tripharvest.utils.exceptions import ExtractionError
from tripharvest.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=ExtractedContent)

# Builds one record from a container node; returns None to skip it quietly.
RecordBuilder = Callable[[HtmlNode, int], Optional[T]]


@dataclass
class SelectorContext:
    """What every selector extractor needs to know about its site."""
    selectors: SelectorMap
    base_url: str
    extraction: ExtractionPolicy = field(default_factory=ExtractionPolicy)
    error_handling: ErrorHandlingPolicy = field(default_factory=ErrorHandlingPolicy)
    source: Optional[str] = None

    def page_url(self, document: HtmlDocument) -> str:
        return document.url or self.base_url

    def common_fields(self, node: HtmlNode, document: HtmlDocument, index: int) -> dict[str, Any]:
        """
        Fields shared by every record type.

        Raises:
            ExtractionError: The block has no title.
        """
        s = self.selectors
        title = node.text(s.title) if s.title else None
        if not title:
            raise ExtractionError(
                "Skipping record without title",
                index=index,
                selector=s.title,
            )

        price, currency = parse_price(node.text(s.price)) if s.price else (None, None)
        fields: dict[str, Any] = {
            "id": self.record_id(node),
            "url": self.page_url(document),
            "detail_url": self.detail_url(node, document),
            "title": title,
            "description": node.text(s.description) if s.description else None,
            "price": price,
            "currency": currency,
            "rating": rating_from_node(node, s.rating, self.extraction.rating_scale),
            "review_count": parse_int(node.text(s.review_count)) if s.review_count else None,
            "images": extract_images(
                node, s.images, document.url or self.base_url, self.extraction.max_images
            ),
            "location": node.text(s.location) if s.location else None,
            "metadata": {
                "source": self.source or self.extraction.source,
                "extraction_index": index,
            },
        }
        if s.category:
            fields["category"] = node.text(s.category)
        return fields

    def record_id(self, node: HtmlNode) -> str:
        s = self.selectors
        if s.id:
            value = clean_text(node.text(s.id)) or node.attr("data-id", s.id) or node.attr("id", s.id)
            if value:
                return value
        for attr in ("data-id", "data-item-id", "id"):
            value = node.attr(attr)
            if value:
                return value
        return uuid.uuid4().hex

    def detail_url(self, node: HtmlNode, document: HtmlDocument) -> Optional[str]:
        """The record's own link. Absent when the block carries no anchor."""
        s = self.selectors
        if s.link:
            href = node.attr("href", s.link)
        elif node.name == "a":
            href = node.attr("href")
        else:
            href = node.attr("href", "a[href]")
        return document.resolve(href) if href else None


def extract_records(
    document: HtmlDocument,
    context: SelectorContext,
    build: RecordBuilder,
    label: str,
) -> list[T]:
    """
    Run ``build`` over every container block of the document.

    Args:
        document: Parsed page.
        context: Site selectors and policies.
        build: Record builder for one block.
        label: Name used in log lines (e.g. ``"activity"``).

    Returns:
        Records in document order. Never raises.
    """
    container = context.selectors.container
    if not container:
        logger.debug(f"No container selector configured for {label} extraction")
        return []

    try:
        blocks = document.select(container)
    except Exception as e:
        logger.warning(f"Could not select {label} blocks with {container!r}: {e}")
        return []

    records: list[T] = []
    failures = 0
    policy = context.error_handling
    for index, block in enumerate(blocks):
        try:
            record = build(block, index)
        except ExtractionError as e:
            logger.warning(f"{e.message} ({label} #{index})")
            continue
        except Exception as e:
            failures += 1
            if policy.log_errors:
                logger.error(f"Error extracting {label} #{index}: {e}")
            if not policy.skip_on_error:
                break
            if policy.max_errors and failures >= policy.max_errors:
                logger.warning(
                    f"Giving up on page after {failures} {label} extraction errors"
                )
                break
            continue
        if record is not None:
            records.append(record)

    logger.info(f"Extracted {len(records)} {label} record(s) from {document.url or context.base_url}")
    return records
