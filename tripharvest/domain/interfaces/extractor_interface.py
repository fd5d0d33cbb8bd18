"""
Content extraction contract.
"""

from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

from tripharvest.domain.entities.content import ExtractedContent

if TYPE_CHECKING:
    from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument

T_co = TypeVar("T_co", bound=ExtractedContent, covariant=True)


@runtime_checkable
class ContentExtractor(Protocol[T_co]):
    """
    Turns a parsed document into structured records.

    Implementations are plain values (no base class required). They must:

    - return ``[]`` for empty or malformed documents instead of raising;
    - behave identically whether the document came from a live browser
      snapshot or from fetched markup;
    - treat ``title`` as the only required field.
    """

    def extract(self, document: "HtmlDocument") -> list[T_co]:
        """
        Extract records from a document.

        Args:
            document: Parsed page, carrying the URL it was loaded from.

        Returns:
            Zero or more records, in document order.
        """
        ...
