"""
Accommodation extractor for hotel and lodging listings.
"""

from typing import Optional

from tripharvest.domain.entities.content import Accommodation, RoomType
from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument, HtmlNode
from tripharvest.infrastructure.scraper.parsers.fields import (
    accommodation_tags,
    parse_int,
    parse_price,
    parse_star_rating,
)
from tripharvest.infrastructure.scraper.parsers.selector_extractor import SelectorContext, extract_records

DEFAULT_ROOM_NAME = '[data-testid="room-name"]'
DEFAULT_ROOM_PRICE = '[data-testid="room-price"]'
DEFAULT_ROOM_CAPACITY = '[data-testid="room-capacity"]'
DEFAULT_ROOM_AMENITY = '[data-testid="room-amenity"]'


class AccommodationExtractor:
    """
    Builds ``Accommodation`` records from selector-addressed property cards.

    Guest ratings are normalized to the 5-point scale using the site's
    declared ``extraction.rating_scale`` (10 for most booking sites).
    """

    def __init__(self, context: SelectorContext):
        self.context = context

    def extract(self, document: HtmlDocument) -> list[Accommodation]:
        return extract_records(
            document,
            self.context,
            lambda node, index: self._build(node, index, document),
            "accommodation",
        )

    def _build(self, node: HtmlNode, index: int, document: HtmlDocument) -> Optional[Accommodation]:
        s = self.context.selectors
        fields = self.context.common_fields(node, document, index)

        star_rating = parse_star_rating(node.first(s.star_rating)) if s.star_rating else None
        amenities = node.texts(s.amenities)
        room_types = self._room_types(node)

        fields["metadata"].update(
            has_room_types=bool(room_types),
            amenity_count=len(amenities),
        )
        category = fields.pop("category", None) or "accommodation"
        return Accommodation(
            **fields,
            category=category,
            star_rating=star_rating,
            amenities=amenities,
            room_types=room_types,
            policies=node.texts(s.policies),
            address=node.text(s.address) if s.address else None,
            check_in=node.text(s.check_in) if s.check_in else None,
            check_out=node.text(s.check_out) if s.check_out else None,
            nearby_attractions=node.texts(s.nearby_attractions),
            tags=accommodation_tags(fields["title"], amenities, star_rating),
        )

    def _room_types(self, node: HtmlNode) -> list[RoomType]:
        s = self.context.selectors
        rooms: list[RoomType] = []
        seen: set[str] = set()
        for room in node.select(s.room_types):
            name = room.text(s.room_name or DEFAULT_ROOM_NAME)
            if not name or name in seen:
                continue
            seen.add(name)
            price, _ = parse_price(room.text(s.room_price or DEFAULT_ROOM_PRICE))
            rooms.append(
                RoomType(
                    name=name,
                    price=price,
                    capacity=parse_int(room.text(s.room_capacity or DEFAULT_ROOM_CAPACITY)),
                    amenities=room.texts(s.room_amenities or DEFAULT_ROOM_AMENITY),
                )
            )
        return rooms
