"""
Structured records extracted from travel pages.

``ExtractedContent`` carries the fields common to every record; the
``Activity``, ``Accommodation`` and ``Destination`` variants add their
domain fields. Only ``url`` and ``title`` are guaranteed; everything else
is best-effort.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _append_unique(values: list[str], value: Optional[str]) -> None:
    if value and value not in values:
        values.append(value)


class Coordinates(BaseModel):
    """Latitude / longitude pair."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class GroupSize(BaseModel):
    """Participant bounds of an activity. Either side may be unknown."""

    min: Optional[int] = Field(default=None, ge=0)
    max: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "GroupSize":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"group size min ({self.min}) exceeds max ({self.max})")
        return self


class RoomType(BaseModel):
    """One bookable room of an accommodation."""

    name: str
    price: Optional[float] = Field(default=None, ge=0)
    capacity: Optional[int] = Field(default=None, ge=0)
    amenities: list[str] = Field(default_factory=list)


class ExtractedContent(BaseModel):
    """Base record shared by all content types."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    url: str = Field(..., min_length=1, description="Page the record was extracted from")
    detail_url: Optional[str] = Field(default=None, description="The record's own link, when it has one")
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    review_count: Optional[int] = Field(default=None, ge=0)
    images: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    extracted_at: datetime = Field(default_factory=_utcnow)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Title is the only required content field; blank titles are rejected."""
        v = " ".join(v.split())
        if not v:
            raise ValueError("title cannot be blank")
        return v

    def add_tag(self, tag: str) -> None:
        _append_unique(self.tags, tag)

    def add_image(self, image_url: str) -> None:
        _append_unique(self.images, image_url)

    @property
    def has_price(self) -> bool:
        return self.price is not None


class Activity(ExtractedContent):
    """A bookable tour, experience or attraction ticket."""

    duration: Optional[str] = None
    highlights: list[str] = Field(default_factory=list)
    includes: list[str] = Field(default_factory=list)
    excludes: list[str] = Field(default_factory=list)
    meeting_point: Optional[str] = None
    cancel_policy: Optional[str] = None
    availability: Optional[str] = None
    group_size: Optional[GroupSize] = None
    difficulty: Optional[str] = None

    def add_highlight(self, highlight: str) -> None:
        _append_unique(self.highlights, highlight)

    def add_include(self, item: str) -> None:
        _append_unique(self.includes, item)

    def add_exclude(self, item: str) -> None:
        _append_unique(self.excludes, item)


class Accommodation(ExtractedContent):
    """A hotel, apartment or other lodging."""

    star_rating: Optional[int] = Field(default=None, ge=0, le=5)
    amenities: list[str] = Field(default_factory=list)
    room_types: list[RoomType] = Field(default_factory=list)
    policies: list[str] = Field(default_factory=list)
    address: Optional[str] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    nearby_attractions: list[str] = Field(default_factory=list)

    def add_amenity(self, amenity: str) -> None:
        _append_unique(self.amenities, amenity)

    def add_room_type(self, room: RoomType) -> None:
        if all(r.name != room.name for r in self.room_types):
            self.room_types.append(room)

    def add_policy(self, policy: str) -> None:
        _append_unique(self.policies, policy)


class Destination(ExtractedContent):
    """A city, region or country guide page."""

    attractions: list[str] = Field(default_factory=list)
    overview: Optional[str] = None
    best_time_to_visit: Optional[str] = None
    weather: Optional[str] = None
    country: Optional[str] = None

    def add_attraction(self, attraction: str) -> None:
        _append_unique(self.attractions, attraction)
