"""
Field parsing helpers shared by all extractors.

Pure functions: text in, typed value (or None) out. None means the field
could not be read and is left absent on the record.
"""

import re
from typing import Iterable, Optional

from tripharvest.domain.entities.content import GroupSize
from tripharvest.infrastructure.scraper.parsers.document import HtmlNode
from tripharvest.utils.validators import resolve_url

# "From $45", "€32", "£25.99", "US$89", "USD 150"
PRICE_PATTERN = re.compile(
    r"(?:from\s+)?(?<![A-Za-z])(US\$|[€$£¥₹]|USD|EUR|GBP|JPY|INR)\s*(\d+(?:,\d{3})*(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
# "45 €", "120 EUR"
TRAILING_PRICE_PATTERN = re.compile(
    r"(\d+(?:,\d{3})*(?:\.\d{1,2})?)\s*(€|EUR|USD|GBP|JPY|INR)(?![A-Za-z])",
    re.IGNORECASE,
)

CURRENCY_CODES = {
    "$": "USD",
    "US$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
}

AMOUNT_PATTERN = re.compile(r"(\d+(?:,\d{3})*(?:\.\d+)?)")
NUMBER_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)")
INTEGER_PATTERN = re.compile(r"(\d[\d,.]*)")

PLACEHOLDER_MARKERS = ("placeholder", "blank", "spacer", "data:image")
IMAGE_SOURCE_ATTRS = ("src", "data-src", "data-lazy-src", "data-original")

DURATION_HOURS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?|h)\b", re.IGNORECASE)
DURATION_DAYS_PATTERN = re.compile(r"(\d+)\s*days?\b", re.IGNORECASE)
DURATION_MINUTES_PATTERN = re.compile(r"(\d+)\s*(?:minutes?|mins?)\b", re.IGNORECASE)

ACTIVITY_KEYWORD_TAGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("museum", ("museum", "gallery")),
    ("tour", ("tour", "walking")),
    ("food", ("food", "culinary", "cooking")),
    ("outdoor", ("outdoor", "hiking", "nature")),
    ("water-activity", ("water", "boat", "cruise")),
    ("adventure", ("adventure", "extreme")),
    ("cultural", ("culture", "historic", "heritage")),
    ("private", ("private",)),
    ("group", ("group",)),
)

PROPERTY_TYPES = ("hotel", "apartment", "resort", "villa", "hostel")

AMENITY_TAGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("wifi", ("wifi", "wi-fi", "internet")),
    ("pool", ("pool",)),
    ("spa", ("spa",)),
    ("fitness", ("gym", "fitness")),
    ("parking", ("parking",)),
    ("breakfast", ("breakfast",)),
    ("beachfront", ("beach",)),
)


def clean_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty strings become None."""
    if value is None:
        return None
    value = " ".join(value.split())
    return value or None


def parse_price(text: Optional[str]) -> tuple[Optional[float], Optional[str]]:
    """
    Read an amount and ISO currency code from price text.

    Args:
        text: e.g. ``"From $45"``, ``"€1,299.50"``, ``"120 EUR"``.

    Returns:
        ``(price, currency)``; both None when no price is recognised.
    """
    if not text:
        return None, None
    match = PRICE_PATTERN.search(text)
    if match:
        symbol, amount = match.group(1), match.group(2)
    else:
        match = TRAILING_PRICE_PATTERN.search(text)
        if not match:
            return None, None
        amount, symbol = match.group(1), match.group(2)
    currency = CURRENCY_CODES.get(symbol.upper(), symbol.upper())
    return parse_amount(amount), currency


def parse_amount(text: Optional[str]) -> Optional[float]:
    """Monetary amount with "," as thousands separator ("1,299.00" -> 1299.0)."""
    if not text:
        return None
    match = AMOUNT_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def parse_number(text: Optional[str]) -> Optional[float]:
    """First decimal number in the text ("4,5" reads as 4.5)."""
    if not text:
        return None
    match = NUMBER_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def parse_int(text: Optional[str]) -> Optional[int]:
    """First integer in the text, ignoring thousands separators ("1,234 reviews" -> 1234)."""
    if not text:
        return None
    match = INTEGER_PATTERN.search(text)
    if not match:
        return None
    digits = re.sub(r"[,.]", "", match.group(1))
    return int(digits) if digits else None


def normalize_rating(value: Optional[float], scale: Optional[float] = None) -> Optional[float]:
    """
    Convert a provider rating to the canonical 5-point scale.

    Args:
        value: Raw rating.
        scale: The provider's declared scale (5, 10, 100...). When unset
            the scale is inferred from the value: up to 5 is kept, up to
            10 is halved, up to 100 is divided by 20.

    Returns:
        Rating in ``[0, 5]`` rounded to two decimals, or None when the
        value is missing or out of range.
    """
    if value is None or value < 0:
        return None
    if scale is None:
        if value <= 5:
            scale = 5.0
        elif value <= 10:
            scale = 10.0
        elif value <= 100:
            scale = 100.0
        else:
            return None
    if value > scale:
        return None
    return round(value * 5.0 / scale, 2)


def parse_rating(text: Optional[str], scale: Optional[float] = None) -> Optional[float]:
    """Read a rating such as ``"4.5 stars"``, ``"4.5/5"`` or ``"Scored 8.7"``."""
    return normalize_rating(parse_number(text), scale)


def rating_from_node(node: HtmlNode, selector: Optional[str], scale: Optional[float] = None) -> Optional[float]:
    """
    Rating of the first match of ``selector``.

    ``aria-label`` and ``data-rating`` win over visible text, since star
    widgets often render no text at all.
    """
    target = node.first(selector) if selector else None
    if target is None:
        return None
    for source in (target.attr("aria-label"), target.attr("data-rating"), target.text()):
        rating = parse_rating(source, scale)
        if rating is not None:
            return rating
    return None


def parse_group_size(text: Optional[str]) -> Optional[GroupSize]:
    """
    Read participant bounds.

    ``"1-12 people"`` -> min 1, max 12; ``"Up to 8"`` / ``"Max 15"`` -> max;
    ``"Min 2"`` -> min; a bare number is read as the maximum.
    """
    if not text:
        return None
    range_match = re.search(r"(\d+)\s*[-–]\s*(\d+)", text)
    if range_match:
        low, high = int(range_match.group(1)), int(range_match.group(2))
        return GroupSize(min=min(low, high), max=max(low, high))
    max_match = re.search(r"(?:up to|max(?:imum)?)\s*(\d+)", text, re.IGNORECASE)
    if max_match:
        return GroupSize(max=int(max_match.group(1)))
    min_match = re.search(r"min(?:imum)?\s*(\d+)", text, re.IGNORECASE)
    if min_match:
        return GroupSize(min=int(min_match.group(1)))
    single = re.search(r"(\d+)", text)
    if single:
        return GroupSize(max=int(single.group(1)))
    return None


def parse_star_rating(node: Optional[HtmlNode]) -> Optional[int]:
    """Hotel class from ``"4 stars"`` text, or by counting star icons."""
    if node is None:
        return None
    for source in (node.text(), node.attr("aria-label")):
        value = parse_int(source)
        if value is not None and 0 < value <= 5:
            return value
    icons = node.select('[class*="star"], [data-testid*="star"]')
    if 0 < len(icons) <= 5:
        return len(icons)
    return None


def duration_hours(text: Optional[str]) -> Optional[float]:
    """Total duration in hours, or None when it cannot be read."""
    if not text:
        return None
    days = DURATION_DAYS_PATTERN.search(text)
    if days:
        return int(days.group(1)) * 24.0
    hours = DURATION_HOURS_PATTERN.search(text)
    minutes = DURATION_MINUTES_PATTERN.search(text)
    if hours or minutes:
        total = float(hours.group(1)) if hours else 0.0
        if minutes:
            total += int(minutes.group(1)) / 60.0
        return total
    return None


def duration_tags(text: Optional[str]) -> list[str]:
    """
    Duration bucket: ``short-duration`` (<= 2h), ``half-day`` (<= 4h),
    ``full-day`` (<= 8h or exactly one day) or ``multi-day``.
    """
    if not text:
        return []
    days = DURATION_DAYS_PATTERN.search(text)
    if days:
        return ["full-day"] if int(days.group(1)) == 1 else ["multi-day"]
    hours = duration_hours(text)
    if hours is None:
        return []
    if hours <= 2:
        return ["short-duration"]
    if hours <= 4:
        return ["half-day"]
    if hours <= 8:
        return ["full-day"]
    return ["multi-day"]


def activity_tags(title: str, highlights: Iterable[str] = (), duration: Optional[str] = None) -> list[str]:
    """Tags derived from duration and from keywords in the title and highlights."""
    tags = duration_tags(duration)
    text = " ".join([title, *highlights]).lower()
    for tag, keywords in ACTIVITY_KEYWORD_TAGS:
        if any(k in text for k in keywords):
            tags.append(tag)
    if "skip" in text and "line" in text:
        tags.append("skip-the-line")
    return _unique(tags)


def accommodation_tags(title: str, amenities: Iterable[str] = (), star_rating: Optional[int] = None) -> list[str]:
    """Star class, property type (from the title) and amenity buckets."""
    tags = [f"{star_rating}-star"] if star_rating else []
    title_lower = title.lower()
    tags.extend(t for t in PROPERTY_TYPES if t in title_lower)
    amenity_text = " ".join(amenities).lower()
    for tag, keywords in AMENITY_TAGS:
        if any(k in amenity_text for k in keywords):
            tags.append(tag)
    return _unique(tags)


def is_placeholder_image(src: str) -> bool:
    src_lower = src.lower()
    return any(marker in src_lower for marker in PLACEHOLDER_MARKERS)


def image_source(node: HtmlNode) -> Optional[str]:
    for attr in IMAGE_SOURCE_ATTRS:
        value = node.attr(attr)
        if value:
            return value
    srcset = node.attr("srcset")
    if srcset:
        return srcset.split(",")[0].strip().split(" ")[0] or None
    return None


def extract_images(
    node: HtmlNode,
    selector: Optional[str],
    base_url: str,
    limit: int = 5,
) -> list[str]:
    """Absolute image URLs under ``node``, placeholders dropped, capped at ``limit``."""
    if not selector or limit <= 0:
        return []
    images: list[str] = []
    for img in node.select(selector):
        src = image_source(img)
        if not src or is_placeholder_image(src):
            continue
        url = resolve_url(src, base_url)
        if url and url not in images:
            images.append(url)
        if len(images) >= limit:
            break
    return images


def normalize_title(title: str) -> str:
    """Dedup key: lower-case with all whitespace removed."""
    return re.sub(r"\s+", "", title.lower())


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))
