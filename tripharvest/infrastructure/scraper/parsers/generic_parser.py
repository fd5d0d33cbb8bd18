"""
Fallback extractor for tour-operator sites without per-field selectors.

Tries several strategies in order and keeps the first one that yields
candidates:

1. Embedded JSON-LD (``Product``, ``TouristTrip``, ``Event``,
   ``TouristAttraction``, ``ItemList``).
2. Known container-class patterns (``.tour-card``, ``[class*="package"]``...).
3. Anchor links whose path looks like a tour (``/tour``, ``/trip``...).
4. Direct children of grid/list containers with enough text.
5. The main-content heading, as a single record.

Candidates are deduplicated by normalized title, keeping the one that
carries a price. The heuristics are tuned for typical tour-operator
markup; swap in a different ``GenericHeuristics`` per deployment when
they do not fit.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import unquote, urlparse

from tripharvest.domain.entities.content import Activity
from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument, HtmlNode
from tripharvest.infrastructure.scraper.parsers.fields import (
    activity_tags,
    clean_text,
    image_source,
    normalize_rating,
    normalize_title,
    parse_amount,
    parse_number,
    parse_price,
)
from tripharvest.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class GenericHeuristics:
    """Selectors and patterns used by ``GenericTourExtractor``."""

    json_ld_types: tuple[str, ...] = ("Product", "TouristTrip", "Event", "TouristAttraction")
    main_content_selector: str = 'main, #main, .main-content, [role="main"]'
    container_selectors: tuple[str, ...] = (
        ".tour-item", ".tour-card", ".product-card", ".package-item",
        '[class*="tour"]', '[class*="package"]', '[class*="product"]',
        '[class*="trip"]', '[class*="itinerary"]',
        "article", ".card", ".item", ".listing-item",
        ".grid-item",
    )
    title_selectors: tuple[str, ...] = (
        "h1", "h2", "h3", "h4", "h5",
        ".title", ".tour-title", ".product-title", ".package-title",
        '[class*="title"]', '[class*="heading"]', '[class*="name"]',
        "a > span", "a[href]",
    )
    description_selectors: tuple[str, ...] = (
        ".description", ".desc", ".summary", ".excerpt",
        '[class*="desc"]', '[class*="summary"]', '[class*="excerpt"]',
        "p",
    )
    price_selectors: tuple[str, ...] = (
        ".price", ".cost", ".rate", ".fare",
        '[class*="price"]', '[class*="cost"]', "[data-price]",
    )
    duration_selectors: tuple[str, ...] = (
        ".duration", ".days", ".nights", ".length",
        '[class*="duration"]', '[class*="days"]', '[class*="length"]',
    )
    location_selectors: tuple[str, ...] = (
        ".location", ".destination", ".place", ".region",
        '[class*="location"]', '[class*="destination"]', '[class*="region"]',
        '[class*="country"]', '[class*="city"]',
    )
    link_path_segments: tuple[str, ...] = (
        "/tour", "/package", "/trip", "/itinerary", "/destination", "/travel",
    )
    grid_selectors: tuple[str, ...] = (
        ".grid", ".row", ".products", ".tours", ".packages",
        '[class*="grid"]', '[class*="list"]', '[class*="items"]',
    )
    invalid_image_markers: tuple[str, ...] = (
        "placeholder", "icon", "logo", "banner", "sprite", "pixel",
        "tracking", "1x1", "blank", "loading", "avatar", "profile", ".svg",
    )
    duration_pattern: re.Pattern = field(
        default=re.compile(
            r"(\d+)\s*(days?|nights?|hours?|weeks?)(?:\s*/\s*\d+\s*nights?)?",
            re.IGNORECASE,
        )
    )
    location_patterns: tuple[re.Pattern, ...] = (
        re.compile(r"(?:in|to|from)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
        re.compile(r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+(?:tour|trip|package|adventure)"),
    )
    min_title_length: int = 4
    min_description_length: int = 20
    min_grid_item_text: int = 20
    max_images: int = 5


@dataclass
class _Candidate:
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    duration: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    rating: Optional[float] = None
    images: list[str] = field(default_factory=list)
    detail_url: Optional[str] = None
    strategy: str = ""


class GenericTourExtractor:
    """
    Heuristic ``Activity`` extractor used for hosts without a dedicated site.

    Example:
        >>> extractor = GenericTourExtractor()
        >>> activities = extractor.extract(HtmlDocument.parse(html, url))
    """

    def __init__(
        self,
        heuristics: Optional[GenericHeuristics] = None,
        rating_scale: Optional[float] = None,
        source: Optional[str] = None,
        base_url: str = "",
    ):
        self.heuristics = heuristics or GenericHeuristics()
        self.base_url = base_url
        self.rating_scale = rating_scale
        self.source = source

    def extract(self, document: HtmlDocument) -> list[Activity]:
        strategies = (
            ("structured-data", self._from_structured_data),
            ("containers", self._from_containers),
            ("links", self._from_links),
            ("grid", self._from_grid),
            ("main-content", self._from_main_content),
        )
        candidates: list[_Candidate] = []
        for name, strategy in strategies:
            try:
                candidates = strategy(document)
            except Exception as e:
                logger.warning(f"Generic strategy '{name}' failed: {e}")
                candidates = []
            if candidates:
                logger.info(f"Found {len(candidates)} candidate(s) using {name} strategy")
                break

        activities = []
        for index, candidate in enumerate(deduplicate(candidates)):
            try:
                activities.append(self._to_activity(candidate, document, index))
            except Exception as e:
                logger.error(f"Error building activity #{index} ({candidate.title!r}): {e}")
        return activities

    # ------------------------------------------------------------------
    # Strategy (a): structured data
    # ------------------------------------------------------------------

    def _from_structured_data(self, document: HtmlDocument) -> list[_Candidate]:
        candidates = []
        for obj in document.json_ld():
            for entry in self._json_ld_entries(obj):
                candidate = self._candidate_from_json_ld(entry, document)
                if candidate:
                    candidates.append(candidate)
        return candidates

    def _from_main_content(self, document: HtmlDocument) -> list[_Candidate]:
        main = document.first(self.heuristics.main_content_selector)
        if main is not None:
            title = main.text("h1")
            if title:
                description = main.text("p")
                return [
                    _Candidate(
                        title=title,
                        description=description,
                        location=self._location_from_text(f"{title} {description or ''}"),
                        images=self._images(main, document),
                        strategy="main-content",
                    )
                ]
        return []

    def _json_ld_entries(self, obj: dict[str, Any]) -> Iterable[dict[str, Any]]:
        types = _json_ld_types(obj)
        if "ItemList" in types:
            for element in obj.get("itemListElement") or []:
                if isinstance(element, dict):
                    item = element.get("item")
                    yield item if isinstance(item, dict) else element
        elif types & set(self.heuristics.json_ld_types):
            yield obj

    def _candidate_from_json_ld(self, data: dict[str, Any], document: HtmlDocument) -> Optional[_Candidate]:
        title = clean_text(_as_text(data.get("name")))
        if not title:
            return None

        offers = data.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        price = currency = None
        if isinstance(offers, dict):
            price = parse_amount(str(offers.get("price") or offers.get("lowPrice") or "")) or None
            currency = offers.get("priceCurrency")

        rating = None
        aggregate = data.get("aggregateRating")
        if isinstance(aggregate, dict):
            best = parse_number(str(aggregate.get("bestRating") or "")) or self.rating_scale
            rating = normalize_rating(parse_number(str(aggregate.get("ratingValue") or "")), best)

        location = data.get("location") or data.get("address")
        if isinstance(location, dict):
            location = location.get("name") or location.get("addressLocality")

        images = []
        for image in _as_list(data.get("image")):
            src = image.get("url") if isinstance(image, dict) else image
            if isinstance(src, str) and self._valid_image(src):
                resolved = document.resolve(src)
                if resolved and resolved not in images:
                    images.append(resolved)

        return _Candidate(
            title=title,
            description=clean_text(_as_text(data.get("description"))),
            location=clean_text(_as_text(location)),
            duration=_as_text(data.get("duration")),
            price=price,
            currency=currency,
            rating=rating,
            images=images[: self.heuristics.max_images],
            detail_url=document.resolve(_as_text(data.get("url"))),
            strategy="json-ld",
        )

    # ------------------------------------------------------------------
    # Strategy (b): container patterns
    # ------------------------------------------------------------------

    def _from_containers(self, document: HtmlDocument) -> list[_Candidate]:
        for selector in self.heuristics.container_selectors:
            elements = document.select(selector)
            if not elements:
                continue
            candidates = [c for c in (self._candidate_from_element(e, document) for e in elements) if c]
            if candidates:
                logger.debug(f"Container selector matched: {selector}")
                return candidates
        return []

    def _candidate_from_element(self, element: HtmlNode, document: HtmlDocument) -> Optional[_Candidate]:
        h = self.heuristics
        title = None
        for selector in h.title_selectors:
            text = element.text(selector)
            if text and len(text) >= h.min_title_length and not text.isdigit():
                title = text
                break

        href = element.attr("href") if element.name == "a" else element.attr("href", "a[href]")
        if not title and href:
            title = title_from_url(href)
        if not title:
            return None

        description = None
        for selector in h.description_selectors:
            text = element.text(selector)
            if text and len(text) > h.min_description_length and text != title:
                description = text
                break

        price = currency = None
        for selector in h.price_selectors:
            node = element.first(selector)
            if node is None:
                continue
            price, currency = parse_price(node.text() or node.attr("data-price"))
            if price is not None:
                break
        full_text = element.text() or ""
        if price is None:
            price, currency = parse_price(full_text)

        duration = None
        for selector in h.duration_selectors:
            match = h.duration_pattern.search(element.text(selector) or "")
            if match:
                duration = match.group(0)
                break
        if duration is None:
            match = h.duration_pattern.search(full_text)
            duration = match.group(0) if match else None

        location = None
        for selector in h.location_selectors:
            text = element.text(selector)
            if text and len(text) > 2:
                location = text
                break
        if location is None:
            location = self._location_from_text(f"{title} {description or ''}")

        return _Candidate(
            title=title,
            description=description,
            location=location,
            duration=duration,
            price=price,
            currency=currency,
            images=self._images(element, document),
            detail_url=document.resolve(href),
            strategy="container",
        )

    # ------------------------------------------------------------------
    # Strategy (c): anchor links
    # ------------------------------------------------------------------

    def _from_links(self, document: HtmlDocument) -> list[_Candidate]:
        selector = ", ".join(f'a[href*="{segment}"]' for segment in self.heuristics.link_path_segments)
        candidates = []
        seen_hrefs: set[str] = set()
        for link in document.select(selector):
            href = link.attr("href")
            if not href or href in seen_hrefs:
                continue
            seen_hrefs.add(href)

            container = link.parent() or link
            title = link.text() or container.text("h1, h2, h3, h4") or title_from_url(href)
            if not title or len(title) < 3:
                continue

            container_text = container.text() or ""
            price, currency = parse_price(container_text)
            match = self.heuristics.duration_pattern.search(container_text)
            candidates.append(
                _Candidate(
                    title=title,
                    location=self._location_from_text(container_text),
                    duration=match.group(0) if match else None,
                    price=price,
                    currency=currency,
                    images=self._images(container, document),
                    detail_url=document.resolve(href),
                    strategy="link",
                )
            )
        return candidates

    # ------------------------------------------------------------------
    # Strategy (d): grids and lists
    # ------------------------------------------------------------------

    def _from_grid(self, document: HtmlDocument) -> list[_Candidate]:
        for selector in self.heuristics.grid_selectors:
            grid = document.first(selector)
            if grid is None:
                continue
            items = [
                child for child in grid.children()
                if len(child.text() or "") > self.heuristics.min_grid_item_text
            ]
            candidates = [c for c in (self._candidate_from_element(i, document) for i in items) if c]
            if candidates:
                return candidates
        return []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _images(self, element: HtmlNode, document: HtmlDocument) -> list[str]:
        images: list[str] = []
        for img in element.select("img"):
            src = image_source(img)
            if src and self._valid_image(src):
                resolved = document.resolve(src)
                if resolved and resolved not in images:
                    images.append(resolved)
        for styled in element.select('[style*="background-image"]'):
            match = re.search(r"url\(['\"]?([^'\")]+)['\"]?\)", styled.attr("style") or "")
            if match and self._valid_image(match.group(1)):
                resolved = document.resolve(match.group(1))
                if resolved and resolved not in images:
                    images.append(resolved)
        return images[: self.heuristics.max_images]

    def _valid_image(self, src: str) -> bool:
        src_lower = src.lower()
        return not any(marker in src_lower for marker in self.heuristics.invalid_image_markers)

    def _location_from_text(self, text: str) -> Optional[str]:
        for pattern in self.heuristics.location_patterns:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None

    def _to_activity(self, candidate: _Candidate, document: HtmlDocument, index: int) -> Activity:
        return Activity(
            url=document.url or self.base_url,
            detail_url=candidate.detail_url,
            title=candidate.title,
            description=candidate.description,
            price=candidate.price,
            currency=candidate.currency,
            rating=candidate.rating,
            images=candidate.images,
            location=candidate.location,
            duration=candidate.duration,
            category="tour",
            tags=activity_tags(candidate.title, (), candidate.duration),
            metadata={
                "source": self.source or _host(document.url),
                "strategy": candidate.strategy,
                "extraction_index": index,
            },
        )


def deduplicate(candidates: Iterable[Any]) -> list[Any]:
    """
    Drop candidates whose normalized title was already seen.

    When two share a title, the one carrying a price wins; otherwise the
    first one is kept. Works on anything with ``title`` and ``price``.
    """
    kept: dict[str, Any] = {}
    for candidate in candidates:
        key = normalize_title(candidate.title)
        existing = kept.get(key)
        if existing is None or (existing.price is None and candidate.price is not None):
            kept[key] = candidate
    return list(kept.values())


def title_from_url(href: str) -> Optional[str]:
    """Title-case the last path segment of a link: ``/tours/old-town-walk`` -> ``Old Town Walk``."""
    path = urlparse(href).path.rstrip("/")
    slug = path.rsplit("/", 1)[-1] if path else ""
    slug = re.sub(r"\.html?$", "", unquote(slug), flags=re.IGNORECASE)
    words = re.sub(r"[-_]+", " ", slug).strip()
    if not words or words.isdigit():
        return None
    return " ".join(w.capitalize() for w in words.split())


def _json_ld_types(obj: dict[str, Any]) -> set[str]:
    return {t for t in _as_list(obj.get("@type")) if isinstance(t, str)}


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0] if value else None
    return str(value) if value is not None else None


def _host(url: str) -> Optional[str]:
    return urlparse(url).hostname if url else None
