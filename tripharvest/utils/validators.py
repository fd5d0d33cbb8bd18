"""
Input validation utilities.
"""

from typing import Optional
from urllib.parse import urljoin, urlparse

from tripharvest.utils.exceptions import InvalidURLError


def validate_url(url: str) -> bool:
    """
    Validate that a string is a navigable http(s) URL.

    Args:
        url: URL string to validate.

    Returns:
        True if valid URL, False otherwise.
    """
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        result = urlparse(url.strip())
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def ensure_valid_url(url: str) -> str:
    """
    Return the stripped URL, or raise if it cannot be navigated to.

    Raises:
        InvalidURLError: If the URL has no http(s) scheme or no host.
    """
    if not validate_url(url):
        raise InvalidURLError(f"Invalid URL: {url!r}", url=str(url))
    return url.strip()


def hostname_of(url: str) -> str:
    """Lower-cased hostname of a URL, or an empty string."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def resolve_url(href: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve a possibly relative link against a base URL.

    Protocol-relative links ("//cdn...") get an https scheme.
    """
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("javascript:", "mailto:", "tel:", "#")):
        return None
    if href.startswith("//"):
        return f"https:{href}"
    if href.startswith(("http://", "https://")):
        return href
    if not base_url:
        return href
    return urljoin(base_url, href)
