"""Small DOM helpers shared by the extractors."""

import re
from typing import Callable, Iterable, Optional, TypeVar
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from page_filter import host_of, is_source_site_url

T = TypeVar("T")

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
IMAGE_SRC_ATTRS = ("src", "data-src", "data-lazy-src", "data-original")
LEADING_INT = re.compile(r"^\s*(\d+)")

Strategy = Callable[[BeautifulSoup, str], Optional[T]]


def first_match(strategies: Iterable[Strategy], soup: BeautifulSoup, base_url: str) -> Optional[T]:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        value = strategy(soup, base_url)
        if value:
            return value
    return None


def clean_href(href: str, own_host: str) -> str:
    """Trimmed href; glued "own-site external" hrefs resolve to the external URL."""
    clean = (href or "").strip()
    if " http" in clean:
        urls = [u for u in clean.split() if u.startswith("http")]
        if len(urls) > 1:
            external = [u for u in urls if not is_source_site_url(u, own_host)]
            clean = external[0] if external else urls[-1]
        elif urls:
            clean = urls[0]
    if " " in clean:
        match = re.search(r"(https?://\S+)", clean)
        if match:
            clean = match.group(1)
    return clean


def make_absolute_url(url: str, base_url: str) -> str:
    """Resolve an href against the page, picking the external URL out of glued hrefs."""
    clean = clean_href(url, host_of(base_url))
    if clean.startswith("//"):
        return "https:" + clean
    if clean.startswith("http"):
        return clean
    return urljoin(base_url, clean)


def is_image_url(url: str) -> bool:
    lowered = (url or "").lower()
    return any(ext in lowered for ext in IMAGE_EXTENSIONS)


def img_src(img: Tag, attrs=IMAGE_SRC_ATTRS) -> str:
    """First usable source attribute; inline data: placeholders are skipped."""
    for attr in attrs:
        value = img.get(attr)
        if value and not value.startswith("data:"):
            return value.strip()
    return ""


def int_attr(el: Tag, name: str) -> int:
    match = LEADING_INT.match(el.get(name) or "")
    return int(match.group(1)) if match else 0


def element_text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return re.sub(r"\s+", " ", el.get_text(" ")).strip()


def meta_content(soup: BeautifulSoup, key: str) -> str:
    """Content of <meta property=key> or <meta name=key>."""
    tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
    return (tag.get("content") or "").strip() if tag else ""
