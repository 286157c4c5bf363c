"""
Pagination detection and page URL guessing for listing pages.

detect_pagination() reads what the page itself says about its pages.
When that is not enough, page URLs are guessed from an ordered list of
UrlPattern strategies through try_patterns(), shared by the single
"load page N" request and the discovery loop.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

from html_utils import make_absolute_url
from http_client import FetchError
from models import PaginationState
from title_utils import extract_genre_from_url

logger = logging.getLogger(__name__)

# --- Regex & Constants ---

NAV_SELECTORS = (
    ".pagination a",
    ".pager a",
    ".page-numbers a",
    "a.page-numbers",
    ".pagination-nav a",
    ".wp-pagenavi a",
    'a[rel="next"]',
    "a.next",
    ".next-page a",
    "nav a",
    ".pagination li a",
    ".pagination .next",
    ".pager .next",
    'a[class*="next"]',
    'a[class*="Next"]',
    ".page-nav a",
    ".paging a",
    ".nav-links a",
    ".navigation a",
    ".page-link",
    'a[href*="/page/"]',
    'a[href*="?page="]',
)
NUMBERED_SELECTOR = '.pagination a, .page-numbers a, a.page-numbers, .pager a, a[href*="page"]'
ACTIVE_SELECTOR = ".pagination .current, .page-numbers .current, span.page-numbers.current, .pager .active, .pagination .active"
COUNT_SELECTORS = (".total-count", ".movie-count", ".file-count", ".post-count", "#total-count", "[data-count]", "[data-total]")

PAGE_PATTERNS = {
    "current": re.compile(r"[/?&]page[/=]?(\d+)", re.IGNORECASE),
    "leading_int": re.compile(r"^\s*(\d+)"),
    "genre_page": re.compile(r"/(?:genre|category|tag)/[^/]+/?$", re.IGNORECASE),
    "genre_first": re.compile(r"/(?:genre|category)/[^/]+/?$", re.IGNORECASE),
    "genre_paged": re.compile(r"/(?:genre|category)/[^/]+/page/\d+", re.IGNORECASE),
    "movies_paged": re.compile(r"/movies/page/\d+", re.IGNORECASE),
    "path_paged": re.compile(r"/page/\d+", re.IGNORECASE),
    # Short trailing numbers only; /release/2025 is a year, not a page
    "path_end": re.compile(r"/\d{1,3}/?$"),
    "body_count": re.compile(r"(\d{1,6})\s*(?:movies?|files?|posts?|total|results?)", re.IGNORECASE),
    "digits": re.compile(r"(\d{1,6})"),
}
NEXT_TEXTS = ("»", "→")
ESTIMATED_ITEMS_PER_PAGE = 30


def _leading_int(text: str) -> Optional[int]:
    match = PAGE_PATTERNS["leading_int"].match(text or "")
    return int(match.group(1)) if match else None


def _usable_href(el: Tag) -> str:
    href = (el.get("href") or "").strip()
    if not href or href.startswith("#") or "javascript:" in href:
        return ""
    return href


def _is_next_affordance(el: Tag) -> bool:
    text = el.get_text().strip().lower()
    classes = " ".join(el.get("class") or []).lower()
    rel = el.get("rel") or []
    rel = rel if isinstance(rel, list) else [rel]
    return (
        "next" in text
        or ">" in text
        or text in NEXT_TEXTS
        or "next" in classes
        or "next" in (el.get("id") or "").lower()
        or "next" in rel
        or "next" in (el.get("aria-label") or "").lower()
    )


def _find_next_url(soup: BeautifulSoup, current_url: str) -> Optional[str]:
    for selector in NAV_SELECTORS:
        for el in soup.select(selector):
            href = _usable_href(el)
            if href and _is_next_affordance(el):
                return make_absolute_url(href, current_url)

    # A link to page 2 means there is a next page
    for el in soup.select(NUMBERED_SELECTOR):
        href = _usable_href(el)
        if href and _leading_int(el.get_text().strip()) == 2:
            return make_absolute_url(href, current_url)
    return None


def _current_page(soup: BeautifulSoup, current_url: str) -> int:
    match = PAGE_PATTERNS["current"].search(current_url)
    if match:
        return int(match.group(1))
    active = soup.select_one(ACTIVE_SELECTOR)
    if active is not None:
        return _leading_int(active.get_text().strip()) or 1
    return 1


def page_numbers(soup: BeautifulSoup) -> List[int]:
    numbers = []
    for el in soup.select(NUMBERED_SELECTOR):
        num = _leading_int(el.get_text().strip())
        if num is not None and 0 < num < 10000:
            numbers.append(num)
    return numbers


def page_pattern(url: str) -> str:
    query = parse_qs(urlparse(url).query)
    if any(key in query for key in ("page", "p", "paged")):
        return "query"
    if PAGE_PATTERNS["movies_paged"].search(url):
        return "movies-path"
    if PAGE_PATTERNS["genre_paged"].search(url) or PAGE_PATTERNS["genre_first"].search(url):
        return "genre-path"
    if PAGE_PATTERNS["path_paged"].search(url):
        return "path"
    if PAGE_PATTERNS["path_end"].search(urlparse(url).path):
        return "path-end"
    return "path"


def detect_pagination(soup: BeautifulSoup, current_url: str, genre: Optional[str] = None) -> PaginationState:
    """What the page says about its siblings: next URL, current and last page, URL pattern."""
    genre = genre or extract_genre_from_url(current_url)
    is_genre_page = bool(PAGE_PATTERNS["genre_page"].search(current_url)) or (
        bool(genre) and current_url.rstrip("/").lower().endswith("/" + genre)
    )

    next_url = _find_next_url(soup, current_url)
    current = _current_page(soup, current_url)
    numbers = page_numbers(soup)
    total_pages = max(numbers) if numbers else None
    pattern = page_pattern(current_url)

    has_next = next_url is not None
    if numbers and current < max(numbers):
        has_next = True

    # Genre archives almost always paginate; assume page 2 exists
    if is_genre_page and not has_next and current == 1:
        has_next = True
        next_url = next_url or current_url.rstrip("/") + "/page/2/"
        logger.debug(f"Genre page without pagination markup, assuming {next_url}")

    return PaginationState(
        has_next_page=has_next,
        next_page_url=next_url,
        current_page=current,
        total_pages=total_pages,
        page_pattern=pattern,
    )


def detect_explicit_count(soup: BeautifulSoup) -> Optional[int]:
    """A count the page states outright, in its text or a count element."""
    body = soup.body or soup
    match = PAGE_PATTERNS["body_count"].search(body.get_text(" "))
    if match and 0 < int(match.group(1)) < 1000000:
        return int(match.group(1))

    for selector in COUNT_SELECTORS:
        el = soup.select_one(selector)
        match = PAGE_PATTERNS["digits"].search(el.get_text().strip()) if el else None
        if match and 0 < int(match.group(1)) < 1000000:
            return int(match.group(1))
    return None


def detect_total_count(soup: BeautifulSoup) -> Optional[int]:
    """Rough catalog size for display only; never a loop bound."""
    explicit = detect_explicit_count(soup)
    if explicit:
        return explicit

    pages = [int(el.get_text().strip()) for el in soup.select(".pagination a, .page-numbers a, a.page-numbers, .pager a")
             if el.get_text().strip().isdigit()]
    if pages:
        return max(pages) * ESTIMATED_ITEMS_PER_PAGE
    return None


# --- Page URL strategies ---

@dataclass(frozen=True)
class UrlPattern:
    name: str
    build: Callable[[str, int], str]

    def url_for(self, base_url: str, page: int) -> str:
        return self.build(base_url, page)


def strip_page_suffix(url: str) -> str:
    """Listing URL with query, page segment and trailing slash removed."""
    base = url.split("?")[0]
    base = re.sub(r"/movies/page/\d+/?$", "/movies", base, flags=re.IGNORECASE)
    base = re.sub(r"/page[/-]?\d+/?$", "", base, flags=re.IGNORECASE)
    base = re.sub(r"/\d{1,3}/?$", "", base)
    return base.rstrip("/")


def _with_query(url: str, key: str, page: int) -> str:
    parts = urlparse(url)
    query = parse_qs(parts.query)
    query[key] = [str(page)]
    return urlunparse(parts._replace(query=urlencode(query, doseq=True)))


def _movies_path(url: str, page: int) -> str:
    base = strip_page_suffix(url)
    if base.lower().endswith("/movies"):
        base = base[: -len("/movies")]
    return f"{base}/movies/page/{page}/"


PATTERNS = {
    "query": UrlPattern("query", lambda url, n: _with_query(url, "page", n)),
    "movies-path": UrlPattern("movies-path", _movies_path),
    "genre-path": UrlPattern("genre-path", lambda url, n: f"{strip_page_suffix(url)}/page/{n}/"),
    "path": UrlPattern("path", lambda url, n: f"{strip_page_suffix(url)}/page/{n}/"),
    "path-end": UrlPattern("path-end", lambda url, n: f"{strip_page_suffix(url)}/{n}"),
}

FALLBACK_PATTERNS = [
    UrlPattern("path-slash", lambda url, n: f"{strip_page_suffix(url)}/page/{n}/"),
    UrlPattern("path-bare", lambda url, n: f"{strip_page_suffix(url)}/page/{n}"),
    UrlPattern("page-dash", lambda url, n: f"{strip_page_suffix(url)}/page-{n}"),
    UrlPattern("page-glued", lambda url, n: f"{strip_page_suffix(url)}/page{n}"),
    UrlPattern("number-slash", lambda url, n: f"{strip_page_suffix(url)}/{n}/"),
    UrlPattern("number", lambda url, n: f"{strip_page_suffix(url)}/{n}"),
    UrlPattern("p-glued", lambda url, n: f"{strip_page_suffix(url)}/p{n}"),
    UrlPattern("p-path", lambda url, n: f"{strip_page_suffix(url)}/p/{n}/"),
    UrlPattern("query-page", lambda url, n: f"{strip_page_suffix(url)}?page={n}"),
    UrlPattern("query-p", lambda url, n: f"{strip_page_suffix(url)}?p={n}"),
    UrlPattern("query-paged", lambda url, n: f"{strip_page_suffix(url)}?paged={n}"),
    UrlPattern("wp-paged", lambda url, n: f"{strip_page_suffix(url)}/?paged={n}"),
]

# Tried by the discovery loop after a page fails to load
ALT_PATTERNS = [
    UrlPattern("alt-query", lambda url, n: f"{url.rstrip('/')}?page={n}"),
    UrlPattern("alt-glued", lambda url, n: f"{url.rstrip('/')}/page{n}"),
    UrlPattern("alt-number", lambda url, n: f"{url.rstrip('/')}/{n}"),
]


def primary_pattern(base_url: str, pattern: Optional[str]) -> UrlPattern:
    if pattern == "query" or pattern == "movies-path":
        return PATTERNS[pattern]
    if pattern == "genre-path" or any(p in base_url for p in ("/genre/", "/category/", "/tag/")):
        return PATTERNS["genre-path"]
    if pattern in PATTERNS:
        return PATTERNS[pattern]
    if "/movies/" in base_url:
        return PATTERNS["movies-path"]
    return PATTERNS["path"]


def page_url_strategies(base_url: str, pattern: Optional[str] = None) -> List[UrlPattern]:
    """Primary pattern first, then every fallback that builds a different URL."""
    strategies = [primary_pattern(base_url, pattern)]
    seen = {strategies[0].url_for(base_url, 2)}
    for fallback in FALLBACK_PATTERNS:
        url = fallback.url_for(base_url, 2)
        if url not in seen:
            seen.add(url)
            strategies.append(fallback)
    return strategies


def try_patterns(base_url: str, page: int, strategies: List[UrlPattern],
                 fetch: Callable[[str], Any]) -> Optional[Tuple[str, Any]]:
    """
    First (url, loaded) whose fetch returns something truthy.

    A FetchError from one candidate just moves on to the next one.
    """
    tried = set()
    for strategy in strategies:
        url = strategy.url_for(base_url, page)
        if url in tried:
            continue
        tried.add(url)
        try:
            loaded = fetch(url)
        except FetchError as e:
            logger.debug(f"Page {page} not at {url}: {e}")
            continue
        if loaded:
            return url, loaded
    return None
