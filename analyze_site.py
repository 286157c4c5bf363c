"""
Site analysis ahead of a bulk import.

analyze_site() reads one listing page and reports how many movies it
shows, how many pages the listing seems to have, a rough lifetime size
and the category and year archives an import can start from.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from config import DISCOVER_TIMEOUT
from discover_movies import ListingPage, discover_years, read_listing, scan_listing
from html_utils import make_absolute_url, meta_content
from http_client import FetchError, fetch_html
from models import CategoryLink, SiteAnalysis
from pagination import detect_explicit_count

logger = logging.getLogger(__name__)

CATEGORY_SELECTORS = (
    'a[href*="/category/"]', 'a[href*="/genre/"]', 'a[href*="/tag/"]',
    ".category-list a", ".genre-list a", ".categories a", ".genres a",
    'nav a[href*="category"]', '.sidebar a[href*="category"]',
    'nav a[href*="genre"]', '.sidebar a[href*="genre"]',
    '.menu a[href*="genre"]', '.menu a[href*="category"]',
    'header a[href*="genre"]', 'header a[href*="category"]',
    # Sections most movie sites carry
    'a[href*="bollywood"]', 'a[href*="hollywood"]', 'a[href*="south"]',
    'a[href*="dual-audio"]', 'a[href*="web-series"]', 'a[href*="netflix"]',
    'a[href*="hindi"]', 'a[href*="english"]', 'a[href*="tamil"]', 'a[href*="telugu"]',
)
NAV_NAMES = ("home", "about", "contact", "dmca", "login", "register")
GENERIC_NAMES = ("»", "view more")
LINK_COUNT = re.compile(r"\((\d+)\)")
YEAR_ONLY = re.compile(r"^\d{4}$")
PAGE_OF_TOTAL = re.compile(r"page\s*\d+\s*(?:of|/)\s*(\d+)", re.IGNORECASE)

MAX_CATEGORIES = 20
MAX_YEARS = 15
CATEGORIES_TO_SCAN = 3
ITEMS_PER_PAGE_CAP = 30
DEFAULT_ITEMS_PER_PAGE = 20


def _name_from_path(url: str) -> str:
    parts = [p for p in urlparse(url).path.split("/") if len(p) > 2]
    return parts[-1].replace("-", " ").title() if parts else ""


def find_categories(soup: BeautifulSoup, base_url: str) -> List[CategoryLink]:
    """Category, genre and section links, first occurrence of each name."""
    categories: List[CategoryLink] = []
    seen = set()
    for selector in CATEGORY_SELECTORS:
        for a in soup.select(selector):
            href = (a.get("href") or "").strip()
            name = a.get_text(" ").strip()
            if not href or not name or YEAR_ONLY.match(name) or name.lower() in NAV_NAMES:
                continue
            url = make_absolute_url(href, base_url)
            if len(name) < 3 or name.lower() in GENERIC_NAMES:
                name = _name_from_path(url) or name

            count = LINK_COUNT.search(name)
            clean = LINK_COUNT.sub("", name).replace("»", "").strip()
            if 1 < len(clean) < 50 and clean.lower() not in seen:
                seen.add(clean.lower())
                categories.append(CategoryLink(clean, url, int(count.group(1)) if count else None))
    return categories


def page_count(soup: BeautifulSoup, listing: ListingPage) -> Tuple[bool, Optional[int]]:
    """(has_pages, total_pages), preferring an explicit "Page 1 of N"."""
    total = listing.pagination.total_pages
    match = PAGE_OF_TOTAL.search((soup.body or soup).get_text(" "))
    if match and 0 < int(match.group(1)) < 100000:
        total = int(match.group(1))
    return listing.pagination.has_next_page or bool(total), total


def items_per_page(movies_on_page: int) -> int:
    return min(movies_on_page, ITEMS_PER_PAGE_CAP) if movies_on_page else DEFAULT_ITEMS_PER_PAGE


def _category_estimate(categories: List[CategoryLink], session: Optional[requests.Session]) -> int:
    best = 0
    for category in categories:
        try:
            listing = scan_listing(category.url, session=session)
        except FetchError as e:
            logger.warning(f"Category {category.name} failed: {e}")
            continue
        pages = listing.pagination.total_pages
        if pages and pages > 1:
            total = pages * items_per_page(len(listing.candidates))
            logger.info(f"Category {category.name}: {pages} pages, ~{total} movies")
            best = max(best, total)
    return best


def estimate_total(soup: BeautifulSoup, listing: ListingPage, has_pages: bool, total_pages: Optional[int],
                   categories: List[CategoryLink],
                   session: Optional[requests.Session] = None) -> Tuple[int, str]:
    """(estimate, method). Display only, discovery never stops on it."""
    movies = len(listing.candidates)
    explicit = detect_explicit_count(soup)
    if explicit:
        return explicit, "explicit_count"
    if total_pages and total_pages > 1:
        return total_pages * items_per_page(movies), "pagination_calc"
    # A homepage without pages: the biggest of the first few categories
    if categories and not has_pages:
        best = _category_estimate(categories[:CATEGORIES_TO_SCAN], session)
        if best:
            return best, "category_scan"
    return movies, "current_page_only"


def _website_logo(soup: BeautifulSoup) -> str:
    icon = soup.select_one('link[rel~="icon"]')
    if icon is not None and icon.get("href"):
        return icon["href"]
    return meta_content(soup, "og:image")


def analyze_site(url: str, session: Optional[requests.Session] = None,
                 timeout: float = DISCOVER_TIMEOUT) -> SiteAnalysis:
    """Raises FetchError when the page itself cannot be loaded."""
    soup = fetch_html(url, session=session, timeout=timeout)
    parsed = urlparse(url)
    base_url = f"{parsed.scheme}://{parsed.netloc}"

    listing = read_listing(soup, url)
    categories = find_categories(soup, base_url)
    has_pages, total_pages = page_count(soup, listing)
    total, method = estimate_total(soup, listing, has_pages, total_pages, categories, session)
    logo = _website_logo(soup)
    logger.info(f"Analyzed {url}: {len(listing.candidates)} movies, ~{total} total ({method})")

    return SiteAnalysis(
        website_title=listing.page_title or parsed.hostname or "",
        website_logo=make_absolute_url(logo, base_url) if logo else None,
        base_url=base_url,
        analyzed_url=url,
        movies_on_page=len(listing.candidates),
        total_estimate=total,
        estimate_method=method,
        has_pages=has_pages,
        total_pages=total_pages,
        categories=categories[:MAX_CATEGORIES],
        years=discover_years(soup, base_url)[:MAX_YEARS],
    )
