"""
Movie discovery on listing pages.

A listing page (home, year, genre or category archive) is scanned for
links to single movie pages. discover() walks the listing's pages until a
target count is reached or the site runs out of new movies.
"""

import datetime
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests
from bs4 import BeautifulSoup, Tag

from config import DISCOVER_TIMEOUT, MAX_CONSECUTIVE_EMPTY, MAX_MOVIES_PER_PAGE, MAX_PAGES, PAGE_DELAY
from html_utils import img_src, make_absolute_url
from http_client import FetchError, fetch_html
from models import DiscoveredCandidate, DiscoveryResult, PaginationState, YearLink
from page_filter import is_content_page, is_same_host
from pagination import ALT_PATTERNS, detect_pagination, detect_total_count, primary_pattern, try_patterns
from title_utils import (
    clean_movie_title,
    clean_text,
    extract_genre_from_url,
    extract_year_from_url,
    find_year,
    is_year_title,
)

logger = logging.getLogger(__name__)

# --- Selectors ---

MOVIE_SELECTORS = (
    # Movie containers
    ".movie-item a", ".post-item a", ".film-item a", ".movie a", ".film a",
    "article.post a", ".entry a", ".content-item a", ".video-item a", ".item a",
    ".movies-list a", ".movie-list a", ".post-list a", ".film-list a", ".entry-list a",
    # Title links
    "h2 a", "h3 a", "h4 a", ".title a", ".post-title a", ".entry-title a",
    ".movie-title a", ".film-title a",
    # URL shapes
    'a[href*="/movie/"]', 'a[href*="/download/"]', 'a[href*="/film/"]',
    'a[href*="/release/"]', 'a[href*="/watch/"]', 'a[href*="-download"]',
    'a[href*="-full-movie"]', 'a[href*="-movie"]',
    # Grids and WordPress loops
    ".grid-item a", ".list-item a", ".card a", ".box a",
    "article a", ".post a", ".type-post a",
    "main a", ".content a", ".main-content a", "#content a",
    # Tailwind image cards
    "a.cursor-pointer", "a.group", "a.block",
    'a[class*="cursor-pointer"]', 'a[class*="overflow-hidden"]',
    'a[href*="-hdrip"]', 'a[href*="-webrip"]', 'a[href*="-web-series"]',
    'a[href*="-season-"]', 'a[href*="dual-audio"]',
    ".home-categories a", ".trending a", ".latest a",
)
# Recent release years show up in slugs
RECENT_YEAR_SPAN = 3

YEAR_SELECTORS = (
    'a[href*="/year/"]',
    'a[href*="/release-year/"]',
    'a[href*="/movies/year/"]',
    'a[href*="year="]',
    ".year-filter a",
    ".years a",
    ".release-year a",
    'select[name*="year"] option',
    ".filter-year a",
    'a[href*="/20"]',
    'a[href*="/19"]',
)
MAX_YEAR_LINKS = 20
GENERATED_YEARS = 11

YEAR_RELEASE_PAGE = re.compile(r"/release/\d{4}|/year/\d{4}|/movies/\d{4}", re.IGNORECASE)
YEAR_COUNT = re.compile(r"\((\d+)\)")
SKIP_HREF_PREFIXES = ("#", "javascript:", "mailto:")


def _movie_selectors() -> List[str]:
    this_year = datetime.date.today().year
    recent = [f'a[href*="-{y}"]' for y in range(this_year - RECENT_YEAR_SPAN + 1, this_year + 2)]
    return list(MOVIE_SELECTORS) + recent


# --- Candidate extraction ---

def anchor_title(a: Tag) -> str:
    """title attr, alt, child img alt, .title child, then link text."""
    img = a.find("img")
    title_el = a.select_one(".title")
    return clean_text(
        a.get("title")
        or a.get("alt")
        or (img.get("alt") if img else "")
        or (title_el.get_text(" ") if title_el else "")
        or a.get_text(" ")
    )


def _poster_for(a: Tag, page_url: str) -> Optional[str]:
    img = a.find("img")
    if img is None and a.parent is not None:
        img = a.parent.find("img")
    src = img_src(img) if img is not None else ""
    return make_absolute_url(src, page_url) if src else None


def candidate_from_anchor(a: Tag, page_url: str) -> Optional[DiscoveredCandidate]:
    href = (a.get("href") or "").strip()
    if not href or href.startswith(SKIP_HREF_PREFIXES):
        return None
    url = make_absolute_url(href, page_url)
    if not is_same_host(url, page_url):
        return None

    raw_title = anchor_title(a)
    if not is_content_page(url, raw_title):
        return None
    title = clean_movie_title(raw_title)
    if len(title) < 3 or is_year_title(title):
        return None

    return DiscoveredCandidate(
        title=title,
        url=url,
        year=find_year(f"{url} {title}"),
        poster_url=_poster_for(a, page_url),
    )


def _collect(anchors, page_url: str, movies: List[DiscoveredCandidate], seen: set):
    for a in anchors:
        if len(movies) >= MAX_MOVIES_PER_PAGE:
            return
        candidate = candidate_from_anchor(a, page_url)
        # An image-only card may be rejected while its title link is accepted
        if candidate is None or candidate.url in seen:
            continue
        seen.add(candidate.url)
        movies.append(candidate)


def discover_movies_on_page(soup: BeautifulSoup, page_url: str) -> List[DiscoveredCandidate]:
    """Movie links on one listing page, at most MAX_MOVIES_PER_PAGE."""
    movies: List[DiscoveredCandidate] = []
    seen = set()
    for selector in _movie_selectors():
        _collect(soup.select(selector), page_url, movies, seen)
        if len(movies) >= MAX_MOVIES_PER_PAGE:
            break

    if not movies:
        logger.debug(f"No movies via selectors on {page_url}, scanning every link")
        _collect(soup.find_all("a"), page_url, movies, seen)

    logger.info(f"Discovered {len(movies)} movies from {page_url}")
    return movies


# --- Years ---

def discover_years(soup: BeautifulSoup, base_url: str) -> List[YearLink]:
    years: List[YearLink] = []
    seen = set()
    for selector in YEAR_SELECTORS:
        for el in soup.select(selector):
            href = el.get("href") or el.get("value") or ""
            text = el.get_text().strip()
            year = find_year(f"{href} {text}")
            if not year or year in seen:
                continue
            seen.add(year)
            count = YEAR_COUNT.search(text)
            url = make_absolute_url(href, base_url) if href else f"{base_url.rstrip('/')}/year/{year}"
            years.append(YearLink(year=year, count=int(count.group(1)) if count else 0, url=url))

    years.sort(key=lambda y: int(y.year), reverse=True)
    return years[:MAX_YEAR_LINKS]


def generate_year_links(base_url: str, current_year: Optional[int] = None) -> List[YearLink]:
    """Guessed /year/YYYY links for the last eleven years, newest first."""
    current_year = current_year or datetime.date.today().year
    base = base_url.rstrip("/")
    return [YearLink(year=str(y), count=0, url=f"{base}/year/{y}")
            for y in range(current_year, current_year - GENERATED_YEARS, -1)]


def _matches_year(candidate: DiscoveredCandidate, year: int) -> bool:
    if extract_year_from_url(candidate.url) == year:
        return True
    if candidate.year and candidate.year.isdigit() and int(candidate.year) == year:
        return True
    patterns = (rf"\({year}\)", rf"\[{year}\]", rf"-{year}[-/]")
    return any(re.search(p, candidate.title) or re.search(p, candidate.url) for p in patterns)


def filter_by_year(candidates: List[DiscoveredCandidate], year: Optional[int],
                   page_url: str) -> List[DiscoveredCandidate]:
    """Keep candidates from `year`, unless the listing itself is a year archive."""
    if not year or YEAR_RELEASE_PAGE.search(page_url):
        return candidates
    kept = [c for c in candidates if _matches_year(c, year)]
    if len(kept) < len(candidates):
        logger.info(f"Year filter {year}: {len(candidates)} -> {len(kept)} movies")
    return kept


# --- Listing pages ---

@dataclass
class ListingPage:
    url: str
    candidates: List[DiscoveredCandidate]
    pagination: PaginationState
    total_count: Optional[int] = None
    year_filter: Optional[int] = None
    genre_filter: Optional[str] = None
    page_title: str = ""
    link_count: int = 0
    has_content: bool = True


def read_listing(soup: BeautifulSoup, url: str) -> ListingPage:
    """Movies, pagination and count of an already-fetched listing page."""
    year = extract_year_from_url(url)
    genre = extract_genre_from_url(url)
    candidates = filter_by_year(discover_movies_on_page(soup, url), year, url)
    body_text = (soup.body or soup).get_text(" ")
    return ListingPage(
        url=url,
        candidates=candidates,
        pagination=detect_pagination(soup, url, genre),
        total_count=detect_total_count(soup),
        year_filter=year,
        genre_filter=genre,
        page_title=soup.title.get_text().strip() if soup.title else "",
        link_count=len(soup.find_all("a")),
        has_content=len(body_text.strip()) > 100,
    )


def scan_listing(url: str, session: Optional[requests.Session] = None,
                 timeout: float = DISCOVER_TIMEOUT) -> ListingPage:
    """Fetch one listing page and read its movies, pagination and count."""
    return read_listing(fetch_html(url, session=session, timeout=timeout), url)


# --- Discovery loop ---

def discover(start_url: str, target_count: Optional[int] = None,
             session: Optional[requests.Session] = None,
             dedup_index=None, hide_duplicates: bool = False,
             max_pages: int = MAX_PAGES, max_consecutive_empty: int = MAX_CONSECUTIVE_EMPTY,
             page_delay: float = PAGE_DELAY,
             on_page: Optional[Callable[[int, int, int], None]] = None) -> DiscoveryResult:
    """
    Walk a listing until one of the stop conditions holds.

    Stops when target_count candidates are collected, when the page says
    there is no next page, after max_pages, or after max_consecutive_empty
    pages in a row added nothing new. A page without movies counts as one
    of those. The first page failing to load raises FetchError and a first
    page without movies ends the walk; later failures try ALT_PATTERNS and
    otherwise count as an empty page.
    """
    visited = set()
    seen_urls = set()
    candidates: List[DiscoveredCandidate] = []
    pagination: Optional[PaginationState] = None
    total_count = None
    pages_fetched = 0
    consecutive_empty = 0
    page_no = 1
    url = start_url

    def load(candidate_url: str) -> Optional[ListingPage]:
        if candidate_url in visited:
            return None
        visited.add(candidate_url)
        listing = scan_listing(candidate_url, session=session)
        return listing if listing.candidates else None

    while True:
        if page_no > max_pages:
            stop_reason = "max-pages"
            break

        listing = None
        if page_no == 1:
            visited.add(url)
            listing = scan_listing(url, session=session)
            total_count = listing.total_count
        elif url not in visited:
            try:
                visited.add(url)
                listing = scan_listing(url, session=session)
            except FetchError as e:
                logger.warning(f"Page {page_no} failed ({e}), trying alternate URLs")
                found = try_patterns(start_url, page_no, ALT_PATTERNS, load)
                listing = found[1] if found else None

        if listing is not None and not listing.candidates:
            pages_fetched += 1
            if page_no == 1:
                stop_reason = "empty-page"
                break
            if listing.pagination.has_next_page:
                pagination = listing.pagination
            listing = None

        if listing is None:
            consecutive_empty += 1
            logger.info(f"Page {page_no}: no movies ({consecutive_empty}/{max_consecutive_empty})")
        else:
            pages_fetched += 1
            new = [c for c in listing.candidates if c.url not in seen_urls]
            if hide_duplicates and dedup_index is not None:
                new = [c for c in new if not dedup_index.is_duplicate(c.title, c.url)]
            for c in new:
                seen_urls.add(c.url)
            candidates.extend(new)
            pagination = listing.pagination

            if new:
                consecutive_empty = 0
            else:
                consecutive_empty += 1
                logger.info(f"Page {page_no}: no new movies ({consecutive_empty}/{max_consecutive_empty})")
            if on_page:
                on_page(page_no, len(new), len(candidates))

            if target_count and len(candidates) >= target_count:
                candidates = candidates[:target_count]
                stop_reason = "target-reached"
                break
            if not pagination.has_next_page:
                stop_reason = "no-next-page"
                break

        if consecutive_empty >= max_consecutive_empty:
            stop_reason = "consecutive-empty"
            break

        page_no += 1
        next_url = pagination.next_page_url if pagination else None
        if not next_url or next_url in visited:
            next_url = primary_pattern(start_url, pagination.page_pattern if pagination else None).url_for(start_url, page_no)
        url = next_url
        if page_delay:
            time.sleep(page_delay)

    logger.info(f"Discovery stopped ({stop_reason}) after {pages_fetched} pages: {len(candidates)} movies")
    return DiscoveryResult(
        candidates=candidates,
        pages_fetched=pages_fetched,
        stop_reason=stop_reason,
        pagination=pagination,
        total_count=total_count,
        dedup_index=dedup_index,
    )
