"""
Single movie page extraction.

scrape_movie_url() is the entry point used by the admin API, the CLI and
the import sequencer: fetch, reject listing pages, extract every field,
follow download pages when needed and merge TMDB data.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup, Tag

from extract_links import collect_download_links, extract_download_links
from extract_media import (
    extract_backdrop_url,
    extract_poster_url,
    extract_screenshots,
    extract_trailer_url,
)
from html_utils import first_match, meta_content
from http_client import fetch_html
from models import ExtractedMovie
from title_utils import clean_text, domain_name, find_year, remove_website_names
from tmdb_enrich import apply_enrichment

logger = logging.getLogger(__name__)


class NotAMoviePage(Exception):
    """The URL is a homepage or listing page rather than a single movie."""

    def __init__(self, url: str):
        super().__init__("This looks like a homepage or listing page, not a single movie page.")
        self.url = url


# --- Title ---

TITLE_SELECTORS = (
    "h1.entry-title",
    "h1.post-title",
    "h1.movie-title",
    "h1.single-title",
    "h1.page-title",
    ".entry-title h1",
    ".post-title h1",
    ".movie-title h1",
    ".single-post-title",
    ".movie-name",
    ".film-title",
    "article h1",
    ".content h1",
    ".main-content h1",
    ".post-content h1",
    ".entry-content h1",
    "main h1",
    "h1",
)
CHROME_TAGS = ("header", "nav")
CHROME_CLASSES = {"header", "nav", "site-header", "navbar"}


def _in_site_chrome(el: Tag) -> bool:
    for parent in el.parents:
        if parent.name in CHROME_TAGS or CHROME_CLASSES & set(parent.get("class") or []):
            return True
    return False


def _plausible_title(text: str) -> Optional[str]:
    text = clean_text(text)
    return text if 2 < len(text) < 200 else None


def _title_from_headings(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in TITLE_SELECTORS:
        el = soup.select_one(selector)
        # Headings in the site header are the site name
        if el is None or _in_site_chrome(el):
            continue
        title = _plausible_title(el.get_text(" "))
        if title:
            return title
    return None


def _title_from_meta(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    return _plausible_title(meta_content(soup, "og:title"))


def _title_from_document(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    return _plausible_title(soup.title.get_text() if soup.title else "")


TITLE_STRATEGIES = [_title_from_headings, _title_from_meta, _title_from_document]


def extract_title(soup: BeautifulSoup, base_url: str) -> str:
    return remove_website_names(first_match(TITLE_STRATEGIES, soup, base_url) or "", base_url)


# --- Description ---

DESCRIPTION_SELECTORS = (
    ".movie-description",
    ".movie-synopsis",
    ".movie-story",
    ".movie-plot",
    ".synopsis",
    ".overview",
    ".plot",
    ".story",
    ".storyline",
    ".film-description",
    ".description",
    '[class*="description"]',
    '[class*="synopsis"]',
    '[class*="story"]',
    '[class*="plot"]',
)
PARAGRAPH_SELECTORS = (
    ".entry-content > p",
    ".post-content > p",
    ".content > p",
    ".main-content > p",
    "article > p",
    ".single-content > p",
)
DOWNLOAD_NOISE = re.compile(r"download|click|720p|1080p|480p|mb|gb", re.IGNORECASE)

PROMO_KEYWORDS = (
    "watch online", "download free", "free download", "movies free",
    "online free", "latest movies", "free movies", "hd movies",
    "bollywood movies", "hollywood movies", "tamil movies", "telugu movies",
    "watch online movie", "download movie", "movies online",
)
PROMO_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"[^|]*watch online[^|]*\|",
    r"[^|]*download[^|]*free[^|]*\|",
    r"[^|]*movies free[^|]*\|",
    r"[^|]*online free[^|]*\|",
    r"\|[^|]*movies[^|]*\|",
    r"(visit|check out|download from|available on|watch on)\s+\S+\.(com|net|org|io|in)",
    r"download\s+(now|here|free|from)\s+[^.]+\.",
    r"click\s+(here|below)\s+[^.]+\.",
    r"join\s+(our|the)\s+(telegram|channel|group)[^.]+\.",
    r"(for more|more movies|latest movies)[^.]+\.(com|net|org|io)[^.]*",
    r"watch online movie and download",
    r"movies online free download",
    r"latest bollywood movies",
    r"bollywood movies free",
    r"hollywood movies free",
    r"tamil hd movies",
    r"telugu hd movies",
    r"https?://\S+",
    r"www\.\S+",
    r"\s*(disclaimer|copyright|all rights reserved)[^.]*\.?",
    r"^\s*\|\s*",
    r"\s*\|\s*$",
    r"\|\s*\|",
)]


def _description_from_selectors(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in DESCRIPTION_SELECTORS:
        el = soup.select_one(selector)
        text = el.get_text() if el else ""
        if 50 < len(text) < 2000:
            return clean_text(text)
    return None


def _description_from_meta(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for key in ("og:description", "description"):
        content = meta_content(soup, key)
        if len(content) > 30:
            return clean_text(content)
    return None


def _description_from_paragraphs(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in PARAGRAPH_SELECTORS:
        paragraphs = [p.get_text().strip() for p in soup.select(selector)]
        paragraphs = [p for p in paragraphs if len(p) > 50 and not DOWNLOAD_NOISE.search(p)]
        if paragraphs:
            return clean_text(" ".join(paragraphs[:2])[:1000])
    return None


DESCRIPTION_STRATEGIES = [
    _description_from_selectors,
    _description_from_meta,
    _description_from_paragraphs,
]


def clean_description(text: str, source_url: str) -> str:
    """Drop site promotion from a scraped synopsis; '' if nothing real is left."""
    if not text:
        return text

    site = domain_name(source_url)
    lowered = text.lower()
    promo_count = sum(1 for kw in PROMO_KEYWORDS if kw in lowered)
    if promo_count >= 2 and ((site and site in lowered) or "|" in text):
        return ""

    patterns = list(PROMO_PATTERNS)
    if site:
        escaped = re.escape(site)
        patterns = [
            re.compile(escaped + r"\s*[-–—:]?\s*", re.IGNORECASE),
            re.compile(escaped + r"[^|.]*[|.]", re.IGNORECASE),
        ] + patterns

    cleaned = text
    for pattern in patterns:
        cleaned = pattern.sub("", cleaned)

    cleaned = re.sub(r"\.{2,}", ".", cleaned)
    cleaned = re.sub(r"\|{2,}", "|", cleaned)
    cleaned = re.sub(r"^\s*\|\s*|\s*\|\s*$", "", cleaned)
    cleaned = clean_text(cleaned)
    if len(cleaned) < 20 or re.fullmatch(r"[\s|.,;:-]*", cleaned):
        return ""
    return cleaned


def extract_description(soup: BeautifulSoup, base_url: str) -> str:
    return clean_description(first_match(DESCRIPTION_STRATEGIES, soup, base_url) or "", base_url)


# --- Metadata ---

GENRE_SELECTORS = (".genre a", ".genres a", ".movie-genre a", 'a[rel="tag"]', ".tags a", ".category a")
VALID_GENRES = (
    "action", "adventure", "animation", "comedy", "crime", "documentary",
    "drama", "family", "fantasy", "history", "horror", "music", "mystery",
    "romance", "science fiction", "sci-fi", "thriller", "war", "western",
)
MAX_GENRES = 5

YEAR_SELECTORS = (".year", ".release-year", ".movie-year")
RUNTIME = re.compile(r"(\d{1,3})\s*(min|minutes|mins)", re.IGNORECASE)
RATING_SELECTORS = (".rating", ".imdb-rating", ".movie-rating", ".score")
RATING = re.compile(r"(\d+\.?\d*)\s*/?\s*(?:10)?")

DIRECTOR_SELECTORS = (
    ".director",
    ".movie-director",
    ".film-director",
    ".director-name",
    '[class*="director"]',
)
DIRECTOR_CONTENT_SELECTORS = (".entry-content", ".post-content", ".content", "article", ".movie-info", ".single-info")
DIRECTOR_IN_HTML = re.compile(
    r"Director\s*[:：]\s*<[^>]*>([^<]+)<|Director\s*[:：]\s*([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)",
    re.IGNORECASE,
)
DIRECTOR_GARBAGE = [re.compile(p, re.IGNORECASE) for p in (
    r"Director", r"Cast", r"Shared\d*", r"Facebook", r"Twitter", r"Home", r"Movies",
    r"Search", r"Genres?", r"\d+Hdmovies", r"Hdmovies", r"Action", r"Season\s*\d+",
    r"Complete", r"Hindi", r"\(\d{4}\)", r"[:：]",
)]
PERSON_NAME = re.compile(r"^[A-Za-z\s.'-]+$")

CAST_SELECTORS = (".cast a", ".actors a", ".starring a", ".movie-cast a")
MAX_CAST = 10

KEYWORD_TEMPLATES = (
    "{} download",
    "{} full movie",
    "{} 480p",
    "{} 720p",
    "{} 1080p",
    "{} Hindi",
    "{} English",
    "download {}",
    "{} free download",
)
MAX_KEYWORDS = 20


def extract_genres(soup: BeautifulSoup) -> List[str]:
    genres: List[str] = []
    for selector in GENRE_SELECTORS:
        for el in soup.select(selector):
            text = el.get_text().strip().lower()
            if len(genres) >= MAX_GENRES or not any(g in text for g in VALID_GENRES):
                continue
            genre = text[:1].upper() + text[1:]
            if genre not in genres:
                genres.append(genre)
    return genres


def extract_release_year(soup: BeautifulSoup) -> str:
    for selector in YEAR_SELECTORS:
        el = soup.select_one(selector)
        year = find_year(el.get_text()) if el else None
        if year:
            return year
    body = soup.body or soup
    return find_year(body.get_text(" ")) or ""


def extract_runtime(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    match = RUNTIME.search(body.get_text(" "))
    return match.group(1) if match else ""


def extract_rating(soup: BeautifulSoup) -> str:
    for selector in RATING_SELECTORS:
        el = soup.select_one(selector)
        match = RATING.search(el.get_text()) if el else None
        if match:
            rating = float(match.group(1))
            if rating <= 10:
                return f"{rating:g}"
    return ""


def clean_director_text(text: str) -> str:
    if not text:
        return ""
    cleaned = text
    for pattern in DIRECTOR_GARBAGE:
        cleaned = pattern.sub(" ", cleaned)
    cleaned = clean_text(cleaned)
    if not 3 <= len(cleaned) <= 50 or not PERSON_NAME.match(cleaned):
        return ""
    if len(cleaned.split(" ")) > 5:
        return ""
    return cleaned


def extract_director(soup: BeautifulSoup) -> str:
    for selector in DIRECTOR_SELECTORS:
        el = soup.select_one(selector)
        text = el.get_text().strip() if el else ""
        if 2 < len(text) < 100:
            cleaned = clean_director_text(text)
            if cleaned:
                return cleaned

    # Only content areas; nav and footer carry too many false hits
    for selector in DIRECTOR_CONTENT_SELECTORS:
        content = soup.select_one(selector)
        if content is None:
            continue
        match = DIRECTOR_IN_HTML.search(content.decode_contents())
        if match:
            name = (match.group(1) or match.group(2) or "").strip()
            if 2 < len(name) < 50 and "Home" not in name and "Search" not in name:
                return clean_director_text(name)
    return ""


def extract_cast(soup: BeautifulSoup) -> List[str]:
    cast: List[str] = []
    for selector in CAST_SELECTORS:
        for el in soup.select(selector):
            name = el.get_text().strip()
            if 2 < len(name) < 50 and len(cast) < MAX_CAST and name not in cast:
                cast.append(name)
        if len(cast) >= 5:
            break
    return cast


def generate_keywords(soup: BeautifulSoup, title: str) -> List[str]:
    keywords = [template.format(title) for template in KEYWORD_TEMPLATES] if title else []
    meta = meta_content(soup, "keywords")
    if meta:
        extra = [k.strip() for k in meta.split(",") if len(k.strip()) > 2]
        keywords.extend(extra[:10])
    return keywords[:MAX_KEYWORDS]


# --- Page checks ---

LISTING_LINK_SELECTOR = 'a[href*="/movie"], a[href*="/download"], article, .post'
SINGLE_TITLE_SELECTOR = "h1, .movie-title, .entry-title, .post-title"


def _looks_like_movie_path(path: str) -> bool:
    return (
        len(path) > 10
        or any(word in path for word in ("movie", "download", "film"))
        or bool(re.search(r"\d{4}", path))
        or bool(re.search(r"-[a-z]+-", path))
    )


def looks_like_listing_page(soup: BeautifulSoup, url: str) -> bool:
    """A homepage/listing: many movie links and at most one title element."""
    if _looks_like_movie_path(urlparse(url).path.lower()):
        return False
    movie_links = len(soup.select(LISTING_LINK_SELECTOR))
    title_elements = len(soup.select(SINGLE_TITLE_SELECTOR))
    return movie_links > 20 and title_elements <= 1


# --- Entry points ---

def extract_movie(soup: BeautifulSoup, url: str) -> ExtractedMovie:
    """Every field from an already-fetched page; download pages are not followed."""
    title = extract_title(soup, url)
    return ExtractedMovie(
        title=title,
        url=url,
        description=extract_description(soup, url),
        poster_url=extract_poster_url(soup, url),
        backdrop_url=extract_backdrop_url(soup, url),
        screenshots=extract_screenshots(soup, url),
        download_links=extract_download_links(soup, url),
        genres=extract_genres(soup),
        release_year=extract_release_year(soup),
        runtime=extract_runtime(soup),
        rating=extract_rating(soup),
        director=extract_director(soup),
        cast=extract_cast(soup),
        keywords=generate_keywords(soup, title),
        trailer_url=extract_trailer_url(soup, url),
    )


def scrape_movie_url(url: str, session: Optional[requests.Session] = None, tmdb=None) -> ExtractedMovie:
    """
    Fetch and extract one movie page.

    Raises FetchError when the page cannot be loaded and NotAMoviePage for
    listing pages. TMDB failures never fail the scrape.
    """
    soup = fetch_html(url, session=session, referer=url)
    if looks_like_listing_page(soup, url):
        raise NotAMoviePage(url)

    movie = extract_movie(soup, url)
    movie.download_links = collect_download_links(soup, url, session=session, links=movie.download_links)

    if tmdb is not None and movie.title:
        result = tmdb.enrich(movie.title, movie.release_year or None)
        if result:
            apply_enrichment(movie, result)
        else:
            logger.info(f"No TMDB data for {movie.title!r}")

    if not movie.backdrop_url and movie.poster_url:
        movie.backdrop_url = movie.poster_url
    return movie
