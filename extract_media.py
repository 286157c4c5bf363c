"""
Image and trailer extraction for a single movie page.

Each field is an ordered list of strategies; the first one that yields a
plausible value wins.
"""

import re
from typing import List, Optional

from bs4 import BeautifulSoup

from html_utils import (
    first_match,
    img_src,
    int_attr,
    is_image_url,
    make_absolute_url,
    meta_content,
)

# --- Poster ---

POSTER_BAD_PATTERNS = (
    "logo", "icon", "avatar", "banner", "ad-", "sponsor",
    "emoji", "smil", "thumb-", "-thumb", "_thumb", "small",
    "mini", "tiny", "badge", "button", "arrow", "social",
    "facebook", "twitter", "instagram", "share", "comment",
    "rating", "star", "like", "play-", "loading", "spinner",
    # WordPress resized variants
    "-50x", "-75x", "-100x", "-150x", "-200x",
    "x50.", "x75.", "x100.", "x150.", "x200.",
    "w=50", "w=75", "w=100", "w=150", "w=200",
    "resize=50", "resize=75", "resize=100",
)

TMDB_IMDB_SELECTORS = (
    'img[src*="tmdb.org"]',
    'img[src*="themoviedb.org"]',
    'img[src*="imdb.com"]',
    'img[data-src*="tmdb.org"]',
    'img[data-src*="themoviedb.org"]',
)
POSTER_META_KEYS = ("og:image", "twitter:image")
META_SMALL_SIZES = ("-150x", "-200x", "-300x")
POSTER_SELECTORS = (
    ".poster img",
    ".movie-poster img",
    ".film-poster img",
    ".post-poster img",
    ".entry-poster img",
    '[class*="poster"] img',
)
WP_FEATURED_SELECTORS = (
    ".wp-post-image",
    ".attachment-post-thumbnail",
    ".attachment-full",
    ".size-full",
)
MIN_POSTER_SIDE = 200


def is_valid_poster_url(url: str) -> bool:
    lowered = (url or "").lower()
    return bool(lowered) and not any(p in lowered for p in POSTER_BAD_PATTERNS)


def _poster_from_tmdb_img(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in TMDB_IMDB_SELECTORS:
        img = soup.select_one(selector)
        src = img_src(img, ("src", "data-src")) if img else ""
        if src and is_image_url(src) and is_valid_poster_url(src):
            return make_absolute_url(src, base_url)
    return None


def _poster_from_meta(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for key in POSTER_META_KEYS:
        content = meta_content(soup, key)
        if not content or not is_image_url(content) or not is_valid_poster_url(content):
            continue
        if any(size in content for size in META_SMALL_SIZES):
            continue
        return make_absolute_url(content, base_url)
    return None


def _poster_from_selectors(selectors):
    def strategy(soup: BeautifulSoup, base_url: str) -> Optional[str]:
        for selector in selectors:
            img = soup.select_one(selector)
            src = img_src(img) if img else ""
            if src and is_image_url(src) and is_valid_poster_url(src):
                return make_absolute_url(src, base_url)
        return None
    return strategy


def _poster_best_scoring(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    """Largest portrait-looking image on the page."""
    best_url, best_score = None, -1
    for img in soup.find_all("img"):
        src = img_src(img, ("src", "data-src", "data-lazy-src"))
        if not src or not is_image_url(src) or not is_valid_poster_url(src):
            continue
        width, height = int_attr(img, "width"), int_attr(img, "height")
        if 0 < width < MIN_POSTER_SIDE or 0 < height < MIN_POSTER_SIDE:
            continue
        score = 0
        if height > width:
            score += 10
        if width >= 300:
            score += 5
        if height >= 400:
            score += 5
        # Ties keep document order
        if score > best_score:
            best_url, best_score = make_absolute_url(src, base_url), score
    return best_url


POSTER_STRATEGIES = [
    _poster_from_tmdb_img,
    _poster_from_meta,
    _poster_from_selectors(POSTER_SELECTORS),
    _poster_from_selectors(WP_FEATURED_SELECTORS),
    _poster_best_scoring,
]


def extract_poster_url(soup: BeautifulSoup, base_url: str) -> str:
    return first_match(POSTER_STRATEGIES, soup, base_url) or ""


# --- Backdrop ---

BACKDROP_SELECTORS = (
    ".backdrop img",
    ".banner img",
    ".hero-image img",
    ".hero img",
    ".featured-bg",
    ".movie-backdrop img",
    ".film-backdrop img",
    ".background-image img",
    ".bg-image img",
    '[class*="backdrop"] img',
    '[class*="banner"] img',
    '[class*="hero"] img',
    ".cover img",
    ".cover-image img",
    ".header-image img",
)
BACKGROUND_URL = re.compile(r"""background(?:-image)?:\s*url\(['"]?([^'")\s]+)['"]?\)""", re.IGNORECASE)
BACKDROP_NAME_HINTS = ("backdrop", "banner", "cover", "background")
NON_BACKDROP_HINTS = ("logo", "icon", "avatar", "ad", "sponsor")
# Backdrops are often named banner-*
BACKDROP_BAD_PATTERNS = tuple(p for p in POSTER_BAD_PATTERNS if p != "banner")


def is_valid_backdrop_url(url: str) -> bool:
    lowered = (url or "").lower()
    return bool(lowered) and not any(p in lowered for p in BACKDROP_BAD_PATTERNS)


def _backdrop_from_selectors(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in BACKDROP_SELECTORS:
        el = soup.select_one(selector)
        src = img_src(el) if el else ""
        if src and is_image_url(src) and is_valid_backdrop_url(src):
            return make_absolute_url(src, base_url)
    return None


def _backdrop_from_style(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for el in soup.select('[style*="background"]'):
        match = BACKGROUND_URL.search(el.get("style") or "")
        if match and is_image_url(match.group(1)) and is_valid_backdrop_url(match.group(1)):
            return make_absolute_url(match.group(1), base_url)
    return None


def _backdrop_from_wide_images(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for img in soup.find_all("img"):
        src = img_src(img, ("src", "data-src", "data-lazy-src"))
        if not src or not is_image_url(src) or not is_valid_backdrop_url(src):
            continue
        width, height = int_attr(img, "width"), int_attr(img, "height")
        if width > 0 and height > 0 and width > height * 1.5:
            return make_absolute_url(src, base_url)
        if any(hint in src.lower() for hint in BACKDROP_NAME_HINTS):
            return make_absolute_url(src, base_url)
    return None


def _backdrop_second_image(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    # The first content image is usually the poster
    images = []
    for img in soup.find_all("img"):
        src = img_src(img, ("src", "data-src", "data-lazy-src"))
        if not src or not is_image_url(src) or not is_valid_backdrop_url(src):
            continue
        if any(hint in src.lower() for hint in NON_BACKDROP_HINTS):
            continue
        images.append(make_absolute_url(src, base_url))
        if len(images) > 1:
            return images[1]
    return None


BACKDROP_STRATEGIES = [
    _backdrop_from_selectors,
    _backdrop_from_style,
    _backdrop_from_wide_images,
    _backdrop_second_image,
]


def extract_backdrop_url(soup: BeautifulSoup, base_url: str) -> str:
    return first_match(BACKDROP_STRATEGIES, soup, base_url) or ""


# --- Screenshots ---

SCREENSHOT_SELECTORS = (
    ".screenshots img",
    ".screenshot img",
    ".gallery img",
    ".screen-shots img",
    ".movie-screenshots img",
    ".movie-gallery img",
    ".film-screenshots img",
    ".screens img",
    ".movie-screens img",
    '[class*="screenshot"] img',
    '[class*="gallery"] img',
    '[class*="screen"] img',
    ".lightbox img",
    ".fancybox img",
    ".magnific img",
    "a[data-fancybox] img",
    "a[data-lightbox] img",
    ".wp-block-gallery img",
    ".gallery-item img",
)
CONTENT_IMAGE_SELECTORS = (
    ".entry-content img",
    ".post-content img",
    ".content img",
    "article img",
    ".single-content img",
)
NON_SCREENSHOT_HINTS = ("logo", "icon", "avatar", "ad-", "sponsor", "banner", "poster", "thumb")
MAX_SCREENSHOTS = 15


class _ScreenshotCollector:
    def __init__(self, base_url: str):
        self.base_url = base_url
        self.urls: List[str] = []
        self._seen = set()

    @property
    def full(self) -> bool:
        return len(self.urls) >= MAX_SCREENSHOTS

    def add(self, src: str):
        if not src or not is_image_url(src):
            return
        url = make_absolute_url(src, self.base_url)
        if url in self._seen:
            return
        if any(hint in url.lower() for hint in NON_SCREENSHOT_HINTS):
            return
        self._seen.add(url)
        self.urls.append(url)


def extract_screenshots(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Gallery images first, then in-content images, then any landscape image."""
    shots = _ScreenshotCollector(base_url)

    for selector in SCREENSHOT_SELECTORS:
        for img in soup.select(selector):
            if shots.full:
                break
            shots.add(img_src(img))
            parent = img.parent
            if parent is not None and parent.name == "a" and is_image_url(parent.get("href") or ""):
                shots.add(parent["href"])
        if len(shots.urls) >= 10:
            break

    if len(shots.urls) < 5:
        for selector in CONTENT_IMAGE_SELECTORS:
            # First two in-content images are usually poster/banner
            for img in soup.select(selector)[2:]:
                if shots.full:
                    break
                shots.add(img_src(img, ("src", "data-src", "data-lazy-src")))

    if len(shots.urls) < 3:
        for img in soup.find_all("img"):
            if shots.full:
                break
            src = img_src(img, ("src", "data-src"))
            width, height = int_attr(img, "width"), int_attr(img, "height")
            if src and width > height > 0 and width > 300:
                shots.add(src)

    return shots.urls[:MAX_SCREENSHOTS]


# --- Trailer ---

YOUTUBE_ID = re.compile(r"(?:youtube\.com/(?:embed/|watch\?v=)|youtu\.be/)([a-zA-Z0-9_-]{11})")
YOUTUBE_SELECTORS = (
    'iframe[src*="youtube.com"]',
    'iframe[src*="youtu.be"]',
    'iframe[data-src*="youtube.com"]',
    'iframe[data-src*="youtu.be"]',
    'a[href*="youtube.com/watch"]',
    'a[href*="youtu.be/"]',
)
TRAILER_CONTAINER_SELECTORS = (".trailer a", ".movie-trailer a")


def youtube_watch_url(url: str) -> str:
    """Canonical watch URL for any YouTube embed/short/watch link, or ''."""
    match = YOUTUBE_ID.search(url or "")
    return f"https://www.youtube.com/watch?v={match.group(1)}" if match else ""


def _trailer_from_embeds(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in YOUTUBE_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        url = youtube_watch_url(el.get("src") or el.get("data-src") or el.get("href") or "")
        if url:
            return url
    return None


def _trailer_from_links(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    candidates = [a for a in soup.find_all("a", href=True) if "trailer" in a.get_text().lower()]
    for selector in TRAILER_CONTAINER_SELECTORS:
        candidates.extend(soup.select(selector))
    for a in candidates:
        url = youtube_watch_url(a.get("href") or "")
        if url:
            return url
    return None


TRAILER_STRATEGIES = [_trailer_from_embeds, _trailer_from_links]


def extract_trailer_url(soup: BeautifulSoup, base_url: str = "") -> str:
    return first_match(TRAILER_STRATEGIES, soup, base_url) or ""
