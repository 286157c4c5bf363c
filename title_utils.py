"""
Title and URL normalization helpers.

Everything in here is pure: raw scraped strings in, comparable keys and
structured signals (year, genre, slug) out.
"""

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

# --- Regex & Constants ---

REGEX_PATTERNS = {
    "whitespace": re.compile(r"\s+"),
    "year": re.compile(r"\b(19|20)\d{2}\b"),
    "bare_year": re.compile(r"(?<![a-z0-9])((?:19|20)\d{2})(?![a-z0-9])", re.IGNORECASE),
    "bracket_year": re.compile(r"[\(\[]((?:19|20)\d{2})[\)\]]"),
    "paren_year": re.compile(r"\(\d{4}\)"),
    "non_alnum": re.compile(r"[^a-z0-9]+"),
    # Multi-word noise that would otherwise leave a stray half behind
    "noise_phrase": re.compile(
        r"\b(?:dual[\s\-_.]*audio|multi[\s\-_.]*audio|hindi[\s\-_.]*dubbed|web[\s\-_.]*dl"
        r"|web[\s\-_.]*rip|blu[\s\-_.]*ray|full[\s\-_.]*hd|hd[\s\-_.]*rip)\b",
        re.IGNORECASE,
    ),
    "four_digits": re.compile(r"^\d{4}$"),
}

QUALITY_TOKENS = {
    "480p", "576p", "720p", "1080p", "2160p", "4k", "uhd", "hd", "fullhd", "hq",
    "300mb", "400mb", "500mb", "600mb", "700mb", "800mb", "900mb", "1gb", "2gb", "3gb",
}
LANGUAGE_TOKENS = {
    "hindi", "english", "eng", "tamil", "telugu", "malayalam", "kannada", "dubbed", "dub",
    "dual", "multi", "esub", "esubs", "msub", "msubs", "subs",
}
SOURCE_TOKENS = {
    "hdrip", "webrip", "webdl", "bluray", "brrip", "bdrip", "dvdrip", "dvdscr", "hdtv", "hdcam",
    "camrip", "hdtc", "hdts", "predvd", "x264", "x265", "h264", "h265", "hevc", "10bit", "aac",
    "amzn", "nf", "netflix", "jiohotstar", "hotstar", "proper", "remux",
}
NOISE_TOKENS = frozenset(QUALITY_TOKENS | LANGUAGE_TOKENS | SOURCE_TOKENS)

PIRATE_SITE_NAMES = (
    "filmyzilla|movierulz|tamilrockers|filmywap|filmyhit|bolly4u|worldfree4u|khatrimaza|9xmovies"
    "|downloadhub|moviesbaba|filmypur|hdmoviespoint|moviesflix|cinemavilla|moviesmaza|isaimini"
    "|tamilyogi|moviesda|katmoviehd|extramovies|ssrmovies|themoviesflix|vegamovies|1337x|yts"
    "|rarbg|torrent|piratebay"
)
SITE_TLDS = "com|net|org|io|in|co|site|xyz|top|cc|me|tv"

WEBSITE_PATTERNS = [
    re.compile(r"\s*[-–|:]\s*(download|watch|stream|free|online|hd|full movie).*$", re.IGNORECASE),
    re.compile(r"\s*[-–|:]\s*\S+\.(" + SITE_TLDS + r"|movie|film).*$", re.IGNORECASE),
    re.compile(r"^(download|watch|stream|free|hd)\s*[-–|:]\s*", re.IGNORECASE),
    re.compile(r"\s*\([^)]*\.(" + SITE_TLDS + r")[^)]*\)", re.IGNORECASE),
    re.compile(r"\s*\[[^\]]*\.(" + SITE_TLDS + r")[^\]]*\]", re.IGNORECASE),
    re.compile(r"\s*[-–|:]\s*(" + PIRATE_SITE_NAMES + r").*$", re.IGNORECASE),
    re.compile(r"\s*(480p|720p|1080p|2160p|4k|hdrip|webrip|bluray|dvdrip|hdcam|camrip|hdtc|hd|full hd)\s*$", re.IGNORECASE),
    re.compile(r"\s*(hindi|english|tamil|telugu|dubbed|dual audio|multi audio)\s*$", re.IGNORECASE),
]

LISTING_TITLE_PATTERNS = [
    re.compile(r"\s*[-–|:]\s*(download|watch|stream|free|online|hd|full movie).*$", re.IGNORECASE),
    re.compile(r"\s*[-–|:]\s*\S+\.(" + SITE_TLDS + r"|movie|film).*$", re.IGNORECASE),
    re.compile(r"\s*(480p|720p|1080p|2160p|4k|hdrip|webrip|bluray|dvdrip).*$", re.IGNORECASE),
    re.compile(r"\s*\([^)]*\.(com|net|org)[^)]*\)", re.IGNORECASE),
    re.compile(r"\s*\[[^\]]*\]"),
    re.compile(r"download\s*$", re.IGNORECASE),
    re.compile(r"\s*full\s*movie\s*$", re.IGNORECASE),
]

TMDB_QUERY_PATTERNS = [
    re.compile(r"\(\d{4}\)"),
    re.compile(r"\s*(480p|720p|1080p|4k|hdrip|webrip|bluray).*$", re.IGNORECASE),
    re.compile(r"\s*(hindi|english|dual audio|dubbed).*$", re.IGNORECASE),
    re.compile(r"\s*season\s*\d+.*$", re.IGNORECASE),
    re.compile(r"\s*\bs\d+\b.*$", re.IGNORECASE),
    re.compile(r"\s*complete.*$", re.IGNORECASE),
]

CORE_TITLE_CUT = re.compile(
    r"\s*(dual\s*audio|hindi\s*dubbed|hindi|dubbed|hdrip|bluray|webrip|camrip|hdtc|hdts|hdcam"
    r"|300mb|400mb|480p|720p|1080p|2160p|download|movie).*",
    re.IGNORECASE,
)

TV_HINT = re.compile(r"season|series|episode|\bs\d+\b", re.IGNORECASE)

# Ordered: specific path shapes beat a bare /YYYY/ segment
YEAR_URL_PATTERNS = [
    re.compile(r"/release/(\d{4})/?", re.IGNORECASE),
    re.compile(r"/year/(\d{4})/?", re.IGNORECASE),
    re.compile(r"/movies/(\d{4})/?", re.IGNORECASE),
    re.compile(r"/film/(\d{4})/?", re.IGNORECASE),
    re.compile(r"/category/(\d{4})/?", re.IGNORECASE),
    re.compile(r"/(\d{4})/?$"),
    re.compile(r"/(\d{4})/"),
]
YEAR_QUERY_PARAMS = ("year", "y", "release_year")

GENRE_URL_PATTERNS = [
    re.compile(r"/genre/([^/?]+)/?", re.IGNORECASE),
    re.compile(r"/category/([^/?]+)/?", re.IGNORECASE),
    re.compile(r"/tag/([^/?]+)/?", re.IGNORECASE),
    re.compile(r"/movies/([^/?]+)/?", re.IGNORECASE),
]
# Page segments and movie slugs are not genres
NOT_A_GENRE = re.compile(r"^(?:page|\d{4})$|(?:^|-)(?:19|20)\d{2}(?:-|$)")

MIN_YEAR = 1900
MAX_YEAR = 2100

# --- Utility Functions ---


def clean_text(text: str) -> str:
    return REGEX_PATTERNS["whitespace"].sub(" ", text or "").strip()


def slugify(text: str) -> str:
    """Create a URL-safe slug from a title."""
    text = (text or "").lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s_]+", "-", text)
    return text.strip("-")[:100]


def generate_slug(title: str, year=None) -> str:
    base = slugify(title)
    if not year or str(year) in base.split("-"):
        return base
    return f"{base}-{year}"


def slug_from_url(url: str) -> str:
    """Last non-empty path segment of a URL, lowercased."""
    if not url:
        return ""
    parts = [p for p in urlparse(url).path.split("/") if p]
    return parts[-1].lower() if parts else ""


def domain_name(url: str) -> str:
    """'https://www.vegamovies.tv/x' -> 'vegamovies'"""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host.split(".")[0] if host else ""


def _normalize_once(raw: str) -> str:
    text = (raw or "").lower()
    match = REGEX_PATTERNS["bracket_year"].search(text) or REGEX_PATTERNS["bare_year"].search(text)
    year = match.group(1) if match else ""
    if year:
        text = re.sub(r"(?<![a-z0-9])" + year + r"(?![a-z0-9])", " ", text)
    text = REGEX_PATTERNS["noise_phrase"].sub(" ", text)
    tokens = [t for t in REGEX_PATTERNS["non_alnum"].split(text) if t and t not in NOISE_TOKENS]
    return "".join(tokens) + year


def normalize_title(raw: str) -> str:
    """
    Reduce a scraped title to its identity key.

    Quality, language and release-group noise is dropped, punctuation and
    spacing vanish, and the release year (if any) is appended at the end.
    Two titles are the same work iff their keys are equal.
    """
    current = _normalize_once(raw)
    # Collapsing separators can glue fragments into a noise token; settle first
    while True:
        again = _normalize_once(current)
        if again == current:
            return current
        current = again


def fix_duplicate_years(text: str) -> str:
    """Keep only the first (YYYY) in a title and drop bare years that repeat it."""
    if not text:
        return text

    if len(REGEX_PATTERNS["paren_year"].findall(text)) > 1:
        seen_first = False

        def keep_first(match):
            nonlocal seen_first
            if not seen_first:
                seen_first = True
                return match.group(0)
            return ""

        cleaned = re.sub(r"\s*\(\d{4}\)", keep_first, text)
        return clean_text(cleaned)

    cleaned = re.sub(r"(\(\d{4}\))\s*\d{4}(?!\d)", r"\1", text)
    cleaned = re.sub(r"(?<=\S)\s+(?:19|20)\d{2}\s+(\(\d{4}\))", r" \1", cleaned)
    if REGEX_PATTERNS["paren_year"].search(cleaned):
        cleaned = re.sub(r"\s+\d{4}\s*$", "", cleaned)
    return clean_text(cleaned)


def remove_website_names(text: str, source_url: str) -> str:
    """Strip the source site's branding and trailing quality/language tags from a page title."""
    if not text:
        return text

    name = re.escape(domain_name(source_url))
    patterns = []
    if name:
        patterns = [
            re.compile(r"\s*[-–|:]\s*" + name + r".*$", re.IGNORECASE),
            re.compile(r"^" + name + r"\s*[-–|:]\s*", re.IGNORECASE),
            re.compile(r"\(" + name + r"[^)]*\)", re.IGNORECASE),
            re.compile(r"\[" + name + r"[^\]]*\]", re.IGNORECASE),
        ]

    cleaned = text
    for pattern in patterns + WEBSITE_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    cleaned = fix_duplicate_years(cleaned)
    cleaned = re.sub(r"\s*[-–|:]\s*$", "", cleaned)
    cleaned = re.sub(r"^\s*[-–|:]\s*", "", cleaned)
    return clean_text(cleaned)


def clean_movie_title(title: str) -> str:
    """Cleanup for titles taken from listing-page anchors."""
    cleaned = title or ""
    for pattern in LISTING_TITLE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return clean_text(fix_duplicate_years(cleaned))


def clean_tmdb_query(title: str) -> str:
    cleaned = title or ""
    for pattern in TMDB_QUERY_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return clean_text(cleaned)


def looks_like_tv(title: str) -> bool:
    return bool(TV_HINT.search(title or ""))


def extract_core_title(title: str) -> str:
    """Title cut before the first quality/language/year marker, for catalog search."""
    core = CORE_TITLE_CUT.sub("", title or "")
    core = re.sub(r"\s*\|\|.*", "", core)
    core = re.sub(r"\s*\(?\b(19|20)\d{2}\b.*", "", core)
    core = core.strip(" -–:|([")
    if len(core) > 2:
        return core
    return " ".join((title or "").split()[:3])


def is_year_title(title: str) -> bool:
    return bool(REGEX_PATTERNS["four_digits"].match((title or "").strip()))


def find_year(text: str) -> Optional[str]:
    match = REGEX_PATTERNS["year"].search(text or "")
    return match.group(0) if match else None


def extract_year_from_url(url: str) -> Optional[int]:
    """Year signalled by a listing/detail URL, or None."""
    if not url:
        return None

    for pattern in YEAR_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            year = int(match.group(1))
            if MIN_YEAR <= year <= MAX_YEAR:
                return year

    query = parse_qs(urlparse(url).query)
    for param in YEAR_QUERY_PARAMS:
        values = query.get(param)
        if not values:
            continue
        digits = re.match(r"\d+", values[0].strip())
        if digits:
            year = int(digits.group(0))
            if MIN_YEAR <= year <= MAX_YEAR:
                return year
    return None


def extract_genre_from_url(url: str) -> Optional[str]:
    if not url:
        return None
    for pattern in GENRE_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            genre = match.group(1).lower()
            if not NOT_A_GENRE.search(genre):
                return genre
    return None
