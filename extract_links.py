"""
Download link extraction.

Movie pages hide their file-host links behind buttons, tables and separate
"download pages". Links are collected in four passes over the main page,
then, when too few turn up, from up to three same-site download pages.
Links pointing back at the source site are never kept: those are other
movie pages, not downloads. Links on known shortener hosts are finally
resolved to the file host they redirect to.
"""

import logging
import re
from dataclasses import replace
from typing import Iterable, List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup, Tag

from config import DOWNLOAD_PAGE_TIMEOUT, VERIFY_SSL
from html_utils import clean_href, element_text
from http_client import SESSION, FetchError, fetch_html
from models import DownloadLinkCandidate
from page_filter import host_of, is_source_site_url
from title_utils import slug_from_url

logger = logging.getLogger(__name__)

MAX_LINKS = 50
MAX_DOWNLOAD_PAGES = 3
FEW_LINKS = 3

SKIP_HREF_PATTERNS = (
    "facebook.com", "twitter.com", "instagram.com", "youtube.com",
    "telegram.me", "telegram.org", "whatsapp.com", "pinterest.com",
    "#comment", "#respond", "wp-login", "wp-admin", "/feed/",
    "javascript:", "mailto:", "tel:", "/search", "?s=",
)

# --- Pass keywords ---

DOWNLOAD_KEYWORDS = (
    "download", "descargar", "telecharger", "480p", "720p", "1080p", "2160p", "4k",
    "hdrip", "webrip", "bluray", "brrip", "dvdrip", "hdtv", "webdl", "web-dl",
    "direct link", "g-drive", "gdrive", "google drive", "mediafire", "mega",
    "fast download", "slow download", "server", "link", "mirror",
)

FILE_HOST_PATTERNS = (
    "drive.google", "docs.google", "mediafire", "mega.nz", "mega.co",
    "1fichier", "uptobox", "rapidgator", "nitroflare", "uploadrar",
    "dropbox", "onedrive", "gdrive", "hubcloud", "pixeldrain",
    "gofile", "anonfiles", "zippyshare", "clicknupload", "ddownload",
    "katfile", "hexupload", "filepress", "sendcm", "streamtape",
    "upstream", "racaty", "hxfile", "krakenfiles", "bayfiles",
    "letsupload", "mirrorace", "uploadhaven", "tusfiles", "usersdrive",
    "userscloud", "indishare", "dropapk", "gdtot", "apkadmin",
    "download", "dl=", "file=", "get=", ".mkv", ".mp4", ".avi",
    "filecrypt", "oload", "openload", "fembed", "vidcloud", "mixdrop",
    "doodstream", "filemoon", "streamlare", "uqload", "vtube",
    "filelion", "linkbox", "terabox", "wetransfer", "gplinks",
    "shrinkme", "exe.io", "ouo.io", "sharer.pw", "shorte.st",
)

CONTAINER_SELECTORS = (
    ".download-links", ".download-box", ".download-section", ".download-buttons",
    ".downloadlinks", ".dlink", ".dl-box", ".dl-link", ".download",
    '[class*="download"]', '[id*="download"]', ".entry-content", ".post-content",
    ".content", "article", ".single-content", ".movie-info", ".movie-download",
    "table", ".wp-block-table", ".links-table", "#links", ".links",
)
CONTAINER_INTERNAL_SKIP = ("/tag/", "/category/", "/author/", "/page/", "?p=", "/comments")
CONTAINER_INDICATOR = re.compile(r"download|480|720|1080|link|server|mirror|gdrive|mega|mediafire")

BUTTON_SELECTOR = "button, .btn, [class*='button'], [role='button']"
ONCLICK_URL = re.compile(r"""['"]((?:https?://|/)[^'"]+)['"]""")
BUTTON_QUALITY = re.compile(r"\d{3,4}p")

# --- Download page follow-up ---

DOWNLOAD_PAGE_TEXTS = (
    "download", "click to download", "download now", "download links", "get download",
    "direct download", "download page", "go to download", "download here", "click here",
    "डाउनलोड", "यहाँ क्लिक करें",
)
DOWNLOAD_PAGE_CLASS_SELECTORS = (
    ".download-btn",
    ".download-button",
    ".btn-download",
    '[class*="download-link"]',
    '[class*="download-btn"]',
    '[class*="download-button"]',
    '[id*="download"]',
)
DOWNLOAD_PAGE_HREF_PARTS = (
    "/download/", "/downloads/", "/dl/", "/link/", "/links/", "/get/",
    "download=", "/go/", "/redirect/", "/out/",
)
SHORTENER_HOSTS = ("bit.ly", "tinyurl", "goo.gl", "shorturl")
DIRECT_FILE_HOSTS = ("drive.google", "mediafire", "mega.nz", "dropbox", "pixeldrain")
DOWNLOAD_PAGE_SKIP = (
    "facebook.com", "twitter.com", "instagram.com", "telegram",
    "whatsapp", "#comment", "wp-login", "/tag/", "/category/",
    "/author/", "?s=", "/search", "/page/", "/genre/", "/year/",
    "/movies/", "/series/", "/tv-shows/", "/web-series/",
    "imdb.com", "themoviedb.org", "rotten", "youtube.com",
)
DOWNLOAD_PATH_KEYWORDS = ("download", "link", "dl", "get", "go", "redirect", "out", "file")

DOWNLOAD_PAGE_HOSTS = (
    "drive.google", "mediafire", "mega.nz", "mega.co", "dropbox",
    "pixeldrain", "gofile", "hubcloud", "gdtot", "filepress",
    "1fichier", "uptobox", "rapidgator", "nitroflare", "uploadrar",
)
QUALITY_TEXT = re.compile(r"480p|720p|1080p|2160p|4k", re.IGNORECASE)


# --- Quality & Language ---

def detect_quality(text: str, href: str) -> str:
    text, href = text.lower(), href.lower()
    if "480" in text or "480" in href:
        return "480p"
    if "1080" in text or "1080" in href:
        return "1080p"
    if "2160" in text or "4k" in text or "2160" in href or "4k" in href:
        return "4K"
    return "720p"


def detect_language(text: str) -> str:
    text = text.lower()
    if "english" in text or " eng " in text or "[eng]" in text:
        return "English"
    if "dual" in text or "hin-eng" in text or "hindi-english" in text:
        return "Dual Audio"
    for language in ("Tamil", "Telugu", "Korean", "Japanese"):
        if language.lower() in text:
            return language
    return "Hindi"


def _parent_text(el: Tag) -> str:
    return element_text(el.parent) if el.parent is not None else ""


class LinkCollector:
    """Accumulates external download links, deduped by URL in discovery order."""

    def __init__(self, base_url: str, exclude_hosts: Iterable[str] = ()):
        self.base_url = base_url
        self.exclude_hosts = [h for h in [host_of(base_url), *exclude_hosts] if h]
        self.links: List[DownloadLinkCandidate] = []
        self._seen = set()

    def _is_own_site(self, url: str) -> bool:
        return any(is_source_site_url(url, host) for host in self.exclude_hosts)

    def add(self, href: str, text: str = "", parent_text: str = "") -> bool:
        url = clean_href(href, self.exclude_hosts[0] if self.exclude_hosts else "")
        if not url or url in self._seen:
            return False
        # Relative links resolve to the source site
        if not url.startswith("http") or self._is_own_site(url):
            return False
        lowered = url.lower()
        if any(p in lowered for p in SKIP_HREF_PATTERNS):
            return False

        self._seen.add(url)
        combined = f"{text} {parent_text}"
        self.links.append(DownloadLinkCandidate(
            quality=detect_quality(combined, url),
            language=detect_language(combined),
            url=url,
        ))
        return True

    def extend(self, links: Iterable[DownloadLinkCandidate]):
        for link in links:
            if link.url not in self._seen and not self._is_own_site(link.url):
                self._seen.add(link.url)
                self.links.append(link)

    def sorted_links(self) -> List[DownloadLinkCandidate]:
        # sorted() is stable: equal ranks keep discovery order
        return sorted(self.links, key=lambda link: link.rank)[:MAX_LINKS]


# --- Main page passes ---

def _keyword_pass(soup: BeautifulSoup, collector: LinkCollector):
    for a in soup.find_all("a"):
        parent = a.parent
        signals = " ".join([
            a.get_text(" ").strip(),
            a.get("title") or "",
            " ".join(a.get("class") or []),
            " ".join(parent.get("class") or []) if parent is not None else "",
        ]).lower()
        if any(kw in signals for kw in DOWNLOAD_KEYWORDS):
            collector.add(a.get("href") or "", element_text(a), _parent_text(a))


def _file_host_pass(soup: BeautifulSoup, collector: LinkCollector):
    for a in soup.find_all("a", href=True):
        if any(p in a["href"].lower() for p in FILE_HOST_PATTERNS):
            collector.add(a["href"], element_text(a), _parent_text(a))


def _container_pass(soup: BeautifulSoup, collector: LinkCollector):
    host = host_of(collector.base_url)
    for selector in CONTAINER_SELECTORS:
        for a in soup.select(f"{selector} a"):
            href = a.get("href") or ""
            if not href or href == "#" or href.startswith("javascript:"):
                continue
            text = element_text(a)
            if len(text) < 2 and "download" not in href:
                continue
            same_site = href.startswith("/") or (bool(host) and host in href)
            if same_site and any(s in href for s in CONTAINER_INTERNAL_SKIP):
                continue
            parent_text = _parent_text(a)
            is_external = href.startswith("http") and not (host and host in href)
            if is_external or CONTAINER_INDICATOR.search((text + parent_text).lower()):
                collector.add(href, text, parent_text)


def _button_href(el: Tag) -> str:
    data_href = el.get("data-href") or el.get("data-url") or el.get("data-link") or ""
    if data_href:
        return data_href
    match = ONCLICK_URL.search(el.get("onclick") or "")
    return match.group(1) if match else ""


def _button_pass(soup: BeautifulSoup, collector: LinkCollector, require_label: bool = True):
    for el in soup.select(BUTTON_SELECTOR):
        href = _button_href(el)
        if not href:
            continue
        text = element_text(el)
        if require_label and "download" not in text.lower() and not BUTTON_QUALITY.search(text):
            continue
        collector.add(href, text, _parent_text(el))


def extract_download_links(soup: BeautifulSoup, base_url: str) -> List[DownloadLinkCandidate]:
    collector = LinkCollector(base_url)
    _keyword_pass(soup, collector)
    _file_host_pass(soup, collector)
    _container_pass(soup, collector)
    _button_pass(soup, collector)
    return collector.sorted_links()


# --- Download pages ---

def _download_page_anchors(soup: BeautifulSoup) -> List[Tag]:
    anchors = []
    for a in soup.find_all("a"):
        text = a.get_text(" ").strip().lower()
        if any(label.lower() in text for label in DOWNLOAD_PAGE_TEXTS):
            anchors.append(a)
    for selector in DOWNLOAD_PAGE_CLASS_SELECTORS:
        anchors.extend(soup.select(selector))
    for part in DOWNLOAD_PAGE_HREF_PARTS:
        anchors.extend(soup.select(f'a[href*="{part}"]'))
    for scope in ("table", ".entry-content", ".post-content"):
        anchors.extend(soup.select(f'{scope} a[href*="download"]'))
    return anchors


def _looks_like_other_movie(link_path: str, page_path: str) -> bool:
    if link_path == page_path.lower():
        return False
    if any(kw in link_path for kw in DOWNLOAD_PATH_KEYWORDS):
        return False
    current_slug = slug_from_url(page_path)
    return bool(re.search(r"\d{4}", link_path)) and current_slug[:10] not in link_path


def find_download_page_urls(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Same-site (or shortener) pages that likely hold the real download links."""
    parsed = urlparse(base_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    domain = parsed.hostname or ""
    urls: List[str] = []
    seen = set()

    for a in _download_page_anchors(soup):
        href = (a.get("href") or "").strip()
        if not href or href in seen or href.startswith(("#", "javascript:")):
            continue
        full_url = href if href.startswith("http") else origin + (href if href.startswith("/") else "/" + href)

        link_host = host_of(full_url)
        if not link_host:
            continue
        if link_host != domain and not any(s in link_host for s in SHORTENER_HOSTS):
            # Direct file hosts are links, not pages to follow
            if any(h in link_host for h in DIRECT_FILE_HOSTS):
                continue
        if any(p in full_url.lower() for p in DOWNLOAD_PAGE_SKIP):
            continue
        if _looks_like_other_movie(urlparse(full_url).path.lower(), parsed.path):
            continue

        seen.add(href)
        urls.append(full_url)
    return urls[:MAX_DOWNLOAD_PAGES]


def extract_download_page_links(soup: BeautifulSoup, page_url: str,
                                exclude_hosts: Iterable[str] = ()) -> List[DownloadLinkCandidate]:
    collector = LinkCollector(page_url, exclude_hosts)
    for a in soup.find_all("a"):
        href = a.get("href") or ""
        text, parent_text = element_text(a), _parent_text(a)
        combined = f"{text} {parent_text}".lower()
        if any(h in href.lower() for h in DOWNLOAD_PAGE_HOSTS) or QUALITY_TEXT.search(combined):
            collector.add(href, text, parent_text)
        elif any(kw in combined for kw in ("download", "link", "server")):
            if href.startswith("http") or ".mkv" in href or ".mp4" in href:
                collector.add(href, text, parent_text)
    _button_pass(soup, collector, require_label=False)
    return collector.links


def scrape_download_page(page_url: str, session: Optional[requests.Session] = None,
                         timeout: float = DOWNLOAD_PAGE_TIMEOUT,
                         exclude_hosts: Iterable[str] = ()) -> List[DownloadLinkCandidate]:
    soup = fetch_html(page_url, session=session, timeout=timeout, referer=page_url)
    return extract_download_page_links(soup, page_url, exclude_hosts)


# --- Shortener resolution ---

REDIRECT_HOSTS = (
    "linkos.site", "link.clik.pw", "linksfire.co", "techymedies.com",
    "shrinkme", "za.gl", "ouo.io", "linksunlock", "epios",
)
RESOLVED_LINK_SELECTORS = (
    'a[href*="gdrive"]', 'a[href*="drive.google"]',
    'a[href*="mega.nz"]', 'a[href*="mega.co"]',
    'a[href*="mediafire"]', 'a[href*="pixeldrain"]',
    'a[href*="gofile"]', 'a[href*="streamtape"]',
    'a[href*="doodstream"]', 'a[href*="mixdrop"]',
    'a[href*="hubcloud"]', 'a[href*="gdflix"]',
    'a[href*="filepress"]',
    "a.download-btn", "a.btn-download", 'a[class*="download"]',
    "#download a", ".download-link a",
)
RESOLVED_HOSTS = (
    "gdrive", "drive.google", "mega", "mediafire", "pixeldrain",
    "gofile", "hubcloud", "gdflix", "filepress",
)
RESOLVED_SKIP = ("facebook", "twitter", "telegram")


def is_redirect_link(url: str) -> bool:
    host = host_of(url)
    return bool(host) and any(h in host for h in REDIRECT_HOSTS)


def _is_target_href(href: str) -> bool:
    return href.startswith("http") and not is_redirect_link(href)


def resolve_redirect_url(url: str, session: Optional[requests.Session] = None,
                         timeout: float = DOWNLOAD_PAGE_TIMEOUT) -> str:
    """
    The file-host URL behind a shortener link.

    Reads the Location header first, then the landing page for file-host
    anchors. Any other link, or one that cannot be resolved, comes back
    unchanged.
    """
    if not is_redirect_link(url):
        return url

    session = session or SESSION
    try:
        resp = session.get(url, timeout=timeout, verify=VERIFY_SSL, allow_redirects=False)
    except requests.exceptions.RequestException as e:
        logger.warning(f"Redirect resolution failed for {url}: {str(e)[:80]}")
        return url

    location = (resp.headers.get("Location") or "").strip()
    if location.startswith("http"):
        logger.info(f"Resolved {url} -> {location}")
        return location

    soup = BeautifulSoup(resp.text or "", "html.parser")
    for selector in RESOLVED_LINK_SELECTORS:
        a = soup.select_one(selector)
        href = (a.get("href") or "").strip() if a else ""
        if _is_target_href(href):
            logger.info(f"Resolved {url} -> {href}")
            return href

    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        lowered = href.lower()
        if not _is_target_href(href) or any(s in lowered for s in RESOLVED_SKIP):
            continue
        if any(h in lowered for h in RESOLVED_HOSTS):
            logger.info(f"Resolved {url} -> {href}")
            return href

    logger.info(f"Nothing behind {url}, keeping it")
    return url


def resolve_redirect_links(links: List[DownloadLinkCandidate],
                           session: Optional[requests.Session] = None) -> List[DownloadLinkCandidate]:
    resolved = []
    seen = set()
    for link in links:
        url = resolve_redirect_url(link.url, session=session)
        if url in seen:
            continue
        seen.add(url)
        resolved.append(link if url == link.url else replace(link, url=url))
    return resolved


def collect_download_links(soup: BeautifulSoup, url: str,
                           session: Optional[requests.Session] = None,
                           links: Optional[List[DownloadLinkCandidate]] = None) -> List[DownloadLinkCandidate]:
    """
    Main-page links, topped up from download pages when fewer than three
    were found, with shortener links resolved.

    Pass `links` when the main page was already extracted.
    """
    if links is None:
        links = extract_download_links(soup, url)

    page_urls = find_download_page_urls(soup, url) if len(links) < FEW_LINKS else []
    if page_urls:
        logger.info(f"Only {len(links)} links on page, following {len(page_urls)} download pages")
        collector = LinkCollector(url)
        collector.extend(links)
        for page_url in page_urls:
            try:
                found = scrape_download_page(page_url, session=session, exclude_hosts=[host_of(url)])
            except FetchError as e:
                logger.warning(f"Download page failed {page_url}: {e}")
                continue
            if found:
                logger.info(f"Found {len(found)} links on {page_url}")
            collector.extend(found)
        links = collector.sorted_links()

    return resolve_redirect_links(links, session=session)
