"""
Shared HTTP session and page fetching.

One pooled session with a small retry budget is reused by discovery,
extraction and TMDB lookups.
"""

import logging
from typing import Optional

import requests
import urllib3
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import REQUEST_TIMEOUT, VERIFY_SSL

logger = logging.getLogger(__name__)

# Browser-like headers; target sites block the default python UA
BASE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "application/xml", "text/xml")


class FetchError(Exception):
    """A page could not be fetched or is not HTML."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.message = message
        self.status_code = status_code

    def __str__(self):
        return self.message


def create_session(total_retries: int = 2) -> requests.Session:
    """Build a pooled session with fast-fail retries."""
    session = requests.Session()
    session.headers.update(BASE_HEADERS)
    retry_strategy = Retry(
        total=total_retries,
        backoff_factor=0.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=20, max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


SESSION = create_session()
if not VERIFY_SSL:
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


def fetch_html(url: str, session: Optional[requests.Session] = None,
               timeout: float = REQUEST_TIMEOUT, referer: Optional[str] = None) -> BeautifulSoup:
    """Fetches and parses HTML from a URL, raising FetchError on any failure."""
    if not url or not url.startswith(("http://", "https://")):
        raise FetchError(url, f"Invalid URL scheme: {url}")

    session = session or SESSION
    headers = {"Referer": referer} if referer else None
    try:
        resp = session.get(url, headers=headers, timeout=timeout, verify=VERIFY_SSL, allow_redirects=True)
        resp.raise_for_status()
    except requests.exceptions.Timeout:
        logger.warning(f"Timeout fetching {url}")
        raise FetchError(url, f"Request timed out ({timeout:g}s)")
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.warning(f"HTTP error {status} for {url}")
        raise FetchError(url, f"Failed to fetch URL: {status}", status_code=status)
    except requests.exceptions.RequestException as e:
        logger.warning(f"Request failed for {url}: {str(e)[:80]}")
        raise FetchError(url, "Failed to connect to the website")

    content_type = resp.headers.get("Content-Type", "text/html").lower()
    if not any(t in content_type for t in HTML_CONTENT_TYPES):
        raise FetchError(url, f"Not an HTML page ({content_type.split(';')[0]})", status_code=resp.status_code)

    return BeautifulSoup(resp.text, "html.parser")
