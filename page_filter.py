"""
Decides whether a discovered link is a real movie page.

Movie-download sites reuse one template for navigation, auth and content, so
links are rejected on URL shape, URL blocklist and anchor text before they
ever become import candidates.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from title_utils import is_year_title

CONTENT_INDICATOR = re.compile(r"/movie|/film|/download|/watch|/release", re.IGNORECASE)

# Listing, utility, auth and legal pages
SKIP_URL_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"/category/",
    r"/tag/",
    r"/author/",
    r"/search",
    r"/page/\d+/?(?:[?#]|$)",
    r"/genre/",
    r"/archive/",
    r"\?s=",
    r"/feed/",
    r"/rss/",
    r"wp-login",
    r"wp-admin",
    r"/login",
    r"/register",
    r"/signup",
    r"/sign-in",
    r"/sign-up",
    r"/forgot",
    r"/reset",
    r"/password",
    r"/lost-password",
    r"/account",
    r"/profile",
    r"/dashboard",
    r"/admin",
    r"/user",
    r"/members",
    r"/about",
    r"/contact",
    r"/privacy",
    r"/terms",
    r"/dmca",
    r"/disclaimer",
    r"/cookie",
    r"/sitemap",
)]

AUTH_NAV_TITLES = [re.compile(p, re.IGNORECASE) for p in (
    r"^register", r"^login", r"^log in", r"^sign in", r"^sign up",
    r"^lost.*password", r"^forgot.*password", r"^reset.*password", r"^password.*reset",
    r"^create.*account", r"^new.*account", r"^my account", r"^my profile", r"^dashboard",
    r"^home$", r"^about$", r"^contact$", r"^privacy$", r"^terms$", r"^dmca$",
    r"^disclaimer$", r"^cookie$", r"^sitemap$", r"^more$", r"^read more$", r"^download$",
    r"^click$", r"^next$", r"^previous$", r"^prev$", r"^back$", r"^menu$",
    r"^navigation$", r"^skip$", r"^continue$",
)]

AUTH_PHRASES = (
    "register a new account",
    "lost your password",
    "forgot password",
    "reset password",
    "create account",
    "sign up",
    "sign in",
    "log in",
    "log out",
)

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 200


def host_of(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def is_same_host(url: str, page_url: str) -> bool:
    host = host_of(url)
    return bool(host) and host == host_of(page_url)


def is_source_site_url(url: str, source_host: str) -> bool:
    """True for the source host itself, its subdomains, or its parent domain."""
    if not source_host:
        return False
    host = host_of(url)
    if not host:
        return False
    return host == source_host or host.endswith("." + source_host) or source_host.endswith("." + host)


def has_content_shape(url: str) -> bool:
    path = urlparse(url).path
    segments = [p for p in path.split("/") if p]
    return len(segments) >= 2 or bool(CONTENT_INDICATOR.search(path))


def is_blocked_url(url: str) -> bool:
    return any(pattern.search(url) for pattern in SKIP_URL_PATTERNS)


def is_navigation_title(title: str) -> bool:
    lowered = (title or "").lower().strip()
    if any(pattern.search(lowered) for pattern in AUTH_NAV_TITLES):
        return True
    return any(phrase in lowered for phrase in AUTH_PHRASES)


def rejection_reason(url: str, title: Optional[str]) -> Optional[str]:
    """Why a link is not a content page, or None if it is one."""
    if not has_content_shape(url):
        return "shallow-url"
    if is_blocked_url(url):
        return "blocked-url"
    title = (title or "").strip()
    if len(title) < MIN_TITLE_LENGTH or len(title) > MAX_TITLE_LENGTH:
        return "title-length"
    if is_year_title(title):
        return "year-title"
    if is_navigation_title(title):
        return "navigation-title"
    return None


def is_content_page(url: str, title: Optional[str]) -> bool:
    return rejection_reason(url, title) is None
