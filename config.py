"""
Runtime configuration for the catalog scraper.

Every value can be overridden from the environment so the same scripts run
on a laptop and on the VPS without edits.
"""

import os

# --- Paths & Server ---

CATALOG_DB_PATH = os.environ.get("CATALOG_DB_PATH", "data/catalog.db")
LOG_FILE = os.environ.get("LOG_FILE", "data/scraper.log")
SERVER_PORT = int(os.environ.get("SERVER_PORT", "8080"))

# Empty token disables the admin check (local use only)
ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")

# --- Networking ---

REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", "15"))
DOWNLOAD_PAGE_TIMEOUT = float(os.environ.get("DOWNLOAD_PAGE_TIMEOUT", "10"))
DISCOVER_TIMEOUT = float(os.environ.get("DISCOVER_TIMEOUT", "30"))
VERIFY_SSL = os.environ.get("VERIFY_SSL", "true").lower() == "true"

# --- TMDB ---

TMDB_API_KEY = os.environ.get("TMDB_API_KEY", "")
TMDB_API_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_URL = "https://image.tmdb.org/t/p"

# --- Pacing (seconds) ---

PAGE_DELAY = float(os.environ.get("PAGE_DELAY", "0.5"))
ITEM_DELAY = float(os.environ.get("ITEM_DELAY", "2.0"))
EXISTS_DELAY = float(os.environ.get("EXISTS_DELAY", "0.5"))
DUPLICATE_DELAY = float(os.environ.get("DUPLICATE_DELAY", "0.2"))

# --- Discovery limits ---

MAX_PAGES = int(os.environ.get("MAX_PAGES", "1000"))
MAX_CONSECUTIVE_EMPTY = int(os.environ.get("MAX_CONSECUTIVE_EMPTY", "5"))
MAX_MOVIES_PER_PAGE = 200
