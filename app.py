#!/usr/bin/env python3
"""
Movie Catalog Admin API

- Analyze a movie site: size estimate, pagination, categories and years.
- Discover movie links on listing pages (years or movies).
- Scrape a single movie page into catalog fields.
- Run a bulk import in a background thread with pause/resume.
- Manual TMDB search.
- Catalog endpoints: list, search, create, attach download links.
"""

import logging
import os
import threading
from collections import deque
from typing import Optional

import requests
from flask import Flask, jsonify, request

from analyze_site import analyze_site
from catalog_db import CatalogDatabase, DuplicateMovieError, init_database
from config import ADMIN_TOKEN, CATALOG_DB_PATH, SERVER_PORT
from dedup import build_dedup_index, check_catalog_duplicate
from discover_movies import discover_years, generate_year_links, scan_listing
from extract_movie import NotAMoviePage, scrape_movie_url
from html_utils import make_absolute_url
from http_client import FetchError, fetch_html
from import_queue import ImportSequencer
from models import ScrapingQueueItem
from pagination import page_url_strategies, try_patterns
from tmdb_enrich import MOVIE, default_client

# --- Configuration ---

# Keep the terminal quiet apart from errors
log = logging.getLogger('werkzeug')
log.setLevel(logging.ERROR)

logger = logging.getLogger(__name__)

# --- Global State for UI ---

GLOBAL_STATE = {
    "import_running": False,
    "status_message": "Idle. Ready to import.",
    "live_logs": deque(maxlen=50),
}

SEQUENCER: Optional[ImportSequencer] = None
SEQUENCER_LOCK = threading.Lock()
# Longest a resume waits for a paused run to finish its current item
RESUME_WAIT = 30


def log_to_ui(log_type: str, message: str):
    """Updates the GLOBAL_STATE for the UI to read."""
    if log_type == "status":
        GLOBAL_STATE["status_message"] = message
    GLOBAL_STATE["live_logs"].append(message)
    logger.info(message)


def on_item_update(item: ScrapingQueueItem):
    if item.status == "scraping":
        log_to_ui("item", f"→ {item.title}")
    elif item.status == "success":
        note = f" ({item.error})" if item.error else ""
        log_to_ui("item", f"✓ {item.title}{note}")
    elif item.status == "skipped":
        log_to_ui("item", f"- {item.title} ({item.error})")
    elif item.status == "error":
        log_to_ui("item", f"✗ {item.title}: {item.error}")


# --- Flask Web Server ---

app = Flask(__name__)
app.config["CATALOG_DB_PATH"] = CATALOG_DB_PATH
app.config["ADMIN_TOKEN"] = ADMIN_TOKEN
# Tests swap in a fake requests session here
app.config["HTTP_SESSION"] = None
app.config["IMPORT_DELAYS"] = None


def get_catalog() -> CatalogDatabase:
    return CatalogDatabase(app.config["CATALOG_DB_PATH"])


def error_response(message: str, status: int = 400, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


@app.before_request
def require_admin():
    if not request.path.startswith("/api/"):
        return None
    token = app.config.get("ADMIN_TOKEN")
    if token and request.headers.get("Authorization") != f"Bearer {token}":
        return error_response("Unauthorized", 401)
    return None


# --- Scraping ---

@app.route('/api/scraping/analyze', methods=['POST'])
def api_analyze():
    data = request.get_json(silent=True) or {}
    url = (data.get("url") or "").strip()
    if not url:
        return error_response("URL is required")
    try:
        analysis = analyze_site(url, session=app.config["HTTP_SESSION"])
    except FetchError as e:
        return error_response(str(e))
    return jsonify({"success": True, "data": analysis.to_dict()})


@app.route('/api/scraping/discover', methods=['POST'])
def api_discover():
    """Years or movie links found on a listing page."""
    data = request.get_json(silent=True) or {}
    url = (data.get("url") or "").strip()
    discover_type = data.get("type") or "movies"
    if not url:
        return error_response("URL is required")
    if discover_type not in ("years", "movies"):
        return error_response("Invalid type. Use 'years' or 'movies'")

    try:
        page = int(data.get("page") or 1)
    except (TypeError, ValueError):
        return error_response("Page must be a number")

    session = app.config["HTTP_SESSION"]
    try:
        if discover_type == "years":
            return discover_years_response(url, session)
        return discover_movies_response(url, page, data.get("pagePattern"), session)
    except FetchError as e:
        return error_response(f"Failed to discover content: {e}", 500)


def discover_years_response(url: str, session):
    soup = fetch_html(url, session=session)
    origin = make_absolute_url("/", url).rstrip("/")
    years = discover_years(soup, origin)
    if years:
        return jsonify({"success": True, "years": [y.to_dict() for y in years]})
    return jsonify({
        "success": True,
        "years": [y.to_dict() for y in generate_year_links(origin)],
        "note": "Years auto-generated. Click to check availability.",
    })


def discover_movies_response(url: str, page: int, pattern: Optional[str], session):
    if page > 1:
        found = try_patterns(
            url, page, page_url_strategies(url, pattern),
            lambda candidate: _listing_with_movies(candidate, session),
        )
        if not found:
            return error_response(f"Could not load page {page}.", 200, movies=[])
        listing = found[1]
    else:
        listing = scan_listing(url, session=session)

    if not listing.candidates:
        hint = (" The page appears to be empty or failed to load." if not listing.has_content
                else " Try using 'Direct Scrape' method or check if the URL is correct.")
        return jsonify({
            "success": False,
            "error": "Could not find movies on this page." + hint,
            "movies": [],
            "pagination": listing.pagination.to_dict(),
            "totalCount": listing.total_count,
            "debug": {
                "pageTitle": listing.page_title,
                "linkCount": listing.link_count,
                "hasContent": listing.has_content,
            },
        })

    return jsonify({
        "success": True,
        "url": listing.url,
        "movies": [c.to_dict() for c in listing.candidates],
        "pagination": listing.pagination.to_dict(),
        "totalCount": listing.total_count,
        "yearFilter": listing.year_filter,
        "genreFilter": listing.genre_filter,
    })


def _listing_with_movies(url: str, session):
    listing = scan_listing(url, session=session)
    return listing if listing.candidates else None


@app.route('/api/scraping/url', methods=['POST'])
def api_scrape_url():
    data = request.get_json(silent=True) or {}
    url = (data.get("url") or "").strip()
    if not url:
        return error_response("URL is required")

    session = app.config["HTTP_SESSION"]
    try:
        movie = scrape_movie_url(url, session=session, tmdb=default_client(session))
    except (FetchError, NotAMoviePage) as e:
        return error_response(str(e))
    return jsonify({"success": True, "data": movie.to_dict()})


@app.route('/api/scraping/tmdb/search')
def api_tmdb_search():
    """Movie search on TMDB, for matching a scraped title by hand."""
    query = (request.args.get("q") or request.args.get("query") or "").strip()
    if not query:
        return error_response("Search query is required")
    tmdb = default_client(app.config["HTTP_SESSION"])
    if tmdb is None:
        return error_response("TMDB API key not configured. Set TMDB_API_KEY", 500)
    try:
        data = tmdb.search_results(MOVIE, query)
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning(f"TMDB search failed for {query!r}: {e}")
        return error_response("TMDB search failed", 500)
    return jsonify({
        "success": True,
        "data": data.get("results") or [],
        "totalResults": data.get("total_results") or 0,
        "totalPages": data.get("total_pages") or 0,
    })


# --- Bulk import ---

@app.route('/api/scraping/import', methods=['POST'])
def api_import():
    """Starts the import sequencer in a background thread."""
    global SEQUENCER

    data = request.get_json(silent=True) or {}
    items = [i for i in data.get("items") or [] if isinstance(i, dict) and i.get("url")]
    if not items:
        return error_response("No items to import")

    with SEQUENCER_LOCK:
        if SEQUENCER is not None and SEQUENCER.is_running:
            return error_response("Import already running", 409)

        catalog = get_catalog()
        session = app.config["HTTP_SESSION"]
        tmdb = default_client(session)
        dedup_check = None
        dedup_index = None
        if data.get("perItemDedup"):
            dedup_check = lambda title: check_catalog_duplicate(title, catalog)
        elif data.get("hideDuplicates"):
            dedup_index = build_dedup_index(catalog)

        SEQUENCER = ImportSequencer(
            items,
            scrape=lambda url: scrape_movie_url(url, session=session, tmdb=tmdb),
            catalog=catalog,
            dedup_check=dedup_check,
            dedup_index=dedup_index,
            delays=app.config["IMPORT_DELAYS"],
            on_update=on_item_update,
        )
        GLOBAL_STATE["live_logs"].clear()
        GLOBAL_STATE["import_running"] = True
        log_to_ui("status", f"Importing {len(items)} movies...")
        start_import_thread(SEQUENCER)

    return jsonify({"success": True, "message": f"Import started for {len(items)} items."})


def start_import_thread(sequencer: ImportSequencer) -> threading.Thread:
    def on_done(counters):
        GLOBAL_STATE["import_running"] = False
        if sequencer.is_paused:
            log_to_ui("status", "Import paused.")
        else:
            log_to_ui("status", f"Import finished: {counters['success']} imported, "
                                f"{counters['skipped']} skipped, {counters['error']} failed.")

    return sequencer.start_in_thread(on_done=on_done)


@app.route('/api/scraping/import/pause', methods=['POST'])
def api_import_pause():
    if SEQUENCER is None or not SEQUENCER.is_running:
        return error_response("Import not running")
    SEQUENCER.pause()
    log_to_ui("status", "Pause requested... finishing current item...")
    return jsonify({"success": True, "message": "Pause signal sent."})


@app.route('/api/scraping/import/resume', methods=['POST'])
def api_import_resume():
    with SEQUENCER_LOCK:
        if SEQUENCER is None:
            return error_response("No import to resume")
        if SEQUENCER.is_running:
            if not SEQUENCER.is_paused:
                return error_response("Import already running", 409)
            # A paused run still finishes its in-flight item
            if not SEQUENCER.wait(RESUME_WAIT):
                return error_response("Still finishing the current item, try again", 409)
        if SEQUENCER.is_finished:
            return error_response("Import already finished")
        SEQUENCER.resume()
        GLOBAL_STATE["import_running"] = True
        log_to_ui("status", f"Resuming at item {SEQUENCER.next_index + 1}...")
        start_import_thread(SEQUENCER)
    return jsonify({"success": True, "message": "Import resumed."})


@app.route('/api/scraping/status')
def api_import_status():
    """Returns the current state of the import."""
    return jsonify({
        "success": True,
        "running": GLOBAL_STATE["import_running"],
        "paused": SEQUENCER.is_paused if SEQUENCER else False,
        "statusMessage": GLOBAL_STATE["status_message"],
        "counters": SEQUENCER.counters() if SEQUENCER else {},
        "items": [i.to_dict() for i in SEQUENCER.items] if SEQUENCER else [],
        "logs": list(GLOBAL_STATE["live_logs"]),
    })


# --- Catalog ---

@app.route('/api/movies')
def api_movies():
    page = request.args.get("page", 1, type=int)
    page_size = request.args.get("pageSize", 20, type=int)
    movies, total_pages = get_catalog().list_movies(page, page_size)
    return jsonify({"success": True, "movies": movies, "page": max(1, page), "totalPages": total_pages})


@app.route('/api/movies/search')
def api_movies_search():
    query = request.args.get("q", "")
    if len(query.strip()) < 2:
        return error_response("Query must be at least 2 characters")
    limit = request.args.get("limit", 10, type=int)
    include_all = request.args.get("all", "false").lower() in ("1", "true", "yes")
    movies = get_catalog().search_movies(query, limit=limit, include_all=include_all)
    return jsonify({"success": True, "movies": movies})


@app.route('/api/movies', methods=['POST'])
def api_create_movie():
    payload = request.get_json(silent=True) or {}
    try:
        movie_id = get_catalog().create_movie(payload)
    except DuplicateMovieError as e:
        return error_response(str(e), 409, existingId=e.existing_id, existingSlug=e.existing_slug)
    except ValueError as e:
        return error_response(str(e))
    return jsonify({"success": True, "id": movie_id}), 201


@app.route('/api/movies/<int:movie_id>')
def api_get_movie(movie_id):
    catalog = get_catalog()
    movie = catalog.get_movie(movie_id)
    if movie is None:
        return error_response("Movie not found", 404)
    return jsonify({"success": True, "movie": movie, "downloadLinks": catalog.get_links(movie_id)})


@app.route('/api/movies/<int:movie_id>/links', methods=['POST'])
def api_add_link(movie_id):
    data = request.get_json(silent=True) or {}
    catalog = get_catalog()
    if catalog.get_movie(movie_id) is None:
        return error_response("Movie not found", 404)
    try:
        link_id = catalog.add_download_link(
            movie_id,
            (data.get("url") or "").strip(),
            quality=data.get("quality") or "720p",
            language=data.get("language") or "Hindi",
            source_name=data.get("sourceName") or "Direct",
        )
    except ValueError as e:
        return error_response(str(e))
    return jsonify({"success": True, "id": link_id}), 201


# --- Main Execution ---

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    os.makedirs("data", exist_ok=True)

    try:
        init_database(CATALOG_DB_PATH)
    except Exception as e:
        print(f"[FATAL] Could not initialize database: {e}")
        raise SystemExit(1)

    print("\n--- ADMIN API RUNNING ---")
    print(f"Access at: http://127.0.0.1:{SERVER_PORT}")
    if not ADMIN_TOKEN:
        print("Warning: ADMIN_TOKEN not set, API is unauthenticated")
    print("-------------------------")

    app.run(host='0.0.0.0', port=SERVER_PORT, debug=False, use_reloader=False)
