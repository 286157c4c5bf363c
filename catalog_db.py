"""
SQLite catalog the importer writes into.
Tables: movies, download_links
"""
import json
import logging
import math
import os
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from config import CATALOG_DB_PATH
from title_utils import find_year, generate_slug, normalize_title

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
MAX_SEARCH_LIMIT = 50
MIN_QUERY_LENGTH = 2

DRAFT = "DRAFT"
PUBLISHED = "PUBLISHED"

LINK_DEFAULTS = {"quality": "720p", "language": "Hindi", "source_name": "Direct"}
IMAGE_LINK_MARKERS = (
    "image.tmdb.org", "tmdb.org/t/p",
    ".jpg", ".jpeg", ".png", ".webp", ".gif", ".svg", ".ico",
    "poster", "backdrop", "thumbnail",
)
LIST_COLUMNS = ("genres", "screenshots", "cast")


class DuplicateMovieError(Exception):
    """A movie with the same slug or title is already in the catalog."""

    def __init__(self, existing_id: int, existing_slug: str):
        super().__init__(f"Movie already exists (id={existing_id}, slug={existing_slug})")
        self.existing_id = existing_id
        self.existing_slug = existing_slug


def is_image_link(url: str) -> bool:
    lowered = (url or "").lower()
    return any(marker in lowered for marker in IMAGE_LINK_MARKERS)


def init_database(db_path: str = CATALOG_DB_PATH):
    """Create the catalog schema if it does not exist yet"""
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")

    # ============================================
    # MOVIES
    # ============================================
    cursor.execute("""
    CREATE TABLE IF NOT EXISTS movies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        normalized_title TEXT NOT NULL,
        description TEXT,
        meta_description TEXT,
        meta_keywords TEXT,
        poster_url TEXT,
        backdrop_url TEXT,
        trailer_url TEXT,
        screenshots TEXT,
        genres TEXT,
        release_year TEXT,
        runtime INTEGER,
        rating REAL,
        director TEXT,
        "cast" TEXT,
        source_url TEXT,
        status TEXT NOT NULL DEFAULT 'DRAFT' CHECK(status IN ('DRAFT', 'PUBLISHED')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_movies_normalized ON movies(normalized_title)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_movies_status ON movies(status)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_movies_created ON movies(created_at DESC)")

    # ============================================
    # DOWNLOAD LINKS
    # ============================================
    cursor.execute("""
    CREATE TABLE IF NOT EXISTS download_links (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        movie_id INTEGER NOT NULL,
        url TEXT NOT NULL,
        quality TEXT NOT NULL DEFAULT '720p',
        language TEXT NOT NULL DEFAULT 'Hindi',
        source_name TEXT NOT NULL DEFAULT 'Direct',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (movie_id) REFERENCES movies(id) ON DELETE CASCADE
    )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_links_movie ON download_links(movie_id)")

    conn.commit()
    conn.close()
    logger.info(f"Catalog database ready at {db_path}")


def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    for column in LIST_COLUMNS:
        if column in data:
            data[column] = json.loads(data[column]) if data[column] else []
    return data


class CatalogDatabase:
    def __init__(self, db_path: str = CATALOG_DB_PATH):
        self.db_path = db_path
        init_database(db_path)

    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def find_existing(self, title: str, slug: str) -> Optional[sqlite3.Row]:
        conn = self.get_connection()
        try:
            return conn.execute(
                """
                SELECT id, slug FROM movies
                WHERE slug = ? OR lower(title) = lower(?) OR normalized_title = ?
                LIMIT 1
                """,
                (slug, title, normalize_title(title)),
            ).fetchone()
        finally:
            conn.close()

    def create_movie(self, payload: Dict[str, Any]) -> int:
        """Insert a movie and return its id; raises DuplicateMovieError for a known title."""
        title = (payload.get("title") or "").strip()
        if not title:
            raise ValueError("Movie title is required")

        year = payload.get("releaseYear") or find_year(title)
        slug = generate_slug(title, year)
        existing = self.find_existing(title, slug)
        if existing is not None:
            raise DuplicateMovieError(existing["id"], existing["slug"])

        conn = self.get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO movies (title, slug, normalized_title, description, meta_description,
                                    meta_keywords, poster_url, backdrop_url, trailer_url, screenshots,
                                    genres, release_year, runtime, rating, director, "cast",
                                    source_url, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title,
                    slug,
                    normalize_title(title),
                    payload.get("description"),
                    payload.get("metaDescription"),
                    payload.get("metaKeywords"),
                    payload.get("posterUrl"),
                    payload.get("backdropUrl"),
                    payload.get("trailerUrl"),
                    json.dumps(payload.get("screenshots") or []),
                    json.dumps(payload.get("genres") or []),
                    payload.get("releaseYear"),
                    payload.get("runtime"),
                    payload.get("rating"),
                    payload.get("director"),
                    json.dumps(payload.get("cast") or []),
                    payload.get("sourceUrl"),
                    payload.get("status") or DRAFT,
                ),
            )
            conn.commit()
            movie_id = cursor.lastrowid
        except sqlite3.IntegrityError:
            # Lost a race against another insert of the same slug
            row = conn.execute("SELECT id, slug FROM movies WHERE slug = ?", (slug,)).fetchone()
            if row is None:
                raise
            raise DuplicateMovieError(row["id"], row["slug"])
        finally:
            conn.close()

        logger.info(f"Created movie {movie_id}: {title} ({slug})")
        return movie_id

    def add_download_link(self, movie_id: int, url: str, quality: str = "720p",
                          language: str = "Hindi", source_name: str = "Direct") -> int:
        if not url:
            raise ValueError("Download link URL is required")
        if is_image_link(url):
            raise ValueError(f"Image URL is not a download link: {url}")

        conn = self.get_connection()
        try:
            cursor = conn.execute(
                "INSERT INTO download_links (movie_id, url, quality, language, source_name) VALUES (?, ?, ?, ?, ?)",
                (
                    movie_id,
                    url,
                    quality or LINK_DEFAULTS["quality"],
                    language or LINK_DEFAULTS["language"],
                    source_name or LINK_DEFAULTS["source_name"],
                ),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def list_movies(self, page: int = 1, page_size: int = 20) -> Tuple[List[Dict[str, Any]], int]:
        """One page of movies, newest first, plus the total page count."""
        page = max(1, page)
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        conn = self.get_connection()
        try:
            total = conn.execute("SELECT COUNT(*) FROM movies").fetchone()[0]
            rows = conn.execute(
                "SELECT * FROM movies ORDER BY id DESC LIMIT ? OFFSET ?",
                (page_size, (page - 1) * page_size),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_dict(r) for r in rows], math.ceil(total / page_size)

    def search_movies(self, query: str, limit: int = 10, include_all: bool = False) -> List[Dict[str, Any]]:
        """Case-insensitive title search; drafts only with include_all."""
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        limit = max(1, min(limit, MAX_SEARCH_LIMIT))

        sql = "SELECT * FROM movies WHERE lower(title) LIKE lower(?)"
        params: list = [f"%{query}%"]
        if not include_all:
            sql += " AND status = ?"
            params.append(PUBLISHED)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        conn = self.get_connection()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [_row_to_dict(r) for r in rows]

    def get_movie(self, movie_id: int) -> Optional[Dict[str, Any]]:
        conn = self.get_connection()
        try:
            row = conn.execute("SELECT * FROM movies WHERE id = ?", (movie_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_dict(row) if row else None

    def get_links(self, movie_id: int) -> List[Dict[str, Any]]:
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM download_links WHERE movie_id = ? ORDER BY id", (movie_id,)
            ).fetchall()
        finally:
            conn.close()
        return [dict(r) for r in rows]

    def get_stats(self) -> Dict[str, int]:
        """Get catalog statistics"""
        conn = self.get_connection()
        cursor = conn.cursor()
        stats = {}
        try:
            cursor.execute("SELECT COUNT(*) FROM movies")
            stats["total_movies"] = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM movies WHERE status = ?", (DRAFT,))
            stats["drafts"] = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM movies WHERE status = ?", (PUBLISHED,))
            stats["published"] = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM download_links")
            stats["download_links"] = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM movies WHERE id NOT IN (SELECT movie_id FROM download_links)")
            stats["without_links"] = cursor.fetchone()[0]
        finally:
            conn.close()
        return stats
