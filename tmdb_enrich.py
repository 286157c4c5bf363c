"""
TMDB lookups used to upgrade scraped movie data.

Scraped posters are usually small and ratings unreliable, so a TMDB hit
replaces images, trailer and rating, and fills any missing description,
genres or runtime. The API key comes from TMDB_API_KEY; without it
enrichment is skipped.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from config import REQUEST_TIMEOUT, TMDB_API_KEY, TMDB_API_URL, TMDB_IMAGE_URL
from http_client import SESSION
from models import EnrichmentResult, ExtractedMovie
from title_utils import clean_tmdb_query, looks_like_tv

logger = logging.getLogger(__name__)

MOVIE = "movie"
TV = "tv"
YEAR_PARAMS = {MOVIE: "year", TV: "first_air_date_year"}
VIDEO_TYPE_PRIORITY = ("Trailer", "Teaser", "Clip", "Featurette")


def image_url(path: Optional[str], size: str) -> str:
    return f"{TMDB_IMAGE_URL}/{size}{path}" if path else ""


def format_rating(vote_average) -> str:
    return f"{vote_average:.1f}" if vote_average else ""


def pick_trailer(videos: List[Dict[str, Any]]) -> str:
    """YouTube watch URL of the best video: Trailer > Teaser > Clip > Featurette > any."""
    youtube = [v for v in videos or [] if v.get("site") == "YouTube" and v.get("key")]
    for video_type in VIDEO_TYPE_PRIORITY:
        for video in youtube:
            if video.get("type") == video_type:
                return f"https://www.youtube.com/watch?v={video['key']}"
    if youtube:
        return f"https://www.youtube.com/watch?v={youtube[0]['key']}"
    return ""


class TMDBClient:
    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 base_url: str = TMDB_API_URL, timeout: float = REQUEST_TIMEOUT):
        self.api_key = api_key
        self.session = session or SESSION
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str, **params) -> Dict[str, Any]:
        params = {"api_key": self.api_key, "language": "en-US", **params}
        resp = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def search_results(self, kind: str, query: str, year: Optional[str] = None, page: int = 1) -> Dict[str, Any]:
        """One page of raw search results; HTTP and JSON errors propagate."""
        params = {"query": query, "page": page, "include_adult": "false"}
        if year:
            params[YEAR_PARAMS[kind]] = year
        return self._get(f"/search/{kind}", **params)

    def search(self, kind: str, query: str, year: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """First search hit, or None (errors are logged, not raised)."""
        try:
            results = self.search_results(kind, query, year).get("results") or []
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"TMDB {kind} search failed for {query!r}: {e}")
            return None
        return results[0] if results else None

    def details(self, kind: str, tmdb_id: int) -> Dict[str, Any]:
        return self._get(f"/{kind}/{tmdb_id}", append_to_response="videos")

    def find(self, title: str, year: Optional[str] = None):
        """(kind, hit) for the first search in priority order that matches."""
        query = clean_tmdb_query(title)
        if not query:
            return None, None

        attempts = []
        if not looks_like_tv(title):
            attempts.append((MOVIE, year))
        attempts.append((TV, year))
        if year:
            attempts += [(MOVIE, None), (TV, None)]

        for kind, search_year in attempts:
            hit = self.search(kind, query, search_year)
            if hit and hit.get("id"):
                logger.info(f"TMDB {kind} match for {query!r}: {hit.get('title') or hit.get('name')}")
                return kind, hit
        return None, None

    def enrich(self, title: str, year: Optional[str] = None) -> Optional[EnrichmentResult]:
        kind, hit = self.find(title, year)
        if not hit:
            logger.info(f"No TMDB results for {title!r}")
            return None

        try:
            details = self.details(kind, hit["id"])
        except (requests.exceptions.RequestException, ValueError) as e:
            # Search hits carry enough for images, overview and rating
            logger.warning(f"TMDB details failed for {kind}/{hit['id']}: {e}")
            return EnrichmentResult(
                backdrop_url=image_url(hit.get("backdrop_path"), "original"),
                poster_url=image_url(hit.get("poster_path"), "w500"),
                description=hit.get("overview") or "",
                rating=format_rating(hit.get("vote_average")),
                is_tv=kind == TV,
                tmdb_id=hit["id"],
            )

        runtime = details.get("runtime")
        if not runtime and details.get("episode_run_time"):
            runtime = details["episode_run_time"][0]

        return EnrichmentResult(
            backdrop_url=image_url(details.get("backdrop_path"), "original"),
            poster_url=image_url(details.get("poster_path"), "w500"),
            trailer_url=pick_trailer((details.get("videos") or {}).get("results")),
            description=details.get("overview") or "",
            rating=format_rating(details.get("vote_average")),
            genres=[g["name"] for g in details.get("genres") or [] if g.get("name")],
            runtime=str(runtime) if runtime else "",
            is_tv=kind == TV,
            tmdb_id=hit["id"],
        )


def default_client(session: Optional[requests.Session] = None) -> Optional[TMDBClient]:
    if not TMDB_API_KEY:
        logger.debug("TMDB_API_KEY not set, enrichment disabled")
        return None
    return TMDBClient(TMDB_API_KEY, session=session)


def enrich(title: str, year: Optional[str] = None, client: Optional[TMDBClient] = None) -> Optional[EnrichmentResult]:
    client = client or default_client()
    return client.enrich(title, year) if client else None


def apply_enrichment(movie: ExtractedMovie, result: EnrichmentResult) -> ExtractedMovie:
    """Merge a TMDB result into scraped data in place."""
    if result.backdrop_url:
        movie.backdrop_url = result.backdrop_url
    if result.poster_url:
        movie.poster_url = result.poster_url
    if result.trailer_url:
        movie.trailer_url = result.trailer_url
    if result.rating and float(result.rating) > 0:
        movie.rating = result.rating
    if not movie.description and result.description:
        movie.description = result.description
    if not movie.genres and result.genres:
        movie.genres = list(result.genres)
    if not movie.runtime and result.runtime:
        movie.runtime = result.runtime
    if not movie.backdrop_url and movie.poster_url:
        movie.backdrop_url = movie.poster_url
    return movie
