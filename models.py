"""Transient records passed between the discovery, extraction and import stages."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

QUALITY_RANK = {"480p": 1, "720p": 2, "1080p": 3, "4K": 4}

PENDING = "pending"
SCRAPING = "scraping"
SUCCESS = "success"
ERROR = "error"
SKIPPED = "skipped"
TERMINAL_STATUSES = (SUCCESS, ERROR, SKIPPED)


@dataclass
class DiscoveredCandidate:
    title: str
    url: str
    year: Optional[str] = None
    poster_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "url": self.url, "year": self.year, "posterUrl": self.poster_url}


@dataclass
class DownloadLinkCandidate:
    quality: str
    language: str
    url: str

    @property
    def rank(self) -> int:
        return QUALITY_RANK.get(self.quality, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {"quality": self.quality, "language": self.language, "url": self.url}


@dataclass
class ExtractedMovie:
    title: str = ""
    url: str = ""
    description: str = ""
    poster_url: str = ""
    backdrop_url: str = ""
    screenshots: List[str] = field(default_factory=list)
    download_links: List[DownloadLinkCandidate] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    release_year: str = ""
    runtime: str = ""
    rating: str = ""
    director: str = ""
    cast: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    trailer_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "posterUrl": self.poster_url,
            "backdropUrl": self.backdrop_url,
            "screenshots": list(self.screenshots),
            "downloadLinks": [link.to_dict() for link in self.download_links],
            "genres": list(self.genres),
            "releaseYear": self.release_year,
            "runtime": self.runtime,
            "rating": self.rating,
            "director": self.director,
            "cast": list(self.cast),
            "keywords": list(self.keywords),
            "trailerUrl": self.trailer_url,
        }

    def to_catalog_payload(self, fallback_title: str = "") -> Dict[str, Any]:
        """Shape used when saving a freshly imported movie as a draft."""
        description = self.description or ""
        meta_description = description[:160].strip() + ("..." if len(description) > 160 else "")
        return {
            "title": self.title or fallback_title,
            "description": description,
            "metaDescription": meta_description,
            "posterUrl": self.poster_url,
            "backdropUrl": self.backdrop_url,
            "trailerUrl": self.trailer_url,
            "screenshots": list(self.screenshots),
            "genres": list(self.genres),
            "releaseYear": self.release_year,
            "runtime": int(self.runtime) if self.runtime.isdigit() else None,
            "rating": _to_float(self.rating),
            "director": self.director,
            "cast": list(self.cast),
            "metaKeywords": ", ".join(self.keywords),
            "sourceUrl": self.url,
            "status": "DRAFT",
        }


@dataclass
class PaginationState:
    has_next_page: bool = False
    next_page_url: Optional[str] = None
    current_page: int = 1
    total_pages: Optional[int] = None
    page_pattern: str = "path"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasNextPage": self.has_next_page,
            "nextPageUrl": self.next_page_url,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "pagePattern": self.page_pattern,
        }


@dataclass
class YearLink:
    year: str
    count: int
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"year": self.year, "count": self.count, "url": self.url}


@dataclass
class CategoryLink:
    name: str
    url: str
    count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "url": self.url, "count": self.count}


@dataclass
class EnrichmentResult:
    backdrop_url: str = ""
    poster_url: str = ""
    trailer_url: str = ""
    description: str = ""
    rating: str = ""
    genres: List[str] = field(default_factory=list)
    runtime: str = ""
    is_tv: bool = False
    tmdb_id: Optional[int] = None


@dataclass
class ScrapingQueueItem:
    title: str
    url: str
    status: str = PENDING
    error: Optional[str] = None
    saved_id: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def start(self):
        if self.status != PENDING:
            raise ValueError(f"Cannot start item in status {self.status!r}")
        self.status = SCRAPING

    def finish(self, status: str, error: Optional[str] = None, saved_id: Optional[int] = None):
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status!r} is not a terminal status")
        if self.status != SCRAPING:
            raise ValueError(f"Cannot finish item in status {self.status!r}")
        self.status = status
        self.error = error
        self.saved_id = saved_id

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "url": self.url, "status": self.status,
                "error": self.error, "savedId": self.saved_id}


@dataclass
class DiscoveryResult:
    candidates: List[DiscoveredCandidate]
    pages_fetched: int
    stop_reason: str
    pagination: Optional[PaginationState] = None
    total_count: Optional[int] = None
    dedup_index: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "movies": [c.to_dict() for c in self.candidates],
            "pagesFetched": self.pages_fetched,
            "stopReason": self.stop_reason,
            "pagination": self.pagination.to_dict() if self.pagination else None,
            "totalCount": self.total_count,
        }


@dataclass
class SiteAnalysis:
    """What a listing page says about the whole site, for planning an import."""
    website_title: str
    website_logo: Optional[str]
    base_url: str
    analyzed_url: str
    movies_on_page: int
    total_estimate: int
    estimate_method: str
    has_pages: bool
    total_pages: Optional[int] = None
    categories: List[CategoryLink] = field(default_factory=list)
    years: List[YearLink] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "websiteTitle": self.website_title,
            "websiteLogo": self.website_logo,
            "baseUrl": self.base_url,
            "analyzedUrl": self.analyzed_url,
            "moviesOnCurrentPage": self.movies_on_page,
            "totalLifetimeEstimate": self.total_estimate,
            "estimateMethod": self.estimate_method,
            "pagination": {
                "hasPages": self.has_pages,
                "totalPages": self.total_pages,
                "lastPageNumber": self.total_pages,
                "itemsPerPage": self.movies_on_page,
            },
            "categories": [c.to_dict() for c in self.categories],
            "years": [y.to_dict() for y in self.years],
            "importOptions": {
                "canImportAll": self.total_estimate > 0,
                # About three seconds per movie
                "estimatedTime": math.ceil(self.total_estimate * 3 / 60),
            },
        }


def _to_float(value: str) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None
