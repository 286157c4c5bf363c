"""
Duplicate detection against the catalog.

Bulk mode builds a DedupIndex once before a run. Per-item mode asks the
catalog's search right before each import.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from title_utils import extract_core_title, normalize_title, slug_from_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupIndex:
    titles: FrozenSet[str] = field(default_factory=frozenset)
    slugs: FrozenSet[str] = field(default_factory=frozenset)

    def __len__(self):
        return len(self.titles)

    def is_duplicate(self, title: str, url: Optional[str] = None) -> bool:
        key = normalize_title(title)
        if key and key in self.titles:
            return True
        slug = slug_from_url(url) if url else ""
        return bool(slug) and slug in self.slugs

    def with_title(self, title: str, slug: Optional[str] = None) -> "DedupIndex":
        """A copy that also knows `title`; self is left untouched."""
        key = normalize_title(title)
        slugs = self.slugs | {slug} if slug else self.slugs
        return DedupIndex(titles=self.titles | {key} if key else self.titles, slugs=slugs)


def build_dedup_index(catalog, page_size: int = 100) -> DedupIndex:
    """Snapshot every catalog title and slug by paging through list_movies."""
    titles = set()
    slugs = set()
    page = 1
    while True:
        rows, total_pages = catalog.list_movies(page, page_size)
        for row in rows:
            key = normalize_title(row.get("title") or "")
            if key:
                titles.add(key)
            if row.get("slug"):
                slugs.add(row["slug"].lower())
        if page >= total_pages or not rows:
            break
        page += 1

    logger.info(f"Dedup index built: {len(titles)} titles, {len(slugs)} slugs")
    return DedupIndex(titles=frozenset(titles), slugs=frozenset(slugs))


def check_catalog_duplicate(title: str, catalog) -> bool:
    """True when the catalog already holds a movie with the same normalized title."""
    core = extract_core_title(title)
    words = core.split()
    queries = [core]
    for n in (3, 2):
        if len(words) > n:
            queries.append(" ".join(words[:n]))

    target = normalize_title(title)
    for query in queries:
        for row in catalog.search_movies(query, limit=10, include_all=True):
            if normalize_title(row.get("title") or "") == target:
                logger.info(f"Duplicate in catalog: {title!r} matches {row.get('title')!r}")
                return True
    return False
