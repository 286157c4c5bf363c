"""
Sequential import of discovered movies into the catalog.

One worker walks the item list in order: scrape, save as draft, attach
download links. Items move pending -> scraping -> success|error|skipped
and a terminal item is never processed again, so pause/resume simply
continues from the first unprocessed index.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from catalog_db import DuplicateMovieError
from config import DUPLICATE_DELAY, EXISTS_DELAY, ITEM_DELAY
from models import ERROR, PENDING, SCRAPING, SKIPPED, SUCCESS, ExtractedMovie, ScrapingQueueItem

logger = logging.getLogger(__name__)

DEFAULT_DELAYS = {
    "item": ITEM_DELAY,
    "exists": EXISTS_DELAY,
    "duplicate": DUPLICATE_DELAY,
}


def to_queue_item(item: Any) -> ScrapingQueueItem:
    if isinstance(item, ScrapingQueueItem):
        return item
    if hasattr(item, "title") and hasattr(item, "url"):
        return ScrapingQueueItem(title=item.title, url=item.url)
    return ScrapingQueueItem(title=item.get("title") or "", url=item["url"])


class ImportSequencer:
    def __init__(self, items: List[Any], scrape: Callable[[str], ExtractedMovie], catalog,
                 dedup_check: Optional[Callable[[str], bool]] = None,
                 dedup_index=None, delays: Optional[Dict[str, float]] = None,
                 fold_imports: bool = False, sleep: Callable[[float], None] = time.sleep,
                 on_update: Optional[Callable[[ScrapingQueueItem], None]] = None):
        self.items = [to_queue_item(i) for i in items]
        self.scrape = scrape
        self.catalog = catalog
        self.dedup_check = dedup_check
        self.dedup_index = dedup_index
        self.delays = {**DEFAULT_DELAYS, **(delays or {})}
        self.fold_imports = fold_imports
        self.sleep = sleep
        self.on_update = on_update

        self.next_index = 0
        self._pause = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    # --- Control ---

    @property
    def is_paused(self) -> bool:
        return self._pause.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_finished(self) -> bool:
        return self.next_index >= len(self.items)

    def pause(self):
        """The in-flight item completes; nothing new starts."""
        self._pause.set()

    def resume(self):
        self._pause.clear()

    def counters(self) -> Dict[str, int]:
        counts = {SUCCESS: 0, ERROR: 0, SKIPPED: 0, PENDING: 0, SCRAPING: 0}
        for item in self.items:
            counts[item.status] += 1
        return counts

    def run(self) -> Dict[str, int]:
        """Process items from next_index until the end or a pause."""
        with self._lock:
            while self.next_index < len(self.items):
                if self._pause.is_set():
                    logger.info(f"Import paused at item {self.next_index + 1}/{len(self.items)}")
                    break
                item = self.items[self.next_index]
                self.next_index += 1
                if item.is_terminal:
                    continue
                delay = self.process(item)
                if delay and self.next_index < len(self.items):
                    self.sleep(delay)
        return self.counters()

    def start_in_thread(self, on_done: Optional[Callable[[Dict[str, int]], None]] = None) -> threading.Thread:
        if self.is_running:
            return self._thread
        self._pause.clear()

        def target():
            counters = self.run()
            if on_done:
                on_done(counters)

        self._thread = threading.Thread(target=target, name="ImportThread", daemon=True)
        self._thread.start()
        return self._thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the worker thread; False if it is still alive after timeout."""
        if self._thread is not None:
            self._thread.join(timeout)
        return not self.is_running

    # --- Per item ---

    def _notify(self, item: ScrapingQueueItem):
        if self.on_update:
            self.on_update(item)

    def _is_duplicate(self, item: ScrapingQueueItem) -> bool:
        if self.dedup_index is not None and self.dedup_index.is_duplicate(item.title, item.url):
            return True
        return bool(self.dedup_check and self.dedup_check(item.title))

    def process(self, item: ScrapingQueueItem) -> float:
        """Import one item and return how long to wait before the next."""
        item.start()
        self._notify(item)

        try:
            if self._is_duplicate(item):
                item.finish(SKIPPED, error="Duplicate")
                logger.info(f"Skipped duplicate: {item.title}")
                return self.delays["duplicate"]

            movie = self.scrape(item.url)
            payload = movie.to_catalog_payload(item.title)
            try:
                movie_id = self.catalog.create_movie(payload)
            except DuplicateMovieError as e:
                item.finish(SUCCESS, error="Already exists - skipped", saved_id=e.existing_id)
                logger.info(f"Already in catalog: {item.title} (id={e.existing_id})")
                return self.delays["exists"]

            self._add_links(movie_id, movie)
            item.finish(SUCCESS, saved_id=movie_id)
            if self.fold_imports and self.dedup_index is not None:
                self.dedup_index = self.dedup_index.with_title(payload["title"])
            logger.info(f"Imported {payload['title']} -> {movie_id} ({len(movie.download_links)} links)")
            return self.delays["item"]

        except Exception as e:
            item.finish(ERROR, error=str(e) or e.__class__.__name__)
            logger.warning(f"Import failed for {item.url}: {e}")
            return self.delays["item"]
        finally:
            self._notify(item)

    def _add_links(self, movie_id: int, movie: ExtractedMovie):
        for link in movie.download_links:
            try:
                self.catalog.add_download_link(movie_id, link.url, link.quality, link.language)
            except ValueError as e:
                logger.warning(f"Skipped link for movie {movie_id}: {e}")
