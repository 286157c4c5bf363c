import pytest

from dedup import DedupIndex
from import_queue import ImportSequencer, to_queue_item
from models import DiscoveredCandidate, DownloadLinkCandidate, ExtractedMovie, ScrapingQueueItem

NO_DELAYS = {"item": 0, "exists": 0, "duplicate": 0}


def make_items(n):
    return [DiscoveredCandidate(f"Film {i} (2024)", f"https://moviesite.test/movie/film-{i}-2024/", "2024")
            for i in range(1, n + 1)]


def scrape(url):
    slug = url.rstrip("/").rsplit("/", 1)[-1]
    number = slug.split("-")[1]
    return ExtractedMovie(
        title=f"Film {number} (2024)",
        url=url,
        release_year="2024",
        download_links=[
            DownloadLinkCandidate("720p", "Hindi", f"https://gofile.io/d/{slug}"),
            DownloadLinkCandidate("720p", "Hindi", f"https://image.tmdb.org/t/p/w500/{slug}.jpg"),
        ],
    )


class FailingCatalog:
    """Wraps a catalog and fails create_movie for chosen titles."""

    def __init__(self, catalog, fail_titles):
        self.catalog = catalog
        self.fail_titles = set(fail_titles)

    def create_movie(self, payload):
        if payload["title"] in self.fail_titles:
            raise RuntimeError("database is locked")
        return self.catalog.create_movie(payload)

    def add_download_link(self, *args, **kwargs):
        return self.catalog.add_download_link(*args, **kwargs)


def test_failure_does_not_stop_the_queue(catalog):
    sequencer = ImportSequencer(make_items(3), scrape, FailingCatalog(catalog, {"Film 2 (2024)"}),
                                delays=NO_DELAYS)
    counters = sequencer.run()

    assert [item.status for item in sequencer.items] == ["success", "error", "success"]
    assert sequencer.items[1].error == "database is locked"
    assert counters["success"] == 2 and counters["error"] == 1
    assert sequencer.is_finished


def test_links_saved_and_image_links_dropped(catalog):
    sequencer = ImportSequencer(make_items(1), scrape, catalog, delays=NO_DELAYS)
    sequencer.run()

    item = sequencer.items[0]
    links = catalog.get_links(item.saved_id)
    assert [l["url"] for l in links] == ["https://gofile.io/d/film-1-2024"]
    assert catalog.get_movie(item.saved_id)["status"] == "DRAFT"


def test_existing_movie_counts_as_success(catalog):
    existing = catalog.create_movie({"title": "Film 1 (2024)"})
    sequencer = ImportSequencer(make_items(1), scrape, catalog, delays=NO_DELAYS)
    sequencer.run()

    item = sequencer.items[0]
    assert item.status == "success"
    assert item.error == "Already exists - skipped"
    assert item.saved_id == existing


def test_per_item_dedup_skips(catalog):
    scraped = []

    def tracking_scrape(url):
        scraped.append(url)
        return scrape(url)

    sequencer = ImportSequencer(make_items(2), tracking_scrape, catalog, delays=NO_DELAYS,
                                dedup_check=lambda title: title.startswith("Film 1 "))
    sequencer.run()

    assert [item.status for item in sequencer.items] == ["skipped", "success"]
    assert sequencer.items[0].error == "Duplicate"
    assert scraped == ["https://moviesite.test/movie/film-2-2024/"]


def test_dedup_index_skips_and_is_not_mutated(catalog):
    index = DedupIndex().with_title("Film 2 (2024)")
    sequencer = ImportSequencer(make_items(3), scrape, catalog, delays=NO_DELAYS, dedup_index=index)
    sequencer.run()

    assert [item.status for item in sequencer.items] == ["success", "skipped", "success"]
    assert sequencer.dedup_index is index
    assert len(index) == 1


def test_fold_imports_grows_index(catalog):
    sequencer = ImportSequencer(make_items(2), scrape, catalog, delays=NO_DELAYS,
                                dedup_index=DedupIndex(), fold_imports=True)
    sequencer.run()
    assert sequencer.dedup_index.is_duplicate("Film 1 2024 720p")
    assert len(sequencer.dedup_index) == 2


def test_pause_and_resume_continue_without_retry(catalog):
    sequencer = None
    seen = []

    def pausing_scrape(url):
        seen.append(url)
        if len(seen) == 1:
            sequencer.pause()
        return scrape(url)

    sequencer = ImportSequencer(make_items(3), pausing_scrape, catalog, delays=NO_DELAYS)
    counters = sequencer.run()

    # The in-flight item completes, nothing new starts
    assert counters == {"success": 1, "error": 0, "skipped": 0, "pending": 2, "scraping": 0}
    assert sequencer.is_paused and not sequencer.is_finished

    sequencer.resume()
    sequencer.run()
    assert [item.status for item in sequencer.items] == ["success"] * 3
    assert len(seen) == 3


def test_delays_follow_outcome(catalog):
    catalog.create_movie({"title": "Film 2 (2024)"})
    slept = []
    sequencer = ImportSequencer(
        make_items(4), scrape, catalog,
        delays={"item": 2.0, "exists": 0.5, "duplicate": 0.2},
        dedup_check=lambda title: title.startswith("Film 3 "),
        sleep=slept.append,
    )
    sequencer.run()

    # No sleep after the last item
    assert slept == [2.0, 0.5, 0.2]


def test_updates_report_each_transition(catalog):
    updates = []
    sequencer = ImportSequencer(make_items(1), scrape, catalog, delays=NO_DELAYS,
                                on_update=lambda item: updates.append(item.status))
    sequencer.run()
    assert updates == ["scraping", "success"]


def test_background_thread(catalog):
    done = []
    sequencer = ImportSequencer(make_items(2), scrape, catalog, delays=NO_DELAYS)
    thread = sequencer.start_in_thread(on_done=done.append)
    thread.join(timeout=10)

    assert not sequencer.is_running
    assert done[0]["success"] == 2


def test_to_queue_item_accepts_dicts():
    item = to_queue_item({"title": "Film", "url": "https://moviesite.test/movie/film/"})
    assert isinstance(item, ScrapingQueueItem)
    assert item.status == "pending"
    with pytest.raises(KeyError):
        to_queue_item({"title": "No url"})


def test_item_transitions_are_checked():
    item = ScrapingQueueItem("Film", "https://moviesite.test/movie/film/")
    with pytest.raises(ValueError):
        item.finish("success")
    item.start()
    item.finish("error", error="boom")
    with pytest.raises(ValueError):
        item.start()
