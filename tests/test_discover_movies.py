from bs4 import BeautifulSoup

from conftest import MOVIE_TITLES, SECOND_PAGE_TITLES, SITE, FakeResponse, FakeSession, listing_html
from dedup import DedupIndex
from discover_movies import (
    discover,
    discover_movies_on_page,
    discover_years,
    filter_by_year,
    generate_year_links,
    scan_listing,
)
from models import DiscoveredCandidate
from page_filter import is_content_page


def test_listing_page_yields_only_movie_candidates(listing_page):
    soup = BeautifulSoup(listing_page, "html.parser")
    movies = discover_movies_on_page(soup, SITE + "/")

    assert len(movies) == 10
    assert [m.url for m in movies] == [f"{SITE}/movie/{slug}/" for slug, _ in MOVIE_TITLES]
    for m in movies:
        assert "/page/" not in m.url
        assert "login" not in m.url and "account" not in m.url
        assert is_content_page(m.url, m.title)


def test_candidate_fields(listing_page):
    soup = BeautifulSoup(listing_page, "html.parser")
    first = discover_movies_on_page(soup, SITE + "/")[0]

    assert first.title == "The Silent River (2023) Hindi"
    assert first.year == "2023"
    assert first.poster_url == f"{SITE}/wp-content/uploads/the-silent-river-2023.jpg"


def test_other_hosts_are_ignored():
    html = """
    <main>
      <h2><a href="https://elsewhere.test/movie/foreign-film-2024/">Foreign Film (2024)</a></h2>
      <h2><a href="https://moviesite.test/movie/local-film-2024/">Local Film (2024)</a></h2>
    </main>"""
    movies = discover_movies_on_page(BeautifulSoup(html, "html.parser"), SITE + "/")
    assert [m.title for m in movies] == ["Local Film (2024)"]


def test_fallback_pass_scans_every_anchor():
    html = '<div><span><a href="https://moviesite.test/films/quiet-storm-2022/">Quiet Storm 2022</a></span></div>'
    movies = discover_movies_on_page(BeautifulSoup(html, "html.parser"), SITE + "/")
    assert len(movies) == 1
    assert movies[0].year == "2022"


def test_discover_years_sorted_descending():
    html = """
    <ul class="years">
      <li><a href="/year/2022/">2022 (150)</a></li>
      <li><a href="/year/2024/">2024 (80)</a></li>
      <li><a href="/year/2023/">2023</a></li>
    </ul>"""
    years = discover_years(BeautifulSoup(html, "html.parser"), SITE)
    assert [y.year for y in years] == ["2024", "2023", "2022"]
    assert years[0].count == 80
    assert years[1].count == 0
    assert years[0].url == f"{SITE}/year/2024/"


def test_generate_year_links():
    years = generate_year_links(SITE + "/", current_year=2025)
    assert len(years) == 11
    assert years[0].url == f"{SITE}/year/2025"
    assert years[-1].year == "2015"


def test_filter_by_year_on_filtered_listing():
    candidates = [
        DiscoveredCandidate("Alpha (2023)", f"{SITE}/movie/alpha-2023/", "2023"),
        DiscoveredCandidate("Beta (2021)", f"{SITE}/movie/beta-2021/", "2021"),
    ]
    kept = filter_by_year(candidates, 2023, f"{SITE}/genre/action/?year=2023")
    assert [c.title for c in kept] == ["Alpha (2023)"]


def test_filter_by_year_skipped_on_year_archive():
    candidates = [DiscoveredCandidate("Beta (2021)", f"{SITE}/movie/beta-2021/", "2021")]
    assert filter_by_year(candidates, 2023, f"{SITE}/release/2023/") == candidates


def test_scan_listing(listing_page):
    session = FakeSession({SITE + "/": listing_page})
    listing = scan_listing(SITE + "/", session=session)
    assert len(listing.candidates) == 10
    assert listing.pagination.has_next_page
    assert listing.pagination.next_page_url == f"{SITE}/page/2/"
    assert listing.page_title == "Movie Site - Latest Movies"


# --- Loop ---

def test_discover_follows_pages_until_no_next(listing_page):
    session = FakeSession({
        SITE + "/": listing_page,
        f"{SITE}/page/2/": listing_html(SECOND_PAGE_TITLES),
    })
    result = discover(SITE + "/", session=session, page_delay=0)

    assert len(result.candidates) == 20
    assert result.pages_fetched == 2
    assert result.stop_reason == "no-next-page"


def test_discover_stops_at_target(listing_page):
    session = FakeSession({SITE + "/": listing_page})
    result = discover(SITE + "/", target_count=4, session=session, page_delay=0)

    assert len(result.candidates) == 4
    assert result.stop_reason == "target-reached"
    assert session.urls() == [SITE + "/"]


def test_discover_stops_after_consecutive_empty_pages(listing_page):
    def repeat_first_page(url, params):
        page = int(url.rstrip("/").rsplit("/", 1)[-1])
        return listing_html(MOVIE_TITLES, next_url=f"{SITE}/page/{page + 1}/")

    session = FakeSession({SITE + "/": listing_page}, fallback=repeat_first_page)
    result = discover(SITE + "/", session=session, page_delay=0)

    assert result.stop_reason == "consecutive-empty"
    assert len(result.candidates) == 10
    assert result.pages_fetched == 6


def test_discover_walks_past_a_page_without_movies(listing_page):
    session = FakeSession({
        SITE + "/": listing_page,
        f"{SITE}/page/2/": listing_html([], next_url=f"{SITE}/page/3/"),
        f"{SITE}/page/3/": listing_html(SECOND_PAGE_TITLES),
    })
    result = discover(SITE + "/", session=session, page_delay=0)

    assert len(result.candidates) == 20
    assert result.pages_fetched == 3
    assert result.stop_reason == "no-next-page"


def test_discover_ends_when_first_page_has_no_movies():
    session = FakeSession({SITE + "/": "<html><body><p>Nothing here</p></body></html>"})
    result = discover(SITE + "/", session=session, page_delay=0)

    assert result.stop_reason == "empty-page"
    assert result.candidates == []
    assert session.urls() == [SITE + "/"]


def test_discover_tries_alternate_urls_after_failure(listing_page):
    session = FakeSession({
        SITE + "/": listing_page,
        f"{SITE}/page/2/": FakeResponse("Server error", status_code=500),
        f"{SITE}?page=2": listing_html(SECOND_PAGE_TITLES),
    })
    result = discover(SITE + "/", session=session, page_delay=0)

    assert len(result.candidates) == 20
    assert f"{SITE}?page=2" in session.urls()


def test_discover_never_refetches_a_page(listing_page):
    session = FakeSession({
        SITE + "/": listing_page,
        f"{SITE}/page/2/": listing_html(SECOND_PAGE_TITLES, next_url=f"{SITE}/page/2/"),
    })
    discover(SITE + "/", session=session, page_delay=0, max_consecutive_empty=2)
    assert session.urls().count(f"{SITE}/page/2/") == 1


def test_discover_hides_known_duplicates(listing_page):
    session = FakeSession({SITE + "/": listing_page})
    index = DedupIndex().with_title("The Silent River (2023)")
    result = discover(SITE + "/", target_count=5, session=session, dedup_index=index,
                      hide_duplicates=True, page_delay=0)

    titles = [c.title for c in result.candidates]
    assert "The Silent River (2023) Hindi" not in titles
    assert len(titles) == 5
    assert result.dedup_index is index
