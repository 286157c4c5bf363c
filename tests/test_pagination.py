import pytest
from bs4 import BeautifulSoup

from conftest import SITE
from http_client import FetchError
from pagination import (
    detect_pagination,
    detect_total_count,
    page_pattern,
    page_url_strategies,
    strip_page_suffix,
    try_patterns,
)


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


def test_detect_pagination_on_listing(listing_page):
    state = detect_pagination(soup_of(listing_page), SITE + "/")
    assert state.has_next_page
    assert state.next_page_url == f"{SITE}/page/2/"
    assert state.current_page == 1
    assert state.total_pages == 3
    assert state.page_pattern == "path"


def test_current_page_read_from_url():
    html = '<div class="pagination"><a class="page-numbers" href="/page/2/">2</a></div>'
    state = detect_pagination(soup_of(html), f"{SITE}/page/4/")
    assert state.current_page == 4


def test_genre_first_page_assumes_second_page():
    state = detect_pagination(soup_of("<p>no pagination</p>"), f"{SITE}/genre/action/")
    assert state.has_next_page
    assert state.next_page_url == f"{SITE}/genre/action/page/2/"


def test_last_page_has_no_next():
    html = '<div class="pagination"><span class="page-numbers current">3</span></div>'
    state = detect_pagination(soup_of(html), f"{SITE}/page/3/")
    assert not state.has_next_page
    assert state.next_page_url is None


@pytest.mark.parametrize("url,expected", [
    (f"{SITE}/?page=3", "query"),
    (f"{SITE}/movies/page/2/", "movies-path"),
    (f"{SITE}/genre/action/page/2/", "genre-path"),
    (f"{SITE}/page/4/", "path"),
    (f"{SITE}/latest/3", "path-end"),
    (f"{SITE}/release/2025", "path"),
])
def test_page_pattern(url, expected):
    assert page_pattern(url) == expected


def test_strip_page_suffix_keeps_years():
    assert strip_page_suffix(f"{SITE}/release/2025/") == f"{SITE}/release/2025"
    assert strip_page_suffix(f"{SITE}/page/3/?x=1") == SITE
    assert strip_page_suffix(f"{SITE}/movies/page/7/") == f"{SITE}/movies"


def test_strategies_build_distinct_urls():
    strategies = page_url_strategies(SITE + "/")
    urls = [s.url_for(SITE + "/", 2) for s in strategies]
    assert strategies[0].name == "path"
    assert urls[0] == f"{SITE}/page/2/"
    assert len(urls) == len(set(urls))
    assert f"{SITE}?page=2" in urls


def test_query_listing_keeps_other_params():
    strategies = page_url_strategies(f"{SITE}/?s=dune", "query")
    assert strategies[0].url_for(f"{SITE}/?s=dune", 3) == f"{SITE}/?s=dune&page=3"


def test_try_patterns_skips_failures():
    strategies = page_url_strategies(SITE + "/")
    attempted = []

    def fetch(url):
        attempted.append(url)
        if len(attempted) == 1:
            raise FetchError(url, "Failed to fetch URL: 404", status_code=404)
        if len(attempted) == 2:
            return []
        return ["movie"]

    url, loaded = try_patterns(SITE + "/", 2, strategies, fetch)
    assert url == attempted[2]
    assert loaded == ["movie"]


def test_try_patterns_exhausted():
    def fetch(url):
        raise FetchError(url, "Failed to connect to the website")

    assert try_patterns(SITE + "/", 2, page_url_strategies(SITE + "/"), fetch) is None


def test_total_count_from_body_text():
    assert detect_total_count(soup_of("<body><span>1234 movies</span></body>")) == 1234
    html = '<body><div class="pagination"><a class="page-numbers">2</a><a class="page-numbers">5</a></div></body>'
    assert detect_total_count(soup_of(html)) == 150
