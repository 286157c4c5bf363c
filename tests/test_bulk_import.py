import json

import pytest

import bulk_import
import extract_links
import http_client
import tmdb_enrich
from catalog_db import CatalogDatabase
from conftest import MOVIE_PAGE_HTML, MOVIE_PAGE_URL, MOVIE_TITLES, SITE, FakeSession, listing_html


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def run_cli(tmp_path, monkeypatch, db_path):
    monkeypatch.setattr(bulk_import, "LOG_FILE", str(tmp_path / "cli.log"))
    monkeypatch.setattr(tmdb_enrich, "TMDB_API_KEY", "")
    # cmd_import installs a SIGINT handler
    monkeypatch.setattr(bulk_import.signal, "signal", lambda *args: None)

    def run(session, *argv):
        monkeypatch.setattr(http_client, "SESSION", session)
        monkeypatch.setattr(extract_links, "SESSION", session)
        return bulk_import.main(["--db", db_path, *argv])
    return run


def test_discover_writes_json(run_cli, tmp_path):
    output = tmp_path / "out" / "movies.json"
    session = FakeSession({SITE + "/": listing_html(MOVIE_TITLES)})
    assert run_cli(session, "discover", SITE + "/", "--output", str(output)) == 0

    data = json.loads(output.read_text(encoding="utf-8"))
    assert len(data["movies"]) == 10
    assert data["stopReason"] == "no-next-page"


def test_discover_hides_catalog_movies(run_cli, tmp_path, db_path):
    CatalogDatabase(db_path).create_movie({"title": "The Silent River (2023)"})
    output = tmp_path / "movies.json"
    session = FakeSession({SITE + "/": listing_html(MOVIE_TITLES)})
    assert run_cli(session, "discover", SITE + "/", "--hide-duplicates", "--output", str(output)) == 0

    titles = [m["title"] for m in json.loads(output.read_text(encoding="utf-8"))["movies"]]
    assert len(titles) == 9
    assert not any(t.startswith("The Silent River") for t in titles)


def test_discover_unreachable_site(run_cli):
    assert run_cli(FakeSession(), "discover", SITE + "/") == 1


def test_analyze_command(run_cli, capsys):
    session = FakeSession({SITE + "/": listing_html(MOVIE_TITLES, next_url=f"{SITE}/page/2/")})
    assert run_cli(session, "analyze", SITE + "/") == 0
    assert "pagination_calc" in capsys.readouterr().out


def test_scrape_command(run_cli, capsys):
    assert run_cli(FakeSession({MOVIE_PAGE_URL: MOVIE_PAGE_HTML}), "scrape", MOVIE_PAGE_URL) == 0
    assert "Test Movie (2024)" in capsys.readouterr().out

    assert run_cli(FakeSession(), "scrape", MOVIE_PAGE_URL) == 1


def test_import_command(run_cli, db_path):
    session = FakeSession({
        SITE + "/": listing_html(MOVIE_TITLES),
        f"{SITE}/movie/the-silent-river-2023/": MOVIE_PAGE_HTML,
    })
    assert run_cli(session, "import", SITE + "/", "--count", "1") == 0

    stats = CatalogDatabase(db_path).get_stats()
    assert stats["drafts"] == 1
    assert stats["download_links"] == 2


def test_stats_command(run_cli, db_path, capsys):
    catalog = CatalogDatabase(db_path)
    movie_id = catalog.create_movie({"title": "Dune (2021)"})
    catalog.add_download_link(movie_id, "https://pixeldrain.com/u/dune", "1080p", "English")

    assert run_cli(FakeSession(), "stats") == 0
    out = capsys.readouterr().out
    assert "Total movies" in out
    assert "Movies without links" in out


def test_no_command_prints_help(run_cli):
    assert run_cli(FakeSession()) == 1
