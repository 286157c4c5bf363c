import pytest
from bs4 import BeautifulSoup

import extract_links
import extract_movie as extract_movie_module
from conftest import MOVIE_PAGE_HTML, MOVIE_PAGE_URL, OG_IMAGE, SITE, FakeResponse, FakeSession
from extract_links import (
    LinkCollector,
    collect_download_links,
    detect_language,
    detect_quality,
    extract_download_links,
    resolve_redirect_url,
)
from extract_media import (
    extract_backdrop_url,
    extract_poster_url,
    extract_screenshots,
    extract_trailer_url,
    youtube_watch_url,
)
from extract_movie import (
    NotAMoviePage,
    clean_description,
    extract_director,
    extract_movie,
    extract_title,
    scrape_movie_url,
)
from http_client import FetchError
from models import EnrichmentResult


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


def test_movie_page_end_to_end(movie_session):
    movie = scrape_movie_url(MOVIE_PAGE_URL, session=movie_session)

    assert movie.poster_url == OG_IMAGE
    assert [link.quality for link in movie.download_links] == ["480p", "720p"]
    assert all(SITE not in link.url for link in movie.download_links)
    assert movie.download_links[0].url.startswith("https://www.mediafire.com/")
    assert movie.download_links[1].url.startswith("https://drive.google.com/")


def test_few_links_follow_same_site_download_page(movie_session):
    scrape_movie_url(MOVIE_PAGE_URL, session=movie_session)
    # The page fails to load; the movie is still returned
    assert f"{SITE}/links/test-movie-1080p/" in movie_session.urls()


def test_download_page_links_are_merged():
    session = FakeSession({
        MOVIE_PAGE_URL: MOVIE_PAGE_HTML,
        f"{SITE}/links/test-movie-1080p/": """
            <html><body>
              <a href="https://pixeldrain.com/u/xyz">1080p Pixeldrain</a>
              <a href="https://moviesite.test/">Home</a>
            </body></html>""",
    })
    movie = scrape_movie_url(MOVIE_PAGE_URL, session=session)
    assert [link.quality for link in movie.download_links] == ["480p", "720p", "1080p"]


def test_movie_fields(movie_session):
    movie = scrape_movie_url(MOVIE_PAGE_URL, session=movie_session)

    assert movie.title == "Test Movie (2024)"
    assert "retired detective" in movie.description
    assert movie.director == "Jane Doe"
    assert movie.release_year == "2024"
    # No backdrop on the page: the poster stands in
    assert movie.backdrop_url == OG_IMAGE
    assert "Test Movie (2024) download" in movie.keywords


def test_listing_page_is_rejected():
    cards = "".join(f'<div class="post"><a href="{SITE}/movie/film-{i}/">Film {i}</a></div>' for i in range(25))
    session = FakeSession({SITE + "/": f"<html><body>{cards}</body></html>"})
    with pytest.raises(NotAMoviePage):
        scrape_movie_url(SITE + "/", session=session)


def test_fetch_error_propagates():
    with pytest.raises(FetchError):
        scrape_movie_url(f"{SITE}/missing-movie-2024/", session=FakeSession())


def test_enrichment_is_applied(movie_session):
    class StubTMDB:
        def __init__(self):
            self.calls = []

        def enrich(self, title, year=None):
            self.calls.append((title, year))
            return EnrichmentResult(
                poster_url="https://image.tmdb.org/t/p/w500/poster.jpg",
                backdrop_url="https://image.tmdb.org/t/p/original/backdrop.jpg",
                rating="8.1",
                genres=["Drama"],
            )

    tmdb = StubTMDB()
    movie = scrape_movie_url(MOVIE_PAGE_URL, session=movie_session, tmdb=tmdb)

    assert tmdb.calls == [("Test Movie (2024)", "2024")]
    assert movie.poster_url.endswith("/w500/poster.jpg")
    assert movie.backdrop_url.endswith("/original/backdrop.jpg")
    assert movie.rating == "8.1"
    assert movie.genres == ["Drama"]


# --- Fields ---

def test_title_skips_header_heading():
    html = """
    <header><h1>Movie Site</h1></header>
    <article><h1 class="entry-title">Ocean Deep (2022) Hindi 1080p | Moviesite</h1></article>"""
    assert extract_title(soup_of(html), f"{SITE}/ocean-deep-2022/") == "Ocean Deep (2022)"


def test_poster_prefers_tmdb_image_over_meta():
    html = f"""
    <head><meta property="og:image" content="{OG_IMAGE}"></head>
    <body><img src="https://image.tmdb.org/t/p/w500/abc.jpg"></body>"""
    assert extract_poster_url(soup_of(html), SITE) == "https://image.tmdb.org/t/p/w500/abc.jpg"


def test_poster_meta_rejects_resized_thumbnails():
    html = f"""
    <head><meta property="og:image" content="{SITE}/uploads/movie-150x225.jpg"></head>
    <body><div class="poster"><img src="{SITE}/uploads/movie-full.jpg"></div></body>"""
    assert extract_poster_url(soup_of(html), SITE) == f"{SITE}/uploads/movie-full.jpg"


def test_poster_scoring_prefers_portrait():
    html = f"""
    <img src="{SITE}/a-wide.jpg" width="800" height="300">
    <img src="{SITE}/b-tall.jpg" width="300" height="450">"""
    assert extract_poster_url(soup_of(html), SITE) == f"{SITE}/b-tall.jpg"


def test_backdrop_skips_logos_and_icons():
    logo_and_poster = f"""
    <img src="{SITE}/wp-content/uploads/site-logo.png" width="600" height="90">
    <img src="{SITE}/wp-content/uploads/poster.jpg" width="300" height="450">"""
    assert extract_backdrop_url(soup_of(logo_and_poster), SITE) == ""

    html = f"""
    <div class="hero"><img src="{SITE}/wp-content/uploads/site-logo.png"></div>
    <div style="background-image: url('{SITE}/uploads/icon-bg.png')"></div>
    {logo_and_poster}
    <img src="{SITE}/uploads/banner-wide.jpg" width="1280" height="720">"""
    assert extract_backdrop_url(soup_of(html), SITE) == f"{SITE}/uploads/banner-wide.jpg"


def test_screenshots_from_gallery_links():
    html = f"""
    <div class="screenshots">
      <a href="{SITE}/shots/full-1.jpg"><img src="{SITE}/shots/small-1.jpg"></a>
      <img src="{SITE}/shots/shot-2.png">
      <img src="{SITE}/logo.png">
    </div>"""
    shots = extract_screenshots(soup_of(html), SITE)
    assert f"{SITE}/shots/full-1.jpg" in shots
    assert f"{SITE}/shots/shot-2.png" in shots
    assert f"{SITE}/logo.png" not in shots


def test_trailer_from_embed():
    html = '<iframe src="https://www.youtube.com/embed/dQw4w9WgXcQ?rel=0"></iframe>'
    assert extract_trailer_url(soup_of(html)) == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def test_youtube_watch_url_variants():
    assert youtube_watch_url("https://youtu.be/dQw4w9WgXcQ") == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert youtube_watch_url("https://vimeo.com/123") == ""


def test_director_from_content_markup():
    html = '<div class="entry-content"><p>Director: <strong>Ava Stone</strong></p></div>'
    assert extract_director(soup_of(html)) == "Ava Stone"


def test_clean_description_drops_promotion():
    text = "Watch online and free download latest movies | moviesite best hd movies online free"
    assert clean_description(text, SITE) == ""


def test_clean_description_strips_urls():
    text = "A young chef opens a restaurant in a small village. Visit www.moviesite.test for more."
    assert "www." not in clean_description(text, SITE)


# --- Download links ---

def test_quality_detection_order():
    assert detect_quality("Download 480p", "") == "480p"
    assert detect_quality("1080p x265", "") == "1080p"
    assert detect_quality("4K HDR", "") == "4K"
    assert detect_quality("Fast Server", "https://host.test/file") == "720p"
    assert detect_quality("Server", "https://host.test/movie.2160p.mkv") == "4K"


def test_language_detection():
    assert detect_language("English 720p") == "English"
    assert detect_language("Dual Audio Hindi") == "Dual Audio"
    assert detect_language("Tamil HDRip") == "Tamil"
    assert detect_language("720p") == "Hindi"


def test_collector_excludes_own_site_and_subdomains():
    collector = LinkCollector(f"{SITE}/movie-page/")
    assert not collector.add(f"{SITE}/another-movie/", "Download")
    assert not collector.add("https://cdn.moviesite.test/file.mkv", "Download")
    assert not collector.add("/relative/link", "Download")
    assert collector.add("https://gofile.io/d/abc", "Download 1080p")
    assert not collector.add("https://gofile.io/d/abc", "Download again")
    assert [link.quality for link in collector.links] == ["1080p"]


def test_glued_href_resolves_to_external_url():
    html = f'<p><a href="{SITE}/ https://hubcloud.test/drive/xyz">Download 720p</a></p>'
    links = extract_download_links(soup_of(html), f"{SITE}/movie-2024/")
    assert [link.url for link in links] == ["https://hubcloud.test/drive/xyz"]


def test_links_sorted_by_quality_and_stable():
    html = """
    <p><a href="https://host-a.test/f1">Download 1080p</a></p>
    <p><a href="https://host-b.test/f2">Download 720p Server 1</a></p>
    <p><a href="https://host-c.test/f3">Download 480p</a></p>
    <p><a href="https://host-d.test/f4">Download 720p Server 2</a></p>"""
    links = extract_download_links(soup_of(html), f"{SITE}/movie-2024/")
    assert [link.url for link in links] == [
        "https://host-c.test/f3",
        "https://host-b.test/f2",
        "https://host-d.test/f4",
        "https://host-a.test/f1",
    ]


def test_button_with_data_href():
    html = '<button class="btn" data-href="https://pixeldrain.com/u/abc">Download 1080p</button>'
    links = extract_download_links(soup_of(html), f"{SITE}/movie-2024/")
    assert links[0].url == "https://pixeldrain.com/u/abc"
    assert links[0].quality == "1080p"


def test_extract_movie_without_fetching():
    movie = extract_movie(soup_of(MOVIE_PAGE_HTML), MOVIE_PAGE_URL)
    assert movie.url == MOVIE_PAGE_URL
    assert len(movie.download_links) == 2


def test_page_with_only_own_site_links_has_no_downloads():
    html = f"""
    <div class="entry-content">
      <p><a href="{SITE}/another-movie-2023/">Download 720p</a></p>
      <p><a href="/links/dune-1080p/">Download 1080p Server 2</a></p>
      <p><a href="https://cdn.moviesite.test/files/dune.mkv">Download 480p</a></p>
      <button class="btn" data-href="{SITE}/go/dune">Download Now</button>
    </div>"""
    assert extract_download_links(soup_of(html), f"{SITE}/dune-2021/") == []


def test_scrape_extracts_main_page_links_once(movie_session, monkeypatch):
    calls = []
    original = extract_links.extract_download_links

    def counting(soup, url):
        calls.append(url)
        return original(soup, url)

    monkeypatch.setattr(extract_links, "extract_download_links", counting)
    monkeypatch.setattr(extract_movie_module, "extract_download_links", counting)
    movie = scrape_movie_url(MOVIE_PAGE_URL, session=movie_session)

    assert calls == [MOVIE_PAGE_URL]
    assert len(movie.download_links) == 2


# --- Shorteners ---

def test_shortener_resolved_from_location_header():
    session = FakeSession({
        "https://ouo.io/Ab12": FakeResponse(status_code=302, headers={"Location": "https://gofile.io/d/real"}),
    })
    assert resolve_redirect_url("https://ouo.io/Ab12", session=session) == "https://gofile.io/d/real"


def test_shortener_resolved_from_landing_page():
    html = """
    <a href="https://ouo.io/other">Skip ad</a>
    <a href="https://t.me/joinchannel">Join our telegram</a>
    <a class="btn" href="https://pixeldrain.com/u/xyz">Get Link</a>"""
    session = FakeSession({"https://shrinkme.io/x": html})
    assert resolve_redirect_url("https://shrinkme.io/x", session=session) == "https://pixeldrain.com/u/xyz"


def test_unresolved_links_are_kept():
    assert resolve_redirect_url("https://ouo.io/gone", session=FakeSession()) == "https://ouo.io/gone"

    session = FakeSession({"https://za.gl/y": "<p>Please wait...</p>"})
    assert resolve_redirect_url("https://za.gl/y", session=session) == "https://za.gl/y"

    session = FakeSession()
    assert resolve_redirect_url("https://gofile.io/d/abc", session=session) == "https://gofile.io/d/abc"
    assert session.calls == []


def test_collected_shortener_links_are_resolved():
    html = """
    <div class="entry-content">
      <p><a href="https://ouo.io/Ab12">Download 720p</a></p>
      <p><a href="https://gofile.io/d/real">Download 720p Mirror</a></p>
      <p><a href="https://pixeldrain.com/u/p1">Download 1080p</a></p>
    </div>"""
    session = FakeSession({
        "https://ouo.io/Ab12": FakeResponse(status_code=302, headers={"Location": "https://gofile.io/d/real"}),
    })
    links = collect_download_links(soup_of(html), f"{SITE}/dune-2021/", session=session)

    assert [link.url for link in links] == ["https://gofile.io/d/real", "https://pixeldrain.com/u/p1"]
    assert links[0].quality == "720p"
