"""Shared fixtures: a URL-keyed fake requests session and HTML pages."""

import pytest
import requests

SITE = "https://moviesite.test"

MOVIE_TITLES = [
    ("the-silent-river-2023", "The Silent River (2023) Hindi 720p"),
    ("midnight-express-2022", "Midnight Express (2022) Dual Audio 1080p"),
    ("broken-arrows-2024", "Broken Arrows (2024) WEB-DL 480p"),
    ("last-light-2021", "Last Light (2021) Hindi 720p"),
    ("iron-coast-2024", "Iron Coast (2024) 1080p"),
    ("paper-kings-2020", "Paper Kings (2020) Hindi 480p"),
    ("desert-wind-2023", "Desert Wind (2023) Tamil 720p"),
    ("glass-harbor-2022", "Glass Harbor (2022) 1080p"),
    ("echo-valley-2024", "Echo Valley (2024) Hindi 720p"),
    ("red-meridian-2019", "Red Meridian (2019) 720p"),
]

SECOND_PAGE_TITLES = [
    (f"second-page-movie-{i}-2024", f"Second Page Movie {i} (2024) 720p") for i in range(1, 11)
]


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, json_data=None, headers=None):
        self.text = text
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {"Content-Type": "text/html; charset=UTF-8"}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """Stands in for requests.Session; serves canned responses by URL."""

    def __init__(self, pages=None, fallback=None):
        self.pages = dict(pages or {})
        self.fallback = fallback
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None, verify=None, allow_redirects=True):
        self.calls.append((url, params))
        resp = self.pages.get(url)
        if resp is None and self.fallback is not None:
            resp = self.fallback(url, params)
        if resp is None:
            raise requests.exceptions.ConnectionError(f"No route to {url}")
        if isinstance(resp, str):
            resp = FakeResponse(resp)
        return resp

    def urls(self):
        return [url for url, _ in self.calls]


def movie_card(slug: str, title: str) -> str:
    url = f"{SITE}/movie/{slug}/"
    return f"""
    <article class="post movie-item">
      <a href="{url}" title="{title}"><img src="{SITE}/wp-content/uploads/{slug}.jpg" alt="{title}"></a>
      <h2 class="entry-title"><a href="{url}">{title}</a></h2>
    </article>"""


def listing_html(movies, next_url=None, pages=(2, 3)) -> str:
    cards = "".join(movie_card(slug, title) for slug, title in movies)
    pagination = ""
    if next_url:
        numbers = "".join(f'<a class="page-numbers" href="{SITE}/page/{n}/">{n}</a>' for n in pages)
        pagination = f"""
        <div class="pagination">
          {numbers}
          <a class="next page-numbers" href="{next_url}">Next »</a>
        </div>"""
    return f"""
    <html>
    <head><title>Movie Site - Latest Movies</title></head>
    <body>
      <header><a href="{SITE}/">Movie Site</a></header>
      <main>
        <div class="content user-links">
          <a href="{SITE}/login/">Login</a>
          <a href="{SITE}/wp-login.php?action=register">Register a new account</a>
          <a href="{SITE}/my-account/profile/">My Account</a>
        </div>
        {cards}
        {pagination}
      </main>
    </body>
    </html>"""


MOVIE_PAGE_URL = f"{SITE}/test-movie-2024-hindi-720p/"
OG_IMAGE = f"{SITE}/wp-content/uploads/2024/01/test-movie-2024.jpg"

MOVIE_PAGE_HTML = f"""
<html>
<head>
  <title>Test Movie (2024) Hindi 720p - Movie Site</title>
  <meta property="og:image" content="{OG_IMAGE}">
  <meta name="description" content="Test Movie 2024 download.">
</head>
<body>
  <header><a href="{SITE}/">Movie Site</a></header>
  <article>
    <h1 class="entry-title">Test Movie (2024) Hindi 720p</h1>
    <div class="entry-content">
      <p><strong>Storyline:</strong> A retired detective is pulled back into one last case when an old
      friend disappears, and the trail leads him across the country to a town that keeps its secrets.</p>
      <p>Genre: Action, Thriller</p>
      <p>Director: Jane Doe</p>
      <p>IMDb Rating: 7.4/10</p>
      <p><a href="https://www.mediafire.com/file/abc123/test.movie.480p.mkv/file">Download 480p Mediafire</a></p>
      <p><a href="https://drive.google.com/file/d/1AbCdEf/view">Download 720p Google Drive</a></p>
      <p><a href="{SITE}/links/test-movie-1080p/">Download 1080p Server 3</a></p>
    </div>
  </article>
</body>
</html>"""


@pytest.fixture
def listing_page():
    return listing_html(MOVIE_TITLES, next_url=f"{SITE}/page/2/")


@pytest.fixture
def movie_session():
    return FakeSession({MOVIE_PAGE_URL: MOVIE_PAGE_HTML})


@pytest.fixture
def catalog(tmp_path):
    from catalog_db import CatalogDatabase
    return CatalogDatabase(str(tmp_path / "catalog.db"))
