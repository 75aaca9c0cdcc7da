"""Canned uakino.best pages and a mock transport that serves them."""
import json

import httpx

BASE = "https://uakino.best"

LISTING_PAGE = """
<html><body>
<form><select name="o.cat">
  <option value="">Всі жанри</option>
  <option value="5">Комедія</option>
  <option value="7">Драма</option>
  <option value="9"></option>
</select></form>
<div class="movie-item short-item">
  <a class="movie-title" href="https://uakino.best/filmy/genre_comedy/12345-duna.html">Дюна</a>
  <img src="/uploads/posters/duna.jpg">
  <div class="movie-text"><div class="desc-about-text">Пустельна планета.</div></div>
  <div class="movie-desk-item">Рік виходу:</div><div class="deck-value">2021</div>
  <div class="movie-desk-item">IMDB:</div><div class="deck-value">8.0</div>
</div>
<div class="movie-item short-item">
  <a class="movie-title" href="/seriesss/drama_series/222-vidmak.html">Відьмак</a>
  <img src="https://cdn.example/vidmak.jpg">
  <div class="full-season">1 сезон</div>
</div>
<div class="movie-item short-item">
  <a class="movie-title" href="/seriesss/drama_series/333-vidmak-2.html">Відьмак 2 сезон</a>
</div>
<div class="movie-item short-item">
  <a class="movie-title" href="/cartoon/cartoonseries/444-mult.html">Мультсеріал</a>
</div>
<div class="movie-item short-item"><a class="movie-title" href="/filmy/1-empty.html"> </a></div>
</body></html>
"""

PREMIERES_PAGE = """
<html><body>
<div class="top-header">
  <div class="swiper-slide movie-item">
    <a class="movie-title" href="/filmy/555-premiera.html">Прем'єра</a>
  </div>
</div>
<div class="movie-item"><a class="movie-title" href="/filmy/666-other.html">Інший</a></div>
</body></html>
"""

MOVIE_PAGE = """
<html><head>
<meta property="og:image" content="https://uakino.best/uploads/duna-bg.jpg">
</head><body>
<h1 itemprop="name">Дюна</h1>
<div class="film-poster"><img src="/uploads/posters/duna.jpg"></div>
<div class="full-text clearfix" itemprop="description">Пустельна планета Арракіс.</div>
<script>var dle_root = '/'; var dle_edittime = '1700000000';</script>
</body></html>
"""

SERIES_PAGE = """
<html><head>
<meta property="og:image" content="/uploads/vidmak-bg.jpg">
</head><body>
<h1 itemprop="name">Відьмак 1 сезон</h1>
<div class="film-poster"><img src="/uploads/vidmak.jpg"></div>
<div class="full-text clearfix" itemprop="description">Геральт з Рівії.</div>
<ul class="seasons">
  <li><a href="https://uakino.best/seriesss/drama_series/222-vidmak.html">1 сезон</a></li>
  <li><a href="/seriesss/drama_series/333-vidmak-2.html">2 сезон</a></li>
</ul>
<script>var dle_edittime = '1700000001';</script>
</body></html>
"""

SERIES_SEASON_2_PAGE = """
<html><body>
<h1 itemprop="name">Відьмак 2 сезон</h1>
<script>var dle_edittime = '1700000002';</script>
</body></html>
"""

MOVIE_PLAYLIST = """
<div class="playlists-ajax"><div class="playlists-items"><ul>
  <li data-file="//player.one/embed/a">Плеєр 1</li>
  <li data-file="https://player.two/embed/b">Плеєр 2</li>
  <li data-file="https://player.broken/embed/c"></li>
</ul></div></div>
"""

SEASON_1_PLAYLIST = """
<div class="playlists-items"><ul>
  <li data-file="//player.one/s1e1">1 серія</li>
  <li data-file="//player.one/s1e2">2 серія</li>
  <li data-file="//player.two/s1e1">1 серія</li>
</ul></div>
"""

SEASON_2_PLAYLIST = """
<div class="playlists-items"><ul>
  <li data-file="//player.one/s2e1">1 серія</li>
</ul></div>
"""

PLAYER_ONE_PAGE = '<script>new Playerjs({file:"https://cdn.one/hls/master.m3u8"});</script>'
PLAYER_TWO_PAGE = "<script>var source = 'https://cdn.two/master.m3u8';</script>"

CDN_ONE_MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=1500000,RESOLUTION=1280x720
v720/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=3000000,RESOLUTION=1920x1080
v1080/index.m3u8
"""

CDN_TWO_MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=900000,RESOLUTION=854x480
https://cdn.two/480/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=12000000,RESOLUTION=3840x2160
https://cdn.two/2160/index.m3u8
"""

PLAYLISTS = {
    '12345': MOVIE_PLAYLIST,
    '222': SEASON_1_PLAYLIST,
    '333': SEASON_2_PLAYLIST,
}

PAGES = {
    BASE: PREMIERES_PAGE,
    f"{BASE}/filmy/": LISTING_PAGE,
    f"{BASE}/seriesss/": LISTING_PAGE,
    f"{BASE}/f/o.cat=5/": LISTING_PAGE,
    f"{BASE}/filmy/genre_comedy/12345-duna.html": MOVIE_PAGE,
    f"{BASE}/seriesss/drama_series/222-vidmak.html": SERIES_PAGE,
    f"{BASE}/seriesss/drama_series/333-vidmak-2.html": SERIES_SEASON_2_PAGE,
    "https://player.one/embed/a": PLAYER_ONE_PAGE,
    "https://player.two/embed/b": PLAYER_TWO_PAGE,
    "https://cdn.one/hls/master.m3u8": CDN_ONE_MASTER,
    "https://cdn.two/master.m3u8": CDN_TWO_MASTER,
}


class FakeSite:
    """Serves PAGES and PLAYLISTS; records every request it receives."""

    def __init__(self, pages=None, playlists=None):
        self.pages = dict(PAGES if pages is None else pages)
        self.playlists = dict(PLAYLISTS if playlists is None else playlists)
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).rstrip('/') if request.url.path == '/' else str(request.url)

        if request.url.path == '/engine/ajax/playlists.php':
            news_id = request.url.params.get('news_id')
            if news_id not in self.playlists:
                return httpx.Response(404)
            playlist = self.playlists[news_id]
            # Non-string entries are served as the raw JSON body
            body = {'success': True, 'response': playlist} if isinstance(playlist, str) else playlist
            return httpx.Response(200, text=json.dumps(body))

        if request.method == 'POST' and request.url.path == '/index.php':
            return httpx.Response(200, text=LISTING_PAGE)

        if url in self.pages:
            return httpx.Response(200, text=self.pages[url])
        return httpx.Response(500, text="upstream error")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def requested(self, path: str):
        return [r for r in self.requests if r.url.path == path]
