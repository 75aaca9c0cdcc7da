# scraper.py
"""
Scraper for uakino.best listings, title pages and player playlists.

This module provides async functions to scrape:
- Genre lists for movies and series
- Catalog listings (premieres, movies, series, by genre, by search query)
- Title metadata with the full episode list of every season
- Playable HLS streams, one per player, at the best available quality

Catalog, meta and stream functions never raise on scraping failures: the
player host expects an empty payload instead of an error.
"""
from httpx import AsyncClient, AsyncHTTPTransport, HTTPStatusError, RequestError, Response
from bs4 import BeautifulSoup
from datetime import datetime, timezone
from urllib.parse import quote, unquote, urljoin, urlparse
import logging
import asyncio
import re
from fastapi import HTTPException
from typing import Dict, List, Optional, Tuple

import config
from cache import GenreCache, SearchCache
from hls import find_master_playlist_url, pick_best_variant
from models import (
    BehaviorHints, CatalogResponse, CategorizedItems, ItemId, MetaDetail, MetaPreview,
    MetaResponse, PlayerSource, Stream, StreamResponse, Video,
)

logger = logging.getLogger(__name__)

UAKINO_BASE_URL = config.UAKINO_BASE_URL

PREMIERES_CATALOG_ID = f"{config.ID_PREFIX}-premieres"
MOVIES_CATALOG_ID = f"{config.ID_PREFIX}-movies"
SERIES_CATALOG_ID = f"{config.ID_PREFIX}-series"

LISTING_SELECTOR = 'div.movie-item'
PREMIERES_SELECTOR = '.top-header .swiper-slide.movie-item'
PLAYLIST_ITEMS_SELECTOR = '.playlists-items > ul > li'

ALL_GENRES_OPTION = 'всі жанри'
DEFAULT_STREAM_TITLE = 'Дивитись'
SERIES_URL_MARKERS = ('/seriesss/', '/cartoon/cartoonseries/', '/animeukr/')

SEASON_PATTERN = re.compile(r'(\d+)\s*сезон|сезон\s*(\d+)', re.IGNORECASE)
EPISODE_PATTERN = re.compile(r'(\d+)\s*серія', re.IGNORECASE)
SEASON_SUFFIX_PATTERN = re.compile(r'\s*\(\d+\s*сезон\)|(\s*\d+\s*сезон)', re.IGNORECASE)
NEWS_ID_PATTERN = re.compile(r'(\d+)-')
DLE_EDITTIME_PATTERN = re.compile(r"var dle_edittime\s*=\s*'(\d+)'")

GenreMaps = Dict[str, Dict[str, str]]

# Dependency to provide HTTP client
async def get_http_client():
    transport = AsyncHTTPTransport(retries=config.REQUEST_RETRIES)
    client = AsyncClient(
        transport=transport,
        headers={"User-Agent": config.USER_AGENT},
        timeout=config.REQUEST_TIMEOUT,
        follow_redirects=True
    )
    try:
        yield client
    finally:
        await client.aclose()

def stream_headers() -> Dict[str, str]:
    return {'Referer': UAKINO_BASE_URL, 'User-Agent': config.USER_AGENT}

# Helper to make site-relative links absolute
def absolute_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    if url.startswith('//'):
        return 'https:' + url
    if url.startswith('/'):
        return UAKINO_BASE_URL + url
    if not url.startswith(('http://', 'https://')):
        return UAKINO_BASE_URL + '/' + url
    return url

def make_item_id(item_type: str, page_url: str, prefix: str = config.ID_PREFIX) -> str:
    """
    Build an add-on id from a title page URL.
    Examples:
        ('movie', 'https://uakino.best/filmy/genre_comedy/123-title.html') -> 'uakino:movie:filmy%2Fgenre_comedy%2F123-title.html'
    """
    path = urlparse(urljoin(UAKINO_BASE_URL + '/', page_url)).path.lstrip('/')
    return f"{prefix}:{item_type}:{quote(path, safe='')}"

def parse_item_id(item_id: str) -> Optional[ItemId]:
    """
    Split '<prefix>:<type>:<encoded path>[:<season>:<episode>]'.
    Returns None for ids this add-on did not issue.
    """
    if not item_id:
        return None
    parts = item_id.split(':')
    if len(parts) < 3 or parts[0] != config.ID_PREFIX:
        return None
    prefix, item_type, encoded_path = parts[0], parts[1], parts[2]
    if item_type not in ('movie', 'series') or not encoded_path:
        return None

    season = episode = None
    if len(parts) >= 5:
        try:
            season, episode = int(parts[3]), int(parts[4])
        except ValueError:
            return None
    return ItemId(prefix=prefix, type=item_type, path=unquote(encoded_path), season=season, episode=episode)

def page_url_for(item: ItemId) -> str:
    return f"{UAKINO_BASE_URL}/{item.path}"

def find_news_id(url: str) -> Optional[str]:
    match = NEWS_ID_PATTERN.search(url or '')
    return match.group(1) if match else None

def season_number(text: str) -> Optional[int]:
    match = SEASON_PATTERN.search(text or '')
    if not match:
        return None
    return int(match.group(1) or match.group(2))

def strip_season(name: str) -> str:
    return SEASON_SUFFIX_PATTERN.sub('', name, count=1).strip()

# Fetch a URL, mapping transport and status failures to HTTPException
async def fetch(client: AsyncClient, url: str, method: str = 'GET', headers: Optional[Dict[str, str]] = None,
                data: Optional[Dict[str, str]] = None) -> Response:
    logger.debug(f"{method} {url}")
    try:
        response = await client.request(method, url, headers=headers, data=data)
        response.raise_for_status()
        return response
    except HTTPStatusError as e:
        status_code = e.response.status_code if e.response is not None else 502
        logger.error(f"HTTP error {status_code} while fetching {url}: {e}")
        if status_code == 404:
            raise HTTPException(status_code=404, detail=f"Page not found: {url}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch data: {str(e)}")
    except RequestError as e:
        logger.error(f"Network error while fetching {url}: {e}")
        raise HTTPException(status_code=503, detail=f"Network error: {str(e)}")

async def fetch_soup(client: AsyncClient, url: str, **kwargs) -> BeautifulSoup:
    response = await fetch(client, url, **kwargs)
    return BeautifulSoup(response.text, 'html.parser')

# Helper function to parse the genre <select> of a listing page
def parse_genres(soup: BeautifulSoup) -> Dict[str, str]:
    genres = {}
    for option in soup.select('select[name="o.cat"] option'):
        name = option.get_text(strip=True)
        value = option.get('value')
        if value and name and name.lower() != ALL_GENRES_OPTION:
            genres[name] = value
    return genres

async def scrape_genres(url: str, client: AsyncClient) -> Dict[str, str]:
    try:
        soup = await fetch_soup(client, url)
    except HTTPException as e:
        logger.error(f"Failed to load genres from {url}: {e.detail}")
        return {}
    genres = parse_genres(soup)
    logger.info(f"Parsed {len(genres)} genres from {url}")
    return genres

async def load_genres(client: AsyncClient, genre_cache: GenreCache) -> GenreMaps:
    """Genre maps keyed by content type, from the cache file when it is fresh."""
    cached = genre_cache.load()
    if cached:
        logger.info("Using cached genres")
        movie_genres, series_genres = cached
        return {'movie': movie_genres, 'series': series_genres}

    logger.info("Scraping genres...")
    movie_genres = await scrape_genres(f"{UAKINO_BASE_URL}/filmy/", client)
    series_genres = await scrape_genres(f"{UAKINO_BASE_URL}/seriesss/", client)
    if movie_genres or series_genres:
        try:
            genre_cache.save(movie_genres, series_genres)
        except OSError as e:
            logger.warning(f"Could not write genre cache: {e}")
    else:
        logger.warning("No genres parsed, cache left untouched")
    return {'movie': movie_genres, 'series': series_genres}

# Value of the element following a label such as "Рік виходу:"
def _labelled_value(element, label: str) -> str:
    for label_tag in element.select('.movie-desk-item, .fi-label'):
        if label in label_tag.get_text():
            value_tag = label_tag.find_next_sibling()
            if value_tag:
                return value_tag.get_text(strip=True)
    return ''

def is_series_item(title: str, page_url: Optional[str]) -> bool:
    if re.search('сезон', title, re.IGNORECASE):
        return True
    return bool(page_url) and any(marker in page_url for marker in SERIES_URL_MARKERS)

# Helper function to parse listing cards into movies and series
def parse_and_categorize_items(soup: BeautifulSoup, selector: str) -> CategorizedItems:
    logger.debug(f"Parsing items with selector: {selector!r}")
    results = CategorizedItems()

    for element in soup.select(selector):
        title_tag = element.select_one('a.movie-title')
        title = title_tag.get_text(strip=True) if title_tag else ''
        if not title:
            continue

        page_url = title_tag.get('href')
        if not page_url:
            logger.debug(f"Skipping item without link: {title}")
            continue

        item_type = 'series' if is_series_item(title, page_url) else 'movie'

        img_tag = element.find('img')
        poster = absolute_url(img_tag.get('src')) if img_tag else None

        description = ' '.join(
            tag.get_text(strip=True) for tag in element.select('.movie-text .desc-about-text, .movie-desc')
        ).strip()
        year = _labelled_value(element, 'Рік виходу:')
        imdb_rating = _labelled_value(element, 'IMDB:') or None

        season_tag = element.select_one('.full-season')
        season_info = season_tag.get_text(strip=True) if season_tag else ''
        name = f"{title} ({season_info})" if season_info else title

        meta = MetaPreview(
            id=make_item_id(item_type, page_url),
            type=item_type,
            name=name,
            poster=poster,
            description=description,
            releaseInfo=year,
            imdbRating=imdb_rating,
        )
        if item_type == 'movie':
            results.movies.append(meta)
        else:
            results.series.append(meta)

    logger.info(f"Parsed {len(results.movies)} movies and {len(results.series)} series")
    return results

def group_series_seasons(series: List[MetaPreview]) -> List[MetaPreview]:
    """Keep the first listing of each series, named without its season number."""
    grouped: Dict[str, MetaPreview] = {}
    for item in series:
        base_name = strip_season(item.name)
        if base_name not in grouped:
            grouped[base_name] = item.model_copy(update={'name': base_name})
    return list(grouped.values())

async def search_items(query: str, client: AsyncClient, search_cache: SearchCache) -> CategorizedItems:
    cached = search_cache.get(query)
    if cached is not None:
        logger.info(f"[CACHE HIT] search: {search_cache.key(query)!r}")
        return cached

    logger.info(f"[CACHE MISS] search: {search_cache.key(query)!r}")
    soup = await fetch_soup(
        client,
        f"{UAKINO_BASE_URL}/index.php?do=search",
        method='POST',
        data={'do': 'search', 'subaction': 'search', 'story': query},
    )
    results = parse_and_categorize_items(soup, LISTING_SELECTOR)
    results.series = group_series_seasons(results.series)
    logger.info(f"Grouped search results into {len(results.series)} unique series")

    search_cache.set(query, results)
    return results

def catalog_target(catalog_id: str, content_type: str, genre: Optional[str], genres: GenreMaps) -> Optional[Tuple[str, str]]:
    """(url, selector) of the listing page for a catalog request, None for an unknown genre."""
    if catalog_id == PREMIERES_CATALOG_ID:
        return UAKINO_BASE_URL, PREMIERES_SELECTOR
    if genre:
        genre_id = genres.get(content_type, {}).get(genre)
        if not genre_id:
            return None
        return f"{UAKINO_BASE_URL}/f/o.cat={genre_id}/", LISTING_SELECTOR
    if content_type == 'movie':
        return f"{UAKINO_BASE_URL}/filmy/", LISTING_SELECTOR
    return f"{UAKINO_BASE_URL}/seriesss/", LISTING_SELECTOR

async def scrape_catalog(
    content_type: str,
    catalog_id: str,
    client: AsyncClient,
    genres: GenreMaps,
    search_cache: SearchCache,
    genre: Optional[str] = None,
    search: Optional[str] = None,
) -> CatalogResponse:
    metas: List[MetaPreview] = []
    try:
        if search:
            results = await search_items(search, client, search_cache)
        else:
            target = catalog_target(catalog_id, content_type, genre, genres)
            if target is None:
                logger.warning(f"Unknown {content_type} genre: {genre!r}")
                return CatalogResponse(metas=[])
            url, selector = target
            logger.info(f"[CATALOG] {catalog_id}: fetching {url}")
            soup = await fetch_soup(client, url)
            results = parse_and_categorize_items(soup, selector)
        metas = results.for_type(content_type)
    except HTTPException as e:
        logger.error(f"[CATALOG] Failed to scrape {catalog_id}: {e.detail}")
    except Exception as e:
        logger.exception(f"[CATALOG] Unexpected error while scraping {catalog_id}: {e}")

    logger.info(f"[CATALOG] type={content_type} id={catalog_id}: {len(metas)} items")
    return CatalogResponse(metas=metas)

def find_dle_edittime(soup: BeautifulSoup) -> Optional[str]:
    for script in soup.find_all('script'):
        script_text = script.string or script.get_text() or ''
        match = DLE_EDITTIME_PATTERN.search(script_text)
        if match:
            return match.group(1)
    return None

async def get_playlist_html(news_id: str, soup: BeautifulSoup, page_url: str, client: AsyncClient) -> str:
    """
    Load the player playlist of a title page through the site's ajax endpoint.
    The endpoint needs the page's dle_edittime token and the page as Referer.
    """
    dle_edittime = find_dle_edittime(soup)
    if not dle_edittime:
        raise HTTPException(status_code=502, detail=f"dle_edittime not found on {page_url}")

    playlist_url = (
        f"{UAKINO_BASE_URL}/engine/ajax/playlists.php"
        f"?news_id={news_id}&xfield=playlist&time={dle_edittime}"
    )
    response = await fetch(client, playlist_url, headers={
        'Referer': page_url,
        'X-Requested-With': 'XMLHttpRequest',
    })
    try:
        data = response.json()
    except ValueError:
        raise HTTPException(status_code=502, detail=f"Invalid playlist response for {page_url}")
    if not isinstance(data, dict):
        raise HTTPException(status_code=502, detail=f"Unexpected playlist response for {page_url}")
    playlist_html = data.get('response')
    if not isinstance(playlist_html, str) or not playlist_html:
        raise HTTPException(status_code=404, detail=f"No playlist for {page_url}")
    return playlist_html

def parse_playlist_episodes(playlist_html: str, id_prefix: str, season_path: str, season: int,
                            released: datetime) -> List[Video]:
    soup = BeautifulSoup(playlist_html, 'html.parser')
    encoded_path = quote(season_path, safe='')
    videos = []
    for index, item in enumerate(soup.select(PLAYLIST_ITEMS_SELECTOR)):
        if not item.get('data-file'):
            continue
        title = item.get_text(strip=True)
        episode_match = EPISODE_PATTERN.search(title)
        episode = int(episode_match.group(1)) if episode_match else index + 1
        videos.append(Video(
            id=f"{id_prefix}:{encoded_path}:{season}:{episode}",
            title=title,
            season=season,
            episode=episode,
            released=released,
        ))
    return videos

def parse_title_page(soup: BeautifulSoup, item_id: str, item_type: str) -> Tuple[MetaDetail, str]:
    """Meta without videos, plus the page heading (which may carry the season)."""
    heading_tag = soup.select_one('h1[itemprop="name"]')
    heading = heading_tag.get_text(strip=True) if heading_tag else ''
    if not heading:
        heading_tag = soup.select_one('h1 span.solototle')
        heading = heading_tag.get_text(strip=True) if heading_tag else ''

    poster_tag = soup.select_one('div.film-poster img')
    poster = absolute_url(poster_tag.get('src')) if poster_tag else None

    description_tag = soup.select_one('.full-text.clearfix[itemprop="description"]')
    background_tag = soup.select_one('meta[property="og:image"]')

    meta = MetaDetail(
        id=item_id,
        type=item_type,
        name=re.sub(r'\s*\d+\s*сезон', '', heading, count=1, flags=re.IGNORECASE).strip(),
        poster=poster or '',
        background=absolute_url(background_tag.get('content')) if background_tag else None,
        description=description_tag.get_text(strip=True) if description_tag else '',
    )
    return meta, heading

async def scrape_meta(item_id: str, client: AsyncClient) -> MetaResponse:
    item = parse_item_id(item_id)
    if item is None:
        logger.warning(f"[META] Unsupported id: {item_id}")
        return MetaResponse(meta={})

    page_url = page_url_for(item)
    logger.info(f"[META] Fetching {page_url}")
    try:
        soup = await fetch_soup(client, page_url)
        meta, heading = parse_title_page(soup, item_id, item.type)
        if item.type == 'movie':
            return MetaResponse(meta=meta)

        season_pages = [(page_url, heading)]
        seen_urls = {page_url}
        for link in soup.select('ul.seasons li a'):
            season_url = absolute_url(link.get('href'))
            if season_url and season_url not in seen_urls:
                seen_urls.add(season_url)
                season_pages.append((season_url, link.get_text(strip=True)))
        logger.info(f"[META] {len(season_pages)} seasons found for '{meta.name}'")

        released = datetime.now(timezone.utc)
        id_prefix = f"{item.prefix}:{item.type}"
        semaphore = asyncio.Semaphore(config.MAX_CONCURRENT_REQUESTS)

        async def fetch_season(index: int, season_url: str, season_name: str) -> List[Video]:
            news_id = find_news_id(season_url)
            if not news_id:
                logger.debug(f"[META] No news id in {season_url}")
                return []
            try:
                async with semaphore:
                    season_soup = soup if season_url == page_url else await fetch_soup(client, season_url)
                    playlist_html = await get_playlist_html(news_id, season_soup, season_url, client)
            except HTTPException as e:
                logger.warning(f"[META] Skipping season page {season_url}: {e.detail}")
                return []
            except Exception as e:
                logger.exception(f"[META] Skipping season page {season_url}: {e}")
                return []

            season = season_number(season_name) or index + 1
            season_path = urlparse(season_url).path.lstrip('/')
            try:
                return parse_playlist_episodes(playlist_html, id_prefix, season_path, season, released)
            except Exception as e:
                logger.exception(f"[META] Skipping season page {season_url}: {e}")
                return []

        season_videos = await asyncio.gather(*[
            fetch_season(index, url, name) for index, (url, name) in enumerate(season_pages)
        ])

        # Voice-over variants list the same episode more than once
        videos: Dict[Tuple[int, int], Video] = {}
        for video in (v for season in season_videos for v in season):
            videos.setdefault((video.season, video.episode), video)
        meta.videos = sorted(videos.values(), key=lambda v: (v.season, v.episode))

        logger.info(f"[META] Collected {len(meta.videos)} episodes for '{meta.name}'")
        return MetaResponse(meta=meta)

    except HTTPException as e:
        logger.error(f"[META] Failed to scrape {page_url}: {e.detail}")
    except Exception as e:
        logger.exception(f"[META] Unexpected error while scraping {page_url}: {e}")
    return MetaResponse(meta={})

def select_player_sources(playlist_html: str, season: Optional[int] = None,
                          episode: Optional[int] = None) -> List[PlayerSource]:
    """
    Players for one episode (every voice-over of it), or all players of a movie.
    Falls back to every player when the episode cannot be located.
    """
    soup = BeautifulSoup(playlist_html, 'html.parser')
    selected = []

    if season is not None and episode is not None:
        items = soup.select(PLAYLIST_ITEMS_SELECTOR)
        has_season_headers = any('playlists-season' in (li.get('class') or []) for li in items)
        episode_title = re.compile(rf'^{episode}\s*серія', re.IGNORECASE)
        current_season = None
        for li in items:
            if 'playlists-season' in (li.get('class') or []):
                current_season = season_number(li.get_text(strip=True)) or current_season
            elif li.get('data-file'):
                if has_season_headers and current_season != season:
                    continue
                if episode_title.match(li.get_text(strip=True)):
                    selected.append(li)
        if not selected:
            logger.info(f"[STREAM] Episode S{season}E{episode} not found in playlist, using all players")

    if not selected:
        selected = soup.select('li[data-file]')

    players = []
    for li in selected:
        player_url = li.get('data-file', '').strip()
        if not player_url:
            continue
        if player_url.startswith('//'):
            player_url = 'https:' + player_url
        players.append(PlayerSource(url=player_url, title=li.get_text(strip=True) or DEFAULT_STREAM_TITLE))
    return players

async def resolve_player_stream(player: PlayerSource, client: AsyncClient) -> Optional[Tuple[int, Stream]]:
    """(height, stream) of the best HLS variant a player page links to."""
    player_page = await fetch(client, player.url, headers={'Referer': UAKINO_BASE_URL})
    master_url = find_master_playlist_url(player_page.text)
    if not master_url:
        logger.debug(f"[STREAM] No master playlist on {player.url}")
        return None

    master_playlist = await fetch(client, master_url, headers={'Referer': player.url})
    variant = pick_best_variant(master_playlist.text, master_url)
    if variant is None:
        logger.debug(f"[STREAM] No variants in {master_url}")
        return None

    return variant.height, Stream(
        name=f"UAKINO - {player.title}",
        title=f"▶️ {variant.label}",
        url=variant.url,
        behaviorHints=BehaviorHints(headers=stream_headers()),
    )

async def scrape_streams(item_id: str, client: AsyncClient) -> StreamResponse:
    item = parse_item_id(item_id)
    if item is None:
        logger.warning(f"[STREAM] Unsupported id: {item_id}")
        return StreamResponse(streams=[])

    page_url = page_url_for(item)
    try:
        news_id = find_news_id(page_url)
        if not news_id:
            raise HTTPException(status_code=400, detail=f"No news id in {page_url}")

        soup = await fetch_soup(client, page_url)
        playlist_html = await get_playlist_html(news_id, soup, page_url, client)
        players = select_player_sources(playlist_html, item.season, item.episode)
        logger.info(f"[STREAM] {len(players)} players for {item_id}")

        semaphore = asyncio.Semaphore(config.MAX_CONCURRENT_REQUESTS)

        async def resolve_with_limit(player: PlayerSource) -> Optional[Tuple[int, Stream]]:
            async with semaphore:
                try:
                    return await resolve_player_stream(player, client)
                except HTTPException as e:
                    logger.error(f"[STREAM] Failed to resolve player {player.url}: {e.detail}")
                    return None

        resolved = await asyncio.gather(*[resolve_with_limit(player) for player in players])
        ranked = sorted((r for r in resolved if r), key=lambda r: r[0], reverse=True)
        streams = [stream for _, stream in ranked]
        logger.info(f"[STREAM] {len(streams)} streams for {item_id}")
        return StreamResponse(streams=streams)

    except HTTPException as e:
        logger.error(f"[STREAM] Failed to scrape {page_url}: {e.detail}")
    except Exception as e:
        logger.exception(f"[STREAM] Unexpected error while scraping {page_url}: {e}")
    return StreamResponse(streams=[])
