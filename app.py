#  app.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Depends, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
from urllib.parse import parse_qsl, quote
from httpx import AsyncClient, AsyncHTTPTransport

import config
from cache import GenreCache, SearchCache
from models import (
    CatalogResponse, ErrorResponse, Manifest, ManifestCatalog, ManifestExtra, MetaResponse, StreamResponse,
)
from scraper import (
    MOVIES_CATALOG_ID,
    PREMIERES_CATALOG_ID,
    SERIES_CATALOG_ID,
    get_http_client,
    load_genres,
    scrape_catalog,
    scrape_meta,
    scrape_streams,
)

config.configure_logging()
logger = logging.getLogger(__name__)

SUPPORTED_TYPES = {'movie', 'series'}
CATALOG_IDS = {PREMIERES_CATALOG_ID, MOVIES_CATALOG_ID, SERIES_CATALOG_ID}

genre_cache = GenreCache(config.GENRE_CACHE_PATH, config.GENRE_CACHE_TTL_SECONDS)
search_cache = SearchCache(config.SEARCH_CACHE_TTL_SECONDS, config.SEARCH_CACHE_MAX_ENTRIES)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Unsupported content type"},
    404: {"model": ErrorResponse, "description": "Unknown catalog"},
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    transport = AsyncHTTPTransport(retries=config.REQUEST_RETRIES)
    async with AsyncClient(
        transport=transport,
        headers={"User-Agent": config.USER_AGENT},
        timeout=config.REQUEST_TIMEOUT,
        follow_redirects=True,
    ) as client:
        app.state.genres = await load_genres(client, genre_cache)
    logger.info(f"Add-on ready. Install it in Stremio: http://127.0.0.1:{config.PORT}/manifest.json")
    yield

# Initialize FastAPI app
app = FastAPI(
    title="uakino.best Stremio add-on",
    description="Catalogs, metadata and HLS streams scraped from uakino.best, served over the Stremio add-on protocol.",
    version=config.ADDON_VERSION,
    lifespan=lifespan,
)
app.state.genres = {'movie': {}, 'series': {}}

# The player host fetches add-on resources from a web origin
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"], allow_headers=["*"])

def get_genres(request: Request) -> dict:
    return request.app.state.genres

def get_search_cache() -> SearchCache:
    return search_cache

def validate_type(content_type: str) -> str:
    content_type = content_type.strip().lower()
    if content_type not in SUPPORTED_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid type. Supported types: {', '.join(sorted(SUPPORTED_TYPES))}")
    return content_type

def build_manifest(genres: dict) -> Manifest:
    def filter_extras(content_type: str):
        return [
            ManifestExtra(name='genre', options=list(genres.get(content_type, {}).keys())),
            ManifestExtra(name='search', isRequired=False),
        ]

    return Manifest(
        id=config.ADDON_ID,
        version=config.ADDON_VERSION,
        name=config.ADDON_NAME,
        description=config.ADDON_DESCRIPTION,
        logo=config.ADDON_LOGO,
        types=['movie', 'series'],
        catalogs=[
            ManifestCatalog(id=PREMIERES_CATALOG_ID, type='movie', name='Новинки прокату (uakino)'),
            ManifestCatalog(id=MOVIES_CATALOG_ID, type='movie', name='Фільми (uakino)', extra=filter_extras('movie')),
            ManifestCatalog(id=SERIES_CATALOG_ID, type='series', name='Серіали (uakino)', extra=filter_extras('series')),
        ],
        resources=['catalog', 'meta', 'stream'],
    )

def parse_extra(extra: Optional[str]) -> dict:
    """'genre=%D0%94%D1%80%D0%B0%D0%BC%D0%B0&search=Tom%20%26%20Jerry' -> {'genre': 'Драма', 'search': 'Tom & Jerry'}"""
    if not extra:
        return {}
    return {key: value.strip() for key, value in parse_qsl(extra) if value.strip()}

def raw_extra(request: Request, extra: str) -> str:
    """
    The extra path segment as the client sent it, still percent-encoded.
    The routed path parameter is already decoded, so parsing it again would
    split values containing '&', '+' or '/'.
    """
    raw_path = request.scope.get('raw_path')
    if not raw_path:
        return quote(extra, safe='=&')
    segment = raw_path.decode('utf-8', errors='replace').split('/', 4)[-1]
    return segment[:-len('.json')] if segment.endswith('.json') else segment

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = ErrorResponse(error=str(exc.detail), code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True), headers=exc.headers)

# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    return {
        "message": config.ADDON_NAME,
        "version": config.ADDON_VERSION,
        "manifest": "/manifest.json",
        "endpoints": {
            "catalog": "/catalog/{type}/{id}.json, /catalog/{type}/{id}/{extra}.json",
            "meta": "/meta/{type}/{id}.json",
            "stream": "/stream/{type}/{id}.json",
        },
        "documentation": "/docs"
    }

@app.get(
    "/manifest.json",
    response_model=Manifest,
    response_model_exclude_none=True,
    summary="Add-on manifest",
    description="Describes the add-on, its catalogs and the genre filter options scraped at start-up."
)
async def get_manifest(genres: dict = Depends(get_genres)):
    return build_manifest(genres)

async def _catalog(content_type: str, catalog_id: str, extra: Optional[str], client: AsyncClient,
                   genres: dict, cache: SearchCache) -> CatalogResponse:
    content_type = validate_type(content_type)
    if catalog_id not in CATALOG_IDS:
        raise HTTPException(status_code=404, detail=f"Unknown catalog: {catalog_id}")

    extras = parse_extra(extra)
    return await scrape_catalog(
        content_type,
        catalog_id,
        client,
        genres,
        cache,
        genre=extras.get('genre'),
        search=extras.get('search'),
    )

@app.get(
    "/catalog/{type}/{catalog_id}.json",
    response_model=CatalogResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Catalog listing"
)
async def get_catalog(
    type: str = Path(..., description="Content type: movie or series"),
    catalog_id: str = Path(..., description="Catalog id from the manifest"),
    client: AsyncClient = Depends(get_http_client),
    genres: dict = Depends(get_genres),
    cache: SearchCache = Depends(get_search_cache),
):
    return await _catalog(type, catalog_id, None, client, genres, cache)

@app.get(
    "/catalog/{type}/{catalog_id}/{extra:path}.json",
    response_model=CatalogResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Catalog listing filtered by genre or search query",
    description="`extra` is a query string, e.g. `genre=Комедія` or `search=Дюна`."
)
async def get_catalog_with_extra(
    request: Request,
    type: str = Path(..., description="Content type: movie or series"),
    catalog_id: str = Path(..., description="Catalog id from the manifest"),
    extra: str = Path(..., description="Extra arguments as a query string"),
    client: AsyncClient = Depends(get_http_client),
    genres: dict = Depends(get_genres),
    cache: SearchCache = Depends(get_search_cache),
):
    return await _catalog(type, catalog_id, raw_extra(request, extra), client, genres, cache)

@app.get(
    "/meta/{type}/{item_id:path}.json",
    response_model=MetaResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Title metadata with episodes"
)
async def get_meta(
    type: str = Path(..., description="Content type: movie or series"),
    item_id: str = Path(..., description="Item id from a catalog"),
    client: AsyncClient = Depends(get_http_client),
):
    validate_type(type)
    return await scrape_meta(item_id, client)

@app.get(
    "/stream/{type}/{item_id:path}.json",
    response_model=StreamResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Playable streams for a movie or an episode"
)
async def get_streams(
    type: str = Path(..., description="Content type: movie or series"),
    item_id: str = Path(..., description="Item or episode id"),
    client: AsyncClient = Depends(get_http_client),
):
    validate_type(type)
    return await scrape_streams(item_id, client)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
