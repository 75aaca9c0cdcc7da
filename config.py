# config.py
import os
import logging

# --- Source site ---
UAKINO_BASE_URL = os.environ.get('UAKINO_BASE_URL', 'https://uakino.best').rstrip('/')
USER_AGENT = os.environ.get(
    'USER_AGENT',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36'
)

# --- HTTP client ---
REQUEST_TIMEOUT = float(os.environ.get('REQUEST_TIMEOUT', 10.0))
REQUEST_RETRIES = int(os.environ.get('REQUEST_RETRIES', 3))
MAX_CONCURRENT_REQUESTS = int(os.environ.get('MAX_CONCURRENT_REQUESTS', 5))

# --- Caches ---
GENRE_CACHE_PATH = os.environ.get('GENRE_CACHE_PATH', './genre_cache.json')
GENRE_CACHE_TTL_SECONDS = int(os.environ.get('GENRE_CACHE_TTL_SECONDS', 7 * 24 * 60 * 60))
SEARCH_CACHE_TTL_SECONDS = int(os.environ.get('SEARCH_CACHE_TTL_SECONDS', 60 * 60))
SEARCH_CACHE_MAX_ENTRIES = int(os.environ.get('SEARCH_CACHE_MAX_ENTRIES', 256))

# --- Server ---
HOST = os.environ.get('HOST', '0.0.0.0')
PORT = int(os.environ.get('PORT', 3000))
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# --- Add-on manifest ---
ADDON_ID = 'org.uakino.best.final.all.features.v3'
ADDON_VERSION = '6.2.0'
ADDON_NAME = 'uakino.best'
ADDON_DESCRIPTION = 'Повнофункціональний додаток для uakino.best.'
ADDON_LOGO = f"{UAKINO_BASE_URL}/templates/uakino/images/logo.svg"
ID_PREFIX = 'uakino'


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
