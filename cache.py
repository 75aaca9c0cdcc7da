# cache.py
import json
import logging
import time
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from models import CategorizedItems

logger = logging.getLogger(__name__)

GenreMap = Dict[str, str]


class GenreCache:
    """
    Genre name -> site category id maps, persisted as JSON:
        {"timestamp": <ms since epoch>, "movieGenres": {...}, "seriesGenres": {...}}
    """

    def __init__(self, path, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def load(self) -> Optional[Tuple[GenreMap, GenreMap]]:
        """Return (movie_genres, series_genres) when the file exists and is fresh, else None."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            timestamp_ms = float(data['timestamp'])
            movie_genres = dict(data.get('movieGenres') or {})
            series_genres = dict(data.get('seriesGenres') or {})
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable genre cache {self.path}: {e}")
            return None

        age_seconds = self.clock() - timestamp_ms / 1000
        if age_seconds >= self.ttl_seconds:
            logger.info(f"Genre cache expired ({age_seconds:.0f}s old)")
            return None
        return movie_genres, series_genres

    def save(self, movie_genres: GenreMap, series_genres: GenreMap) -> None:
        data = {
            'timestamp': int(self.clock() * 1000),
            'movieGenres': movie_genres,
            'seriesGenres': series_genres,
        }
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Saved {len(movie_genres)} movie and {len(series_genres)} series genres to {self.path}")


class SearchCache:
    """In-memory search results keyed by the lowercased query, expiring after ttl_seconds."""

    def __init__(self, ttl_seconds: int, max_entries: int = 256, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[float, CategorizedItems]]" = OrderedDict()

    @staticmethod
    def key(query: str) -> str:
        return query.lower()

    def get(self, query: str) -> Optional[CategorizedItems]:
        entry = self._entries.get(self.key(query))
        if entry is None:
            return None
        stored_at, items = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            return None
        return items

    def set(self, query: str, items: CategorizedItems) -> None:
        key = self.key(query)
        self._entries.pop(key, None)
        self._entries[key] = (self.clock(), items)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted search cache entry: {evicted}")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
