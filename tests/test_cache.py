import json
import tempfile
import unittest
from pathlib import Path

from cache import GenreCache, SearchCache
from models import CategorizedItems, MetaPreview


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestGenreCache(unittest.TestCase):
    """Tests for the on-disk genre cache."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "genre_cache.json"
        self.clock = FakeClock()
        self.cache = GenreCache(self.path, ttl_seconds=7 * 24 * 3600, clock=self.clock)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_missing_file_is_a_miss(self):
        self.assertIsNone(self.cache.load())

    def test_save_then_load(self):
        self.cache.save({"Комедія": "5"}, {"Драма": "7"})

        self.assertEqual(self.cache.load(), ({"Комедія": "5"}, {"Драма": "7"}))

    def test_file_format(self):
        self.cache.save({"Комедія": "5"}, {})
        data = json.loads(self.path.read_text(encoding="utf-8"))

        self.assertEqual(data["timestamp"], 1_700_000_000_000)
        self.assertEqual(data["movieGenres"], {"Комедія": "5"})
        self.assertEqual(data["seriesGenres"], {})

    def test_expired_entry_is_a_miss(self):
        self.cache.save({"Комедія": "5"}, {})
        self.clock.now += 7 * 24 * 3600

        self.assertIsNone(self.cache.load())

    def test_corrupt_file_is_a_miss(self):
        self.path.write_text("{not json", encoding="utf-8")
        self.assertIsNone(self.cache.load())

        self.path.write_text('{"movieGenres": {}}', encoding="utf-8")
        self.assertIsNone(self.cache.load())


class TestSearchCache(unittest.TestCase):
    """Tests for the in-memory search result cache."""

    def setUp(self):
        self.clock = FakeClock()
        self.cache = SearchCache(ttl_seconds=3600, max_entries=2, clock=self.clock)
        self.items = CategorizedItems(movies=[MetaPreview(id="uakino:movie:a", type="movie", name="A")])

    def test_keys_are_case_insensitive(self):
        self.cache.set("Дюна", self.items)

        self.assertIs(self.cache.get("ДЮНА"), self.items)
        self.assertIs(self.cache.get("дюна"), self.items)

    def test_entries_expire(self):
        self.cache.set("dune", self.items)
        self.clock.now += 3599
        self.assertIsNotNone(self.cache.get("dune"))

        self.clock.now += 1
        self.assertIsNone(self.cache.get("dune"))

    def test_oldest_entry_is_evicted(self):
        self.cache.set("a", self.items)
        self.cache.set("b", self.items)
        self.cache.set("c", self.items)

        self.assertEqual(len(self.cache), 2)
        self.assertIsNone(self.cache.get("a"))
        self.assertIsNotNone(self.cache.get("c"))

    def test_clear(self):
        self.cache.set("a", self.items)
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)


if __name__ == "__main__":
    unittest.main()
