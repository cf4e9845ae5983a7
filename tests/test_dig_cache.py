import json
import os
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone

from apps.ai_recap.dig_cache import DigCache

NOW = datetime(2025, 11, 14, 12, 0, tzinfo=timezone.utc)


class DigCacheTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "dig.json")
        self.cache = DigCache(self.path, ttl=timedelta(days=7))

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, doc):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(doc, f)

    def test_set_get(self):
        self.cache.set("https://a.test/1", "# md", now=NOW)
        self.assertEqual(self.cache.get("https://a.test/1", now=NOW).markdown, "# md")
        self.assertIsNone(self.cache.get("https://a.test/2", now=NOW))

    def test_upsert(self):
        self.cache.set("https://a.test/1", "old", now=NOW)
        self.cache.set("https://a.test/1", "new", now=NOW)
        self.assertEqual(len(self.cache.read()), 1)
        self.assertEqual(self.cache.get("https://a.test/1", now=NOW).markdown, "new")

    def test_expired_entries_are_invisible_and_pruned(self):
        self.cache.set("https://a.test/old", "x", now=NOW - timedelta(days=8))
        self.assertIsNone(self.cache.get("https://a.test/old", now=NOW))
        self.cache.set("https://a.test/new", "y", now=NOW)
        self.assertEqual([e.article_url for e in self.cache.read()], ["https://a.test/new"])

    def test_prune(self):
        self.cache.set("https://a.test/old", "x", now=NOW - timedelta(days=10))
        self.cache.set("https://a.test/mid", "y", now=NOW - timedelta(days=3))
        kept = self.cache.prune(now=NOW)
        self.assertEqual([e.article_url for e in kept], ["https://a.test/mid"])

    def test_legacy_entries_collapse_to_newest(self):
        self._write({"entries": [
            {"articleUrl": "https://a.test/1", "markdown": "v1", "createdAt": "2025-11-10T00:00:00Z", "language": "fr"},
            {"articleUrl": "https://a.test/1", "markdown": "v2", "createdAt": "2025-11-12T00:00:00Z", "language": "en"},
            {"articleUrl": "", "markdown": "x", "createdAt": "2025-11-12T00:00:00Z"},
            {"broken": True},
        ]})
        entries = self.cache.read()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].markdown, "v2")

    def test_corrupt_file(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("nope")
        self.assertEqual(self.cache.read(), [])
        self.assertIsNone(self.cache.get("https://a.test/1", now=NOW))


class AsyncDigCacheTests(unittest.IsolatedAsyncioTestCase):
    async def test_file_io_runs_off_the_loop(self):
        with tempfile.TemporaryDirectory() as d:
            cache = DigCache(os.path.join(d, "dig.json"))
            seen = []
            real_read = cache.read

            def read():
                seen.append(threading.get_ident())
                return real_read()

            cache.read = read
            await cache.aset("https://a.test/1", "# md")
            got = await cache.aget("https://a.test/1")

        self.assertEqual(got.markdown, "# md")
        self.assertTrue(seen)
        self.assertNotIn(threading.get_ident(), seen)


if __name__ == "__main__":
    unittest.main()
