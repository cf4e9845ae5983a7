import os
import random
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import feedparser

from tests.helpers import FakeWeb, html_page, image_bytes, rfc822, rss

from apps.image_digger.cache import FeedCache
from apps.image_digger.transformer import article_url, image_mime, transform_feed

FEED = "https://src.test/feed.xml"
BASE = "https://digger.test"


def _article(web: FakeWeb, n: int, with_image: bool = True) -> None:
    page = f"https://news.test/{n}"
    if with_image:
        web.add(page, html_page(f"https://img.test/{n}.png"))
        web.add(f"https://img.test/{n}.png", image_bytes(10 + n, 10))
    else:
        web.add(page, "<html><body>no pictures here</body></html>")


class TransformFeedTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cache = FeedCache(os.path.join(self.tmp.name, "cache.json"))

    def tearDown(self):
        self.tmp.cleanup()

    async def _run(self, web: FakeWeb) -> feedparser.FeedParserDict:
        async with web.client() as client:
            xml = await transform_feed(client, FEED, self.cache, BASE)
        return feedparser.parse(xml)

    async def test_only_ten_most_recent_are_scanned(self):
        web = FakeWeb()
        start = datetime(2025, 3, 1, tzinfo=timezone.utc)
        items = []
        for n in range(15):
            _article(web, n)
            items.append({
                "title": f"Story {n}",
                "link": f"https://news.test/{n}",
                "guid": f"guid-{n}",
                "pubDate": rfc822(start + timedelta(hours=n)),
            })
        random.Random(7).shuffle(items)
        web.add(FEED, rss(items))

        out = await self._run(web)

        self.assertEqual([e.id for e in out.entries], [f"guid-{n}" for n in range(14, 4, -1)])
        scanned = {u for u in web.requested if u.startswith("https://news.test/")}
        self.assertEqual(scanned, {f"https://news.test/{n}" for n in range(5, 15)})

    async def test_failed_scan_is_dropped_without_placeholder(self):
        web = FakeWeb()
        _article(web, 1)
        _article(web, 2, with_image=False)
        _article(web, 3)
        web.add(FEED, rss([
            {"title": f"Story {n}", "link": f"https://news.test/{n}", "guid": f"guid-{n}",
             "pubDate": rfc822(datetime(2025, 3, n, tzinfo=timezone.utc))}
            for n in (1, 2, 3)
        ]))

        out = await self._run(web)

        self.assertEqual(sorted(e.id for e in out.entries), ["guid-1", "guid-3"])
        self.assertIsNone(self.cache.get("guid-2"))

    async def test_entry_points_at_viewer_and_carries_image(self):
        web = FakeWeb()
        _article(web, 1)
        web.add(FEED, rss([{
            "title": "Story 1", "link": "https://news.test/1", "guid": "a b/c",
            "description": "summary", "pubDate": rfc822(datetime(2025, 3, 1, tzinfo=timezone.utc)),
        }]))

        out = await self._run(web)

        e = out.entries[0]
        self.assertEqual(e.title, "Story 1")
        self.assertEqual(parse_qs(urlparse(e.link).query)["guid"], ["a b/c"])
        self.assertTrue(e.link.startswith(f"{BASE}/article?guid="))
        self.assertEqual(e.enclosures[0].href, "https://img.test/1.png")
        self.assertEqual(e.published_parsed[:3], (2025, 3, 1))

        cached = self.cache.get("a b/c")
        self.assertEqual((cached.image_url, cached.title, cached.description),
                         ("https://img.test/1.png", "Story 1", "summary"))

    async def test_all_items_failing_gives_empty_feed(self):
        web = FakeWeb()
        web.add(FEED, rss([{"title": "x", "link": "https://news.test/missing", "guid": "g"}]))
        out = await self._run(web)
        self.assertEqual(out.entries, [])
        self.assertEqual(out.feed.title, "Source feed")


class HelperTests(unittest.TestCase):
    def test_article_url_quotes_guid(self):
        self.assertEqual(article_url(BASE, "https://x/?a=1"),
                         f"{BASE}/article?guid=https%3A%2F%2Fx%2F%3Fa%3D1")

    def test_image_mime(self):
        self.assertEqual(image_mime("https://x/a.png"), "image/png")
        self.assertEqual(image_mime("https://x/a.jpg"), "image/jpeg")


if __name__ == "__main__":
    unittest.main()
