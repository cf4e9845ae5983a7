import unittest

import httpx

from tests.helpers import FakeWeb, html_page, image_bytes

from apps.image_digger.errors import NoCandidatesError, NoUsableImageError
from apps.image_digger.scanner import extract_image_sources, find_largest_image, is_allowed_image, scan_article

PAGE = "https://news.test/story"


class AllowListTests(unittest.TestCase):
    def test_suffixes(self):
        self.assertTrue(is_allowed_image("http://x/a.jpg"))
        self.assertTrue(is_allowed_image("/rel/b.png"))
        self.assertFalse(is_allowed_image("http://x/a.JPG"))
        self.assertFalse(is_allowed_image("http://x/a.jpeg"))
        self.assertFalse(is_allowed_image("http://x/a.png?w=100"))
        self.assertFalse(is_allowed_image("http://x/a.gif"))
        self.assertFalse(is_allowed_image(""))

    def test_extract_only_img_with_src(self):
        html = '<img src="a.png"><img data-src="b.png"><picture><img src="c.jpg"></picture>'
        self.assertEqual(extract_image_sources(html), ["a.png", "c.jpg"])


class FindLargestImageTests(unittest.IsolatedAsyncioTestCase):
    async def test_picks_biggest_and_skips_other_extensions(self):
        web = FakeWeb()
        web.add(PAGE, html_page(
            "https://img.test/small.png",
            "https://img.test/big.jpg",
            "https://img.test/huge.gif",
            "https://img.test/huge.webp",
        ))
        web.add("https://img.test/small.png", image_bytes(10, 10))
        web.add("https://img.test/big.jpg", image_bytes(200, 100, "JPEG"))

        async with web.client() as client:
            url = await find_largest_image(client, PAGE)

        self.assertEqual(url, "https://img.test/big.jpg")
        self.assertNotIn("https://img.test/huge.gif", web.requested)
        self.assertNotIn("https://img.test/huge.webp", web.requested)

    async def test_relative_src_is_resolved_against_page(self):
        web = FakeWeb()
        web.add(PAGE, html_page("/media/hero.png"))
        web.add("https://news.test/media/hero.png", image_bytes(5, 5))

        async with web.client() as client:
            url = await find_largest_image(client, PAGE)
        self.assertEqual(url, "https://news.test/media/hero.png")

    async def test_page_without_images(self):
        web = FakeWeb().add(PAGE, "<html><body>text only</body></html>")
        async with web.client() as client:
            with self.assertRaises(NoCandidatesError):
                await find_largest_image(client, PAGE)

    async def test_no_usable_image(self):
        web = FakeWeb()
        web.add(PAGE, html_page("https://img.test/a.svg", "https://img.test/broken.png"))
        web.add("https://img.test/broken.png", b"definitely not a png")
        async with web.client() as client:
            with self.assertRaises(NoUsableImageError):
                await find_largest_image(client, PAGE)

    async def test_download_failure_fails_the_article(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        web = FakeWeb()
        web.add(PAGE, html_page("https://img.test/ok.png", "https://img.test/down.png"))
        web.add("https://img.test/ok.png", image_bytes(10, 10))
        web.add("https://img.test/down.png", boom)
        async with web.client() as client:
            with self.assertRaises(httpx.ConnectError):
                await find_largest_image(client, PAGE)

    async def test_scan_article_carries_metadata(self):
        web = FakeWeb()
        web.add(PAGE, html_page("https://img.test/a.png"))
        web.add("https://img.test/a.png", image_bytes(4, 4))
        async with web.client() as client:
            res = await scan_article(client, guid="g-1", link=PAGE, title="T", description="D")
        self.assertEqual((res.guid, res.image_url, res.title, res.description),
                         ("g-1", "https://img.test/a.png", "T", "D"))


if __name__ == "__main__":
    unittest.main()
