import unittest

from apps.image_digger.cache import CacheEntry
from apps.image_digger.viewer import render_article


def _entry(**kw):
    base = {"id": "g", "image_url": "http://x/i.png", "title": "T", "description": None}
    base.update(kw)
    return CacheEntry(**base)


class RenderArticleTests(unittest.TestCase):
    def test_markup_from_the_feed_is_neutralized(self):
        page = render_article(_entry(
            title="<b>T</b>",
            image_url='http://x/i.png" onload="alert(1)',
            description="<script>alert(document.cookie)</script><img src=x onerror=alert(1)>",
        ))
        self.assertNotIn("<script>", page)
        self.assertNotIn("onerror", page)
        self.assertNotIn('" onload="', page)
        self.assertIn("&lt;b&gt;T&lt;/b&gt;", page)

    def test_description_keeps_its_text(self):
        page = render_article(_entry(description="<p>Some <em>words</em> &amp; more</p>"))
        self.assertIn("<p>Some words &amp; more</p>", page)

    def test_no_description(self):
        page = render_article(_entry())
        self.assertIn('<img src="http://x/i.png"', page)
        self.assertNotIn("<p>", page)


if __name__ == "__main__":
    unittest.main()
