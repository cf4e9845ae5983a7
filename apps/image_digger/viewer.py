# apps/image_digger/viewer.py
#
# /article page for one cached entry. Everything from the source feed is
# escaped; the description is reduced to plain text first.

from __future__ import annotations

import html

from apps.common.feeds import strip_html
from apps.image_digger.cache import CacheEntry


def render_article(entry: CacheEntry) -> str:
    """Standalone page for one cached article: title, image, optional description."""
    title = html.escape(entry.title)
    img = html.escape(entry.image_url, quote=True)
    text = strip_html(entry.description or "")
    desc = f"\n    <p>{html.escape(text)}</p>" if text else ""
    return (
        "<!doctype html>\n"
        "<html>\n"
        "  <head>\n"
        '    <meta charset="utf-8">\n'
        f"    <title>{title}</title>\n"
        "  </head>\n"
        "  <body>\n"
        f'    <img src="{img}" alt="{title}" style="max-width:100%">{desc}\n'
        "  </body>\n"
        "</html>\n"
    )
