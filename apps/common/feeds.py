# apps/common/feeds.py
#
# Feed in / feed out helpers shared by every service.
#
#   fetch_feed()   → httpx GET + feedparser
#   entry_*()      → safe accessors with defined fallbacks. Upstream feeds
#                    are allowed to omit title / link / dates; we never
#                    assume they are there.
#   newest_first() → sort by publication date, undated entries last
#   new_feed() / add_item() / render_rss() → RSS 2.0 out via feedgen

from __future__ import annotations

import calendar
import hashlib
import html
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import feedparser
import httpx
from feedgen.feed import FeedGenerator

__all__ = [
    "FeedFetchError",
    "fetch_feed",
    "entry_title",
    "entry_link",
    "entry_guid",
    "entry_description",
    "entry_snippet",
    "strip_html",
    "entry_published",
    "newest_first",
    "new_feed",
    "add_item",
    "render_rss",
]

UNTITLED = "Untitled"


class FeedFetchError(Exception):
    """The source feed could not be fetched or parsed. Fatal for the request."""


async def fetch_feed(client: httpx.AsyncClient, url: str) -> feedparser.FeedParserDict:
    try:
        r = await client.get(url)
    except httpx.HTTPError as e:
        raise FeedFetchError(f"cannot fetch {url}: {type(e).__name__}") from e
    if r.status_code >= 400:
        raise FeedFetchError(f"cannot fetch {url}: HTTP {r.status_code}")

    parsed = feedparser.parse(r.content)
    if parsed.get("bozo") and not parsed.get("entries"):
        exc = parsed.get("bozo_exception")
        raise FeedFetchError(f"cannot parse {url}: {exc}")
    return parsed


# ============================== Entry accessors ======================

def entry_title(entry: Dict[str, Any]) -> str:
    return (entry.get("title") or "").strip() or UNTITLED


def entry_link(entry: Dict[str, Any]) -> str:
    return (entry.get("link") or "").strip()


def entry_guid(entry: Dict[str, Any]) -> str:
    guid = (entry.get("id") or "").strip() or entry_link(entry)
    if guid:
        return guid
    return hashlib.sha1(entry_title(entry).encode("utf-8")).hexdigest()


def entry_description(entry: Dict[str, Any]) -> str:
    return entry.get("summary") or entry.get("description") or ""


def strip_html(raw: str) -> str:
    """Tags removed, entities decoded, whitespace collapsed."""
    no_tags = re.sub(r"<[^>]+>", " ", raw or "")
    return re.sub(r"\s+", " ", html.unescape(no_tags)).strip()


def entry_snippet(entry: Dict[str, Any]) -> str:
    """Plain-text summary, falling back to the (stripped) content body."""
    raw = entry.get("summary") or ""
    if not raw:
        content = entry.get("content")
        if isinstance(content, list) and content and isinstance(content[0], dict):
            raw = content[0].get("value") or ""
    return strip_html(raw)


def entry_published(entry: Dict[str, Any]) -> Optional[datetime]:
    for k in ("published_parsed", "updated_parsed"):
        st = entry.get(k)
        if st:
            try:
                return datetime.fromtimestamp(calendar.timegm(st), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                continue
    return None


def newest_first(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Stable sort, most recent first. Entries without a usable date go last."""
    dated = []
    undated = []
    for e in entries:
        (dated if entry_published(e) else undated).append(e)
    dated.sort(key=entry_published, reverse=True)
    return dated + undated


# ============================== Feed out =============================

def new_feed(
    title: str,
    link: str,
    description: str = "",
    self_url: Optional[str] = None,
) -> FeedGenerator:
    fg = FeedGenerator()
    fg.title(title or link)
    fg.link(href=link, rel="alternate")
    if self_url:
        fg.link(href=self_url, rel="self")
    fg.description(description or title or link)
    fg.language("en")
    return fg


def add_item(
    fg: FeedGenerator,
    *,
    title: str,
    link: str,
    guid: Optional[str] = None,
    description: str = "",
    published: Optional[datetime] = None,
    enclosure: Optional[tuple[str, str]] = None,
) -> None:
    """Append one item. `enclosure` is (url, mime type)."""
    fe = fg.add_entry(order="append")
    fe.title(title)
    if link:
        fe.link(href=link)
    if guid:
        fe.guid(guid, permalink=False)
    if description:
        fe.description(description)
    if published is not None:
        fe.pubDate(published)
    if enclosure:
        url, mime = enclosure
        fe.enclosure(url, "0", mime)


def render_rss(fg: FeedGenerator) -> str:
    return fg.rss_str(pretty=True).decode("utf-8")
