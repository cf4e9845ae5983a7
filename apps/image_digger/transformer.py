# apps/image_digger/transformer.py
#
# FEED TRANSFORMER
#
#   source feed → newest first → keep FEED_ITEM_LIMIT → scan every article
#   concurrently → one output item per SUCCESSFUL scan
#
# A source feed we cannot fetch/parse fails the request (FeedFetchError).
# A failed article scan only drops that item; no placeholder is emitted.

from __future__ import annotations

import logging
import mimetypes
from typing import Optional
from urllib.parse import quote, urlparse

import httpx

from apps.common.fanout import gather_outcomes
from apps.common.feeds import (
    add_item,
    entry_description,
    entry_guid,
    entry_link,
    entry_published,
    entry_title,
    fetch_feed,
    new_feed,
    newest_first,
    render_rss,
)
from apps.image_digger.cache import FeedCache
from apps.image_digger.scanner import scan_article

log = logging.getLogger("feedsmith.image_digger")


def article_url(public_base_url: str, guid: str) -> str:
    return f"{public_base_url}/article?guid={quote(guid, safe='')}"


def image_mime(url: str) -> str:
    guessed, _ = mimetypes.guess_type(urlparse(url).path)
    return guessed or "image/jpeg"


async def transform_feed(
    client: httpx.AsyncClient,
    feed_url: str,
    cache: FeedCache,
    public_base_url: str,
    item_limit: int = 10,
    concurrency: Optional[int] = None,
) -> str:
    parsed = await fetch_feed(client, feed_url)
    meta = parsed.get("feed", {})

    entries = newest_first(parsed.get("entries") or [])[:item_limit]

    outcomes = await gather_outcomes(
        (
            scan_article(
                client,
                guid=entry_guid(e),
                link=entry_link(e),
                title=entry_title(e),
                description=entry_description(e) or None,
            )
            for e in entries
        ),
        limit=concurrency,
    )

    out = new_feed(
        title=meta.get("title") or feed_url,
        link=feed_url,
        description=meta.get("description") or meta.get("subtitle") or "",
    )

    kept = 0
    for entry, outcome in zip(entries, outcomes):
        if not outcome.ok:
            log.info(
                "[transform] skip %s: %s: %s",
                entry_link(entry) or entry_guid(entry),
                type(outcome.error).__name__,
                outcome.error,
            )
            continue

        res = outcome.value
        await cache.aset(res.guid, res.image_url, res.title, res.description)

        add_item(
            out,
            title=res.title,
            link=article_url(public_base_url, res.guid),
            guid=res.guid,
            description=res.description or "",
            published=entry_published(entry),
            enclosure=(res.image_url, image_mime(res.image_url)),
        )
        kept += 1

    log.info("[transform] feed=%s scanned=%d kept=%d", feed_url, len(entries), kept)
    return render_rss(out)
