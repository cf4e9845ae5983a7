# apps/reddit_parser/main.py
#
# REDDIT PARSER
#
# GET /?sub=<name> → the subreddit's RSS, with every item pointing straight
# at the post's media (the "lightbox" link on the post page) instead of the
# comments page. Posts without media keep their own link.
#
# Items whose page cannot be fetched are left out of the output.

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import uvicorn
from bs4 import BeautifulSoup
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response

from apps.common.fanout import gather_outcomes
from apps.common.feeds import (
    FeedFetchError,
    add_item,
    entry_description,
    entry_guid,
    entry_link,
    entry_published,
    entry_title,
    fetch_feed,
    new_feed,
    render_rss,
)
from apps.common.web import cors_headers, make_client, setup_logging
from apps.reddit_parser.config import Settings, settings as default_settings

VERSION = "1.0.0"

LIGHTBOX_SELECTOR = "faceplate-tracker[source=post_lightbox] a"

log = setup_logging("feedsmith.reddit_parser")


def subreddit_feed_url(base_url: str, sub: str) -> str:
    return f"{base_url.rstrip('/')}/r/{quote(sub, safe='')}.rss"


def find_media_link(page_html: str) -> Optional[str]:
    soup = BeautifulSoup(page_html, "html.parser")
    a = soup.select_one(LIGHTBOX_SELECTOR)
    if a is None:
        return None
    return a.get("href") or None


async def resolve_item(client: httpx.AsyncClient, entry: Dict[str, Any]) -> Dict[str, Any]:
    link = entry_link(entry)
    r = await client.get(link)
    return {
        "title": entry_title(entry),
        "description": entry_description(entry),
        "link": find_media_link(r.text) or link,
        "guid": entry_guid(entry),
        "published": entry_published(entry),
    }


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Reddit Parser",
        version=VERSION,
        description="Subreddit RSS with links pointing at the posted media.",
    )
    app.state.settings = settings
    app.state.transport = transport

    @app.exception_handler(HTTPException)
    async def http_exc_handler(_: Request, exc: HTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=cors_headers())

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        log.exception("[reddit_parser] %s %s failed", request.method, request.url.path)
        return PlainTextResponse(f"Error: {exc}", status_code=500, headers=cors_headers())

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "reddit-parser", "version": VERSION}

    @app.get("/")
    async def subreddit(sub: Optional[str] = Query(None, description="Subreddit name")):
        if not sub:
            raise HTTPException(status_code=400, detail="No sub specified")

        feed_url = subreddit_feed_url(settings.reddit_base_url, sub)
        async with make_client(app.state.transport) as client:
            try:
                parsed = await fetch_feed(client, feed_url)
            except FeedFetchError as e:
                log.warning("[reddit_parser] %s", e)
                raise HTTPException(status_code=502, detail=str(e)) from e

            entries = parsed.get("entries") or []
            outcomes = await gather_outcomes(resolve_item(client, e) for e in entries)

        meta = parsed.get("feed", {})
        out = new_feed(
            title=meta.get("title") or f"r/{sub}",
            link=feed_url,
            description=meta.get("subtitle") or meta.get("description") or "",
        )
        for entry, o in zip(entries, outcomes):
            if not o.ok:
                log.info("[reddit_parser] skip %s: %s", entry_link(entry), type(o.error).__name__)
                continue
            add_item(out, **o.value)

        return Response(
            content=render_rss(out),
            media_type="application/rss+xml; charset=utf-8",
            headers=cors_headers(),
        )

    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)


if __name__ == "__main__":
    main()
