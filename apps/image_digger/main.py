# apps/image_digger/main.py
#
# IMAGE DIGGER
#
# Turns any RSS feed into an "image feed": for every recent article we fetch
# the page, download its .jpg/.png images and keep the biggest one.
#
# Endpoints:
#   GET /?feed=<url>        derived RSS; each item links to /article?guid=...
#                           and carries the chosen image as its enclosure
#   GET /article?guid=<id>  small HTML page for one cached article
#   GET /health
#
# ENV:
#   PUBLIC_HOST        REQUIRED. host used in the /article links we publish
#   PUBLIC_SCHEME      default https
#   PORT               default 3000
#   CACHE_FILE         default /tmp/image-digger-cache.json (wiped at startup)
#   FEED_ITEM_LIMIT    default 10
#   SCAN_CONCURRENCY   default unbounded
#
# NOTE:
# - Fan-out is unbounded by default: every article of the feed is scanned at
#   once and every image of every article is downloaded at once. There is no
#   backpressure and no timeout; SCAN_CONCURRENCY only caps articles.

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from apps.common.feeds import FeedFetchError
from apps.common.web import cors_headers, make_client, setup_logging
from apps.image_digger.cache import FeedCache
from apps.image_digger.config import Settings
from apps.image_digger.transformer import transform_feed
from apps.image_digger.viewer import render_article

VERSION = "1.0.0"

log = setup_logging("feedsmith.image_digger")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    # Settings() raises if PUBLIC_HOST is missing: refusing to boot is intended.
    settings = settings or Settings()
    cache = FeedCache(settings.cache_file)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        cache.reset()
        log.info("[image_digger] cache wiped at %s", settings.cache_file)
        yield

    app = FastAPI(
        title="Image Digger",
        version=VERSION,
        description="Re-emits an RSS feed with the largest image of every article.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = cache
    app.state.transport = transport

    @app.exception_handler(HTTPException)
    async def http_exc_handler(_: Request, exc: HTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=cors_headers())

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        log.exception("[image_digger] %s %s failed", request.method, request.url.path)
        return PlainTextResponse(f"Error: {exc}", status_code=500, headers=cors_headers())

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "image-digger", "version": VERSION}

    @app.get("/")
    async def derived_feed(feed: Optional[str] = Query(None, description="Source feed URL")):
        if not feed:
            raise HTTPException(status_code=400, detail="No feed specified")

        async with make_client(app.state.transport) as client:
            try:
                xml = await transform_feed(
                    client,
                    feed,
                    cache,
                    settings.public_base_url,
                    item_limit=settings.feed_item_limit,
                    concurrency=settings.scan_concurrency,
                )
            except FeedFetchError as e:
                log.warning("[image_digger] source feed failed: %s", e)
                raise HTTPException(status_code=502, detail=str(e)) from e

        return Response(
            content=xml,
            media_type="application/rss+xml; charset=utf-8",
            headers=cors_headers(),
        )

    @app.get("/article")
    async def article(guid: Optional[str] = Query(None, description="Article identifier")):
        if not guid:
            raise HTTPException(status_code=400, detail="No guid specified")
        entry = await cache.aget(guid)
        if entry is None:
            raise HTTPException(status_code=404, detail="Article not found")
        return HTMLResponse(render_article(entry), headers=cors_headers())

    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)


if __name__ == "__main__":
    main()
