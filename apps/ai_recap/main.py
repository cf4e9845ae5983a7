# apps/ai_recap/main.py
#
# AI DAILY RECAP
#
# Turns a busy RSS feed into one item per day: an LLM-written recap of the
# day's 3-5 most important stories.
#
# Lifecycle:
#   - first GET /?feed=<url> for an unknown feed → recaps for the last
#     HISTORY_DAYS days are generated on the spot (sequentially)
#   - every local midnight → yesterday's recap for every known feed
#   - GET /?feed=<url> → RSS of the recaps of the last RECAP_WINDOW_DAYS days
#
# Endpoints:
#   GET  /?feed=<url>
#   POST /dig/stream      (see dig.py)
#   GET  /health
#
# ENV: see config.py. OPENROUTER_API_KEY missing = warning only; every LLM
# call will then fail and be logged.

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from urllib.parse import quote, urlparse

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response

from apps.ai_recap.config import Settings, settings as default_settings
from apps.ai_recap.dig import router as dig_router
from apps.ai_recap.dig_cache import DigCache
from apps.ai_recap.models import DailyRecap
from apps.ai_recap.recap import generate_daily_recaps_for_all_feeds, generate_historical_recaps
from apps.ai_recap.storage import RecapStorage
from apps.common.feeds import add_item, new_feed, render_rss
from apps.common.web import cors_headers, make_client, setup_logging

VERSION = "1.0.0"

log = setup_logging("feedsmith.ai_recap")


def extract_domain(url: str) -> str:
    try:
        return urlparse(url).hostname or "Unknown"
    except ValueError:
        return "Unknown"


def _recap_day(recap: DailyRecap) -> Optional[date]:
    try:
        return date.fromisoformat(recap.date)
    except ValueError:
        return None


def recent_recaps(recaps: List[DailyRecap], window_days: int, today: Optional[date] = None) -> List[DailyRecap]:
    today = today or date.today()
    out = []
    for r in recaps:
        d = _recap_day(r)
        if d is not None and (today - d).days < window_days:
            out.append(r)
    return out


def build_rss_feed(feed_url: str, recaps: List[DailyRecap], self_url: Optional[str] = None) -> str:
    domain = extract_domain(feed_url)
    fg = new_feed(
        title=f"AI Daily Recap - {domain}",
        link=feed_url,
        description=f"Daily AI-generated summaries from {feed_url}",
        self_url=self_url,
    )

    ordered = sorted(recaps, key=lambda r: _recap_day(r) or date.min, reverse=True)
    for recap in ordered:
        day = _recap_day(recap)
        add_item(
            fg,
            title=f"Daily Recap - {recap.date}",
            link=feed_url,
            guid=f"{feed_url}#{recap.date}",
            description=recap.html,
            published=datetime.combine(day, time.min, tzinfo=timezone.utc) if day else None,
        )
    return render_rss(fg)


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    now = now or datetime.now()
    tomorrow = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)
    return max(1.0, (tomorrow - now).total_seconds())


async def midnight_loop(app: FastAPI) -> None:
    while True:
        await asyncio.sleep(seconds_until_midnight())
        try:
            async with make_client(app.state.transport) as client:
                await generate_daily_recaps_for_all_feeds(
                    client, app.state.storage, limit=app.state.settings.max_recap_articles
                )
        except Exception:
            log.exception("[scheduler] daily recap generation failed")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or default_settings
    storage = RecapStorage(settings.storage_file)
    dig_cache = DigCache(settings.dig_cache_file, ttl=timedelta(days=settings.dig_ttl_days))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage.initialize()
        dig_cache.initialize()
        dig_cache.prune()
        log.info("[ai_recap] storage initialized at %s", settings.storage_file)
        if not settings.openrouter_api_key:
            log.warning("[ai_recap] OPENROUTER_API_KEY not set - AI recap generation will fail")

        task = asyncio.create_task(midnight_loop(app)) if settings.scheduler_enabled else None
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(
        title="AI Daily Recap",
        version=VERSION,
        description="One LLM-written recap per day for any RSS feed.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.dig_cache = dig_cache
    app.state.transport = transport

    app.include_router(dig_router)

    @app.exception_handler(HTTPException)
    async def http_exc_handler(_: Request, exc: HTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=cors_headers())

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        log.exception("[ai_recap] %s %s failed", request.method, request.url.path)
        return PlainTextResponse(f"Error: {exc}", status_code=500, headers=cors_headers())

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "ai-daily-recap", "version": VERSION}

    @app.get("/")
    async def recap_feed(
        request: Request,
        feed: Optional[str] = Query(None, description="Source feed URL"),
    ):
        if not feed:
            raise HTTPException(status_code=400, detail="No feed specified")

        recaps = storage.get_daily_recaps(feed)
        if recaps is None:
            log.info("[ai_recap] new feed %s, generating %d days of history", feed, settings.history_days)
            try:
                async with make_client(app.state.transport) as client:
                    await generate_historical_recaps(
                        client,
                        storage,
                        feed,
                        days=settings.history_days,
                        limit=settings.max_recap_articles,
                    )
            except Exception as e:
                log.error("[ai_recap] history generation failed for %s: %s: %s", feed, type(e).__name__, e)
            recaps = storage.get_daily_recaps(feed)

        recent = recent_recaps(recaps or [], settings.recap_window_days)
        self_url = f"{str(request.base_url).rstrip('/')}/?feed={quote(feed, safe='')}"
        return Response(
            content=build_rss_feed(feed, recent, self_url=self_url),
            media_type="application/rss+xml; charset=utf-8",
            headers=cors_headers(),
        )

    return app


app = create_app()


def main() -> None:
    log.info("AI Daily Recap server starting on port %d", default_settings.port)
    log.info("To add a new feed: http://<host>/?feed=<ENCODED_FEED_URL>")
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)


if __name__ == "__main__":
    main()
