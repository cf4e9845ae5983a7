# apps/ai_recap/recap.py
#
# Day bucketing + LLM recap generation.
#
#   filter_articles_by_date()      feed entries → the ones published on one
#                                  local calendar day, as ArticleReference
#   generate_recap_for_articles()  one LLM call → HTML recap
#   generate_historical_recaps()   first sight of a feed: the last N days,
#                                  one day at a time (keeps the LLM API calm)
#   generate_daily_recaps_for_all_feeds()
#                                  the midnight job: yesterday, every feed,
#                                  concurrently, one feed failing ≠ all failing

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx

from apps.ai_recap.ai import AiMessage, AiModels, ask_ai
from apps.ai_recap.models import ArticleReference, DailyRecap
from apps.ai_recap.storage import RecapStorage
from apps.common.fanout import gather_outcomes
from apps.common.feeds import entry_link, entry_published, entry_snippet, entry_title, fetch_feed

log = logging.getLogger("feedsmith.ai_recap")

MAX_ARTICLES = 50

SYSTEM_PROMPT = """You are an intelligent news curator. Your job is to analyze a day's worth of articles and create a concise, engaging summary highlighting the most important and interesting stories.

Rules:
1. Focus on 3-5 major stories maximum
2. Include clickable links to original articles
3. Use html formatting
4. Be concise but informative
5. Prioritize stories that are newsworthy, impactful, or particularly interesting
6. Never include stories about sports
7. Ignore minor or repetitive stories
8. Write in a professional but engaging tone
9. Always respect the source's language (recap in french if the source is in french, english if the source is in english.)"""


def format_date(d: Union[date, datetime]) -> str:
    """YYYY-MM-DD. Aware datetimes are converted to local time first."""
    if isinstance(d, datetime) and d.tzinfo is not None:
        d = d.astimezone()
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def filter_articles_by_date(
    entries: Iterable[Dict[str, Any]],
    target: Union[date, datetime],
) -> List[ArticleReference]:
    target_str = format_date(target)
    out: List[ArticleReference] = []
    for e in entries:
        published = entry_published(e)
        if published is None or format_date(published) != target_str:
            continue
        out.append(
            ArticleReference(
                title=entry_title(e),
                link=entry_link(e),
                description=entry_snippet(e),
                pub_date=e.get("published") or published.isoformat(),
            )
        )
    return out


def build_recap_messages(articles: List[ArticleReference], limit: int = MAX_ARTICLES) -> List[AiMessage]:
    lines = [
        f"{i}. [{a.title}]({a.link})\n   Description: {a.description}"
        for i, a in enumerate(articles[:limit], start=1)
    ]
    articles_text = "\n\n".join(lines)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Here are today's articles:\n\n{articles_text}\n\nGenerate a daily recap.",
        },
    ]


async def generate_recap_for_articles(
    client: httpx.AsyncClient,
    articles: List[ArticleReference],
    limit: int = MAX_ARTICLES,
) -> str:
    return await ask_ai(client, build_recap_messages(articles, limit), model=AiModels.GPT4_1)


async def _recap_day(
    client: httpx.AsyncClient,
    storage: RecapStorage,
    feed_url: str,
    entries: List[Dict[str, Any]],
    day: date,
    limit: int,
) -> Optional[DailyRecap]:
    articles = filter_articles_by_date(entries, day)
    if not articles:
        log.info("[recap] no articles for %s on %s", feed_url, format_date(day))
        return None

    html = await generate_recap_for_articles(client, articles, limit)
    recap = DailyRecap(date=format_date(day), html=html, articles=articles)
    storage.store_recap(feed_url, recap)
    log.info("[recap] %s on %s: %d articles", feed_url, recap.date, len(articles))
    return recap


async def generate_historical_recaps(
    client: httpx.AsyncClient,
    storage: RecapStorage,
    feed_url: str,
    days: int = 5,
    today: Optional[date] = None,
    limit: int = MAX_ARTICLES,
) -> None:
    parsed = await fetch_feed(client, feed_url)
    entries = parsed.get("entries") or []
    today = today or date.today()

    # sequential on purpose: one LLM call at a time
    for i in range(1, days + 1):
        day = today - timedelta(days=i)
        try:
            await _recap_day(client, storage, feed_url, entries, day, limit)
        except Exception as e:
            log.warning("[recap] %s on %s failed: %s: %s", feed_url, format_date(day), type(e).__name__, e)


async def generate_recap_for_feed(
    client: httpx.AsyncClient,
    storage: RecapStorage,
    feed_url: str,
    today: Optional[date] = None,
    limit: int = MAX_ARTICLES,
) -> Optional[DailyRecap]:
    """Recap of yesterday for one feed."""
    parsed = await fetch_feed(client, feed_url)
    yesterday = (today or date.today()) - timedelta(days=1)
    return await _recap_day(client, storage, feed_url, parsed.get("entries") or [], yesterday, limit)


async def generate_daily_recaps_for_all_feeds(
    client: httpx.AsyncClient,
    storage: RecapStorage,
    today: Optional[date] = None,
    limit: int = MAX_ARTICLES,
) -> int:
    feeds = storage.feeds()
    log.info("[recap] daily run for %d feeds", len(feeds))
    outcomes = await gather_outcomes(
        generate_recap_for_feed(client, storage, f, today=today, limit=limit) for f in feeds
    )
    for feed_url, o in zip(feeds, outcomes):
        if not o.ok:
            log.error("[recap] daily recap failed for %s: %s: %s", feed_url, type(o.error).__name__, o.error)
    done = sum(1 for o in outcomes if o.ok and o.value is not None)
    log.info("[recap] daily run done: %d recaps", done)
    return done
