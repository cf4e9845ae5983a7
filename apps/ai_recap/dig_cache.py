# apps/ai_recap/dig_cache.py
#
# Cache of "initial dig" answers, keyed by article URL.
#
#   {"entries": [{"articleUrl": "...", "markdown": "...", "createdAt": "<ISO>"}]}
#
# Entries expire after DIG_TTL_DAYS. Expired entries are invisible to get()
# and dropped on every set(). Files written by older versions (extra fields,
# duplicate URLs) are collapsed to the newest entry per URL on read.

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from apps.common.jsonstore import JsonFileStore


class DigCacheEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    article_url: str = Field(alias="articleUrl")
    markdown: str
    created_at: str = Field(alias="createdAt")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(s: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class DigCache:
    def __init__(self, path: str, ttl: timedelta = timedelta(days=7)):
        self.store = JsonFileStore(path, default={"entries": []})
        self.ttl = ttl

    def initialize(self) -> None:
        self.store.ensure()

    def is_expired(self, entry: DigCacheEntry, now: datetime) -> bool:
        created = _parse_iso(entry.created_at)
        return created is None or now - created > self.ttl

    def read(self) -> List[DigCacheEntry]:
        data = self.store.load()
        raw = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            return []

        by_url: Dict[str, DigCacheEntry] = {}
        for it in raw:
            if not isinstance(it, dict):
                continue
            try:
                e = DigCacheEntry.model_validate(it)
            except ValidationError:
                continue
            if not (e.article_url and e.markdown and e.created_at):
                continue
            prev = by_url.get(e.article_url)
            if prev is None:
                by_url[e.article_url] = e
                continue
            new_dt, old_dt = _parse_iso(e.created_at), _parse_iso(prev.created_at)
            if new_dt and (old_dt is None or new_dt > old_dt):
                by_url[e.article_url] = e
        return list(by_url.values())

    def write(self, entries: List[DigCacheEntry]) -> None:
        self.store.save({"entries": [e.model_dump(by_alias=True) for e in entries]})

    def prune(self, now: Optional[datetime] = None) -> List[DigCacheEntry]:
        now = now or _utc_now()
        kept = [e for e in self.read() if not self.is_expired(e, now)]
        self.write(kept)
        return kept

    def get(self, article_url: str, now: Optional[datetime] = None) -> Optional[DigCacheEntry]:
        now = now or _utc_now()
        for e in self.read():
            if e.article_url == article_url:
                return None if self.is_expired(e, now) else e
        return None

    def set(self, article_url: str, markdown: str, now: Optional[datetime] = None) -> None:
        now = now or _utc_now()
        entries = self.read()
        new = DigCacheEntry(
            article_url=article_url,
            markdown=markdown,
            created_at=now.isoformat().replace("+00:00", "Z"),
        )
        for idx, e in enumerate(entries):
            if e.article_url == article_url:
                entries[idx] = new
                break
        else:
            entries.append(new)
        self.write([e for e in entries if not self.is_expired(e, now)])

    # async call sites: file IO off the event loop
    async def aget(self, article_url: str) -> Optional[DigCacheEntry]:
        return await asyncio.to_thread(self.get, article_url)

    async def aset(self, article_url: str, markdown: str) -> None:
        await asyncio.to_thread(self.set, article_url, markdown)
