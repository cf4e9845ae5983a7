# apps/image_digger/cache.py
#
# FEED CACHE
#
# guid → (image URL, title, description), persisted as ONE JSON array:
#
#   [{"id": "...", "imageUrl": "...", "title": "...", "description": "..."}, ...]
#
# - get(): full load + linear scan
# - set(): full load + update-in-place or append + full rewrite (upsert)
# - no TTL, no size bound; the file is wiped when the service starts
# - no lock around load → modify → save; concurrent set() calls can lose
#   updates (last full snapshot written wins)

from __future__ import annotations

import asyncio
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from apps.common.jsonstore import JsonFileStore


class CacheEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    image_url: str = Field(alias="imageUrl")
    title: str
    description: Optional[str] = None


class FeedCache:
    def __init__(self, path: str):
        self.store = JsonFileStore(path, default=[])

    def _load(self) -> List[dict]:
        data = self.store.load()
        return data if isinstance(data, list) else []

    def reset(self) -> None:
        self.store.reset()

    def get(self, guid: str) -> Optional[CacheEntry]:
        for raw in self._load():
            if isinstance(raw, dict) and raw.get("id") == guid:
                try:
                    return CacheEntry.model_validate(raw)
                except ValidationError:
                    return None
        return None

    def set(
        self,
        guid: str,
        image_url: str,
        title: str,
        description: Optional[str] = None,
    ) -> None:
        entries = self._load()
        new = CacheEntry(id=guid, image_url=image_url, title=title, description=description)
        doc = new.model_dump(by_alias=True)
        for idx, raw in enumerate(entries):
            if isinstance(raw, dict) and raw.get("id") == guid:
                entries[idx] = doc
                break
        else:
            entries.append(doc)
        self.store.save(entries)

    def __len__(self) -> int:
        return len(self._load())

    # async call sites: file IO off the event loop
    async def aget(self, guid: str) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self.get, guid)

    async def aset(
        self,
        guid: str,
        image_url: str,
        title: str,
        description: Optional[str] = None,
    ) -> None:
        await asyncio.to_thread(self.set, guid, image_url, title, description)
