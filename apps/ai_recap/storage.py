# apps/ai_recap/storage.py
#
# Recap storage: ONE JSON object, feed URL → list of daily recaps.
#
#   {
#     "https://site/feed.xml": [{"date": "2025-11-14", "html": "...", "articles": [...]}, ...]
#   }
#
# Created at startup if missing (never wiped). Every write rewrites the
# whole file. At most one recap per (feed, date): storing again replaces it.

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import ValidationError

from apps.ai_recap.models import DailyRecap
from apps.common.jsonstore import JsonFileStore


class RecapStorage:
    def __init__(self, path: str):
        self.store = JsonFileStore(path, default={})

    def initialize(self) -> None:
        self.store.ensure()

    def read(self) -> Dict[str, list]:
        data = self.store.load()
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, list)}

    def feeds(self) -> List[str]:
        return [k for k in self.read() if k.startswith(("http://", "https://"))]

    def get_daily_recaps(self, feed_url: str) -> Optional[List[DailyRecap]]:
        """None when the feed has never been seen."""
        raw = self.read().get(feed_url)
        if raw is None:
            return None
        out: List[DailyRecap] = []
        for it in raw:
            try:
                out.append(DailyRecap.model_validate(it))
            except ValidationError:
                continue
        return out

    def store_recap(self, feed_url: str, recap: DailyRecap) -> None:
        data = self.read()
        recaps = data.get(feed_url) or []
        doc = recap.model_dump(by_alias=True)

        for idx, existing in enumerate(recaps):
            if isinstance(existing, dict) and existing.get("date") == recap.date:
                recaps[idx] = doc
                break
        else:
            recaps.append(doc)

        data[feed_url] = recaps
        self.store.save(data)
