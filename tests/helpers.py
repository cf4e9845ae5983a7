"""Shared fixtures: in-memory images, RSS documents and a fake web for httpx."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from email.utils import format_datetime
from io import BytesIO
from typing import Callable, Dict, List, Optional, Union
from xml.sax.saxutils import escape

import httpx
from PIL import Image

# apps.image_digger.main refuses to import without it
os.environ.setdefault("PUBLIC_HOST", "digger.test")


def image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


def rfc822(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def rss(items: List[Dict[str, str]], title: str = "Source feed", description: str = "Source description") -> bytes:
    """items: dicts with any of title / link / guid / pubDate / description."""
    parts = []
    for it in items:
        fields = "".join(
            f"<{k}>{escape(v)}</{k}>"
            for k, v in it.items()
            if k in ("title", "link", "guid", "pubDate", "description")
        )
        parts.append(f"<item>{fields}</item>")
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<rss version="2.0"><channel>'
        f"<title>{escape(title)}</title>"
        "<link>https://source.test/</link>"
        f"<description>{escape(description)}</description>"
        f"{''.join(parts)}"
        "</channel></rss>"
    ).encode("utf-8")


def html_page(*srcs: str) -> str:
    imgs = "".join(f'<img src="{s}">' for s in srcs)
    return f"<html><body><h1>Article</h1>{imgs}</body></html>"


Body = Union[bytes, str, Callable[[httpx.Request], httpx.Response]]


class FakeWeb:
    """
    URL → canned response. Unknown URLs answer 404.
    Every requested URL is recorded in `requested`.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Body] = {}
        self.statuses: Dict[str, int] = {}
        self.requested: List[str] = []

    def add(self, url: str, body: Body, status: int = 200) -> "FakeWeb":
        self.routes[url] = body
        self.statuses[url] = status
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        body = self.routes.get(url)
        if body is None:
            return httpx.Response(404, text="not found")
        if callable(body):
            return body(request)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return httpx.Response(self.statuses[url], content=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport(), follow_redirects=True)


def completion(content: Optional[str]) -> bytes:
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]}).encode()


def sse(*chunks: dict, done: bool = True) -> bytes:
    lines = [f"data: {json.dumps(c)}\n\n" for c in chunks]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def delta(text: str) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": text}}]}
