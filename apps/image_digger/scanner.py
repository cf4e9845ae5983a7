# apps/image_digger/scanner.py
#
# ARTICLE SCANNER
#
# One article in, one image URL out (or a ScanError).
#
#   1. GET the article page as text          (transport errors propagate)
#   2. every <img src> on the page           (none → NoCandidatesError)
#   3. src not ending in .jpg/.png           → empty placeholder, never downloaded
#   4. download the rest concurrently        (one failed download fails the item)
#   5. measure, keep the largest area        (nothing > 0 → NoUsableImageError)
#
# The scanner never touches the cache. The transformer upserts the result.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from apps.image_digger.errors import NoCandidatesError, NoUsableImageError
from apps.image_digger.images import EMPTY_URL, Candidate, fetch_image, pick_largest

log = logging.getLogger("feedsmith.image_digger")

# Case-sensitive suffix match on the raw src attribute.
IMAGE_EXTS = (".jpg", ".png")


@dataclass
class ScanResult:
    guid: str
    image_url: str
    title: str
    description: Optional[str] = None


def is_allowed_image(src: Optional[str]) -> bool:
    return bool(src) and src.endswith(IMAGE_EXTS)


def extract_image_sources(page_html: str) -> List[str]:
    soup = BeautifulSoup(page_html, "html.parser")
    return [img.get("src") or "" for img in soup.select("img[src]")]


async def _candidate_for(client: httpx.AsyncClient, page_url: str, src: str) -> Candidate:
    if not is_allowed_image(src):
        return Candidate(url=EMPTY_URL, blob=None)
    url = urljoin(page_url, src)
    return Candidate(url=url, blob=await fetch_image(client, url))


async def find_largest_image(client: httpx.AsyncClient, page_url: str) -> str:
    r = await client.get(page_url)
    sources = extract_image_sources(r.text)
    if not sources:
        raise NoCandidatesError(f"no <img src> on {page_url}")

    candidates = await asyncio.gather(
        *(_candidate_for(client, page_url, src) for src in sources)
    )

    best = pick_largest(candidates)
    if best is None:
        raise NoUsableImageError(f"no usable image among {len(sources)} candidates on {page_url}")

    log.info("[scanner] %s -> %s (%d px)", page_url, best.url, best.area)
    return best.url


async def scan_article(
    client: httpx.AsyncClient,
    *,
    guid: str,
    link: str,
    title: str,
    description: Optional[str] = None,
) -> ScanResult:
    image_url = await find_largest_image(client, link)
    return ScanResult(guid=guid, image_url=image_url, title=title, description=description)
