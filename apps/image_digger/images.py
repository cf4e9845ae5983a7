# apps/image_digger/images.py
#
# Candidate images: download, measure, pick the biggest.
#
#   Candidate(url, blob)  → blob is None for a src we never downloaded
#   probe_dimensions()    → (width, height) from the header, no full decode
#   pick_largest()        → strictly-largest area wins; on a tie the FIRST
#                           candidate seen keeps its place

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Callable, Iterable, Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

# Placeholder for a src that is not on the extension allow-list.
EMPTY_URL = ""


@dataclass
class Candidate:
    url: str
    blob: Optional[bytes] = None


@dataclass
class Pick:
    url: str
    area: int


async def fetch_image(client: httpx.AsyncClient, url: str) -> bytes:
    """Raw bytes of one image. No retry; transport errors propagate."""
    r = await client.get(url)
    return r.content


def probe_dimensions(blob: bytes) -> Optional[Tuple[int, int]]:
    """
    Width/height of an image blob. Pillow only parses the header on open(),
    pixels are not decoded. Returns None when the blob is not an image.

    The decompression-bomb pixel limit is off for the open() call, so very
    large images still report their size.
    """
    if not blob:
        return None
    limit = Image.MAX_IMAGE_PIXELS
    Image.MAX_IMAGE_PIXELS = None
    try:
        with Image.open(BytesIO(blob)) as im:
            return im.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None
    finally:
        Image.MAX_IMAGE_PIXELS = limit


def pick_largest(
    candidates: Iterable[Candidate],
    probe: Callable[[bytes], Optional[Tuple[int, int]]] = probe_dimensions,
) -> Optional[Pick]:
    best = Pick(url=EMPTY_URL, area=0)
    for c in candidates:
        if not c.blob:
            continue
        size = probe(c.blob)
        if not size:
            continue
        area = size[0] * size[1]
        if area > best.area:
            best = Pick(url=c.url, area=area)
    if best.area == 0:
        return None
    return best
