# apps/common/web.py
from __future__ import annotations

import logging
from typing import Optional

import httpx

USER_AGENT = "Mozilla/5.0 (compatible; FeedsmithBot/1.0; +https://github.com/feedsmith)"

# No timeout and no retries: a scan runs until it completes or fails.
NO_TIMEOUT = httpx.Timeout(timeout=None)


def make_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """One client per incoming request, shared by every fan-out task of it."""
    return httpx.AsyncClient(
        timeout=NO_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    )


def cors_headers() -> dict[str, str]:
    return {"Access-Control-Allow-Origin": "*"}


def setup_logging(name: str) -> logging.Logger:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    return logging.getLogger(name)
