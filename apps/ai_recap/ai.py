# apps/ai_recap/ai.py
#
# Thin client for the OpenRouter chat-completions API.
#
#   ask_ai()        → one-shot completion, returns the assistant text
#   ask_ai_stream() → async generator over the SSE "data: {json}" chunks
#
# No retries here. The /dig/stream route decides whether to retry.

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, TypedDict

import httpx

from apps.ai_recap.config import settings

log = logging.getLogger("feedsmith.ai_recap")


class AiModels(str, Enum):
    CLAUDE = "anthropic/claude-3.7-sonnet"
    CLAUDE_THINKING = "anthropic/claude-3.7-sonnet:thinking"
    GPT4_1 = "openai/gpt-4.1"
    GEMINI_FLASH = "google/gemini-2.0-flash-001"
    PERPLEXITY = "perplexity/sonar-pro-search"

    CHEAP = "google/gemini-2.0-flash-001"


class AiMessage(TypedDict):
    role: Literal["user", "assistant", "system"]
    content: str


class AiError(Exception):
    """The completion came back without any content."""


class HttpResponseError(Exception):
    """Non-2xx from the API before any streaming started."""

    def __init__(self, status: int, reason: str, body_text: str):
        super().__init__(f"HTTP {status} {reason}: {body_text}")
        self.status = status
        self.reason = reason
        self.body_text = body_text


def _headers(api_key: Optional[str]) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key if api_key is not None else settings.openrouter_api_key or ''}",
        "Content-Type": "application/json",
    }


async def ask_ai(
    client: httpx.AsyncClient,
    messages: List[AiMessage],
    model: AiModels = AiModels.CHEAP,
    *,
    api_key: Optional[str] = None,
    url: Optional[str] = None,
) -> str:
    r = await client.post(
        url or settings.openrouter_url,
        headers=_headers(api_key),
        json={"model": model.value, "messages": messages},
    )
    if r.status_code >= 400:
        raise HttpResponseError(r.status_code, r.reason_phrase, r.text)

    data = r.json()
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not content:
        log.error("[ai] no content in response: %s", json.dumps(data)[:500])
        raise AiError("No content in response")
    return content


async def ask_ai_stream(
    client: httpx.AsyncClient,
    messages: List[AiMessage],
    model: AiModels = AiModels.PERPLEXITY,
    *,
    api_key: Optional[str] = None,
    url: Optional[str] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield parsed chunks as they arrive. Stops on "data: [DONE]".
    Lines that are not "data: ..." and payloads that are not JSON are skipped.
    """
    body = {
        "model": model.value,
        "messages": messages,
        "stream": True,
        "stream_options": {"include_usage": True},
    }
    async with client.stream(
        "POST", url or settings.openrouter_url, headers=_headers(api_key), json=body
    ) as r:
        if r.status_code >= 400:
            text = (await r.aread()).decode("utf-8", "replace")
            raise HttpResponseError(r.status_code, r.reason_phrase, text)

        async for line in r.aiter_lines():
            line = line.strip()
            if not line.startswith("data: "):
                continue
            data = line[6:]
            if data == "[DONE]":
                return
            try:
                yield json.loads(data)
            except ValueError:
                continue
