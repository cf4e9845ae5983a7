# apps/ai_recap/dig.py
#
# /dig/stream: SSE proxy in front of the chat-completions API.
#
# Flow for POST /dig/stream {"article_url": ..., "messages": [...]}:
#   - validate Content-Type + article_url (http/https only)
#   - "initial dig" (exactly [system, user]) with a fresh cache entry
#       → replay it as one chunk + [DONE], no upstream call
#   - otherwise open the upstream stream and pull the FIRST chunk before
#     answering, so upstream 5xx can still be turned into a clean error:
#       5xx      → retry once
#       anything else / second failure → 502 JSON
#   - relay chunks as "data: <json>\n", always finish with "data: [DONE]\n"
#   - errors after streaming started are swallowed (client keeps what it got)
#   - initial digs that produced text are cached for next time
#
# One log line per request: model, short article hash, latency, usage.

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from apps.ai_recap.ai import AiMessage, AiModels, HttpResponseError, ask_ai_stream
from apps.ai_recap.dig_cache import DigCache
from apps.common.web import make_client

log = logging.getLogger("feedsmith.ai_recap")

router = APIRouter(tags=["dig"])

DIG_MODEL = AiModels.PERPLEXITY

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
    **CORS_HEADERS,
}

SSE_MEDIA_TYPE = "text/event-stream; charset=utf-8"


def _json_error(status_code: int, message: str, detail: Optional[str] = None) -> JSONResponse:
    err: Dict[str, Any] = {"message": message}
    if detail is not None:
        err["detail"] = detail
    return JSONResponse(status_code=status_code, content={"error": err}, headers=dict(CORS_HEADERS))


def _sse(obj: Any) -> bytes:
    return ("data: " + json.dumps(obj) + "\n").encode("utf-8")


SSE_DONE = b"data: [DONE]\n"


def _valid_article_url(u: str) -> bool:
    try:
        p = urlparse(u)
    except ValueError:
        return False
    return p.scheme in ("http", "https") and bool(p.netloc)


def is_initial_dig(messages: List[Any]) -> bool:
    return (
        len(messages) == 2
        and isinstance(messages[0], dict)
        and isinstance(messages[1], dict)
        and messages[0].get("role") == "system"
        and messages[1].get("role") == "user"
    )


def article_hash(article_url: str) -> str:
    return hashlib.sha256(article_url.encode("utf-8")).hexdigest()[:12]


def _log_request(article_url: str, started: float, usage: str) -> None:
    latency = int((time.monotonic() - started) * 1000)
    log.info(
        "[dig] model=%s article=%s latency_ms=%d %s",
        DIG_MODEL.value, article_hash(article_url), latency, usage,
    )


def _usage_str(usage: Optional[Dict[str, Any]]) -> str:
    if not usage:
        return ""
    return (
        f"pt={usage.get('prompt_tokens')} "
        f"ct={usage.get('completion_tokens')} "
        f"tt={usage.get('total_tokens')}"
    )


def _delta(chunk: Dict[str, Any]) -> str:
    try:
        return chunk["choices"][0]["delta"].get("content") or ""
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""


async def _open_stream(
    client: httpx.AsyncClient, messages: List[AiMessage]
) -> Tuple[AsyncIterator[Dict[str, Any]], Optional[Dict[str, Any]]]:
    gen = ask_ai_stream(client, messages, model=DIG_MODEL)
    try:
        first = await gen.__anext__()
    except StopAsyncIteration:
        first = None
    return gen, first


async def _open_stream_retry_once(client: httpx.AsyncClient, messages: List[AiMessage]):
    try:
        return await _open_stream(client, messages)
    except HttpResponseError as e:
        if not 500 <= e.status < 600:
            raise
        log.warning("[dig] upstream %d, retrying once", e.status)
        return await _open_stream(client, messages)


def _cached_stream(markdown: str) -> AsyncIterator[bytes]:
    async def body():
        yield _sse({
            "id": "cached",
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": DIG_MODEL.value,
            "choices": [{"index": 0, "delta": {"content": markdown}, "finish_reason": "stop"}],
        })
        yield SSE_DONE
    return body()


@router.api_route("/dig/stream", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
async def dig_stream(request: Request):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=dict(CORS_HEADERS))
    if request.method != "POST":
        return Response("Method Not Allowed", status_code=405, headers=dict(CORS_HEADERS))

    started = time.monotonic()

    if "application/json" not in (request.headers.get("content-type") or ""):
        return _json_error(400, "Invalid Content-Type")
    try:
        body = await request.json()
    except ValueError:
        return _json_error(400, "Invalid JSON body")
    if not isinstance(body, dict):
        body = {}

    article_url = body.get("article_url") or ""
    messages = body.get("messages") if isinstance(body.get("messages"), list) else []

    if not isinstance(article_url, str) or not _valid_article_url(article_url):
        return _json_error(400, "Invalid article_url")

    initial = is_initial_dig(messages)
    dig_cache: DigCache = request.app.state.dig_cache

    cached = await dig_cache.aget(article_url) if initial else None
    if cached:
        _log_request(article_url, started, "usage=cached")
        return StreamingResponse(
            _cached_stream(cached.markdown), media_type=SSE_MEDIA_TYPE, headers=dict(SSE_HEADERS)
        )

    client = make_client(request.app.state.transport)
    try:
        gen, first = await _open_stream_retry_once(client, messages)
    except Exception as e:
        await client.aclose()
        _log_request(article_url, started, f"error={type(e).__name__}")
        return _json_error(502, "Upstream error", str(e))

    async def relay():
        answer = ""
        usage: Optional[Dict[str, Any]] = None
        try:
            try:
                if first is not None:
                    answer += _delta(first)
                    usage = first.get("usage") or usage
                    yield _sse(first)
                    if not first.get("error"):
                        async for chunk in gen:
                            answer += _delta(chunk)
                            usage = chunk.get("usage") or usage
                            yield _sse(chunk)
                            if chunk.get("error"):
                                break
            except Exception as e:
                log.warning("[dig] stream broke for %s: %s", article_hash(article_url), type(e).__name__)
            yield SSE_DONE
        finally:
            await gen.aclose()
            await client.aclose()
            if initial and answer:
                await dig_cache.aset(article_url, answer)
            _log_request(article_url, started, _usage_str(usage))

    return StreamingResponse(relay(), media_type=SSE_MEDIA_TYPE, headers=dict(SSE_HEADERS))
