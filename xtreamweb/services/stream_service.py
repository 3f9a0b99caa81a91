"""Stream service: pre-buffered byte passthrough of VOD / series episodes from the provider."""
from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, AsyncIterator

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse

if TYPE_CHECKING:
    from xtreamweb.services.http_client import HttpClientService

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024  # 64 KB
PRE_BUFFER_SIZE = 256 * 1024  # held back before the first byte is sent

_FORWARDED_HEADERS = ("content-type", "content-length", "content-range", "accept-ranges")


async def prebuffered(chunks: AsyncIterator[bytes], prebuffer_size: int = PRE_BUFFER_SIZE) -> AsyncIterator[bytes]:
    """Hold back the first *prebuffer_size* bytes, then relay chunks as they come.

    Whatever is buffered is still sent when the upstream ends early or a
    read fails mid-stream.
    """
    buffer: deque = deque()
    buffered = 0
    filled = False
    try:
        async for chunk in chunks:
            if not chunk:
                continue
            if filled:
                yield chunk
                continue
            buffer.append(chunk)
            buffered += len(chunk)
            if buffered >= prebuffer_size:
                filled = True
                while buffer:
                    yield buffer.popleft()
    except httpx.ReadError:
        logger.debug("Upstream stream read interrupted")
    while buffer:
        yield buffer.popleft()


async def proxy_stream(upstream_url: str, request: Request, http: "HttpClientService") -> Response:
    """Stream *upstream_url* back to the caller.

    ``Range`` is forwarded so players can seek; the provider's status
    (200 / 206) and range headers are passed through.
    """
    upstream_headers = {}
    if "range" in request.headers:
        upstream_headers["Range"] = request.headers["range"]

    client = await http.get_client()
    try:
        req = client.build_request(
            "GET",
            upstream_url,
            headers=upstream_headers,
            timeout=httpx.Timeout(connect=10.0, read=300.0, write=10.0, pool=10.0),
        )
        upstream_response = await client.send(req, stream=True)
    except httpx.TimeoutException:
        return Response(content="Upstream timeout", status_code=504)
    except httpx.HTTPError as e:
        logger.warning(f"Stream connection failed: {e}")
        return Response(content="Upstream connection error", status_code=502)

    if upstream_response.status_code >= 400:
        status = upstream_response.status_code
        await upstream_response.aclose()
        return Response(content=f"Failed to fetch stream: HTTP {status}", status_code=status)

    response_headers: dict[str, str] = {}
    for header in _FORWARDED_HEADERS:
        if header in upstream_response.headers:
            response_headers[header] = upstream_response.headers[header]
    response_headers.setdefault("content-type", "video/mp4")
    response_headers.setdefault("accept-ranges", "bytes")
    response_headers["Cache-Control"] = "public, max-age=3600"

    async def generate():
        try:
            async for chunk in prebuffered(upstream_response.aiter_bytes(chunk_size=CHUNK_SIZE)):
                yield chunk
        finally:
            await upstream_response.aclose()

    return StreamingResponse(
        generate(),
        status_code=upstream_response.status_code,
        headers=response_headers,
        media_type=response_headers["content-type"],
    )
