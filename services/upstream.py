"""HTTP forwarding of inbound requests to the upstream target."""

import asyncio
import re
import time
from collections.abc import AsyncIterator

import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from core.exceptions import (
    InvalidTargetError,
    RelayIOError,
    RequestConstructionError,
    UpstreamConnectionError,
    UpstreamTimeoutError,
)
from core.headers import HeaderBuilder
from core.protocols import RequestLogger

UPSTREAM_TIMEOUT = 10.0  # seconds, connect + headers + body
MAX_REDIRECTS = 10
ROUTE_NAME = "upstream"

# RFC 9110 token
_METHOD_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def parse_target(target: str) -> httpx.URL:
    """Parse the target string, which must be an absolute http(s) URL."""
    try:
        url = httpx.URL(target)
    except httpx.InvalidURL as e:
        raise InvalidTargetError(f"invalid target URL: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidTargetError(f"invalid target URL: {target!r} is not an absolute http(s) URL")
    return url


class Forwarder:
    """Forward each request to a single upstream target and relay the response."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        target_url: str,
        user_agent: str,
        header_builder: HeaderBuilder | None = None,
        *,
        forward_headers: bool = False,
        forward_body: bool = False,
        timeout: float = UPSTREAM_TIMEOUT,
    ) -> None:
        self._client = client
        self._target_url = target_url
        self._user_agent = user_agent
        self._headers = header_builder or HeaderBuilder()
        self._forward_headers = forward_headers
        self._forward_body = forward_body
        self._timeout = timeout

    async def forward(self, request: Request, logger: RequestLogger) -> StreamingResponse:
        """Forward one request and return a response that streams the upstream body.

        Raises ForwardError subclasses for failures before the status is committed.
        """
        deadline = asyncio.get_running_loop().time() + self._timeout
        started = time.perf_counter()

        url = parse_target(self._target_url)
        upstream_request = self._build_request(request, url)
        response = await self._dispatch(upstream_request, deadline)

        try:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.log_forward(request.method, request.url.path, response.status_code, elapsed_ms=elapsed_ms)

            relayed = StreamingResponse(
                self._relay_body(response, deadline, logger),
                status_code=response.status_code,
                background=BackgroundTask(self._cleanup, response),
            )
            relayed.raw_headers.extend(self._headers.relay_response_headers(response.headers))
        except BaseException:
            # Nothing owns the open response until it is returned
            await response.aclose()
            raise
        return relayed

    def _build_request(self, request: Request, url: httpx.URL) -> httpx.Request:
        """Assemble the outbound request from the inbound method."""
        method = request.method
        if not isinstance(method, str) or not _METHOD_RE.fullmatch(method):
            raise RequestConstructionError(f"failed to create request: invalid method {method!r}")

        headers = self._headers.build_upstream_headers(
            request.headers,
            self._user_agent,
            forward=self._forward_headers,
        )
        content = request.stream() if self._forward_body and _has_body(request) else None
        try:
            return self._client.build_request(method, url, headers=headers, content=content)
        except (httpx.InvalidURL, ValueError) as e:
            raise RequestConstructionError(f"failed to create request: {e}") from e

    async def _dispatch(self, upstream_request: httpx.Request, deadline: float) -> httpx.Response:
        """Send the request and wait for the response headers."""
        try:
            async with asyncio.timeout_at(deadline):
                return await self._client.send(upstream_request, stream=True)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeoutError(
                f"external request timed out after {self._timeout:g}s"
            ) from e
        except httpx.RequestError as e:
            detail = str(e) or type(e).__name__
            raise UpstreamConnectionError(f"external request failed: {detail}") from e

    async def _relay_body(
        self,
        response: httpx.Response,
        deadline: float,
        logger: RequestLogger,
    ) -> AsyncIterator[bytes]:
        """Yield the raw upstream body chunk by chunk as it arrives, then release the response."""
        chunks = response.aiter_raw()
        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        chunk = await anext(chunks)
                except StopAsyncIteration:
                    break
                yield chunk
        except (TimeoutError, httpx.HTTPError) as e:
            detail = str(e) or f"timed out after {self._timeout:g}s"
            logger.log_error(ROUTE_NAME, response.status_code, f"Relay interrupted: {detail}")
            raise RelayIOError(f"relay interrupted: {detail}") from e
        finally:
            await chunks.aclose()
            await response.aclose()

    async def _cleanup(self, response: httpx.Response) -> None:
        """Clean up streaming resources."""
        await response.aclose()


def _has_body(request: Request) -> bool:
    headers = request.headers
    return "transfer-encoding" in headers or headers.get("content-length", "0") != "0"
