"""
Execution: deliver(claims) -> DeliveryResponse for an already consumed token.

Two phases:
- connect: open the origin response (or the local file) and pull the first
  chunk. Any failure here rolls the token back; nothing was sent yet.
- transfer: headers are out, remaining chunks are copied one at a time. A
  failure here aborts the connection and the token stays used.

A response that is dropped before its body is iterated (client gone before
http.response.start) still counts as connect phase: the source is closed and
the token rolled back.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import partial
from typing import AsyncIterator, Awaitable, Callable

import anyio
import httpx
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from paygate.core.config import Settings
from paygate.delivery.errors import AssetUnavailable, OriginUnreachable
from paygate.delivery.guard import TokenGuard
from paygate.delivery.models import TokenClaims
from paygate.utils.metrics import downloads_total, token_rollbacks_total

logger = logging.getLogger(__name__)

MEDIA_TYPE = "application/zip"


@dataclass
class _OpenedSource:
    first_chunk: bytes
    chunks: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]
    started: bool = False
    released: bool = False


class DeliveryResponse(StreamingResponse):
    """StreamingResponse that calls `release` once the ASGI call ends, however it ends."""

    def __init__(self, content, *, release: Callable[[], Awaitable[None]], **kwargs) -> None:
        super().__init__(content, **kwargs)
        self._release = release

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                # runs the body's own cleanup if it was left suspended mid-transfer
                await self.body_iterator.aclose()
                await self._release()


class DeliveryStreamer:
    def __init__(
        self,
        client: httpx.AsyncClient,
        guard: TokenGuard,
        *,
        filename: str,
        origin_url: str = "",
        file_path: str = "",
        chunk_size: int = 64 * 1024,
        origin_timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._guard = guard
        self._filename = filename
        self._origin_url = origin_url
        self._file_path = file_path
        self._chunk_size = chunk_size
        self._origin_timeout = origin_timeout

    @classmethod
    def from_settings(
        cls, client: httpx.AsyncClient, guard: TokenGuard, settings: Settings
    ) -> "DeliveryStreamer":
        return cls(
            client,
            guard,
            filename=settings.asset_filename,
            origin_url=settings.asset_origin_url,
            file_path=settings.asset_file_path,
            chunk_size=settings.stream_chunk_size,
            origin_timeout=settings.origin_timeout,
        )

    @property
    def source(self) -> str:
        return "origin" if self._origin_url else "local"

    @property
    def headers(self) -> dict[str, str]:
        """Header contract shared by both sources."""
        return {"Content-Disposition": f'attachment; filename="{self._filename}"'}

    async def deliver(self, claims: TokenClaims) -> DeliveryResponse:
        source = self.source
        try:
            if source == "origin":
                opened = await self._open_origin()
            else:
                opened = await self._open_local()
        except BaseException as e:
            # cancellation included: no byte has reached the client yet
            self._guard.rollback(claims)
            token_rollbacks_total.labels(source=source).inc()
            downloads_total.labels(source=source, outcome="unavailable").inc()
            logger.warning(
                "download_source_failed",
                extra={
                    "token_id": claims.token_id,
                    "source": source,
                    "error": getattr(e, "detail", type(e).__name__),
                },
            )
            raise

        return DeliveryResponse(
            self._transfer(claims, source, opened),
            release=partial(self._release_unsent, claims, source, opened),
            media_type=MEDIA_TYPE,
            headers=self.headers,
        )

    async def _release_unsent(self, claims: TokenClaims, source: str, opened: _OpenedSource) -> None:
        if opened.started or opened.released:
            return
        opened.released = True
        await opened.close()
        self._guard.rollback(claims)
        token_rollbacks_total.labels(source=source).inc()
        downloads_total.labels(source=source, outcome="abandoned").inc()
        logger.warning(
            "download_abandoned",
            extra={"token_id": claims.token_id, "source": source, "bytes_sent": 0},
        )

    async def _open_origin(self) -> _OpenedSource:
        request = self._client.build_request("GET", self._origin_url, timeout=self._origin_timeout)
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise OriginUnreachable(f"{type(e).__name__}: {e}") from e

        try:
            if not resp.is_success:
                raise OriginUnreachable(f"origin returned HTTP {resp.status_code}")
            chunks = resp.aiter_bytes(self._chunk_size)
            try:
                first = await _first_chunk(chunks)
            except httpx.HTTPError as e:
                raise OriginUnreachable(f"{type(e).__name__}: {e}") from e
            if not first:
                raise OriginUnreachable("origin returned an empty body")
        except BaseException:
            with anyio.CancelScope(shield=True):
                await resp.aclose()
            raise
        return _OpenedSource(first_chunk=first, chunks=chunks, close=resp.aclose)

    async def _open_local(self) -> _OpenedSource:
        try:
            f = await anyio.open_file(self._file_path, "rb")
        except OSError as e:
            raise AssetUnavailable(f"cannot open {self._file_path}: {e}") from e

        try:
            try:
                first = await f.read(self._chunk_size)
            except OSError as e:
                raise AssetUnavailable(f"cannot read {self._file_path}: {e}") from e
            if not first:
                raise AssetUnavailable(f"{self._file_path} is empty")
        except BaseException:
            with anyio.CancelScope(shield=True):
                await f.aclose()
            raise
        return _OpenedSource(first_chunk=first, chunks=_file_chunks(f, self._chunk_size), close=f.aclose)

    async def _transfer(
        self, claims: TokenClaims, source: str, opened: _OpenedSource
    ) -> AsyncIterator[bytes]:
        if opened.released:
            return
        opened.started = True
        sent = 0
        completed = False
        try:
            yield opened.first_chunk
            sent += len(opened.first_chunk)
            async for chunk in opened.chunks:
                yield chunk
                sent += len(chunk)
            completed = True
        finally:
            # also runs on client disconnect (cancellation): release the origin connection
            with anyio.CancelScope(shield=True):
                await opened.close()
            outcome = "completed" if completed else "aborted"
            downloads_total.labels(source=source, outcome=outcome).inc()
            log = logger.info if completed else logger.warning
            log(
                f"download_{outcome}",
                extra={"token_id": claims.token_id, "source": source, "bytes_sent": sent},
            )


async def _first_chunk(chunks: AsyncIterator[bytes]) -> bytes:
    async for chunk in chunks:
        if chunk:
            return chunk
    return b""


async def _file_chunks(f, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await f.read(chunk_size)
        if not chunk:
            return
        yield chunk


def local_asset_ready(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.R_OK)
