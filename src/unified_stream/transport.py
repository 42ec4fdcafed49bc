"""HTTP transport turning vendor responses into decoded event dicts."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

from unified_stream.abort import CancellationToken
from unified_stream.errors import ProviderError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can POST a payload and yield the decoded response events."""

    def stream(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        token: CancellationToken | None = None,
    ) -> AsyncIterator[dict[str, Any]]: ...


class HttpxSSETransport:
    """Streams server-sent events with httpx.

    Only ``data:`` lines are decoded; ``[DONE]`` ends the stream. A response
    that is not ``text/event-stream`` is read whole and yielded as a single
    event, which is how non-streaming requests travel the same path.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 60.0,
        provider_name: str = "http",
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self.provider_name = provider_name

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    def stream(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        token: CancellationToken | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Return an async iterator over decoded events."""

        async def _gen() -> AsyncIterator[dict[str, Any]]:
            try:
                async with self._client.stream("POST", url, headers=headers, json=payload) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        raise ProviderError(
                            self.provider_name,
                            body.decode(errors="replace") or response.reason_phrase,
                            status_code=response.status_code,
                        )

                    content_type = response.headers.get("content-type", "")
                    if "text/event-stream" not in content_type:
                        body = await response.aread()
                        yield self._json_or_error(body)
                        return

                    async for line in response.aiter_lines():
                        if token is not None:
                            token.raise_if_cancelled()
                        line = line.strip()
                        if not line or not line.startswith("data:"):
                            continue

                        data_str = line[len("data:") :].strip()
                        if data_str == "[DONE]":
                            return

                        try:
                            event = json.loads(data_str)
                        except json.JSONDecodeError:
                            logger.debug("Skipping non-JSON streaming chunk: %s", data_str)
                            continue
                        if isinstance(event, dict):
                            yield event
            except httpx.HTTPError as exc:
                logger.exception("Transport failure talking to %s", self.provider_name)
                raise ProviderError(self.provider_name, str(exc) or type(exc).__name__) from exc

        return _gen()

    def _json_or_error(self, body: bytes) -> dict[str, Any]:
        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ProviderError(self.provider_name, f"invalid JSON body: {body[:200]!r}") from exc
        if not isinstance(data, dict):
            raise ProviderError(self.provider_name, "unexpected response body")
        return data
