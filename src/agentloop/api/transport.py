"""
HTTP transport for model requests.

HttpTransport posts a request with httpx and hands back either a parsed
JSON body or the raw byte stream of an event-stream response. Which one
is decided only by the response's content type.
"""

from __future__ import annotations

import contextlib as _contextlib
import dataclasses as _dataclasses
import json as _json
import logging as _logging
import typing as _typing

import httpx as _httpx

import agentloop.constants as _constants
import agentloop.errors as errors

if _typing.TYPE_CHECKING:
    import agentloop.api.base as base

_logger = _logging.getLogger(__name__)

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"


@_dataclasses.dataclass
class TransportResponse:
    """A successful response: exactly one of ``json`` or ``stream`` is set."""

    status_code: int
    content_type: str
    json: dict[str, _typing.Any] | None = None
    stream: _typing.AsyncIterator[bytes] | None = None

    @property
    def is_event_stream(self) -> bool:
        return self.stream is not None


def parse_json_body(raw: bytes, *, content_type: str = "") -> dict[str, _typing.Any]:
    """
    Parse a non-streaming response body.

    Raises:
        ProviderResponseError: If the body is empty, not JSON, or not an object.
    """
    text = raw.decode("utf-8", errors="replace")
    if not text.strip():
        raise errors.ProviderResponseError(
            f"Empty response body (content-type: {content_type or 'unknown'})"
        )
    try:
        data = _json.loads(text)
    except ValueError as e:
        preview = text[: _constants.ERROR_BODY_PREVIEW_CHARS]
        raise errors.ProviderResponseError(
            f"Failed to parse JSON response (content-type: {content_type or 'unknown'}): "
            f"{e}. Body preview: {preview}"
        ) from e
    if not isinstance(data, dict):
        raise errors.ProviderResponseError(
            f"Expected a JSON object, got {type(data).__name__}", payload=data
        )
    return data


class HttpTransport:
    """
    Sends vendor requests over HTTP.

    Usage:
        transport = HttpTransport(timeout=60)
        async with transport.send(request) as response:
            if response.is_event_stream:
                async for chunk in response.stream: ...
            else:
                use(response.json)
        await transport.close()
    """

    def __init__(
        self,
        *,
        timeout: float = _constants.DEFAULT_HTTP_TIMEOUT,
        client: _httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            timeout: Request timeout in seconds (ignored when client is given).
            client: Pre-configured httpx client; the caller keeps ownership.
        """
        self._owns_client = client is None
        self._client = client or _httpx.AsyncClient(timeout=timeout)

    @_contextlib.asynccontextmanager
    async def send(
        self, request: base.RequestSpec
    ) -> _typing.AsyncIterator[TransportResponse]:
        """
        POST a request and yield the response.

        The underlying HTTP response is released when the block exits,
        whether it exits normally, by exception, or by cancellation.

        Raises:
            TransportError: Connection failure or non-2xx status.
            ProviderResponseError: Unusable non-streaming body.
        """
        try:
            async with self._client.stream(
                "POST", request.url, json=request.body, headers=request.headers
            ) as response:
                if not response.is_success:
                    raise await _status_error(response)

                content_type = response.headers.get("content-type", "")
                if EVENT_STREAM_CONTENT_TYPE in content_type.lower():
                    yield TransportResponse(
                        status_code=response.status_code,
                        content_type=content_type,
                        stream=response.aiter_bytes(),
                    )
                else:
                    raw = await response.aread()
                    yield TransportResponse(
                        status_code=response.status_code,
                        content_type=content_type,
                        json=parse_json_body(raw, content_type=content_type),
                    )
        except _httpx.HTTPError as e:
            raise errors.TransportError(f"Request to {request.url} failed: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info: _typing.Any) -> None:
        await self.close()


async def _status_error(response: _httpx.Response) -> errors.TransportError:
    body = (await response.aread()).decode("utf-8", errors="replace")
    payload: _typing.Any = None
    try:
        payload = _json.loads(body) if body else None
    except ValueError:
        payload = None

    _logger.debug("HTTP %d from %s: %.500s", response.status_code, response.url, body)
    return errors.TransportError(
        f"HTTP {response.status_code} {response.reason_phrase}: {body}",
        status_code=response.status_code,
        reason=response.reason_phrase,
        body=body,
        payload=payload,
    )
