"""Transport collaborator: option merging and the default httpx transport."""

import asyncio
import inspect
import json
import sys
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from routefetch._version import __version__
from routefetch.exceptions import RequestCancelledError

DEFAULT_TIMEOUT = 30.0
UPLOAD_CHUNK_SIZE = 64 * 1024

# Per-request keyword arguments httpx accepts besides method/url/params/body
REQUEST_OPTIONS = ("cookies", "auth", "follow_redirects", "timeout", "extensions")
FORM_OPTIONS = ("data", "files")


def log_debug(enabled: bool, message: str) -> None:
    """Log a debug message to stderr if debug mode is enabled."""
    if enabled:
        print(f"[routefetch] {message}", file=sys.stderr)


def create_http_client(
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
    base_url: str | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        timeout: Request timeout in seconds.
        base_url: Optional base URL for all requests.

    Returns:
        Configured httpx.AsyncClient instance.
    """
    return httpx.AsyncClient(
        timeout=timeout,
        base_url=base_url or "",
        headers={"User-Agent": f"routefetch/{__version__}"},
    )


# =============================================================================
# Option Merging
# =============================================================================


def merge_headers(
    base: Mapping[str, Any] | None,
    overrides: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Merge header mappings by case-insensitive name, overrides winning.

    An override value of None removes the header.
    """
    merged = dict(base or {})
    for name, value in (overrides or {}).items():
        for existing in [key for key in merged if key.lower() == name.lower()]:
            del merged[existing]
        if value is not None:
            merged[name] = value
    return merged


def merge_options(
    base: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> dict[str, Any]:
    """Merge per-call transport options over base options.

    Precedence is per key: a key present in overrides replaces the base
    value, a key only in base is inherited, and a None override leaves the
    base value in place. "headers" is merged per header name instead of
    being replaced. Neither argument is mutated.

    Args:
        base: Options shared by every request (from ApiConfig).
        overrides: Options supplied with one call.

    Returns:
        A new dictionary with the merged options.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "headers":
            merged[key] = merge_headers(merged.get(key), value)
        else:
            merged[key] = value
    return merged


def header_values(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Render header values for httpx, which only accepts str and bytes."""
    return {
        name: value if isinstance(value, (str, bytes)) else str(value)
        for name, value in (headers or {}).items()
        if value is not None
    }


def flatten_query(query: Any) -> Any:
    """Flatten nested mappings into bracketed keys.

    {"filter": {"a": 1}} becomes {"filter[a]": 1}, and a list of mappings
    is indexed: {"sort": [{"by": "x"}]} becomes {"sort[0][by]": "x"}. Lists
    of scalars stay lists so httpx repeats the key. Queries that are not
    mappings (strings, lists of pairs) pass through untouched.
    """
    if not isinstance(query, Mapping):
        return query
    flat: dict[str, Any] = {}
    for key, value in query.items():
        _flatten_into(flat, str(key), value)
    return flat


def _flatten_into(flat: dict[str, Any], key: str, value: Any) -> None:
    if isinstance(value, Mapping):
        for name, item in value.items():
            _flatten_into(flat, f"{key}[{name}]", item)
    elif isinstance(value, (list, tuple)) and any(isinstance(item, Mapping) for item in value):
        for index, item in enumerate(value):
            _flatten_into(flat, f"{key}[{index}]", item)
    else:
        flat[key] = value


def join_url(base_url: str | None, path: str) -> str:
    """Append a resolved path to a base URL."""
    if not base_url:
        return path
    return base_url.rstrip("/") + "/" + path.lstrip("/")


# =============================================================================
# Transport Contract
# =============================================================================


@dataclass(frozen=True)
class TransportRequest:
    """One request as assembled by a fetcher.

    url is the resolved path; the transport joins it with options["base_url"].
    options holds the merged base and per-call transport options. Values are
    kept by identity (a cancellation signal is the caller's own object).
    """

    method: str
    url: str
    query: Any = None
    body: Any = None
    options: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Transport(Protocol):
    """What fetchers need from an HTTP client."""

    async def send(self, request: TransportRequest) -> Any:
        """Perform the request and return the reply payload."""
        ...

    async def aclose(self) -> None:
        ...


# =============================================================================
# httpx Transport
# =============================================================================


class HttpxTransport:
    """Transport backed by httpx.AsyncClient.

    Errors from httpx (connection failures, timeouts, HTTPStatusError for
    non-2xx replies when raise_for_status is set) propagate unchanged.
    Signal cancellation raises RequestCancelledError, and a malformed JSON
    reply raises httpx.DecodingError.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        debug: bool = False,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client to send requests with. When omitted one is created
                on first use and closed by aclose().
            timeout: Timeout for a created client.
            debug: Enable debug logging to stderr.
        """
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._debug = debug

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_http_client(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def send(self, request: TransportRequest) -> Any:
        """Send a request and return its decoded reply.

        Returns:
            Parsed JSON for JSON replies, text for textual replies, bytes
            for anything else, and None for an empty body.
        """
        options = dict(request.options)
        signal = options.pop("signal", None)
        on_upload = options.pop("on_upload_progress", None)
        on_download = options.pop("on_download_progress", None)
        raise_for_status = options.pop("raise_for_status", True)
        url = join_url(options.pop("base_url", None), request.url)
        headers = httpx.Headers(header_values(options.pop("headers", None)))

        kwargs: dict[str, Any] = {"method": request.method, "url": url}
        if request.query is not None:
            kwargs["params"] = flatten_query(request.query)
        kwargs.update(_body_kwargs(request.body, headers, on_upload))
        kwargs["headers"] = headers
        for name in REQUEST_OPTIONS + FORM_OPTIONS:
            if name in options:
                kwargs[name] = options.pop(name)
        if options:
            log_debug(self._debug, f"Ignoring options httpx does not accept: {sorted(options)}")

        log_debug(self._debug, f"Sending {request.method} {url}")
        exchange = self._exchange(kwargs, raise_for_status, on_download)
        if signal is None:
            return await exchange
        return await _race_signal(exchange, signal, httpx.Request(request.method, url))

    async def _exchange(
        self,
        kwargs: dict[str, Any],
        raise_for_status: bool,
        on_download: Callable[..., Any] | None,
    ) -> Any:
        async with self._get_client().stream(**kwargs) as response:
            log_debug(self._debug, f"Received {response.status_code} for {kwargs['url']}")

            if raise_for_status and response.is_error:
                await response.aread()
                response.raise_for_status()

            if on_download is None:
                content = await response.aread()
            else:
                length = response.headers.get("Content-Length")
                total = int(length) if length else None
                received = 0
                chunks: list[bytes] = []
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    received += len(chunk)
                    await _notify(on_download, received, total)
                content = b"".join(chunks)

            return decode_reply(response, content)


def decode_reply(response: httpx.Response, content: bytes) -> Any:
    """Decode a reply body according to its content type."""
    if not content:
        return None
    content_type = response.headers.get("Content-Type", "").lower()
    if "json" in content_type:
        try:
            return json.loads(content)
        except ValueError as e:
            raise httpx.DecodingError(f"Malformed JSON reply: {e}", request=response.request) from e
    if not content_type or content_type.startswith("text/") or "xml" in content_type:
        return content.decode(response.charset_encoding or "utf-8", errors="replace")
    return content


def _body_kwargs(
    body: Any,
    headers: httpx.Headers,
    on_upload: Callable[..., Any] | None,
) -> dict[str, Any]:
    """Choose how httpx should carry the body."""
    if body is None:
        return {}
    if on_upload is None:
        if isinstance(body, (str, bytes)):
            return {"content": body}
        return {"json": body}

    if isinstance(body, bytes):
        payload = body
    elif isinstance(body, str):
        payload = body.encode("utf-8")
    else:
        payload = json.dumps(body).encode("utf-8")
        headers.setdefault("Content-Type", "application/json")
    headers["Content-Length"] = str(len(payload))
    return {"content": _upload_chunks(payload, on_upload)}


async def _upload_chunks(payload: bytes, on_upload: Callable[..., Any]) -> AsyncIterator[bytes]:
    total = len(payload)
    sent = 0
    for start in range(0, total, UPLOAD_CHUNK_SIZE):
        chunk = payload[start : start + UPLOAD_CHUNK_SIZE]
        yield chunk
        sent += len(chunk)
        await _notify(on_upload, sent, total)


async def _notify(callback: Callable[..., Any], done: int, total: int | None) -> None:
    result = callback(done, total)
    if inspect.isawaitable(result):
        await result


async def _race_signal(exchange: Any, signal: Any, request: httpx.Request) -> Any:
    """Await the exchange unless the signal fires first."""
    if signal.is_set():
        exchange.close()
        raise RequestCancelledError("Request cancelled before it was sent", request=request)

    exchange_task = asyncio.ensure_future(exchange)
    signal_task = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait(
            {exchange_task, signal_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for task in (exchange_task, signal_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(exchange_task, signal_task, return_exceptions=True)

    if exchange_task in done:
        return exchange_task.result()
    raise RequestCancelledError("Request cancelled by signal", request=request)
