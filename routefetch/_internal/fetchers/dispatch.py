"""Construction of the per-route fetcher coroutines."""

from collections.abc import Awaitable, Callable
from typing import Any

from routefetch._internal.fetchers.models import ApiConfig, CallInput, MethodSpec
from routefetch._internal.fetchers.paths import resolve_path
from routefetch._internal.http import Transport, TransportRequest, log_debug, merge_options

Fetcher = Callable[..., Awaitable[Any]]


def make_fetcher(
    path: str,
    method: str,
    config: ApiConfig,
    transport: Transport,
    spec: MethodSpec | None = None,
) -> Fetcher:
    """Create the fetcher for one (path, method) pair.

    The returned coroutine function accepts a CallInput, a mapping, or
    keyword fields (params, query, body, plus transport options). It
    resolves the path, merges options over the config's base options, and
    awaits the transport exactly once. The transport's reply is returned
    as is; its errors propagate unchanged.

    The function carries path, method and spec attributes so effect hooks
    can tell fetchers apart.
    """
    base_options = config.base_options()
    strict = config.strict_params

    async def fetcher(call_input: Any = None, /, **fields: Any) -> Any:
        call = CallInput.coerce(call_input, **fields)
        request = TransportRequest(
            method=method,
            url=resolve_path(path, call.params, strict=strict),
            query=call.query,
            body=call.body,
            options=merge_options(base_options, call.transport_options()),
        )
        log_debug(config.debug, f"Dispatching {method} {request.url}")
        return await transport.send(request)

    fetcher.__name__ = f"{method.lower()}_{_slug(path)}"
    fetcher.__qualname__ = fetcher.__name__
    fetcher.__doc__ = f"{method} {path}" + (f"\n\n{spec.description}" if spec and spec.description else "")
    fetcher.path = path  # type: ignore[attr-defined]
    fetcher.method = method  # type: ignore[attr-defined]
    fetcher.spec = spec  # type: ignore[attr-defined]
    return fetcher


def _slug(path: str) -> str:
    slug = "".join(char if char.isalnum() else "_" for char in path).strip("_")
    return slug or "root"
