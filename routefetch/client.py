"""Fetcher generation from a route map.

Example:
    from routefetch import ApiConfig, build_api

    api = build_api(
        {"/users": ["GET", "POST"], "/users/:id": ["GET", "DELETE"]},
        ApiConfig(base_url="https://api.example.com"),
    )

    async with api:
        user = await api["/users/:id"].GET(params={"id": 42})
        created = await api["/users"].POST(body={"name": "Ada"})
"""

from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from routefetch._internal.fetchers.dispatch import make_fetcher
from routefetch._internal.fetchers.models import ApiConfig, normalize_route_map
from routefetch._internal.http import HttpxTransport, Transport, log_debug
from routefetch.exceptions import ConfigurationError


class MethodTable(Mapping[str, Any]):
    """Fetchers of one path, keyed by upper-case method name.

    Fetchers are also reachable as attributes: ``table.GET``.
    """

    def __init__(self, path: str, fetchers: dict[str, Any]) -> None:
        self._path = path
        self._fetchers = fetchers

    @property
    def path(self) -> str:
        return self._path

    def __getitem__(self, method: str) -> Any:
        return self._fetchers[method]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fetchers)

    def __len__(self) -> int:
        return len(self._fetchers)

    def __getattr__(self, name: str) -> Any:
        try:
            return self.__dict__["_fetchers"][name]
        except KeyError:
            raise AttributeError(f"{self.__dict__.get('_path')!r} has no {name} fetcher") from None

    def __repr__(self) -> str:
        return f"MethodTable({self._path!r}, {sorted(self._fetchers)})"


class GeneratedApi(Mapping[str, MethodTable]):
    """Read-only mapping from path template to its MethodTable.

    The shape is fixed at build time. Use as an async context manager (or
    call aclose()) to release the transport's connections.
    """

    def __init__(self, tables: dict[str, MethodTable], transport: Transport) -> None:
        self._tables = tables
        self._transport = transport

    @property
    def transport(self) -> Transport:
        return self._transport

    def __getitem__(self, path: str) -> MethodTable:
        return self._tables[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)

    def __repr__(self) -> str:
        return f"GeneratedApi({list(self._tables)})"

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "GeneratedApi":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def build_api(
    route_map: Mapping[str, Any],
    config: ApiConfig | Mapping[str, Any] | None = None,
) -> GeneratedApi:
    """Generate one fetcher per (path, method) pair of a route map.

    Generation is eager: the route map is validated up front and every
    fetcher exists when this returns. If config.effect is set it is called
    exactly once per pair, here, with the raw fetcher; what it returns is
    what the result exposes. Calling a fetcher later never calls the
    effect again.

    Args:
        route_map: Path template -> method names (or method -> MethodSpec).
        config: ApiConfig or a mapping of its fields.

    Returns:
        The GeneratedApi holding exactly the declared pairs.

    Raises:
        ConfigurationError: Malformed route map, unrecognized method, or
            invalid configuration values. Nothing is generated.
    """
    if config is None:
        config = ApiConfig()
    elif not isinstance(config, ApiConfig):
        try:
            config = ApiConfig.model_validate(dict(config))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid API configuration: {e}") from e

    routes = normalize_route_map(route_map)

    transport = config.transport
    if transport is None:
        transport = HttpxTransport(timeout=config.timeout, debug=config.debug)
    elif not isinstance(transport, Transport):
        raise ConfigurationError(
            f"Transport must provide send() and aclose(), got {type(transport).__name__}"
        )

    tables: dict[str, MethodTable] = {}
    count = 0
    for path, methods in routes.items():
        fetchers: dict[str, Any] = {}
        for method, spec in methods.items():
            fetcher = make_fetcher(path, method, config, transport, spec)
            if config.effect is not None:
                fetcher = config.effect(fetcher)
            fetchers[method] = fetcher
            count += 1
        tables[path] = MethodTable(path, fetchers)

    log_debug(config.debug, f"Generated {count} fetchers for {len(tables)} routes")
    return GeneratedApi(tables, transport)
