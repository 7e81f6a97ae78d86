"""Pydantic models for route maps, API configuration and call input."""

import os
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from routefetch._internal.http import DEFAULT_TIMEOUT
from routefetch.exceptions import ConfigurationError

# =============================================================================
# Constants
# =============================================================================

HTTP_METHODS: frozenset[str] = frozenset({
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
})

# CallInput fields that are transport options rather than request data
OPTION_FIELDS = (
    "headers",
    "signal",
    "on_upload_progress",
    "on_download_progress",
    "timeout",
)

# =============================================================================
# Route Map
# =============================================================================


class MethodSpec(BaseModel):
    """Descriptor for one method of a route.

    Carries the declared shapes for static tooling and effect hooks. The
    engine never inspects these fields; it only forwards call input.
    """

    params: Any = None
    query: Any = None
    body: Any = None
    reply: Any = None
    description: str | None = None

    model_config = {"extra": "allow", "frozen": True, "arbitrary_types_allowed": True}


def normalize_route_map(
    route_map: Mapping[str, Any],
) -> dict[str, dict[str, MethodSpec | None]]:
    """Validate a route map and normalize its method names.

    Each path maps either to an iterable of method names or to a mapping of
    method name -> MethodSpec (or a dict accepted by MethodSpec). Method
    names are matched case-insensitively and returned upper-cased. Paths
    with no methods are dropped.

    Raises:
        ConfigurationError: On a malformed path or an unrecognized method.
    """
    if not isinstance(route_map, Mapping):
        raise ConfigurationError(f"Route map must be a mapping, got {type(route_map).__name__}")

    routes: dict[str, dict[str, MethodSpec | None]] = {}
    for path, methods in route_map.items():
        if not isinstance(path, str) or not path.startswith("/"):
            raise ConfigurationError(f"Route path must be a string starting with '/': {path!r}")

        if isinstance(methods, Mapping):
            entries: Iterable[tuple[Any, Any]] = methods.items()
        elif isinstance(methods, Iterable) and not isinstance(methods, (str, bytes)):
            entries = ((method, None) for method in methods)
        else:
            raise ConfigurationError(
                f"Methods for route {path!r} must be a collection of method names, got {methods!r}"
            )

        table: dict[str, MethodSpec | None] = {}
        for method, spec in entries:
            name = method.upper() if isinstance(method, str) else None
            if name not in HTTP_METHODS:
                raise ConfigurationError(f"Unrecognized HTTP method {method!r} for route {path!r}")
            if spec is not None and not isinstance(spec, MethodSpec):
                try:
                    spec = MethodSpec.model_validate(spec)
                except ValidationError as e:
                    raise ConfigurationError(f"Invalid spec for {name} {path!r}: {e}") from e
            table[name] = spec

        if table:
            routes[path] = table
    return routes


# =============================================================================
# API Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """Settings shared by every fetcher generated from one route map.

    Unknown keyword arguments are kept as base transport options and
    forwarded verbatim to every request.

    Fields:
        base_url: Prefix for every resolved path.
        headers: Default request headers.
        timeout: Request timeout in seconds (None disables it).
        raise_for_status: Treat non-2xx responses as transport errors.
        effect: Optional hook applied once per generated fetcher at build time.
        transport: Transport to send requests through (default: HttpxTransport).
        debug: Write debug traces to stderr.
        strict_params: Reject params keys that match no path placeholder.
    """

    base_url: str = ""
    headers: dict[str, Any] = Field(default_factory=dict)
    timeout: float | None = DEFAULT_TIMEOUT
    raise_for_status: bool = True
    effect: Callable[..., Any] | None = None
    transport: Any = None
    debug: bool = False
    strict_params: bool = False

    model_config = {"extra": "allow", "frozen": True, "arbitrary_types_allowed": True}

    @classmethod
    def from_env(cls, **overrides: Any) -> "ApiConfig":
        """Create a configuration from environment variables.

        Optional environment variables:
            ROUTEFETCH_BASE_URL: Base URL for all requests.
            ROUTEFETCH_TIMEOUT_MS: Request timeout in milliseconds.
            ROUTEFETCH_DEBUG: Set to "1" to enable debug output.

        Keyword overrides take precedence over the environment.

        Raises:
            ValueError: ROUTEFETCH_TIMEOUT_MS is not an integer.
        """
        values: dict[str, Any] = {
            "debug": os.environ.get("ROUTEFETCH_DEBUG", "") == "1",
        }
        base_url = os.environ.get("ROUTEFETCH_BASE_URL")
        if base_url:
            values["base_url"] = base_url
        timeout_ms = os.environ.get("ROUTEFETCH_TIMEOUT_MS")
        if timeout_ms is not None:
            values["timeout"] = int(timeout_ms) / 1000

        values.update(overrides)
        return cls(**values)

    def base_options(self) -> dict[str, Any]:
        """Return the transport options every request starts from."""
        return {
            "base_url": self.base_url,
            "headers": dict(self.headers),
            "timeout": self.timeout,
            "raise_for_status": self.raise_for_status,
            **(self.model_extra or {}),
        }


# =============================================================================
# Call Input
# =============================================================================


class CallInput(BaseModel):
    """Input to a single fetcher call.

    params fills path placeholders only. query and body are forwarded
    as given. Everything else (including unknown keys) is a transport
    option merged over the API's base options for this call.
    """

    params: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("params", "Params")
    )
    query: Any = Field(default=None, validation_alias=AliasChoices("query", "Query"))
    body: Any = Field(default=None, validation_alias=AliasChoices("body", "Body"))

    headers: dict[str, Any] | None = None
    signal: Any = None
    on_upload_progress: Callable[..., Any] | None = None
    on_download_progress: Callable[..., Any] | None = None
    timeout: Any = None

    model_config = {"extra": "allow", "frozen": True, "arbitrary_types_allowed": True}

    @classmethod
    def coerce(cls, call_input: Any = None, **fields: Any) -> "CallInput":
        """Build a CallInput from an instance, a mapping, keywords, or nothing."""
        if call_input is None:
            data: dict[str, Any] = {}
        elif isinstance(call_input, CallInput):
            if not fields:
                return call_input
            data = call_input.as_dict()
        elif isinstance(call_input, Mapping):
            data = dict(call_input)
        else:
            raise TypeError(
                f"Fetcher input must be a CallInput or a mapping, got {type(call_input).__name__}"
            )
        data.update(fields)
        return cls.model_validate(data)

    def transport_options(self) -> dict[str, Any]:
        """Return the per-call transport options, values passed by identity."""
        options = {
            name: getattr(self, name) for name in OPTION_FIELDS if getattr(self, name) is not None
        }
        options.update(self.model_extra or {})
        return options

    def as_dict(self) -> dict[str, Any]:
        return {
            "params": self.params,
            "query": self.query,
            "body": self.body,
            **self.transport_options(),
        }
