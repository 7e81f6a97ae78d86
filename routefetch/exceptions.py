"""Public exceptions for routefetch."""

import httpx

# Faults raised by the transport collaborator pass through untouched; this
# alias lets callers catch them without importing httpx themselves.
TransportError = httpx.HTTPError


class RoutefetchError(Exception):
    """Base exception for all routefetch errors."""


class ConfigurationError(RoutefetchError):
    """Invalid route map or API configuration, raised by build_api()."""


class MissingParameterError(RoutefetchError):
    """A path placeholder had no value in the call's params."""

    def __init__(self, parameter: str, template: str) -> None:
        super().__init__(f"Missing path parameter {parameter!r} for {template!r}")
        self.parameter = parameter
        self.template = template


class UnexpectedParameterError(RoutefetchError):
    """Params keys matched no placeholder in the template (strict mode only)."""

    def __init__(self, parameters: list[str], template: str) -> None:
        names = ", ".join(repr(name) for name in parameters)
        super().__init__(f"Unexpected path parameters {names} for {template!r}")
        self.parameters = parameters
        self.template = template


class RequestCancelledError(httpx.RequestError):
    """The caller's cancellation signal fired before the response completed."""
