"""routefetch: generate async request functions from a route map.

Public API:
    build_api - Generate fetchers for every (path, method) pair
    ApiConfig, CallInput, MethodSpec - Configuration and input models
    resolve_path - Fill a path template's placeholders
    merge_options - Per-call option precedence over base options
    HttpxTransport - Default transport backed by httpx
"""

from routefetch._internal.fetchers.models import HTTP_METHODS
from routefetch._internal.fetchers.paths import resolve_path, template_parameters
from routefetch._internal.http import HttpxTransport, Transport, TransportRequest, merge_options
from routefetch._version import __version__
from routefetch.client import GeneratedApi, MethodTable, build_api
from routefetch.exceptions import (
    ConfigurationError,
    MissingParameterError,
    RequestCancelledError,
    RoutefetchError,
    TransportError,
    UnexpectedParameterError,
)
from routefetch.models import ApiConfig, CallInput, MethodSpec

__all__ = [
    "__version__",
    "build_api",
    "GeneratedApi",
    "MethodTable",
    "ApiConfig",
    "CallInput",
    "MethodSpec",
    "HTTP_METHODS",
    "resolve_path",
    "template_parameters",
    "merge_options",
    "HttpxTransport",
    "Transport",
    "TransportRequest",
    "RoutefetchError",
    "ConfigurationError",
    "MissingParameterError",
    "UnexpectedParameterError",
    "RequestCancelledError",
    "TransportError",
]
