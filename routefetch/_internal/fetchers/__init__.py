"""Fetcher generation internals."""

from routefetch._internal.fetchers.dispatch import Fetcher, make_fetcher
from routefetch._internal.fetchers.models import (
    HTTP_METHODS,
    ApiConfig,
    CallInput,
    MethodSpec,
    normalize_route_map,
)
from routefetch._internal.fetchers.paths import encode_segment, resolve_path, template_parameters

__all__ = [
    "Fetcher",
    "make_fetcher",
    "HTTP_METHODS",
    "ApiConfig",
    "CallInput",
    "MethodSpec",
    "normalize_route_map",
    "encode_segment",
    "resolve_path",
    "template_parameters",
]
