"""Public models for routefetch."""

from routefetch._internal.fetchers.models import ApiConfig, CallInput, MethodSpec

__all__ = ["ApiConfig", "CallInput", "MethodSpec"]
