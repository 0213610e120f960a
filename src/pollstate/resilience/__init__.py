"""Retry helpers for callers of the status layer."""

from .retry import execute_with_retry, is_transient_error

__all__ = ["execute_with_retry", "is_transient_error"]
