# listing_search/remote/errors.py
"""
Typed errors + utilities for the optional remote scoring services.

Exports
-------
- RemoteServiceError, ServiceDisabledError, RemoteNetworkError,
  RemotePayloadError, RequestSupersededError
- REMOTE_ERRORS
- classify_remote_error(exc)
- remote_error_guard()
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager

import requests
from pydantic import ValidationError

# =========================
# Exception types
# =========================


class RemoteServiceError(RuntimeError):
    """Base class for semantic / recommendation / telemetry failures."""


class ServiceDisabledError(RemoteServiceError):
    """The service is not configured, or it answered with enabled=false."""


class RemoteNetworkError(RemoteServiceError):
    """HTTP/transport failure or a non-2xx status."""


class RemotePayloadError(RemoteServiceError):
    """The response body is not JSON or does not have the expected shape."""


class RequestSupersededError(RemoteServiceError):
    """A newer request replaced this one before its result could be used."""


# Selector tuple for grouped exception handling
REMOTE_ERRORS = (
    RemoteServiceError,
    ServiceDisabledError,
    RemoteNetworkError,
    RemotePayloadError,
    RequestSupersededError,
)

# =========================
# Classification helpers
# =========================


def classify_remote_error(exc: Exception) -> RemoteServiceError:
    """
    Map arbitrary exceptions raised inside a client to a typed RemoteServiceError.

    Heuristics:
      - RemoteServiceError subclasses → passed through
      - requests.* errors → RemoteNetworkError
      - JSON decode / pydantic validation / shape errors → RemotePayloadError
      - Fallback → RemoteServiceError
    """
    if isinstance(exc, RemoteServiceError):
        return exc

    msg = f"{type(exc).__name__}: {exc}"

    # requests' JSONDecodeError is also a RequestException; the body is what failed
    if isinstance(exc, (json.JSONDecodeError, requests.exceptions.JSONDecodeError, ValidationError)):
        return RemotePayloadError(msg)

    if isinstance(exc, requests.RequestException):
        return RemoteNetworkError(str(exc))

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return RemotePayloadError(msg)

    return RemoteServiceError(msg)


@contextmanager
def remote_error_guard() -> Iterator[None]:
    """Context manager to normalize unexpected exceptions from client internals."""
    try:
        yield
    except REMOTE_ERRORS:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_remote_error(exc) from exc


__all__ = [
    "RemoteServiceError",
    "ServiceDisabledError",
    "RemoteNetworkError",
    "RemotePayloadError",
    "RequestSupersededError",
    "REMOTE_ERRORS",
    "classify_remote_error",
    "remote_error_guard",
]
