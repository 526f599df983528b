"""
Exceptions for geohistory.

Provides the error hierarchy surfaced by the API client layer and the
failure type carried inside durable backend results. Cache operations never
raise these for capacity or persistence reasons; only API fetches do.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class GeoHistoryError(Exception):
    """
    Base exception for geohistory.

    Attributes:
        message: Human-readable error description
        details: Additional context about the failure
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class APIError(GeoHistoryError):
    """
    Raised by the API client when an item could not be provided.

    Relation resolution does not tolerate partial results, so any APIError
    raised while fetching a member aborts the whole resolution.
    """


class NotFoundError(APIError):
    """
    The requested item, revision or point-in-time state does not exist upstream.

    Attributes:
        kind: Item type tag
        item_id: Requested identifier
        version: Requested revision, if any
        as_of: Requested point in time, if any
    """

    def __init__(
        self,
        kind: Any,
        item_id: Any,
        version: Any = None,
        as_of: Optional[datetime] = None,
    ):
        kind_name = getattr(kind, "value", kind)
        message = f"{kind_name} {int(item_id)} not found"
        details: Dict[str, Any] = {}
        if version is not None:
            details["version"] = int(version)
        if as_of is not None:
            details["as_of"] = as_of.isoformat()
        super().__init__(message, details)
        self.kind = kind
        self.item_id = item_id
        self.version = version
        self.as_of = as_of


class UpstreamError(APIError):
    """
    The upstream API could not complete a request (network or protocol failure).

    Never retried inside geohistory; retry policy belongs to the remote source.

    Attributes:
        cause: The underlying exception, if any
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        details = {"cause": type(cause).__name__} if cause is not None else None
        super().__init__(message, details)
        self.cause = cause


class BackendError(GeoHistoryError):
    """
    A durable-tier read, write, list or delete failed.

    Only ever returned inside a BackendResult. The cache layer logs it and
    carries on as if no durable tier were configured for that operation.

    Attributes:
        operation: Backend operation that failed
        cause: The underlying exception, if any
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Durable backend operation '{operation}' failed"
        details: Dict[str, Any] = {"operation": operation}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, details)
        self.operation = operation
        self.cause = cause
