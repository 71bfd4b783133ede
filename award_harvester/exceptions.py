"""Central exception hierarchy for the award harvester.

Every error raised by the harvester inherits from HarvesterError so callers
can catch one type at the boundary they own (a page, a partition, a record).

Exception Hierarchy:
    HarvesterError (base)
    ├── APIError
    │   ├── RateLimitError
    │   └── ResponseDecodeError
    ├── ExtractionError
    │   └── PartitionError
    │       └── PaginationLimitError
    ├── EnrichmentError
    ├── ConfigurationError
    └── FileSystemError

Usage:
    from award_harvester.exceptions import APIError, PartitionError

    try:
        records = await paginator.collect(partition)
    except PartitionError as e:
        logger.bind(error=e.to_dict()).error(f"Partition failed: {e.message}")

    # Wrap external exceptions
    try:
        response = await client.get(url)
    except httpx.TransportError as exc:
        raise wrap_exception(exc, APIError, api_name="usaspending", endpoint=url)
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Error codes for programmatic handling.

    Categories:
        1xxx - Configuration errors
        3xxx - Upstream API errors
        4xxx - File I/O errors
        5xxx - Harvest stage errors
    """

    # Configuration errors (1xxx)
    CONFIG_LOAD_FAILED = 1001
    CONFIG_VALIDATION_FAILED = 1002

    # Upstream API (3xxx)
    API_REQUEST_FAILED = 3101
    API_RATE_LIMIT = 3102
    API_DECODE_FAILED = 3103

    # File I/O errors (4xxx)
    FILE_WRITE_FAILED = 4003

    # Harvest stage errors (5xxx)
    EXTRACTION_FAILED = 5001
    ENRICHMENT_FAILED = 5002
    PARTITION_FAILED = 5003
    PAGE_LIMIT_EXCEEDED = 5004


class HarvesterError(Exception):
    """Base exception for all harvester errors.

    Attributes:
        message: Human-readable error description
        component: Harvester component (e.g., "harvest.paginator")
        operation: Operation being performed (e.g., "collect")
        details: Additional context as dictionary
        retryable: Whether the operation can be retried
        status_code: Numeric error code from ErrorCode enum
        cause: Original exception if wrapping another error

    Example:
        raise HarvesterError(
            "Failed to fetch page",
            component="harvest.client",
            operation="search_awards",
            details={"page": 3},
            retryable=True,
            status_code=ErrorCode.API_REQUEST_FAILED,
        )
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        status_code: ErrorCode | None = None,
        cause: Exception | None = None,
    ):
        self.message = message
        self.component = component or self.__class__.__module__
        self.operation = operation
        self.details = details or {}
        self.retryable = retryable
        self.status_code = status_code
        self.cause = cause

        parts = [message]
        if component:
            parts.append(f"[component={component}]")
        if operation:
            parts.append(f"[operation={operation}]")
        if status_code:
            parts.append(f"[code={int(status_code)}]")

        super().__init__(" ".join(parts))

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization.

        Example:
            {
                "error_type": "APIError",
                "message": "HTTP 503: upstream unavailable",
                "component": "api.usaspending",
                "operation": "search_awards",
                "details": {"endpoint": "/search/spending_by_award/"},
                "retryable": true,
                "status_code": 3101,
                "cause": "HTTPStatusError: 503 Service Unavailable"
            }
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "operation": self.operation,
            "details": self.details,
            "retryable": self.retryable,
            "status_code": self.status_code.value if self.status_code else None,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================================
# UPSTREAM API EXCEPTIONS
# ============================================================================


class APIError(HarvesterError):
    """Upstream API call failed.

    Covers transport errors (connection refused, timeout, DNS) and protocol
    errors (non-2xx status). 408, 429 and 5xx responses are retryable.

    Example:
        raise APIError(
            "HTTP 503: Service Unavailable",
            api_name="usaspending",
            endpoint="https://api.usaspending.gov/api/v2/awards/X/",
            http_status=503,
        )
    """

    def __init__(
        self,
        message: str,
        api_name: str | None = None,
        endpoint: str | None = None,
        http_status: int | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint
        if http_status:
            details["http_status"] = http_status
        self.http_status = http_status

        if "retryable" not in kwargs and http_status:
            kwargs["retryable"] = http_status in [408, 429, 500, 502, 503, 504]

        component = kwargs.pop("component", f"api.{api_name}" if api_name else "api")

        super().__init__(
            message,
            component=component,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.API_REQUEST_FAILED),
            **kwargs,
        )


class RateLimitError(APIError):
    """Upstream API answered 429. Always retryable."""

    def __init__(self, message: str, retry_after: int | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        kwargs.pop("retryable", None)

        super().__init__(
            message,
            details=details,
            status_code=ErrorCode.API_RATE_LIMIT,
            retryable=True,
            **kwargs,
        )


class ResponseDecodeError(APIError):
    """Response body was not valid JSON or did not match the expected shape.

    Not retryable: the same request will decode the same way.
    """

    def __init__(self, message: str, **kwargs: Any):
        kwargs.pop("retryable", None)
        super().__init__(
            message,
            status_code=kwargs.pop("status_code", ErrorCode.API_DECODE_FAILED),
            retryable=False,
            **kwargs,
        )


# ============================================================================
# HARVEST STAGE EXCEPTIONS
# ============================================================================


class ExtractionError(HarvesterError):
    """Failed to extract basic records from the search endpoint."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message,
            status_code=kwargs.pop("status_code", ErrorCode.EXTRACTION_FAILED),
            **kwargs,
        )


class PartitionError(ExtractionError):
    """One partition's page traversal failed; its accumulated records are discarded.

    Example:
        raise PartitionError(
            "Search request failed",
            category="grants",
            page=4,
            cause=api_error,
        )
    """

    def __init__(
        self,
        message: str,
        category: str | None = None,
        page: int | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if category:
            details["category"] = category
        if page is not None:
            details["page"] = page

        component = kwargs.pop("component", "harvest.paginator")

        super().__init__(
            message,
            component=component,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.PARTITION_FAILED),
            **kwargs,
        )


class PaginationLimitError(PartitionError):
    """Traversal reached the configured page cap while the API still reported more pages."""

    def __init__(self, message: str, max_pages: int | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if max_pages is not None:
            details["max_pages"] = max_pages

        super().__init__(
            message,
            details=details,
            status_code=ErrorCode.PAGE_LIMIT_EXCEEDED,
            retryable=False,
            **kwargs,
        )


class EnrichmentError(HarvesterError):
    """Detail enrichment for one record failed."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message,
            status_code=kwargs.pop("status_code", ErrorCode.ENRICHMENT_FAILED),
            **kwargs,
        )


# ============================================================================
# OPERATIONAL EXCEPTIONS
# ============================================================================


class ConfigurationError(HarvesterError):
    """Configuration loading or validation failed. Never retryable."""

    def __init__(self, message: str, config_key: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key

        component = kwargs.pop("component", "config")
        kwargs.pop("retryable", None)

        super().__init__(
            message,
            component=component,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.CONFIG_VALIDATION_FAILED),
            retryable=False,
            **kwargs,
        )


class FileSystemError(HarvesterError):
    """Writing harvested output to disk failed.

    Example:
        raise FileSystemError(
            "Failed to write award file",
            file_path="data/awards/Grants/ACME/2021/NSF/ASST_123.json",
            operation="save",
            cause=original_exception,
        )
    """

    def __init__(self, message: str, file_path: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path

        component = kwargs.pop("component", "filesystem")

        super().__init__(
            message,
            component=component,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.FILE_WRITE_FAILED),
            **kwargs,
        )


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def wrap_exception(
    original: Exception,
    error_class: type[HarvesterError],
    message: str | None = None,
    **kwargs: Any,
) -> HarvesterError:
    """Wrap a generic exception in a structured harvester exception.

    Example:
        try:
            path.write_text(payload)
        except OSError as e:
            raise wrap_exception(e, FileSystemError, file_path=str(path)) from e
    """
    return error_class(message or str(original), cause=original, **kwargs)


def is_retryable(exc: Exception) -> bool:
    """Return True when the exception is a harvester error flagged retryable."""
    if isinstance(exc, HarvesterError):
        return exc.retryable
    return False


def get_error_code(exc: Exception) -> int | None:
    """Return the numeric error code of a harvester error, if any."""
    if isinstance(exc, HarvesterError) and exc.status_code is not None:
        return exc.status_code.value
    return None
