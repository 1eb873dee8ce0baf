"""
Custom exceptions for CBADMIN.

Every error raised by the library derives from CBAdminError, which keeps
compatibility with RuntimeError and carries a context dictionary describing
the operation that failed.
"""

from typing import Any


class CBAdminError(RuntimeError):
    """
    Base exception for CBADMIN errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (bucket_name,
                 index_name, status_code, etc.)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigurationError(CBAdminError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        config_value: Any | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class InvalidArgumentsError(CBAdminError):
    """Raised when an operation is called with arguments it cannot use."""


class ServiceNotAvailableError(CBAdminError):
    """Raised when no node in the cluster runs the requested service."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        context = context or {}
        if service:
            context["service"] = service
        super().__init__(message, context=context)
        self.service = service


class OperationTimeoutError(CBAdminError):
    """
    Raised when an operation does not complete before its deadline.

    Attributes:
        operation: Service family of the operation ("mgmt", "view", "n1ql",
                   "cbas", "kv")
        operation_id: Unique request id, or the client context id for
                      query and analytics requests
        retry_reasons: Reasons the request was retried before timing out
        retry_attempts: Number of retries performed
        elapsed: Seconds spent before the timeout fired
        remote_address: Endpoint the last attempt was sent to
    """

    def __init__(
        self,
        message: str = "operation timed out",
        operation: str | None = None,
        operation_id: str | None = None,
        retry_reasons: list[str] | None = None,
        retry_attempts: int = 0,
        elapsed: float = 0.0,
        remote_address: str | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if operation:
            context["operation"] = operation
        if operation_id:
            context["operation_id"] = operation_id
        if remote_address:
            context["remote_address"] = remote_address
        if retry_attempts:
            context["retry_attempts"] = retry_attempts
        super().__init__(message, context=context)
        self.operation = operation
        self.operation_id = operation_id
        self.retry_reasons = list(retry_reasons or [])
        self.retry_attempts = retry_attempts
        self.elapsed = elapsed
        self.remote_address = remote_address


class HTTPStatusError(CBAdminError):
    """
    Raised when a service answers with an unexpected HTTP status.

    The response body is used as the message.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        context = context or {}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, context=context)
        self.status_code = status_code


class BucketManagerError(HTTPStatusError):
    """Raised when a bucket management request fails."""


class UserManagerError(HTTPStatusError):
    """Raised when a user or group management request fails."""


class QueryIndexError(HTTPStatusError):
    """
    Raised when a query index operation fails.

    Attributes:
        index_missing: The index does not exist
        index_exists: The index already exists
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        index_missing: bool = False,
        index_exists: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, context=context)
        self.index_missing = index_missing
        self.index_exists = index_exists


class ViewIndexError(HTTPStatusError):
    """
    Raised when a design document operation fails.

    Attributes:
        index_missing: The design document does not exist
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        index_missing: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, context=context)
        self.index_missing = index_missing


class ServiceQueryError(CBAdminError):
    """
    Raised when the query or analytics service reports errors.

    Attributes:
        errors: List of {"code": int, "msg": str} entries from the response
        client_context_id: Client context id of the failed request
        endpoint: Endpoint that served the request
    """

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        client_context_id: str | None = None,
        endpoint: str | None = None,
        http_status: int | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if client_context_id:
            context["client_context_id"] = client_context_id
        if http_status is not None:
            context["http_status"] = http_status
        super().__init__(message, context=context)
        self.errors = list(errors or [])
        self.client_context_id = client_context_id
        self.endpoint = endpoint
        self.http_status = http_status

    @property
    def codes(self) -> list[int]:
        return [int(e.get("code", 0)) for e in self.errors]


class QueryError(ServiceQueryError):
    """Raised when a N1QL query fails."""


class AnalyticsError(ServiceQueryError):
    """Raised when an analytics query fails."""


class NoResultsError(CBAdminError):
    """Raised when a single row is requested from an empty result."""


class KeyValueError(CBAdminError):
    """
    Raised when the KV engine rejects a document operation.

    Attributes:
        key: Document key
        status: Engine status name, if known
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        status: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        context = context or {}
        if key is not None:
            context["key"] = key
        if status:
            context["status"] = status
        super().__init__(message, context=context)
        self.key = key
        self.status = status


class SubdocPathError(KeyValueError):
    """Raised when reading the result of a sub-document path that failed."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        path: str | None = None,
        status: str | None = None,
    ) -> None:
        context = {"path": path} if path else {}
        super().__init__(message, key=key, status=status, context=context)
        self.path = path


class LegacyClientError(CBAdminError):
    """Raised by the legacy cluster manager when the server rejects a request."""
