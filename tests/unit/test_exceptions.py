"""
Unit tests for custom exceptions.

Tests exception hierarchy and error messages.
"""

from cbadmin.exceptions import (
    AnalyticsError,
    BucketManagerError,
    CBAdminError,
    ConfigurationError,
    HTTPStatusError,
    KeyValueError,
    OperationTimeoutError,
    QueryError,
    QueryIndexError,
    ServiceNotAvailableError,
    ServiceQueryError,
    SubdocPathError,
    ViewIndexError,
)


class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_base_error_is_runtime_error(self):
        error = CBAdminError("test error")
        assert isinstance(error, RuntimeError)

    def test_http_status_errors(self):
        for cls in (BucketManagerError, QueryIndexError, ViewIndexError):
            error = cls("boom", status_code=500)
            assert isinstance(error, HTTPStatusError)
            assert isinstance(error, CBAdminError)

    def test_service_query_errors(self):
        assert issubclass(QueryError, ServiceQueryError)
        assert issubclass(AnalyticsError, ServiceQueryError)

    def test_subdoc_path_error_is_key_value_error(self):
        error = SubdocPathError("path failed", key="doc", path="a.b", status="path_not_found")
        assert isinstance(error, KeyValueError)
        assert error.key == "doc"
        assert error.path == "a.b"


class TestExceptionMessages:
    """Test exception message formatting."""

    def test_message_without_context(self):
        error = CBAdminError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.context == {}

    def test_message_with_context(self):
        error = CBAdminError("Something went wrong", context={"bucket_name": "travel"})
        assert "context:" in str(error)
        assert "bucket_name=travel" in str(error)

    def test_configuration_error_context(self):
        error = ConfigurationError("bad", config_key="kv_timeout", config_value=-1)
        assert error.context == {"config_key": "kv_timeout", "config_value": -1}

    def test_http_status_error_keeps_status(self):
        error = BucketManagerError("Requested resource not found.", status_code=404)
        assert error.status_code == 404
        assert error.message == "Requested resource not found."
        assert error.context["status_code"] == 404

    def test_service_not_available(self):
        error = ServiceNotAvailableError("no nodes", service="n1ql")
        assert error.service == "n1ql"
        assert "service=n1ql" in str(error)

    def test_timeout_error_details(self):
        error = OperationTimeoutError(
            operation="n1ql",
            operation_id="ctx-1",
            retry_reasons=["query_index_not_found"],
            retry_attempts=2,
            elapsed=1.5,
            remote_address="http://localhost:8093",
        )
        assert error.message == "operation timed out"
        assert error.operation == "n1ql"
        assert error.operation_id == "ctx-1"
        assert error.retry_reasons == ["query_index_not_found"]
        assert error.retry_attempts == 2
        assert error.remote_address == "http://localhost:8093"

    def test_service_query_error_codes(self):
        error = QueryError(
            "Index not found",
            errors=[{"code": 5000, "msg": "Index not found"}, {"code": 4040}],
            client_context_id="abc",
        )
        assert error.codes == [5000, 4040]
        assert error.client_context_id == "abc"

    def test_index_error_flags(self):
        assert QueryIndexError("x", index_exists=True).index_exists is True
        assert QueryIndexError("x").index_missing is False
        assert ViewIndexError("x", status_code=404, index_missing=True).index_missing is True
