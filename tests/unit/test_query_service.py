"""
Unit tests for QueryService (N1QL and analytics execution).

Tests request bodies, response decoding, temporary-error retries and
deadline handling.
"""

import asyncio
import time
from datetime import timedelta

import pytest
from conftest import json_body, json_response, text_response

from cbadmin.constants import ServiceType
from cbadmin.core.retry import BestEffortRetryStrategy, FailFastRetryStrategy, RetryReason
from cbadmin.exceptions import (
    AnalyticsError,
    NoResultsError,
    OperationTimeoutError,
    QueryError,
)
from cbadmin.query.options import AnalyticsOptions, QueryOptions, QueryScanConsistency
from cbadmin.query.results import QueryMetrics, format_duration
from cbadmin.query.service import QueryService, analytics_retry_reason, query_retry_reason

FAST_RETRY = BestEffortRetryStrategy(min_backoff=0.001, max_backoff=0.005)


def success(rows, **extra):
    return json_response(
        {
            "requestID": "req-1",
            "clientContextID": "ctx-1",
            "status": "success",
            "results": rows,
            "metrics": {"elapsedTime": "1.5ms", "executionTime": "1m2.5s", "resultCount": 2},
            **extra,
        }
    )


def failure(code, msg="error", status_code=200):
    return json_response(
        {"status": "errors", "errors": [{"code": code, "msg": msg}]}, status_code=status_code
    )


@pytest.fixture
def service(http_provider) -> QueryService:
    return QueryService(
        http_provider, query_timeout=5.0, analytics_timeout=5.0, default_retry_strategy=FAST_RETRY
    )


class TestRetryReasons:
    def test_prepared_statement_codes(self):
        for code in (4040, 4050, 4070):
            reason = query_retry_reason([{"code": code}])
            assert reason == RetryReason.QUERY_PREPARED_STATEMENT_FAILURE

    def test_index_not_found_needs_marker(self):
        assert (
            query_retry_reason([{"code": 5000, "msg": "queryport.indexNotFound: idx"}])
            == RetryReason.QUERY_INDEX_NOT_FOUND
        )
        assert query_retry_reason([{"code": 5000, "msg": "internal error"}]) is None

    def test_analytics_codes(self):
        for code in (21002, 23000, 23003, 23007):
            reason = analytics_retry_reason([{"code": code}])
            assert reason == RetryReason.ANALYTICS_TEMPORARY_FAILURE
        assert analytics_retry_reason([{"code": 24000}]) is None


class TestQueryRequests:
    @pytest.mark.asyncio
    async def test_request_body(self, service, http_provider):
        http_provider.add(success([]))
        options = QueryOptions(
            client_context_id="ctx-1",
            positional_parameters=["travel"],
            named_parameters={"city": "Paris", "$limit": 5},
            read_only=True,
            scan_consistency=QueryScanConsistency.REQUEST_PLUS,
            raw={"pretty": False},
        )

        await service.query("SELECT 1", options)

        request = http_provider.last_request
        assert request.method == "POST"
        assert request.path == "/query/service"
        assert request.service == ServiceType.QUERY
        assert request.content_type == "application/json"
        assert request.is_idempotent is True
        body = json_body(request)
        assert body["statement"] == "SELECT 1"
        assert body["client_context_id"] == "ctx-1"
        assert body["args"] == ["travel"]
        assert body["$city"] == "Paris"
        assert body["$limit"] == 5
        assert body["readonly"] is True
        assert body["scan_consistency"] == "request_plus"
        assert body["pretty"] is False
        assert body["timeout"].endswith("ms")

    @pytest.mark.asyncio
    async def test_client_context_id_generated(self, service, http_provider):
        http_provider.add(success([]))
        await service.query("SELECT 1")
        assert len(json_body(http_provider.last_request)["client_context_id"]) == 36

    @pytest.mark.asyncio
    async def test_server_side_timeout_capped_by_client_timeout(self, service, http_provider):
        http_provider.add(success([]), success([]))

        await service.query("SELECT 1", QueryOptions(server_side_timeout=2.0, timeout=10.0))
        assert json_body(http_provider.requests[0])["timeout"] == "2000ms"

        await service.query("SELECT 1", QueryOptions(server_side_timeout=30.0, timeout=1.0))
        assert int(json_body(http_provider.requests[1])["timeout"][:-2]) <= 1000

    @pytest.mark.asyncio
    async def test_non_read_only_is_not_idempotent(self, service, http_provider):
        http_provider.add(success([]))
        await service.query("DELETE FROM travel")
        assert http_provider.last_request.is_idempotent is False
        assert "readonly" not in json_body(http_provider.last_request)


class TestQueryResults:
    @pytest.mark.asyncio
    async def test_rows_and_metadata(self, service, http_provider):
        http_provider.add(success([{"id": 1}, {"id": 2}], warnings=[{"code": 1, "msg": "w"}]))

        result = await service.query("SELECT id FROM travel")

        assert result.rows() == [{"id": 1}, {"id": 2}]
        assert list(result) == [{"id": 1}, {"id": 2}]
        assert len(result) == 2
        assert result.one() == {"id": 1}
        meta = result.metadata()
        assert meta.request_id == "req-1"
        assert meta.status == "success"
        assert meta.metrics.elapsed_time == timedelta(microseconds=1500)
        assert meta.metrics.execution_time == timedelta(minutes=1, seconds=2.5)
        assert meta.metrics.result_count == 2
        assert meta.warnings[0].message == "w"
        assert result.endpoint == http_provider.endpoint

    @pytest.mark.asyncio
    async def test_malformed_metric_duration_is_ignored(self, service, http_provider):
        http_provider.add(
            json_response(
                {
                    "status": "success",
                    "results": [{"id": 1}],
                    "metrics": {"elapsedTime": "soon", "executionTime": "2ms"},
                }
            )
        )

        result = await service.query("SELECT id FROM travel")

        assert result.rows() == [{"id": 1}]
        assert result.metadata().metrics.elapsed_time == timedelta(0)
        assert result.metadata().metrics.execution_time == timedelta(milliseconds=2)

    @pytest.mark.asyncio
    async def test_one_without_rows(self, service, http_provider):
        http_provider.add(success([]))
        result = await service.query("SELECT 1")
        with pytest.raises(NoResultsError):
            result.one()

    @pytest.mark.asyncio
    async def test_custom_serializer_sees_raw_rows(self, service, http_provider):
        class Raw:
            def serialize(self, value):
                raise AssertionError("not used")

            def deserialize(self, data):
                return data

        http_provider.add(success([{"a": 1}]))
        result = await service.query("SELECT 1", QueryOptions(serializer=Raw()))
        assert result.rows() == [b'{"a":1}']


class TestQueryErrors:
    @pytest.mark.asyncio
    async def test_non_temporary_error(self, service, http_provider):
        http_provider.add(failure(3000, "syntax error - at end of input"))

        with pytest.raises(QueryError) as exc_info:
            await service.query("SELEC", QueryOptions(client_context_id="ctx-9"))

        error = exc_info.value
        assert error.message == "syntax error - at end of input"
        assert error.codes == [3000]
        assert error.client_context_id == "ctx-9"
        assert len(http_provider.requests) == 1

    @pytest.mark.asyncio
    async def test_temporary_error_is_retried(self, service, http_provider):
        http_provider.add(failure(4050), success([{"ok": True}]))

        result = await service.query("EXECUTE p1")

        assert result.rows() == [{"ok": True}]
        assert len(http_provider.requests) == 2
        retry = http_provider.requests[1]
        assert retry.retry_attempts == 1
        assert retry.retry_reasons == [RetryReason.QUERY_PREPARED_STATEMENT_FAILURE]
        first_id = json_body(http_provider.requests[0])["client_context_id"]
        assert json_body(retry)["client_context_id"] == first_id

    @pytest.mark.asyncio
    async def test_index_not_found_is_retried(self, service, http_provider):
        http_provider.add(failure(5000, "queryport.indexNotFound"), success([]))
        await service.query("SELECT 1")
        assert len(http_provider.requests) == 2

    @pytest.mark.asyncio
    async def test_fail_fast_does_not_retry(self, service, http_provider):
        http_provider.add(failure(4050, "prepared statement not found"))
        with pytest.raises(QueryError):
            await service.query("EXECUTE p1", QueryOptions(retry_strategy=FailFastRetryStrategy()))
        assert len(http_provider.requests) == 1

    @pytest.mark.asyncio
    async def test_http_error_without_errors(self, service, http_provider):
        http_provider.add(json_response({"status": "fatal"}, status_code=503))
        with pytest.raises(QueryError) as exc_info:
            await service.query("SELECT 1")
        assert exc_info.value.http_status == 503

    @pytest.mark.asyncio
    async def test_invalid_json(self, service, http_provider):
        http_provider.add(text_response("<html>bad gateway</html>", status_code=502))
        with pytest.raises(QueryError):
            await service.query("SELECT 1")


class TestQueryTimeouts:
    @pytest.mark.asyncio
    async def test_slow_response(self, service, http_provider):
        async def slow(request):
            await asyncio.sleep(1)

        http_provider.add(slow)

        with pytest.raises(OperationTimeoutError) as exc_info:
            await service.query("SELECT 1", QueryOptions(client_context_id="ctx-t", timeout=0.05))

        error = exc_info.value
        assert error.operation == "n1ql"
        assert error.operation_id == "ctx-t"
        assert error.remote_address == http_provider.endpoint

    @pytest.mark.asyncio
    async def test_parent_deadline_bounds_statement(self, service, http_provider):
        async def slow(request):
            await asyncio.sleep(1)

        http_provider.add(slow)
        start = time.monotonic()
        with pytest.raises(OperationTimeoutError):
            await service.query("SELECT 1", parent_deadline=start + 0.05)
        assert time.monotonic() - start < 1

    @pytest.mark.asyncio
    async def test_temporary_errors_until_deadline(self, service, http_provider):
        http_provider.handler = lambda request: failure(23000, "busy")

        with pytest.raises(OperationTimeoutError) as exc_info:
            await service.analytics_query("SELECT 1", AnalyticsOptions(timeout=0.1))

        error = exc_info.value
        assert error.operation == "cbas"
        assert error.retry_attempts > 0
        assert set(error.retry_reasons) == {"analytics_temporary_failure"}


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_request(self, service, http_provider):
        http_provider.add(success([{"n": 1}]))

        result = await service.analytics_query("SELECT 1", AnalyticsOptions(priority=True))

        request = http_provider.last_request
        assert request.service == ServiceType.ANALYTICS
        assert request.path == "/analytics/service"
        assert json_body(request)["priority"] == -1
        assert result.rows() == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_no_priority_by_default(self, service, http_provider):
        http_provider.add(success([]))
        await service.analytics_query("SELECT 1")
        assert "priority" not in json_body(http_provider.last_request)

    @pytest.mark.asyncio
    async def test_temporary_error_is_retried(self, service, http_provider):
        http_provider.add(failure(21002), success([]))
        await service.analytics_query("SELECT 1")
        assert len(http_provider.requests) == 2

    @pytest.mark.asyncio
    async def test_error(self, service, http_provider):
        http_provider.add(failure(24045, "Cannot find dataset"))
        with pytest.raises(AnalyticsError) as exc_info:
            await service.analytics_query("SELECT * FROM nope")
        assert exc_info.value.codes == [24045]


class TestDurations:
    def test_format_duration(self):
        assert format_duration(2.0) == "2000ms"
        assert format_duration(0.0204) == "20ms"

    def test_format_duration_never_zero(self):
        assert format_duration(0.0001) == "1ms"
        assert format_duration(0.0) == "1ms"

    def test_metrics_tolerate_bad_durations(self):
        metrics = QueryMetrics.from_server({"elapsedTime": 12, "executionTime": "1x"})
        assert metrics.elapsed_time == timedelta(0)
        assert metrics.execution_time == timedelta(0)
