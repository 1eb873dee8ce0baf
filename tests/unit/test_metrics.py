"""
Unit tests for metrics collection and operation logging.

Tests:
- Thread-safety of MetricsCollector
- Bounded storage with LRU eviction
- The timed_operation decorator on manager operations
- Contextual logging helpers
"""

import logging
import threading

import pytest

from cbadmin.exceptions import BucketManagerError
from cbadmin.management.buckets import BucketManager
from cbadmin.observability.logging import (
    clear_correlation_id,
    clear_operation_context,
    get_logging_context,
    set_correlation_id,
    set_operation_context,
)
from cbadmin.observability.metrics import (
    MetricsCollector,
    get_metrics_collector,
    timed_operation,
)


class TestMetricsCollectorThreadSafety:
    """Concurrent access to a single collector."""

    def test_concurrent_record_operation(self):
        collector = MetricsCollector()
        num_threads = 8
        per_thread = 50
        barrier = threading.Barrier(num_threads)

        def record(thread_id: int):
            barrier.wait()
            for i in range(per_thread):
                collector.record_operation(
                    "buckets.get_bucket", duration_ms=1.0 + i, bucket_name=f"b{thread_id}"
                )

        threads = [threading.Thread(target=record, args=(i,)) for i in range(num_threads)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert collector.get_operation_count("buckets.get_bucket") == num_threads * per_thread

    def test_concurrent_reads_and_reset(self):
        collector = MetricsCollector()
        for i in range(20):
            collector.record_operation(f"query.op_{i}", duration_ms=5.0)
        errors = []

        def work(thread_id: int):
            try:
                if thread_id == 0:
                    collector.reset()
                elif thread_id % 2:
                    collector.get_summary()
                else:
                    collector.get_metrics()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=work, args=(i,)) for i in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []


class TestMetricsCollectorBoundedStorage:
    def test_max_metrics_limit(self):
        collector = MetricsCollector(max_metrics=3)
        for i in range(5):
            collector.record_operation(f"op_{i}", duration_ms=1.0)
        assert len(collector.get_metrics()["metrics"]) == 3

    def test_lru_eviction_order(self):
        collector = MetricsCollector(max_metrics=3)
        for i in range(3):
            collector.record_operation(f"op_{i}", duration_ms=1.0)

        collector.get_metrics("op_0")
        collector.record_operation("op_3", duration_ms=1.0)

        keys = set(collector.get_metrics()["metrics"])
        assert keys == {"op_0", "op_2", "op_3"}

    def test_update_does_not_evict(self):
        collector = MetricsCollector(max_metrics=2)
        collector.record_operation("op_0", duration_ms=1.0)
        collector.record_operation("op_1", duration_ms=1.0)
        collector.record_operation("op_0", duration_ms=3.0)

        metrics = collector.get_metrics()["metrics"]
        assert metrics["op_0"]["count"] == 2
        assert metrics["op_0"]["avg_duration_ms"] == 2.0
        assert "op_1" in metrics


class TestMetricsCollectorFunctionality:
    def test_tagged_keys(self):
        collector = MetricsCollector()
        collector.record_operation(
            "views.view_query", duration_ms=5.0, bucket_name="travel", view="by_city"
        )
        assert "views.view_query[bucket_name=travel_view=by_city]" in (
            collector.get_metrics()["metrics"]
        )

    def test_summary_folds_tags(self):
        collector = MetricsCollector()
        collector.record_operation("kv.lookup_in", duration_ms=1.0, bucket_name="a")
        collector.record_operation("kv.lookup_in", duration_ms=3.0, bucket_name="b")
        collector.record_operation("kv.lookup_in", duration_ms=2.0, success=False)

        summary = collector.get_summary()["summary"]["kv.lookup_in"]
        assert summary["count"] == 3
        assert summary["min_duration_ms"] == 1.0
        assert summary["max_duration_ms"] == 3.0
        assert summary["error_count"] == 1

    def test_reset(self):
        collector = MetricsCollector()
        collector.record_operation("op", duration_ms=4.0)
        collector.reset()
        assert collector.get_metrics()["metrics"] == {}

    def test_global_collector_is_shared(self):
        assert get_metrics_collector() is get_metrics_collector()


class TestTimedOperation:
    @pytest.mark.asyncio
    async def test_async_success_and_failure(self):
        @timed_operation("test.async_op")
        async def op(fail: bool):
            if fail:
                raise BucketManagerError("boom", status_code=500)
            return "done"

        assert await op(False) == "done"
        with pytest.raises(BucketManagerError):
            await op(True)

        summary = get_metrics_collector().get_summary()["summary"]["test.async_op"]
        assert summary["count"] == 2
        assert summary["error_count"] == 1

    @pytest.mark.asyncio
    async def test_any_exception_counts_as_failure(self):
        @timed_operation("test.attribute_error")
        async def op():
            raise AttributeError("name")

        with pytest.raises(AttributeError):
            await op()

        summary = get_metrics_collector().get_summary()["summary"]["test.attribute_error"]
        assert summary["count"] == 1
        assert summary["error_count"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_recorded_as_error(self, http_provider):
        http_provider.add_json({"unexpected": "object"})

        with pytest.raises(AttributeError):
            await BucketManager(http_provider, default_timeout=5.0).get_all_buckets()

        summary = get_metrics_collector().get_summary()["summary"]["buckets.get_all_buckets"]
        assert summary["error_count"] == 1

    def test_sync_operation(self):
        @timed_operation("test.sync_op", component="cli")
        def op():
            return 42

        assert op() == 42
        assert "test.sync_op[component=cli]" in get_metrics_collector().get_metrics()["metrics"]

    @pytest.mark.asyncio
    async def test_manager_operations_are_recorded(self, http_provider):
        http_provider.add_text("", status_code=200)
        await BucketManager(http_provider, default_timeout=5.0).drop_bucket("travel")
        assert get_metrics_collector().get_operation_count("buckets.drop_bucket") == 1

    @pytest.mark.asyncio
    async def test_operations_are_logged(self, caplog):
        @timed_operation("test.logged_op")
        async def op():
            return None

        with caplog.at_level(logging.DEBUG, logger="cbadmin.observability.metrics.operations"):
            await op()

        record = caplog.records[-1]
        assert record.operation == "test.logged_op"
        assert record.success is True
        assert "Operation: test.logged_op" in record.getMessage()


class TestLoggingContext:
    def test_correlation_and_operation_context(self):
        correlation_id = set_correlation_id()
        set_operation_context(bucket_name="travel", service="n1ql")
        try:
            context = get_logging_context()
            assert context["correlation_id"] == correlation_id
            assert context["bucket_name"] == "travel"
            assert context["service"] == "n1ql"
        finally:
            clear_correlation_id()
            clear_operation_context()

        assert "correlation_id" not in get_logging_context()

    def test_nested_operation_context_is_restored(self):
        outer = set_operation_context(bucket_name="travel")
        inner = set_operation_context(bucket_name="beer", service="capi")
        clear_operation_context(inner)
        try:
            context = get_logging_context()
            assert context["bucket_name"] == "travel"
            assert "service" not in context
        finally:
            clear_operation_context(outer)

        assert "bucket_name" not in get_logging_context()
