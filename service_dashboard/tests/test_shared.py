"""
Unit tests for the shared configuration, error, logging and metrics helpers.
"""

import pydantic
import pytest
from prometheus_client import generate_latest

from shared.config import get_config
from shared.errors import (
    AccessLayerException, CacheError, DeclarationError, NotFoundError, SnapshotError, ValidationError
)
from shared.logging import (
    set_request_id, set_subject_context, clear_context,
    add_correlation_context, add_service_context
)
from shared.metrics import MetricsCollector


class TestConfig:
    """Test cases for service configuration."""

    def test_defaults(self):
        config = get_config("dashboard", 8013)

        assert config.service_name == "dashboard"
        assert config.port == 8013
        assert config.snapshot_ttl_seconds == 3600
        assert config.checksum_algorithm == "sha256"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DASHBOARD_SNAPSHOT_TTL_SECONDS", "120")
        monkeypatch.setenv("DASHBOARD_REDIS_URL", "redis://cache:6379/2")

        config = get_config("dashboard", 8013)

        assert config.snapshot_ttl_seconds == 120
        assert config.redis_url == "redis://cache:6379/2"

    def test_invalid_algorithm_rejected(self, monkeypatch):
        monkeypatch.setenv("DASHBOARD_CHECKSUM_ALGORITHM", "md5")

        with pytest.raises(pydantic.ValidationError):
            get_config("dashboard", 8013)


class TestErrors:
    """Test cases for the exception hierarchy."""

    def test_to_response(self):
        error = SnapshotError("Malformed snapshot payload", {"error": "missing checksum"})

        response = error.to_response()

        assert response.code == "SNAPSHOT_ERROR"
        assert response.message == "Malformed snapshot payload"
        assert response.details == {"error": "missing checksum"}
        assert response.trace_id is None

    def test_subclass_codes(self):
        assert isinstance(NotFoundError(), AccessLayerException)
        assert NotFoundError().code == "NOT_FOUND"
        assert ValidationError().details == {}

    def test_status_codes(self):
        assert ValidationError().status_code == 400
        assert SnapshotError().status_code == 400
        assert NotFoundError().status_code == 404
        assert DeclarationError().status_code == 500
        assert CacheError().status_code == 503

    def test_from_request_errors(self):
        error = ValidationError.from_request_errors([
            {"loc": ("query", "ttl_seconds"), "msg": "Input should be >= 0", "type": "greater_than_equal",
             "ctx": {"ge": 0}}
        ])

        assert error.details == {
            "errors": [{"loc": ["query", "ttl_seconds"], "msg": "Input should be >= 0", "type": "greater_than_equal"}]
        }


class TestLoggingContext:
    """Test cases for correlation context processors."""

    def teardown_method(self):
        clear_context()

    def test_correlation_context(self):
        set_request_id("req-1")
        set_subject_context("admin-001", "tenant-1")

        event = add_correlation_context(None, "info", {"event": "x"})

        assert event["request_id"] == "req-1"
        assert event["subject_id"] == "admin-001"
        assert event["tenant_id"] == "tenant-1"

    def test_dashboard_context_and_explicit_fields(self):
        set_subject_context("admin-001", dashboard_id="tenant-console")

        event = add_correlation_context(None, "info", {"subject_id": "someone-else"})

        assert event["dashboard_id"] == "tenant-console"
        assert event["subject_id"] == "someone-else"

    def test_generated_request_id(self):
        request_id = set_request_id()

        assert request_id
        assert add_correlation_context(None, "info", {})["request_id"] == request_id

    def test_clear_context(self):
        set_subject_context("admin-001")
        clear_context()

        assert "subject_id" not in add_correlation_context(None, "info", {})

    def test_service_from_logger_name(self):
        event = add_service_context(None, "info", {"logger": "dashboard.resolver"})

        assert event["service"] == "dashboard"


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    def test_collectors_do_not_share_registry(self):
        first = MetricsCollector("dashboard")
        second = MetricsCollector("dashboard")

        first.increment_counter("snapshot_cache_total", result="hit")

        assert b'snapshot_cache_total{result="hit"} 1.0' in generate_latest(first.registry)
        assert b'snapshot_cache_total{result="hit"}' not in generate_latest(second.registry)

    def test_unknown_counter_ignored(self):
        collector = MetricsCollector("other")

        collector.increment_counter("dashboard_resolutions_total", dashboard_id="x", outcome="full")

        assert collector.get_metric("dashboard_resolutions_total") is None

    def test_time_operation(self):
        collector = MetricsCollector("dashboard")

        with collector.time_operation("dashboard_resolution_duration_seconds", dashboard_id="dash"):
            pass

        output = generate_latest(collector.registry)
        assert b'dashboard_resolution_duration_seconds_count{dashboard_id="dash"} 1.0' in output
