"""Prometheus metrics collection.

This module defines and manages Prometheus metrics for monitoring request
rates, store operations, change feed traffic, sync sessions and provider
lookups.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("video_library", "Video library sync service information")

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Store metrics
store_operations_total = Counter(
    "store_operations_total",
    "Total video store operations by operation and status",
    ["operation", "status"],
)

store_operation_duration_seconds = Histogram(
    "store_operation_duration_seconds",
    "Video store operation duration in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Change feed metrics
change_events_total = Counter(
    "change_events_total",
    "Change feed events received by kind and reconciliation result",
    ["kind", "result"],
)

# Session metrics
active_sync_sessions = Gauge(
    "active_sync_sessions",
    "Number of live per-owner sync sessions",
)

# Provider metrics
provider_lookups_total = Counter(
    "provider_lookups_total",
    "Provider metadata lookups by provider and result",
    ["provider", "result"],
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors by error code and endpoint",
    ["error_code", "endpoint"],
)


class MetricsCollector:
    """Centralized metrics collection and update helper.

    Provides static methods for recording various metrics throughout
    the application in a consistent manner.
    """

    @staticmethod
    def record_request(
        method: str,
        endpoint: str,
        status: int,
        duration: float,
    ) -> None:
        """Record HTTP request metrics.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: Normalized endpoint path.
            status: HTTP response status code.
            duration: Request duration in seconds.
        """
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

    @staticmethod
    def record_store_operation(operation: str, status: str, duration: float) -> None:
        """Record a video store call.

        Args:
            operation: Store method name (e.g., 'insert', 'list_active').
            status: 'success' or 'failed'.
            duration: Call duration in seconds.
        """
        store_operations_total.labels(operation=operation, status=status).inc()
        store_operation_duration_seconds.labels(operation=operation).observe(duration)

    @staticmethod
    def record_change_event(kind: str, result: str) -> None:
        """Record a change feed event.

        Args:
            kind: Event kind ('insert', 'update', 'delete').
            result: 'applied', 'ignored' or 'error'.
        """
        change_events_total.labels(kind=kind, result=result).inc()

    @staticmethod
    def set_active_sessions(count: int) -> None:
        """Update the live session gauge."""
        active_sync_sessions.set(count)

    @staticmethod
    def record_provider_lookup(provider: str, result: str) -> None:
        """Record a provider metadata lookup.

        Args:
            provider: Provider name.
            result: 'success', 'not_found' or 'error'.
        """
        provider_lookups_total.labels(provider=provider, result=result).inc()

    @staticmethod
    def record_error(error_code: str, endpoint: str) -> None:
        """Record an error occurrence.

        Args:
            error_code: Error code from ErrorCode class.
            endpoint: Endpoint where the error occurred.
        """
        errors_total.labels(error_code=error_code, endpoint=endpoint).inc()


def initialize_metrics(version: str) -> None:
    """Initialize application metrics with version information.

    Should be called during application startup.

    Args:
        version: Application version string.
    """
    app_info.info({"version": version})
