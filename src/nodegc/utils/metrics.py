"""Observability metrics for garbage collection operations."""

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from nodegc.utils.logging import get_logger

logger = get_logger(__name__)


class OperationType(str, Enum):
    """Types of operations to track."""

    GC_PASS = "gc_pass"
    INSTANCE_DELETE = "instance_delete"
    NODE_DELETE = "node_delete"


class OperationStatus(str, Enum):
    """Status of operations."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass
class OperationMetric:
    """Metrics for a single operation."""

    operation_type: OperationType
    status: OperationStatus
    duration_seconds: float
    pass_id: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MetricsCollector:
    """Collects and aggregates metrics for garbage collection operations.

    Metrics are kept in memory (bounded, oldest dropped first) and logged as
    ``operation_metric`` events for external collection.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        """Initialize metrics collector.

        Args:
            max_entries: Number of metrics retained in memory
        """
        self.metrics: deque[OperationMetric] = deque(maxlen=max_entries)

    def record_operation(
        self,
        operation_type: OperationType,
        status: OperationStatus,
        duration_seconds: float,
        pass_id: str | None = None,
        error_type: str | None = None,
        error_message: str | None = None,
        **metadata: Any,
    ) -> None:
        """Record a completed operation.

        Args:
            operation_type: Type of operation
            status: Operation status
            duration_seconds: Duration in seconds
            pass_id: Optional ID of the pass the operation belongs to
            error_type: Optional error type
            error_message: Optional error message
            **metadata: Additional metadata
        """
        metric = OperationMetric(
            operation_type=operation_type,
            status=status,
            duration_seconds=duration_seconds,
            pass_id=pass_id,
            error_type=error_type,
            error_message=error_message,
            metadata=metadata,
        )

        self.metrics.append(metric)

        logger.debug(
            "operation_metric",
            operation_type=operation_type.value,
            status=status.value,
            duration_seconds=round(duration_seconds, 4),
            error_type=error_type,
            **metadata,
        )

    def get_success_rate(self, operation_type: OperationType | None = None) -> float:
        """Calculate success rate as a percentage (0-100)."""
        filtered = self._filter_metrics(operation_type=operation_type)

        if not filtered:
            return 0.0

        success_count = sum(1 for m in filtered if m.status == OperationStatus.SUCCESS)
        return (success_count / len(filtered)) * 100

    def get_average_duration(self, operation_type: OperationType | None = None) -> float:
        """Calculate average operation duration in seconds."""
        filtered = self._filter_metrics(operation_type=operation_type)

        if not filtered:
            return 0.0

        return sum(m.duration_seconds for m in filtered) / len(filtered)

    def get_error_breakdown(self, operation_type: OperationType | None = None) -> dict[str, int]:
        """Get breakdown of errors by type."""
        error_counts: dict[str, int] = {}
        for metric in self._filter_metrics(operation_type=operation_type):
            if metric.status != OperationStatus.SUCCESS and metric.error_type:
                error_counts[metric.error_type] = error_counts.get(metric.error_type, 0) + 1

        return error_counts

    def get_operation_counts(self) -> dict[str, dict[str, int]]:
        """Get operation counts by type and status."""
        counts: dict[str, dict[str, int]] = {}
        for metric in self.metrics:
            by_status = counts.setdefault(metric.operation_type.value, {})
            by_status[metric.status.value] = by_status.get(metric.status.value, 0) + 1

        return counts

    def get_summary(self) -> dict[str, Any]:
        """Get comprehensive metrics summary."""
        return {
            "total_operations": len(self.metrics),
            "success_rate": self.get_success_rate(),
            "average_duration": self.get_average_duration(),
            "operation_counts": self.get_operation_counts(),
            "error_breakdown": self.get_error_breakdown(),
        }

    def reset(self) -> None:
        """Drop all recorded metrics."""
        self.metrics.clear()

    def _filter_metrics(self, operation_type: OperationType | None = None) -> list[OperationMetric]:
        if operation_type is None:
            return list(self.metrics)
        return [m for m in self.metrics if m.operation_type == operation_type]


_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector


class timed_operation:
    """Context manager for timing operations.

    Usage:
        with timed_operation(OperationType.INSTANCE_DELETE, instance_id="i-123") as timer:
            ...
            if failed:
                timer.failure(error_type="CloudProviderError", error_message="...")
    """

    def __init__(
        self,
        operation_type: OperationType,
        pass_id: str | None = None,
        collector: MetricsCollector | None = None,
        **metadata: Any,
    ):
        """Initialize timed operation context.

        Args:
            operation_type: Type of operation
            pass_id: Optional pass ID
            collector: Collector to record into (defaults to the global one)
            **metadata: Additional metadata
        """
        self.operation_type = operation_type
        self.pass_id = pass_id
        self.metadata = metadata
        self.start_time: float | None = None
        self.status: OperationStatus | None = None
        self.error_type: str | None = None
        self.error_message: str | None = None
        self.collector = collector or get_metrics_collector()

    def __enter__(self) -> "timed_operation":
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.start_time is None:
            return

        duration = time.monotonic() - self.start_time

        # Auto-detect failure from exception if not explicitly set
        if self.status is None:
            if exc_type is not None:
                self.status = OperationStatus.ERROR
                self.error_type = exc_type.__name__
                self.error_message = str(exc_val)
            else:
                self.status = OperationStatus.SUCCESS

        self.collector.record_operation(
            operation_type=self.operation_type,
            status=self.status,
            duration_seconds=duration,
            pass_id=self.pass_id,
            error_type=self.error_type,
            error_message=self.error_message,
            **self.metadata,
        )

    def success(self) -> None:
        """Mark operation as successful."""
        self.status = OperationStatus.SUCCESS

    def failure(self, error_type: str | None = None, error_message: str | None = None) -> None:
        """Mark operation as failed."""
        self.status = OperationStatus.FAILURE
        self.error_type = error_type
        self.error_message = error_message

    def timeout(self) -> None:
        """Mark operation as timed out."""
        self.status = OperationStatus.TIMEOUT
