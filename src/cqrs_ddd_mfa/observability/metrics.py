"""MFA metrics helpers for Prometheus integration.

Usage:
    ```python
    from cqrs_ddd_mfa.observability import MfaMetrics

    with MfaMetrics.operation("enable", method="TOTP"):
        await coordinator.enable_mfa(...)
    ```
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Generator


class _MfaMetricsRegistry:
    """Registry for MFA Prometheus metrics.

    Lazily creates the collectors on first use so that importing the package
    does not register anything.
    """

    def __init__(self) -> None:
        self._histogram: Any = None
        self._counter: Any = None
        self._registry: CollectorRegistry = REGISTRY

    def bind(self, registry: CollectorRegistry) -> None:
        """Register collectors in *registry* instead of the default one."""
        self._registry = registry
        self._histogram = None
        self._counter = None

    def _ensure_initialized(self) -> None:
        if self._counter is not None:
            return
        self._histogram = Histogram(
            "mfa_operation_duration_seconds",
            "MFA operation duration",
            ["operation"],
            registry=self._registry,
        )
        self._counter = Counter(
            "mfa_operations_total",
            "MFA operation count",
            ["operation", "method", "result"],
            registry=self._registry,
        )

    @property
    def histogram(self) -> Any:
        self._ensure_initialized()
        return self._histogram

    @property
    def counter(self) -> Any:
        self._ensure_initialized()
        return self._counter


# Global registry instance
_registry = _MfaMetricsRegistry()


class MfaMetrics:
    """MFA metrics helpers for recording enrollment operations."""

    @staticmethod
    def bind(registry: CollectorRegistry) -> None:
        _registry.bind(registry)

    @staticmethod
    @contextmanager
    def operation(
        operation: str,
        *,
        method: str = "unknown",
    ) -> Generator[None, None, None]:
        """Context manager for timing an MFA operation.

        The result label is ``success``, or the error kind of the MfaError
        that escaped, or ``error`` for anything else.

        Args:
            operation: Operation name (setup_totp, enable, consume_backup_code).
            method: MFA method label.
        """
        result = "success"
        start = time.monotonic()

        try:
            yield
        except Exception as exc:
            kind = getattr(exc, "kind", None)
            result = kind.value if kind is not None else "error"
            raise
        finally:
            duration = time.monotonic() - start
            _registry.histogram.labels(operation=operation).observe(duration)
            _registry.counter.labels(
                operation=operation, method=method, result=result
            ).inc()

    @staticmethod
    def record(operation: str, *, method: str = "unknown", result: str) -> None:
        """Increment the operation counter without timing."""
        _registry.counter.labels(
            operation=operation, method=method, result=result
        ).inc()


__all__: list[str] = ["MfaMetrics"]
