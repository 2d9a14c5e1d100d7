"""
Prometheus metrics for call-control policies.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, CollectorRegistry, REGISTRY

from callguard.config import get_settings


class PolicyMetrics:
    """Centralized metrics collector for policy wrappers."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.registry = registry if registry is not None else REGISTRY
        self.enabled = enabled
        self._metrics: Dict[str, Any] = {}
        if enabled:
            self._setup_metrics()

    def _setup_metrics(self):
        """Register policy counters."""
        self._metrics["policy_events_total"] = Counter(
            "callguard_policy_events_total",
            "Total call-control policy events",
            ["policy", "operation", "event"],
            registry=self.registry
        )

        self._metrics["operation_failures_total"] = Counter(
            "callguard_operation_failures_total",
            "Total failures of wrapped operations",
            ["policy", "operation"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_event(self, policy: str, operation: str, event: str):
        """Record a policy event such as a cache hit or a coalesced call."""
        self.increment_counter("policy_events_total", policy=policy, operation=operation, event=event)

    def record_failure(self, policy: str, operation: str):
        """Record a failure of the wrapped operation."""
        self.increment_counter("operation_failures_total", policy=policy, operation=operation)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


_default_collector: Optional[PolicyMetrics] = None


def get_metrics_collector(registry: Optional[CollectorRegistry] = None) -> PolicyMetrics:
    """Get the process-wide collector, or a fresh one bound to ``registry``."""
    global _default_collector
    if registry is not None:
        return PolicyMetrics(registry)
    if _default_collector is None:
        _default_collector = PolicyMetrics(enabled=get_settings().metrics_enabled)
    return _default_collector
