"""Ownership of the Prometheus counters and histograms fed by the consumer.

The manager registers each metric once, up front, and hands out long-lived
wrappers. Labels common to the whole process (e.g. instance or zone) are
supplied once to the manager and applied to every update.
"""

import logging

import prometheus_client
from prometheus_client import REGISTRY, CollectorRegistry

logger = logging.getLogger(__name__)


class MetricsError(Exception):
    """Raised when a metric cannot be registered, looked up or updated."""


class Counter:
    def __init__(self, name: str, metric: prometheus_client.Counter, common_labels: dict[str, str]):
        self.name = name
        self.metric = metric
        self._common_labels = common_labels

    def add(self, labels: dict[str, str], value: float) -> None:
        """Add *value* to the child counter selected by *labels*."""
        try:
            self.metric.labels(**self._common_labels, **labels).inc(value)
        except (ValueError, TypeError) as exc:
            raise MetricsError(f"Counter {self.name} update failed: {exc}") from exc


class Histogram:
    def __init__(self, name: str, metric: prometheus_client.Histogram, common_labels: dict[str, str]):
        self.name = name
        self.metric = metric
        self._common_labels = common_labels

    def observe(self, labels: dict[str, str], values: list[float]) -> None:
        """Record each of *values* in the child histogram selected by *labels*."""
        try:
            child = self.metric.labels(**self._common_labels, **labels)
            for value in values:
                child.observe(value)
        except (ValueError, TypeError) as exc:
            raise MetricsError(f"Histogram {self.name} update failed: {exc}") from exc


class MetricsManager:
    def __init__(self, common_labels: dict[str, str] | None = None,
                 registry: CollectorRegistry = REGISTRY):
        self._common_labels = dict(common_labels or {})
        self._registry = registry
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}

    def _all_label_names(self, name: str, label_names: list[str]) -> list[str]:
        """Common labels first (sorted), then the metric's own labels in declared order."""
        overlap = sorted(set(self._common_labels) & set(label_names))
        if overlap:
            raise MetricsError(
                f"Could not register {name}: common labels collide with metric labels: {', '.join(overlap)}"
            )
        return [*sorted(self._common_labels), *label_names]

    def add_counter(self, name: str, help: str, label_names: list[str]) -> None:
        try:
            metric = prometheus_client.Counter(
                name, help, self._all_label_names(name, label_names), registry=self._registry,
            )
        except ValueError as exc:
            raise MetricsError(f"Could not register counter {name}: {exc}") from exc
        self._counters[name] = Counter(name, metric, self._common_labels)
        logger.debug("Registered counter %s", name)

    def add_histogram(self, name: str, help: str, label_names: list[str],
                      buckets: list[float] | None = None) -> None:
        """Register a histogram. ``buckets=None`` selects the default latency buckets."""
        kwargs = {}
        if buckets is not None:
            kwargs["buckets"] = buckets
        try:
            metric = prometheus_client.Histogram(
                name, help, self._all_label_names(name, label_names), registry=self._registry, **kwargs,
            )
        except ValueError as exc:
            raise MetricsError(f"Could not register histogram {name}: {exc}") from exc
        self._histograms[name] = Histogram(name, metric, self._common_labels)
        logger.debug("Registered histogram %s", name)

    def get_counter(self, name: str) -> Counter:
        try:
            return self._counters[name]
        except KeyError:
            raise MetricsError(f"unknown counter metric: {name}") from None

    def get_histogram(self, name: str) -> Histogram:
        try:
            return self._histograms[name]
        except KeyError:
            raise MetricsError(f"unknown histogram metric: {name}") from None

    def unregister_all(self) -> None:
        """Remove every metric created by this manager from its registry."""
        failed = []
        for name, wrapper in [*self._counters.items(), *self._histograms.items()]:
            try:
                self._registry.unregister(wrapper.metric)
            except KeyError:
                failed.append(name)
        self._counters.clear()
        self._histograms.clear()
        if failed:
            raise MetricsError(f"could not unregister: {', '.join(failed)}")
