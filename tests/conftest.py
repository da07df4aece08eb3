"""Shared pytest fixtures and fakes for the access-log-exporter test suite."""

from __future__ import annotations

import json
from datetime import datetime

import pytest
from prometheus_client import CollectorRegistry

from access_log_exporter.metrics import MetricsError, MetricsManager


def json_line(time: datetime, status: str, method: str, path: str,
              request_time: float = 0.01, bytes_sent: int = 100) -> str:
    return json.dumps({
        "time": time.isoformat(timespec="seconds"),
        "status": status,
        "request_time": request_time,
        "request": f"{method} {path} HTTP/1.1",
        "bytes_sent": bytes_sent,
        "some_other": "stuff",
    }) + "\n"


def clf_line(time: datetime, status: str, method: str, path: str,
             request_time: float = 0.01, bytes_sent: int = 100) -> str:
    ts = time.strftime("%d/%b/%Y:%H:%M:%S %z")
    return f'127.0.0.1 - - [{ts}] "{method} {path} HTTP/1.1" {status} {bytes_sent} some other stuff\n'


LINE_BUILDERS = {"json": json_line, "clf": clf_line}


class FakeTailer:
    """Returns queued chunks from next(), then empty bytes forever."""

    def __init__(self, *chunks: bytes, error: OSError | None = None):
        self._chunks = list(chunks)
        self._error = error
        self.calls = 0

    def next(self) -> bytes:
        self.calls += 1
        if self._error is not None:
            raise self._error
        if self._chunks:
            return self._chunks.pop(0)
        return b""


class RecordingCounter:
    def __init__(self, fail: bool = False):
        self.calls: list[tuple[dict, float]] = []
        self._fail = fail

    def add(self, labels, value):
        if self._fail:
            raise MetricsError("counter update failed")
        self.calls.append((dict(labels), value))


class RecordingHistogram:
    def __init__(self, fail: bool = False):
        self.calls: list[tuple[dict, list[float]]] = []
        self._fail = fail

    def observe(self, labels, values):
        if self._fail:
            raise MetricsError("histogram update failed")
        self.calls.append((dict(labels), list(values)))


class RecordingManager:
    """Stands in for MetricsManager and records every registration and update."""

    def __init__(self, fail_on_add: str | None = None, fail_updates: bool = False):
        self.registrations: list[tuple] = []
        self.counters: dict[str, RecordingCounter] = {}
        self.histograms: dict[str, RecordingHistogram] = {}
        self._fail_on_add = fail_on_add
        self._fail_updates = fail_updates

    def add_counter(self, name, help, label_names):
        if name == self._fail_on_add:
            raise MetricsError(f"Could not register counter {name}")
        self.registrations.append(("counter", name, help, list(label_names), None))
        self.counters[name] = RecordingCounter(self._fail_updates)

    def add_histogram(self, name, help, label_names, buckets=None):
        if name == self._fail_on_add:
            raise MetricsError(f"Could not register histogram {name}")
        self.registrations.append(("histogram", name, help, list(label_names), buckets))
        self.histograms[name] = RecordingHistogram(self._fail_updates)

    def get_counter(self, name):
        return self.counters[name]

    def get_histogram(self, name):
        return self.histograms[name]

    def total_calls(self) -> int:
        return sum(len(c.calls) for c in self.counters.values()) + \
            sum(len(h.calls) for h in self.histograms.values())


@pytest.fixture()
def registry() -> CollectorRegistry:
    """Return a fresh Prometheus registry so tests never share metrics."""
    return CollectorRegistry()


@pytest.fixture()
def manager(registry) -> MetricsManager:
    return MetricsManager(registry=registry)


@pytest.fixture()
def recording_manager() -> RecordingManager:
    return RecordingManager()
