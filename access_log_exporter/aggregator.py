"""Per-cycle aggregation of parsed access log records."""

from collections.abc import Collection
from dataclasses import dataclass, field
from typing import NamedTuple

from access_log_exporter.models import LogRecord


class DetailedStatusKey(NamedTuple):
    status: str
    method: str
    path: str


class KeyedCounter:
    def __init__(self):
        self.counts: dict = {}

    def inc(self, key, amount: float = 1) -> None:
        self.counts[key] = self.counts.get(key, 0) + amount

    def __len__(self) -> int:
        return len(self.counts)


class KeyedAccumulator:
    def __init__(self):
        self.observations: dict[str, list[float]] = {}

    def record(self, key: str, value: float) -> None:
        self.observations.setdefault(key, []).append(value)

    def __len__(self) -> int:
        return len(self.observations)


@dataclass
class AggregationWindow:
    """Counters and observations for one polling cycle. Never reused."""

    status_counts: KeyedCounter = field(default_factory=KeyedCounter)
    detailed_status_counts: KeyedCounter = field(default_factory=KeyedCounter)
    latency_observations: KeyedAccumulator = field(default_factory=KeyedAccumulator)
    bytes_sent_observations: KeyedAccumulator = field(default_factory=KeyedAccumulator)

    def fold(self, record: LogRecord, detailed_paths: Collection[str]) -> None:
        self.status_counts.inc(record.status)

        if record.request_time is not None:
            self.latency_observations.record(record.status, record.request_time)

        if record.bytes_sent is not None:
            self.bytes_sent_observations.record(record.status, record.bytes_sent)

        if record.method is not None and record.path in detailed_paths:
            key = DetailedStatusKey(record.status, record.method, record.path)
            self.detailed_status_counts.inc(key)

    def is_empty(self) -> bool:
        return not (
            self.status_counts
            or self.detailed_status_counts
            or self.latency_observations
            or self.bytes_sent_observations
        )
