"""Consumer: polls the tailer, aggregates access log lines, flushes to metrics."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone

from access_log_exporter.aggregator import AggregationWindow
from access_log_exporter.metrics import MetricsError, MetricsManager
from access_log_exporter.parsers import get_parser

logger = logging.getLogger(__name__)

RESPONSE_COUNT = "http_response_count"
DETAILED_RESPONSE_COUNT = "detailed_http_response_count"
RESPONSE_TIME = "http_response_time"
RESPONSE_BYTES_SENT = "http_response_bytes_sent"

BYTES_SENT_BUCKETS = [8, 16, 64, 128, 256, 512, 1024, 2048, 4096]


class ConsumerError(Exception):
    """Fatal polling failure: the tailer could not be read or a flush failed."""


class Consumer:
    """Periodically drains the tailer and exports per-cycle aggregates.

    Only lines timestamped strictly after ``creation_time`` are counted, so
    content already in the file at startup is never exported.
    """

    def __init__(self, period: float, tailer, manager: MetricsManager,
                 detailed_paths: Iterable[str], log_format: str):
        self.period = period
        self._tailer = tailer
        self._parse = get_parser(log_format)
        self._paths = frozenset(detailed_paths)
        self._stop = threading.Event()

        manager.add_counter(
            RESPONSE_COUNT, "Counts of responses by status code",
            ["status_code"],
        )
        manager.add_counter(
            DETAILED_RESPONSE_COUNT, "Counts of responses by status code, path, and method",
            ["status_code", "path", "method"],
        )
        manager.add_histogram(
            RESPONSE_TIME, "Response time (seconds) by status code",
            ["status_code"], None,
        )
        manager.add_histogram(
            RESPONSE_BYTES_SENT, "Response size (bytes) by status code",
            ["status_code"], BYTES_SENT_BUCKETS,
        )

        self._response_count = manager.get_counter(RESPONSE_COUNT)
        self._detailed_response_count = manager.get_counter(DETAILED_RESPONSE_COUNT)
        self._response_time = manager.get_histogram(RESPONSE_TIME)
        self._response_bytes_sent = manager.get_histogram(RESPONSE_BYTES_SENT)

        self.creation_time = datetime.now(timezone.utc)

    def _flush(self, window: AggregationWindow) -> None:
        for status, count in window.status_counts.counts.items():
            self._response_count.add({"status_code": status}, count)

        for key, count in window.detailed_status_counts.counts.items():
            self._detailed_response_count.add(
                {"status_code": key.status, "path": key.path, "method": key.method}, count,
            )

        for status, values in window.latency_observations.observations.items():
            self._response_time.observe({"status_code": status}, values)

        for status, values in window.bytes_sent_observations.observations.items():
            self._response_bytes_sent.observe({"status_code": status}, values)

    def consume_bytes(self, data: bytes) -> None:
        """Parse, filter and aggregate one cycle's bytes, then flush them."""
        window = AggregationWindow()
        total = accepted = stale = failed = 0

        for line in data.splitlines():
            if not line.strip():
                continue
            total += 1
            record = self._parse(line)
            if record is None:
                failed += 1
                continue
            if record.time > self.creation_time:
                window.fold(record, self._paths)
                accepted += 1
            else:
                stale += 1

        if total:
            logger.debug("Consumed %d lines: %d accepted, %d older than start, %d unparsable",
                         total, accepted, stale, failed)

        if window.is_empty():
            return
        try:
            self._flush(window)
        except MetricsError as exc:
            raise ConsumerError(f"Could not export log content: {exc}") from exc

    def run(self) -> None:
        """Poll every ``period`` seconds until stop() is called.

        Raises ConsumerError if the tailer fails or a flush fails.
        """
        while not self._stop.wait(self.period):
            try:
                data = self._tailer.next()
            except OSError as exc:
                raise ConsumerError(f"Could not retrieve log content: {exc}") from exc
            self.consume_bytes(data)
        logger.info("Consumer stopped")

    def stop(self) -> None:
        """Ask run() to return; never blocks. Safe from other threads."""
        self._stop.set()
