#!/usr/bin/env python3
"""Access Log Exporter — Entry Point."""

import logging
import logging.handlers
import os
import signal
import sys

from prometheus_client import start_http_server

from access_log_exporter.config import Config, load_config
from access_log_exporter.consumer import Consumer, ConsumerError
from access_log_exporter.metrics import MetricsError, MetricsManager
from access_log_exporter.tailer import Tailer

logger = logging.getLogger(__name__)


def setup_logging(config: Config) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [EXPORTER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    if config.use_syslog:
        address = "/dev/log" if os.path.exists("/dev/log") else ("localhost", 514)
        handler = logging.handlers.SysLogHandler(address=address)
        handler.ident = "access_log_exporter: "
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)
        root.addHandler(handler)


def main(argv: list[str] | None = None) -> None:
    try:
        config = load_config(argv)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config)

    try:
        tailer = Tailer(config.access_log_path, config.rotation_check_period)
    except OSError as e:
        logger.error("Could not create tailer for %s: %s", config.access_log_path, e)
        sys.exit(1)

    logger.info("Creating metrics with common labels: %s", config.custom_labels)
    manager = MetricsManager(config.custom_labels)

    try:
        consumer = Consumer(
            config.log_polling_period, tailer, manager,
            config.detailed_paths, config.log_format,
        )
    except (MetricsError, ValueError) as e:
        logger.error("Could not create consumer: %s", e)
        tailer.close()
        sys.exit(1)

    def _signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        consumer.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    logger.info("Starting prometheus exporter at %s:%d", config.export_host, config.export_port)
    start_http_server(config.export_port, addr=config.export_host)

    logger.info("Starting consumer for %s (format=%s, period=%.1fs)",
                config.access_log_path, config.log_format, config.log_polling_period)
    try:
        consumer.run()
    except ConsumerError as e:
        logger.error("Failure consuming logs: %s", e)
        sys.exit(1)
    finally:
        tailer.close()

    logger.info("Access Log Exporter stopped.")


if __name__ == "__main__":
    main()
