"""Configuration loading from an optional YAML file, env vars, and CLI args."""

import argparse
import logging
import os
from dataclasses import dataclass, field

import yaml

from access_log_exporter.parsers import FORMAT_JSON, LOG_FORMATS

logger = logging.getLogger(__name__)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _parse_paths(value) -> tuple[str, ...]:
    """Accept a comma-separated string or a list of paths."""
    if isinstance(value, str):
        items = [p.strip() for p in value.split(",") if p.strip()]
    else:
        items = [str(p) for p in value or []]
    for path in items:
        if not path or any(c.isspace() for c in path):
            raise ValueError(f"Invalid detailed path: {path!r}")
    return tuple(items)


def _parse_labels(value) -> dict[str, str]:
    """Accept 'k1=v1,k2=v2' or a mapping."""
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    labels = {}
    for elem in (value or "").split(","):
        if not elem:
            continue
        pair = elem.split("=")
        if len(pair) != 2:
            raise ValueError(f"Could not parse key=value pair: {elem}")
        labels[pair[0]] = pair[1]
    return labels


@dataclass(frozen=True)
class Config:
    access_log_path: str = ""
    export_host: str = "0.0.0.0"
    export_port: int = 9091
    log_polling_period: float = 30.0
    rotation_check_period: float = 60.0
    log_format: str = FORMAT_JSON
    detailed_paths: tuple[str, ...] = ()
    custom_labels: dict[str, str] = field(default_factory=dict)
    use_syslog: bool = False
    log_level: str = "INFO"


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export nginx access log metrics to Prometheus")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--access-log-path", default=None, help="Path to access log file")
    parser.add_argument("--export-host", default=None, help="Address to serve /metrics on")
    parser.add_argument("--export-port", type=int, default=None, help="Port to serve /metrics on")
    parser.add_argument("--log-polling-period", type=float, default=None,
                        help="Seconds between checks for new log lines")
    parser.add_argument("--rotation-check-period", type=float, default=None,
                        help="Idle seconds between log rotation checks")
    parser.add_argument("--log-format", default=None, help="Access log format: json or clf")
    parser.add_argument("--detailed-paths", default=None,
                        help="Comma-separated request paths counted by path and method")
    parser.add_argument("--custom-labels", default=None,
                        help="Comma-separated key=value labels applied to all metrics")
    parser.add_argument("--use-syslog", action="store_true", default=None,
                        help="Emit logs to syslog instead of stderr")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    return parser


def load_config(argv: list[str] | None = None) -> Config:
    """Build Config from defaults <- YAML file <- env vars <- CLI args (highest priority)."""
    args = build_cli_parser().parse_args(argv)
    yaml_data = load_yaml_config(args.config or os.environ.get("EXPORTER_CONFIG"))

    def pick(name: str, env_var: str):
        cli_value = getattr(args, name)
        if cli_value is not None:
            return cli_value
        if env_var in os.environ:
            return os.environ[env_var]
        if name in yaml_data:
            return yaml_data[name]
        return getattr(Config, name, None)

    log_format = str(pick("log_format", "LOG_FORMAT")).lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unsupported log format: {log_format}")

    cfg = Config(
        access_log_path=str(pick("access_log_path", "ACCESS_LOG_PATH")),
        export_host=str(pick("export_host", "EXPORT_HOST")),
        export_port=int(pick("export_port", "EXPORT_PORT")),
        log_polling_period=float(pick("log_polling_period", "LOG_POLLING_PERIOD")),
        rotation_check_period=float(pick("rotation_check_period", "ROTATION_CHECK_PERIOD")),
        log_format=log_format,
        detailed_paths=_parse_paths(pick("detailed_paths", "DETAILED_PATHS")),
        custom_labels=_parse_labels(pick("custom_labels", "CUSTOM_LABELS")),
        use_syslog=_parse_bool(pick("use_syslog", "USE_SYSLOG")),
        log_level=str(pick("log_level", "LOG_LEVEL")).upper(),
    )

    if not cfg.access_log_path:
        raise ValueError("An access log path is required (--access-log-path or ACCESS_LOG_PATH)")
    if cfg.log_polling_period <= 0 or cfg.rotation_check_period <= 0:
        raise ValueError("Polling and rotation check periods must be positive")
    return cfg
