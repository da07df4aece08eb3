"""Parsers for nginx access log lines in JSON and Common Log Format.

Both formats produce a ``LogRecord``. A line that cannot be parsed is logged
and returned as None; a request line that cannot be split into method, URI
and protocol still yields a record, just without ``method``/``path``.
"""

import json
import logging
import math
import re
from datetime import datetime
from urllib.parse import unquote, urlsplit

from access_log_exporter.models import LogRecord

logger = logging.getLogger(__name__)

FORMAT_JSON = "json"
FORMAT_CLF = "clf"
LOG_FORMATS = (FORMAT_JSON, FORMAT_CLF)

# e.g. 02/Jan/2006:15:04:05 -0700
CLF_TIME_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

_CLF_RE = re.compile(
    r'^(?P<host>\S+)\s+(?P<ident>\S+)\s+(?P<user>\S+)\s+'
    r'\[(?P<time>[^\]\s]+\s+[^\]\s]+)\]\s+'
    r'"(?P<request>[^"]*)"\s+'
    r'(?P<status>\S+)\s+'
    r'(?P<size>\S+)'
    r'(?:\s.*)?$'
)

_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_QUERY_OR_FRAGMENT_RE = re.compile(r"[?#]")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_request_uri(uri: str) -> str | None:
    """Return the unescaped path of a request URI, or None if it is invalid.

    Accepts an absolute path, ``*``, or an absolute URL with a scheme.
    """
    if not uri:
        return None
    if uri == "*":
        return uri
    if uri.startswith("/"):
        raw_path = _QUERY_OR_FRAGMENT_RE.split(uri, maxsplit=1)[0]
    else:
        try:
            parts = urlsplit(uri)
        except ValueError:
            return None
        if not (parts.scheme and parts.netloc):
            return None
        raw_path = parts.path
    if _BAD_ESCAPE_RE.search(raw_path):
        return None
    return unquote(raw_path)


def _parse_request(request: str) -> tuple[str | None, str | None]:
    """Split 'GET /path?q=1 HTTP/1.1' -> ('GET', '/path')."""
    fields = request.split()
    if len(fields) != 3:
        logger.warning("Skipping malformed request field: %r", request)
        return None, None
    path = _parse_request_uri(fields[1])
    if path is None:
        logger.warning("Skipping malformed request path: %r", fields[1])
        return None, None
    return fields[0], path


def _optional_number(data: dict, key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"field {key!r} must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"field {key!r} must be finite, got {value}")
    if value < 0:
        return None
    return value


def _optional_string(data: dict, key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise TypeError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _parse_iso8601(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        raise ValueError(f"timestamp {value!r} has no UTC offset")
    return dt


# ---------------------------------------------------------------------------
# Format-specific parsers
# ---------------------------------------------------------------------------


def parse_json_line(line: bytes) -> LogRecord | None:
    """Parse one JSON object line with time/request/status/request_time/bytes_sent."""
    try:
        data = json.loads(line)
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        time_str = _optional_string(data, "time")
        request = _optional_string(data, "request")
        status = _optional_string(data, "status")
        request_time = _optional_number(data, "request_time")
        bytes_sent = _optional_number(data, "bytes_sent")
    except (ValueError, TypeError, OverflowError, RecursionError) as e:
        logger.warning("Error parsing log line: %s", e)
        return None

    try:
        ts = _parse_iso8601(time_str)
    except ValueError as e:
        logger.warning("Could not parse time %r: %s", time_str, e)
        return None

    method, path = _parse_request(request)
    return LogRecord(
        time=ts,
        status=status,
        request=request,
        method=method,
        path=path,
        request_time=request_time,
        bytes_sent=bytes_sent,
    )


def parse_clf_line(line: bytes) -> LogRecord | None:
    """Parse a Common Log Format line; trailing fields after the size are ignored."""
    text = line.decode("utf-8", errors="replace").strip()
    m = _CLF_RE.match(text)
    if not m:
        logger.warning("Error parsing log line: expected at least 8 fields: %r", text)
        return None

    try:
        ts = datetime.strptime(m.group("time"), CLF_TIME_FORMAT)
    except ValueError as e:
        logger.warning("Could not parse time %r: %s", m.group("time"), e)
        return None

    size = m.group("size")
    bytes_sent = None
    if size != "-":
        try:
            bytes_sent = float(size)
            if not math.isfinite(bytes_sent):
                raise ValueError(f"non-finite value {size!r}")
        except ValueError:
            logger.warning("Error parsing log line: invalid bytes_sent %r", size)
            return None
        if bytes_sent < 0:
            bytes_sent = None

    request = m.group("request")
    method, path = _parse_request(request)
    return LogRecord(
        time=ts,
        status=m.group("status"),
        request=request,
        method=method,
        path=path,
        bytes_sent=bytes_sent,
    )


_PARSERS = {
    FORMAT_JSON: parse_json_line,
    FORMAT_CLF: parse_clf_line,
}


def get_parser(log_format: str):
    """Return the line parser for *log_format* ("json" or "clf")."""
    try:
        return _PARSERS[log_format.lower()]
    except KeyError:
        raise ValueError(f"Unsupported log format: {log_format}") from None
