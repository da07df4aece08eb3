"""Normalized access log record and on-disk file identity."""

import os
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple


class FileIdentity(NamedTuple):
    device: int
    inode: int

    @classmethod
    def from_stat(cls, st: os.stat_result) -> "FileIdentity":
        return cls(device=st.st_dev, inode=st.st_ino)


@dataclass(frozen=True)
class LogRecord:
    time: datetime               # timezone-aware
    status: str                  # kept as text, e.g. "200" or "499"
    request: str = ""            # raw request line, e.g. "GET /foo HTTP/1.1"
    method: str | None = None    # None when the request line is malformed
    path: str | None = None      # query and fragment stripped
    request_time: float | None = None  # seconds
    bytes_sent: float | None = None
