"""Tailer for a log file that is periodically rotated by an external process."""

import logging
import os
import time

from access_log_exporter.models import FileIdentity

logger = logging.getLogger(__name__)


class Tailer:
    """Returns bytes appended to a file since the previous call to next().

    The file is read from offset 0 when first opened, so pre-existing content
    comes back on the first call. After ``idle_duration`` seconds without new
    content, an empty read also checks whether the path now names a different
    file (device + inode). If so, the old handle is swapped for the new file,
    whose content is returned starting with the following call.
    """

    def __init__(self, path: str, idle_duration: float):
        self._path = path
        self._idle_duration = idle_duration
        self._file = None
        self._identity: FileIdentity | None = None
        self._last_content: float | None = None
        self._open_or_rotate()

    @property
    def path(self) -> str:
        return self._path

    @property
    def identity(self) -> FileIdentity | None:
        return self._identity

    def _open_or_rotate(self) -> None:
        """Open the path; replace the held handle only if it is a new file."""
        f = open(self._path, "rb")
        try:
            identity = FileIdentity.from_stat(os.fstat(f.fileno()))
        except OSError:
            f.close()
            raise

        if self._file is None:
            self._file = f
            self._identity = identity
            logger.debug("Opened %s (dev=%d, inode=%d)", self._path, identity.device, identity.inode)
        elif identity == self._identity:
            f.close()
        else:
            logger.info("File rotation detected for %s", self._path)
            self._file.close()
            self._file = f
            self._identity = identity

    def next(self) -> bytes:
        """Read everything from the cursor to EOF, advancing the cursor.

        Raises ValueError once the tailer has been closed.
        """
        if self._file is None:
            raise ValueError(f"Tailer for {self._path} is closed")
        data = self._file.read()

        now = time.monotonic()
        if data:
            self._last_content = now
        elif self._last_content is None or now - self._last_content > self._idle_duration:
            try:
                self._open_or_rotate()
            except OSError as e:
                # Path may be mid-rotation; stay on the current handle.
                logger.debug("Rotation check failed for %s: %s", self._path, e)

        return data

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None
