"""FileTailSource: watchdog handler that tails JSON-lines field-map files."""

import json
import logging
import os

from watchdog.events import FileSystemEventHandler

from logpile.source import LogSource

logger = logging.getLogger(__name__)


def decode_line(line: str) -> dict[str, str]:
    """Decode one JSON object line into a textual field map.

    Raises ValueError for non-JSON input or anything other than an object.
    """
    data = json.loads(line)
    if not isinstance(data, dict):
        raise ValueError(f"expected JSON object, got {type(data).__name__}")
    return {str(k): v if v is None or isinstance(v, str) else str(v) for k, v in data.items()}


class FileTailSource(FileSystemEventHandler):
    def __init__(self, watched_files: list[str], source: LogSource):
        super().__init__()
        self._watched = {os.path.abspath(f) for f in watched_files}
        self._source = source
        self._file_handles: dict[str, object] = {}
        self._partial_lines: dict[str, str] = {}
        self._bad_lines = 0

    @property
    def source(self) -> LogSource:
        return self._source

    @property
    def bad_lines(self) -> int:
        return self._bad_lines

    def _open_file(self, path: str):
        abs_path = os.path.abspath(path)
        if abs_path in self._file_handles:
            self._file_handles[abs_path].close()
        try:
            fh = open(abs_path, "r", encoding="utf-8", errors="replace")
        except FileNotFoundError:
            logger.debug("File not found: %s", abs_path)
            return
        self._file_handles[abs_path] = fh
        self._partial_lines.pop(abs_path, None)
        logger.debug("Opened %s", abs_path)

    def _needs_reopen(self, abs_path: str) -> bool:
        """Detect rotation (inode changed) or truncation (file smaller than our offset)."""
        fh = self._file_handles[abs_path]
        try:
            current = os.stat(abs_path)
        except FileNotFoundError:
            return False
        opened = os.fstat(fh.fileno())

        if (current.st_ino, current.st_dev) != (opened.st_ino, opened.st_dev):
            logger.info("File rotated (inode changed): %s", abs_path)
            return True
        if current.st_size < fh.tell():
            logger.info("File truncated: %s", abs_path)
            return True
        return False

    def read_new_lines(self, path: str) -> int:
        """Read from the current position to EOF and ingest complete lines."""
        abs_path = os.path.abspath(path)

        if abs_path in self._file_handles and self._needs_reopen(abs_path):
            self._open_file(abs_path)
        if abs_path not in self._file_handles:
            self._open_file(abs_path)
        if abs_path not in self._file_handles:
            return 0

        fh = self._file_handles[abs_path]
        data = fh.read()
        if not data:
            return 0

        if abs_path in self._partial_lines:
            data = self._partial_lines.pop(abs_path) + data

        lines = data.split("\n")
        if not data.endswith("\n"):
            self._partial_lines[abs_path] = lines[-1]
            lines = lines[:-1]

        events = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                events.append(decode_line(stripped))
            except ValueError as e:
                self._bad_lines += 1
                self._source.reject(stripped, e)

        if not events:
            return 0
        return self._source.ingest(events)

    def on_modified(self, event):
        if event.is_directory:
            return
        abs_path = os.path.abspath(event.src_path)
        if abs_path in self._watched:
            self.read_new_lines(abs_path)

    def on_created(self, event):
        if event.is_directory:
            return
        abs_path = os.path.abspath(event.src_path)
        if abs_path in self._watched:
            logger.info("Watched file created: %s", abs_path)
            self._open_file(abs_path)
            self.read_new_lines(abs_path)

    def startup_read(self):
        """Ingest content already present in the watched files."""
        for path in sorted(self._watched):
            if os.path.exists(path):
                logger.info("Startup read: %s", path)
                self._open_file(path)
                self.read_new_lines(path)

    def close(self):
        """Close file handles and the underlying source."""
        for fh in self._file_handles.values():
            fh.close()
        self._file_handles.clear()
        self._source.close()

    def get_watched_dirs(self) -> set[str]:
        return {os.path.dirname(p) for p in self._watched}
