"""File follower — reads a log file line by line, optionally tail -f style.

Lines (bytes, without the trailing newline) are put on a queue, followed by
``END`` once the file is read to the end (one-shot mode), the follower is
stopped, or reading fails. Once stopped, items the queue has no room for are
dropped.

In follow mode the follower waits for appended data, woken by watchdog
filesystem events with a polling fallback, and handles:
- log rotation (inode change: drain the old file, re-open the new one)
- truncation (file smaller than our position: seek back to start)
"""

import logging
import os
import queue
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

END = None


class _ChangeHandler(FileSystemEventHandler):
    """Wakes the reader when anything happens to the followed path."""

    def __init__(self, path: str, changed: threading.Event):
        super().__init__()
        self._path = path
        self._changed = changed

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = {event.src_path, getattr(event, "dest_path", "")}
        if self._path in {os.path.abspath(p) for p in paths if p}:
            self._changed.set()


class FileFollower:
    def __init__(
        self,
        path: str,
        lines: queue.Queue,
        offset: int = 0,
        follow: bool = True,
        poll_interval: float = 0.25,
    ):
        self._path = os.path.abspath(path)
        self._lines = lines
        self._start_offset = offset
        self._follow = follow
        self._poll_interval = poll_interval

        self._file = None
        self._inode = 0
        self._offset = offset
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._changed = threading.Event()
        self._observer = None
        self._thread = None
        self.error: OSError | None = None

    def start(self):
        """Open the file at the start offset and begin reading.

        Raises OSError if the file cannot be opened.
        """
        self._open_file(self._start_offset)
        if self._follow:
            self._observer = Observer()
            self._observer.schedule(
                _ChangeHandler(self._path, self._changed),
                os.path.dirname(self._path),
                recursive=False,
            )
            self._observer.start()
        self._thread = threading.Thread(target=self._run, name="file-follower", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        self._changed.set()
        if self._thread:
            self._thread.join(timeout=2)

    def tell(self) -> int:
        """Byte offset just past the last line handed out."""
        with self._lock:
            return self._offset

    @property
    def inode(self) -> int:
        with self._lock:
            return self._inode

    def _run(self):
        pending = b""
        try:
            while not self._stop_event.is_set():
                chunk = self._file.readline()
                if chunk:
                    pending += chunk
                    if pending.endswith(b"\n"):
                        self._emit(pending[:-1])
                        pending = b""
                    continue

                if not self._follow:
                    if pending:
                        self._emit(pending)
                    break

                if self._check_rotation(pending):
                    pending = b""
                    continue
                if self._check_truncation():
                    pending = b""
                    continue

                self._changed.wait(self._poll_interval)
                self._changed.clear()
        except OSError as e:
            logger.error("Reading %s failed: %s", self._path, e)
            self.error = e
        finally:
            self._close_file()
            self._put(END)

    def _emit(self, line: bytes):
        with self._lock:
            self._offset = self._file.tell()
        self._put(line)

    def _put(self, item):
        """Hand *item* over, giving up once the follower is stopped."""
        while True:
            stopped = self._stop_event.is_set()
            try:
                self._lines.put(item, block=not stopped, timeout=self._poll_interval)
                return
            except queue.Full:
                if stopped:
                    return

    def _open_file(self, offset: int):
        self._file = open(self._path, "rb")
        inode = os.fstat(self._file.fileno()).st_ino
        self._file.seek(offset)
        with self._lock:
            self._inode = inode
            self._offset = offset
        logger.debug("Opened %s (inode=%d) at offset %d", self._path, inode, offset)

    def _close_file(self):
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._file:
            self._file.close()
            self._file = None

    def _check_rotation(self, pending: bytes) -> bool:
        """Re-open the file if the path now points at a new inode."""
        try:
            current_inode = os.stat(self._path).st_ino
        except FileNotFoundError:
            return False
        if current_inode == self._inode:
            return False

        logger.info("File rotation detected for %s", self._path)
        rest = pending + self._file.read()
        for line in rest.splitlines():
            self._emit(line)
        self._file.close()
        self._open_file(0)
        return True

    def _check_truncation(self) -> bool:
        try:
            size = os.path.getsize(self._path)
        except FileNotFoundError:
            return False
        if self._file.tell() > size:
            logger.info("File truncation detected for %s", self._path)
            self._file.seek(0)
            with self._lock:
                self._offset = 0
            return True
        return False
