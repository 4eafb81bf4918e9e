"""Tailing coordinator — owns the read position and feeds the line queue.

Raw lines (and the end marker) arrive from the follower on a one-slot inbox;
save requests from the timer or the orchestrator arrive on a queue of their
own. Pending save requests are served between lines and while a line waits
for room on the line queue, so a backlog never holds a save back.
"""

import logging
import queue
import threading
from enum import Enum

from log2gelf.config import Config
from log2gelf.follower import END, FileFollower
from log2gelf.models import ShutdownReason
from log2gelf.position import load_position, read_inode, save_position
from log2gelf.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)


class TailState(Enum):
    STARTING = "starting"
    FOLLOWING = "following"
    CLOSED = "closed"


class SaveRequest:
    def __init__(self):
        self.done = threading.Event()


class TailingCoordinator:
    def __init__(self, config: Config, lines: queue.Queue, shutdown: ShutdownSignal,
                 follower_factory=FileFollower):
        self._config = config
        self._lines = lines
        self._shutdown = shutdown
        self._follower_factory = follower_factory
        # one slot keeps the follower's offset close to what was handed over
        self._inbox: queue.Queue = queue.Queue(maxsize=1)
        self._saves: queue.Queue = queue.Queue()
        self._stopping = threading.Event()
        self._follower = None
        self._state = TailState.STARTING

    @property
    def state(self) -> TailState:
        return self._state

    def request_save(self, wait: float | None = None) -> bool:
        """Ask the coordinator to persist its position.

        With *wait*, block up to that many seconds for the save to happen and
        return whether it did. Best effort: a closed coordinator returns False.
        """
        if self._state is TailState.CLOSED:
            logger.debug("Save request ignored, coordinator closed")
            return False
        request = SaveRequest()
        self._saves.put(request)
        if wait is None:
            return True
        return request.done.wait(wait)

    def stop(self):
        """Stop following without reporting a shutdown reason."""
        self._stopping.set()
        if self._follower is not None:
            self._follower.stop()

    def run(self):
        follow = self._config.follow
        path = self._config.log_file
        logger.debug("Tailing %s: follow=%s", path, follow)

        inode = read_inode(path)
        offset = load_position(self._config.state_path, inode) if follow else 0

        follower = self._follower_factory(
            path, self._inbox, offset=offset, follow=follow,
            poll_interval=self._config.poll_interval,
        )
        try:
            follower.start()
        except OSError as e:
            self._set_state(TailState.CLOSED)
            self._shutdown.fire(ShutdownReason.SOURCE_ERROR, f"cannot tail file {path}: {e}")
            return
        self._follower = follower
        logger.debug("Opened log file %s", path)
        self._set_state(TailState.FOLLOWING)

        while not self._stopping.is_set():
            self._serve_saves()
            try:
                item = self._inbox.get(timeout=self._config.poll_interval)
            except queue.Empty:
                continue
            if item is END:
                break
            self._forward(item)

        self._serve_saves()
        self._set_state(TailState.CLOSED)
        if self._stopping.is_set():
            follower.stop()
            return
        # hand over everything already read before reporting the end
        self._lines.join()
        if follower.error is not None:
            self._shutdown.fire(ShutdownReason.SOURCE_ERROR, f"reading {path} failed: {follower.error}")
        else:
            self._shutdown.fire(ShutdownReason.SOURCE_EXHAUSTED, "logfile closed")

    def _forward(self, line: bytes):
        while not self._stopping.is_set():
            try:
                self._lines.put(line, timeout=self._config.poll_interval)
                return
            except queue.Full:
                self._serve_saves()

    def _serve_saves(self):
        pending = []
        while True:
            try:
                pending.append(self._saves.get_nowait())
            except queue.Empty:
                break
        if not pending:
            return
        self._save()
        for request in pending:
            request.done.set()

    def _save(self):
        offset = self._follower.tell()
        if self._config.follow:
            save_position(self._config.state_path, self._follower.inode, offset)
        logger.debug("Reading %s, now at offset %d", self._config.log_file, offset)

    def _set_state(self, state: TailState):
        logger.debug("Tailing coordinator: %s -> %s", self._state.value, state.value)
        self._state = state
