"""Tests for the tailing coordinator."""

import queue
import threading
import time

from log2gelf.models import ShutdownReason
from log2gelf.position import load_position, read_inode, save_position
from log2gelf.shutdown import ShutdownSignal
from log2gelf.tailer import TailingCoordinator, TailState


def _drain(q: queue.Queue, stop: threading.Event, out: list):
    while not stop.is_set():
        try:
            item = q.get(timeout=0.05)
        except queue.Empty:
            continue
        out.append(item)
        q.task_done()


def _start(config):
    lines = queue.Queue(maxsize=config.queue_size)
    shutdown = ShutdownSignal()
    tailer = TailingCoordinator(config, lines, shutdown)
    received: list = []
    stop = threading.Event()
    threading.Thread(target=_drain, args=(lines, stop, received), daemon=True).start()
    threading.Thread(target=tailer.run, daemon=True).start()
    return tailer, shutdown, received, stop


class TestOneShotMode:
    def test_forwards_lines_then_exhausts(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"".join(f"line {i}\n".encode() for i in range(25)))
        tailer, shutdown, received, stop = _start(make_config(no_follow=True))
        try:
            event = shutdown.wait(5)
            assert event.reason is ShutdownReason.SOURCE_EXHAUSTED
            assert received == [f"line {i}".encode() for i in range(25)]
            assert tailer.state is TailState.CLOSED
        finally:
            stop.set()

    def test_ignores_and_keeps_state_file(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"a\nb\n")
        state = tmp_path / "app.log.state"
        save_position(str(state), read_inode(str(log)), 2)
        before = state.read_text()
        _, shutdown, received, stop = _start(make_config(no_follow=True))
        try:
            shutdown.wait(5)
            assert received == [b"a", b"b"]
            assert state.read_text() == before
        finally:
            stop.set()

    def test_missing_file_is_source_error(self, make_config, tmp_path):
        tailer, shutdown, received, stop = _start(make_config(log_file=str(tmp_path / "nope.log")))
        try:
            event = shutdown.wait(5)
            assert event.reason is ShutdownReason.SOURCE_ERROR
            assert "nope.log" in event.detail
            assert received == []
            assert tailer.state is TailState.CLOSED
        finally:
            stop.set()


class TestFollowMode:
    def test_resumes_from_saved_offset(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"old 1\nold 2\nnew 3\n")
        save_position(str(tmp_path / "app.log.state"), read_inode(str(log)), len(b"old 1\nold 2\n"))
        tailer, shutdown, received, stop = _start(make_config())
        try:
            deadline = time.monotonic() + 5
            while not received and time.monotonic() < deadline:
                time.sleep(0.02)
            assert received == [b"new 3"]
            assert tailer.state is TailState.FOLLOWING
            assert not shutdown.is_set
        finally:
            stop.set()

    def test_inode_mismatch_reads_from_start(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"one\ntwo\n")
        save_position(str(tmp_path / "app.log.state"), read_inode(str(log)) + 1, 4)
        _, _, received, stop = _start(make_config())
        try:
            deadline = time.monotonic() + 5
            while len(received) < 2 and time.monotonic() < deadline:
                time.sleep(0.02)
            assert received == [b"one", b"two"]
        finally:
            stop.set()

    def test_save_request_persists_offset(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"one\ntwo\n")
        tailer, _, received, stop = _start(make_config())
        try:
            deadline = time.monotonic() + 5
            while len(received) < 2 and time.monotonic() < deadline:
                time.sleep(0.02)
            assert tailer.request_save(wait=2)
            state = str(tmp_path / "app.log.state")
            assert load_position(state, read_inode(str(log))) == len(b"one\ntwo\n")
        finally:
            stop.set()

    def test_custom_state_file(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"one\n")
        state = tmp_path / "positions" / "custom.state"
        state.parent.mkdir()
        tailer, _, received, stop = _start(make_config(state_file=str(state)))
        try:
            deadline = time.monotonic() + 5
            while not received and time.monotonic() < deadline:
                time.sleep(0.02)
            assert tailer.request_save(wait=2)
            assert state.read_text().startswith("Offset 4 ")
            assert not (tmp_path / "app.log.state").exists()
        finally:
            stop.set()


class TestBackpressure:
    def _blocked(self, make_config, tmp_path):
        log = tmp_path / "app.log"
        log.write_bytes(b"".join(f"line {i}\n".encode() for i in range(200)))
        lines = queue.Queue(maxsize=1)
        shutdown = ShutdownSignal()
        tailer = TailingCoordinator(make_config(save_interval=60), lines, shutdown)
        thread = threading.Thread(target=tailer.run, daemon=True)
        thread.start()
        deadline = time.monotonic() + 5
        while not lines.full() and time.monotonic() < deadline:
            time.sleep(0.02)
        assert lines.full()
        return log, tailer, shutdown, thread

    def test_save_served_while_line_queue_full(self, make_config, tmp_path):
        log, tailer, _, _ = self._blocked(make_config, tmp_path)
        try:
            assert tailer.request_save(wait=1)
            offset = load_position(str(tmp_path / "app.log.state"), read_inode(str(log)))
            assert 0 < offset < log.stat().st_size
        finally:
            tailer.stop()

    def test_stop_ends_without_shutdown_reason(self, make_config, tmp_path):
        _, tailer, shutdown, thread = self._blocked(make_config, tmp_path)
        tailer.stop()
        thread.join(timeout=2)
        assert not thread.is_alive()
        assert tailer.state is TailState.CLOSED
        assert not shutdown.is_set
        assert not tailer.request_save(wait=0.1)
