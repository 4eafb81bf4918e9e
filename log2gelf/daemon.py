"""Shutdown orchestrator — starts all tasks and waits for the first terminal event."""

import logging
import os
import queue
import signal
import threading

from log2gelf.config import Config
from log2gelf.dispatcher import DispatchSink
from log2gelf.follower import FileFollower
from log2gelf.gelf import GelfUdpWriter
from log2gelf.models import ShutdownEvent, ShutdownReason
from log2gelf.shutdown import ShutdownSignal
from log2gelf.tailer import TailingCoordinator

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)
FORCED_EXIT_CODE = 2


def default_transport(config: Config) -> GelfUdpWriter:
    return GelfUdpWriter(
        config.server_host, config.server_port,
        compression=config.compression, chunk_size=config.chunk_size,
    )


class ShutdownOrchestrator:
    def __init__(self, config: Config, transport_factory=default_transport,
                 follower_factory=FileFollower, exit_func=os._exit):
        self._config = config
        self._exit_func = exit_func
        self.shutdown = ShutdownSignal()
        self._lines: queue.Queue = queue.Queue(maxsize=config.queue_size)
        self._stop_timer = threading.Event()

        self.tailer = TailingCoordinator(config, self._lines, self.shutdown, follower_factory)
        self.sink = DispatchSink(self._lines, transport_factory(config), self.shutdown)

    def run(self) -> int:
        """Run until the first shutdown event; returns the process exit code."""
        logger.debug("Orchestrator starting, file=%s, server=%s:%d",
                     self._config.log_file, self._config.server_host, self._config.server_port)
        previous = self._install_signal_handlers()
        forced_exit = None
        try:
            self._start_thread(self.sink.run, "dispatch-sink")
            self._start_thread(self.tailer.run, "tailing-coordinator")
            self._start_thread(self._save_timer, "save-timer")

            event = self._wait()
            if event.reason is ShutdownReason.EXTERNAL_SIGNAL:
                forced_exit = threading.Timer(self._config.grace_period, self._force_exit)
                forced_exit.daemon = True
                forced_exit.start()

            logger.info("Shutting down (%s): %s", event.reason.value, event.detail)
            self._stop_timer.set()
            if not event.reason.from_source:
                # the coordinator may already be going down
                if not self.tailer.request_save(wait=self._config.grace_period / 2):
                    logger.warning("Final position save did not complete")
            self.tailer.stop()

            logger.info("Stats: %s", self.sink.metrics.snapshot())
            logger.debug("The End.")
            return 1 if event.reason.is_error else 0
        finally:
            if forced_exit is not None:
                forced_exit.cancel()
            self._restore_signal_handlers(previous)

    def _wait(self) -> ShutdownEvent:
        while True:
            event = self.shutdown.wait(timeout=1.0)
            if event is not None:
                return event

    def _start_thread(self, target, name: str):
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        return thread

    def _save_timer(self):
        while not self._stop_timer.wait(self._config.save_interval):
            self.tailer.request_save()

    def _force_exit(self):
        logger.critical("Shutdown was ignored, bailing out now.")
        self._exit_func(FORCED_EXIT_CODE)

    def _on_signal(self, signum, frame):
        self.shutdown.fire(ShutdownReason.EXTERNAL_SIGNAL, f"received signal {signal.Signals(signum).name}")

    def _install_signal_handlers(self) -> dict:
        if threading.current_thread() is not threading.main_thread():
            return {}
        return {sig: signal.signal(sig, self._on_signal) for sig in SHUTDOWN_SIGNALS}

    def _restore_signal_handlers(self, previous: dict):
        for sig, handler in previous.items():
            signal.signal(sig, handler)
