"""Dispatch sink — builds envelopes from queued lines and ships them in order."""

import logging
import queue

from log2gelf.envelope import ParseError, build_message
from log2gelf.gelf import TransportError
from log2gelf.metrics import Metrics
from log2gelf.models import ShutdownReason
from log2gelf.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)


class DispatchSink:
    """Single consumer of the line queue.

    Unparseable lines are dropped. A failed send is reported as a shutdown
    reason, but consuming goes on until the process ends. A ``None`` item
    stops the loop.
    """

    def __init__(self, lines: queue.Queue, transport, shutdown: ShutdownSignal,
                 metrics: Metrics | None = None):
        self._lines = lines
        self._transport = transport
        self._shutdown = shutdown
        self.metrics = metrics or Metrics()

    def run(self):
        try:
            self._transport.open()
        except TransportError as e:
            self._shutdown.fire(ShutdownReason.SINK_ERROR, str(e))
            return

        try:
            while True:
                line = self._lines.get()
                try:
                    if line is None:
                        return
                    self._dispatch(line)
                finally:
                    self._lines.task_done()
        finally:
            self._transport.close()

    def _dispatch(self, line: bytes):
        try:
            envelope = build_message(line)
        except ParseError as e:
            self.metrics.increment("dropped")
            logger.debug("Rejected msg %r: %s", line[:200], e)
            return

        try:
            self._transport.send(envelope)
        except TransportError as e:
            self.metrics.increment("failed")
            self._shutdown.fire(ShutdownReason.SINK_ERROR, str(e))
            return

        self.metrics.increment("sent")
        logger.debug("Sent msg: %f %s", envelope.timestamp, envelope.short_message)
