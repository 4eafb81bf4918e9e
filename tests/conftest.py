"""Shared fixtures: a recording transport and config helpers."""

import pytest

from log2gelf.config import Config
from log2gelf.gelf import TransportError


class RecordingTransport:
    """Stands in for the GELF writer; fails the sends listed in *fail_on* (1-based)."""

    def __init__(self, fail_on=(), fail_open=False):
        self.sent = []
        self.attempts = 0
        self.opened = False
        self.closed = False
        self._fail_on = set(fail_on)
        self._fail_open = fail_open

    def open(self):
        if self._fail_open:
            raise TransportError("cannot create gelf writer: refused")
        self.opened = True

    def send(self, envelope):
        self.attempts += 1
        if self.attempts in self._fail_on:
            raise TransportError("cannot send gelf msg: refused")
        self.sent.append(envelope)

    def close(self):
        self.closed = True


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> Config:
        defaults = {
            "log_file": str(tmp_path / "app.log"),
            "server_host": "127.0.0.1",
            "save_interval": 0.1,
            "poll_interval": 0.05,
            "queue_size": 10,
        }
        defaults.update(overrides)
        return Config(**defaults)
    return _make
