"""Data model — envelopes, position records and shutdown events."""

import re
from dataclasses import dataclass, field
from enum import Enum

GELF_VERSION = "1.1"
UNKNOWN_HOST = "unknown"
DEFAULT_LEVEL = 6  # info

_RECORD_RE = re.compile(r"Offset (-?\d+) Time (-?\d+) Inode (\d+)\s*")


@dataclass
class Envelope:
    """A GELF message ready for the transport."""

    short_message: str
    host: str = UNKNOWN_HOST
    version: str = GELF_VERSION
    timestamp: float = 0.0
    level: int = DEFAULT_LEVEL
    extra: dict = field(default_factory=dict)

    def to_gelf(self) -> dict:
        """Return the GELF wire dict; additional fields get a ``_`` prefix."""
        doc = {
            "version": self.version,
            "host": self.host,
            "short_message": self.short_message,
            "level": self.level,
        }
        if self.timestamp:
            doc["timestamp"] = self.timestamp
        for key, value in self.extra.items():
            name = key if key.startswith("_") else "_" + key
            doc[name] = value
        return doc


@dataclass(frozen=True)
class PositionRecord:
    offset: int
    captured_at: int
    inode: int

    def format(self) -> str:
        return f"Offset {self.offset} Time {self.captured_at} Inode {self.inode}\n"

    @classmethod
    def parse(cls, text: str) -> "PositionRecord | None":
        """Parse the one-line record; anything else yields None."""
        m = _RECORD_RE.fullmatch(text)
        if m is None:
            return None
        return cls(offset=int(m.group(1)), captured_at=int(m.group(2)), inode=int(m.group(3)))


class ShutdownReason(Enum):
    EXTERNAL_SIGNAL = "external-signal"
    SOURCE_EXHAUSTED = "source-exhausted"
    SOURCE_ERROR = "source-error"
    SINK_ERROR = "sink-error"

    @property
    def from_source(self) -> bool:
        return self in (ShutdownReason.SOURCE_EXHAUSTED, ShutdownReason.SOURCE_ERROR)

    @property
    def is_error(self) -> bool:
        return self in (ShutdownReason.SOURCE_ERROR, ShutdownReason.SINK_ERROR)


@dataclass(frozen=True)
class ShutdownEvent:
    reason: ShutdownReason
    detail: str = ""
