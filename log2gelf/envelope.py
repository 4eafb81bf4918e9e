"""Envelope builder — turns a raw log line into a GELF envelope.

Lines that look like a JSON object (possibly already GELF) are decoded and
normalized; everything else is shipped as plain text.
"""

import json
import logging
import math
import re

from log2gelf.models import DEFAULT_LEVEL, GELF_VERSION, UNKNOWN_HOST, Envelope
from log2gelf.unescape import unescape

logger = logging.getLogger(__name__)

JSON_UNKNOWN_HOST = "unknown_amqp"

# Field names the collector reserves for itself (Graylog message internals).
RESERVED_FIELDS = frozenset({"_id", "_ttl", "_source", "_all", "_index", "_type", "_score"})

SYSLOG_LEVELS = {
    "emerg": 0,
    "alert": 1,
    "crit": 2,
    "critical": 2,
    "error": 3,
    "warn": 4,
    "warning": 4,
    "notice": 5,
    "info": 6,
    "debug": 7,
}

_PULLED_FIELDS = ("host", "short_message", "timestamp", "level", "version")

# Plain decimal notation only: no padding, digit separators or hex.
_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class ParseError(ValueError):
    """Raised when a line that looks like JSON is not a JSON object."""


def as_string(value) -> str | None:
    return value if isinstance(value, str) else None


def as_number(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def is_json_object(line: bytes) -> bool:
    stripped = line.strip()
    return stripped[:1] == b"{" and stripped[-1:] == b"}"


def rename_reserved(fields: dict) -> dict:
    """Rename reserved keys in place, with and without the leading ``_``.

    No check is made whether the ``renamed...`` key already exists; an
    existing value under that name is overwritten.
    """
    for key in list(fields):
        if key in RESERVED_FIELDS:
            fields["renamed" + key] = fields.pop(key)
        elif "_" + key in RESERVED_FIELDS:
            fields["renamed_" + key] = fields.pop(key)
    return fields


def _timestamp(value) -> float:
    number = as_number(value)
    if number is None:
        number = as_string(value)
        if number is None or not _DECIMAL.fullmatch(number):
            return 0.0
    try:
        number = float(number)
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _level(value) -> int:
    text = as_string(value)
    if text is not None:
        return SYSLOG_LEVELS.get(text, DEFAULT_LEVEL)
    number = as_number(value)
    if number is None or not 0 <= number <= 7 or number != int(number):
        return DEFAULT_LEVEL
    return int(number)


def _string(value, default: str) -> str:
    text = as_string(value)
    return default if text is None else text


def _reject_constant(name: str):
    raise ParseError(f"invalid JSON value {name}")


def _finite_float(text: str) -> float:
    number = float(text)
    if not math.isfinite(number):
        raise ParseError(f"number out of range: {text}")
    return number


def build_from_json(data: bytes) -> Envelope:
    try:
        fields = json.loads(data, parse_constant=_reject_constant, parse_float=_finite_float)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"cannot parse JSON: {exc}") from exc
    if not isinstance(fields, dict):
        raise ParseError(f"expected a JSON object, got {type(fields).__name__}")

    rename_reserved(fields)
    pulled = {name: fields.pop(name) for name in _PULLED_FIELDS if name in fields}

    return Envelope(
        version=_string(pulled.get("version"), GELF_VERSION),
        host=_string(pulled.get("host"), JSON_UNKNOWN_HOST),
        short_message=_string(pulled.get("short_message"), ""),
        timestamp=_timestamp(pulled.get("timestamp")),
        level=_level(pulled.get("level")),
        extra=fields,
    )


def build_from_text(data: bytes) -> Envelope:
    return Envelope(
        version=GELF_VERSION,
        host=UNKNOWN_HOST,
        short_message=data.strip().decode("utf-8", errors="replace"),
        timestamp=0.0,
        level=DEFAULT_LEVEL,
    )


def build_message(raw: bytes) -> Envelope:
    """Repair escaping, classify, and build the envelope for one line.

    Raises ParseError for lines that look like JSON but do not decode.
    """
    line = unescape(raw).strip()
    if is_json_object(line):
        logger.debug("build_from_json(%r)", line)
        return build_from_json(line)
    logger.debug("build_from_text(%r)", line)
    return build_from_text(line)
