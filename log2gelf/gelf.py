"""GELF/UDP writer — serializes envelopes and sends them to a Graylog collector.

Frame format for payloads larger than one datagram (GELF chunking):
[0x1e 0x0f][8-byte message id][1-byte sequence number][1-byte sequence count][data]
"""

import gzip
import json
import logging
import os
import socket
import struct
import zlib

from log2gelf.models import Envelope

logger = logging.getLogger(__name__)

CHUNK_MAGIC = b"\x1e\x0f"
CHUNK_HEADER_LEN = 12
MAX_CHUNKS = 128


class TransportError(OSError):
    """Raised when a message cannot be handed to the network."""


def encode(envelope: Envelope) -> bytes:
    return json.dumps(envelope.to_gelf(), separators=(",", ":")).encode("utf-8")


def compress(data: bytes, algorithm: str = "gzip") -> bytes:
    if algorithm == "gzip":
        return gzip.compress(data)
    if algorithm == "zlib":
        return zlib.compress(data)
    if algorithm == "none":
        return data
    raise ValueError(f"Unsupported compression: {algorithm}")


def split_chunks(payload: bytes, chunk_size: int) -> list[bytes]:
    """Split *payload* into GELF chunks of at most *chunk_size* bytes each."""
    if len(payload) <= chunk_size:
        return [payload]
    data_len = chunk_size - CHUNK_HEADER_LEN
    count = -(-len(payload) // data_len)
    if count > MAX_CHUNKS:
        raise TransportError(f"message too large: {len(payload)} bytes needs {count} chunks")
    message_id = os.urandom(8)
    return [
        CHUNK_MAGIC + message_id + struct.pack("!BB", seq, count)
        + payload[seq * data_len:(seq + 1) * data_len]
        for seq in range(count)
    ]


class GelfUdpWriter:
    def __init__(self, host: str, port: int, compression: str = "gzip", chunk_size: int = 1420):
        if chunk_size <= CHUNK_HEADER_LEN:
            raise ValueError(f"chunk_size must exceed {CHUNK_HEADER_LEN}")
        self._host = host
        self._port = port
        self._compression = compression
        self._chunk_size = chunk_size
        self._sock = None

    @property
    def address(self) -> tuple[str, int]:
        return self._host, self._port

    def open(self):
        """Resolve the collector address and connect the UDP socket."""
        try:
            family, kind, proto, _, addr = socket.getaddrinfo(
                self._host, self._port, type=socket.SOCK_DGRAM,
            )[0]
            sock = socket.socket(family, kind, proto)
            sock.connect(addr)
        except OSError as e:
            raise TransportError(f"cannot create gelf writer for {self._host}:{self._port}: {e}") from e
        self._sock = sock
        logger.debug("GELF writer connected to %s:%d", self._host, self._port)

    def send(self, envelope: Envelope):
        if self._sock is None:
            raise TransportError("gelf writer is not open")
        payload = compress(encode(envelope), self._compression)
        try:
            for chunk in split_chunks(payload, self._chunk_size):
                self._sock.send(chunk)
        except TransportError:
            raise
        except OSError as e:
            raise TransportError(f"cannot send gelf msg: {e}") from e

    def close(self):
        if self._sock:
            self._sock.close()
            self._sock = None
