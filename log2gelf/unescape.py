"""Escape repair — makes nginx/Apache access-log lines safe to parse as JSON.

Nginx escapes non-ASCII bytes, control characters, ``"`` and ``\\`` in its
access logs as ``\\xHH``, which is not valid JSON. Valid UTF-8 bytes are
decoded back to their native form; control characters, quotes and backslashes
keep their textual ``\\xHH`` form with the backslash doubled.

Apache escapes ``"`` as ``\\"`` in some fields, but occasionally emits
``\\\\"`` for an escaped backslash followed by a quote. That quote gets an
extra backslash so the string does not end early.

A sane log template is assumed: the last three bytes of a line are copied
unchanged, so escapes there are not repaired.
"""

BACKSLASH = ord("\\")
QUOTE = ord('"')
HEX_MARKER = ord("x")

_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
# \x0_, \x1_ (control chars), \x22 (") and \x5C (\) keep their escaped form.
_KEEP_ESCAPED = (b"22", b"5C")


def _decode_hex(pair: bytes) -> int | None:
    if len(pair) != 2 or not all(b in _HEX_DIGITS for b in pair):
        return None
    return int(pair, 16)


def unescape(line: bytes) -> bytes:
    """Return a repaired copy of *line*; the output length may differ."""
    out = bytearray()
    end = len(line) - 3
    i = 0
    while i < end:
        c = line[i]
        if c == QUOTE:
            if out and out[-1] == BACKSLASH:
                # keep the escaped look, but make it \\"
                out.append(BACKSLASH)
            out.append(c)
            i += 1
        elif c == BACKSLASH:
            nxt = line[i + 1]
            if nxt == BACKSLASH or nxt == QUOTE:
                out += line[i:i + 2]
                i += 2
            elif nxt == HEX_MARKER:
                pair = line[i + 2:i + 4]
                if pair[0] in b"01" or pair in _KEEP_ESCAPED:
                    out += b"\\\\"
                    i += 1
                    continue
                value = _decode_hex(pair)
                if value is None:
                    out += b"\\\\"
                    i += 1
                else:
                    out.append(value)
                    i += 4
            else:
                # lone backslash
                out += b"\\\\"
                i += 1
        else:
            out.append(c)
            i += 1
    out += line[i:]
    return bytes(out)
