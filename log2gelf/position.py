"""Position store — persists the file offset so tailing can resume after restart.

The record is a single text line, ``Offset <int> Time <int> Inode <uint>``,
written atomically (tmp file + os.replace). It is only honored when the stored
inode matches the file being followed.
"""

import logging
import os
import tempfile
import time

from log2gelf.models import PositionRecord

logger = logging.getLogger(__name__)


def read_inode(path: str) -> int:
    """Return the inode of *path*, or 0 if it cannot be stat'ed."""
    try:
        return os.stat(path).st_ino
    except OSError:
        return 0


def load_position(path: str, current_inode: int) -> int:
    """Return the saved offset for the file with *current_inode*, else 0."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError:
        return 0
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Ignoring state file %s, cannot read it: %s", path, e)
        return 0

    record = PositionRecord.parse(text)
    if record is None or record.offset < 0:
        logger.warning("Ignoring state file %s, cannot parse data: %r", path, text[:100])
        return 0

    if record.inode != current_inode:
        logger.info("Not resuming, file changed inode from %d to %d", record.inode, current_inode)
        return 0

    logger.info("Resuming tail (inode %d) at offset %d", record.inode, record.offset)
    return record.offset


def save_position(path: str, inode: int, offset: int) -> bool:
    """Write the record; returns False (and logs) if the write failed."""
    record = PositionRecord(offset=offset, captured_at=int(time.time()), inode=inode)
    directory = os.path.dirname(path) or "."
    try:
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".state-")
    except OSError as e:
        logger.warning("Cannot write state file %s: %s", path, e)
        return False
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(record.format())
        os.chmod(tmp, 0o664)
        os.replace(tmp, path)
    except OSError as e:
        if os.path.exists(tmp):
            os.unlink(tmp)
        logger.warning("Cannot write state file %s: %s", path, e)
        return False
    return True
