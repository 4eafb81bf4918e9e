"""Entry point for log2gelf.

A simple daemon that reads a file (tail -f style) and sends every line as
GELF/UDP. Intended for nginx access logs, so it repairs that format's
character escaping before parsing JSON lines.
"""

import logging
import sys

from log2gelf.config import PROGRAM, VERSION, load_config
from log2gelf.daemon import ShutdownOrchestrator


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )
    # watchdog is chatty at DEBUG
    logging.getLogger("watchdog").setLevel(logging.INFO)


def main(argv: list[str] | None = None) -> int:
    config = load_config(argv)
    setup_logging(config.verbose)
    logging.getLogger(__name__).debug("Start %s %s", PROGRAM, VERSION)
    return ShutdownOrchestrator(config).run()


if __name__ == "__main__":
    sys.exit(main())
