"""Configuration — frozen dataclass built from defaults, YAML, env vars and CLI args."""

import argparse
import logging
import os
import sys
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)

PROGRAM = "log2gelf"
VERSION = "0.1"

COMPRESSIONS = ("gzip", "zlib", "none")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    log_file: str = "/var/log/syslog"
    server_host: str = "localhost"
    server_port: int = 12201
    verbose: bool = False
    no_follow: bool = False
    state_file: str = ""
    save_interval: float = 2.0
    poll_interval: float = 0.25
    queue_size: int = 1000
    grace_period: float = 2.0
    compression: str = "gzip"
    chunk_size: int = 1420

    @property
    def follow(self) -> bool:
        """Wait for new data and resume from saved state (off with -n)."""
        return not self.no_follow

    @property
    def state_path(self) -> str:
        return self.state_file or self.log_file + ".state"


_ENV_VARS = {
    "log_file": "LOG_FILE",
    "server_host": "GELF_SERVER",
    "server_port": "GELF_PORT",
    "verbose": "VERBOSE",
    "no_follow": "NO_FOLLOW",
    "state_file": "STATE_FILE",
    "save_interval": "SAVE_INTERVAL",
    "queue_size": "QUEUE_SIZE",
    "compression": "GELF_COMPRESSION",
}

_CONVERTERS = {bool: _parse_bool, int: int, float: float, str: str}


def _field_types() -> dict:
    # annotations are real types here (no __future__ import)
    return {f.name: f.type for f in fields(Config)}


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns an empty dict if no path."""
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    logger.info("Loaded YAML config from %s", path)
    return data


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Follow a log file and ship every line as GELF over UDP",
    )
    parser.add_argument("--file", dest="log_file", default=None, help="filename to watch")
    parser.add_argument("--server", dest="server_host", default=None, help="Graylog2 server")
    parser.add_argument("--port", dest="server_port", type=int, default=None,
                        help="Graylog2 GELF/UDP port")
    parser.add_argument("-v", "--verbose", action="store_true", default=None,
                        help="Verbose output")
    parser.add_argument("-n", "--no-follow", dest="no_follow", action="store_true", default=None,
                        help="Quit after file is read, do not wait for more data, "
                             "do not read/write state")
    parser.add_argument("--state-file", dest="state_file", default=None,
                        help="position state file (default: <file>.state)")
    parser.add_argument("--compression", choices=COMPRESSIONS, default=None)
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--version", action="version", version=f"{PROGRAM} {VERSION}")
    return parser


def load_config(argv: list[str] | None = None) -> Config:
    """Build Config from defaults <- YAML file <- env vars <- CLI args (highest)."""
    if argv is None:
        argv = sys.argv[1:]
    args = build_cli_parser().parse_args(argv)
    types = _field_types()

    kwargs: dict = {}
    for key, value in load_yaml_config(args.config).items():
        key = str(key).replace("-", "_")
        if key not in types:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        kwargs[key] = _CONVERTERS[types[key]](value)

    for key, var in _ENV_VARS.items():
        if var in os.environ:
            kwargs[key] = _CONVERTERS[types[key]](os.environ[var])

    for key in types:
        value = getattr(args, key, None)
        if value is not None:
            kwargs[key] = value

    config = Config(**kwargs)
    if config.compression not in COMPRESSIONS:
        raise ValueError(f"unsupported compression: {config.compression}")
    return config
