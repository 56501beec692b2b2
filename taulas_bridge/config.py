"""Startup configuration.

Settings are resolved in three layers: built-in defaults, then environment
variables (``PORT``, ``URL_PREFIX``, ``SERIAL_PATTERN``, ``SERIAL_BAUD``,
``SERIAL_TIMEOUT``, ``LOG_LEVEL``, ``LOG_MODE``, ``LOG_FILE``), then command
line flags.
"""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Tuple

from .errors import ConfigError

PORT_DEFAULT = 8585
PREFIX_DEFAULT = "taulas"
SERIAL_PATTERN_DEFAULT = "/dev/ttyACM"
SERIAL_BAUD_DEFAULT = 9600
SERIAL_TIMEOUT_DEFAULT = 3000

SUPPORTED_BAUD_RATES = (4800, 9600, 14400, 19200, 28800, 38400, 57600, 115200)
LOG_LEVELS = ("NONE", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_MODES = ("console", "syslog", "file")


@dataclass(frozen=True)
class LinkConfig:
    baud_rate: int = SERIAL_BAUD_DEFAULT
    read_timeout_ms: int = SERIAL_TIMEOUT_DEFAULT

    def __post_init__(self) -> None:
        if self.baud_rate not in SUPPORTED_BAUD_RATES:
            raise ConfigError(
                f"invalid baud rate {self.baud_rate}, expected one of {', '.join(map(str, SUPPORTED_BAUD_RATES))}"
            )
        if self.read_timeout_ms <= 0:
            raise ConfigError(f"read timeout must be a positive number of ms, got {self.read_timeout_ms}")


@dataclass(frozen=True)
class BridgeConfig:
    port: int = PORT_DEFAULT
    prefix: str = PREFIX_DEFAULT
    serial_pattern: str = SERIAL_PATTERN_DEFAULT
    link: LinkConfig = field(default_factory=LinkConfig)
    log_level: str = "INFO"
    log_modes: Tuple[str, ...] = ("console",)
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0 < self.port <= 65535:
            raise ConfigError(f"invalid TCP port {self.port}, expected 1-65535")
        if not self.prefix.strip("/"):
            raise ConfigError("URL prefix must not be empty")
        if not self.serial_pattern:
            raise ConfigError("serial pattern must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"invalid log level {self.log_level!r}, expected one of {', '.join(LOG_LEVELS)}")
        unknown = [m for m in self.log_modes if m not in LOG_MODES]
        if unknown:
            raise ConfigError(f"invalid log mode(s) {', '.join(unknown)}, expected console, syslog or file")
        if "file" in self.log_modes and not self.log_file:
            raise ConfigError("log mode 'file' requires --log-file")


def _int(value: str, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _modes(value: str) -> Tuple[str, ...]:
    return tuple(m.strip().lower() for m in value.split(",") if m.strip())


def build_parser(environ: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    env = os.environ if environ is None else environ
    ap = argparse.ArgumentParser(
        prog="taulas-bridge",
        description="HTTP interface to a serial device speaking the framed <command> protocol",
    )
    ap.add_argument("-p", "--port", default=env.get("PORT", str(PORT_DEFAULT)),
                    help=f"TCP port to listen to, default {PORT_DEFAULT}")
    ap.add_argument("-u", "--url-prefix", default=env.get("URL_PREFIX", PREFIX_DEFAULT),
                    help=f"url prefix for the webservice, default '{PREFIX_DEFAULT}'")
    ap.add_argument("-s", "--serial-pattern", default=env.get("SERIAL_PATTERN", SERIAL_PATTERN_DEFAULT),
                    help=f"path prefix of the serial device files, default '{SERIAL_PATTERN_DEFAULT}'")
    ap.add_argument("-b", "--baud", default=env.get("SERIAL_BAUD", str(SERIAL_BAUD_DEFAULT)),
                    help=f"baud rate of the device, default {SERIAL_BAUD_DEFAULT}")
    ap.add_argument("-t", "--timeout", default=env.get("SERIAL_TIMEOUT", str(SERIAL_TIMEOUT_DEFAULT)),
                    help=f"timeout in milliseconds for serial reads, default {SERIAL_TIMEOUT_DEFAULT}")
    ap.add_argument("-l", "--log-level", default=env.get("LOG_LEVEL", "INFO"),
                    help="NONE, ERROR, WARNING, INFO or DEBUG, default 'INFO'")
    ap.add_argument("-m", "--log-mode", default=env.get("LOG_MODE", "console"),
                    help="console, syslog or file, comma separated, default 'console'")
    ap.add_argument("-f", "--log-file", default=env.get("LOG_FILE"),
                    help="path to log file if log mode is file")
    return ap


def config_from_namespace(args: argparse.Namespace) -> BridgeConfig:
    link = LinkConfig(
        baud_rate=_int(args.baud, "baud"),
        read_timeout_ms=_int(args.timeout, "timeout"),
    )
    return BridgeConfig(
        port=_int(args.port, "port"),
        prefix=args.url_prefix.strip("/"),
        serial_pattern=args.serial_pattern,
        link=link,
        log_level=args.log_level.upper(),
        log_modes=_modes(args.log_mode),
        log_file=args.log_file,
    )


def load_config(argv: Optional[Sequence[str]] = None,
                environ: Optional[Mapping[str, str]] = None) -> BridgeConfig:
    """Parse argv over environment defaults; exits with status 2 on invalid settings."""
    ap = build_parser(environ)
    args = ap.parse_args(argv)
    try:
        return config_from_namespace(args)
    except ConfigError as e:
        ap.error(str(e))
