#!/usr/bin/env python3
"""
Taulas bridge entrypoint.

Example
  taulas-bridge --serial-pattern /dev/ttyACM --baud 9600 --port 8585 --log-level DEBUG
"""
from __future__ import annotations

import logging
import logging.handlers
import os
from typing import Optional, Sequence

import uvicorn

from .alerts import AlertMonitor
from .config import BridgeConfig, load_config
from .device_manager import DeviceManager
from .errors import DiscoveryFailure, TransportOpenFailure
from .server import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
SYSLOG_ADDRESS = "/dev/log"


def configure_logging(cfg: BridgeConfig) -> logging.Logger:
    """Install handlers for each configured log mode on the package logger."""
    root = logging.getLogger("taulas_bridge")
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.propagate = False

    if cfg.log_level == "NONE":
        root.setLevel(logging.CRITICAL + 1)
        root.addHandler(logging.NullHandler())
        return root
    root.setLevel(getattr(logging, cfg.log_level))

    for mode in cfg.log_modes:
        if mode == "console":
            handler: logging.Handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
        elif mode == "syslog":
            address = SYSLOG_ADDRESS if os.path.exists(SYSLOG_ADDRESS) else ("localhost", 514)
            handler = logging.handlers.SysLogHandler(address=address)
            # syslog stamps its own time
            handler.setFormatter(logging.Formatter("taulas-bridge: %(levelname)s %(name)s: %(message)s"))
        else:
            handler = logging.FileHandler(cfg.log_file)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return root


def main(argv: Optional[Sequence[str]] = None) -> int:
    cfg = load_config(argv)
    configure_logging(cfg)
    logger.info("Starting Taulas bridge")

    mgr = DeviceManager(cfg.serial_pattern, cfg.link)
    try:
        mgr.discover()
        mgr.connect()
    except (DiscoveryFailure, TransportOpenFailure) as e:
        logger.error("Can not connect device, abort: %s", e)
        return 1

    monitor = AlertMonitor(mgr)
    app = create_app(cfg.prefix, mgr, monitor)
    logger.info("Program running on port %d", cfg.port)
    uvicorn.run(app, host="0.0.0.0", port=cfg.port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
