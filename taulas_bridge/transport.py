"""Serial transport: raw 8N1, non-blocking pyserial handles."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Protocol

import serial

from .errors import TransportOpenFailure, TransportReadFailure

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def open(self, path: str, baud: int) -> Any:
        """Open ``path`` in raw 8N1 mode, raising TransportOpenFailure."""

    def write(self, handle: Any, data: bytes) -> int:
        """Write ``data`` and return the number of bytes transferred."""

    def read_byte(self, handle: Any) -> Optional[bytes]:
        """Return one pending byte, or None if nothing is pending."""

    def flush(self, handle: Any) -> None:
        """Drop stale bytes after the device has settled."""

    def discard(self, handle: Any) -> None:
        """Drop whatever is buffered, without waiting."""

    def close(self, handle: Any) -> None:
        ...


class SerialTransport:
    """pyserial-backed transport.

    ``timeout=0`` makes reads return immediately, so the caller owns the
    polling budget. Boards that reset on open (Arduino style) need
    ``settle_s`` before buffered bytes can be reliably flushed.
    """

    def __init__(self, settle_s: float = 2.0) -> None:
        self.settle_s = float(settle_s)

    def open(self, path: str, baud: int) -> serial.Serial:
        try:
            return serial.Serial(
                path,
                baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                timeout=0,
                write_timeout=0,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise TransportOpenFailure(f"cannot open {path} at {baud} baud: {e}") from e

    def write(self, handle: serial.Serial, data: bytes) -> int:
        try:
            n = handle.write(data)
            handle.flush()
        except (serial.SerialException, OSError) as e:
            logger.error("serial write on %s failed: %s", handle.port, e)
            return 0
        return int(n or 0)

    def read_byte(self, handle: serial.Serial) -> Optional[bytes]:
        try:
            b = handle.read(1)
        except (serial.SerialException, OSError) as e:
            raise TransportReadFailure(f"serial read on {handle.port} failed: {e}") from e
        return b or None

    def flush(self, handle: serial.Serial) -> None:
        if self.settle_s > 0:
            time.sleep(self.settle_s)
        self.discard(handle)

    def discard(self, handle: serial.Serial) -> None:
        try:
            handle.reset_input_buffer()
            handle.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            logger.warning("could not reset buffers on %s: %s", handle.port, e)

    def close(self, handle: serial.Serial) -> None:
        try:
            handle.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("error closing %s: %s", handle.port, e)
