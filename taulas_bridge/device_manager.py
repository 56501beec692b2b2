from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import LinkConfig
from .discovery import MAX_INDEX, ResolvedDevice, discover
from .errors import (
    DiscoveryFailure,
    ProtocolParseFailure,
    TransportError,
    TransportOpenFailure,
    TransportWriteFailure,
)
from .protocol import frame, parse_reply, read_frame
from .transport import SerialTransport, Transport

logger = logging.getLogger(__name__)


@dataclass
class Link:
    path: str
    handle: Any = None
    device_name: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.handle is not None


class DeviceManager:
    """Owns the single Link to the device and serializes every exchange on it.

    All reads and writes happen under ``lock``; a command round-trip and an
    alert poll each hold it from first byte to last.
    """

    def __init__(
        self,
        serial_pattern: str,
        link_config: Optional[LinkConfig] = None,
        transport: Optional[Transport] = None,
        max_index: int = MAX_INDEX,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.serial_pattern = serial_pattern
        self.link_config = link_config or LinkConfig()
        self.transport = transport or SerialTransport()
        self.max_index = int(max_index)
        self._sleep = sleep

        self._link: Optional[Link] = None
        # Re-entrant: send_command() reconnects while already holding it.
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def link(self) -> Optional[Link]:
        return self._link

    @property
    def device_name(self) -> Optional[str]:
        return self._link.device_name if self._link else None

    def discover(self) -> ResolvedDevice:
        with self._lock:
            if self._link is not None:
                self._close_handle(self._link)
            found = discover(self.transport, self.serial_pattern, self.link_config,
                             max_index=self.max_index, sleep=self._sleep)
            self._link = Link(path=found.path, device_name=found.name)
            return found

    def connect(self) -> Link:
        with self._lock:
            if self._link is None:
                raise TransportOpenFailure("no device resolved, run discovery first")
            link = self._link
            if link.is_open:
                self._close_handle(link)
            try:
                handle = self.transport.open(link.path, self.link_config.baud_rate)
            except TransportOpenFailure:
                logger.error("Error, serial not connected on %s", link.path)
                raise
            self.transport.flush(handle)
            link.handle = handle
            logger.info("connected to %r on %s", link.device_name, link.path)
            return link

    def reconnect_after_failure(self) -> bool:
        """Drop the stale handle and rediscover from scratch; one attempt, no retry."""
        with self._lock:
            if self._link is not None:
                self._close_handle(self._link)
            try:
                self.discover()
                self.connect()
            except (DiscoveryFailure, TransportError) as e:
                logger.error("reconnect failed: %s", e)
                return False
            logger.info("Reconnect device successful")
            return True

    def close(self) -> None:
        with self._lock:
            if self._link is not None:
                self._close_handle(self._link)

    def _close_handle(self, link: Link) -> None:
        if link.handle is not None:
            handle, link.handle = link.handle, None
            self.transport.close(handle)

    def read_pending(self) -> str:
        """Drain one frame the device sent on its own; empty when nothing arrived in time."""
        with self._lock:
            link = self._link
            if link is None or not link.is_open:
                return ""
            return self._read_frame_nolock(link)

    def _read_frame_nolock(self, link: Link) -> str:
        try:
            return read_frame(self.transport, link.handle, self.link_config.read_timeout_ms, self._sleep)
        finally:
            self.transport.discard(link.handle)

    def send_command(self, command: str) -> Any:
        """Write ``<command>`` and return the parsed JSON reply.

        Raises TransportWriteFailure after one reconnect attempt if the
        frame could not be written, TransportReadFailure if the device
        errored mid-read and ProtocolParseFailure for a missing or
        malformed reply.
        """
        request = frame(command)
        with self._lock:
            link = self._link
            written = 0
            if link is not None and link.is_open:
                written = self.transport.write(link.handle, request)
            if written != len(request):
                logger.error("Error sending command %r (%d/%d bytes)", command, written, len(request))
                reconnected = self.reconnect_after_failure()
                raise TransportWriteFailure(
                    f"could not write {command!r} to the device"
                    + (", link re-established" if reconnected else ", device unavailable")
                )

            raw = self._read_frame_nolock(link)
            logger.debug("reply to %r: %r", command, raw)
            try:
                return parse_reply(command, raw)
            except ProtocolParseFailure as e:
                logger.error("Error parsing buffer %r", e.payload)
                raise
