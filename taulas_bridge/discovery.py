from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .config import LinkConfig
from .errors import DiscoveryFailure, ProtocolParseFailure, TransportError
from .protocol import NAME_COMMAND, frame, parse_identity, read_frame
from .transport import Transport

logger = logging.getLogger(__name__)

MAX_INDEX = 128


@dataclass(frozen=True)
class DeviceCandidate:
    path_prefix: str
    index: int

    @property
    def path(self) -> str:
        return f"{self.path_prefix}{self.index}"


@dataclass(frozen=True)
class ResolvedDevice:
    path: str
    name: str


def candidates(pattern: str, max_index: int = MAX_INDEX) -> Iterator[DeviceCandidate]:
    for i in range(max_index):
        yield DeviceCandidate(pattern, i)


def query_name(transport: Transport, handle, link: LinkConfig,
               sleep: Callable[[float], None] = time.sleep) -> Optional[str]:
    """Ask an open device for its name; None when it does not answer properly."""
    request = frame(NAME_COMMAND)
    if transport.write(handle, request) != len(request):
        logger.error("Error sending name command")
        return None
    raw = read_frame(transport, handle, link.read_timeout_ms, sleep)
    transport.discard(handle)
    try:
        return parse_identity(raw)
    except ProtocolParseFailure as e:
        logger.debug("no valid identity reply: %s", e)
        return None


def discover(
    transport: Transport,
    pattern: str,
    link: LinkConfig,
    max_index: int = MAX_INDEX,
    sleep: Callable[[float], None] = time.sleep,
) -> ResolvedDevice:
    """Probe ``pattern0`` .. ``pattern{max_index-1}`` in order; the first device to identify itself wins."""
    for cand in candidates(pattern, max_index):
        try:
            handle = transport.open(cand.path, link.baud_rate)
        except TransportError:
            continue
        try:
            transport.flush(handle)
            name = query_name(transport, handle, link, sleep)
        except TransportError as e:
            logger.warning("probe of %s failed: %s", cand.path, e)
            name = None
        finally:
            transport.close(handle)

        if name is not None:
            logger.info("found device %r at %s", name, cand.path)
            return ResolvedDevice(path=cand.path, name=name)
        logger.debug("%s opened but did not identify itself", cand.path)

    raise DiscoveryFailure(f"no device answered on {pattern}0..{pattern}{max_index - 1}")
