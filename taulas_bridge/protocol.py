"""Framed text protocol spoken by the device.

Host -> Device
  ``<`` + command + ``>``
      ``command`` is a name optionally followed by ``/``-separated
      arguments, e.g. ``relay/1``. ``NAME`` asks the device to identify itself.

Device -> Host
  ``<`` + name + separator + json + ``>``
      The device echoes the command name (without arguments) and one
      separator character before its JSON answer, e.g.
      ``<NAME:{"value":"kitchen"}>``.

  ``<{"alert":"<value>"}>``
      Unsolicited alert, emitted outside of any command exchange.

Only one exchange is in flight at a time, so replies carry no request id.
The device is assumed never to emit an alert while a command reply is
outstanding; an alert arriving in that window would be read as the reply.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import ProtocolParseFailure
from .transport import Transport

PREFIX = "<"
SUFFIX = ">"
ALERT_MARKER = '{"alert":'
NAME_COMMAND = "NAME"

MAX_FRAME_BYTES = 1024
TICK_S = 0.001

_SUFFIX_BYTE = SUFFIX.encode("ascii")


@dataclass(frozen=True)
class AlertMessage:
    alert: str


def frame(body: str) -> bytes:
    return (PREFIX + body + SUFFIX).encode("ascii")


def read_frame(
    transport: Transport,
    handle: Any,
    timeout_ticks: int,
    sleep: Callable[[float], None],
    max_bytes: int = MAX_FRAME_BYTES,
) -> str:
    """Poll one byte at a time until SUFFIX, ``max_bytes`` or ``timeout_ticks`` empty polls.

    Each empty poll costs one tick of ``TICK_S``. Returns whatever was
    collected, which is empty or partial when the budget ran out.
    """
    buf = bytearray()
    ticks = int(timeout_ticks)
    while ticks > 0 and len(buf) < max_bytes:
        b = transport.read_byte(handle)
        if not b:
            sleep(TICK_S)
            ticks -= 1
            continue
        buf += b
        if b == _SUFFIX_BYTE:
            break
    return buf.decode("ascii", errors="replace")


def reply_offset(command: str) -> int:
    """Index into the raw reply where the JSON answer starts.

    The echoed segment is the command up to its first ``/``; the 2 covers
    the frame prefix and the separator after the echo.
    """
    return len(command.split("/", 1)[0]) + 2


def strip_terminator(raw: str) -> str:
    return raw[:-1] if raw.endswith(SUFFIX) else raw


def parse_reply(command: str, raw: str) -> Any:
    payload = strip_terminator(raw)
    body = payload[reply_offset(command):]
    try:
        return json.loads(body)
    except (ValueError, RecursionError) as e:
        raise ProtocolParseFailure(f"invalid reply to {command!r}: {body!r}", payload=payload) from e


def parse_identity(raw: str) -> str:
    reply = parse_reply(NAME_COMMAND, raw)
    if not isinstance(reply, dict) or not isinstance(reply.get("value"), str):
        raise ProtocolParseFailure(f"identity reply has no string 'value': {raw!r}", payload=raw)
    return reply["value"]


def is_alert(raw: str) -> bool:
    return raw.startswith(PREFIX + ALERT_MARKER)


def parse_alert(raw: str) -> Optional[AlertMessage]:
    """Return the alert carried by ``raw``; None when ``raw`` is not an alert frame."""
    if not is_alert(raw):
        return None
    text = strip_terminator(raw)[len(PREFIX):]
    try:
        obj = json.loads(text)
    except (ValueError, RecursionError) as e:
        raise ProtocolParseFailure(f"invalid alert frame: {raw!r}", payload=raw) from e
    if not isinstance(obj, dict) or not isinstance(obj.get("alert"), str):
        raise ProtocolParseFailure(f"alert frame has no string 'alert': {raw!r}", payload=raw)
    return AlertMessage(alert=obj["alert"])
