from __future__ import annotations

import pytest

from fakes import PATTERN, FakeDevice, FakeTransport, TickClock
from taulas_bridge.config import LinkConfig
from taulas_bridge.discovery import DeviceCandidate, candidates, discover
from taulas_bridge.errors import DiscoveryFailure

LINK = LinkConfig(baud_rate=9600, read_timeout_ms=20)


def test_candidate_paths() -> None:
    assert DeviceCandidate("/dev/ttyACM", 3).path == "/dev/ttyACM3"
    paths = [c.path for c in candidates("/dev/ttyUSB", 3)]
    assert paths == ["/dev/ttyUSB0", "/dev/ttyUSB1", "/dev/ttyUSB2"]


@pytest.mark.parametrize("k", [0, 5, 127])
def test_resolves_first_answering_index_and_probes_nothing_beyond(k: int) -> None:
    t = FakeTransport()
    t.add(k, FakeDevice("kitchen"))

    found = discover(t, PATTERN, LINK, sleep=TickClock())

    assert found.path == f"{PATTERN}{k}"
    assert found.name == "kitchen"
    assert t.open_attempts == [f"{PATTERN}{i}" for i in range(k + 1)]


def test_lowest_index_wins() -> None:
    t = FakeTransport()
    t.add(4, FakeDevice("garage"))
    t.add(2, FakeDevice("kitchen"))

    found = discover(t, PATTERN, LINK, sleep=TickClock())

    assert found.path == f"{PATTERN}2"
    assert found.name == "kitchen"
    assert f"{PATTERN}4" not in t.open_attempts


def test_silent_device_is_rejected_and_scan_continues() -> None:
    t = FakeTransport()
    t.add(1, FakeDevice(None))
    t.add(3, FakeDevice("kitchen"))
    clock = TickClock()

    found = discover(t, PATTERN, LINK, sleep=clock)

    assert found.path == f"{PATTERN}3"
    assert clock.ticks == LINK.read_timeout_ms
    assert f"{PATTERN}1" in t.closed


def test_probe_handles_are_flushed_then_closed() -> None:
    t = FakeTransport()
    t.add(0, FakeDevice("kitchen"))

    discover(t, PATTERN, LINK, sleep=TickClock())

    assert t.flushed == [f"{PATTERN}0"]
    assert t.writes == [b"<NAME>"]
    assert t.closed == [f"{PATTERN}0"]
    assert all(not h.is_open for h in t.opened)


def test_nothing_answers() -> None:
    t = FakeTransport()
    t.add(7, FakeDevice(None))

    with pytest.raises(DiscoveryFailure):
        discover(t, PATTERN, LINK, sleep=TickClock())

    assert len(t.open_attempts) == 128
