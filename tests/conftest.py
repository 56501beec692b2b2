from __future__ import annotations

import pytest

from fakes import PATTERN, FakeDevice, FakeTransport, TickClock
from taulas_bridge.config import LinkConfig
from taulas_bridge.device_manager import DeviceManager


@pytest.fixture
def link_config() -> LinkConfig:
    return LinkConfig(baud_rate=9600, read_timeout_ms=50)


@pytest.fixture
def clock() -> TickClock:
    return TickClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def device(transport: FakeTransport) -> FakeDevice:
    return transport.add(0, FakeDevice("kitchen", replies={"relay/1": '{"value":1}', "temp": '{"value":21.5}'}))


@pytest.fixture
def mgr(transport: FakeTransport, device: FakeDevice, link_config: LinkConfig, clock: TickClock) -> DeviceManager:
    m = DeviceManager(PATTERN, link_config, transport=transport, max_index=8, sleep=clock)
    m.discover()
    m.connect()
    return m
