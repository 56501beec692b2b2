from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fakes import FakeDevice, FakeSession, FakeTransport
from taulas_bridge.alerts import AlertMonitor
from taulas_bridge.device_manager import DeviceManager
from taulas_bridge.server import create_app

ENDPOINTS = {
    "command_url": "/taulas?command=<YOUR_COMMAND>",
    "set_alert_url": "/taulas/alertCb?url=<YOUR_URL_CALLBACK>",
}


@pytest.fixture
def monitor(mgr: DeviceManager) -> AlertMonitor:
    return AlertMonitor(mgr, session=FakeSession(), interval_s=0.01)


@pytest.fixture
def client(mgr: DeviceManager, monitor: AlertMonitor) -> TestClient:
    return TestClient(create_app("taulas", mgr, monitor))


def test_root_lists_endpoints(client: TestClient) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert r.json() == ENDPOINTS


def test_unknown_path_is_404_with_endpoints(client: TestClient) -> None:
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json() == ENDPOINTS


def test_command_is_forwarded(client: TestClient, transport: FakeTransport) -> None:
    r = client.get("/taulas", params={"command": "relay/1"})
    assert r.status_code == 200
    assert r.json() == {"value": 1}
    assert transport.writes[-1] == b"<relay/1>"


def test_device_error_maps_to_404(client: TestClient) -> None:
    r = client.get("/taulas", params={"command": "bogus"})
    assert r.status_code == 404
    assert r.json() == {"error": "unknown command"}


def test_parse_failure_maps_to_500(client: TestClient, device: FakeDevice) -> None:
    device.replies["temp"] = "{oops"
    r = client.get("/taulas", params={"command": "temp"})
    assert r.status_code == 500
    assert r.json()["payload"] == "<temp:{oops"


def test_write_failure_maps_to_500(client: TestClient, transport: FakeTransport) -> None:
    transport.devices.clear()
    transport.write_failures = 1
    r = client.get("/taulas", params={"command": "temp"})
    assert r.status_code == 500
    assert "error" in r.json()


def test_missing_command(client: TestClient) -> None:
    assert client.get("/taulas").status_code == 400


def test_non_ascii_command(client: TestClient, transport: FakeTransport) -> None:
    writes = len(transport.writes)
    assert client.get("/taulas", params={"command": "café"}).status_code == 400
    assert len(transport.writes) == writes


def test_set_alert_url(client: TestClient, monitor: AlertMonitor) -> None:
    r = client.get("/taulas/alertCb", params={"url": "http://hub.local/api"})
    assert r.status_code == 200
    assert r.json() == {"alert_url": "http://hub.local/api"}
    assert monitor.alert_url == "http://hub.local/api"


def test_cors_header(client: TestClient) -> None:
    r = client.get("/", headers={"Origin": "http://example.org"})
    assert r.headers["access-control-allow-origin"] == "*"


def test_lifespan_starts_monitor_and_closes_link(mgr: DeviceManager, monitor: AlertMonitor,
                                                 transport: FakeTransport) -> None:
    app = create_app("/taulas/", mgr, monitor)
    with TestClient(app) as c:
        assert c.get("/taulas", params={"command": "temp"}).json() == {"value": 21.5}
        assert monitor._thread is not None and monitor._thread.is_alive()
    assert monitor._thread is None
    assert not mgr.link.is_open


def test_unsupported_method_gets_endpoint_listing(client: TestClient, transport: FakeTransport) -> None:
    writes = len(transport.writes)
    r = client.post("/taulas", params={"command": "temp"})
    assert r.status_code == 404
    assert r.json() == ENDPOINTS
    assert len(transport.writes) == writes
