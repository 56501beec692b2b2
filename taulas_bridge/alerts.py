from __future__ import annotations

import logging
import threading
from typing import Optional
from urllib.parse import quote

import requests

from .device_manager import DeviceManager
from .errors import ProtocolParseFailure, RemoteCallbackFailure
from .protocol import AlertMessage, parse_alert

logger = logging.getLogger(__name__)

ALERT_SERVICE_SEGMENT = "benoic"
ALERT_TRAILING_SEGMENT = "elert"
TICK_INTERVAL_S = 1.0


def alert_callback_url(base_url: str, device_name: str, alert: str) -> str:
    return "/".join([
        base_url.rstrip("/"),
        ALERT_SERVICE_SEGMENT,
        quote(device_name, safe=""),
        quote(alert, safe=""),
        ALERT_TRAILING_SEGMENT,
    ])


class AlertMonitor:
    """Drains unsolicited frames from the device and forwards alerts.

    Delivery is best effort: a failed callback is logged and dropped.
    """

    def __init__(
        self,
        manager: DeviceManager,
        alert_url: Optional[str] = None,
        interval_s: float = TICK_INTERVAL_S,
        session: Optional[requests.Session] = None,
        request_timeout_s: float = 5.0,
    ) -> None:
        self.manager = manager
        self.interval_s = float(interval_s)
        self.request_timeout_s = float(request_timeout_s)
        self._session = session or requests.Session()
        self._alert_url = alert_url
        self._url_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def alert_url(self) -> Optional[str]:
        with self._url_lock:
            return self._alert_url

    @alert_url.setter
    def alert_url(self, url: Optional[str]) -> None:
        with self._url_lock:
            self._alert_url = url or None
        logger.info("alert callback set to %s", url)

    def tick(self) -> Optional[AlertMessage]:
        """Poll the link once; returns the alert that was forwarded, if any."""
        url = self.alert_url
        if url is None:
            return None

        raw = self.manager.read_pending()
        if raw:
            logger.debug("Getting message: %s", raw)
        try:
            msg = parse_alert(raw)
        except ProtocolParseFailure as e:
            logger.error("Error decoding alert message: %s", e)
            return None
        if msg is None:
            return None

        try:
            self.notify(url, msg)
        except RemoteCallbackFailure as e:
            logger.error("Error sending alert message: %s", e)
        return msg

    def notify(self, base_url: str, msg: AlertMessage) -> None:
        url = alert_callback_url(base_url, self.manager.device_name or "", msg.alert)
        try:
            r = self._session.get(url, timeout=self.request_timeout_s)
        except (requests.RequestException, ValueError) as e:
            raise RemoteCallbackFailure(f"GET {url} failed: {e}") from e
        logger.debug("Alert sent to %s, status %d", url, r.status_code)

    def run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("alert poll failed")
            self._stop.wait(self.interval_s)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="alert-monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout_s: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout_s)
            self._thread = None
