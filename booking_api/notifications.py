"""
Best-effort outbound notifications.

Events are POSTed as JSON to a configured webhook on a daemon thread, so a
slow or failing receiver never blocks or fails the request that raised them.
"""
import logging
import threading
import requests

logger = logging.getLogger(__name__)


class WebhookNotifier:
    def __init__(self, url: str | None, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def notify(self, event: str, payload: dict) -> None:
        if not self.url:
            logger.debug("Notifications disabled, dropping %s", event)
            return
        thread = threading.Thread(target=self._send, args=(event, payload), daemon=True)
        thread.start()

    def _send(self, event: str, payload: dict) -> None:
        try:
            r = requests.post(self.url, json={"type": event, "payload": payload}, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Notification %s failed: %s", event, e)
