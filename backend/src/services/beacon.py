"""Fire-and-forget delivery of small payloads that must survive the sender going away."""
import logging
import threading
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class Beacon(Protocol):
    """Queues a payload for delivery without waiting for it."""

    def send(self, payload: dict[str, Any]) -> bool: ...


class HttpBeacon:
    """
    POSTs JSON payloads from a background thread.

    send() returns as soon as the thread is started; the caller (an event loop
    that may be shutting down) never waits on the network. The thread is not a
    daemon, so the interpreter finishes the delivery before the process exits.
    The request timeout bounds how long that can hold up shutdown.
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.url = url
        self.timeout = timeout

    def send(self, payload: dict[str, Any]) -> bool:
        """Start delivery; returns False only if the thread could not be started."""
        thread = threading.Thread(target=self._deliver, args=(payload,), daemon=False)
        try:
            thread.start()
        except RuntimeError as e:
            logger.warning("Beacon thread could not be started: %s", e)
            return False
        return True

    def _deliver(self, payload: dict[str, Any]) -> None:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Beacon delivery to %s failed: %s", self.url, e)
