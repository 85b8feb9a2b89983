"""
Pub/sub transports used by the notification dispatcher.

A transport only needs ``publish(topic, message)``. Delivery is fire-and-forget:
callers never wait on subscribers and nothing is queued for disconnected
clients.
"""
import logging
import threading
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from django.conf import settings
from django.utils.module_loading import import_string
from requests import RequestException, Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Dict[str, Any]], None]

_TRANSPORTS: Dict[str, Any] = {}


class InMemoryTransport:
    """In-process topic fan-out with a bounded history of published messages."""

    def __init__(self, max_history: int = 500):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self.history: Deque[Tuple[str, Dict[str, Any]]] = deque(maxlen=max_history)

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers[topic].append(callback)

    def publish(self, topic: str, message: Dict[str, Any]) -> None:
        with self._lock:
            self.history.append((topic, message))
            callbacks = list(self._subscribers.get(topic, []))
        for callback in callbacks:
            try:
                callback(topic, message)
            except Exception:
                logger.exception("Subscriber failed on topic %s", topic)

    def messages_for(self, topic: str) -> List[Dict[str, Any]]:
        return [message for published_topic, message in self.history if published_topic == topic]

    def clear(self) -> None:
        with self._lock:
            self.history.clear()
            self._subscribers.clear()


class LoggingTransport:
    """Write every message to the log; used when no gateway is configured."""

    def publish(self, topic: str, message: Dict[str, Any]) -> None:
        logger.info("publish topic=%s type=%s", topic, message.get("type"))


class HttpTransport:
    """POST messages to a realtime gateway that owns the client connections."""

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        timeout: Optional[int] = None,
        retries: Optional[int] = None,
        token: Optional[str] = None,
    ):
        config = getattr(settings, "REALTIME", {})
        self.gateway_url = (gateway_url or config.get("GATEWAY_URL", "")).rstrip("/")
        self.timeout = int(timeout if timeout is not None else config.get("TIMEOUT", 3))
        self.retries = int(retries if retries is not None else config.get("RETRIES", 2))
        self.token = token if token is not None else config.get("GATEWAY_TOKEN", "")
        self._session: Optional[Session] = None

    def _build_session(self) -> Session:
        if self._session is not None:
            return self._session

        retry_strategy = Retry(
            total=self.retries,
            backoff_factor=0.3,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("POST",),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session = Session()
        session.headers.update({"User-Agent": "ProjectAllocation-Realtime/1.0"})
        if self.token:
            session.headers.update({"Authorization": f"Bearer {self.token}"})
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        self._session = session
        return session

    def publish(self, topic: str, message: Dict[str, Any]) -> None:
        if not self.gateway_url:
            logger.warning("Realtime gateway URL is not configured; dropping %s", topic)
            return
        session = self._build_session()
        try:
            response = session.post(
                f"{self.gateway_url}/publish",
                json={"topic": topic, "event": message},
                timeout=self.timeout,
            )
        except RequestException:
            logger.warning("Realtime gateway unreachable topic=%s type=%s", topic, message.get("type"))
            return
        if response.status_code >= 400:
            logger.warning(
                "Realtime gateway rejected topic=%s status=%s",
                topic,
                response.status_code,
            )


memory_transport = InMemoryTransport()


def get_transport():
    """Return the transport configured in ``settings.REALTIME["TRANSPORT"]``."""
    path = getattr(settings, "REALTIME", {}).get(
        "TRANSPORT", "apps.notifications.transports.LoggingTransport"
    )
    if path == "apps.notifications.transports.InMemoryTransport":
        return memory_transport
    if path not in _TRANSPORTS:
        _TRANSPORTS[path] = import_string(path)()
    return _TRANSPORTS[path]
