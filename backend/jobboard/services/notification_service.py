import logging
import random
import string
import time
from collections import deque
from typing import Callable

from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.services.changefeed import install_change_capture, remove_change_capture

logger = logging.getLogger(__name__)

VALID_EVENTS = {"INSERT", "UPDATE", "DELETE", "*"}

Listener = Callable[[dict], None]


class NotInitializedError(RuntimeError):
    pass


class NotificationService:
    # Which table/event combinations should make portals refresh.
    # Tables or events missing here count as important.
    IMPORTANCE = {
        "job_recruitments": {"INSERT": True, "UPDATE": True, "DELETE": True},
        "job_categories": {"INSERT": True, "UPDATE": True, "DELETE": True},
        "tags": {"INSERT": True, "UPDATE": True, "DELETE": True},
        "users": {"INSERT": False, "UPDATE": False, "DELETE": False},
        "activation_codes": {"INSERT": False, "UPDATE": False, "DELETE": False},
        "job_tags": {"INSERT": True, "UPDATE": True, "DELETE": True},
    }

    def __init__(self):
        self._subscriptions: list[dict] = []
        self._initialized = False
        self._session_class = None
        self._recent: deque[dict] = deque(maxlen=settings.change_buffer_size)
        self._seq = 0

    def initialize(self, session_class=Session):
        if self._initialized:
            return
        install_change_capture(self.publish, session_class)
        self._session_class = session_class
        self._initialized = True
        logger.info("Notification service initialised")

    def shutdown(self):
        remove_change_capture(self.publish)
        self._subscriptions = []
        self._recent.clear()
        self._initialized = False

    def _require_initialized(self):
        if not self._initialized:
            raise NotInitializedError("Notification service is not initialised")

    def subscribe(self, table: str, event: str, listener: Listener) -> str:
        self._require_initialized()
        if event not in VALID_EVENTS:
            raise ValueError(f"Invalid event {event!r}. Must be one of: {sorted(VALID_EVENTS)}")

        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        subscription_id = f"{table}_{event}_{int(time.time() * 1000)}_{suffix}"
        self._subscriptions.append({
            "id": subscription_id,
            "table": table,
            "event": event,
            "listener": listener,
        })
        logger.debug("Subscribed to %s %s events (%s)", table, event, subscription_id)
        return subscription_id

    def unsubscribe(self, table: str, event: str, listener: Listener | None = None) -> int:
        self._require_initialized()
        matches = [
            sub for sub in self._subscriptions
            if sub["table"] == table and sub["event"] == event
            and (listener is None or sub["listener"] == listener)
        ]
        for sub in matches:
            self._subscriptions.remove(sub)
        logger.debug("Removed %d subscriptions to %s %s events", len(matches), table, event)
        return len(matches)

    def unsubscribe_all(self):
        self._require_initialized()
        self._subscriptions = []

    def is_change_important(self, table: str, event: str) -> bool:
        table_config = self.IMPORTANCE.get(table)
        if table_config is None:
            return True
        return table_config.get(event, True)

    def publish(self, change: dict):
        table, event = change["table"], change["event"]
        if not self.is_change_important(table, event):
            return

        payload = dict(change)
        # Only tables listed in IMPORTANCE reach the public feed buffer
        if table in self.IMPORTANCE:
            self._seq += 1
            payload["seq"] = self._seq
            self._recent.append(payload)

        for sub in list(self._subscriptions):
            if sub["table"] != table or sub["event"] not in ("*", event):
                continue
            try:
                sub["listener"](payload)
            except Exception:
                logger.exception("Listener %s failed for %s %s", sub["id"], table, event)

    def changes_since(self, seq: int = 0) -> tuple[list[dict], int]:
        return [c for c in self._recent if c["seq"] > seq], self._seq

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)


notification_service = NotificationService()
