# listing_search/remote/telemetry.py

from __future__ import annotations

import logging
from typing import Any

import requests

from listing_search.inputs.settings import SearchSettings
from listing_search.remote.errors import REMOTE_ERRORS, RemoteNetworkError, remote_error_guard
from listing_search.schemas.labels import BehaviorEventType

logger = logging.getLogger(__name__)


class BehaviorTelemetry:
    """
    Best-effort behavior events: POST {eventType, propertyRef, payload}.
    Sent only when enabled and a user is signed in; failures are logged and swallowed.
    """

    def __init__(
        self,
        url: str | None,
        *,
        enabled: bool = True,
        timeout: float = 12.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.enabled = enabled and bool(url)
        self.timeout = timeout
        self._http: Any = session or requests

    @classmethod
    def from_settings(cls, settings: SearchSettings) -> BehaviorTelemetry:
        return cls(
            settings.behavior_events_url,
            enabled=settings.behavior_events_enabled,
            timeout=settings.http_timeout_s,
        )

    def send(
        self,
        event_type: BehaviorEventType,
        user_id: str | None,
        property_ref: str = "",
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """Returns True when the event was delivered."""
        if not self.enabled or not user_id or not self.url:
            return False
        body = {"eventType": event_type.value, "propertyRef": property_ref or "", "payload": payload or {}}
        try:
            with remote_error_guard():
                resp = self._http.post(self.url, json=body, timeout=self.timeout)
                if not resp.ok:
                    raise RemoteNetworkError(f"behavior event: HTTP {resp.status_code}")
        except REMOTE_ERRORS as e:
            logger.warning("behavior event %s dropped: %s", event_type.value, type(e).__name__)
            return False
        return True
