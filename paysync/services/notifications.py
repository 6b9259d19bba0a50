"""OneSignal push notifications."""

from typing import Any

import httpx

from paysync.core.config import get_settings
from paysync.core.logging import get_logger

log = get_logger(__name__)

ONESIGNAL_URL = "https://onesignal.com/api/v1/notifications"


class PushNotifier:
    def __init__(self, app_id: str, api_key: str, client: httpx.AsyncClient | None = None):
        self.app_id = app_id
        self.api_key = api_key
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.app_id and self.api_key)

    async def send(
        self,
        player_id: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one notification; raises httpx.HTTPError on failure."""
        payload = {
            "app_id": self.app_id,
            "include_player_ids": [player_id],
            "headings": {"en": title},
            "contents": {"en": message},
            "data": data or {},
        }
        headers = {"Authorization": f"Basic {self.api_key}"}
        if self._client is not None:
            resp = await self._client.post(ONESIGNAL_URL, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.post(ONESIGNAL_URL, json=payload, headers=headers)
        resp.raise_for_status()
        return resp.json()


def get_notifier() -> PushNotifier:
    s = get_settings()
    return PushNotifier(s.onesignal_app_id, s.onesignal_rest_api_key)
