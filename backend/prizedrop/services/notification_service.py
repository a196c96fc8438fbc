import httpx
import logging

from prizedrop.config import settings
from prizedrop.errors import NotificationError

logger = logging.getLogger(__name__)

KIND_PREFIX = {"start": "🎉", "end": "🏆"}


class NotificationService:
    def __init__(self, base_url: str, api_key: str = None, timeout: float = 10.0, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "NotificationService":
        return cls(settings.NOTIFICATION_URL, settings.NOTIFICATION_API_KEY)

    async def notify(self, audience_ref: str, title: str, message: str, kind: str):
        """Push a notification to everyone in an experience"""
        if kind not in KIND_PREFIX:
            raise ValueError(f"Unknown notification kind: {kind}")

        payload = {
            "experienceId": audience_ref,
            "title": f"{KIND_PREFIX[kind]} {title}",
            "content": message,
            "link": "/giveaways",
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/notifications", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise NotificationError(f"Network error sending {kind} notification: {e}") from e

        if response.status_code >= 400:
            raise NotificationError(f"Notification rejected (HTTP {response.status_code}): {response.text[:100]}")

        logger.info(f"{kind} notification sent for giveaway: {title}")
