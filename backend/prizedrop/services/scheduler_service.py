import httpx
import logging
from datetime import datetime
from typing import Any, Dict

from prizedrop.config import settings
from prizedrop.errors import SchedulerError

logger = logging.getLogger(__name__)

SCHEDULE_EVENT = "giveaways/schedule"


class SchedulerService:
    """Registers giveaways with the durable scheduler.

    The scheduler sleeps until each timestamp and then POSTs the start and
    end callback URLs, retrying until it gets a 2xx. Using the giveaway id as
    the event id lets it drop duplicate registrations.
    """

    def __init__(self, base_url: str, event_key: str = None, app_url: str = "", timeout: float = 10.0,
                 transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or "").rstrip("/")
        self.event_key = event_key
        self.app_url = (app_url or "").rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "SchedulerService":
        return cls(settings.SCHEDULER_URL, settings.SCHEDULER_EVENT_KEY, settings.APP_URL)

    def callback_urls(self, giveaway_id: str) -> Dict[str, str]:
        return {
            "startUrl": f"{self.app_url}/giveaways/{giveaway_id}/start",
            "endUrl": f"{self.app_url}/giveaways/{giveaway_id}/end",
        }

    async def register(self, giveaway_id: str, start_date: datetime, end_date: datetime, payload: Dict[str, Any] = None):
        event = {
            "name": SCHEDULE_EVENT,
            "id": giveaway_id,
            "data": {
                "giveawayId": giveaway_id,
                "startDate": start_date.isoformat(),
                "endDate": end_date.isoformat(),
                **self.callback_urls(giveaway_id),
                **(payload or {}),
            },
        }
        url = f"{self.base_url}/e/{self.event_key}" if self.event_key else f"{self.base_url}/e"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=event)
        except httpx.HTTPError as e:
            raise SchedulerError(f"Network error scheduling giveaway {giveaway_id}: {e}") from e

        if response.status_code >= 400:
            raise SchedulerError(
                f"Scheduler rejected giveaway {giveaway_id} (HTTP {response.status_code}): {response.text[:100]}"
            )
        logger.info(f"Scheduled giveaway {giveaway_id}: start {start_date.isoformat()}, end {end_date.isoformat()}")
