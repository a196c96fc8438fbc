import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from prizedrop.errors import NotificationError, SchedulerError
from prizedrop.services.notification_service import NotificationService
from prizedrop.services.scheduler_service import SchedulerService


async def test_notification_payload():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"sent": True})

    notifier = NotificationService("https://push.test", api_key="key", transport=httpx.MockTransport(handler))
    await notifier.notify("exp_1", "Spring Drop", "It's on", "start")

    assert seen["url"] == "https://push.test/notifications"
    assert seen["body"] == {
        "experienceId": "exp_1",
        "title": "🎉 Spring Drop",
        "content": "It's on",
        "link": "/giveaways",
    }


async def test_notification_failure_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(NotificationError):
        await NotificationService("https://push.test", transport=transport).notify("exp_1", "T", "m", "end")


async def test_unknown_notification_kind():
    with pytest.raises(ValueError):
        await NotificationService("https://push.test").notify("exp_1", "T", "m", "reminder")


async def test_schedule_registration_event():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ids": ["evt_1"]})

    start = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    scheduler = SchedulerService(
        "https://sched.test", event_key="evkey", app_url="https://app.test/", transport=httpx.MockTransport(handler)
    )
    await scheduler.register("g1", start, start + timedelta(hours=1), payload={"title": "Spring Drop"})

    assert seen["url"] == "https://sched.test/e/evkey"
    assert seen["body"]["name"] == "giveaways/schedule"
    assert seen["body"]["id"] == "g1"
    assert seen["body"]["data"] == {
        "giveawayId": "g1",
        "startDate": "2026-03-01T12:00:00+00:00",
        "endDate": "2026-03-01T13:00:00+00:00",
        "startUrl": "https://app.test/giveaways/g1/start",
        "endUrl": "https://app.test/giveaways/g1/end",
        "title": "Spring Drop",
    }


async def test_schedule_failure_raises():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    scheduler = SchedulerService("https://sched.test", transport=httpx.MockTransport(handler))
    with pytest.raises(SchedulerError):
        await scheduler.register("g1", datetime.now(timezone.utc), datetime.now(timezone.utc) + timedelta(hours=1))
