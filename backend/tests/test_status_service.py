from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from prizedrop.services.status_service import (
    GiveawayStatus,
    SettlementState,
    derive_settlement_state,
    derive_status,
    format_prize_amount,
    time_remaining_seconds,
)

START = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=2)


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(days=-3), GiveawayStatus.UPCOMING),
        (timedelta(microseconds=-1), GiveawayStatus.UPCOMING),
        (timedelta(0), GiveawayStatus.ACTIVE),
        (timedelta(hours=1), GiveawayStatus.ACTIVE),
        (timedelta(hours=2, microseconds=-1), GiveawayStatus.ACTIVE),
        (timedelta(hours=2), GiveawayStatus.COMPLETED),
        (timedelta(days=30), GiveawayStatus.COMPLETED),
    ],
)
def test_window_is_half_open(offset, expected):
    assert derive_status(START + offset, START, END) == expected


def test_every_instant_maps_to_exactly_one_phase():
    for minutes in range(-90, 240, 7):
        now = START + timedelta(minutes=minutes)
        status = derive_status(now, START, END)
        assert (status == GiveawayStatus.UPCOMING) == (now < START)
        assert (status == GiveawayStatus.ACTIVE) == (START <= now < END)
        assert (status == GiveawayStatus.COMPLETED) == (now >= END)


def test_naive_timestamps_from_the_store_are_treated_as_utc():
    naive_start = START.replace(tzinfo=None)
    naive_end = END.replace(tzinfo=None)
    assert derive_status(START + timedelta(minutes=5), naive_start, naive_end) == GiveawayStatus.ACTIVE


def test_other_offsets_are_compared_in_utc():
    plus_two = timezone(timedelta(hours=2))
    now = datetime(2026, 5, 1, 10, 30, tzinfo=plus_two)  # 08:30 UTC
    assert derive_status(now, START, END) == GiveawayStatus.UPCOMING


def test_settlement_state_follows_clock_and_settled_marker():
    giveaway = SimpleNamespace(start_date=START, end_date=END, settled_at=None)

    assert derive_settlement_state(None, START) == SettlementState.PENDING_DEPOSIT
    assert derive_settlement_state(giveaway, START - timedelta(minutes=1)) == SettlementState.SCHEDULED
    assert derive_settlement_state(giveaway, START) == SettlementState.ACTIVE
    assert derive_settlement_state(giveaway, END) == SettlementState.SETTLING

    giveaway.settled_at = END + timedelta(seconds=3)
    assert derive_settlement_state(giveaway, END + timedelta(minutes=1)) == SettlementState.SETTLED


def test_time_remaining():
    assert time_remaining_seconds(END, START) == 7200
    assert time_remaining_seconds(END, END) is None
    assert time_remaining_seconds(END, END + timedelta(seconds=1)) is None


@pytest.mark.parametrize("cents, text", [(5000, "$50.00"), (1, "$0.01"), (123456, "$1234.56")])
def test_format_prize_amount(cents, text):
    assert format_prize_amount(cents) == text
