"""Lifecycle phases derived from wall-clock time.

Nothing here is stored: every read recomputes the phase from the giveaway's
timestamps so it can never go stale.
"""
from datetime import datetime, timezone
from enum import Enum

import pytz


class GiveawayStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class SettlementState(str, Enum):
    PENDING_DEPOSIT = "PENDING_DEPOSIT"
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    SETTLING = "SETTLING"
    SETTLED = "SETTLED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (some drivers drop the offset on read)"""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(timezone.utc)


def derive_status(now: datetime, start_date: datetime, end_date: datetime) -> GiveawayStatus:
    """Map a point in time onto the half-open window [start_date, end_date)"""
    now, start_date, end_date = as_utc(now), as_utc(start_date), as_utc(end_date)
    if now < start_date:
        return GiveawayStatus.UPCOMING
    if now < end_date:
        return GiveawayStatus.ACTIVE
    return GiveawayStatus.COMPLETED


def giveaway_status(giveaway, now: datetime) -> GiveawayStatus:
    return derive_status(now, giveaway.start_date, giveaway.end_date)


def derive_settlement_state(giveaway, now: datetime) -> SettlementState:
    if giveaway is None:
        return SettlementState.PENDING_DEPOSIT
    status = giveaway_status(giveaway, now)
    if status == GiveawayStatus.UPCOMING:
        return SettlementState.SCHEDULED
    if status == GiveawayStatus.ACTIVE:
        return SettlementState.ACTIVE
    if giveaway.settled_at is None:
        return SettlementState.SETTLING
    return SettlementState.SETTLED


def time_remaining_seconds(end_date: datetime, now: datetime):
    remaining = (as_utc(end_date) - as_utc(now)).total_seconds()
    return remaining if remaining > 0 else None


def format_prize_amount(amount_in_cents: int) -> str:
    return f"${amount_in_cents / 100:.2f}"
