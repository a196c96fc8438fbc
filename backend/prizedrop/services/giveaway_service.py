"""Giveaway lifecycle: deposit-backed creation, entry, and settlement.

Giveaways have no stored status. Scheduler callbacks drive the two timed
transitions and may arrive late or more than once, so every step below is
safe to repeat:

    PENDING_DEPOSIT -> SCHEDULED -> ACTIVE -> SETTLING -> SETTLED

Start and end callbacks of one giveaway run under a per-giveaway lock that
is dropped once idle. Across processes the conditional writes in
GiveawayRepository (winner mark, payout_id, settled_at) keep each step
at-most-once, and the payout idempotency key is derived from the giveaway
id so the gateway drops replayed transfers.
"""
import asyncio
import logging
import random
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from prizedrop.config import settings
from prizedrop.context import TenantContext
from prizedrop.errors import AlreadySettled, GiveawayError, NotFound, PaymentGatewayError, ValidationError
from prizedrop.models.entry import Entry
from prizedrop.models.deposit import PendingDeposit
from prizedrop.models.giveaway import Giveaway
from prizedrop.repositories.giveaway_repository import GiveawayRepository
from prizedrop.schemas.giveaway import GiveawayDraft
from prizedrop.services.entry_service import EntryLedger
from prizedrop.services.notification_service import NotificationService
from prizedrop.services.payment_service import PaymentService
from prizedrop.services.scheduler_service import SchedulerService
from prizedrop.services.status_service import (
    GiveawayStatus,
    SettlementState,
    as_utc,
    derive_settlement_state,
    format_prize_amount,
    giveaway_status,
    time_remaining_seconds,
    utcnow,
)
from prizedrop.services.winner_service import WinnerSelector

logger = logging.getLogger(__name__)


class SettlementOutcome(str, Enum):
    NOT_DUE = "NOT_DUE"
    NO_ENTRIES = "NO_ENTRIES"
    PAID = "PAID"
    ALREADY_SETTLED = "ALREADY_SETTLED"


class StartOutcome(str, Enum):
    NOT_DUE = "NOT_DUE"
    SKIPPED = "SKIPPED"
    ALREADY_NOTIFIED = "ALREADY_NOTIFIED"
    NOTIFIED = "NOTIFIED"


@dataclass
class GiveawayPolicy:
    min_prize_amount: int = 1
    max_duration: Optional[timedelta] = None
    start_grace: timedelta = timedelta(0)

    @classmethod
    def from_settings(cls) -> "GiveawayPolicy":
        hours = settings.MAX_GIVEAWAY_DURATION_HOURS
        return cls(
            min_prize_amount=settings.MIN_PRIZE_AMOUNT,
            max_duration=timedelta(hours=hours) if hours > 0 else None,
            start_grace=timedelta(seconds=settings.START_DATE_GRACE_SECONDS),
        )


@dataclass
class DepositRequest:
    draft: GiveawayDraft
    deposit_key: str
    checkout_url: Optional[str]
    charge_id: Optional[str]


@dataclass
class SettlementResult:
    outcome: SettlementOutcome
    winner: Optional[Entry] = None
    payout_id: Optional[str] = None


@dataclass
class GiveawayView:
    giveaway: Giveaway
    status: GiveawayStatus
    settlement_state: SettlementState
    time_remaining_seconds: Optional[float]
    has_user_entered: bool
    entries: List[Entry] = field(default_factory=list)

    @property
    def participant_count(self) -> int:
        return len(self.entries)

    @property
    def winner(self) -> Optional[Entry]:
        return next((entry for entry in self.entries if entry.is_winner), None)


def payout_key(giveaway_id: str) -> str:
    """Idempotency key for a giveaway's payout; identical on every retry"""
    return f"giveaway_payout_{giveaway_id}"


def deposit_key() -> str:
    return f"giveaway_deposit_{uuid.uuid4().hex}"


class GiveawayLocks:
    """One asyncio.Lock per giveaway id, dropped once nobody holds or awaits it"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, giveaway_id: str):
        lock = self._locks.setdefault(giveaway_id, asyncio.Lock())
        self._users[giveaway_id] = self._users.get(giveaway_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[giveaway_id] -= 1
            if not self._users[giveaway_id]:
                del self._users[giveaway_id]
                del self._locks[giveaway_id]


class GiveawayService:
    def __init__(
        self,
        repository: GiveawayRepository,
        payments: PaymentService,
        notifications: NotificationService,
        scheduler: SchedulerService,
        policy: GiveawayPolicy = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random = None,
    ):
        self.repository = repository
        self.payments = payments
        self.notifications = notifications
        self.scheduler = scheduler
        self.policy = policy or GiveawayPolicy()
        self.clock = clock
        self.ledger = EntryLedger(repository, clock)
        self.selector = WinnerSelector(repository, rng)
        self._locks = GiveawayLocks()

    # creation

    def validate_draft(self, ctx: TenantContext, draft: GiveawayDraft) -> None:
        if not ctx or not ctx.company_id:
            raise ValidationError("Company is required")
        if not draft.creator_id:
            raise ValidationError("Creator is required")
        if not draft.title or not draft.title.strip():
            raise ValidationError("Title is required")
        if draft.prize_amount <= 0:
            raise ValidationError("Prize amount must be greater than 0")
        if draft.prize_amount < self.policy.min_prize_amount:
            raise ValidationError(
                f"Prize amount must be at least {format_prize_amount(self.policy.min_prize_amount)}"
            )

        start, end = as_utc(draft.start_date), as_utc(draft.end_date)
        if start >= end:
            raise ValidationError("End date must be after start date")
        if self.policy.max_duration and end - start > self.policy.max_duration:
            hours = int(self.policy.max_duration.total_seconds() // 3600)
            raise ValidationError(f"Giveaway cannot run longer than {hours} hours")
        if start < as_utc(self.clock()) - self.policy.start_grace:
            raise ValidationError("Start date cannot be in the past")

    async def request_deposit(
        self, ctx: TenantContext, draft: GiveawayDraft, idempotency_key: str = None
    ) -> DepositRequest:
        """Validate a draft, charge the creator for the prize and remember the draft.

        Only the pending deposit is stored here. The giveaway itself is written
        by confirm_deposit, from this stored draft, once the gateway reports
        the charge as paid.
        """
        self.validate_draft(ctx, draft)
        key = idempotency_key or deposit_key()

        pending = await self.repository.get_pending_deposit(key)
        if pending and not self._same_draft(pending, ctx, draft):
            raise ValidationError("Deposit key was already used for a different giveaway")

        title = draft.title.strip()
        charge = await self.payments.charge(
            draft.creator_id,
            draft.prize_amount,
            key,
            metadata={
                "type": "giveaway_deposit",
                "amount": str(draft.prize_amount),
                "giveawayTitle": title,
                "companyId": ctx.company_id,
            },
            description=f'Giveaway deposit for "{title}" - {format_prize_amount(draft.prize_amount)}',
        )
        await self.repository.save_pending_deposit(
            deposit_key=key,
            charge_id=charge.charge_id,
            company_id=ctx.company_id,
            experience_id=ctx.experience_id,
            title=title,
            prize_amount=draft.prize_amount,
            start_date=as_utc(draft.start_date),
            end_date=as_utc(draft.end_date),
            creator_id=draft.creator_id,
            creator_name=draft.creator_name,
            created_at=self.clock(),
        )
        logger.info(f"Deposit charge {charge.charge_id} created for creator {draft.creator_id}")
        return DepositRequest(
            draft=draft, deposit_key=key, checkout_url=charge.checkout_reference, charge_id=charge.charge_id
        )

    @staticmethod
    def _same_draft(pending: PendingDeposit, ctx: TenantContext, draft: GiveawayDraft) -> bool:
        return (
            pending.company_id == ctx.company_id
            and pending.creator_id == draft.creator_id
            and pending.title == draft.title.strip()
            and pending.prize_amount == draft.prize_amount
            and as_utc(pending.start_date) == as_utc(draft.start_date)
            and as_utc(pending.end_date) == as_utc(draft.end_date)
        )

    async def _verify_charge(self, pending: PendingDeposit) -> None:
        if not pending.charge_id:
            raise PaymentGatewayError(f"Deposit {pending.deposit_key} has no charge to confirm")
        charge = await self.payments.get_charge(pending.charge_id)
        if not charge.paid:
            raise ValidationError("Deposit has not been paid")
        if charge.amount < pending.prize_amount:
            logger.warning(
                f"Charge {charge.charge_id} captured {charge.amount} for a prize of {pending.prize_amount}"
            )
            raise ValidationError("Deposit does not cover the prize amount")

    async def confirm_deposit(self, ctx: TenantContext, deposit_key: str) -> Giveaway:
        """Persist a paid-for giveaway and arm its start and end callbacks.

        The giveaway is built from the draft stored by request_deposit, and
        only after the gateway reports its charge as paid in full. Repeating a
        confirmation with the same deposit key returns the giveaway created
        the first time and re-registers its schedule.
        """
        if not deposit_key:
            raise ValidationError("Deposit key is required")

        giveaway = await self.repository.get_giveaway_by_deposit_key(deposit_key)
        if giveaway:
            if giveaway.company_id != ctx.company_id:
                raise NotFound("Deposit not found")
            logger.info(f"Deposit {deposit_key} already confirmed as giveaway {giveaway.id}")
        else:
            pending = await self.repository.get_pending_deposit(deposit_key)
            if not pending or pending.company_id != ctx.company_id:
                logger.warning(f"Confirmation for unknown deposit {deposit_key} from company {ctx.company_id}")
                raise NotFound("Deposit not found")
            await self._verify_charge(pending)

            # no start-date check: the creator may have paid after the window opened
            giveaway = await self.repository.create_giveaway(
                title=pending.title,
                prize_amount=pending.prize_amount,
                start_date=as_utc(pending.start_date),
                end_date=as_utc(pending.end_date),
                creator_id=pending.creator_id,
                creator_name=pending.creator_name,
                company_id=pending.company_id,
                experience_id=pending.experience_id,
                deposit_key=deposit_key,
                created_at=self.clock(),
            )
            logger.info(f"Created giveaway {giveaway.id} for company {ctx.company_id}")

        await self.scheduler.register(
            giveaway.id,
            as_utc(giveaway.start_date),
            as_utc(giveaway.end_date),
            payload={
                "title": giveaway.title,
                "prizeAmount": giveaway.prize_amount,
                "companyId": giveaway.company_id,
                "experienceId": giveaway.experience_id,
            },
        )
        return giveaway

    # reads and entry

    async def enter_giveaway(self, giveaway_id: str, user_id: str, user_name: str = None) -> Entry:
        return await self.ledger.enter(giveaway_id, user_id, user_name)

    async def _view(self, giveaway: Giveaway, user_id: str = None) -> GiveawayView:
        now = self.clock()
        entries = await self.ledger.list_entries(giveaway.id)
        return GiveawayView(
            giveaway=giveaway,
            status=giveaway_status(giveaway, now),
            settlement_state=derive_settlement_state(giveaway, now),
            time_remaining_seconds=time_remaining_seconds(giveaway.end_date, now),
            has_user_entered=bool(user_id) and any(entry.user_id == user_id for entry in entries),
            entries=entries,
        )

    async def get_giveaway(self, giveaway_id: str, user_id: str = None, ctx: TenantContext = None) -> GiveawayView:
        """Load one giveaway with its stats; with a ctx, giveaways of other companies are not found"""
        giveaway = await self.repository.get_giveaway_by_id(giveaway_id)
        if not giveaway or (ctx is not None and giveaway.company_id != ctx.company_id):
            raise NotFound("Giveaway not found")
        return await self._view(giveaway, user_id)

    async def list_giveaways(self, ctx: TenantContext, user_id: str = None) -> List[GiveawayView]:
        giveaways = await self.repository.list_giveaways_by_company(ctx.company_id)
        return [await self._view(giveaway, user_id) for giveaway in giveaways]

    # scheduler callbacks

    async def _notify(self, giveaway: Giveaway, kind: str, message: str) -> None:
        audience = giveaway.experience_id or giveaway.company_id
        await self.notifications.notify(audience, giveaway.title, message, kind)

    async def _load(self, giveaway_id: str) -> Giveaway:
        giveaway = await self.repository.get_giveaway_by_id(giveaway_id)
        if not giveaway:
            raise NotFound("Giveaway not found")
        return giveaway

    async def start_giveaway(self, giveaway_id: str) -> StartOutcome:
        await self._load(giveaway_id)
        async with self._locks.hold(giveaway_id):
            # reload: a concurrent delivery may have notified while we waited
            giveaway = await self._load(giveaway_id)

            status = giveaway_status(giveaway, self.clock())
            if status == GiveawayStatus.UPCOMING:
                logger.warning(f"Start callback for giveaway {giveaway_id} arrived before its start date")
                return StartOutcome.NOT_DUE
            if status == GiveawayStatus.COMPLETED:
                logger.info(f"Start callback for giveaway {giveaway_id} arrived after it ended, skipping")
                return StartOutcome.SKIPPED
            if giveaway.start_notified_at is not None:
                return StartOutcome.ALREADY_NOTIFIED

            await self._notify(
                giveaway,
                "start",
                f'Giveaway "{giveaway.title}" has started! Enter now for a chance to win '
                f"{format_prize_amount(giveaway.prize_amount)}!",
            )
            await self.repository.mark_start_notified(giveaway_id, self.clock())
            return StartOutcome.NOTIFIED

    async def end_giveaway(self, giveaway_id: str) -> SettlementResult:
        """Select a winner, pay them, and announce the result.

        Safe to call any number of times. A failure leaves the giveaway
        SETTLING; calling again resumes with the same winner and the same
        payout idempotency key.
        """
        await self._load(giveaway_id)
        async with self._locks.hold(giveaway_id):
            giveaway = await self._load(giveaway_id)

            try:
                return await self._settle(giveaway)
            except AlreadySettled:
                logger.info(f"Giveaway {giveaway_id} is already settled, nothing to do")
                winner = await self.repository.get_winner(giveaway_id)
                return SettlementResult(SettlementOutcome.ALREADY_SETTLED, winner, giveaway.payout_id)
            except GiveawayError as e:
                logger.error(f"Settlement of giveaway {giveaway_id} failed, will retry on next callback: {e.message}")
                raise

    async def _settle(self, giveaway: Giveaway) -> SettlementResult:
        if giveaway_status(giveaway, self.clock()) != GiveawayStatus.COMPLETED:
            logger.warning(f"End callback for giveaway {giveaway.id} arrived before its end date")
            return SettlementResult(SettlementOutcome.NOT_DUE)
        if giveaway.settled_at is not None:
            raise AlreadySettled(f"Giveaway {giveaway.id} was settled at {giveaway.settled_at}")

        winner = await self.selector.select_winner(giveaway.id)
        if winner is None:
            await self._notify(giveaway, "end", f'Giveaway "{giveaway.title}" has ended with no entries.')
            await self.repository.mark_settled(giveaway.id, self.clock())
            return SettlementResult(SettlementOutcome.NO_ENTRIES)

        payout_id = giveaway.payout_id
        if payout_id is None:
            payout_id = await self._pay_winner(giveaway, winner)
        else:
            logger.info(f"Giveaway {giveaway.id} already paid out as {payout_id}, skipping transfer")

        await self._notify(
            giveaway,
            "end",
            f'Giveaway "{giveaway.title}" has ended! Congratulations to '
            f"@{winner.user_name or winner.user_id} for winning {format_prize_amount(giveaway.prize_amount)}!",
        )
        await self.repository.mark_settled(giveaway.id, self.clock())
        logger.info(f"Giveaway {giveaway.id} settled, winner {winner.user_id}, payout {payout_id}")
        return SettlementResult(SettlementOutcome.PAID, winner, payout_id)

    async def _pay_winner(self, giveaway: Giveaway, winner: Entry) -> str:
        key = payout_key(giveaway.id)
        ledger = await self.payments.get_ledger_account(giveaway.company_id)
        result = await self.payments.transfer(
            ledger.id,
            winner.user_id,
            giveaway.prize_amount,
            key,
            fee=ledger.transfer_fee,
            notes=f'Giveaway prize for "{giveaway.title}"',
        )
        if not result.transferred:
            raise PaymentGatewayError(f"Gateway did not transfer the prize for giveaway {giveaway.id}")

        if not await self.repository.update_giveaway_payout_id(giveaway.id, key):
            logger.info(f"Payout id for giveaway {giveaway.id} was already recorded")
        logger.info(f"Paid {format_prize_amount(giveaway.prize_amount)} to {winner.user_id} for giveaway {giveaway.id}")
        return key
