import random
from datetime import datetime, timedelta, timezone

import pytest

from prizedrop.context import TenantContext
from prizedrop.db import create_engine, create_session_factory, init_models
from prizedrop.errors import NotificationError, PaymentGatewayError
from prizedrop.repositories.giveaway_repository import GiveawayRepository
from prizedrop.schemas.giveaway import GiveawayDraft
from prizedrop.services.giveaway_service import GiveawayPolicy, GiveawayService
from prizedrop.services.payment_service import ChargeResult, ChargeStatus, LedgerAccount, TransferResult

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePaymentGateway:
    """Records every call; moves funds at most once per idempotency key, like the real gateway."""

    def __init__(self):
        self.calls = []
        self.charges = []
        self.movements = []
        self.seen_keys = set()
        self.decline_charges = False
        self.unpaid_charges = False
        self.captured_shortfall = 0
        self.failing_transfers = 0

    async def charge(self, user_id, amount, idempotency_key, metadata=None, description=None):
        self.calls.append("charge")
        if self.decline_charges:
            raise PaymentGatewayError("charge failed: card declined")
        charge_id = f"ch_{len(self.charges) + 1}"
        self.charges.append(
            {
                "charge_id": charge_id,
                "user_id": user_id,
                "amount": amount,
                "idempotency_key": idempotency_key,
                "metadata": metadata,
            }
        )
        return ChargeResult(checkout_reference=f"https://checkout.test/{idempotency_key}", charge_id=charge_id)

    async def get_charge(self, charge_id):
        self.calls.append("charge_lookup")
        charge = next((c for c in self.charges if c["charge_id"] == charge_id), None)
        if charge is None:
            raise PaymentGatewayError(f"charge lookup failed (HTTP 404): {charge_id}")
        status = "pending" if self.unpaid_charges else "paid"
        return ChargeStatus(charge_id=charge_id, status=status, amount=charge["amount"] - self.captured_shortfall)

    async def get_ledger_account(self, company_id):
        self.calls.append("ledger")
        return LedgerAccount(id=f"ldgr_{company_id}", transfer_fee=25)

    async def transfer(self, from_ledger_ref, to_user_id, amount, idempotency_key, fee=0, notes=""):
        self.calls.append("transfer")
        if self.failing_transfers:
            self.failing_transfers -= 1
            raise PaymentGatewayError("transfer failed (HTTP 503): upstream timeout")
        if idempotency_key in self.seen_keys:
            return TransferResult(transferred=True, replayed=True)
        self.seen_keys.add(idempotency_key)
        self.movements.append(
            {
                "from": from_ledger_ref,
                "to": to_user_id,
                "amount": amount,
                "fee": fee,
                "idempotency_key": idempotency_key,
            }
        )
        return TransferResult(transferred=True)


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.failing = 0

    async def notify(self, audience_ref, title, message, kind):
        if self.failing:
            self.failing -= 1
            raise NotificationError("Notification rejected (HTTP 500): boom")
        self.sent.append({"audience": audience_ref, "title": title, "message": message, "kind": kind})

    def of_kind(self, kind):
        return [n for n in self.sent if n["kind"] == kind]


class FakeScheduler:
    def __init__(self):
        self.registrations = []

    async def register(self, giveaway_id, start_date, end_date, payload=None):
        self.registrations.append(
            {"giveaway_id": giveaway_id, "start_date": start_date, "end_date": end_date, "payload": payload}
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def payments():
    return FakePaymentGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def ctx():
    return TenantContext(company_id="biz_acme", experience_id="exp_main")


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'giveaways.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(engine):
    return GiveawayRepository(create_session_factory(engine))


@pytest.fixture
def service(repository, payments, notifier, scheduler, clock):
    return GiveawayService(
        repository=repository,
        payments=payments,
        notifications=notifier,
        scheduler=scheduler,
        policy=GiveawayPolicy(),
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def make_draft(clock):
    def _make_draft(**overrides):
        values = {
            "title": "Spring Drop",
            "prize_amount": 5000,
            "start_date": clock.now,
            "end_date": clock.now + timedelta(hours=1),
            "creator_id": "creator_1",
            "creator_name": "Casey",
        }
        values.update(overrides)
        return GiveawayDraft(**values)

    return _make_draft


@pytest.fixture
def make_giveaway(service, ctx, make_draft):
    """Run the full deposit + confirmation flow and return the stored giveaway"""

    async def _make_giveaway(context=None, **overrides):
        context = context or ctx
        draft = make_draft(**overrides)
        deposit = await service.request_deposit(context, draft)
        return await service.confirm_deposit(context, deposit.deposit_key)

    return _make_giveaway
