from typing import Optional

from fastapi import APIRouter, Depends, Header

from prizedrop.api.deps import get_giveaway_service, get_tenant_context
from prizedrop.context import TenantContext
from prizedrop.schemas.entry import Entry, EntryCreate
from prizedrop.schemas.giveaway import (
    DepositConfirmation,
    DepositResponse,
    Giveaway,
    GiveawayDraft,
    GiveawayWithStats,
)
from prizedrop.services.giveaway_service import GiveawayService, GiveawayView

router = APIRouter()


def render_view(view: GiveawayView) -> dict:
    data = GiveawayWithStats(
        **Giveaway.model_validate(view.giveaway).model_dump(),
        status=view.status.value,
        settlement_state=view.settlement_state.value,
        participant_count=view.participant_count,
        time_remaining_seconds=view.time_remaining_seconds,
        has_user_entered=view.has_user_entered,
        winner=Entry.model_validate(view.winner) if view.winner else None,
        entries=[Entry.model_validate(entry) for entry in view.entries],
    )
    return data.model_dump(mode="json", by_alias=True)


@router.post("/deposit")
async def create_deposit(
    draft: GiveawayDraft,
    ctx: TenantContext = Depends(get_tenant_context),
    service: GiveawayService = Depends(get_giveaway_service),
    idempotency_key: Optional[str] = Header(default=None),
):
    """Charge the creator for the prize; the giveaway is created once the charge is confirmed"""
    deposit = await service.request_deposit(ctx, draft, idempotency_key)
    return DepositResponse(
        deposit_key=deposit.deposit_key, checkout_url=deposit.checkout_url, charge_id=deposit.charge_id
    ).model_dump(by_alias=True)


@router.post("/create-after-deposit")
async def create_after_deposit(
    confirmation: DepositConfirmation,
    ctx: TenantContext = Depends(get_tenant_context),
    service: GiveawayService = Depends(get_giveaway_service),
):
    giveaway = await service.confirm_deposit(ctx, confirmation.deposit_key)
    return {"giveaway": render_view(await service.get_giveaway(giveaway.id, ctx=ctx))}


@router.get("")
async def list_giveaways(
    userId: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    service: GiveawayService = Depends(get_giveaway_service),
):
    views = await service.list_giveaways(ctx, userId)
    return {"giveaways": [render_view(view) for view in views]}


@router.get("/{giveaway_id}")
async def get_giveaway(
    giveaway_id: str,
    userId: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    service: GiveawayService = Depends(get_giveaway_service),
):
    return {"giveaway": render_view(await service.get_giveaway(giveaway_id, userId, ctx=ctx))}


@router.post("/{giveaway_id}/enter")
async def enter_giveaway(
    giveaway_id: str,
    body: EntryCreate,
    service: GiveawayService = Depends(get_giveaway_service),
):
    entry = await service.enter_giveaway(giveaway_id, body.user_id, body.user_name)
    return {"entry": Entry.model_validate(entry).model_dump(mode="json", by_alias=True)}
