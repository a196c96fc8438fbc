from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from prizedrop.api.deps import get_giveaway_service, verify_callback_secret
from prizedrop.schemas.entry import Entry
from prizedrop.schemas.giveaway import SettlementResponse
from prizedrop.services.giveaway_service import GiveawayService, SettlementOutcome, StartOutcome

router = APIRouter(dependencies=[Depends(verify_callback_secret)])


@router.post("/{giveaway_id}/start")
async def start_callback(giveaway_id: str, service: GiveawayService = Depends(get_giveaway_service)):
    """Called by the scheduler at the giveaway's start date"""
    outcome = await service.start_giveaway(giveaway_id)
    if outcome == StartOutcome.NOT_DUE:
        # non-2xx makes the scheduler retry later
        return JSONResponse({"error": "Giveaway has not started yet", "outcome": outcome.value}, status_code=409)
    return {"success": True, "outcome": outcome.value}


@router.post("/{giveaway_id}/end")
async def end_callback(giveaway_id: str, service: GiveawayService = Depends(get_giveaway_service)):
    """Called by the scheduler at the giveaway's end date"""
    result = await service.end_giveaway(giveaway_id)
    if result.outcome == SettlementOutcome.NOT_DUE:
        return JSONResponse({"error": "Giveaway has not ended yet", "outcome": result.outcome.value}, status_code=409)

    response = SettlementResponse(
        outcome=result.outcome.value,
        winner=Entry.model_validate(result.winner) if result.winner else None,
        payout_id=result.payout_id,
    )
    return {"success": True, **response.model_dump(mode="json", by_alias=True)}
