from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from prizedrop.schemas.entry import Entry


class GiveawayDraft(BaseModel):
    title: str
    prize_amount: int = Field(alias="prizeAmount")
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    creator_id: str = Field(alias="creatorId")
    creator_name: Optional[str] = Field(default=None, alias="creatorName")

    class Config:
        populate_by_name = True


class DepositConfirmation(BaseModel):
    deposit_key: str = Field(alias="depositKey")

    class Config:
        populate_by_name = True


class DepositResponse(BaseModel):
    deposit_key: str = Field(serialization_alias="depositKey")
    checkout_url: Optional[str] = Field(serialization_alias="checkoutUrl")
    charge_id: Optional[str] = Field(serialization_alias="chargeId")


class Giveaway(BaseModel):
    id: str
    title: str
    prize_amount: int = Field(serialization_alias="prizeAmount")
    start_date: datetime = Field(serialization_alias="startDate")
    end_date: datetime = Field(serialization_alias="endDate")
    creator_id: str = Field(serialization_alias="creatorId")
    creator_name: Optional[str] = Field(serialization_alias="creatorName")
    company_id: str = Field(serialization_alias="companyId")
    payout_id: Optional[str] = Field(serialization_alias="payoutId")
    created_at: Optional[datetime] = Field(serialization_alias="createdAt")

    class Config:
        from_attributes = True


class GiveawayWithStats(Giveaway):
    status: str
    settlement_state: str = Field(serialization_alias="settlementState")
    participant_count: int = Field(serialization_alias="participantCount")
    time_remaining_seconds: Optional[float] = Field(serialization_alias="timeRemainingSeconds")
    has_user_entered: bool = Field(serialization_alias="hasUserEntered")
    winner: Optional[Entry] = None
    entries: List[Entry] = []


class SettlementResponse(BaseModel):
    outcome: str
    winner: Optional[Entry] = None
    payout_id: Optional[str] = Field(default=None, serialization_alias="payoutId")
