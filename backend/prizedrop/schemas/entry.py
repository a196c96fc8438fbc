from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class EntryCreate(BaseModel):
    user_id: str = Field(alias="userId")
    user_name: Optional[str] = Field(default=None, alias="userName")

    class Config:
        populate_by_name = True


class Entry(BaseModel):
    id: str
    giveaway_id: str = Field(serialization_alias="giveawayId")
    user_id: str = Field(serialization_alias="userId")
    user_name: Optional[str] = Field(serialization_alias="userName")
    is_winner: bool = Field(serialization_alias="isWinner")
    entered_at: datetime = Field(serialization_alias="enteredAt")

    class Config:
        from_attributes = True
