import uuid

from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class Giveaway(Base):
    __tablename__ = "giveaways"
    __table_args__ = (
        CheckConstraint("prize_amount > 0", name="ck_giveaways_prize_positive"),
        CheckConstraint("end_date > start_date", name="ck_giveaways_window"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    prize_amount = Column(Integer, nullable=False)  # cents
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    creator_id = Column(String, nullable=False)
    creator_name = Column(String, nullable=True)
    company_id = Column(String, index=True, nullable=False)
    experience_id = Column(String, nullable=True)
    deposit_key = Column(String, unique=True, nullable=True)
    # write-once
    payout_id = Column(String, nullable=True)
    start_notified_at = Column(DateTime(timezone=True), nullable=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
