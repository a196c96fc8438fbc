from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func

from prizedrop.models.giveaway import Base


class PendingDeposit(Base):
    """A charged but unconfirmed giveaway draft, keyed by its deposit idempotency key"""

    __tablename__ = "pending_deposits"

    deposit_key = Column(String, primary_key=True)
    charge_id = Column(String, nullable=True)
    company_id = Column(String, index=True, nullable=False)
    experience_id = Column(String, nullable=True)
    title = Column(String, nullable=False)
    prize_amount = Column(Integer, nullable=False)  # cents
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    creator_id = Column(String, nullable=False)
    creator_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
