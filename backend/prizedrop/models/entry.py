from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Index, text
from sqlalchemy.sql import func

from prizedrop.models.giveaway import Base, new_id


class Entry(Base):
    __tablename__ = "entries"
    __table_args__ = (
        UniqueConstraint("giveaway_id", "user_id", name="uq_entries_giveaway_user"),
        Index(
            "uq_entries_one_winner",
            "giveaway_id",
            unique=True,
            postgresql_where=text("is_winner"),
            sqlite_where=text("is_winner = 1"),
        ),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    giveaway_id = Column(String(32), ForeignKey("giveaways.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, nullable=False)
    user_name = Column(String, nullable=True)
    is_winner = Column(Boolean, nullable=False, default=False)
    entered_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
