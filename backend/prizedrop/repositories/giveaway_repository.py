from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import aliased

from prizedrop.errors import DuplicateEntry
from prizedrop.models.giveaway import Giveaway
from prizedrop.models.entry import Entry
from prizedrop.models.deposit import PendingDeposit

logger = logging.getLogger(__name__)


class GiveawayRepository:
    """Transactional access to giveaways and their entries.

    Every method runs in its own session and commits before returning, so the
    conditional writes below are the only serialisation point across
    processes.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_giveaway(self, **values) -> Giveaway:
        """Insert a giveaway. A concurrent insert with the same deposit_key yields the stored row."""
        giveaway = Giveaway(**values)
        async with self.session_factory() as session:
            session.add(giveaway)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = None
                if values.get("deposit_key"):
                    existing = await self.get_giveaway_by_deposit_key(values["deposit_key"])
                if existing is None:
                    raise
                return existing
            await session.refresh(giveaway)
        return giveaway

    async def save_pending_deposit(self, **values) -> PendingDeposit:
        """Store a charged draft. Re-saving an existing deposit_key returns the stored row unchanged."""
        deposit = PendingDeposit(**values)
        async with self.session_factory() as session:
            session.add(deposit)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = await self.get_pending_deposit(values["deposit_key"])
                if existing is None:
                    raise
                return existing
            await session.refresh(deposit)
        return deposit

    async def get_pending_deposit(self, deposit_key: str) -> Optional[PendingDeposit]:
        async with self.session_factory() as session:
            result = await session.execute(select(PendingDeposit).where(PendingDeposit.deposit_key == deposit_key))
            return result.scalar_one_or_none()

    async def get_giveaway_by_id(self, giveaway_id: str) -> Optional[Giveaway]:
        async with self.session_factory() as session:
            result = await session.execute(select(Giveaway).where(Giveaway.id == giveaway_id))
            return result.scalar_one_or_none()

    async def get_giveaway_by_deposit_key(self, deposit_key: str) -> Optional[Giveaway]:
        async with self.session_factory() as session:
            result = await session.execute(select(Giveaway).where(Giveaway.deposit_key == deposit_key))
            return result.scalar_one_or_none()

    async def list_giveaways_by_company(self, company_id: str) -> List[Giveaway]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Giveaway)
                .where(Giveaway.company_id == company_id)
                .order_by(Giveaway.created_at.desc(), Giveaway.id)
            )
            return list(result.scalars().all())

    async def update_giveaway_payout_id(self, giveaway_id: str, payout_id: str) -> bool:
        """Set payout_id unless one is already recorded. Returns False when it was."""
        return await self._set_once(giveaway_id, Giveaway.payout_id, payout_id)

    async def mark_start_notified(self, giveaway_id: str, when: datetime) -> bool:
        return await self._set_once(giveaway_id, Giveaway.start_notified_at, when)

    async def mark_settled(self, giveaway_id: str, when: datetime) -> bool:
        return await self._set_once(giveaway_id, Giveaway.settled_at, when)

    async def _set_once(self, giveaway_id: str, column, value) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(Giveaway)
                .where(Giveaway.id == giveaway_id, column.is_(None))
                .values({column.key: value})
            )
            await session.commit()
            return result.rowcount == 1

    async def create_entry(self, giveaway_id: str, user_id: str, user_name: Optional[str], entered_at: datetime) -> Entry:
        """Insert an entry; the (giveaway_id, user_id) unique constraint decides duplicates"""
        entry = Entry(
            giveaway_id=giveaway_id,
            user_id=user_id,
            user_name=user_name,
            is_winner=False,
            entered_at=entered_at,
        )
        async with self.session_factory() as session:
            session.add(entry)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateEntry("User has already entered this giveaway")
            await session.refresh(entry)
        return entry

    async def list_entries_by_giveaway(self, giveaway_id: str) -> List[Entry]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Entry)
                .where(Entry.giveaway_id == giveaway_id)
                .order_by(Entry.entered_at.asc(), Entry.id)
            )
            return list(result.scalars().all())

    async def get_winner(self, giveaway_id: str) -> Optional[Entry]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Entry).where(Entry.giveaway_id == giveaway_id, Entry.is_winner.is_(True))
            )
            return result.scalar_one_or_none()

    async def mark_entry_winner(self, giveaway_id: str, entry_id: str) -> bool:
        """Flag entry_id as the winner only if the giveaway has no winner yet.

        The "no existing winner" check and the write are one UPDATE statement;
        the partial unique index on winners backs it up. Returns False when
        another caller got there first.
        """
        winners = aliased(Entry)
        has_winner = (
            select(winners.id)
            .where(winners.giveaway_id == giveaway_id, winners.is_winner.is_(True))
            .exists()
        )
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    update(Entry)
                    .where(Entry.id == entry_id, Entry.giveaway_id == giveaway_id, ~has_winner)
                    .values(is_winner=True)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(f"Winner already marked for giveaway {giveaway_id} by a concurrent settlement")
                return False
            return result.rowcount == 1
