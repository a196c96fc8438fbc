import logging
from typing import Callable, List, Optional
from datetime import datetime

from prizedrop.errors import CreatorCannotEnter, GiveawayNotActive, NotFound
from prizedrop.models.entry import Entry
from prizedrop.repositories.giveaway_repository import GiveawayRepository
from prizedrop.services.status_service import GiveawayStatus, giveaway_status, utcnow

logger = logging.getLogger(__name__)


class EntryLedger:
    def __init__(self, repository: GiveawayRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    async def enter(self, giveaway_id: str, user_id: str, user_name: Optional[str] = None) -> Entry:
        """Admit a user into a giveaway.

        Raises NotFound, GiveawayNotActive, CreatorCannotEnter, or
        DuplicateEntry. Duplicates are detected by the storage constraint
        alone, never by reading first.
        """
        giveaway = await self.repository.get_giveaway_by_id(giveaway_id)
        if not giveaway:
            raise NotFound("Giveaway not found")

        now = self.clock()
        if giveaway_status(giveaway, now) != GiveawayStatus.ACTIVE:
            raise GiveawayNotActive("Giveaway is not currently active")

        if giveaway.creator_id == user_id:
            raise CreatorCannotEnter("Creators cannot enter their own giveaways")

        entry = await self.repository.create_entry(giveaway_id, user_id, user_name, entered_at=now)
        logger.info(f"User {user_id} entered giveaway {giveaway_id}")
        return entry

    async def list_entries(self, giveaway_id: str) -> List[Entry]:
        return await self.repository.list_entries_by_giveaway(giveaway_id)
