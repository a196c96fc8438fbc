import logging
import random
from typing import Optional

from prizedrop.models.entry import Entry
from prizedrop.repositories.giveaway_repository import GiveawayRepository

logger = logging.getLogger(__name__)


class WinnerSelector:
    """Draws one winner per giveaway, at most once.

    The draw uses an ordinary PRNG: the requirement is a uniform, fair pick,
    not an unpredictable one. Pass a seeded random.Random for reproducible
    draws. Concurrent selections are settled by the conditional winner mark
    in the repository, so whoever loses the race returns the stored winner.
    """

    def __init__(self, repository: GiveawayRepository, rng: random.Random = None):
        self.repository = repository
        self.rng = rng or random.Random()

    async def select_winner(self, giveaway_id: str) -> Optional[Entry]:
        """Return the giveaway's winner, drawing one if none is marked yet.

        Returns None when the giveaway has no entries.
        """
        entries = await self.repository.list_entries_by_giveaway(giveaway_id)
        if not entries:
            logger.info(f"Giveaway {giveaway_id} has no entries, no winner drawn")
            return None

        existing = next((entry for entry in entries if entry.is_winner), None)
        if existing:
            logger.info(f"Giveaway {giveaway_id} already has winner {existing.user_id}")
            return existing

        pick = entries[self.rng.randrange(len(entries))]
        if await self.repository.mark_entry_winner(giveaway_id, pick.id):
            pick.is_winner = True
            logger.info(f"Selected winner {pick.user_id} for giveaway {giveaway_id} out of {len(entries)} entries")
            return pick

        # another caller marked a winner between our read and write
        return await self.repository.get_winner(giveaway_id)
