"""Winner selection.

The draw uses random.Random, a non-cryptographic PRNG: the property under
test is a fair, uniform pick made at most once per giveaway, not
unpredictability. Tests seed the generator to get reproducible draws.
"""
import asyncio
import random

import pytest

from prizedrop.services.entry_service import EntryLedger
from prizedrop.services.winner_service import WinnerSelector


@pytest.fixture
def ledger(repository, clock):
    return EntryLedger(repository, clock)


@pytest.fixture
async def giveaway_with_entries(make_giveaway, ledger, clock):
    giveaway = await make_giveaway()
    for user_id in ["u1", "u2", "u3", "u4"]:
        await ledger.enter(giveaway.id, user_id)
        clock.advance(seconds=1)
    return giveaway


async def winners_of(repository, giveaway_id):
    return [e for e in await repository.list_entries_by_giveaway(giveaway_id) if e.is_winner]


async def test_no_entries_returns_none_and_changes_nothing(repository, make_giveaway):
    giveaway = await make_giveaway()
    selector = WinnerSelector(repository, random.Random(1))

    assert await selector.select_winner(giveaway.id) is None
    assert await repository.list_entries_by_giveaway(giveaway.id) == []


async def test_seeded_draw_is_reproducible(repository, giveaway_with_entries):
    entries = await repository.list_entries_by_giveaway(giveaway_with_entries.id)
    expected = entries[random.Random(3).randrange(len(entries))]

    winner = await WinnerSelector(repository, random.Random(3)).select_winner(giveaway_with_entries.id)

    assert winner.id == expected.id
    assert winner.is_winner is True


async def test_second_selection_returns_first_winner(repository, giveaway_with_entries):
    selector = WinnerSelector(repository, random.Random(11))

    first = await selector.select_winner(giveaway_with_entries.id)
    second = await selector.select_winner(giveaway_with_entries.id)
    third = await WinnerSelector(repository, random.Random(999)).select_winner(giveaway_with_entries.id)

    assert first.id == second.id == third.id
    assert [w.id for w in await winners_of(repository, giveaway_with_entries.id)] == [first.id]


async def test_concurrent_selection_on_one_selector(repository, giveaway_with_entries):
    selector = WinnerSelector(repository, random.Random(5))

    results = await asyncio.gather(*(selector.select_winner(giveaway_with_entries.id) for _ in range(5)))

    assert len({r.id for r in results}) == 1
    assert len(await winners_of(repository, giveaway_with_entries.id)) == 1


async def test_concurrent_selection_across_selectors(repository, giveaway_with_entries):
    # separate selectors, like two worker processes
    selectors = [WinnerSelector(repository, random.Random(seed)) for seed in range(4)]

    results = await asyncio.gather(*(s.select_winner(giveaway_with_entries.id) for s in selectors))

    marked = await winners_of(repository, giveaway_with_entries.id)
    assert len(marked) == 1
    assert {r.id for r in results} == {marked[0].id}


async def test_conditional_mark_refuses_a_second_winner(repository, giveaway_with_entries):
    first, second = (await repository.list_entries_by_giveaway(giveaway_with_entries.id))[:2]

    assert await repository.mark_entry_winner(giveaway_with_entries.id, first.id) is True
    assert await repository.mark_entry_winner(giveaway_with_entries.id, second.id) is False
    assert (await repository.get_winner(giveaway_with_entries.id)).id == first.id


async def test_every_entry_can_win(repository, make_giveaway, ledger):
    # one fresh giveaway per seed; across seeds every entrant should come up
    seen = set()
    for seed in range(40):
        giveaway = await make_giveaway(title=f"Draw {seed}")
        for user_id in ["u1", "u2", "u3"]:
            await ledger.enter(giveaway.id, user_id)
        winner = await WinnerSelector(repository, random.Random(seed)).select_winner(giveaway.id)
        seen.add(winner.user_id)
    assert seen == {"u1", "u2", "u3"}
