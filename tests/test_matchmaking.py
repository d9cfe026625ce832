import pytest

from jobtracker.errors import InvalidTransition
from jobtracker.services.matchmaking import GameAllocator, InMemoryGameAllocator, Matchmaker, SqlGameAllocator
from jobtracker.services.task_queue import TaskQueue
from jobtracker.store import SqlJobStore


async def _join(queue: TaskQueue, *owners: str):
    jobs = []
    for owner in owners:
        job, _ = await queue.join_matchmaking(owner)
        jobs.append(job)
    return jobs


@pytest.mark.anyio
async def test_pairs_waiting_players_oldest_first(memory_queue):
    a, b, c = await _join(memory_queue, "alice", "bob", "carol")

    games = await Matchmaker(memory_queue, InMemoryGameAllocator(start=42)).run_once()

    assert len(games) == 1
    assert games[0].id == 42
    assert {games[0].player_one, games[0].player_two} == {"alice", "bob"}

    job_a = await memory_queue.get_task(a.id)
    job_b = await memory_queue.get_task(b.id)
    assert job_a.status == job_b.status == "completed"
    assert job_a.output.game_id == job_b.output.game_id == 42
    assert job_a.output.opponent == "bob"
    assert job_b.output.opponent == "alice"

    # carol keeps waiting for the next pass
    assert (await memory_queue.get_task(c.id)).status == "pending"


@pytest.mark.anyio
async def test_single_player_keeps_waiting(memory_queue):
    (a,) = await _join(memory_queue, "alice")

    assert await Matchmaker(memory_queue, InMemoryGameAllocator()).run_once() == []
    assert (await memory_queue.get_task(a.id)).status == "pending"


@pytest.mark.anyio
async def test_does_not_pair_a_player_with_themselves(memory_queue):
    from jobtracker.schemas.job import MatchmakingInput

    # two jobs for the same owner can exist if created directly
    first = await memory_queue.create_task("alice", MatchmakingInput())
    second = await memory_queue.create_task("alice", MatchmakingInput())
    (bob,) = await _join(memory_queue, "bob")

    games = await Matchmaker(memory_queue, InMemoryGameAllocator()).run_once()

    assert len(games) == 1
    assert {games[0].player_one, games[0].player_two} == {"alice", "bob"}
    assert (await memory_queue.get_task(first.id)).status == "completed"
    assert (await memory_queue.get_task(second.id)).status == "pending"
    assert (await memory_queue.get_task(bob.id)).status == "completed"


@pytest.mark.anyio
async def test_allocation_failure_fails_both_jobs(memory_queue):
    class _Broken(GameAllocator):
        async def allocate(self, player_one, player_two):
            raise RuntimeError("game service down")

    a, b = await _join(memory_queue, "alice", "bob")

    assert await Matchmaker(memory_queue, _Broken()).run_once() == []

    for job_id in (a.id, b.id):
        job = await memory_queue.get_task(job_id)
        assert job.status == "failed"
        assert job.error.code == "game_allocation_failed"


def _lose_claim_on(queue: TaskQueue, job_id: str) -> None:
    """Make claiming ``job_id`` fail as if another matchmaker got there first."""

    real_advance = queue.advance

    async def advance(target_id, new_status, **kwargs):
        if target_id == job_id and new_status == "processing":
            raise InvalidTransition(target_id, "processing", "processing")
        return await real_advance(target_id, new_status, **kwargs)

    queue.advance = advance


@pytest.mark.anyio
async def test_stale_snapshot_skips_claimed_player_and_pairs_the_rest(memory_queue):
    alice, bob, carol = await _join(memory_queue, "alice", "bob", "carol")
    snapshot = await memory_queue.store.list_jobs(kind="matchmaking", status="pending")

    # another matchmaker claims alice after our snapshot was taken
    await memory_queue.advance(alice.id, "processing")

    async def stale_list_jobs(**kwargs):
        return list(snapshot)

    memory_queue.store.list_jobs = stale_list_jobs

    games = await Matchmaker(memory_queue, InMemoryGameAllocator(start=7)).run_once()

    assert [(g.player_one, g.player_two) for g in games] == [("bob", "carol")]
    assert (await memory_queue.get_task(alice.id)).status == "processing"
    for job_id, opponent in ((bob.id, "carol"), (carol.id, "bob")):
        job = await memory_queue.get_task(job_id)
        assert job.status == "completed"
        assert job.output.game_id == 7
        assert job.output.opponent == opponent


@pytest.mark.anyio
async def test_lost_partner_is_replaced_by_next_waiting_player(memory_queue):
    alice, bob, carol = await _join(memory_queue, "alice", "bob", "carol")
    _lose_claim_on(memory_queue, bob.id)

    games = await Matchmaker(memory_queue, InMemoryGameAllocator()).run_once()

    assert [(g.player_one, g.player_two) for g in games] == [("alice", "carol")]
    assert (await memory_queue.get_task(alice.id)).status == "completed"
    assert (await memory_queue.get_task(carol.id)).status == "completed"
    assert (await memory_queue.get_task(bob.id)).status == "pending"


@pytest.mark.anyio
async def test_claimed_player_with_no_partner_left_is_failed_with_requeue(memory_queue):
    alice, bob = await _join(memory_queue, "alice", "bob")
    _lose_claim_on(memory_queue, bob.id)

    assert await Matchmaker(memory_queue, InMemoryGameAllocator()).run_once() == []

    job_a = await memory_queue.get_task(alice.id)
    assert job_a.status == "failed"
    assert job_a.error.code == "requeue"
    assert (await memory_queue.get_task(bob.id)).status == "pending"


@pytest.mark.anyio
async def test_sql_allocator_persists_game_sessions(sessionmaker):
    ids = iter(f"job-{n}" for n in range(1, 10))
    # ordered ids so rows created within the same microsecond still sort FIFO
    queue = TaskQueue(SqlJobStore(sessionmaker), id_factory=lambda: next(ids))
    a, b, c, d = await _join(queue, "alice", "bob", "carol", "dave")

    games = await Matchmaker(queue, SqlGameAllocator(sessionmaker)).run_once()

    assert len(games) == 2
    assert games[0].id != games[1].id
    assert (await queue.get_task(a.id)).output.game_id == games[0].id
    assert (await queue.get_task(d.id)).output.game_id == games[1].id
