from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobtracker.crud.game_session import create_game_session
from jobtracker.errors import InvalidTransition, JobConflict
from jobtracker.schemas.job import GameSessionRead, Job, JobErrorDetail, MatchmakingOutput
from jobtracker.services.task_queue import TaskQueue


logger = logging.getLogger("jobtracker.matchmaking")


class GameAllocator(ABC):
    @abstractmethod
    async def allocate(self, player_one: str, player_two: str) -> GameSessionRead:
        """Create a game session for two players and return it."""


class InMemoryGameAllocator(GameAllocator):
    def __init__(self, start: int = 1) -> None:
        self._ids = itertools.count(start)

    async def allocate(self, player_one: str, player_two: str) -> GameSessionRead:
        return GameSessionRead(id=next(self._ids), player_one=player_one, player_two=player_two)


class SqlGameAllocator(GameAllocator):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def allocate(self, player_one: str, player_two: str) -> GameSessionRead:
        async with self._sessionmaker() as session:
            game = await create_game_session(session, player_one=player_one, player_two=player_two)
            await session.commit()
            return GameSessionRead.model_validate(game)


class Matchmaker:
    """Pair waiting matchmaking jobs into game sessions, oldest first.

    Both jobs are claimed (pending -> processing) before a game is allocated,
    so two matchmakers running at once cannot hand one job two games. The
    waiting list is a snapshot: a job claimed elsewhere in the meantime is
    skipped. When the partner of an already claimed job is lost, the next
    waiting player is tried. Only when nobody is left is the claimed job
    failed with code ``requeue``, since a job cannot move back to pending.
    """

    def __init__(self, queue: TaskQueue, allocator: GameAllocator, *, batch_size: int = 100) -> None:
        self.queue = queue
        self.allocator = allocator
        self.batch_size = batch_size

    async def run_once(self) -> list[GameSessionRead]:
        waiting = await self.queue.store.list_jobs(kind="matchmaking", status="pending", limit=self.batch_size)

        games: list[GameSessionRead] = []
        while waiting:
            first = waiting.pop(0)
            if not any(j.owner != first.owner for j in waiting):
                # Everyone left is this same player.
                break

            claimed = await self._claim(first)
            if claimed is None:
                continue

            game = await self._match(claimed, waiting)
            if game is not None:
                games.append(game)

        if games:
            logger.info("matchmaking_pass games=%s still_waiting=%s", len(games), len(waiting))
        return games

    async def _claim(self, job: Job) -> Job | None:
        try:
            return await self.queue.advance(job.id, "processing")
        except (JobConflict, InvalidTransition):
            logger.info("matchmaking_claim_lost job_id=%s", job.id)
            return None

    async def _match(self, first: Job, waiting: list[Job]) -> GameSessionRead | None:
        """Find a partner for the claimed ``first``, consuming ``waiting`` as it goes."""

        while True:
            idx = next((i for i, j in enumerate(waiting) if j.owner != first.owner), None)
            if idx is None:
                await self._fail(first, JobErrorDetail(reason="opponent no longer available", code="requeue"))
                return None

            second = await self._claim(waiting.pop(idx))
            if second is not None:
                return await self._start_game(first, second)

    async def _start_game(self, first: Job, second: Job) -> GameSessionRead | None:
        try:
            game = await self.allocator.allocate(first.owner, second.owner)
        except Exception:
            logger.exception("game_allocation_failed jobs=%s,%s", first.id, second.id)
            for job in (first, second):
                await self._fail(job, JobErrorDetail(reason="could not create game session", code="game_allocation_failed"))
            return None

        for job, opponent in ((first, second.owner), (second, first.owner)):
            await self.queue.advance_with_retry(
                job.id,
                "completed",
                output=MatchmakingOutput(game_id=game.id, opponent=opponent),
            )

        logger.info("match_found game_id=%s players=%s,%s", game.id, first.owner, second.owner)
        return game

    async def _fail(self, job: Job, error: JobErrorDetail) -> None:
        await self.queue.advance_with_retry(job.id, "failed", error=error)
