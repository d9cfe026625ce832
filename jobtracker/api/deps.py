from __future__ import annotations

from jobtracker.config import settings
from jobtracker.services.matchmaking import GameAllocator, InMemoryGameAllocator, SqlGameAllocator
from jobtracker.services.task_queue import TaskQueue, TaskQueueDefaults
from jobtracker.store import build_store


# One queue per process so the memory store is shared between requests.
_queue: TaskQueue | None = None
_allocator: GameAllocator | None = None


def get_task_queue() -> TaskQueue:
    global _queue

    if _queue is None:
        _queue = TaskQueue(
            build_store(settings),
            defaults=TaskQueueDefaults(advance_max_attempts=settings.advance_max_attempts),
        )
    return _queue


def get_game_allocator() -> GameAllocator:
    global _allocator

    if _allocator is None:
        if settings.job_store == "sql":
            from jobtracker.database import SessionLocal

            _allocator = SqlGameAllocator(SessionLocal)
        else:
            _allocator = InMemoryGameAllocator()
    return _allocator
