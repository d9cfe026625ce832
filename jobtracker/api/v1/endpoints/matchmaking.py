from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from jobtracker.api.deps import get_game_allocator, get_task_queue
from jobtracker.schemas.job import Job, MatchmakingJoin, MatchmakingRunResponse
from jobtracker.services.matchmaking import GameAllocator, Matchmaker
from jobtracker.services.task_queue import TaskQueue
from jobtracker.worker import dispatch


router = APIRouter(prefix="/matchmaking", tags=["matchmaking"])


@router.post("", response_model=Job, status_code=status.HTTP_201_CREATED)
async def join_matchmaking_endpoint(
    payload: MatchmakingJoin,
    response: Response,
    queue: TaskQueue = Depends(get_task_queue),
) -> Job:
    """Join the matchmaking queue; poll GET /tasks/{id} for the game id.

    Joining again while already waiting returns the existing job (200).
    """

    job, created = await queue.join_matchmaking(payload.owner)
    if created:
        dispatch.enqueue_job(job)
    else:
        response.status_code = status.HTTP_200_OK
    return job


@router.post("/run", response_model=MatchmakingRunResponse)
async def run_matchmaking_endpoint(
    queue: TaskQueue = Depends(get_task_queue),
    allocator: GameAllocator = Depends(get_game_allocator),
) -> MatchmakingRunResponse:
    games = await Matchmaker(queue, allocator).run_once()
    return MatchmakingRunResponse(games=games)
