from fastapi import APIRouter

from jobtracker.api.v1.endpoints.matchmaking import router as matchmaking_router
from jobtracker.api.v1.endpoints.tasks import router as tasks_router

router = APIRouter()
router.include_router(tasks_router)
router.include_router(matchmaking_router)
