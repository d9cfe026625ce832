# Import models here so Alembic can discover them via metadata
from .base import Base  # noqa: F401
from .job import Job  # noqa: F401
from .game_session import GameSession  # noqa: F401
