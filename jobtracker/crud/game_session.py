from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from jobtracker.models.game_session import GameSession


async def create_game_session(session: AsyncSession, *, player_one: str, player_two: str) -> GameSession:
    game = GameSession(player_one=player_one, player_two=player_two)
    session.add(game)
    await session.flush()  # ensure game.id is available
    return game
