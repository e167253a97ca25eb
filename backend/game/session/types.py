"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel

from game.logic.enums import MatchMode, RoomPhase


class RoomInfo(BaseModel):
    """Room information for lobby listing."""

    room_id: str
    name: str
    player_count: int
    max_players: int
    phase: RoomPhase
    mode: MatchMode
    players: list[str]
