"""Persistence models for the data access layer."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class MatchRecord(BaseModel, frozen=True):
    """Outcome of a finished match, appended to the history log."""

    recorded_at: datetime
    room_id: str | None = None  # None for solo matches
    room_name: str = Field(max_length=100)
    winner_name: str = Field(max_length=50)
    loser_name: str = Field(max_length=50)
    mode: str = "single"  # "single" | "best_of_3"
    source: Literal["online", "solo"] = "online"


class UserEvent(BaseModel, frozen=True):
    """A player entering or leaving the server."""

    recorded_at: datetime
    action: Literal["join", "leave"]
    player_id: str
    player_name: str
