from pydantic import BaseModel, ConfigDict, Field

from game.logic.enums import MatchMode

SOLO_ROOM_NAME = "AI match"


class SoloResultRequest(BaseModel):
    """Result of a finished solo match, submitted by the client."""

    model_config = ConfigDict(extra="forbid")

    winner_name: str = Field(min_length=1, max_length=50)
    loser_name: str = Field(min_length=1, max_length=50)
    room_name: str = Field(default=SOLO_ROOM_NAME, min_length=1, max_length=100)
    mode: MatchMode = MatchMode.SINGLE


class InboundLimits(BaseModel):
    """Per-connection throttles applied to raw frames before routing."""

    model_config = ConfigDict(frozen=True)

    # Play is turn-based; a well-behaved client sends a few intents per turn.
    message_rate: float = Field(default=10.0, gt=0)
    message_burst: int = Field(default=20, ge=1)
    max_decode_errors: int = Field(default=5, ge=1)
