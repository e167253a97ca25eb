"""Game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from game.server.types import InboundLimits
from game.session.models import MatchTimings
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "GAME_"}

    log_dir: str = Field(default="backend/logs/game", min_length=1)
    history_dir: str = Field(default="backend/data/history", min_length=1)
    cors_origins: list[str] = ["http://localhost:8712"]

    # 20 minutes for a disconnected player to come back under the same name.
    player_eviction_seconds: float = Field(default=1200.0, ge=0)
    room_deletion_seconds: float = Field(default=5.0, ge=0)
    round_transition_seconds: float = Field(default=3.0, ge=0)

    default_history_limit: int = Field(default=50, ge=1, le=500)

    message_rate: float = Field(default=10.0, gt=0)
    message_burst: int = Field(default=20, ge=1)
    max_decode_errors: int = Field(default=5, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    def match_timings(self) -> MatchTimings:
        return MatchTimings(
            player_eviction_seconds=self.player_eviction_seconds,
            room_deletion_seconds=self.room_deletion_seconds,
            round_transition_seconds=self.round_transition_seconds,
        )

    def inbound_limits(self) -> InboundLimits:
        return InboundLimits(
            message_rate=self.message_rate,
            message_burst=self.message_burst,
            max_decode_errors=self.max_decode_errors,
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
