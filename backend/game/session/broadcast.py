"""Shared broadcast utility for sending messages to player groups."""

import contextlib
from collections.abc import Iterable
from typing import Any

from game.session.models import Player


async def broadcast_to_players(
    players: Iterable[Player],
    message: dict[str, Any],
    exclude_player_id: str | None = None,
) -> None:
    """Send a message to every connected player, skipping one if excluded.

    Snapshot the iterable via list() so a concurrent leave cannot mutate it
    while we yield on send_message. Disconnected players are skipped and
    send failures on dead sockets are ignored.
    """
    for player in list(players):
        if player.player_id == exclude_player_id or player.connection is None:
            continue
        with contextlib.suppress(RuntimeError, OSError):
            await player.connection.send_message(message)
