"""Play a solo match against the candidate-elimination solver in the terminal.

Usage: uv run python bin/play-solo.py [--name NAME] [--seed N] [--record]

With --record the result is appended to the history log in GAME_HISTORY_DIR,
the same file the game server reads for /api/history.
"""

import argparse
import asyncio
import random
import sys
from datetime import UTC, datetime
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from game.logic.exceptions import GameRuleError
from game.logic.solo import SoloMatch, SoloWinner
from game.server.settings import GameServerSettings
from game.server.types import SOLO_ROOM_NAME
from shared.dal.models import MatchRecord
from shared.storage import JsonlHistoryStorage

SOLVER_NAME = "AI"


def parse_digits(text: str) -> list[int]:
    """Turn '0123' or '0 1 2 3' into a digit list. Shape is checked by the match."""
    return [int(c) for c in text if c.isdigit()]


def format_digits(digits: tuple[int, ...]) -> str:
    return "".join(str(d) for d in digits)


def prompt(label: str, action) -> None:
    while True:
        try:
            action(parse_digits(input(label)))
            return
        except GameRuleError as e:
            print(f"  rejected: {e}")


def play(match: SoloMatch) -> None:
    prompt("Your secret (4 distinct digits): ", match.set_secret)
    while not match.is_over:
        prompt("Your guess: ", match.guess)
        turn = match.turns[-1]
        print(f"  you   {format_digits(turn.guess)}: {turn.score.exact} exact, {turn.score.misplaced} misplaced")
        if turn.solver_guess is not None and turn.solver_score is not None:
            print(
                f"  {SOLVER_NAME:<5} {format_digits(turn.solver_guess)}: "
                f"{turn.solver_score.exact} exact, {turn.solver_score.misplaced} misplaced "
                f"({match.solver.candidate_count} candidates left)",
            )


async def record(match: SoloMatch, player_name: str) -> None:
    settings = GameServerSettings()
    won = match.winner == SoloWinner.PLAYER
    result = MatchRecord(
        recorded_at=datetime.now(UTC),
        room_name=SOLO_ROOM_NAME,
        winner_name=player_name if won else SOLVER_NAME,
        loser_name=SOLVER_NAME if won else player_name,
        source="solo",
    )
    await JsonlHistoryStorage(settings.history_dir).record_match(result)
    print(f"Result saved to {settings.history_dir}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Solo match against the solver")
    parser.add_argument("--name", default="Player")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--record", action="store_true")
    args = parser.parse_args()

    match = SoloMatch(rng=random.Random(args.seed))  # noqa: S311
    try:
        play(match)
    except (EOFError, KeyboardInterrupt):
        print()
        sys.exit(1)

    if match.winner == SoloWinner.PLAYER:
        print(f"Home run! You won in {len(match.turns)} guesses.")
    else:
        print(f"{SOLVER_NAME} hit your secret in {match.solver.attempts} guesses.")
        print(f"Its secret was {format_digits(match.solver_secret)}.")

    if args.record:
        asyncio.run(record(match, args.name))


if __name__ == "__main__":
    main()
