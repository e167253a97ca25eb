"""Single-player match against the candidate-elimination solver.

The human picks a secret, the solver draws a random one, and the two
alternate guesses with the human moving first. Every miss by the human is
answered by one solver guess. Scoring goes through the same evaluator that
networked rooms use.
"""

import random
from dataclasses import dataclass, field
from enum import StrEnum

from game.logic.evaluator import Digits, GuessScore, evaluate, random_secret, validate_digits
from game.logic.exceptions import SecretAlreadySetError, WrongPhaseError
from game.logic.solver import CandidateSolver


class SoloWinner(StrEnum):
    PLAYER = "player"
    SOLVER = "solver"


@dataclass(frozen=True)
class SoloTurn:
    """Outcome of one human guess plus the solver's reply (if the round went on)."""

    guess: Digits
    score: GuessScore
    solver_guess: Digits | None = None
    solver_score: GuessScore | None = None
    winner: SoloWinner | None = None


@dataclass
class SoloMatch:
    rng: random.Random = field(default_factory=random.Random)
    player_secret: Digits | None = None
    solver_secret: Digits = ()
    turns: list[SoloTurn] = field(default_factory=list)
    winner: SoloWinner | None = None

    def __post_init__(self) -> None:
        if not self.solver_secret:
            self.solver_secret = random_secret(self.rng)
        self._solver = CandidateSolver(rng=self.rng)

    @property
    def solver(self) -> CandidateSolver:
        return self._solver

    @property
    def is_over(self) -> bool:
        return self.winner is not None

    def set_secret(self, digits: object) -> None:
        """Fix the human's secret; it can only be chosen once."""
        secret = validate_digits(digits)
        if self.player_secret is not None:
            raise SecretAlreadySetError("secret already chosen")
        self.player_secret = secret

    def guess(self, digits: object) -> SoloTurn:
        """Score a human guess, then let the solver answer unless the human won."""
        if self.is_over:
            raise WrongPhaseError("match is over")
        if self.player_secret is None:
            raise WrongPhaseError("choose a secret before guessing")
        guess = validate_digits(digits)

        score = evaluate(guess, self.solver_secret)
        if score.is_home_run:
            self.winner = SoloWinner.PLAYER
            turn = SoloTurn(guess=guess, score=score, winner=self.winner)
            self.turns.append(turn)
            return turn

        solver_guess = self._solver.next_guess()
        solver_score = evaluate(solver_guess, self.player_secret)
        if solver_score.is_home_run:
            self.winner = SoloWinner.SOLVER
        else:
            self._solver.observe(solver_guess, solver_score)

        turn = SoloTurn(
            guess=guess,
            score=score,
            solver_guess=solver_guess,
            solver_score=solver_score,
            winner=self.winner,
        )
        self.turns.append(turn)
        return turn
