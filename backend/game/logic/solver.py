"""Candidate-elimination solver for the automated opponent.

The solver keeps every secret still consistent with the results it has
observed. After each guess it drops any candidate that would have produced
a different score for that guess, so the set only ever shrinks.
"""

import random

from game.logic.evaluator import Digits, GuessScore, all_secrets, evaluate, random_secret

# Attempts picked uniformly from the candidate set before switching to the
# middle-element strategy.
RANDOM_OPENING_ATTEMPTS = 2


class CandidateSolver:
    """Guess a hidden secret by narrowing down a candidate set.

    Inject ``rng`` for reproducible play in tests.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # noqa: S311
        self._candidates: list[Digits] = all_secrets()
        self._attempts = 0

    @property
    def candidates(self) -> list[Digits]:
        return self._candidates.copy()

    @property
    def candidate_count(self) -> int:
        return len(self._candidates)

    @property
    def attempts(self) -> int:
        return self._attempts

    def reset(self) -> None:
        """Start over with the full universe of secrets."""
        self._candidates = all_secrets()
        self._attempts = 0

    def next_guess(self) -> Digits:
        """Choose the next guess and count the attempt.

        Falls back to a random valid secret when no candidate survives,
        which only happens if the observed scores were inconsistent.
        """
        self._attempts += 1
        if not self._candidates:
            return random_secret(self._rng)
        if self._attempts <= RANDOM_OPENING_ATTEMPTS:
            return self._rng.choice(self._candidates)
        return self._candidates[len(self._candidates) // 2]

    def observe(self, guess: Digits, score: GuessScore) -> None:
        """Keep only candidates that would have scored ``score`` against ``guess``."""
        self._candidates = [c for c in self._candidates if evaluate(guess, c) == score]
