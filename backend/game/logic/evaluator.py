"""Guess scoring for the four-digit deduction game.

A secret (and every guess) is a sequence of four distinct decimal digits.
Scoring counts exact hits (right digit, right position) and misplaced hits
(digit present in the secret but at another position). Four exact hits is a
home run and wins the round.

The same scoring is used by networked rooms, solo matches and the solver,
so the three can never disagree about a result.
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass
from itertools import permutations

from game.logic.exceptions import InvalidDigitsError

DIGIT_COUNT = 4
DIGIT_VALUES = range(10)

Digits = tuple[int, ...]


@dataclass(frozen=True)
class GuessScore:
    """Result of comparing a guess against a secret."""

    exact: int
    misplaced: int

    @property
    def is_home_run(self) -> bool:
        return self.exact == DIGIT_COUNT


def evaluate(guess: Sequence[int], secret: Sequence[int]) -> GuessScore:
    """Score a guess against a secret.

    Pure and total: never raises, even for inputs that fail validation.
    Callers are responsible for passing well-formed digit sequences.
    """
    exact = 0
    misplaced = 0
    for position, digit in enumerate(guess):
        if position < len(secret) and secret[position] == digit:
            exact += 1
        elif digit in secret:
            misplaced += 1
    return GuessScore(exact=exact, misplaced=misplaced)


def is_valid_digits(digits: object) -> bool:
    """Return True for exactly four distinct integers in 0..9."""
    if not isinstance(digits, (list, tuple)) or len(digits) != DIGIT_COUNT:
        return False
    # bool is an int subclass; True/False are not digits
    if not all(isinstance(d, int) and not isinstance(d, bool) and d in DIGIT_VALUES for d in digits):
        return False
    return len(set(digits)) == DIGIT_COUNT


def validate_digits(digits: object) -> Digits:
    """Return digits as a tuple, or raise InvalidDigitsError."""
    if not is_valid_digits(digits):
        raise InvalidDigitsError(f"expected {DIGIT_COUNT} distinct digits 0-9, got {digits!r}")
    return tuple(digits)  # type: ignore[arg-type]


def random_secret(rng: random.Random | None = None) -> Digits:
    """Draw a uniformly random valid secret."""
    rng = rng or random.Random()  # noqa: S311
    return tuple(rng.sample(DIGIT_VALUES, DIGIT_COUNT))


def all_secrets() -> list[Digits]:
    """Every valid secret (5040 of them), in lexicographic order."""
    return list(permutations(DIGIT_VALUES, DIGIT_COUNT))
