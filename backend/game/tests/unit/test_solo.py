import random

import pytest

from game.logic.evaluator import evaluate
from game.logic.exceptions import InvalidDigitsError, SecretAlreadySetError, WrongPhaseError
from game.logic.solo import SoloMatch, SoloWinner


def _losing_guess(match):
    """Any valid guess that is not the solver's secret."""
    for candidate in ((0, 1, 2, 3), (4, 5, 6, 7)):
        if candidate != match.solver_secret:
            return candidate
    raise AssertionError("unreachable")


class TestSoloMatch:
    def test_solver_secret_drawn_on_creation(self):
        match = SoloMatch(rng=random.Random(1))
        assert len(match.solver_secret) == 4
        assert len(set(match.solver_secret)) == 4

    def test_guess_before_secret_rejected(self):
        match = SoloMatch(rng=random.Random(1))
        with pytest.raises(WrongPhaseError):
            match.guess([0, 1, 2, 3])

    def test_secret_can_only_be_set_once(self):
        match = SoloMatch(rng=random.Random(1))
        match.set_secret([1, 2, 3, 4])
        with pytest.raises(SecretAlreadySetError):
            match.set_secret([5, 6, 7, 8])
        assert match.player_secret == (1, 2, 3, 4)

    def test_invalid_secret_rejected(self):
        match = SoloMatch(rng=random.Random(1))
        with pytest.raises(InvalidDigitsError):
            match.set_secret([1, 1, 2, 3])
        assert match.player_secret is None

    def test_player_home_run_wins_without_solver_reply(self):
        match = SoloMatch(rng=random.Random(1), solver_secret=(9, 8, 7, 6))
        match.set_secret([1, 2, 3, 4])
        turn = match.guess([9, 8, 7, 6])
        assert turn.winner == SoloWinner.PLAYER
        assert turn.solver_guess is None
        assert match.is_over
        assert match.solver.attempts == 0

    def test_miss_is_answered_by_solver(self):
        match = SoloMatch(rng=random.Random(4))
        match.set_secret([1, 2, 3, 4])
        turn = match.guess(_losing_guess(match))
        assert turn.score == evaluate(turn.guess, match.solver_secret)
        assert turn.solver_guess is not None
        assert turn.solver_score == evaluate(turn.solver_guess, (1, 2, 3, 4))
        assert match.solver.attempts == 1

    def test_solver_eventually_wins_against_a_stubborn_player(self):
        match = SoloMatch(rng=random.Random(6), solver_secret=(9, 8, 7, 6))
        match.set_secret([1, 2, 3, 4])
        for _ in range(20):
            if match.is_over:
                break
            match.guess([0, 1, 2, 3])
        assert match.winner == SoloWinner.SOLVER
        assert match.turns[-1].solver_score.is_home_run

    def test_no_guesses_after_match_is_over(self):
        match = SoloMatch(rng=random.Random(1), solver_secret=(9, 8, 7, 6))
        match.set_secret([1, 2, 3, 4])
        match.guess([9, 8, 7, 6])
        with pytest.raises(WrongPhaseError):
            match.guess([9, 8, 7, 6])
        assert len(match.turns) == 1
