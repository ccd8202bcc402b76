"""
Unit tests for match result scoring.

The lexically smaller player id is read as player "A" when scoring,
whichever table seat it was recorded in.
"""

import pytest

from genki.match_results import (
    DRAW,
    LOSS,
    WIN,
    MatchResult,
    score_for_player,
)


class TestScoreForPlayer:
    """Scores in the lexical seat convention."""

    @pytest.mark.parametrize(
        "result,score_alice,score_bob",
        [
            (MatchResult.PLAYER_A_WIN, WIN, LOSS),
            (MatchResult.PLAYER_B_WIN, LOSS, WIN),
            (MatchResult.DRAW, DRAW, DRAW),
            (MatchResult.INTENTIONAL_DRAW, DRAW, DRAW),
            (MatchResult.DOUBLE_LOSS, LOSS, LOSS),
            (MatchResult.PLAYER_A_DQ, LOSS, WIN),
            (MatchResult.PLAYER_B_DQ, WIN, LOSS),
        ],
    )
    def test_all_results(self, result, score_alice, score_bob):
        # "alice" < "bob", so alice is seat A
        assert score_for_player(result, "alice", "bob") == score_alice
        assert score_for_player(result, "bob", "alice") == score_bob

    def test_accepts_raw_strings(self):
        assert score_for_player("PLAYER_A_WIN", "alice", "bob") == WIN

    def test_double_loss_is_not_complementary(self):
        assert score_for_player("DOUBLE_LOSS", "alice", "bob") + score_for_player(
            "DOUBLE_LOSS", "bob", "alice"
        ) == 0.0

    def test_self_pairing_rejected(self):
        with pytest.raises(ValueError):
            score_for_player(MatchResult.PLAYER_A_WIN, "alice", "alice")

    def test_unknown_result_rejected(self):
        with pytest.raises(ValueError):
            score_for_player("FORFEIT", "alice", "bob")


class TestLexicalPlayerA:
    """The lexically smaller id reads as player A wherever it was seated."""

    def test_smaller_id_takes_a_win(self):
        # Recorded with zed in seat A; amy still sorts first
        assert score_for_player(MatchResult.PLAYER_A_WIN, "amy", "zed") == WIN
        assert score_for_player(MatchResult.PLAYER_A_WIN, "zed", "amy") == LOSS

    def test_smaller_id_takes_a_dq(self):
        assert score_for_player(MatchResult.PLAYER_A_DQ, "amy", "zed") == LOSS
        assert score_for_player(MatchResult.PLAYER_A_DQ, "zed", "amy") == WIN

    def test_scores_are_complementary(self):
        for result in (MatchResult.PLAYER_A_WIN, MatchResult.PLAYER_B_WIN, MatchResult.DRAW,
                       MatchResult.PLAYER_A_DQ, MatchResult.PLAYER_B_DQ):
            assert score_for_player(result, "zed", "amy") + score_for_player(result, "amy", "zed") == 1.0
