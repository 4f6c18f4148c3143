import random

import pytest

import match_play_engine as mpe
from match_exceptions import InvalidScores

A, B = mpe.Side.A, mpe.Side.B


def _twelve_v_nine_plan():
    players = [
        mpe.Player(id="pA", name="A", course_handicap=12, side=A),
        mpe.Player(id="pB", name="B", course_handicap=9, side=B),
    ]
    segments = [
        mpe.Segment(id="s1", holes=[1, 2, 3], stroke_index_by_hole={1: 1, 2: 5, 3: 9}),
        mpe.Segment(id="s2", holes=[4, 5, 6], stroke_index_by_hole={4: 2, 5: 6, 6: 8}),
        mpe.Segment(id="s3", holes=[7, 8, 9], stroke_index_by_hole={7: 3, 8: 7, 9: 4}),
    ]
    # A receives one stroke on holes 1, 4 and 7
    return mpe.allocate_strokes(players, segments)


def test_settle_main_to_a_dormie_and_bye_to_b():
    res = mpe.evaluate_thirty_ten_ten(["A", "A", "H", "B", "A", "A", "A", "B", "B"])
    points = mpe.settle_thirty_ten_ten(res)

    # +30 Main, -10 Dormie, -10 Bye
    assert points == {A: 10, B: -10}


def test_settle_uses_custom_stakes():
    res = mpe.evaluate_thirty_ten_ten(["A", "A", "H", "B", "A", "A", "A", "B", "B"])
    points = mpe.settle_thirty_ten_ten(res, mpe.Stakes(main=50, dormie=5, bye=20))
    assert points == {A: 25, B: -25}


def test_void_frames_pay_nothing():
    res = mpe.evaluate_thirty_ten_ten(["H"] * 9)
    assert mpe.settle_thirty_ten_ten(res) == {A: 0, B: 0}


def test_settlement_is_zero_sum():
    rng = random.Random(3)
    for _ in range(200):
        outcomes = [rng.choice("ABH") for _ in range(9)]
        points = mpe.settle_thirty_ten_ten(mpe.evaluate_thirty_ten_ten(outcomes))
        assert points[A] + points[B] == 0
        assert abs(points[A]) <= mpe.MAIN_STAKE + mpe.DORMIE_STAKE + mpe.BYE_STAKE


def test_hole_outcome_lower_net_wins():
    assert mpe.hole_outcome(3, 4) is mpe.HoleOutcome.A
    assert mpe.hole_outcome(5, 4) is mpe.HoleOutcome.B
    assert mpe.hole_outcome(4, 4) is mpe.HoleOutcome.HALVE


def test_net_hole_outcomes_apply_handicap_strokes():
    plan = _twelve_v_nine_plan()
    holes = list(range(1, 10))
    gross = {
        A: {1: 5, 2: 4, 3: 5, 4: 5, 5: 4, 6: 3, 7: 4, 8: 5, 9: 4},
        B: {1: 4, 2: 4, 3: 4, 4: 5, 5: 5, 6: 4, 7: 4, 8: 4, 9: 4},
    }

    outcomes = mpe.net_hole_outcomes(gross, plan, holes)

    # H1: 5-1 = 4 v 4 halve; H4: 5-1 = 4 v 5 A; H7: 4-1 = 3 v 4 A
    assert [o.value for o in outcomes] == ["H", "H", "B", "A", "A", "A", "A", "B", "H"]


def test_scorecard_to_settlement_end_to_end():
    plan = _twelve_v_nine_plan()
    gross = {
        A: {1: 4, 2: 4, 3: 4, 4: 4, 5: 4, 6: 4, 7: 4, 8: 5, 9: 5},
        B: {1: 4, 2: 4, 3: 4, 4: 4, 5: 4, 6: 4, 7: 4, 8: 4, 9: 4},
    }
    # Strokes on 1, 4, 7 win those holes for A: 3-up after 7 with 2 to play
    outcomes = mpe.net_hole_outcomes(gross, plan, range(1, 10))
    res = mpe.evaluate_thirty_ten_ten(outcomes)

    assert res.main.winner is A
    assert res.main.triggered_at == 7
    assert res.dormie.triggered_at is None
    assert res.bye.winner is B
    assert mpe.settle_thirty_ten_ten(res) == {A: 20, B: -20}


def test_missing_gross_score_is_rejected():
    plan = _twelve_v_nine_plan()
    gross = {A: {h: 4 for h in range(1, 10)}, B: {h: 4 for h in range(1, 9)}}
    with pytest.raises(InvalidScores, match="hole 9"):
        mpe.net_hole_outcomes(gross, plan, range(1, 10))


def test_non_positive_gross_score_is_rejected():
    plan = _twelve_v_nine_plan()
    gross = {A: {h: 4 for h in range(1, 10)}, B: {h: 4 for h in range(1, 10)}}
    gross[A][3] = 0
    with pytest.raises(InvalidScores):
        mpe.net_hole_outcomes(gross, plan, range(1, 10))


def test_hole_outside_plan_is_rejected():
    plan = _twelve_v_nine_plan()
    gross = {A: {10: 4}, B: {10: 4}}
    with pytest.raises(InvalidScores, match="not part of the handicap plan"):
        mpe.net_hole_outcomes(gross, plan, [10])
