import pytest

from lemonjudge.scoring import (
    MX_DEPEND_VALUE,
    CompileState,
    ResultState,
    state_to_status,
    status_ranking_text,
    status_to_score,
)


def test_correct_answer_gives_full_status():
    assert state_to_status(ResultState.CORRECT_ANSWER, 0, 10) == MX_DEPEND_VALUE


def test_partly_correct_with_zero_full_score_gives_full_status():
    assert state_to_status(ResultState.PARTLY_CORRECT, 0, 0) == MX_DEPEND_VALUE


@pytest.mark.parametrize("result", [ResultState.WRONG_ANSWER, ResultState.TIME_LIMIT_EXCEEDED])
def test_no_score_is_lost(result):
    assert state_to_status(result, 0, 10) == -1


@pytest.mark.parametrize("score", range(1, 10))
def test_partial_status_round_trips_to_score(score):
    status = state_to_status(ResultState.PARTLY_CORRECT, score, 10)
    assert 0 < status < MX_DEPEND_VALUE
    assert status_to_score(status, 10) == score


def test_status_to_score_truncates_toward_zero():
    assert status_to_score(-1, 100) == 0


def test_full_status_gives_full_score():
    assert status_to_score(MX_DEPEND_VALUE, 37) == 37


def test_ranking_text_pure_and_lost():
    assert status_ranking_text(MX_DEPEND_VALUE) == "Pure"
    assert status_ranking_text(MX_DEPEND_VALUE + 5) == "Pure"
    assert status_ranking_text(-1) == "Lost"


def test_ranking_text_percentage():
    assert status_ranking_text(MX_DEPEND_VALUE // 2) == "50.000%"


def test_status_is_monotonic_in_score():
    statuses = [state_to_status(ResultState.PARTLY_CORRECT, s, 7) for s in range(1, 7)]
    assert statuses == sorted(statuses)


def test_enums_round_trip_through_int():
    for state in ResultState:
        assert ResultState(int(state)) is state
    for state in CompileState:
        assert CompileState(int(state)) is state