"""Result and compile states, and the arithmetic of subtask dependences."""

from __future__ import annotations

from enum import IntEnum

MX_DEPEND_VALUE = 1_000_000
"""Status value of a subtask that was solved completely."""


class ResultState(IntEnum):
    """Verdict of a single test run."""

    CORRECT_ANSWER = 0
    WRONG_ANSWER = 1
    PARTLY_CORRECT = 2
    TIME_LIMIT_EXCEEDED = 3
    MEMORY_LIMIT_EXCEEDED = 4
    CANNOT_START_PROGRAM = 5
    FILE_ERROR = 6
    RUN_TIME_ERROR = 7
    INVALID_SPECIAL_JUDGE = 8
    SPECIAL_JUDGE_TIME_LIMIT_EXCEEDED = 9
    SPECIAL_JUDGE_RUN_TIME_ERROR = 10
    SKIPPED = 11
    INTERACTOR_ERROR = 12
    PRESENTATION_ERROR = 13
    OUTPUT_LIMIT_EXCEEDED = 14


class CompileState(IntEnum):
    """Outcome of preparing a contestant's source for a task."""

    COMPILE_SUCCESSFULLY = 0
    NO_VALID_SOURCE_FILE = 1
    COMPILE_ERROR = 2
    COMPILE_TIME_LIMIT_EXCEEDED = 3
    INVALID_COMPILER = 4
    NO_VALID_GRADER_FILE = 5


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def state_to_status(result: ResultState, score: int, full_score: int) -> int:
    """Turn a run's verdict and score into a dependence status.

    Full marks map to MX_DEPEND_VALUE, no marks to -1, anything else to the
    proportion of the full score scaled to MX_DEPEND_VALUE.
    """
    if result == ResultState.CORRECT_ANSWER:
        return MX_DEPEND_VALUE
    if result == ResultState.PARTLY_CORRECT and full_score == 0:
        return MX_DEPEND_VALUE
    if score <= 0:
        return -1
    return _trunc_div(MX_DEPEND_VALUE * score, full_score)


def status_to_score(ratio: int, full_score: int) -> int:
    """Scale a full score by a dependence status."""
    return _trunc_div(full_score * ratio, MX_DEPEND_VALUE)


def status_ranking_text(ratio: int) -> str:
    """Human-readable form of a dependence status."""
    if ratio >= MX_DEPEND_VALUE:
        return "Pure"
    if ratio < 0:
        return "Lost"
    return f"{100.0 * ratio / MX_DEPEND_VALUE:.3f}%"