from __future__ import annotations

from dataclasses import replace

import pytest

from math_recall.problems import make_problem
from math_recall.progression import new_session
from math_recall.quiz_core import (
    GracePhase,
    Operator,
    RecordStatus,
    ReportNotReady,
    SessionState,
    SubmissionError,
)
from math_recall.results import build_report, detail_line, report_lines
from math_recall.scoring import apply_submission, feedback_message, finalize, parse_answer, skip_open_record


def _state(*, eligible: int | None = 1, answer: int = 1) -> SessionState:
    problems = (
        make_problem(1, 3, 4, Operator.ADD),
        make_problem(2, 9, 2, Operator.SUBTRACT),
        make_problem(3, 5, 5, Operator.ADD),
    )
    state = new_session(problems, at_ms=1_000)
    return replace(state, reveal_counter=3, answer_counter=answer, eligible_problem_id=eligible)


def test_parse_answer_accepts_integers_only() -> None:
    assert parse_answer(" 7 ") == 7
    assert parse_answer("-3") == -3
    assert parse_answer("") is None
    assert parse_answer("   ") is None
    assert parse_answer("7.5") is None
    assert parse_answer("seven") is None


def test_correct_answer_scores_and_records() -> None:
    state = _state()

    new_state, outcome = apply_submission(state, 1, "7", at_ms=5_000)

    assert outcome.accepted is True
    assert outcome.is_correct is True
    assert outcome.submitted_value == 7
    assert outcome.message == "Correct! 3 + 4 = 7"
    assert new_state.score == 1
    record = new_state.record(1)
    assert record.status is RecordStatus.ANSWERED
    assert record.resolved_at_ms == 5_000
    assert state.score == 0


def test_incorrect_answer_is_recorded_without_score() -> None:
    state = _state(eligible=2, answer=2)

    new_state, outcome = apply_submission(state, 2, "6", at_ms=8_000)

    assert outcome.accepted is True
    assert outcome.is_correct is False
    assert outcome.message == "Incorrect! 9 - 2 = 6, the answer is 7"
    assert new_state.score == 0
    assert new_state.record(2).submitted_value == 6
    assert new_state.record(2).is_correct is False


@pytest.mark.parametrize(
    ("problem_id", "raw", "error"),
    [
        (2, "7", SubmissionError.NOT_ELIGIBLE),
        (1, "", SubmissionError.INVALID_INPUT),
        (1, "abc", SubmissionError.INVALID_INPUT),
    ],
)
def test_rejections_leave_state_unchanged(problem_id: int, raw: str, error: SubmissionError) -> None:
    state = _state()

    new_state, outcome = apply_submission(state, problem_id, raw, at_ms=5_000)

    assert new_state is state
    assert outcome.accepted is False
    assert outcome.error is error


def test_second_submission_is_already_answered() -> None:
    state, _ = apply_submission(_state(), 1, "7", at_ms=5_000)

    again, outcome = apply_submission(state, 1, "8", at_ms=5_500)

    assert again is state
    assert outcome.error is SubmissionError.ALREADY_ANSWERED
    assert outcome.message == "That problem has already been answered!"
    assert again.score == 1


def test_no_window_means_not_eligible() -> None:
    state = _state(eligible=None, answer=0)

    _, outcome = apply_submission(state, 1, "7", at_ms=5_000)

    assert outcome.error is SubmissionError.NOT_ELIGIBLE


def test_answering_last_problem_in_window_finishes_session() -> None:
    state = replace(_state(eligible=3, answer=3), grace=GracePhase.ARMED)

    new_state, outcome = apply_submission(state, 3, "10", at_ms=12_345)

    assert outcome.finished is True
    assert new_state.is_running is False
    assert new_state.ended_at_ms == 12_345
    assert new_state.grace is GracePhase.CONSUMED


def test_skip_open_record_does_not_touch_answered_record() -> None:
    state, _ = apply_submission(_state(), 1, "7", at_ms=5_000)

    assert skip_open_record(state, 1, at_ms=6_000) is state

    skipped = skip_open_record(state, 2, at_ms=6_000).record(2)
    assert skipped.status is RecordStatus.SKIPPED
    assert skipped.submitted_value is None


def test_finalize_is_idempotent() -> None:
    done = finalize(_state(), at_ms=9_000)

    assert finalize(done, at_ms=10_000) is done
    assert done.ended_at_ms == 9_000


def test_report_counts_accuracy_and_time() -> None:
    state, _ = apply_submission(_state(), 1, "7", at_ms=5_000)
    state = skip_open_record(state, 2, at_ms=6_000)
    state = replace(state, eligible_problem_id=3)
    state, _ = apply_submission(state, 3, "9", at_ms=7_000)
    state = finalize(state, at_ms=91_000)

    report = build_report(state)

    assert report.total_problems == 3
    assert report.correct_answers == 1
    assert report.score == 1
    assert report.accuracy == pytest.approx(100 / 3)
    assert report.total_time_ms == 90_000
    assert report.total_time_s == 90
    assert (report.answered, report.skipped) == (2, 1)

    lines = report_lines(report)
    assert "Score:     1 / 3" in lines
    assert "Time:      01:30" in lines
    assert detail_line(report.details[0]) == "#1: 3 + 4 = 7  OK"
    assert detail_line(report.details[1]) == "#2: 9 - 2 =  (no answer, 7)"
    assert detail_line(report.details[2]) == "#3: 5 + 5 = 9  (correct: 10)"


def test_report_while_running_raises() -> None:
    with pytest.raises(ReportNotReady):
        build_report(_state())


def test_feedback_message_shows_submitted_value() -> None:
    problem = make_problem(1, 3, 4, Operator.ADD)

    assert feedback_message(problem, 7) == "Correct! 3 + 4 = 7"
    assert feedback_message(problem, 8) == "Incorrect! 3 + 4 = 8, the answer is 7"
