from __future__ import annotations

from dataclasses import replace

from .quiz_core import (
    AnswerRecord,
    GracePhase,
    Problem,
    RecordStatus,
    SessionState,
    SubmissionError,
    SubmissionOutcome,
)


def parse_answer(raw: str) -> int | None:
    s = str(raw).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def _with_record(state: SessionState, record: AnswerRecord) -> tuple[AnswerRecord, ...]:
    records = list(state.records)
    records[record.problem_id - 1] = record
    return tuple(records)


def skip_open_record(state: SessionState, problem_id: int, *, at_ms: int) -> SessionState:
    """Mark a problem as processed without an answer. No-op once resolved."""

    record = state.record(problem_id)
    if record is None or not record.is_open:
        return state
    skipped = replace(record, status=RecordStatus.SKIPPED, resolved_at_ms=at_ms)
    return replace(state, records=_with_record(state, skipped))


def finalize(state: SessionState, *, at_ms: int) -> SessionState:
    if not state.is_running:
        return state
    return replace(state, is_running=False, ended_at_ms=at_ms, grace=GracePhase.CONSUMED)


def apply_submission(
    state: SessionState,
    problem_id: int,
    raw: str,
    *,
    at_ms: int,
) -> tuple[SessionState, SubmissionOutcome]:
    """Validate and record an answer. Rejections return ``state`` unchanged."""

    if not state.is_running or state.eligible_problem_id is None or problem_id != state.eligible_problem_id:
        return state, _rejected(problem_id, SubmissionError.NOT_ELIGIBLE)

    record = state.record(problem_id)
    problem = state.problem(problem_id)
    assert record is not None and problem is not None

    if not record.is_open:
        return state, _rejected(problem_id, SubmissionError.ALREADY_ANSWERED)

    value = parse_answer(raw)
    if value is None:
        return state, _rejected(problem_id, SubmissionError.INVALID_INPUT)

    is_correct = value == problem.correct_answer
    answered = replace(
        record,
        submitted_value=value,
        is_correct=is_correct,
        resolved_at_ms=at_ms,
        status=RecordStatus.ANSWERED,
    )
    new_state = replace(
        state,
        records=_with_record(state, answered),
        score=state.score + (1 if is_correct else 0),
    )

    # Answering the last problem once its window is open ends the game without waiting out the grace period.
    last_id = state.total_problems
    finished = problem_id == last_id and state.answer_counter >= last_id
    if finished:
        new_state = finalize(new_state, at_ms=at_ms)

    outcome = SubmissionOutcome(
        accepted=True,
        problem_id=problem_id,
        is_correct=is_correct,
        submitted_value=value,
        finished=finished,
        message=feedback_message(problem, value),
    )
    return new_state, outcome


def feedback_message(problem: Problem, value: int) -> str:
    solved = problem.display_text.replace("?", str(value))
    if value == problem.correct_answer:
        return f"Correct! {solved}"
    return f"Incorrect! {solved}, the answer is {problem.correct_answer}"


_ERROR_MESSAGES = {
    SubmissionError.INVALID_INPUT: "Please enter a valid number.",
    SubmissionError.ALREADY_ANSWERED: "That problem has already been answered!",
    SubmissionError.NOT_ELIGIBLE: "",
}


def _rejected(problem_id: int, error: SubmissionError) -> SubmissionOutcome:
    return SubmissionOutcome(
        accepted=False,
        problem_id=problem_id,
        error=error,
        message=_ERROR_MESSAGES[error],
    )
