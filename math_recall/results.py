from __future__ import annotations

from .quiz_core import ProblemResult, Report, ReportNotReady, SessionState


def build_report(state: SessionState) -> Report:
    """Build the read-only Report for a finished session.

    Accuracy is always taken against the full problem count, so skipped
    problems count as misses.
    """

    if state.is_running or state.ended_at_ms is None or not state.problems:
        raise ReportNotReady("session has not finished")

    total = state.total_problems
    details = tuple(
        ProblemResult(problem=problem, record=record)
        for problem, record in zip(state.problems, state.records)
    )
    correct = sum(1 for d in details if d.record.is_correct is True)

    return Report(
        total_problems=total,
        correct_answers=correct,
        score=int(state.score),
        accuracy=state.score / total * 100,
        total_time_ms=int(state.ended_at_ms - state.started_at_ms),
        details=details,
    )


def report_lines(report: Report) -> list[str]:
    mm = report.total_time_s // 60
    ss = report.total_time_s % 60
    return [
        "Results",
        "",
        f"Score:     {report.score} / {report.total_problems}",
        f"Accuracy:  {report.accuracy:.1f}%",
        f"Answered:  {report.answered}",
        f"Skipped:   {report.skipped}",
        f"Time:      {mm:02d}:{ss:02d}",
    ]


def detail_line(result: ProblemResult) -> str:
    problem = result.problem
    record = result.record
    text = f"#{problem.id}: {problem.display_text.replace(' = ?', ' =')}"
    if record.submitted_value is None:
        return f"{text}  (no answer, {problem.correct_answer})"
    if record.is_correct:
        return f"{text} {record.submitted_value}  OK"
    return f"{text} {record.submitted_value}  (correct: {problem.correct_answer})"
