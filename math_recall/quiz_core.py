from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


class Operator(str, Enum):
    ADD = "+"
    SUBTRACT = "-"


class RecordStatus(str, Enum):
    OPEN = "open"
    ANSWERED = "answered"
    SKIPPED = "skipped"


class GracePhase(str, Enum):
    """Lifecycle of the extra period granted after the last problem opens.

    NONE until the answer counter reaches the last problem, ARMED for one
    period, CONSUMED once either the timeout or a final submission ends it.
    """

    NONE = "none"
    ARMED = "armed"
    CONSUMED = "consumed"


class SubmissionError(str, Enum):
    INVALID_INPUT = "invalid_input"
    ALREADY_ANSWERED = "already_answered"
    NOT_ELIGIBLE = "not_eligible"


class ReportNotReady(RuntimeError):
    """Raised when a report is requested before the session has finished."""


@dataclass(frozen=True, slots=True)
class QuizConfig:
    total_problems: int = 30
    period_s: float = 3.0
    tick_s: float = 0.1
    start_delay_s: float = 1.0
    eligibility_opens_at: int = 6
    max_regenerate_attempts: int = 20
    operand_min: int = 1
    operand_max: int = 10

    def __post_init__(self) -> None:
        if self.total_problems < 3:
            raise ValueError("total_problems must be >= 3")
        if self.tick_s <= 0.0:
            raise ValueError("tick_s must be > 0")
        if self.period_s < self.tick_s:
            raise ValueError("period_s must be >= tick_s")
        if self.start_delay_s < 0.0:
            raise ValueError("start_delay_s must be >= 0")
        # The first reveal happens at start, so the window can only open on a later boundary.
        if not (2 <= self.eligibility_opens_at < self.total_problems):
            raise ValueError("eligibility_opens_at must be in [2, total_problems)")
        if self.max_regenerate_attempts < 1:
            raise ValueError("max_regenerate_attempts must be >= 1")
        if self.operand_min > self.operand_max:
            raise ValueError("operand_min must be <= operand_max")


@dataclass(frozen=True, slots=True)
class Problem:
    id: int
    left_operand: int
    right_operand: int
    operator: Operator
    correct_answer: int
    display_text: str


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    problem_id: int
    submitted_value: int | None = None
    is_correct: bool | None = None
    resolved_at_ms: int | None = None
    status: RecordStatus = RecordStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.status is RecordStatus.OPEN


@dataclass(frozen=True, slots=True)
class SessionState:
    """One immutable snapshot of a game in progress.

    Every transition builds a new value with ``dataclasses.replace``; nothing
    mutates a SessionState in place.
    """

    problems: tuple[Problem, ...]
    records: tuple[AnswerRecord, ...]
    started_at_ms: int
    reveal_counter: int = 0
    answer_counter: int = 0
    eligible_problem_id: int | None = None
    grace: GracePhase = GracePhase.NONE
    score: int = 0
    ended_at_ms: int | None = None
    is_running: bool = True

    @property
    def total_problems(self) -> int:
        return len(self.problems)

    def problem(self, problem_id: int) -> Problem | None:
        if 1 <= problem_id <= len(self.problems):
            return self.problems[problem_id - 1]
        return None

    def record(self, problem_id: int) -> AnswerRecord | None:
        if 1 <= problem_id <= len(self.records):
            return self.records[problem_id - 1]
        return None


@dataclass(frozen=True, slots=True)
class ProblemResult:
    problem: Problem
    record: AnswerRecord


@dataclass(frozen=True, slots=True)
class Report:
    total_problems: int
    correct_answers: int
    score: int
    accuracy: float
    total_time_ms: int
    details: tuple[ProblemResult, ...]

    @property
    def answered(self) -> int:
        return sum(1 for d in self.details if d.record.status is RecordStatus.ANSWERED)

    @property
    def skipped(self) -> int:
        return sum(1 for d in self.details if d.record.status is RecordStatus.SKIPPED)

    @property
    def total_time_s(self) -> int:
        return int(round(self.total_time_ms / 1000.0))


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    accepted: bool
    problem_id: int | None
    error: SubmissionError | None = None
    is_correct: bool | None = None
    submitted_value: int | None = None
    finished: bool = False
    message: str = ""


@dataclass(frozen=True, slots=True)
class QuizSnapshot:
    """View model for the UI (pure data)."""

    phase: Phase
    revealed_problem: Problem | None
    eligible_problem: Problem | None
    reveal_count: int
    answer_count: int
    total_problems: int
    time_remaining_s: float
    period_s: float
    score: int
    hide_revealed_text: bool = False
    report: Report | None = None


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: list[Operator]) -> Operator:
        return self._rng.choice(seq)


def to_ms(seconds: float) -> int:
    return int(round(seconds * 1000.0))
