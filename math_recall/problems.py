from __future__ import annotations

import logging
from typing import Protocol

from .quiz_core import Operator, Problem, QuizConfig, SeededRng

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int: ...
    def choice(self, seq: list[Operator]) -> Operator: ...


def make_problem(slot_id: int, left: int, right: int, op: Operator) -> Problem:
    """Build a problem, ordering subtraction operands so the result is >= 0."""

    if op is Operator.SUBTRACT:
        if left < right:
            left, right = right, left
        answer = left - right
    else:
        answer = left + right
    return Problem(
        id=int(slot_id),
        left_operand=left,
        right_operand=right,
        operator=op,
        correct_answer=answer,
        display_text=f"{left} {op.value} {right} = ?",
    )


def _repeats(candidate: Problem, previous: Problem | None) -> bool:
    if previous is None:
        return False
    return (
        candidate.display_text == previous.display_text
        or candidate.correct_answer == previous.correct_answer
    )


class ProblemGenerator:
    """Draws single-digit addition/subtraction problems.

    A draw is retried while it repeats the previous problem's text or answer.
    After ``max_attempts`` draws the last one is kept as is, so adjacent
    repeats are possible but rare.
    """

    _operators = [Operator.ADD, Operator.SUBTRACT]

    def __init__(
        self,
        rng: RandomSource,
        *,
        operand_min: int = 1,
        operand_max: int = 10,
        max_attempts: int = 20,
    ) -> None:
        if operand_min > operand_max:
            raise ValueError("operand_min must be <= operand_max")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._rng = rng
        self._lo = int(operand_min)
        self._hi = int(operand_max)
        self._max_attempts = int(max_attempts)

    @classmethod
    def from_config(cls, config: QuizConfig, *, seed: int) -> "ProblemGenerator":
        return cls(
            SeededRng(seed),
            operand_min=config.operand_min,
            operand_max=config.operand_max,
            max_attempts=config.max_regenerate_attempts,
        )

    def draw(self, slot_id: int, previous: Problem | None = None) -> Problem:
        candidate = self._draw_once(slot_id)
        attempts = 1
        while attempts < self._max_attempts and _repeats(candidate, previous):
            candidate = self._draw_once(slot_id)
            attempts += 1
        if _repeats(candidate, previous):
            logger.debug("slot %d kept a repeat after %d draws", slot_id, attempts)
        return candidate

    def build_problem_set(self, total: int) -> tuple[Problem, ...]:
        problems: list[Problem] = []
        previous: Problem | None = None
        for slot_id in range(1, int(total) + 1):
            previous = self.draw(slot_id, previous)
            problems.append(previous)
        return tuple(problems)

    def _draw_once(self, slot_id: int) -> Problem:
        left = self._rng.randint(self._lo, self._hi)
        right = self._rng.randint(self._lo, self._hi)
        op = self._rng.choice(self._operators)
        return make_problem(slot_id, left, right, op)
