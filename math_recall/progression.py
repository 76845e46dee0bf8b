from __future__ import annotations

import logging
import threading
from dataclasses import replace

from .clock import Clock, PeriodicClock
from .problems import ProblemGenerator
from .quiz_core import (
    AnswerRecord,
    GracePhase,
    Phase,
    Problem,
    QuizConfig,
    QuizSnapshot,
    Report,
    ReportNotReady,
    SessionState,
    SubmissionError,
    SubmissionOutcome,
    to_ms,
)
from .results import build_report
from .scoring import apply_submission, finalize, skip_open_record

logger = logging.getLogger(__name__)


def new_session(problems: tuple[Problem, ...], *, at_ms: int) -> SessionState:
    return SessionState(
        problems=tuple(problems),
        records=tuple(AnswerRecord(problem_id=p.id) for p in problems),
        started_at_ms=int(at_ms),
    )


def advance_on_boundary(state: SessionState, *, at_ms: int, opens_at: int = 6) -> SessionState:
    """Apply one period boundary to ``state`` and return the successor state.

    The answer window trails the reveal counter by ``opens_at - 1`` problems.
    Once the window reaches the last problem it stays there for one more
    period (grace); the boundary after that ends the session.
    """

    if not state.is_running:
        return state

    last = state.total_problems

    if state.grace is GracePhase.ARMED:
        state = skip_open_record(state, last, at_ms=at_ms)
        return finalize(state, at_ms=at_ms)

    reveal = state.reveal_counter
    if reveal < last:
        reveal += 1

    answer = state.answer_counter
    should_open = (reveal == opens_at and answer == 0) or (reveal > opens_at and answer > 0)
    if not should_open or answer >= last:
        return replace(state, reveal_counter=reveal)

    if state.eligible_problem_id is not None:
        state = skip_open_record(state, state.eligible_problem_id, at_ms=at_ms)

    answer += 1
    if answer >= last:
        return replace(
            state,
            reveal_counter=reveal,
            answer_counter=last,
            eligible_problem_id=last,
            grace=GracePhase.ARMED,
        )
    return replace(state, reveal_counter=reveal, answer_counter=answer, eligible_problem_id=answer)


class ProgressionEngine:
    """Drives a quiz session from a periodic clock.

    NOT_STARTED -> RUNNING -> FINISHED, with ``reset()`` returning to
    NOT_STARTED and ``start()`` from FINISHED beginning a fresh session.

    - Time is entirely via injected Clock; ``update()`` is polled once per frame.
    - Boundary transitions and submissions hold the same lock and swap the
      whole SessionState, so neither can observe a half-applied transition.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: QuizConfig | None = None,
        generator: ProblemGenerator | None = None,
    ) -> None:
        self._clock = clock
        self._config = config or QuizConfig()
        self._seed = int(seed)
        self._generator = generator or ProblemGenerator.from_config(self._config, seed=self._seed)

        self._lock = threading.RLock()
        self._phase = Phase.NOT_STARTED
        self._state: SessionState | None = None
        self._periodic: PeriodicClock | None = None
        self._first_reveal_at_s: float | None = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def state(self) -> SessionState | None:
        return self._state

    def start(self) -> None:
        with self._lock:
            if self._phase is Phase.RUNNING:
                return
            self._stop_clock()
            cfg = self._config
            now = self._clock.now()
            problems = self._generator.build_problem_set(cfg.total_problems)
            self._state = new_session(problems, at_ms=to_ms(now))
            self._periodic = PeriodicClock(
                clock=self._clock,
                on_boundary=self._on_boundary,
                period_s=cfg.period_s,
                tick_s=cfg.tick_s,
            )
            self._first_reveal_at_s = now + cfg.start_delay_s
            self._phase = Phase.RUNNING
            logger.info("quiz started with %d problems", len(problems))

    def reset(self) -> None:
        with self._lock:
            # Stop ticking before dropping the session so a late tick has nothing to act on.
            self._stop_clock()
            self._periodic = None
            self._first_reveal_at_s = None
            self._state = None
            self._phase = Phase.NOT_STARTED

    def restart(self) -> None:
        with self._lock:
            self.reset()
            self.start()

    def update(self) -> None:
        with self._lock:
            if self._phase is not Phase.RUNNING:
                return
            assert self._state is not None and self._periodic is not None

            due = self._first_reveal_at_s
            if due is not None:
                if self._clock.now() < due:
                    return
                self._first_reveal_at_s = None
                self._state = replace(self._state, reveal_counter=1)
                self._periodic.start(at=due)

            self._periodic.pump()

    def submit_answer(self, problem_id: int, raw: str) -> SubmissionOutcome:
        with self._lock:
            # Boundaries already due must land first, or the answer is checked against a stale window.
            self.update()
            if self._phase is not Phase.RUNNING or self._state is None:
                return SubmissionOutcome(
                    accepted=False,
                    problem_id=problem_id,
                    error=SubmissionError.NOT_ELIGIBLE,
                )
            state, outcome = apply_submission(
                self._state,
                problem_id,
                raw,
                at_ms=to_ms(self._clock.now()),
            )
            self._state = state
            if outcome.accepted:
                logger.debug("problem %d answered, correct=%s", problem_id, outcome.is_correct)
            if outcome.finished:
                self._finish(reason="final answer")
            return outcome

    def submit_current(self, raw: str) -> SubmissionOutcome:
        with self._lock:
            self.update()
            target = None if self._state is None else self._state.eligible_problem_id
            if target is None:
                return SubmissionOutcome(accepted=False, problem_id=None, error=SubmissionError.NOT_ELIGIBLE)
            return self.submit_answer(target, raw)

    def time_remaining_s(self) -> float:
        if self._periodic is None or not self._periodic.running:
            return self._config.period_s
        return self._periodic.time_remaining_s()

    def report(self) -> Report:
        with self._lock:
            if self._state is None:
                raise ReportNotReady("no session has been started")
            return build_report(self._state)

    def snapshot(self) -> QuizSnapshot:
        with self._lock:
            cfg = self._config
            state = self._state
            if state is None:
                return QuizSnapshot(
                    phase=self._phase,
                    revealed_problem=None,
                    eligible_problem=None,
                    reveal_count=0,
                    answer_count=0,
                    total_problems=cfg.total_problems,
                    time_remaining_s=cfg.period_s,
                    period_s=cfg.period_s,
                    score=0,
                )

            revealed = state.problem(state.reveal_counter)
            eligible = None if state.eligible_problem_id is None else state.problem(state.eligible_problem_id)
            last = state.total_problems
            # The last problem's text is withdrawn once the window is within (opens_at - 2) of it.
            hide_from = last - cfg.eligibility_opens_at + 2
            hide = (
                state.reveal_counter == last
                and state.eligible_problem_id is not None
                and state.eligible_problem_id >= hide_from
            )
            return QuizSnapshot(
                phase=self._phase,
                revealed_problem=revealed,
                eligible_problem=eligible,
                reveal_count=state.reveal_counter,
                answer_count=state.answer_counter,
                total_problems=last,
                time_remaining_s=self.time_remaining_s(),
                period_s=cfg.period_s,
                score=state.score,
                hide_revealed_text=hide,
                report=build_report(state) if self._phase is Phase.FINISHED else None,
            )

    def _on_boundary(self, stamp_s: float) -> None:
        with self._lock:
            if self._phase is not Phase.RUNNING or self._state is None:
                return
            before = self._state
            self._state = advance_on_boundary(
                before,
                at_ms=to_ms(stamp_s),
                opens_at=self._config.eligibility_opens_at,
            )
            logger.debug(
                "boundary at %.1fs: reveal %d, answer %d, eligible %s",
                stamp_s,
                self._state.reveal_counter,
                self._state.answer_counter,
                self._state.eligible_problem_id,
            )
            if not self._state.is_running:
                self._finish(reason="timeout")

    def _finish(self, *, reason: str) -> None:
        self._stop_clock()
        self._phase = Phase.FINISHED
        assert self._state is not None
        logger.info("quiz finished (%s): score %d/%d", reason, self._state.score, self._state.total_problems)

    def _stop_clock(self) -> None:
        if self._periodic is not None:
            self._periodic.stop()
