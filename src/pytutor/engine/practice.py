"""Practice session: grade submissions, count failures, gate hints."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from pytutor.engine.adaptive import ContentPolicy, should_surface_hint
from pytutor.engine.content import Problem
from pytutor.engine.evaluator import EvalResult, Evaluator
from pytutor.engine.executor import ExecResult, SandboxHandle
from pytutor.engine.tutor import HINTS
from pytutor.state.progress import ProgressStore


class AttemptState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    EVALUATING = "evaluating"
    FEEDBACK = "feedback"
    SOLVED = "solved"


@dataclass
class SessionState:
    problem: Problem
    failed_attempts: int = 0
    attempt_state: AttemptState = AttemptState.AWAITING_INPUT
    hint_available: bool = False
    last_result: Optional[EvalResult] = None
    last_exec: Optional[ExecResult] = None

    @property
    def solved(self) -> bool:
        return self.attempt_state == AttemptState.SOLVED


class PracticeSession:
    """Drives one learner through one problem at a time.

    The failure count lives here, not in the engine: each failed submit
    bumps it and re-asks should_surface_hint.
    """

    def __init__(
        self,
        user_id: str,
        problem: Problem,
        sandbox: SandboxHandle,
        policy: ContentPolicy,
        progress: Optional[ProgressStore] = None,
        evaluator: Optional[Evaluator] = None,
    ):
        self.user_id = user_id
        self.sandbox = sandbox
        self.policy = policy
        self.progress = progress
        self.evaluator = evaluator or Evaluator(sandbox)
        self.state = SessionState(problem=problem)

    @property
    def problem(self) -> Problem:
        return self.state.problem

    def starter_code(self) -> str:
        return self.problem.starter_code or f"def {self.problem.function_name}():\n    pass\n"

    async def run(self, code: str, on_output: Optional[Callable[[str], None]] = None) -> ExecResult:
        """Execute without grading; does not count as an attempt."""
        executor = await self.sandbox.get()
        result = await executor.execute(code, on_output=on_output)
        self.state.last_exec = result
        return result

    async def submit(self, code: str) -> EvalResult:
        self.state.attempt_state = AttemptState.EVALUATING
        result = await self.evaluator.grade(self.problem, code)
        self.state.last_result = result

        if result.passed:
            self.state.attempt_state = AttemptState.SOLVED
        else:
            self.state.failed_attempts += 1
            self.state.attempt_state = AttemptState.FEEDBACK
        self.state.hint_available = should_surface_hint(self.state.failed_attempts, self.policy)

        self._record(code, result)
        return result

    def hint(self) -> Optional[str]:
        """The problem's hint, or the tier hint, once enough attempts have failed."""
        if not self.state.hint_available:
            return None
        return self.problem.hint or HINTS[self.policy.difficulty_tier]

    def reset(self, problem: Optional[Problem] = None) -> None:
        self.state = SessionState(problem=problem or self.problem)

    def _record(self, code: str, result: EvalResult) -> None:
        if self.progress is None:
            return
        try:
            self.progress.save_submission(
                user_id=self.user_id,
                problem_id=self.problem.id,
                code=code,
                passed=result.passed,
                result={
                    "cases": [asdict(c) for c in result.case_results],
                    "passed_count": result.passed_count,
                },
            )
        except sqlite3.Error as e:
            logger.error("Failed to record submission for {}: {}", self.problem.id, e)
