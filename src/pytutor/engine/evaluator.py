"""Grades practice submissions by running their test cases in the sandbox."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

from pytutor.engine.content import Problem
from pytutor.engine.executor import SandboxHandle
from pytutor.engine.feedback import FeedbackItem, parse_stderr


@dataclass
class CaseResult:
    args: list
    expected: Any
    actual: Any = None
    passed: bool = False
    error: Optional[str] = None
    stdout: str = ""


@dataclass
class EvalResult:
    passed: bool
    feedback: list[FeedbackItem] = field(default_factory=list)
    case_results: list[CaseResult] = field(default_factory=list)
    encouragement: str = ""

    @property
    def passed_count(self) -> int:
        return sum(1 for c in self.case_results if c.passed)


class Evaluator:
    def __init__(self, sandbox: SandboxHandle):
        self.sandbox = sandbox

    def check_syntax(self, code: str) -> EvalResult:
        """Parse code and return syntax errors."""
        try:
            ast.parse(code)
            return EvalResult(passed=True)
        except SyntaxError as e:
            return EvalResult(
                passed=False,
                feedback=[FeedbackItem(
                    line=e.lineno,
                    severity="error",
                    message=f"SyntaxError: {e.msg}",
                )],
            )

    async def grade(self, problem: Problem, code: str) -> EvalResult:
        """Run every test case; the submission passes only if all of them do.

        Sandbox errors are reported as failed cases, never raised.
        """
        syntax = self.check_syntax(code)
        if not syntax.passed:
            return syntax

        if not problem.test_cases:
            return EvalResult(passed=True, encouragement="Code looks good!")

        executor = await self.sandbox.get()
        case_results: list[CaseResult] = []
        feedback: list[FeedbackItem] = []

        for case in problem.test_cases:
            result = await executor.call_function(code, problem.function_name, case.args)
            outcome = CaseResult(args=case.args, expected=case.expected, stdout=result.stdout)
            if result.success:
                outcome.actual = result.value
                outcome.passed = _matches(result.value, case.expected)
            else:
                outcome.error = result.error
                for item in parse_stderr(result.stderr):
                    if item.message not in {f.message for f in feedback}:
                        feedback.append(item)
            case_results.append(outcome)

        passed = all(c.passed for c in case_results)
        if not passed and not feedback:
            first = next(c for c in case_results if not c.passed)
            feedback.append(FeedbackItem(
                line=None, severity="warning",
                message=(
                    f"{problem.function_name}({_format_args(first.args)}) returned "
                    f"{first.actual!r}, expected {first.expected!r}"
                ),
            ))

        logger.debug(
            "Graded {}: {}/{} cases passed", problem.id,
            sum(c.passed for c in case_results), len(case_results),
        )
        return EvalResult(
            passed=passed,
            feedback=feedback,
            case_results=case_results,
            encouragement="All tests passed!" if passed else "",
        )


def _matches(actual: Any, expected: Any) -> bool:
    """JSON value equality where booleans only match booleans (1 != true)."""
    if isinstance(expected, bool) or isinstance(actual, bool):
        return actual is expected
    if isinstance(expected, list) and isinstance(actual, list):
        return len(actual) == len(expected) and all(map(_matches, actual, expected))
    if isinstance(expected, dict) and isinstance(actual, dict):
        return actual.keys() == expected.keys() and all(
            _matches(actual[k], v) for k, v in expected.items()
        )
    return actual == expected


def _format_args(args: list) -> str:
    return ", ".join(repr(a) for a in args)
