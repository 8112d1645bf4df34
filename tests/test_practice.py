"""Tests for the practice session's failure counting and hint gating."""

import pytest

from pytutor.engine.adaptive import derive_policy
from pytutor.engine.content import Problem, TestCase
from pytutor.engine.executor import ExecMode, ExecResult, SandboxHandle
from pytutor.engine.practice import AttemptState, PracticeSession
from pytutor.engine.tutor import HINTS

CORRECT = "def double(n):\n    return n * 2\n"
WRONG = "def double(n):\n    return n\n"


class FakeExecutor:
    """Evaluates the learner function in-process; crashes on demand."""

    def __init__(self):
        self.calls = 0

    async def call_function(self, code, function_name, args):
        self.calls += 1
        if "crash" in code:
            return ExecResult(ExecMode.SUBPROCESS, 1, "", "RuntimeError: sandbox crashed")
        ns: dict = {}
        exec(code, ns)
        return ExecResult(ExecMode.SUBPROCESS, 0, "", "", value=ns[function_name](*args))

    async def execute(self, code, on_output=None):
        return ExecResult(ExecMode.SUBPROCESS, 0, "ran", "")


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def fake_sandbox(fake_executor):
    async def factory():
        return fake_executor
    return SandboxHandle(factory=factory)


@pytest.fixture
def problem():
    return Problem(
        id="double", title="Double", description="", function_name="double",
        test_cases=[TestCase(args=[3], expected=6)], hint="Multiply by two.",
    )


def session_for(score, problem, sandbox, store=None):
    return PracticeSession("u1", problem, sandbox, derive_policy(score), progress=store)


@pytest.mark.asyncio
async def test_beginner_gets_hint_after_first_failure(problem, fake_sandbox):
    session = session_for(0, problem, fake_sandbox)
    assert session.hint() is None
    await session.submit(WRONG)
    assert session.state.failed_attempts == 1
    assert session.hint() == "Multiply by two."


@pytest.mark.asyncio
async def test_intermediate_needs_two_failures(problem, fake_sandbox):
    session = session_for(50, problem, fake_sandbox)
    await session.submit(WRONG)
    assert not session.state.hint_available
    await session.submit(WRONG)
    assert session.state.hint_available


@pytest.mark.asyncio
async def test_advanced_needs_three_failures(problem, fake_sandbox):
    session = session_for(80, problem, fake_sandbox)
    for _ in range(2):
        await session.submit(WRONG)
    assert session.hint() is None
    await session.submit(WRONG)
    assert session.hint() is not None


@pytest.mark.asyncio
async def test_sandbox_failure_counts_as_failed_attempt(problem, fake_sandbox):
    session = session_for(0, problem, fake_sandbox)
    result = await session.submit("def double(n):\n    crash()\n")
    assert not result.passed
    assert session.state.failed_attempts == 1
    assert session.state.hint_available


@pytest.mark.asyncio
async def test_solving_does_not_count_as_failure(problem, fake_sandbox):
    session = session_for(50, problem, fake_sandbox)
    result = await session.submit(CORRECT)
    assert result.passed
    assert session.state.solved
    assert session.state.failed_attempts == 0


@pytest.mark.asyncio
async def test_tier_hint_when_problem_has_none(fake_sandbox):
    bare = Problem(id="p", title="P", description="", function_name="double",
                   test_cases=[TestCase(args=[1], expected=2)])
    session = session_for(0, bare, fake_sandbox)
    await session.submit(WRONG)
    assert session.hint() == HINTS[derive_policy(0).difficulty_tier]


@pytest.mark.asyncio
async def test_run_is_not_an_attempt(problem, fake_sandbox):
    session = session_for(0, problem, fake_sandbox)
    result = await session.run("print('hi')")
    assert result.success
    assert session.state.failed_attempts == 0
    assert session.state.attempt_state == AttemptState.AWAITING_INPUT


@pytest.mark.asyncio
async def test_reset_clears_counter(problem, fake_sandbox):
    session = session_for(0, problem, fake_sandbox)
    await session.submit(WRONG)
    session.reset()
    assert session.state.failed_attempts == 0
    assert session.hint() is None


@pytest.mark.asyncio
async def test_submissions_are_recorded(problem, fake_sandbox, store):
    session = session_for(0, problem, fake_sandbox, store)
    await session.submit(WRONG)
    await session.submit(CORRECT)
    assert store.recent_outcomes("u1") == [True, False]
    latest = store.get_submissions("u1")[0]
    assert latest.result["passed_count"] == 1


def test_starter_code(problem, fake_sandbox):
    assert session_for(0, problem, fake_sandbox).starter_code().startswith("def double(")


@pytest.mark.asyncio
async def test_large_wrong_answer_is_a_failed_attempt(sandbox):
    problem = Problem(id="big", title="Big", description="", function_name="big",
                      test_cases=[TestCase(args=[], expected=[0, 1, 2])])
    session = PracticeSession("u1", problem, sandbox, derive_policy(0))
    result = await session.submit("def big():\n    return list(range(20000))\n")
    assert not result.passed
    assert result.case_results[0].actual == list(range(20000))
    assert session.state.failed_attempts == 1
    assert session.state.hint_available
