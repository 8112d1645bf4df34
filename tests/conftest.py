"""Shared fixtures for PyTutor tests."""

from __future__ import annotations

import pytest
import yaml

from pytutor.config.settings import Settings
from pytutor.engine.executor import Executor, SandboxHandle
from pytutor.state.progress import ProgressStore


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", timeout_seconds=5)


@pytest.fixture
def store(tmp_path):
    return ProgressStore(db_path=tmp_path / "progress.db")


@pytest.fixture
def sandbox(settings):
    return SandboxHandle(settings=settings)


@pytest.fixture
def dry_sandbox(settings):
    return SandboxHandle(settings=settings, force_dry_run=True)


@pytest.fixture
def executor(settings):
    return Executor(settings=settings)


@pytest.fixture
def sample_course_dir(tmp_path):
    """Create a minimal course directory for testing."""
    course_dir = tmp_path / "courses" / "test_course"
    (course_dir / "lessons").mkdir(parents=True)
    (course_dir / "problems").mkdir()

    course_data = {
        "course": {
            "id": "test_course",
            "title": "Test Course",
            "description": "A test course",
            "version": "1.0.0",
        }
    }
    with open(course_dir / "course.yaml", "w") as f:
        yaml.dump(course_data, f)

    lessons = {
        "01_intro": {"Title": "Intro", "Order": 1, "Difficulty": "beginner",
                     "Content": "Variables hold values."},
        "02_functions": {"Title": "Functions", "Order": 2, "Difficulty": "intermediate",
                         "Content": "def defines a function."},
        "03_generators": {"Title": "Generators", "Order": 3, "Difficulty": "advanced",
                          "Content": "yield produces values lazily."},
    }
    for name, data in lessons.items():
        with open(course_dir / "lessons" / f"{name}.yaml", "w") as f:
            yaml.dump(data, f)

    problems = {
        "01_double": {
            "Title": "Double", "Order": 1, "Difficulty": "beginner",
            "Description": "Return n * 2.", "FunctionName": "double",
            "StarterCode": "def double(n):\n    pass\n",
            "TestCases": [{"Args": [2], "Expected": 4}, {"Args": [0], "Expected": 0}],
            "Hint": "Multiply by two.",
        },
        "02_reverse": {
            "Title": "Reverse", "Order": 2, "Difficulty": "intermediate",
            "Description": "Return the reversed string.", "FunctionName": "reverse",
            "TestCases": [{"Args": ["abc"], "Expected": "cba"}],
        },
        "03_fib": {
            "Title": "Fibonacci", "Order": 3, "Difficulty": "advanced",
            "Description": "Return the first n Fibonacci numbers.", "FunctionName": "fib",
            "TestCases": [{"Args": [5], "Expected": [0, 1, 1, 2, 3]}],
        },
    }
    for name, data in problems.items():
        with open(course_dir / "problems" / f"{name}.yaml", "w") as f:
            yaml.dump(data, f)

    badges = [
        {"Id": "first_lesson", "Name": "First Lesson", "Description": "Finish a lesson",
         "Criteria": {"completed_lessons": 1}},
        {"Id": "solver", "Name": "Solver", "Description": "Pass a problem",
         "Criteria": {"passed_submissions": 1}},
    ]
    with open(course_dir / "badges.yaml", "w") as f:
        yaml.dump(badges, f)

    return course_dir
