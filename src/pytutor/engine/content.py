"""YAML course loader and policy-based content gating."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, TypeVar

import yaml

from pytutor.engine.adaptive import ContentPolicy, DifficultyTier
from pytutor.errors import CourseLoadError, UnknownLessonError, UnknownProblemError

_COMPLEXITY = {
    DifficultyTier.BEGINNER.value: 1,
    DifficultyTier.INTERMEDIATE.value: 2,
    DifficultyTier.ADVANCED.value: 3,
}


@dataclass
class Lesson:
    id: str
    title: str
    content: str
    order: int = 0
    description: Optional[str] = None
    difficulty: Optional[str] = None  # "beginner", "intermediate", "advanced"
    code_example: Optional[str] = None

    @property
    def complexity(self) -> int:
        return complexity_of(self.difficulty)


@dataclass
class TestCase:
    __test__ = False  # not a pytest class

    args: list
    expected: Any


@dataclass
class Problem:
    id: str
    title: str
    description: str
    function_name: str
    test_cases: list[TestCase]
    order: int = 0
    difficulty: Optional[str] = None
    starter_code: Optional[str] = None
    solution: Optional[str] = None
    hint: Optional[str] = None
    topics: list[str] = field(default_factory=list)

    @property
    def complexity(self) -> int:
        return complexity_of(self.difficulty)


@dataclass
class Badge:
    id: str
    name: str
    description: str
    icon: Optional[str] = None
    criteria: dict = field(default_factory=dict)


@dataclass
class Course:
    id: str
    title: str
    description: str
    version: str
    lessons: list[Lesson] = field(default_factory=list)
    problems: list[Problem] = field(default_factory=list)
    badges: list[Badge] = field(default_factory=list)
    base_path: Optional[Path] = None

    def get_lesson(self, lesson_id: str) -> Lesson:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        raise UnknownLessonError(lesson_id)

    def get_problem(self, problem_id: str) -> Problem:
        for problem in self.problems:
            if problem.id == problem_id:
                return problem
        raise UnknownProblemError(problem_id)


def complexity_of(difficulty: Optional[str]) -> int:
    """Map a difficulty label to 1-3. Missing or unknown labels count as 1."""
    if not difficulty:
        return 1
    return _COMPLEXITY.get(difficulty.strip().lower(), 1)


_Gated = TypeVar("_Gated", Lesson, Problem)


def _visible(items: Iterable[_Gated], policy: ContentPolicy) -> list[_Gated]:
    shown = [i for i in items if i.complexity <= policy.problem_complexity]
    return sorted(shown, key=lambda i: i.order)


def visible_lessons(lessons: Iterable[Lesson], policy: ContentPolicy) -> list[Lesson]:
    """Lessons at or below the policy's complexity, in course order."""
    return _visible(lessons, policy)


def visible_problems(problems: Iterable[Problem], policy: ContentPolicy) -> list[Problem]:
    """Problems at or below the policy's complexity, in course order."""
    return _visible(problems, policy)


def _read_yaml(path: Path):
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise CourseLoadError(f"Cannot read {path}: {e}") from e


def _parse_test_cases(raw) -> list[TestCase]:
    cases = []
    for item in raw or []:
        args = item.get("Args", [])
        if not isinstance(args, list):
            args = [args]
        cases.append(TestCase(args=args, expected=item.get("Expected")))
    return cases


def load_lesson(path: Path) -> Lesson:
    raw = _read_yaml(path) or {}
    return Lesson(
        id=raw.get("Id", path.stem),
        title=raw.get("Title", path.stem),
        content=raw.get("Content", ""),
        order=raw.get("Order", 0),
        description=raw.get("Description"),
        difficulty=raw.get("Difficulty"),
        code_example=raw.get("CodeExample"),
    )


def load_problem(path: Path) -> Problem:
    raw = _read_yaml(path) or {}
    if "FunctionName" not in raw:
        raise CourseLoadError(f"{path}: problem has no FunctionName")
    return Problem(
        id=raw.get("Id", path.stem),
        title=raw.get("Title", path.stem),
        description=raw.get("Description", ""),
        function_name=raw["FunctionName"],
        test_cases=_parse_test_cases(raw.get("TestCases")),
        order=raw.get("Order", 0),
        difficulty=raw.get("Difficulty"),
        starter_code=raw.get("StarterCode"),
        solution=raw.get("Solution"),
        hint=raw.get("Hint"),
        topics=raw.get("Topics") or [],
    )


def load_badges(path: Path) -> list[Badge]:
    if not path.exists():
        return []
    return [
        Badge(
            id=b["Id"],
            name=b.get("Name", b["Id"]),
            description=b.get("Description", ""),
            icon=b.get("Icon"),
            criteria=b.get("Criteria") or {},
        )
        for b in _read_yaml(path) or []
    ]


def load_course(course_dir: Path) -> Course:
    """Load course.yaml plus its lessons/, problems/ and badges.yaml."""
    data = _read_yaml(course_dir / "course.yaml")
    if not data or "course" not in data:
        raise CourseLoadError(f"{course_dir}: course.yaml has no 'course' section")

    c = data["course"]
    lessons = [load_lesson(p) for p in sorted((course_dir / "lessons").glob("*.yaml"))]
    problems = [load_problem(p) for p in sorted((course_dir / "problems").glob("*.yaml"))]

    return Course(
        id=c["id"],
        title=c["title"],
        description=c.get("description", ""),
        version=str(c.get("version", "0")),
        lessons=sorted(lessons, key=lambda l: l.order),
        problems=sorted(problems, key=lambda p: p.order),
        badges=load_badges(course_dir / "badges.yaml"),
        base_path=course_dir,
    )
