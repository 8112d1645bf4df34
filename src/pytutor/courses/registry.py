"""Course discovery and registry."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from pytutor.engine.content import Course, load_course
from pytutor.errors import CourseLoadError


class CourseRegistry:
    """Discovers and loads courses from the courses directory."""

    def __init__(self, courses_dir: Path | None = None):
        self.courses_dir = courses_dir or Path(__file__).parent
        self._cache: dict[str, Course] | None = None

    def list_courses(self) -> list[Course]:
        """Discover all courses with a course.yaml."""
        if self._cache is None:
            courses = {}
            for path in sorted(self.courses_dir.iterdir()):
                if path.is_dir() and (path / "course.yaml").exists():
                    try:
                        course = load_course(path)
                    except (CourseLoadError, KeyError) as e:
                        logger.warning("Skipping course {}: {}", path.name, e)
                        continue
                    courses[course.id] = course
            self._cache = courses
        return list(self._cache.values())

    def get_course(self, course_id: str) -> Course | None:
        for course in self.list_courses():
            if course.id == course_id:
                return course
        return None

    def default_course(self) -> Course | None:
        courses = self.list_courses()
        return courses[0] if courses else None
