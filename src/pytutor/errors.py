"""Exceptions raised by the application shell around the engine."""


class PyTutorError(Exception):
    """Base class for PyTutor errors."""


class CourseLoadError(PyTutorError):
    """A course, lesson or problem file could not be read."""


class UnknownLessonError(PyTutorError):
    def __init__(self, lesson_id: str):
        super().__init__(f"Unknown lesson: {lesson_id}")
        self.lesson_id = lesson_id


class UnknownProblemError(PyTutorError):
    def __init__(self, problem_id: str):
        super().__init__(f"Unknown problem: {problem_id}")
        self.problem_id = problem_id
