"""Server handler: dispatches JSON-lines requests to engine components."""

from __future__ import annotations

from dataclasses import asdict
from typing import Callable, Optional

from pytutor.config.settings import Settings
from pytutor.courses.registry import CourseRegistry
from pytutor.engine.adaptive import (
    Assessment,
    InteractionContext,
    PerformanceSnapshot,
    assess,
    build_explanation_prompt,
)
from pytutor.engine.content import Course, Lesson, Problem, visible_lessons, visible_problems
from pytutor.engine.dashboard import build_dashboard, evaluate_badges
from pytutor.engine.executor import SandboxHandle
from pytutor.engine.practice import PracticeSession
from pytutor.engine.tutor import Message, Tutor, TutorContext, make_generator
from pytutor.errors import PyTutorError
from pytutor.state.progress import ProgressStore, load_snapshot

from .protocol import Notification

DEFAULT_USER = "local"


def _policy_to_dict(assessment: Assessment) -> dict:
    p = assessment.policy
    return {
        "skillScore": assessment.score,
        "difficultyTier": p.difficulty_tier.value,
        "explanationDepth": p.explanation_depth.value,
        "hintFrequency": p.hint_frequency.value,
        "problemComplexity": p.problem_complexity,
    }


def _lesson_to_dict(lesson: Lesson) -> dict:
    return {
        "id": lesson.id,
        "title": lesson.title,
        "description": lesson.description,
        "difficulty": lesson.difficulty,
        "order": lesson.order,
    }


def _problem_to_dict(problem: Problem) -> dict:
    return {
        "id": problem.id,
        "title": problem.title,
        "description": problem.description,
        "difficulty": problem.difficulty,
        "functionName": problem.function_name,
        "topics": problem.topics,
        "testCount": len(problem.test_cases),
    }


def _feedback_to_dict(item) -> dict:
    return {
        "line": item.line,
        "severity": item.severity,
        "message": item.message,
        "suggestion": item.suggestion,
    }


class ServerHandler:
    """Routes incoming requests to engine methods and returns result dicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        write_notification: Optional[Callable[[Notification], None]] = None,
        sandbox: Optional[SandboxHandle] = None,
    ):
        self.settings = settings or Settings.load()
        self._write_notification = write_notification or (lambda n: None)

        self.registry = CourseRegistry(courses_dir=self.settings.courses_dir)
        self.progress = ProgressStore(
            db_path=self.settings.data_dir / "progress.db"
        )
        self.sandbox = sandbox or SandboxHandle(settings=self.settings)
        self.generator = make_generator(self.settings)

        # One practice session per user, with the course it was loaded from
        self._sessions: dict[str, tuple[PracticeSession, Course]] = {}

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        method = msg.get("method", "")
        params = msg.get("params") or {}

        handler_map = {
            "listLessons": self._list_lessons,
            "listProblems": self._list_problems,
            "getPolicy": self._get_policy,
            "loadProblem": self._load_problem,
            "run": self._run,
            "submit": self._submit,
            "getHint": self._get_hint,
            "completeLesson": self._complete_lesson,
            "explain": self._explain,
            "chat": self._chat,
            "getDashboard": self._get_dashboard,
            "getSubmissions": self._get_submissions,
            "resetProgress": self._reset_progress,
            "detectMode": self._detect_mode,
        }

        handler = handler_map.get(method)
        if handler is None:
            raise ValueError(f"Unknown method: {method}")

        return await handler(params)

    # --- helpers ---

    def _course(self, params: dict) -> Course:
        course_id = params.get("courseId")
        course = self.registry.get_course(course_id) if course_id else self.registry.default_course()
        if course is None:
            raise PyTutorError(f"Unknown course: {course_id}")
        return course

    def _user(self, params: dict) -> str:
        return params.get("userId") or DEFAULT_USER

    def _snapshot(self, user_id: str) -> PerformanceSnapshot:
        return load_snapshot(self.progress, user_id, self.settings.history_window)

    def _require_session(self, params: dict) -> tuple[PracticeSession, Course]:
        entry = self._sessions.get(self._user(params))
        if entry is None:
            raise ValueError("No problem loaded")
        return entry

    # --- methods ---

    async def _list_lessons(self, params: dict) -> dict:
        course = self._course(params)
        lessons = course.lessons
        if not params.get("all"):
            lessons = visible_lessons(lessons, assess(self._snapshot(self._user(params))).policy)
        done = set(self.progress.completed_lesson_ids(self._user(params)))
        return {
            "lessons": [
                {**_lesson_to_dict(l), "completed": l.id in done} for l in lessons
            ]
        }

    async def _list_problems(self, params: dict) -> dict:
        course = self._course(params)
        problems = course.problems
        if not params.get("all"):
            problems = visible_problems(problems, assess(self._snapshot(self._user(params))).policy)
        return {"problems": [_problem_to_dict(p) for p in problems]}

    async def _get_policy(self, params: dict) -> dict:
        snapshot = self._snapshot(self._user(params))
        return {
            **_policy_to_dict(assess(snapshot)),
            "snapshot": {
                "skillLevelHint": snapshot.skill_level_hint,
                "completedLessons": snapshot.completed_lessons,
                "successRate": snapshot.success_rate,
                "recentPerformance": list(snapshot.recent_performance),
            },
        }

    async def _load_problem(self, params: dict) -> dict:
        course = self._course(params)
        problem = course.get_problem(params["problemId"])
        user_id = self._user(params)
        policy = assess(self._snapshot(user_id)).policy

        session = PracticeSession(
            user_id=user_id,
            problem=problem,
            sandbox=self.sandbox,
            policy=policy,
            progress=self.progress,
        )
        self._sessions[user_id] = (session, course)
        return {
            "problem": _problem_to_dict(problem),
            "starterCode": session.starter_code(),
            "hintFrequency": policy.hint_frequency.value,
        }

    async def _run(self, params: dict) -> dict:
        code = params["code"]

        def on_output(line: str):
            self._write_notification(
                Notification("output", {"line": line})
            )

        executor = await self.sandbox.get()
        result = await executor.execute(code, on_output=on_output)
        return {
            "exitCode": result.exit_code,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "error": result.error,
            "mode": result.mode.value,
        }

    async def _submit(self, params: dict) -> dict:
        session, course = self._require_session(params)
        result = await session.submit(params["code"])

        new_badges = []
        if result.passed:
            new_badges = evaluate_badges(
                self.progress, session.user_id, course.badges, self.settings.history_window,
            )

        return {
            "passed": result.passed,
            "feedback": [_feedback_to_dict(f) for f in result.feedback],
            "cases": [asdict(c) for c in result.case_results],
            "encouragement": result.encouragement,
            "failedAttempts": session.state.failed_attempts,
            "hintAvailable": session.state.hint_available,
            "newBadges": [b.id for b in new_badges],
        }

    async def _get_hint(self, params: dict) -> dict:
        session, _ = self._require_session(params)
        hint = session.hint()
        return {"hint": hint, "available": hint is not None}

    async def _complete_lesson(self, params: dict) -> dict:
        course = self._course(params)
        lesson = course.get_lesson(params["lessonId"])
        user_id = self._user(params)
        self.progress.mark_lesson_complete(user_id, lesson.id)
        new_badges = evaluate_badges(self.progress, user_id, course.badges, self.settings.history_window)
        return {"ok": True, "newBadges": [b.id for b in new_badges]}

    async def _explain(self, params: dict) -> dict:
        course = self._course(params)
        lesson = course.get_lesson(params["lessonId"])
        policy = assess(self._snapshot(self._user(params))).policy
        prompt = build_explanation_prompt(lesson.content, policy, InteractionContext.LESSON)
        return {"prompt": prompt, "explanation": await self.generator.generate(prompt)}

    async def _chat(self, params: dict) -> dict:
        user_id = self._user(params)
        ctx = params.get("context") or {}
        context = TutorContext(
            type=ctx.get("type", "lesson"),
            content=ctx.get("content", ""),
            user_code=ctx.get("userCode") or params.get("code"),
            problem_id=ctx.get("problemId"),
            lesson_id=ctx.get("lessonId"),
        )
        tutor = Tutor(assess(self._snapshot(user_id)).policy, self.generator)
        history = self.progress.get_conversation(user_id)
        if not history:
            history = [Message(role="assistant", content=tutor.welcome_message()).to_dict()]

        question = Message(role="user", content=params["message"].strip())
        answer = await tutor.reply(question.content, context)
        history.extend([question.to_dict(), answer.to_dict()])
        self.progress.save_conversation(user_id, history)

        return {
            "answer": answer.content,
            "quickActions": [
                {"label": label, "prompt": prompt}
                for label, prompt in tutor.quick_actions(context.type)
            ],
        }

    async def _get_dashboard(self, params: dict) -> dict:
        course = self._course(params)
        summary = build_dashboard(
            self.progress,
            self._user(params),
            course.lessons,
            course.badges,
            self.settings.history_window,
        )
        return {
            "completedLessons": summary.completed_lessons,
            "totalLessons": summary.total_lessons,
            "completion": summary.completion_fraction,
            "successRate": summary.success_rate,
            "gradedSubmissions": summary.graded_submissions,
            **_policy_to_dict(Assessment(summary.skill_score, summary.policy)),
            "badges": [{"id": b.id, "name": b.name, "icon": b.icon} for b in summary.badges],
            "nextLesson": _lesson_to_dict(summary.next_lesson) if summary.next_lesson else None,
        }

    async def _get_submissions(self, params: dict) -> dict:
        submissions = self.progress.get_submissions(self._user(params), params.get("problemId"))
        limit = params.get("limit")
        if limit is not None:
            submissions = submissions[:limit]
        return {
            "submissions": [
                {
                    "problemId": s.problem_id,
                    "passed": s.passed,
                    "submittedAt": s.submitted_at,
                    "code": s.code,
                }
                for s in submissions
            ]
        }

    async def _reset_progress(self, params: dict) -> dict:
        user_id = self._user(params)
        self.progress.reset_user(user_id)
        self._sessions.pop(user_id, None)
        return {"ok": True}

    async def _detect_mode(self, params: dict) -> dict:
        executor = await self.sandbox.get()
        mode = await executor.detect_mode()
        return {"mode": mode.value}
