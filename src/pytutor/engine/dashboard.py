"""Progress dashboard summary and badge awarding."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pytutor.engine.adaptive import ContentPolicy, PerformanceSnapshot, assess
from pytutor.engine.content import Badge, Lesson, visible_lessons
from pytutor.state.progress import ProgressStore, load_snapshot


@dataclass
class DashboardSummary:
    user_id: str
    completed_lessons: int
    total_lessons: int
    success_rate: float
    graded_submissions: int
    skill_score: float
    policy: ContentPolicy
    badges: list[Badge] = field(default_factory=list)
    next_lesson: Optional[Lesson] = None

    @property
    def completion_fraction(self) -> float:
        if self.total_lessons == 0:
            return 0.0
        return min(self.completed_lessons / self.total_lessons, 1.0)


def badge_earned(badge: Badge, snapshot: PerformanceSnapshot, passed_submissions: int, score: float) -> bool:
    """All listed criteria must be met; unknown criteria never match."""
    if not badge.criteria:
        return False
    observed = {
        "completed_lessons": snapshot.completed_lessons,
        "passed_submissions": passed_submissions,
        "skill_score": score,
    }
    for key, minimum in badge.criteria.items():
        if key not in observed or observed[key] < minimum:
            return False
    return True


def evaluate_badges(
    store: ProgressStore,
    user_id: str,
    badges: list[Badge],
    window: int = 10,
) -> list[Badge]:
    """Award newly met badges; returns only the ones awarded by this call."""
    snapshot = load_snapshot(store, user_id, window)
    score = assess(snapshot).score
    passed = store.passed_submission_count(user_id)
    return [
        b for b in badges
        if badge_earned(b, snapshot, passed, score) and store.award_badge(user_id, b.id)
    ]


def build_dashboard(
    store: ProgressStore,
    user_id: str,
    lessons: list[Lesson],
    badges: Optional[list[Badge]] = None,
    window: int = 10,
) -> DashboardSummary:
    snapshot = load_snapshot(store, user_id, window)
    assessment = assess(snapshot)

    done = set(store.completed_lesson_ids(user_id))
    # Only recommend what the learner's tier lets them open
    visible = visible_lessons(lessons, assessment.policy)
    next_lesson = next((l for l in visible if l.id not in done), None)

    earned = set(store.earned_badge_ids(user_id))
    return DashboardSummary(
        user_id=user_id,
        completed_lessons=snapshot.completed_lessons,
        total_lessons=len(lessons),
        success_rate=snapshot.success_rate,
        graded_submissions=len(snapshot.recent_performance),
        skill_score=assessment.score,
        policy=assessment.policy,
        badges=[b for b in badges or [] if b.id in earned],
        next_lesson=next_lesson,
    )
