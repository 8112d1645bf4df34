"""Adaptive difficulty engine.

Turns a learner's performance snapshot into a 0-100 skill score, and the
score into the content policy the rest of the app reads. Every function
here is pure and safe to call from concurrent sessions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

LESSON_POINTS = 2
LESSON_CAP = 40
ACCURACY_WEIGHT = 30
TREND_WEIGHT = 30
MAX_SCORE = 100

INTERMEDIATE_FLOOR = 30
ADVANCED_FLOOR = 70


class DifficultyTier(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ExplanationDepth(str, Enum):
    SIMPLE = "simple"
    DETAILED = "detailed"
    TECHNICAL = "technical"


class HintFrequency(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InteractionContext(str, Enum):
    LESSON = "lesson"
    PROBLEM = "problem"
    HINT = "hint"


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Learner history as seen by the scorer.

    skill_level_hint is the stored baseline level; it is carried for
    callers that need a fallback and is never part of the score.
    recent_performance is most-recent-first, one 0/1 flag per attempt.
    """
    skill_level_hint: int = 1
    completed_lessons: int = 0
    success_rate: float = 0.0
    recent_performance: tuple[int, ...] = ()

    @classmethod
    def new_learner(cls) -> "PerformanceSnapshot":
        return cls()


@dataclass(frozen=True)
class ContentPolicy:
    difficulty_tier: DifficultyTier
    explanation_depth: ExplanationDepth
    hint_frequency: HintFrequency
    problem_complexity: int


@dataclass(frozen=True)
class Assessment:
    score: float
    policy: ContentPolicy


# One row per tier; all four policy fields always move together.
_POLICIES = {
    DifficultyTier.BEGINNER: ContentPolicy(
        DifficultyTier.BEGINNER, ExplanationDepth.SIMPLE, HintFrequency.HIGH, 1,
    ),
    DifficultyTier.INTERMEDIATE: ContentPolicy(
        DifficultyTier.INTERMEDIATE, ExplanationDepth.DETAILED, HintFrequency.MEDIUM, 2,
    ),
    DifficultyTier.ADVANCED: ContentPolicy(
        DifficultyTier.ADVANCED, ExplanationDepth.TECHNICAL, HintFrequency.LOW, 3,
    ),
}

# Failed attempts on the current problem before a hint is offered
HINT_THRESHOLDS = {
    HintFrequency.HIGH: 1,
    HintFrequency.MEDIUM: 2,
    HintFrequency.LOW: 3,
}

EXPLANATION_TEMPLATES = {
    ExplanationDepth.SIMPLE: (
        "Explain this Python concept in very simple terms, like you're "
        "teaching a complete beginner: {subject}"
    ),
    ExplanationDepth.DETAILED: (
        "Provide a detailed explanation of this Python concept with examples: {subject}"
    ),
    ExplanationDepth.TECHNICAL: (
        "Give a technical, comprehensive explanation of this Python concept: {subject}"
    ),
}


def compute_skill_score(snapshot: PerformanceSnapshot) -> float:
    """Blend lesson volume with accuracy and recent trend into a 0-100 score.

    Inputs are not validated: negative counts or rates outside [0, 1]
    produce an out-of-range number rather than an error.
    """
    lesson_score = min(snapshot.completed_lessons * LESSON_POINTS, LESSON_CAP)
    accuracy_score = snapshot.success_rate * ACCURACY_WEIGHT

    recent = snapshot.recent_performance
    recent_avg = sum(recent) / len(recent) if recent else 0.0
    trend_score = recent_avg * TREND_WEIGHT

    return min(lesson_score + accuracy_score + trend_score, MAX_SCORE)


def derive_policy(score: float) -> ContentPolicy:
    if score < INTERMEDIATE_FLOOR:
        return _POLICIES[DifficultyTier.BEGINNER]
    elif score < ADVANCED_FLOOR:
        return _POLICIES[DifficultyTier.INTERMEDIATE]
    return _POLICIES[DifficultyTier.ADVANCED]


def assess(snapshot: PerformanceSnapshot) -> Assessment:
    score = compute_skill_score(snapshot)
    return Assessment(score=score, policy=derive_policy(score))


def hint_threshold(frequency: HintFrequency) -> int:
    return HINT_THRESHOLDS[HintFrequency(frequency)]


def should_surface_hint(failed_attempts: int, policy: ContentPolicy) -> bool:
    """True once failures on the current problem reach the tier's threshold."""
    return failed_attempts >= hint_threshold(policy.hint_frequency)


def build_explanation_prompt(
    subject_matter: str,
    policy: ContentPolicy,
    context: InteractionContext | str = InteractionContext.LESSON,  # noqa: ARG001
) -> str:
    """Format a request for the text generator at the policy's depth.

    context tags where the request comes from; the template is chosen by
    explanation depth alone.
    """
    template = EXPLANATION_TEMPLATES[ExplanationDepth(policy.explanation_depth)]
    return template.format(subject=subject_matter)


def snapshot_from_history(
    completed_lessons: int,
    outcomes: Sequence[bool | int],
    skill_level_hint: int | None = 1,
    window: int = 10,
) -> PerformanceSnapshot:
    """Build a snapshot from stored submission outcomes.

    outcomes must be most-recent-first. success_rate and
    recent_performance are both taken from the same last-``window``
    attempts, so recent results are counted twice in the score.
    """
    graded = [1 if o else 0 for o in list(outcomes)[:window]]
    success_rate = sum(graded) / len(graded) if graded else 0.0
    return PerformanceSnapshot(
        skill_level_hint=skill_level_hint or 1,
        completed_lessons=completed_lessons,
        success_rate=success_rate,
        recent_performance=tuple(graded),
    )
