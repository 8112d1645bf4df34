"""Tests for the adaptive scoring engine."""

import asyncio

import pytest

from pytutor.engine.adaptive import (
    ContentPolicy,
    DifficultyTier,
    ExplanationDepth,
    HintFrequency,
    InteractionContext,
    PerformanceSnapshot,
    assess,
    build_explanation_prompt,
    compute_skill_score,
    derive_policy,
    hint_threshold,
    should_surface_hint,
    snapshot_from_history,
)


def snap(lessons=0, rate=0.0, recent=()):
    return PerformanceSnapshot(
        completed_lessons=lessons, success_rate=rate, recent_performance=tuple(recent),
    )


class TestComputeSkillScore:
    def test_scenario_all_signals_maxed(self):
        assert compute_skill_score(snap(20, 1.0, [1, 1, 1, 1, 1])) == 100

    def test_scenario_new_learner(self):
        assert compute_skill_score(PerformanceSnapshot.new_learner()) == 0

    def test_scenario_mixed(self):
        # 20 from lessons, 15 from accuracy, 15 from trend
        assert compute_skill_score(snap(10, 0.5, [1, 0, 1, 0])) == pytest.approx(50)

    @pytest.mark.parametrize("lessons", [0, 1, 5, 19, 20, 21, 100])
    def test_lesson_component_alone(self, lessons):
        assert compute_skill_score(snap(lessons)) == min(lessons * 2, 40)

    def test_empty_recent_contributes_zero(self):
        assert compute_skill_score(snap(0, 0.5, [])) == pytest.approx(15)

    def test_lesson_component_saturates(self):
        assert compute_skill_score(snap(20)) == compute_skill_score(snap(500))

    def test_trend_double_counts_recency(self):
        hot = compute_skill_score(snap(5, 0.5, [1, 1, 1, 1]))
        cold = compute_skill_score(snap(5, 0.5, [0, 0, 0, 0]))
        assert hot - cold == pytest.approx(30)

    def test_monotonic_in_each_signal(self):
        base = compute_skill_score(snap(5, 0.4, [1, 0]))
        assert compute_skill_score(snap(6, 0.4, [1, 0])) >= base
        assert compute_skill_score(snap(5, 0.5, [1, 0])) >= base
        assert compute_skill_score(snap(5, 0.4, [1, 1])) >= base

    @pytest.mark.parametrize("lessons", [0, 3, 20, 1000])
    @pytest.mark.parametrize("rate", [0.0, 0.3, 1.0])
    @pytest.mark.parametrize("recent", [(), (0,), (1, 1), (1, 0, 1)])
    def test_stays_in_range(self, lessons, rate, recent):
        score = compute_skill_score(snap(lessons, rate, recent))
        assert 0 <= score <= 100

    def test_out_of_domain_inputs_do_not_raise(self):
        assert compute_skill_score(snap(-5)) == -10

    def test_skill_level_hint_is_not_scored(self):
        a = PerformanceSnapshot(skill_level_hint=1, completed_lessons=3)
        b = PerformanceSnapshot(skill_level_hint=9, completed_lessons=3)
        assert compute_skill_score(a) == compute_skill_score(b)


class TestDerivePolicy:
    @pytest.mark.parametrize("score,tier", [
        (0, DifficultyTier.BEGINNER),
        (29.999, DifficultyTier.BEGINNER),
        (30, DifficultyTier.INTERMEDIATE),
        (69.999, DifficultyTier.INTERMEDIATE),
        (70, DifficultyTier.ADVANCED),
        (100, DifficultyTier.ADVANCED),
        (-50, DifficultyTier.BEGINNER),
        (250, DifficultyTier.ADVANCED),
    ])
    def test_tier_boundaries(self, score, tier):
        assert derive_policy(score).difficulty_tier == tier

    def test_fields_move_together(self):
        assert derive_policy(10) == ContentPolicy(
            DifficultyTier.BEGINNER, ExplanationDepth.SIMPLE, HintFrequency.HIGH, 1,
        )
        assert derive_policy(50) == ContentPolicy(
            DifficultyTier.INTERMEDIATE, ExplanationDepth.DETAILED, HintFrequency.MEDIUM, 2,
        )
        assert derive_policy(90) == ContentPolicy(
            DifficultyTier.ADVANCED, ExplanationDepth.TECHNICAL, HintFrequency.LOW, 3,
        )

    def test_repeatable(self):
        assert derive_policy(42.5) == derive_policy(42.5)

    def test_policy_is_immutable(self):
        policy = derive_policy(10)
        with pytest.raises(AttributeError):
            policy.problem_complexity = 3


class TestHints:
    def test_thresholds(self):
        assert hint_threshold(HintFrequency.HIGH) == 1
        assert hint_threshold(HintFrequency.MEDIUM) == 2
        assert hint_threshold(HintFrequency.LOW) == 3

    def test_beginner_hint_after_one_failure(self):
        policy = assess(PerformanceSnapshot.new_learner()).policy
        assert not should_surface_hint(0, policy)
        assert should_surface_hint(1, policy)

    def test_intermediate_hint_after_two_failures(self):
        policy = assess(snap(10, 0.5, [1, 0, 1, 0])).policy
        assert policy.difficulty_tier == DifficultyTier.INTERMEDIATE
        assert not should_surface_hint(1, policy)
        assert should_surface_hint(2, policy)

    def test_advanced_hint_after_three_failures(self):
        policy = assess(snap(20, 1.0, [1] * 5)).policy
        assert not should_surface_hint(2, policy)
        assert should_surface_hint(3, policy)

    @pytest.mark.parametrize("score", [0, 50, 90])
    def test_monotonic_in_attempts(self, score):
        policy = derive_policy(score)
        flags = [should_surface_hint(n, policy) for n in range(10)]
        first = flags.index(True)
        assert all(flags[first:])


class TestExplanationPrompt:
    def test_depth_selects_template(self):
        simple = build_explanation_prompt("loops", derive_policy(0))
        detailed = build_explanation_prompt("loops", derive_policy(50))
        technical = build_explanation_prompt("loops", derive_policy(90))
        assert "complete beginner" in simple
        assert "with examples" in detailed
        assert "technical" in technical
        assert len({simple, detailed, technical}) == 3
        assert all(p.endswith("loops") for p in (simple, detailed, technical))

    def test_context_does_not_change_template(self):
        policy = derive_policy(50)
        prompts = {
            build_explanation_prompt("recursion", policy, ctx) for ctx in InteractionContext
        }
        assert len(prompts) == 1

    @pytest.mark.asyncio
    async def test_idempotent_across_concurrent_callers(self):
        policy = derive_policy(10)

        async def build():
            return build_explanation_prompt("list slicing", policy, "problem")

        results = await asyncio.gather(*(build() for _ in range(20)))
        assert len(set(results)) == 1


class TestSnapshotFromHistory:
    def test_window_applies_to_both_signals(self):
        outcomes = [True] * 3 + [False] * 12
        s = snapshot_from_history(completed_lessons=2, outcomes=outcomes, window=10)
        assert s.recent_performance == (1, 1, 1, 0, 0, 0, 0, 0, 0, 0)
        assert s.success_rate == pytest.approx(0.3)

    def test_empty_history(self):
        s = snapshot_from_history(0, [])
        assert s.success_rate == 0
        assert s.recent_performance == ()

    def test_missing_skill_level_falls_back_to_one(self):
        assert snapshot_from_history(0, [], skill_level_hint=None).skill_level_hint == 1
        assert snapshot_from_history(0, [], skill_level_hint=0).skill_level_hint == 1
        assert snapshot_from_history(0, [], skill_level_hint=4).skill_level_hint == 4
