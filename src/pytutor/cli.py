"""CLI entry point for PyTutor."""

import click

from pytutor.config.log import configure_logging
from pytutor.config.settings import Settings


def _parse_outcomes(raw: str) -> list[int]:
    flags = [f.strip() for f in raw.split(",") if f.strip()]
    for f in flags:
        if f not in ("0", "1"):
            raise click.BadParameter(f"expected 0 or 1, got {f!r}", param_hint="--recent")
    return [int(f) for f in flags]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """PyTutor: adaptive Python learning engine."""
    settings = Settings.load()
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.option("--lessons", "completed_lessons", type=int, default=0, show_default=True,
              help="Completed lesson count")
@click.option("--success-rate", type=float, default=0.0, show_default=True,
              help="Pass fraction of recent graded attempts")
@click.option("--recent", default="", help="Recent outcomes, most recent first, e.g. 1,0,1")
@click.option("--failed", "failed_attempts", type=int, default=None,
              help="Also report whether a hint is due after this many failures")
def score(completed_lessons: int, success_rate: float, recent: str, failed_attempts) -> None:
    """Compute a skill score and content policy from raw signals."""
    from pytutor.engine.adaptive import PerformanceSnapshot, assess, should_surface_hint

    snapshot = PerformanceSnapshot(
        completed_lessons=completed_lessons,
        success_rate=success_rate,
        recent_performance=tuple(_parse_outcomes(recent)),
    )
    result = assess(snapshot)
    p = result.policy
    click.echo(f"Skill score:        {result.score:.1f}")
    click.echo(f"Difficulty tier:    {p.difficulty_tier.value}")
    click.echo(f"Explanation depth:  {p.explanation_depth.value}")
    click.echo(f"Hint frequency:     {p.hint_frequency.value}")
    click.echo(f"Problem complexity: {p.problem_complexity}")
    if failed_attempts is not None:
        due = should_surface_hint(failed_attempts, p)
        click.echo(f"Hint after {failed_attempts} failure(s): {'yes' if due else 'no'}")


def _registry(settings: Settings):
    from pytutor.courses.registry import CourseRegistry

    return CourseRegistry(courses_dir=settings.courses_dir)


@main.command()
@click.option("--user", default="local", show_default=True)
@click.option("--all", "show_all", is_flag=True, help="Ignore the learner's difficulty tier")
@click.pass_context
def lessons(ctx: click.Context, user: str, show_all: bool) -> None:
    """List lessons visible to a learner."""
    from pytutor.engine.adaptive import assess
    from pytutor.engine.content import visible_lessons
    from pytutor.state.progress import ProgressStore, load_snapshot

    settings: Settings = ctx.obj["settings"]
    store = ProgressStore(db_path=settings.data_dir / "progress.db")
    policy = assess(load_snapshot(store, user, settings.history_window)).policy
    done = set(store.completed_lesson_ids(user))

    for course in _registry(settings).list_courses():
        shown = course.lessons if show_all else visible_lessons(course.lessons, policy)
        click.echo(f"{course.title} ({len(shown)}/{len(course.lessons)} lessons)")
        for lesson in shown:
            mark = "x" if lesson.id in done else " "
            click.echo(f"  [{mark}] {lesson.id}: {lesson.title} ({lesson.difficulty or 'beginner'})")


@main.command()
@click.option("--user", default="local", show_default=True)
@click.option("--all", "show_all", is_flag=True, help="Ignore the learner's difficulty tier")
@click.pass_context
def problems(ctx: click.Context, user: str, show_all: bool) -> None:
    """List practice problems visible to a learner."""
    from pytutor.engine.adaptive import assess
    from pytutor.engine.content import visible_problems
    from pytutor.state.progress import ProgressStore, load_snapshot

    settings: Settings = ctx.obj["settings"]
    store = ProgressStore(db_path=settings.data_dir / "progress.db")
    policy = assess(load_snapshot(store, user, settings.history_window)).policy

    for course in _registry(settings).list_courses():
        shown = course.problems if show_all else visible_problems(course.problems, policy)
        click.echo(f"{course.title} ({len(shown)}/{len(course.problems)} problems)")
        for problem in shown:
            click.echo(f"  {problem.id}: {problem.title} ({problem.difficulty or 'beginner'})")


@main.command()
@click.option("--user", default="local", show_default=True)
@click.pass_context
def dashboard(ctx: click.Context, user: str) -> None:
    """Show a learner's progress summary."""
    from pytutor.engine.dashboard import build_dashboard
    from pytutor.state.progress import ProgressStore

    settings: Settings = ctx.obj["settings"]
    store = ProgressStore(db_path=settings.data_dir / "progress.db")
    course = _registry(settings).default_course()
    if course is None:
        raise click.ClickException("No courses installed")

    summary = build_dashboard(store, user, course.lessons, course.badges, settings.history_window)
    click.echo(f"Lessons:      {summary.completed_lessons}/{summary.total_lessons}")
    click.echo(f"Success rate: {summary.success_rate:.0%} over {summary.graded_submissions} submissions")
    click.echo(f"Skill score:  {summary.skill_score:.1f} ({summary.policy.difficulty_tier.value})")
    if summary.badges:
        click.echo("Badges:       " + ", ".join(b.name for b in summary.badges))
    if summary.next_lesson:
        click.echo(f"Next lesson:  {summary.next_lesson.title}")


@main.command()
@click.option("--user", default="local", show_default=True)
@click.option("--problem", "problem_id", default=None, help="Only this problem's submissions")
@click.option("--limit", type=int, default=10, show_default=True)
@click.pass_context
def history(ctx: click.Context, user: str, problem_id, limit: int) -> None:
    """List a learner's recent submissions, newest first."""
    from pytutor.state.progress import ProgressStore

    settings: Settings = ctx.obj["settings"]
    store = ProgressStore(db_path=settings.data_dir / "progress.db")
    submissions = store.get_submissions(user, problem_id)[:limit]
    if not submissions:
        click.echo("No submissions yet.")
    for s in submissions:
        click.echo(f"  {s.submitted_at}  {'pass' if s.passed else 'fail'}  {s.problem_id}")


@main.command()
@click.option("--user", default="local", show_default=True)
@click.confirmation_option(prompt="Delete all progress for this learner?")
@click.pass_context
def reset(ctx: click.Context, user: str) -> None:
    """Delete everything stored for a learner."""
    from pytutor.state.progress import ProgressStore

    settings: Settings = ctx.obj["settings"]
    ProgressStore(db_path=settings.data_dir / "progress.db").reset_user(user)
    click.echo(f"Progress reset for {user}.")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show execution environment status."""
    import asyncio

    from pytutor.engine.executor import SandboxHandle

    async def _check():
        sandbox = SandboxHandle(settings=ctx.obj["settings"])
        executor = await sandbox.get()
        mode = await executor.detect_mode()
        click.echo(f"Execution mode: {mode.value}")

    asyncio.run(_check())


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the JSON-lines server on stdin/stdout."""
    import asyncio

    from pytutor.server.__main__ import main as server_main

    asyncio.run(server_main(ctx.obj["settings"]))
