"""CLI entry point for Qudurat."""

from pathlib import Path

import click


@click.group()
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Qudurat: grading tools for Qudurat/Tahsili practice exercises."""
    from qudurat.config.settings import Settings, configure_logging

    settings = Settings.load()
    configure_logging(log_level or settings.get_log_level())
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("user_answer")
@click.argument("correct_answer")
def check(user_answer: str, correct_answer: str) -> None:
    """Check whether USER_ANSWER matches CORRECT_ANSWER."""
    from qudurat.engine.answers import is_answer_correct

    if is_answer_correct(user_answer, correct_answer):
        click.echo("صحيح")
    else:
        click.echo("خطأ")
        raise SystemExit(1)


@main.command()
@click.argument("answer")
@click.option("-o", "--option", "options", multiple=True, help="A presented option (repeatable)")
@click.option("--strict", is_flag=True, help="Match on the extracted option letter only")
def normalize(answer: str, options: tuple[str, ...], strict: bool) -> None:
    """Expand ANSWER into the full text of the matching option."""
    from qudurat.engine.answers import find_full_correct_answer, normalize_correct_answer

    lookup = find_full_correct_answer if strict else normalize_correct_answer
    click.echo(lookup(answer, list(options)))


@main.command()
@click.argument("exercise_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-a", "--answer", "answers", multiple=True, help="QUESTION_ID=ANSWER (repeatable)")
@click.option("--user", "user_id", default=None, help="Record the result under this user id")
@click.pass_context
def grade(ctx: click.Context, exercise_file: Path, answers: tuple[str, ...], user_id: str | None) -> None:
    """Grade answers for an exercise file."""
    from qudurat.engine.grader import Grader
    from qudurat.engine.question_loader import load_exercise

    try:
        exercise = load_exercise(exercise_file)
    except ValueError as e:
        raise click.ClickException(str(e))

    answer_map = {}
    for item in answers:
        qid, sep, value = item.partition("=")
        if not sep:
            raise click.BadParameter(f"expected QUESTION_ID=ANSWER, got '{item}'", param_hint="--answer")
        answer_map[qid.strip()] = value

    result = Grader().grade_exercise(exercise, answer_map)
    for r in result.results:
        mark = "✓" if r.correct else "✗"
        click.echo(f"  {mark} {r.question_id}: {r.user_answer or '-'}  ({r.correct_answer})")
    click.echo(f"Score: {result.score}% ({result.correct_count}/{result.total})")
    click.echo(result.encouragement)

    if user_id:
        from qudurat.state.progress import ProgressStore

        settings = ctx.obj["settings"]
        ProgressStore(db_path=settings.progress_db).save(user_id, result, section=exercise.section)


@main.command()
def sections() -> None:
    """List test sections and their topics."""
    from qudurat.config.test_structure import get_sections

    for section in get_sections():
        click.echo(f"{section.icon} {section.name_ar} ({section.id}): {len(section.topics)} topics")
        for topic in section.topics:
            click.echo(f"    - {topic}")


def _open_cache(ctx: click.Context):
    from qudurat.state.question_cache import QuestionCache

    settings = ctx.obj["settings"]
    return QuestionCache(
        db_path=settings.cache_db,
        ttl_hours=settings.cache.ttl_hours,
        reservation_timeout_minutes=settings.cache.reservation_timeout_minutes,
        low_water_mark=settings.cache.low_water_mark,
    )


@main.command("cache-cleanup")
@click.pass_context
def cache_cleanup(ctx: click.Context) -> None:
    """Delete expired cached questions and release stale reservations."""
    report = _open_cache(ctx).cleanup()
    click.echo(f"Expired deleted: {report.expired_deleted}")
    click.echo(f"Stale released: {report.stale_released}")
    stats = report.stats
    click.echo(f"Cache: total={stats.total} used={stats.used} available={stats.available}")
    if report.refill_needed:
        click.echo("Cache is running low; a refill is needed.")


@main.command("cache-stats")
@click.pass_context
def cache_stats(ctx: click.Context) -> None:
    """Show question cache statistics."""
    stats = _open_cache(ctx).stats()
    click.echo(f"total={stats.total} used={stats.used} available={stats.available}")


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the JSON-lines grading server on stdin/stdout."""
    import asyncio

    from qudurat.server.__main__ import serve as run_server

    asyncio.run(run_server(ctx.obj["settings"]))


@main.command("import-examples")
@click.argument("examples_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_examples(ctx: click.Context, examples_file: Path) -> None:
    """Load curated training examples from a YAML file."""
    import yaml

    from qudurat.config.test_structure import get_section_info
    from qudurat.engine.few_shot import FewShotExample
    from qudurat.state.training_examples import TrainingExampleStore

    with open(examples_file, encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("examples", [])

    try:
        examples = [FewShotExample.from_dict(item) for item in data]
    except ValueError as e:
        raise click.ClickException(f"{examples_file}: {e}")
    for ex in examples:
        if get_section_info(ex.section) is None:
            raise click.ClickException(f"{examples_file}: unknown section '{ex.section}'")

    store = TrainingExampleStore(db_path=ctx.obj["settings"].examples_db)
    for ex in examples:
        store.add(ex)
    click.echo(f"Imported {len(examples)} examples ({store.count()} total)")
