"""Command-line interface for HabitStreak."""

from __future__ import annotations

from functools import update_wrapper

import click

from .config import BaseConfig
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelHabitRepository
from .logging_config import setup_logging
from .services.habits import HabitService

_DATE = click.DateTime(formats=["%Y-%m-%d"])


def _build_service(config: BaseConfig) -> HabitService:
    _, session_factory = bootstrap_database(config)
    return HabitService(
        SQLModelHabitRepository(session_factory),
        tz=config.tzinfo(),
        stats_days=config.STATS_DAYS,
    )


def _service_command(func):
    """Pass the service and owner id to a command, reporting domain errors cleanly."""

    @click.pass_context
    def wrapper(ctx: click.Context, *args, **kwargs):
        obj = ctx.ensure_object(dict)
        if "service" not in obj:
            obj["service"] = _build_service(obj["config"])
        try:
            return ctx.invoke(func, obj["service"], obj["owner_id"], *args, **kwargs)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

    return update_wrapper(wrapper, func)


def _format_streak(habit) -> str:
    last = habit.streak_last_completed.isoformat() if habit.streak_last_completed else "never"
    return f"streak {habit.streak_current} (best {habit.streak_longest}, last {last})"


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track habits and their completion streaks."""

    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        obj["config"] = BaseConfig()
    if "service" not in obj:
        setup_logging(obj["config"])
    obj.setdefault("owner_id", obj["config"].OWNER_ID)


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the database schema."""

    config: BaseConfig = ctx.obj["config"]
    bootstrap_database(config)
    click.echo(f"Database ready: {config.DATABASE_URL}")


@cli.command("add")
@click.argument("title")
@click.option("--target", "target_value", type=float, default=1.0, show_default=True)
@click.option("--frequency", default="daily", show_default=True)
@click.option("--category", default="Personal", show_default=True)
@click.option("--unit", default="times", show_default=True)
@click.option("--description", default="")
@_service_command
def add_habit(service, owner_id, title, target_value, frequency, category, unit, description):
    """Create a habit."""

    habit = service.create_habit(
        {
            "title": title,
            "target_value": target_value,
            "frequency": frequency,
            "category": category,
            "unit": unit,
            "description": description,
        },
        owner_id=owner_id,
    )
    click.echo(f"Created habit #{habit.id}: {habit.title}")


@cli.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive habits")
@_service_command
def list_habits(service, owner_id, include_inactive):
    """List habits with their stored streaks."""

    habits = service.list_habits(owner_id=owner_id, is_active=None if include_inactive else True)
    if not habits:
        click.echo("No habits yet.")
        return
    for habit in habits:
        click.echo(f"#{habit.id} {habit.title} [{habit.frequency}] {_format_streak(habit)}")


@cli.command("complete")
@click.argument("habit_id", type=int)
@click.option("--date", "on", type=_DATE, default=None, help="Day to mark (YYYY-MM-DD)")
@click.option("--value", type=float, default=1.0, show_default=True)
@click.option("--notes", default=None)
@_service_command
def complete_habit(service, owner_id, habit_id, on, value, notes):
    """Log a completion for a day (today by default)."""

    habit = service.complete_habit(
        habit_id, owner_id=owner_id, on=on.date() if on else None, value=value, notes=notes
    )
    click.echo(f"{habit.title}: {_format_streak(habit)}")


@cli.command("uncomplete")
@click.argument("habit_id", type=int)
@click.option("--date", "on", type=_DATE, default=None, help="Day to clear (YYYY-MM-DD)")
@_service_command
def uncomplete_habit(service, owner_id, habit_id, on):
    """Remove the completion for a day (today by default)."""

    habit = service.uncomplete_habit(habit_id, owner_id=owner_id, on=on.date() if on else None)
    click.echo(f"{habit.title}: {_format_streak(habit)}")


@cli.command("streak")
@click.argument("habit_id", type=int)
@_service_command
def show_streak(service, owner_id, habit_id):
    """Show the streak of a habit as of today."""

    state = service.streak_for(habit_id, owner_id=owner_id)
    last = state.last_completed.isoformat() if state.last_completed else "never"
    click.echo(f"current={state.current} longest={state.longest} last_completed={last}")


@cli.command("delete")
@click.argument("habit_id", type=int)
@click.confirmation_option(prompt="Delete this habit and all of its completions?")
@_service_command
def delete_habit(service, owner_id, habit_id):
    """Delete a habit."""

    service.delete_habit(habit_id, owner_id=owner_id)
    click.echo(f"Deleted habit #{habit_id}")


@cli.command("stats")
@click.option("--start", type=_DATE, default=None)
@click.option("--end", type=_DATE, default=None)
@_service_command
def show_stats(service, owner_id, start, end):
    """Completion statistics for active habits."""

    rows = service.stats(
        owner_id=owner_id,
        start=start.date() if start else None,
        end=end.date() if end else None,
    )
    if not rows:
        click.echo("No active habits.")
        return
    for row in rows:
        click.echo(
            f"#{row.habit_id} {row.title}: {row.completions} completions, "
            f"{row.completion_rate}% rate, total {row.total_value:g}, "
            f"streak {row.current_streak} (best {row.longest_streak})"
        )


def main() -> None:  # pragma: no cover - console entry point
    cli(obj={})


if __name__ == "__main__":  # pragma: no cover
    main()
