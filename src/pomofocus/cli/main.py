"""CLI commands for Pomofocus using Typer."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pomofocus import __version__
from pomofocus.app import PomofocusApp, close_persistence, create_app
from pomofocus.core.config import Config, get_config
from pomofocus.tasks.models import Task, TaskNotFoundError, TaskValidationError
from pomofocus.timer.models import EventKind, SessionEvent, TimerMode

T = TypeVar("T")

app = typer.Typer(
    name="pomofocus",
    help="Pomodoro timer with task tracking and statistics.",
    add_completion=False,
)
tasks_app = typer.Typer(help="Manage tasks.", no_args_is_help=True)
settings_app = typer.Typer(help="Show or change timer settings.", no_args_is_help=True)
app.add_typer(tasks_app, name="tasks")
app.add_typer(settings_app, name="settings")

console = Console()

MODE_CHOICES = {
    "focus": TimerMode.FOCUS,
    "short": TimerMode.SHORT_BREAK,
    "long": TimerMode.LONG_BREAK,
}


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _with_app(config: Config, action: Callable[[PomofocusApp], T], roll_over: bool = True) -> T:
    """Load the app, run a synchronous action against it and flush storage."""

    async def run() -> T:
        pomofocus = await create_app(config, desktop=False, roll_over=roll_over)
        try:
            return action(pomofocus)
        finally:
            await close_persistence(pomofocus.persistence)

    try:
        return asyncio.run(run())
    except (TaskValidationError, TaskNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid setting:[/red] {_format_validation_error(e)}")
        raise typer.Exit(1)


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def _resolve_task(pomofocus: PomofocusApp, ref: str) -> Task:
    """Find a task by list position (1-based) or id prefix."""
    tasks = pomofocus.tasks.tasks
    if ref.isdigit() and 1 <= int(ref) <= len(tasks):
        return tasks[int(ref) - 1]

    matches = [task for task in tasks if task.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise TaskValidationError(f"Task reference {ref!r} is ambiguous")
    raise TaskNotFoundError(ref)


# Control file for the running timer
def _control_file(config: Config) -> Path:
    return config.data_dir / "timer_control.json"


def write_timer_control(config: Config, action: str) -> None:
    """Write a control command for the running timer."""
    path = _control_file(config)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"action": action, "timestamp": datetime.now().isoformat()}))


def read_timer_control(config: Config) -> dict | None:
    """Read and clear the control command."""
    path = _control_file(config)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        data = None
    path.unlink(missing_ok=True)
    return data


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"pomofocus {__version__}")


@app.command()
def run(
    mode: str = typer.Option(
        None,
        "--mode",
        "-m",
        help="Start in this mode: focus, short or long",
    ),
    task: str = typer.Option(
        None,
        "--task",
        "-t",
        help="Task to work on (list number or id prefix)",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Run the timer in the foreground.

    Control it from another terminal with 'pomofocus timer pause|resume|skip|reset'.
    """
    if mode is not None and mode not in MODE_CHOICES:
        console.print(f"[red]Unknown mode: {mode}[/red] (choose focus, short or long)")
        raise typer.Exit(1)

    config = get_config()
    config.ensure_directories()
    setup_logging(log_level, config.log_dir / "pomofocus.log")

    async def run_timer() -> None:
        pomofocus = await create_app(config)
        try:
            if mode is not None:
                pomofocus.engine.set_mode(MODE_CHOICES[mode])
            if task is not None:
                pomofocus.select_task(_resolve_task(pomofocus, task).id)

            def on_session(event: SessionEvent) -> None:
                sys.stdout.write("\n")
                if event.kind is EventKind.SKIPPED:
                    console.print(f"[yellow]Skipped {event.completed_mode.value}[/yellow]")
                elif event.was_focus_session:
                    console.print("[green]Focus session complete! Time for a break.[/green]")
                else:
                    console.print("[blue]Break over. Time to focus.[/blue]")

            pomofocus.engine.add_listener(on_session)
            if pomofocus.achievements is not None:
                pomofocus.achievements.on_show = lambda a: console.print(
                    f"\n[bold magenta]Achievement unlocked:[/bold magenta] {a.name} ({a.points} pts)"
                )

            await pomofocus.start()
            pomofocus.engine.start()
            console.print("[green]Timer running.[/green] Press Ctrl+C to stop\n")

            last_rollover_check = datetime.now()
            while True:
                await asyncio.sleep(0.5)

                ctrl = read_timer_control(config)
                if ctrl:
                    action = ctrl.get("action")
                    if action == "pause":
                        pomofocus.engine.pause()
                    elif action == "resume":
                        pomofocus.engine.start()
                    elif action == "skip":
                        pomofocus.engine.skip()
                    elif action == "reset":
                        pomofocus.engine.reset()
                    elif action == "stop":
                        break

                if (datetime.now() - last_rollover_check).total_seconds() >= 60:
                    last_rollover_check = datetime.now()
                    if pomofocus.roll_over_day():
                        console.print("\n[dim]New day, yesterday's stats archived[/dim]")

                status = pomofocus.get_status()
                task_info = f" | {status['selected_task']}" if status["selected_task"] else ""
                sys.stdout.write(
                    f"\r🍅 {status['mode_label']} {status['time_remaining']} "
                    f"[{status['state']}] ({status['progress']:.0f}%){task_info}    "
                )
                sys.stdout.flush()
        finally:
            await pomofocus.stop()
            await close_persistence(pomofocus.persistence)

            today = pomofocus.stats.today
            console.print("\n\n[bold]Today:[/bold]")
            console.print(f"  Pomodoros completed: {today.pomodoros_completed}")
            console.print(f"  Focus time: {today.total_focus_time_minutes} min")

    try:
        asyncio.run(run_timer())
    except KeyboardInterrupt:
        pass
    except (TaskValidationError, TaskNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def timer(
    action: str = typer.Argument(..., help="Action: pause, resume, skip, reset, stop"),
) -> None:
    """Control a running timer."""
    if action not in ("pause", "resume", "skip", "reset", "stop", "start"):
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print("Valid actions: pause, resume, skip, reset, stop")
        raise typer.Exit(1)

    if action == "start":
        action = "resume"

    write_timer_control(get_config(), action)
    console.print(f"[green]Sent {action} command[/green]")


# =============================================================================
# Tasks
# =============================================================================


@tasks_app.command("add")
def tasks_add(
    title: str = typer.Argument(..., help="Task title (1-100 characters)"),
    estimate: int = typer.Option(1, "--estimate", "-e", help="Estimated pomodoros (1-10)"),
    color: str = typer.Option(None, "--color", "-c", help="Hex color"),
) -> None:
    """Add a task."""
    created = _with_app(get_config(), lambda p: p.tasks.add(title, estimate, color))
    console.print(f"[green]Added task {created.id[:8]}:[/green] {created.title}")


@tasks_app.command("list")
def tasks_list(
    all_tasks: bool = typer.Option(False, "--all", "-a", help="Include completed tasks"),
) -> None:
    """List tasks."""

    def collect(pomofocus: PomofocusApp) -> tuple[list[Task], str | None]:
        return pomofocus.tasks.tasks, pomofocus.tasks.selected_task_id

    tasks, selected_id = _with_app(get_config(), collect)
    if not all_tasks:
        shown = [(i, t) for i, t in enumerate(tasks, 1) if not t.is_completed]
    else:
        shown = list(enumerate(tasks, 1))

    if not shown:
        console.print("[dim]No tasks. Add one with 'pomofocus tasks add'[/dim]")
        return

    table = Table(title="Tasks", show_header=True, header_style="bold cyan")
    table.add_column("#")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Pomodoros")
    table.add_column("Status")

    for index, t in shown:
        marker = " ◀" if t.id == selected_id else ""
        status = "[green]Done[/green]" if t.is_completed else "[yellow]Open[/yellow]"
        table.add_row(
            str(index),
            t.id[:8],
            f"{t.title}{marker}",
            f"🍅 {t.completed_pomodoros}/{t.estimated_pomodoros}",
            status,
        )

    console.print(table)


@tasks_app.command("edit")
def tasks_edit(
    ref: str = typer.Argument(..., help="List number or id prefix"),
    title: str = typer.Option(None, "--title", "-t"),
    estimate: int = typer.Option(None, "--estimate", "-e"),
    color: str = typer.Option(None, "--color", "-c"),
) -> None:
    """Edit a task's title, estimate or color."""

    def edit(pomofocus: PomofocusApp) -> Task:
        task = _resolve_task(pomofocus, ref)
        return pomofocus.tasks.edit(task.id, title=title, estimated_pomodoros=estimate, color=color)

    updated = _with_app(get_config(), edit)
    console.print(f"[green]Updated:[/green] {updated.title}")


@tasks_app.command("done")
def tasks_done(ref: str = typer.Argument(..., help="List number or id prefix")) -> None:
    """Toggle a task between done and open."""

    def toggle(pomofocus: PomofocusApp) -> tuple[Task, bool]:
        task = _resolve_task(pomofocus, ref)
        return task, pomofocus.toggle_task(task.id)

    task, completed = _with_app(get_config(), toggle)
    if completed:
        console.print(f"[green]Completed:[/green] {task.title}")
    else:
        console.print(f"[yellow]Reopened:[/yellow] {task.title}")


@tasks_app.command("remove")
def tasks_remove(ref: str = typer.Argument(..., help="List number or id prefix")) -> None:
    """Remove a task."""

    def remove(pomofocus: PomofocusApp) -> Task:
        task = _resolve_task(pomofocus, ref)
        pomofocus.remove_task(task.id)
        return task

    task = _with_app(get_config(), remove)
    console.print(f"[yellow]Removed:[/yellow] {task.title}")


@tasks_app.command("select")
def tasks_select(
    ref: str = typer.Argument(None, help="List number or id prefix"),
    clear: bool = typer.Option(False, "--clear", help="Clear the selection"),
) -> None:
    """Choose the task that focus sessions count toward."""
    if ref is None and not clear:
        console.print("[red]Give a task or --clear[/red]")
        raise typer.Exit(1)

    def select(pomofocus: PomofocusApp) -> Task | None:
        if clear:
            pomofocus.select_task(None)
            return None
        task = _resolve_task(pomofocus, ref)
        pomofocus.select_task(task.id)
        return task

    task = _with_app(get_config(), select)
    if task is None:
        console.print("[yellow]Selection cleared[/yellow]")
    else:
        console.print(f"[green]Selected:[/green] {task.title}")


@tasks_app.command("reorder")
def tasks_reorder(
    refs: list[str] = typer.Argument(..., help="Every task, in the new order"),
) -> None:
    """Reorder tasks by listing all of them in the new order."""

    def reorder(pomofocus: PomofocusApp) -> None:
        ids = [_resolve_task(pomofocus, ref).id for ref in refs]
        pomofocus.tasks.reorder(ids)

    _with_app(get_config(), reorder)
    console.print("[green]Tasks reordered[/green]")


# =============================================================================
# Statistics
# =============================================================================


@app.command()
def stats(
    export: Path = typer.Option(None, "--export", "-e", help="Write all statistics to a JSON file"),
    day: str = typer.Option(None, "--date", "-d", help="Show a single day (YYYY-MM-DD)"),
) -> None:
    """Show today's, this week's and this month's statistics."""
    config = get_config()

    if day is not None:
        try:
            requested = date.fromisoformat(day)
        except ValueError:
            console.print(f"[red]Invalid date: {day}[/red] (use YYYY-MM-DD)")
            raise typer.Exit(1)

        record = _with_app(config, lambda p: p.stats.get_stats_for_date(requested))
        if record is None:
            console.print(f"[dim]No statistics recorded for {requested.isoformat()}[/dim]")
            return
        console.print(f"[bold]{requested.isoformat()}[/bold]")
        console.print(f"  Pomodoros: 🍅 {record.pomodoros_completed}")
        console.print(f"  Focus time: {record.total_focus_time_minutes}m")
        console.print(f"  Tasks completed: {record.tasks_completed}")
        return

    def collect(pomofocus: PomofocusApp) -> dict[str, Any]:
        s = pomofocus.stats
        task_stats = pomofocus.tasks.stats()
        progress = s.today_progress(
            config.goals.pomodoros, config.goals.focus_minutes, config.goals.tasks
        )
        best = s.best_day()
        return {
            "today": s.today,
            "progress": progress,
            "average": s.average_focus_time(),
            "weekly_pomodoros": s.weekly_pomodoros(),
            "weekly_focus": s.weekly_focus_time(),
            "monthly_pomodoros": s.monthly_pomodoros(),
            "monthly_focus": s.monthly_focus_time(),
            "streak": s.streak(),
            "best": best,
            "tasks": task_stats,
            "finish": s.estimated_finish_time(task_stats.remaining_pomodoros),
            "export": s.export(),
        }

    data = _with_app(config, collect)

    if export:
        export.parent.mkdir(parents=True, exist_ok=True)
        export.write_text(json.dumps(data["export"], indent=2))
        console.print(f"[green]Statistics exported to {export}[/green]")
        return

    today = data["today"]
    progress = data["progress"]
    console.print(Panel("[bold]Pomofocus Statistics[/bold]", border_style="blue"))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Period")
    table.add_column("Pomodoros")
    table.add_column("Focus time")
    table.add_row(
        "Today",
        f"🍅 {today.pomodoros_completed} ({progress.pomodoro_progress:.0f}%)",
        f"{today.total_focus_time_minutes}m ({progress.time_progress:.0f}%)",
    )
    table.add_row("This week", str(data["weekly_pomodoros"]), f"{data['weekly_focus']}m")
    table.add_row("This month", str(data["monthly_pomodoros"]), f"{data['monthly_focus']}m")
    console.print(table)

    console.print(f"  Tasks completed today: {today.tasks_completed} ({progress.task_progress:.0f}%)")
    console.print(f"  Average per pomodoro: {data['average']}m")
    console.print(f"  Streak: {data['streak']} day(s)")
    best = data["best"]
    if best.pomodoros_completed:
        console.print(f"  Best day: {best.date.isoformat()} ({best.pomodoros_completed} pomodoros)")

    tasks = data["tasks"]
    if tasks.total:
        console.print(
            f"  Tasks: {tasks.completed}/{tasks.total} done, "
            f"{tasks.total_completed_pomodoros}/{tasks.total_estimated} pomodoros"
        )
    # No pace to estimate from until a pomodoro is done today
    if data["finish"] is not None and data["average"]:
        console.print(
            f"  {tasks.remaining_pomodoros} pomodoros left, "
            f"estimated finish {data['finish'].strftime('%H:%M')}"
        )


@app.command()
def rollover() -> None:
    """Archive today's statistics if the day has changed."""
    archived = _with_app(get_config(), lambda p: p.roll_over_day(), roll_over=False)
    if archived:
        console.print("[green]Previous day archived[/green]")
    else:
        console.print("[dim]Nothing to archive[/dim]")


# =============================================================================
# Settings
# =============================================================================


def _parse_setting_value(value: str) -> Any:
    if value.lstrip("-").isdigit():
        return int(value)
    return value


@settings_app.command("show")
def settings_show() -> None:
    """Show current settings."""
    current = _with_app(get_config(), lambda p: p.settings.snapshot)

    table = Table(title="Settings", show_header=True, header_style="bold cyan")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in current.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting name, e.g. focus_time"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Change one setting."""
    _with_app(get_config(), lambda p: p.settings.update(**{key: _parse_setting_value(value)}))
    console.print(f"[green]{key} = {value}[/green]")


@settings_app.command("reset")
def settings_reset() -> None:
    """Restore default settings."""
    _with_app(get_config(), lambda p: p.settings.reset_to_defaults())
    console.print("[green]Settings reset to defaults[/green]")


@app.command(name="config-show")
def config_show() -> None:
    """Show the effective application configuration."""
    config = get_config()
    data = config.model_dump(mode="json")
    console.print(Panel(yaml.dump(data, default_flow_style=False, sort_keys=False), title=str(config.config_file)))
