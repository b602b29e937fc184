#!/usr/bin/env python3
"""
Pomodoro CLI

Runs the API server and a terminal countdown that uses the same
preferences and presets as the web client.

Usage:
    pomodoro-api serve --port 5000
    pomodoro-api register me@example.com
    pomodoro-api prefs --work 45 --no-sound
    pomodoro-api presets add Focus 50 10 20
    pomodoro-api run --preset Focus
    pomodoro-api run --work 0.5 --short 0.25 --long 1
"""

import asyncio
import logging
import os
import sys
import termios
import tty
from typing import Optional

import click
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from . import config
from .client import ApiClient, ApiError, clear_token, load_token, save_token
from .logging_setup import configure_logging
from .resolver import Durations
from .runner import TimerRunner
from .store import RecordStore
from .timer import Phase, PomodoroTimer, TickResult, TimerEvent, format_time

logger = logging.getLogger("pomodoro_api.cli")

PHASE_COLORS = {
    Phase.WORK: "magenta",
    Phase.SHORT_BREAK: "green",
    Phase.LONG_BREAK: "blue",
}


def _client(ctx: click.Context) -> ApiClient:
    return ctx.obj["client"]


def _require_token(client: ApiClient) -> None:
    if not client.is_authenticated:
        raise click.ClickException("Not logged in. Run 'pomodoro-api login EMAIL' first.")


def _call(fn, *args, **kwargs):
    """Run a client call, turning API failures into CLI errors."""
    try:
        return fn(*args, **kwargs)
    except ApiError as e:
        raise click.ClickException(e.describe())


@click.group()
@click.option("--api-url", default=config.API_URL, show_default=True, help="Pomodoro API base URL")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to the console")
@click.pass_context
def cli(ctx, api_url, verbose):
    """Pomodoro timer with saved preferences and presets."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["client"] = ApiClient(api_url, token=load_token())


# ============ Server ============

@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=config.SERVER_PORT, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API server."""
    import uvicorn

    uvicorn.run("pomodoro_api.main:build_server_app", factory=True, host=host, port=port, reload=reload)


@cli.command("init-db")
@click.option("--db", "db_path", default=str(config.DB_PATH), show_default=True)
def init_db(db_path):
    """Create the database tables."""
    asyncio.run(RecordStore(db_path).init_tables())
    click.echo(f"Database initialized at {db_path}")


# ============ Account ============

@cli.command()
@click.argument("email")
@click.option("--name", default=None)
@click.password_option()
@click.pass_context
def register(ctx, email, name, password):
    """Create an account and remember its token."""
    user, token = _call(_client(ctx).register, email, password, name)
    save_token(token)
    click.echo(f"Registered {user.email}")


@cli.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True)
@click.pass_context
def login(ctx, email, password):
    """Log in and remember the token."""
    user, token = _call(_client(ctx).login, email, password)
    save_token(token)
    click.echo(f"Logged in as {user.email}")


@cli.command()
def logout():
    """Forget the stored token."""
    clear_token()
    click.echo("Logged out")


# ============ Preferences ============

@cli.command()
@click.option("--work", type=int, help="Work minutes (1-60)")
@click.option("--short", type=int, help="Short break minutes (1-30)")
@click.option("--long", "long_", type=int, help="Long break minutes (1-60)")
@click.option("--interval", type=int, help="Work sessions before a long break")
@click.option("--auto-breaks/--no-auto-breaks", default=None)
@click.option("--auto-pomodoros/--no-auto-pomodoros", default=None)
@click.option("--sound/--no-sound", default=None)
@click.pass_context
def prefs(ctx, work, short, long_, interval, auto_breaks, auto_pomodoros, sound):
    """Show preferences, or update the given fields."""
    client = _client(ctx)
    _require_token(client)
    updates = {
        "work_duration": work,
        "short_break": short,
        "long_break": long_,
        "long_break_interval": interval,
        "auto_start_breaks": auto_breaks,
        "auto_start_pomodoros": auto_pomodoros,
        "sound_enabled": sound,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    preference = _call(client.update_preferences, **updates) if updates else _call(client.get_preferences)

    table = Table(title="Preferences", show_header=False)
    table.add_row("Work", f"{preference.work_duration} min")
    table.add_row("Short break", f"{preference.short_break} min")
    table.add_row("Long break", f"{preference.long_break} min")
    table.add_row("Long break every", f"{preference.long_break_interval} sessions")
    table.add_row("Auto-start breaks", "yes" if preference.auto_start_breaks else "no")
    table.add_row("Auto-start pomodoros", "yes" if preference.auto_start_pomodoros else "no")
    table.add_row("Sound", "on" if preference.sound_enabled else "off")
    Console().print(table)


# ============ Presets ============

@cli.group()
def presets():
    """Manage custom presets (max 3)."""


@presets.command("list")
@click.pass_context
def presets_list(ctx):
    client = _client(ctx)
    _require_token(client)
    items = _call(client.list_presets)
    if not items:
        click.echo("No presets.")
        return
    table = Table("Name", "Work", "Short", "Long")
    for preset in items:
        table.add_row(preset.name, str(preset.work_duration), str(preset.short_break), str(preset.long_break))
    Console().print(table)


@presets.command("add")
@click.argument("name")
@click.argument("work", type=int)
@click.argument("short", type=int)
@click.argument("long_", metavar="LONG", type=int)
@click.pass_context
def presets_add(ctx, name, work, short, long_):
    client = _client(ctx)
    _require_token(client)
    preset = _call(client.create_preset, name, work, short, long_)
    click.echo(f"Created preset {preset.name}")


@presets.command("edit")
@click.argument("name")
@click.option("--rename", default=None)
@click.option("--work", type=int)
@click.option("--short", type=int)
@click.option("--long", "long_", type=int)
@click.pass_context
def presets_edit(ctx, name, rename, work, short, long_):
    client = _client(ctx)
    _require_token(client)
    preset = _call(client.find_preset, name)
    if preset is None:
        raise click.ClickException(f"No preset named {name!r}")
    updated = _call(client.update_preset, preset.id, name=rename, work_duration=work,
                    short_break=short, long_break=long_)
    click.echo(f"Updated preset {updated.name}")


@presets.command("rm")
@click.argument("name")
@click.pass_context
def presets_rm(ctx, name):
    client = _client(ctx)
    _require_token(client)
    preset = _call(client.find_preset, name)
    if preset is None:
        raise click.ClickException(f"No preset named {name!r}")
    _call(client.delete_preset, preset.id)
    click.echo(f"Deleted preset {name}")


# ============ Timer ============

def build_timer(client: ApiClient, preset_name: Optional[str] = None,
                custom: Optional[tuple] = None, sound=None) -> PomodoroTimer:
    """Load the caller's preferences (defaults when offline or logged out) into a timer."""
    preference = None
    selected = None
    if client.is_authenticated:
        try:
            preference = client.get_preferences()
            if preset_name:
                selected = client.find_preset(preset_name)
                if selected is None:
                    raise click.ClickException(f"No preset named {preset_name!r}")
        except ApiError as e:
            if preset_name:
                raise click.ClickException(e.describe())
            logger.warning(f"Using default durations: {e.describe()}")
    elif preset_name:
        raise click.ClickException("Presets need a login.")

    timer = PomodoroTimer(preference=preference, is_authenticated=preference is not None, sound=sound)
    if selected is not None:
        timer.select_preset(selected)
    if custom and any(v is not None for v in custom):
        if any(v is not None and v <= 0 for v in custom):
            raise click.ClickException("Custom durations must be greater than zero.")
        base = timer.config
        work, short, long_ = custom
        timer.set_custom(Durations(
            work if work is not None else base.work_duration,
            short if short is not None else base.short_break,
            long_ if long_ is not None else base.long_break,
        ))
    return timer


# Key -> action for the live display. Phases jump straight to that phase, paused.
KEY_BINDINGS = {
    " ": "toggle",
    "p": "toggle",
    "\n": "toggle",
    "\r": "toggle",
    "s": "stop",
    "r": "reset",
    "1": Phase.WORK,
    "2": Phase.SHORT_BREAK,
    "3": Phase.LONG_BREAK,
    "q": "quit",
}
KEY_HELP = "space pause/resume  s stop  r reset  1/2/3 work/short/long  q quit"


def handle_key(runner: TimerRunner, key: str) -> bool:
    """Apply one keypress to ``runner``. Returns False when the key quits."""
    action = KEY_BINDINGS.get(key.lower())
    if action is None:
        return True
    if action == "quit":
        return False
    if isinstance(action, Phase):
        runner.select_phase(action)
    elif action == "toggle":
        runner.toggle()
    elif action == "stop":
        runner.stop()
    elif action == "reset":
        runner.reset()
    return True


def render_timer(timer: PomodoroTimer) -> Panel:
    color = PHASE_COLORS[timer.phase]
    state = "running" if timer.is_running else "paused"
    header = Text(f"{timer.phase.label}  ·  {state}", style=f"bold {color}")
    clock = Text(format_time(timer.time_left), style="bold white", justify="center")
    bar = ProgressBar(total=1.0, completed=timer.progress, complete_style=color)
    footer = Text(f"{timer.completed_work_sessions} Pomodoros Completed  ·  {timer.config.source.value}",
                  style="dim")
    keys = Text(KEY_HELP, style="dim")
    return Panel(Group(header, clock, bar, footer, keys), title="Pomodoro", border_style=color)


async def run_timer(timer: PomodoroTimer, console: Console, sessions: int = 0, stdin=None) -> None:
    """Drive ``timer`` until ``q``, or until ``sessions`` work sessions complete (0 = no limit).

    Keys are read from ``stdin`` on the event loop, in cbreak mode when it is
    a terminal. Ticks and keypresses are handled on the same loop thread.
    """
    loop = asyncio.get_running_loop()
    scheduler = AsyncIOScheduler(event_loop=loop)
    finished = asyncio.Event()
    live_ref: dict = {}
    stdin = stdin or sys.stdin
    try:
        fd = stdin.fileno()
    except (OSError, ValueError):
        fd = None  # no real file behind stdin: run without key controls

    def on_update(t: PomodoroTimer, result: TickResult) -> None:
        live = live_ref.get("live")
        if live is not None:
            live.update(render_timer(t))
        if (sessions and TimerEvent.PHASE_COMPLETED in result.events
                and result.old_phase is Phase.WORK and t.completed_work_sessions >= sessions):
            finished.set()

    runner = TimerRunner(timer, scheduler, on_update=on_update)

    def on_input() -> None:
        data = os.read(fd, 1024).decode("utf-8", errors="ignore")
        if not data:
            # EOF: keep running without key controls
            loop.remove_reader(fd)
            return
        for key in data:
            if not handle_key(runner, key):
                finished.set()
                return

    saved_terminal = termios.tcgetattr(fd) if fd is not None and stdin.isatty() else None
    if saved_terminal is not None:
        tty.setcbreak(fd)
    if fd is not None:
        loop.add_reader(fd, on_input)
    scheduler.start()
    try:
        with Live(render_timer(timer), console=console, refresh_per_second=4) as live:
            live_ref["live"] = live
            runner.start()
            await finished.wait()
            live_ref.pop("live", None)
    finally:
        if fd is not None:
            loop.remove_reader(fd)
        if saved_terminal is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved_terminal)
        runner.stop()
        scheduler.shutdown(wait=False)


@cli.command()
@click.option("--preset", "preset_name", default=None, help="Use a saved preset's durations")
@click.option("--work", type=float, help="Custom work minutes for this session only")
@click.option("--short", type=float, help="Custom short break minutes for this session only")
@click.option("--long", "long_", type=float, help="Custom long break minutes for this session only")
@click.option("--phase", type=click.Choice([p.value for p in Phase]), default=Phase.WORK.value,
              show_default=True)
@click.option("--sessions", type=int, default=0, help="Stop after N work sessions (0 = run until q or Ctrl-C)")
@click.pass_context
def run(ctx, preset_name, work, short, long_, phase, sessions):
    """Run the countdown in the terminal.

    Keys: space pauses or resumes, s stops, r resets, 1/2/3 switch to
    work, short break or long break, q quits.
    """
    configure_logging(level="DEBUG" if ctx.obj["verbose"] else "WARNING", to_files=False)
    console = Console()
    timer = build_timer(_client(ctx), preset_name, (work, short, long_), sound=console.bell)
    if phase != Phase.WORK.value:
        timer.select_phase(Phase(phase))
    try:
        asyncio.run(run_timer(timer, console, sessions))
    except KeyboardInterrupt:
        pass
    console.print(f"{timer.completed_work_sessions} Pomodoros Completed")


if __name__ == "__main__":
    cli()
