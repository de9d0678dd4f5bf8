# src/worksync/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path

from ..core.ports import SnapshotRepo
from ..core.state import AppState
from ..errors import NotFound, ValidationError, WorksyncError
from ..summary.summarizer import summarize
from ..workspace.engine import WorkspaceEngine
from ..workspace.models import EntryContext, Task, TaskDraft, TaskStatus, parse_iso_date
from ..workspace.store import decode_snapshot
from ..workspace.views import assignee_label, diary, format_app_date, future, planner, total_hours

CommandHandler = Callable[[AppState, list[str]], str | Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Worksync errors become a one-line reply; the workspace is untouched by them.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            result = handler(state, args)
            if inspect.isawaitable(result):
                result = await result
        except WorksyncError as e:
            logger.debug("Command /%s rejected: %s", name, e)
            return f"Error: {e}"
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _engine(state: AppState) -> WorkspaceEngine:
    if state.engine is None:
        raise NotFound("no active session; use /login, /register or /guest first")
    return state.engine


def _resolve_task(engine: WorkspaceEngine, prefix: str) -> Task:
    matches = [t for t in engine.tasks if t.id.startswith(prefix)]
    if len(matches) != 1:
        raise NotFound(f"no unique task matches {prefix!r}")
    return matches[0]


def _format_task(t: Task, team: list[str]) -> str:
    mark = {TaskStatus.DONE: "x", TaskStatus.IN_PROGRESS: "~"}.get(t.status, " ")
    line = f"[{mark}] {t.id[:8]} {t.title} ({t.priority.value})"
    who = assignee_label(t, team)
    if who:
        line += f" @{who}"
    if t.duration_hours is not None:
        line += f" {t.duration_hours:g}h"
    if t.postpone_reason:
        line += f" (moved: {t.postpone_reason})"
    return line


class _Usage(WorksyncError):
    def __str__(self) -> str:
        return f"usage: {self.args[0]}"


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise _Usage(usage)


# ---- session ----

async def cmd_register(state: AppState, args: list[str]) -> str:
    _need(args, 3, '/register "<name>" <contact> <secret> [style]')
    style = args[3] if len(args) > 3 else ""
    account = await state.accounts.register(args[0], args[1], args[2], style)
    if not account.verified:
        return f"Registered {account.contact}. Run /verify {account.contact} before logging in."
    return f"Registered {account.contact}. Use /login to start."


async def cmd_verify(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/verify <contact>")
    await state.accounts.verify(args[0])
    return f"Verified {args[0]}."


async def cmd_login(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/login <contact> <secret>")
    account, workspace = await state.accounts.login(args[0], args[1])
    await state.end_session()
    state.engine = await WorkspaceEngine.open(
        account, state.gateway, state.settings, initial=workspace
    )
    return f"Welcome, {account.display_name}. {len(workspace.tasks)} tasks loaded."


async def resume_session(state: AppState) -> str | None:
    """
    Reopen the workspace of the account remembered by the last login.

    Hydrates through the gateway, so a failure surfaces as SyncError and the
    remembered login is kept for the next start.
    """
    account = await state.accounts.resume()
    if account is None:
        return None
    await state.end_session()
    try:
        state.engine = await WorkspaceEngine.open(account, state.gateway, state.settings)
    except WorksyncError:
        state.accounts.sign_out(forget=False)
        raise
    return f"Welcome back, {account.display_name}. {len(state.engine.tasks)} tasks loaded."


async def cmd_guest(state: AppState, args: list[str]) -> str:
    account = state.accounts.guest()
    await state.end_session()
    state.engine = await WorkspaceEngine.open(account, state.gateway, state.settings)
    return "Guest session started. Nothing you log here leaves this session."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    await state.end_session()
    state.accounts.sign_out()
    return "Signed out."


def cmd_date(state: AppState, args: list[str]) -> str:
    if args and args[0].lower() != "today":
        state.view_date = parse_iso_date(args[0])
    elif args:
        state.view_date = date.today().isoformat()
    return f"Viewing {format_app_date(state.view_date)}."


# ---- tasks ----

def cmd_add(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/add <title>")
    task = _engine(state).create_task(TaskDraft(title=" ".join(args)), state.view_date)
    return f"Logged {task.id[:8]} on {format_app_date(task.log_date)}."


def cmd_plan(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/plan [@YYYY-MM-DD] <title>")
    due = None
    if args[0].startswith("@"):
        due = args[0][1:]
        args = args[1:]
    draft = TaskDraft(title=" ".join(args), target_date=due)
    context = EntryContext.FUTURE if due else EntryContext.PLANNER
    task = _engine(state).create_task(draft, state.view_date, context=context)
    return f"Planned {task.id[:8]} for {format_app_date(task.log_date)}."


def cmd_list(state: AppState, args: list[str]) -> str:
    engine = _engine(state)
    day = engine.tasks_on(state.view_date)
    team = engine.team
    lines = [f"{format_app_date(state.view_date)} (sync: {engine.sync_status.value})"]
    done, open_ = diary(day, state.view_date), planner(day, state.view_date)
    lines.append("Done:")
    lines += [f"  {_format_task(t, team)}" for t in done] or ["  -"]
    lines.append("Open:")
    lines += [f"  {_format_task(t, team)}" for t in open_] or ["  -"]
    hours = total_hours(day)
    if hours > 0:
        lines.append(f"Total: {hours:g}h")
    for warning in engine.warnings:
        lines.append(f"! {warning}")
    engine.warnings.clear()
    return "\n".join(lines)


def cmd_future(state: AppState, args: list[str]) -> str:
    engine = _engine(state)
    upcoming = future(engine.tasks, state.view_date)
    if not upcoming:
        return f"Nothing planned after {format_app_date(state.view_date)}."
    team = engine.team
    return "\n".join(
        f"{format_app_date(t.log_date)}  {_format_task(t, team)}" for t in upcoming
    )


def cmd_status(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/status <task-id> <todo|in_progress|done>")
    engine = _engine(state)
    task = engine.set_status(_resolve_task(engine, args[0]).id, args[1].lower())
    return f"{task.id[:8]} is {task.status.value} (log date {format_app_date(task.log_date)})."


def cmd_assign(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/assign <task-id> [member]")
    engine = _engine(state)
    member = " ".join(args[1:]) or None
    task = engine.reassign(_resolve_task(engine, args[0]).id, member)
    return f"{task.id[:8]} assigned to {task.assignee or 'nobody'}."


def cmd_hours(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/hours <task-id> <hours>")
    engine = _engine(state)
    task = engine.set_duration(_resolve_task(engine, args[0]).id, args[1])
    return f"{task.id[:8]} took {task.duration_hours:g}h."


def cmd_move(state: AppState, args: list[str]) -> str:
    _need(args, 3, "/move <task-id> <YYYY-MM-DD> <reason>")
    engine = _engine(state)
    task = engine.reschedule(_resolve_task(engine, args[0]).id, args[1], " ".join(args[2:]))
    return f"{task.id[:8]} moved to {format_app_date(task.log_date)}."


def cmd_rm(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/rm <task-id>")
    engine = _engine(state)
    task = engine.delete_task(_resolve_task(engine, args[0]).id)
    return f"Removed {task.title!r}."


# ---- team ----

def cmd_team(state: AppState, args: list[str]) -> str:
    return "Team: " + ", ".join(_engine(state).team)


def cmd_member(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/member <name>")
    return f"Added {_engine(state).add_member(' '.join(args))}."


def cmd_rename(state: AppState, args: list[str]) -> str:
    _need(args, 2, '/rename "<old>" "<new>"')
    return f"Renamed to {_engine(state).rename_member(args[0], args[1])}."


def cmd_kick(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/kick <name>")
    name = " ".join(args)
    _engine(state).remove_member(name)
    return f"Removed {name} from the team."


# ---- sync / admin ----

async def cmd_sync(state: AppState, args: list[str]) -> str:
    engine = _engine(state)
    await engine.flush()
    err = engine.scheduler.last_error
    if err is not None and engine.dirty:
        return f"Sync failed: {err}"
    return f"Sync status: {engine.sync_status.value}."


async def cmd_summary(state: AppState, args: list[str]) -> str:
    tasks = _engine(state).tasks_on(state.view_date)
    # The LLM client streams synchronously; keep the event loop (and sync timers) running.
    return await asyncio.to_thread(summarize, tasks, state.llm)


def cmd_export(state: AppState, args: list[str]) -> str:
    store: SnapshotRepo = state.store
    blob = store.export_snapshot()
    if args:
        try:
            Path(args[0]).write_text(blob, "utf-8")
        except OSError as e:
            raise ValidationError(f"cannot write {args[0]}: {e}") from e
        return f"Database exported to {args[0]}."
    return blob


async def cmd_import(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/import <path>")
    try:
        blob = Path(args[0]).read_text("utf-8")
    except (OSError, UnicodeError) as e:
        raise ValidationError(f"cannot read {args[0]}: {e}") from e
    # Reject a bad file while the current session is still intact.
    decode_snapshot(blob)

    store: SnapshotRepo = state.store
    await state.end_session()
    store.import_snapshot(blob)
    state.accounts.sign_out()
    return "Database restored. Please log in again."


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


registry.register("help", cmd_help, "show this help", aliases=["h", "?"])
registry.register("register", cmd_register, 'create an account: /register "<name>" <contact> <secret>')
registry.register("verify", cmd_verify, "confirm an account's contact")
registry.register("login", cmd_login, "log in: /login <contact> <secret>")
registry.register("guest", cmd_guest, "start a session-only guest workspace")
registry.register("logout", cmd_logout, "flush pending changes and sign out")
registry.register("date", cmd_date, "switch the day in view: /date YYYY-MM-DD|today")
registry.register("add", cmd_add, "log a finished task for the day in view")
registry.register("plan", cmd_plan, "plan a task: /plan [@YYYY-MM-DD] <title>")
registry.register("list", cmd_list, "show the day in view", aliases=["ls"])
registry.register("future", cmd_future, "open tasks planned after the day in view")
registry.register("status", cmd_status, "set a task's status")
registry.register("assign", cmd_assign, "assign a task to a team member")
registry.register("hours", cmd_hours, "record hours spent on a task")
registry.register("move", cmd_move, "postpone a task: /move <id> <date> <reason>")
registry.register("rm", cmd_rm, "delete a task")
registry.register("team", cmd_team, "list collaborators")
registry.register("member", cmd_member, "add a collaborator")
registry.register("rename", cmd_rename, "rename a collaborator (updates their tasks)")
registry.register("kick", cmd_kick, "remove a collaborator")
registry.register("sync", cmd_sync, "write pending changes now")
registry.register("summary", cmd_summary, "write a summary of the day in view")
registry.register("export", cmd_export, "export the whole database: /export [path]")
registry.register("import", cmd_import, "restore the whole database from a file")
