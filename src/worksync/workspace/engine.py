# src/worksync/workspace/engine.py

"""
Workspace engine.

Owns the live Workspace for one session. Every mutation:
1. validates its input (raising before anything changes),
2. applies the change synchronously (optimistic, no network wait),
3. bumps the revision and marks the workspace dirty, which arms the scheduler.

Tasks are frozen dataclasses; a mutation builds the replacement first and only
then swaps it into the list, so a failing mutation can never leave half an edit.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..core.ports import Sleep, StatusListener
from ..errors import Conflict, NotFound, SyncError, ValidationError
from .gateway import SyncGateway
from .models import (
    SELF_MEMBER,
    Account,
    EntryContext,
    Task,
    TaskDraft,
    TaskPriority,
    TaskStatus,
    Workspace,
    parse_duration,
    parse_iso_date,
    with_status,
)
from .scheduler import SyncScheduler, SyncStatus

logger = logging.getLogger(__name__)


class CompletionPolicy(StrEnum):
    """What completing a task does to its log_date."""

    REHOME = "rehome"  # log the completion on the day it actually happened
    PRESERVE = "preserve"  # keep the original plan date


def _new_id() -> str:
    return str(uuid.uuid4())


def _today_local() -> date:
    return datetime.now().astimezone().date()


def _clean_text(raw: str | None) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


class WorkspaceEngine:
    def __init__(
        self,
        account: Account,
        workspace: Workspace,
        gateway: SyncGateway,
        *,
        debounce_seconds: float = 1.5,
        status_display_seconds: float = 3.0,
        completion_policy: CompletionPolicy | str = CompletionPolicy.REHOME,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = _today_local,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not account.is_ephemeral:
            # Mutations arm the debounce timer; fail here rather than halfway through one.
            try:
                asyncio.get_running_loop()
            except RuntimeError as e:
                raise RuntimeError("a durable workspace engine needs a running event loop") from e
        self.account = account
        self._gateway = gateway
        self._ws = workspace.copy()
        if not account.is_ephemeral and SELF_MEMBER not in self._ws.team:
            self._ws.team.insert(0, SELF_MEMBER)

        self.completion_policy = CompletionPolicy(completion_policy)
        self._id_factory = id_factory
        self._clock = clock
        self._today = today

        self.revision = 0
        self._synced_revision = 0
        self.warnings: deque[str] = deque(maxlen=50)
        self._background: set[asyncio.Task[Any]] = set()

        self._scheduler = SyncScheduler(
            account,
            self,
            gateway,
            debounce_seconds=debounce_seconds,
            status_display_seconds=status_display_seconds,
            sleep=sleep,
        )

    @classmethod
    async def open(
        cls,
        account: Account,
        gateway: SyncGateway,
        settings: Any = None,
        *,
        initial: Workspace | None = None,
        **kwargs: Any,
    ) -> WorkspaceEngine:
        """
        Start a session.

        A workspace bundled with login wins over a fetch; otherwise hydrate once
        through the gateway. Fetch failures propagate (SyncError).
        """
        if settings is not None:
            kwargs.setdefault("debounce_seconds", getattr(settings, "debounce_seconds", 1.5))
            kwargs.setdefault(
                "status_display_seconds", getattr(settings, "status_display_seconds", 3.0)
            )
            kwargs.setdefault(
                "completion_policy", getattr(settings, "completion_policy", CompletionPolicy.REHOME)
            )

        workspace = initial if initial is not None else await gateway.fetch_workspace(account)
        engine = cls(account, workspace, gateway, **kwargs)
        logger.info(
            "Session opened account=%s guest=%s tasks=%d team=%d",
            account.id,
            account.is_ephemeral,
            len(engine.tasks),
            len(engine.team),
        )
        return engine

    # ---- read side ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._ws.tasks)

    @property
    def team(self) -> list[str]:
        return list(self._ws.team)

    @property
    def dirty(self) -> bool:
        return self.revision != self._synced_revision

    @property
    def sync_status(self) -> SyncStatus:
        return self._scheduler.status

    @property
    def scheduler(self) -> SyncScheduler:
        return self._scheduler

    def add_status_listener(self, listener: StatusListener) -> None:
        self._scheduler.add_listener(listener)

    def snapshot(self) -> Workspace:
        return self._ws.copy()

    def task(self, task_id: str) -> Task:
        return self._ws.tasks[self._index(task_id)]

    def tasks_on(self, day: str | date) -> list[Task]:
        iso = parse_iso_date(day)
        return [t for t in self._ws.tasks if t.log_date == iso]

    # ---- SyncSource (used by the scheduler) ----

    def sync_snapshot(self) -> tuple[int, Workspace]:
        return self.revision, self._ws.copy()

    def mark_synced(self, revision: int) -> None:
        # A newer mutation may have landed while the write was in flight.
        if revision > self._synced_revision:
            self._synced_revision = revision

    # ---- internals ----

    def _index(self, task_id: str) -> int:
        for i, t in enumerate(self._ws.tasks):
            if t.id == task_id:
                return i
        raise NotFound(f"task {task_id} not found")

    def _mark_dirty(self) -> None:
        self.revision += 1
        self._scheduler.notify_dirty()

    def _replace_task(self, index: int, task: Task) -> None:
        self._ws.tasks[index] = task
        self._mark_dirty()

    # ---- task mutations ----

    def create_task(
        self,
        draft: TaskDraft,
        view_date: str | date,
        *,
        context: EntryContext = EntryContext.DIARY,
    ) -> Task:
        title = _clean_text(draft.title)
        if not title:
            raise ValidationError("title is required")

        # An explicit due date wins over the date currently in view.
        target_date = (
            parse_iso_date(draft.target_date, field_name="target date") if draft.target_date else None
        )
        log_date = target_date or parse_iso_date(view_date, field_name="view date")
        duration = parse_duration(draft.duration_hours)
        try:
            priority = TaskPriority(draft.priority)
            status = TaskStatus(draft.status) if draft.status else context.default_status()
        except ValueError as e:
            raise ValidationError(f"unknown priority or status: {e}") from e

        task_id = self._id_factory()
        existing = {t.id for t in self._ws.tasks}
        while task_id in existing:
            task_id = self._id_factory()

        now = self._clock()
        task = Task(
            id=task_id,
            title=title,
            status=status,
            priority=priority,
            category=_clean_text(draft.category) or "Development",
            created_at=now,
            log_date=log_date,
            notes=_clean_text(draft.notes),
            detail=_clean_text(draft.detail),
            completed_at=now if status is TaskStatus.DONE else None,
            target_date=target_date,
            assignee=_clean_text(draft.assignee),
            duration_hours=duration,
        )
        self._ws.tasks.insert(0, task)
        self._mark_dirty()
        logger.debug("Task created id=%s log_date=%s status=%s", task.id, log_date, status.value)
        return task

    def set_status(self, task_id: str, status: TaskStatus | str) -> Task:
        try:
            status = TaskStatus(status)
        except ValueError as e:
            raise ValidationError(f"unknown status: {status!r}") from e
        idx = self._index(task_id)
        current = self._ws.tasks[idx]
        if current.status is status:
            return current

        updated = with_status(current, status, self._clock())
        if status is TaskStatus.DONE and self.completion_policy is CompletionPolicy.REHOME:
            today = self._today().isoformat()
            if updated.log_date != today:
                logger.debug(
                    "Task %s completed off its log date %s; re-homing to %s",
                    task_id,
                    updated.log_date,
                    today,
                )
                updated = replace(updated, log_date=today)

        self._replace_task(idx, updated)
        return updated

    def reassign(self, task_id: str, member: str | None) -> Task:
        idx = self._index(task_id)
        updated = replace(self._ws.tasks[idx], assignee=_clean_text(member))
        self._replace_task(idx, updated)
        return updated

    def set_duration(self, task_id: str, hours: Any) -> Task:
        if hours is None:
            raise ValidationError("duration is required")
        idx = self._index(task_id)
        updated = replace(self._ws.tasks[idx], duration_hours=parse_duration(hours))
        self._replace_task(idx, updated)
        return updated

    def reschedule(self, task_id: str, new_log_date: str | date | None, reason: str | None) -> Task:
        if not new_log_date:
            raise ValidationError("a target date is required to move a task")
        why = _clean_text(reason)
        if not why:
            raise ValidationError("a reason is required to move a task")
        log_date = parse_iso_date(new_log_date, field_name="target date")

        idx = self._index(task_id)
        updated = replace(self._ws.tasks[idx], log_date=log_date, postpone_reason=why)
        self._replace_task(idx, updated)
        logger.debug("Task %s moved to %s (%s)", task_id, log_date, why)
        return updated

    def delete_task(self, task_id: str) -> Task:
        """
        Remove locally now; ask the gateway to delete in the background.

        A failed remote delete is downgraded to a warning: the local removal stands
        and the next full write carries it anyway.
        """
        idx = self._index(task_id)
        removed = self._ws.tasks.pop(idx)
        self._mark_dirty()

        if not self.account.is_ephemeral:
            bg = asyncio.get_running_loop().create_task(self._remote_delete(task_id))
            self._background.add(bg)
            bg.add_done_callback(self._background.discard)
        return removed

    async def _remote_delete(self, task_id: str) -> None:
        try:
            await self._gateway.delete_task(self.account, task_id)
        except SyncError as e:
            msg = f"Failed to delete task {task_id} on the server: {e}"
            logger.warning(msg)
            self.warnings.append(msg)

    # ---- team mutations ----

    def add_member(self, name: str) -> str:
        member = _clean_text(name)
        if not member:
            raise ValidationError("member name is required")
        if member in self._ws.team:
            raise Conflict(f"{member!r} is already on the team")
        self._ws.team.append(member)
        self._mark_dirty()
        return member

    def rename_member(self, old: str, new: str) -> str:
        if old == SELF_MEMBER:
            raise ValidationError(f"{SELF_MEMBER!r} cannot be renamed")
        if old not in self._ws.team:
            raise NotFound(f"{old!r} is not on the team")
        member = _clean_text(new)
        if not member:
            raise ValidationError("new member name is required")
        if member == old:
            return member
        if member in self._ws.team:
            raise Conflict(f"{member!r} is already on the team")

        # Roster and assignees change in one mutation.
        team = [member if m == old else m for m in self._ws.team]
        tasks = [replace(t, assignee=member) if t.assignee == old else t for t in self._ws.tasks]
        self._ws.team = team
        self._ws.tasks = tasks
        self._mark_dirty()
        logger.debug("Member renamed %r -> %r", old, member)
        return member

    def remove_member(self, name: str) -> None:
        if name == SELF_MEMBER:
            raise ValidationError(f"{SELF_MEMBER!r} cannot be removed")
        if name not in self._ws.team:
            raise NotFound(f"{name!r} is not on the team")
        # Assignments are kept; views show them as former members.
        self._ws.team = [m for m in self._ws.team if m != name]
        self._mark_dirty()

    # ---- lifecycle ----

    async def flush(self) -> None:
        await self._scheduler.flush()

    async def close(self) -> None:
        """Write pending changes and wait for background deletes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self._scheduler.flush()
        await self._scheduler.aclose()
        logger.info("Session closed account=%s dirty=%s", self.account.id, self.dirty)
