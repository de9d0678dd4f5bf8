# src/worksync/workspace/models.py

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date
from enum import StrEnum
from typing import Any

from ..errors import ValidationError

SELF_MEMBER = "Self"
DEFAULT_CATEGORY = "Development"


class TaskStatus(StrEnum):
    """Task lifecycle status. Every transition is allowed; none is terminal."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(str(raw).lower())
        except ValueError:
            return cls.TODO


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).lower())
        except ValueError:
            return cls.MEDIUM


class EntryContext(StrEnum):
    """Where a task is being created from; decides its initial status."""

    DIARY = "diary"
    PLANNER = "planner"
    FUTURE = "future"

    def default_status(self) -> TaskStatus:
        return TaskStatus.DONE if self is EntryContext.DIARY else TaskStatus.TODO


@dataclass(slots=True, frozen=True)
class Account:
    id: str
    display_name: str
    contact: str
    is_ephemeral: bool = False
    style: str = ""
    verified: bool = True


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    category: str
    created_at: float
    log_date: str

    notes: str | None = None
    detail: str | None = None
    completed_at: float | None = None
    target_date: str | None = None
    assignee: str | None = None
    postpone_reason: str | None = None
    duration_hours: float | None = None


@dataclass(slots=True)
class TaskDraft:
    """User input for a new task; only the title is required."""

    title: str
    notes: str | None = None
    detail: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str = DEFAULT_CATEGORY
    target_date: str | None = None
    assignee: str | None = None
    duration_hours: float | str | None = None


@dataclass(slots=True)
class Workspace:
    tasks: list[Task] = field(default_factory=list)
    team: list[str] = field(default_factory=lambda: [SELF_MEMBER])

    def copy(self) -> Workspace:
        # Tasks are frozen, so a shallow copy of both lists is a full snapshot.
        return Workspace(tasks=list(self.tasks), team=list(self.team))

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [task_to_dict(t) for t in self.tasks],
            "team": list(self.team),
        }

    @classmethod
    def from_dict(cls, data: Any, *, strict: bool = False) -> Workspace:
        """
        Build a Workspace from the persisted layout {"tasks": [...], "team": [...]}.

        Non-strict mode tolerates junk (skips bad entries) because stored blobs are
        never versioned; strict mode is used by the admin import path.
        """
        if not isinstance(data, dict):
            if strict:
                raise ValidationError("workspace must be an object")
            return default_workspace()

        raw_tasks = data.get("tasks", [])
        raw_team = data.get("team", [SELF_MEMBER])
        if strict and (not isinstance(raw_tasks, list) or not isinstance(raw_team, list)):
            raise ValidationError("workspace.tasks and workspace.team must be lists")

        tasks: list[Task] = []
        for raw in raw_tasks if isinstance(raw_tasks, list) else []:
            try:
                tasks.append(task_from_dict(raw, strict=strict))
            except ValidationError:
                if strict:
                    raise
                continue

        team: list[str] = []
        for name in raw_team if isinstance(raw_team, list) else []:
            if not isinstance(name, str) or not name.strip():
                if strict:
                    raise ValidationError(f"invalid team member: {name!r}")
                continue
            if name not in team:
                team.append(name)

        return cls(tasks=tasks, team=team)


def default_workspace(team: list[str] | None = None) -> Workspace:
    members = list(team) if team else [SELF_MEMBER]
    if SELF_MEMBER not in members:
        members.insert(0, SELF_MEMBER)
    return Workspace(tasks=[], team=members)


def parse_iso_date(raw: Any, *, field_name: str = "date") -> str:
    """Validate a YYYY-MM-DD string (or date) and return its canonical form."""
    if isinstance(raw, date):
        return raw.isoformat()
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"{field_name} is required")
    try:
        return date.fromisoformat(raw.strip()).isoformat()
    except ValueError as e:
        raise ValidationError(f"{field_name} is not a valid calendar date: {raw!r}") from e


def parse_duration(raw: Any) -> float | None:
    """Hours as a non-negative finite number; None clears the value."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError("duration must be a number")
    if isinstance(raw, str):
        if not raw.strip():
            raise ValidationError("duration must be a number")
        try:
            raw = float(raw.strip())
        except ValueError as e:
            raise ValidationError(f"duration must be a number, got {raw!r}") from e
    if not isinstance(raw, (int, float)):
        raise ValidationError("duration must be a number")
    hours = float(raw)
    if not math.isfinite(hours) or hours < 0:
        raise ValidationError(f"duration must be a non-negative number, got {raw!r}")
    return hours


def _opt_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v)
    return s if s.strip() else None


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "notes": task.notes,
        "detail": task.detail,
        "status": task.status.value,
        "priority": task.priority.value,
        "category": task.category,
        "created_at": task.created_at,
        "completed_at": task.completed_at,
        "target_date": task.target_date,
        "log_date": task.log_date,
        "assignee": task.assignee,
        "postpone_reason": task.postpone_reason,
        "duration_hours": task.duration_hours,
    }


def task_from_dict(raw: Any, *, strict: bool = False) -> Task:
    if not isinstance(raw, dict):
        raise ValidationError("task must be an object")

    task_id = raw.get("id")
    title = raw.get("title")
    if not isinstance(task_id, str) or not task_id:
        raise ValidationError("task.id is required")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError(f"task {task_id}: title is required")

    if strict:
        status_raw = raw.get("status")
        if status_raw not in {s.value for s in TaskStatus}:
            raise ValidationError(f"task {task_id}: unknown status {status_raw!r}")
        priority_raw = raw.get("priority", TaskPriority.MEDIUM.value)
        if priority_raw not in {p.value for p in TaskPriority}:
            raise ValidationError(f"task {task_id}: unknown priority {priority_raw!r}")

    status = TaskStatus.from_db(raw.get("status"))
    try:
        created_at = float(raw.get("created_at") or 0.0)
        completed_raw = raw.get("completed_at")
        completed_at = float(completed_raw) if completed_raw is not None else None
    except (TypeError, ValueError) as e:
        raise ValidationError(f"task {task_id}: bad timestamp") from e

    target_raw = raw.get("target_date")
    try:
        duration = parse_duration(raw.get("duration_hours"))
    except ValidationError:
        if strict:
            raise
        duration = None

    return Task(
        id=task_id,
        title=title,
        status=status,
        priority=TaskPriority.from_db(raw.get("priority")),
        category=str(raw.get("category") or DEFAULT_CATEGORY),
        created_at=created_at,
        log_date=parse_iso_date(raw.get("log_date"), field_name=f"task {task_id}: log_date"),
        notes=_opt_str(raw.get("notes")),
        detail=_opt_str(raw.get("detail")),
        completed_at=completed_at if status is TaskStatus.DONE else None,
        target_date=(
            parse_iso_date(target_raw, field_name=f"task {task_id}: target_date")
            if target_raw
            else None
        ),
        assignee=_opt_str(raw.get("assignee")),
        postpone_reason=_opt_str(raw.get("postpone_reason")),
        duration_hours=duration,
    )


def with_status(task: Task, status: TaskStatus, now_ts: float) -> Task:
    """Apply a status transition and keep completed_at consistent with it."""
    if status is TaskStatus.DONE:
        return replace(task, status=status, completed_at=now_ts)
    return replace(task, status=status, completed_at=None)
