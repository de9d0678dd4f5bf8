# src/worksync/workspace/views.py

"""Date filters and display helpers over a task list (no storage of their own)."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from .models import Task, TaskStatus, parse_iso_date

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

FORMER_MEMBER_SUFFIX = "(former member)"


def format_app_date(iso: str | None) -> str:
    """YYYY-MM-DD -> DD-Mon-YYYY (e.g. 10-Feb-2026)."""
    if not iso:
        return ""
    d = date.fromisoformat(iso)
    return f"{d.day:02d}-{_MONTHS[d.month - 1]}-{d.year}"


def tasks_on(tasks: Iterable[Task], day: str | date) -> list[Task]:
    iso = parse_iso_date(day)
    return [t for t in tasks if t.log_date == iso]


def diary(tasks: Iterable[Task], day: str | date) -> list[Task]:
    """What got done on a day."""
    return [t for t in tasks_on(tasks, day) if t.status is TaskStatus.DONE]


def planner(tasks: Iterable[Task], day: str | date) -> list[Task]:
    """What is still open on a day."""
    return [t for t in tasks_on(tasks, day) if t.status is not TaskStatus.DONE]


def future(tasks: Iterable[Task], today: str | date) -> list[Task]:
    """Open tasks planned after today, soonest first."""
    iso = parse_iso_date(today)
    out = [t for t in tasks if t.status is not TaskStatus.DONE and t.log_date > iso]
    out.sort(key=lambda t: (t.log_date, t.created_at))
    return out


def total_hours(tasks: Iterable[Task]) -> float:
    return sum(t.duration_hours or 0.0 for t in tasks)


def is_dangling(task: Task, team: Iterable[str]) -> bool:
    return task.assignee is not None and task.assignee not in set(team)


def assignee_label(task: Task, team: Iterable[str]) -> str:
    if task.assignee is None:
        return ""
    if is_dangling(task, team):
        return f"{task.assignee} {FORMER_MEMBER_SUFFIX}"
    return task.assignee
