# tests/test_engine.py

from __future__ import annotations

import itertools

import pytest

from worksync.accounts.service import AccountService
from worksync.errors import Conflict, NotFound, ValidationError
from worksync.workspace.engine import CompletionPolicy, WorkspaceEngine
from worksync.workspace.gateway import SyncGateway
from worksync.workspace.models import (
    EntryContext,
    TaskDraft,
    TaskPriority,
    TaskStatus,
    Workspace,
)
from worksync.workspace.views import assignee_label, is_dangling

from .fakes import FakeClock, RecordingStore


@pytest.mark.asyncio
async def test_register_add_and_move_a_task(
    store: RecordingStore, gateway: SyncGateway, clock: FakeClock
) -> None:
    accounts = AccountService(store)
    await accounts.register("Eve", "e@x.com", "pw")
    account, workspace = await accounts.login("e@x.com", "pw")
    assert workspace.tasks == []
    assert workspace.team == ["Self"]

    engine = await WorkspaceEngine.open(
        account, gateway, initial=workspace, clock=clock.time, sleep=clock.sleep
    )
    task = engine.create_task(TaskDraft(title="Fix bug"), "2026-02-10")
    assert len(engine.tasks) == 1
    assert task.status is TaskStatus.DONE  # diary entries are logged as done
    assert task.log_date == "2026-02-10"

    moved = engine.reschedule(task.id, "2026-02-12", "waiting on review")
    assert moved.log_date == "2026-02-12"
    assert moved.postpone_reason == "waiting on review"

    revision = engine.revision
    with pytest.raises(ValidationError):
        engine.reschedule(task.id, "", "x")
    with pytest.raises(ValidationError):
        engine.reschedule(task.id, "2026-02-13", "   ")
    assert engine.task(task.id) == moved
    assert engine.revision == revision

    await engine.close()
    assert store.read(account.id).tasks == [moved]


@pytest.mark.asyncio
async def test_open_hydrates_through_the_gateway(
    store: RecordingStore, gateway: SyncGateway, account, clock: FakeClock
) -> None:
    store.write(account.id, Workspace(tasks=[], team=["Self", "Rahul"]))
    engine = await WorkspaceEngine.open(account, gateway, clock=clock.time, sleep=clock.sleep)
    assert engine.team == ["Self", "Rahul"]
    assert [c.op for c in store.calls] == ["write", "read"]
    await engine.close()


@pytest.mark.asyncio
async def test_create_task_prefers_explicit_target_date(make_engine) -> None:
    engine = make_engine()
    task = engine.create_task(
        TaskDraft(title="Ship release", target_date="2026-03-01", priority=TaskPriority.HIGH),
        "2026-02-10",
        context=EntryContext.PLANNER,
    )
    assert task.log_date == "2026-03-01"
    assert task.target_date == "2026-03-01"
    assert task.status is TaskStatus.TODO
    assert task.completed_at is None
    assert task.category == "Development"
    await engine.close()


@pytest.mark.asyncio
async def test_create_task_ids_stay_unique(make_engine) -> None:
    ids = itertools.chain(["dup", "dup", "dup"], (f"id-{i}" for i in itertools.count()))
    engine = make_engine(id_factory=lambda: next(ids))

    a = engine.create_task(TaskDraft(title="one"), "2026-02-10")
    b = engine.create_task(TaskDraft(title="two"), "2026-02-10")
    assert a.id == "dup"
    assert b.id == "id-0"
    # Newest first.
    assert [t.title for t in engine.tasks] == ["two", "one"]
    await engine.close()


@pytest.mark.asyncio
async def test_create_task_rejects_bad_input_without_changes(make_engine) -> None:
    engine = make_engine()
    with pytest.raises(ValidationError):
        engine.create_task(TaskDraft(title="   "), "2026-02-10")
    with pytest.raises(ValidationError):
        engine.create_task(TaskDraft(title="x"), "2026-02-30")
    with pytest.raises(ValidationError):
        engine.create_task(TaskDraft(title="x", duration_hours=-1), "2026-02-10")
    with pytest.raises(ValidationError):
        engine.create_task(TaskDraft(title="x", priority="urgent"), "2026-02-10")
    assert engine.tasks == []
    assert not engine.dirty
    await engine.close()


@pytest.mark.asyncio
async def test_completion_timestamp_follows_status(make_engine, clock: FakeClock) -> None:
    engine = make_engine(completion_policy=CompletionPolicy.PRESERVE)
    task = engine.create_task(TaskDraft(title="Review PR"), "2026-02-10", context=EntryContext.PLANNER)

    await clock.advance(1.0)
    done = engine.set_status(task.id, TaskStatus.DONE)
    assert done.completed_at == 1.0

    await clock.advance(1.0)
    again = engine.set_status(task.id, "done")
    assert again.completed_at == 1.0

    reopened = engine.set_status(task.id, TaskStatus.IN_PROGRESS)
    assert reopened.completed_at is None
    assert reopened.log_date == "2026-02-10"

    with pytest.raises(ValidationError):
        engine.set_status(task.id, "blocked")
    await engine.close()


@pytest.mark.asyncio
async def test_completion_policy_decides_the_log_date(make_engine) -> None:
    rehome = make_engine()
    t = rehome.create_task(TaskDraft(title="Old plan"), "2026-02-05", context=EntryContext.PLANNER)
    assert rehome.set_status(t.id, TaskStatus.DONE).log_date == "2026-02-10"
    await rehome.close()

    preserve = make_engine(completion_policy="preserve")
    t = preserve.create_task(TaskDraft(title="Old plan"), "2026-02-05", context=EntryContext.PLANNER)
    assert preserve.set_status(t.id, TaskStatus.DONE).log_date == "2026-02-05"
    await preserve.close()


@pytest.mark.asyncio
async def test_reassign_tolerates_unknown_members(make_engine) -> None:
    engine = make_engine()
    task = engine.create_task(TaskDraft(title="Deploy"), "2026-02-10")
    updated = engine.reassign(task.id, "Someone Else")
    assert updated.assignee == "Someone Else"
    assert is_dangling(updated, engine.team)
    assert assignee_label(updated, engine.team) == "Someone Else (former member)"

    assert engine.reassign(task.id, "").assignee is None
    await engine.close()


@pytest.mark.asyncio
async def test_set_duration_rejects_invalid_hours(make_engine) -> None:
    engine = make_engine()
    task = engine.create_task(TaskDraft(title="Pairing", duration_hours="1.5"), "2026-02-10")
    assert task.duration_hours == 1.5

    for bad in (-2, "abc", "", True, float("nan")):
        with pytest.raises(ValidationError):
            engine.set_duration(task.id, bad)
    assert engine.task(task.id).duration_hours == 1.5

    assert engine.set_duration(task.id, "3").duration_hours == 3.0
    with pytest.raises(ValidationError):
        engine.set_duration(task.id, None)
    assert engine.task(task.id).duration_hours == 3.0
    await engine.close()


@pytest.mark.asyncio
async def test_rejected_duration_does_not_mark_dirty(make_engine) -> None:
    engine = make_engine()
    task = engine.create_task(TaskDraft(title="Pairing"), "2026-02-10")
    revision = engine.revision
    with pytest.raises(ValidationError):
        engine.set_duration(task.id, None)
    assert engine.revision == revision
    await engine.close()


@pytest.mark.asyncio
async def test_rename_member_cascades_to_assignees(make_engine) -> None:
    engine = make_engine(workspace=Workspace(tasks=[], team=["Self", "Priya", "Rahul"]))
    a = engine.create_task(TaskDraft(title="a", assignee="Priya"), "2026-02-10")
    b = engine.create_task(TaskDraft(title="b", assignee="Rahul"), "2026-02-10")
    c = engine.create_task(TaskDraft(title="c", assignee="Priya"), "2026-02-11")

    revision = engine.revision
    engine.rename_member("Priya", "Priyanka")
    assert engine.revision == revision + 1

    assert engine.team == ["Self", "Priyanka", "Rahul"]
    assert all(t.assignee != "Priya" for t in engine.tasks)
    assert engine.task(a.id).assignee == "Priyanka"
    assert engine.task(c.id).assignee == "Priyanka"
    assert engine.task(b.id).assignee == "Rahul"
    await engine.close()


@pytest.mark.asyncio
async def test_team_rules(make_engine) -> None:
    engine = make_engine(workspace=Workspace(tasks=[], team=["Self", "Priya"]))

    with pytest.raises(Conflict):
        engine.add_member("Priya")
    with pytest.raises(ValidationError):
        engine.add_member("  ")
    with pytest.raises(Conflict):
        engine.rename_member("Priya", "Self")
    with pytest.raises(ValidationError):
        engine.rename_member("Self", "Me")
    with pytest.raises(NotFound):
        engine.rename_member("Nobody", "Somebody")
    with pytest.raises(ValidationError):
        engine.remove_member("Self")
    with pytest.raises(NotFound):
        engine.remove_member("Nobody")
    assert not engine.dirty

    task = engine.create_task(TaskDraft(title="Handover", assignee="Priya"), "2026-02-10")
    engine.remove_member("Priya")
    assert engine.team == ["Self"]
    # The assignment survives; views mark it as a former member.
    assert engine.task(task.id).assignee == "Priya"
    assert is_dangling(engine.task(task.id), engine.team)

    with pytest.raises(ValidationError):
        engine.remove_member("Self")
    await engine.close()


@pytest.mark.asyncio
async def test_self_is_always_on_a_durable_team(make_engine) -> None:
    engine = make_engine(workspace=Workspace(tasks=[], team=["Rahul"]))
    assert engine.team == ["Self", "Rahul"]
    await engine.close()


@pytest.mark.asyncio
async def test_delete_survives_a_failed_remote_delete(
    make_engine, store: RecordingStore, clock: FakeClock
) -> None:
    engine = make_engine()
    keep = engine.create_task(TaskDraft(title="keep"), "2026-02-10")
    drop = engine.create_task(TaskDraft(title="drop"), "2026-02-10")
    await engine.flush()

    store.fail_deletes = True
    removed = engine.delete_task(drop.id)
    assert removed.id == drop.id
    assert [t.id for t in engine.tasks] == [keep.id]

    await clock.advance(0.0)
    assert len(engine.warnings) == 1
    assert drop.id in engine.warnings[0]

    # The next full write carries the removal anyway.
    await engine.close()
    assert [t.id for t in store.read("acc-1").tasks] == [keep.id]


@pytest.mark.asyncio
async def test_unknown_task_ids_raise_not_found(make_engine) -> None:
    engine = make_engine()
    for call in (
        lambda: engine.set_status("nope", TaskStatus.DONE),
        lambda: engine.reassign("nope", "Self"),
        lambda: engine.set_duration("nope", 1),
        lambda: engine.reschedule("nope", "2026-02-11", "later"),
        lambda: engine.delete_task("nope"),
    ):
        with pytest.raises(NotFound):
            call()
    assert not engine.dirty
    await engine.close()


@pytest.mark.asyncio
async def test_tasks_on_filters_by_log_date(make_engine) -> None:
    engine = make_engine()
    engine.create_task(TaskDraft(title="a"), "2026-02-10")
    engine.create_task(TaskDraft(title="b"), "2026-02-11")
    assert [t.title for t in engine.tasks_on("2026-02-10")] == ["a"]
    assert engine.tasks_on("2026-02-12") == []
    await engine.close()


def test_durable_engine_needs_a_running_loop(account, guest, gateway: SyncGateway) -> None:
    with pytest.raises(RuntimeError, match="running event loop"):
        WorkspaceEngine(account, Workspace(tasks=[], team=["Self"]), gateway)

    engine = WorkspaceEngine(guest, Workspace(tasks=[], team=["Self"]), gateway)
    task = engine.create_task(TaskDraft(title="Offline note"), "2026-02-10")
    assert engine.tasks == [task]
