# tests/test_task_controller.py

from __future__ import annotations

import threading

from core.models import Status, reminder_days, reminder_from_due
from core.session import Session
from controller.task_controller import TaskListController
from services.activity_service import ActivityLog

from .fakes import FakePocketBase


def _ids(ctrl: TaskListController) -> list[str]:
    return [t.id for t in ctrl.tasks]


def _seed(store: FakePocketBase, project_id: str, n: int) -> list[str]:
    return [store.add_task(project_id, f"task {i}")["id"] for i in range(n)]


# ---- load ----

def test_load_orders_by_position_then_creation(store, activities, project, session) -> None:
    a = store.add_task(project["id"], "a", position=2)["id"]
    b = store.add_task(project["id"], "b", position=1)["id"]
    c = store.add_task(project["id"], "c", position=1)["id"]
    store.add_task(project["id"], "other user", owner="u2")
    ctrl = TaskListController(store, activities, project["id"])

    assert ctrl.load(session)
    assert _ids(ctrl) == [b, c, a]
    assert ctrl.project.title == "Website"
    assert ctrl.error is None


def test_load_foreign_project_is_not_found(store, activities, session) -> None:
    foreign = store.add_project("u2", "Not mine")
    store.add_task(foreign["id"], "secret", owner="u2")
    ctrl = TaskListController(store, activities, foreign["id"])

    assert not ctrl.load(session)
    assert ctrl.tasks == []
    assert ctrl.error == "Project not found"


def test_load_failure_leaves_list_empty(store, activities, project, session) -> None:
    store.add_task(project["id"], "a")
    store.fail.add("list_tasks")
    ctrl = TaskListController(store, activities, project["id"])

    assert not ctrl.load(session)
    assert ctrl.tasks == []
    assert ctrl.error.startswith("Failed to load tasks")


def test_load_drops_duplicate_ids(store, activities, project, session) -> None:
    t = store.add_task(project["id"], "a")

    class Dup(FakePocketBase):
        def list_tasks(self, session, project_id):
            items = super().list_tasks(session, project_id)
            return items + items

    dup = Dup()
    dup.projects, dup.tasks = store.projects, store.tasks
    ctrl = TaskListController(dup, activities, project["id"])
    assert ctrl.load(session)
    assert _ids(ctrl) == [t["id"]]


# ---- add ----

def test_add_task_appends_store_row_and_logs(ctrl, store, session) -> None:
    task = ctrl.add(session, "Write spec", "first draft", Status.TODO)

    assert task is not None
    assert [(t.title, t.status) for t in ctrl.tasks] == [("Write spec", Status.TODO)]
    assert ctrl.tasks[0].created == store.tasks[task.id]["created"]
    st = ctrl.stats()
    assert (st.total, st.progress) == (1, 0)
    logged = list(store.activities.values())
    assert [(a["type"], a["task"], a["new_status"]) for a in logged] == [("task_create", task.id, "To Do")]


def test_add_positions_new_tasks_at_the_end(ctrl, session) -> None:
    first = ctrl.add(session, "a", "x")
    second = ctrl.add(session, "b", "y")
    assert second.position > first.position


def test_add_requires_title_and_description(ctrl, store, session) -> None:
    assert ctrl.add(session, "  ", "desc") is None
    assert ctrl.add(session, "title", "") is None
    assert ctrl.error == "Title and description are required"
    assert "create_task" not in store.calls
    assert ctrl.tasks == []


def test_add_rejects_unknown_status(ctrl, store, session) -> None:
    assert ctrl.add(session, "t", "d", "Completed") is None
    assert "Invalid status" in ctrl.error
    assert "create_task" not in store.calls


def test_add_to_foreign_project_is_rejected_before_write(store, activities, session) -> None:
    foreign = store.add_project("u2", "Not mine")
    ctrl = TaskListController(store, activities, foreign["id"])

    assert ctrl.add(session, "t", "d") is None
    assert ctrl.error == "Project not found or access denied"
    assert "create_task" not in store.calls


def test_add_without_session_is_rejected(ctrl, store) -> None:
    assert ctrl.add(None, "t", "d") is None
    assert ctrl.error == "Not authenticated"
    assert ctrl.add(Session(user_id="u1", token=""), "t", "d") is None
    assert "create_task" not in store.calls


def test_add_store_failure_keeps_state(ctrl, store, session) -> None:
    store.fail.add("create_task")
    assert ctrl.add(session, "t", "d") is None
    assert ctrl.tasks == []
    assert ctrl.error.startswith("Failed to add task")


def test_add_survives_activity_failure(ctrl, store, session) -> None:
    store.fail.add("create_activity")
    task = ctrl.add(session, "t", "d")
    assert task is not None
    assert ctrl.error is None
    assert store.activities == {}


def test_add_done_task_is_stamped(ctrl, session) -> None:
    task = ctrl.add(session, "t", "d", "done")
    assert task.completed_at is not None


# ---- edit ----

def test_edit_to_done_stamps_completion(ctrl, store, session) -> None:
    task = ctrl.add(session, "Write spec", "d", Status.TODO)
    edited = ctrl.edit(session, task.id, status=Status.DONE)

    assert edited.status is Status.DONE
    assert edited.completed_at
    st = ctrl.stats()
    assert (st.completed, st.progress) == (1, 100)
    update = [a for a in store.activities.values() if a["type"] == "task_update"]
    assert [(a["old_status"], a["new_status"]) for a in update] == [("To Do", "Done")]


def test_edit_twice_converges(ctrl, session) -> None:
    task = ctrl.add(session, "a", "d")
    once = ctrl.edit(session, task.id, title="b", status="done")
    twice = ctrl.edit(session, task.id, title="b", status="done")
    assert once == twice
    assert ctrl.tasks == [twice]


def test_leaving_done_clears_completion(ctrl, session) -> None:
    task = ctrl.add(session, "a", "d", "done")
    edited = ctrl.edit(session, task.id, status=Status.IN_PROGRESS)
    assert edited.completed_at is None
    # an edit without status keeps whatever is stored
    again = ctrl.edit(session, task.id, title="renamed")
    assert again.status is Status.IN_PROGRESS and again.completed_at is None


def test_edit_uses_row_returned_by_store(store, activities, project, session) -> None:
    class Normalizing(FakePocketBase):
        def patch_task(self, session, task_id, **fields):
            if "title" in fields:
                fields["title"] = fields["title"].upper()
            return super().patch_task(session, task_id, **fields)

    norm = Normalizing()
    norm.projects = store.projects
    ctrl = TaskListController(norm, activities, project["id"])
    ctrl.load(session)
    task = ctrl.add(session, "a", "d")

    ctrl.edit(session, task.id, title="shout")
    assert ctrl.get(task.id).title == "SHOUT"


def test_edit_failure_leaves_list_unchanged(ctrl, store, session) -> None:
    task = ctrl.add(session, "a", "d")
    before = list(ctrl.tasks)
    store.fail.add("patch_task")

    assert ctrl.edit(session, task.id, title="b") is None
    assert ctrl.tasks == before
    assert ctrl.error.startswith("Failed to update task")


def test_edit_rejects_unknown_fields_and_tasks(ctrl, store, session) -> None:
    task = ctrl.add(session, "a", "d")
    assert ctrl.edit(session, task.id, owner="u2") is None
    assert "Unknown task fields" in ctrl.error
    assert ctrl.edit(session, "missing", title="x") is None
    assert ctrl.error == "Task not found"
    assert ctrl.edit(session, task.id, title=" ") is None
    assert "patch_task" not in store.calls


def test_stale_edit_response_is_discarded(store, activities, project, session) -> None:
    holder = {}

    class Racy(FakePocketBase):
        def patch_task(self, session, task_id, **fields):
            rec = super().patch_task(session, task_id, **fields)
            if fields.get("title") == "old":
                # a newer edit of the same task was issued meanwhile
                holder["ctrl"]._issue(task_id)
            return rec

    racy = Racy()
    racy.projects = store.projects
    ctrl = TaskListController(racy, activities, project["id"])
    holder["ctrl"] = ctrl
    ctrl.load(session)
    task = ctrl.add(session, "a", "d")

    assert ctrl.edit(session, task.id, title="old") is None
    assert ctrl.get(task.id).title == "a"
    assert ctrl.error is None


# ---- remove ----

def test_remove_deletes_activities_then_task(ctrl, store, session) -> None:
    task = ctrl.add(session, "Write spec", "d")
    ctrl.edit(session, task.id, status="done")
    store.calls.clear()

    assert ctrl.remove(session, task.id)
    assert ctrl.tasks == []
    assert task.id not in store.tasks
    assert store.calls.index("delete_task_activities") < store.calls.index("delete_task")
    assert not any(a.get("task") == task.id for a in store.activities.values())
    deleted = [a for a in store.activities.values() if a["type"] == "task_delete"]
    assert [(a.get("task"), a["task_title"]) for a in deleted] == [(None, "Write spec")]


def test_remove_aborts_when_activity_cleanup_fails(ctrl, store, session) -> None:
    task = ctrl.add(session, "a", "d")
    store.fail.add("delete_task_activities")

    assert not ctrl.remove(session, task.id)
    assert task.id in store.tasks
    assert [t.id for t in ctrl.tasks] == [task.id]
    assert "delete_task" not in store.calls
    assert ctrl.error.startswith("Failed to delete task")


def test_remove_task_delete_failure_keeps_local_entry(ctrl, store, session) -> None:
    task = ctrl.add(session, "a", "d")
    store.fail.add("delete_task")
    assert not ctrl.remove(session, task.id)
    assert ctrl.get(task.id) is not None


def test_remove_unknown_task(ctrl, session) -> None:
    assert not ctrl.remove(session, "nope")
    assert ctrl.error == "Task not found"


# ---- reorder ----

def test_reorder_moves_and_persists_positions(store, activities, project, session) -> None:
    t0, t1, t2, t3 = _seed(store, project["id"], 4)
    ctrl = TaskListController(store, activities, project["id"])
    ctrl.load(session)

    assert ctrl.reorder(session, 2, 0)
    assert _ids(ctrl) == [t2, t0, t1, t3]
    assert [store.tasks[i]["position"] for i in (t2, t0, t1, t3)] == [0, 1, 2, 3]
    assert [t.position for t in ctrl.tasks] == [0, 1, 2, 3]

    reloaded = TaskListController(store, activities, project["id"])
    reloaded.load(session)
    assert _ids(reloaded) == [t2, t0, t1, t3]


def test_reorder_same_index_is_noop(store, activities, project, session) -> None:
    _seed(store, project["id"], 3)
    ctrl = TaskListController(store, activities, project["id"])
    ctrl.load(session)
    before = _ids(ctrl)

    assert ctrl.reorder(session, 1, 1)
    assert _ids(ctrl) == before
    assert "batch_patch_tasks" not in store.calls


def test_reorder_out_of_range(ctrl, session) -> None:
    assert not ctrl.reorder(session, 0, 1)
    assert "out of range" in ctrl.error


def test_reorder_failure_rolls_back(store, activities, project, session) -> None:
    ids = _seed(store, project["id"], 3)
    ctrl = TaskListController(store, activities, project["id"])
    ctrl.load(session)
    store.fail.add("batch_patch_tasks")

    assert not ctrl.reorder(session, 0, 2)
    assert _ids(ctrl) == ids
    assert ctrl.error.startswith("Failed to save order")


def test_reorder_async_persists_in_background(store, activities, project, session) -> None:
    t0, t1, t2 = _seed(store, project["id"], 3)
    ctrl = TaskListController(store, activities, project["id"])
    ctrl.load(session)

    th = ctrl.reorder_async(session, 0, 2)
    assert _ids(ctrl) == [t1, t2, t0]  # optimistic, before the persist finishes
    th.join(timeout=5)
    assert [store.tasks[i]["position"] for i in (t1, t2, t0)] == [0, 1, 2]


class SlowBatch(FakePocketBase):
    """batch_patch_tasks waits until the test lets it through."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def batch_patch_tasks(self, session, updates):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().batch_patch_tasks(session, updates)


def _slow_project(session: Session) -> tuple[SlowBatch, TaskListController, list[str]]:
    slow = SlowBatch()
    project = slow.add_project("u1", "Website")
    ids = _seed(slow, project["id"], 3)
    ctrl = TaskListController(slow, ActivityLog(slow), project["id"])
    assert ctrl.load(session)
    return slow, ctrl, ids


def test_load_while_order_is_saving_keeps_the_move(session) -> None:
    slow, ctrl, (t0, t1, t2) = _slow_project(session)

    th = ctrl.reorder_async(session, 2, 0)
    assert slow.entered.wait(timeout=5)
    assert ctrl.load(session)
    assert _ids(ctrl) == [t2, t0, t1]

    slow.release.set()
    th.join(timeout=5)
    assert _ids(ctrl) == [t2, t0, t1]
    assert [t.position for t in ctrl.tasks] == [0, 1, 2]

    reloaded = TaskListController(slow, ActivityLog(slow), ctrl.project_id)
    reloaded.load(session)
    assert _ids(reloaded) == _ids(ctrl)

    # the saved order is now the one a failed reorder falls back to
    slow.fail.add("batch_patch_tasks")
    assert not ctrl.reorder(session, 0, 2)
    assert _ids(ctrl) == [t2, t0, t1]


def test_failed_save_after_load_falls_back_to_server_order(session) -> None:
    slow, ctrl, ids = _slow_project(session)
    slow.fail.add("batch_patch_tasks")

    th = ctrl.reorder_async(session, 0, 2)
    assert slow.entered.wait(timeout=5)
    assert ctrl.load(session)
    slow.release.set()
    th.join(timeout=5)

    assert _ids(ctrl) == ids
    assert ctrl.error.startswith("Failed to save order")


def test_add_after_reorder_goes_last(store, activities, project, session) -> None:
    _seed(store, project["id"], 3)
    ctrl = TaskListController(store, activities, project["id"])
    ctrl.load(session)
    ctrl.reorder(session, 2, 0)
    new = ctrl.add(session, "new", "d")

    reloaded = TaskListController(store, activities, project["id"])
    reloaded.load(session)
    assert _ids(reloaded)[-1] == new.id


# ---- misc ----

def test_filtered_by_status(ctrl, session) -> None:
    a = ctrl.add(session, "a", "d", "todo")
    b = ctrl.add(session, "b", "d", "done")
    assert [t.id for t in ctrl.filtered(Status.DONE)] == [b.id]
    assert [t.id for t in ctrl.filtered("todo")] == [a.id]
    assert len(ctrl.filtered()) == 2


def test_fetch_missing_task(ctrl, session) -> None:
    assert ctrl.fetch(session, "ghost") is None
    assert ctrl.error == "Task not found"


def test_fetch_reconciles_local_entry(ctrl, store, session) -> None:
    task = ctrl.add(session, "a", "d")
    store.tasks[task.id]["title"] = "changed elsewhere"
    assert ctrl.fetch(session, task.id).title == "changed elsewhere"
    assert ctrl.get(task.id).title == "changed elsewhere"


def test_fetch_while_editing_does_not_discard_the_edit(session) -> None:
    holder = {}

    class ReadDuringWrite(FakePocketBase):
        def patch_task(self, session, task_id, **fields):
            # the detail view reads the row before the write lands
            holder["read"] = holder["ctrl"].fetch(session, task_id)
            return super().patch_task(session, task_id, **fields)

    store = ReadDuringWrite()
    project = store.add_project("u1", "Website")
    ctrl = TaskListController(store, ActivityLog(store), project["id"])
    holder["ctrl"] = ctrl
    ctrl.load(session)
    task = ctrl.add(session, "a", "d")

    edited = ctrl.edit(session, task.id, title="b")
    assert holder["read"].title == "a"
    assert edited is not None and edited.title == "b"
    assert ctrl.get(task.id).title == "b"


def test_fetch_after_load_updates_local_entry(store, activities, project, session) -> None:
    t = store.add_task(project["id"], "a")
    ctrl = TaskListController(store, activities, project["id"])
    ctrl.load(session)
    store.tasks[t["id"]]["title"] = "renamed"

    assert ctrl.fetch(session, t["id"]).title == "renamed"
    assert ctrl.get(t["id"]).title == "renamed"


def test_detail_edit_moves_due_date_and_reminder(ctrl, store, session) -> None:
    task = ctrl.add(session, "a", "d", due_date="2024-03-10", reminder_date=reminder_from_due("2024-03-10", 1))
    shown = ctrl.fetch(session, task.id)
    assert reminder_days(shown.due_date, shown.reminder_date) == 1

    due = "2024-04-20"
    assert ctrl.edit(session, task.id, due_date=due, reminder_date=reminder_from_due(due, 3))
    assert store.tasks[task.id]["due_date"] == "2024-04-20"
    assert store.tasks[task.id]["reminder_date"] == "2024-04-17"
    again = ctrl.fetch(session, task.id)
    assert reminder_days(again.due_date, again.reminder_date) == 3

    ctrl.edit(session, task.id, due_date=None, reminder_date=None)
    assert ctrl.fetch(session, task.id).due_date is None


def test_closed_controller_ignores_responses(ctrl, store, session) -> None:
    ctrl.close()
    assert ctrl.add(session, "a", "d") is None
    assert ctrl.tasks == []
    assert not ctrl.load(session)
