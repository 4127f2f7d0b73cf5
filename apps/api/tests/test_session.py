from __future__ import annotations

import asyncio
import json

import anyio
import httpx
import pytest

from ztask.board.models import Location
from ztask.board.resolver import ColumnBox, DropZone, Rect, TaskBox
from ztask.board.session import BoardSession, Notice
from ztask.bridge.bridge import PersistenceBridge
from ztask.bridge.client import StorageClient
from ztask.bridge.codec import tree_to_data

from conftest import hours_ago, sample_tree, task_ids


class FakeStorage:
  """Records every request; GET /api/user/data returns `stored`."""

  def __init__(self, stored: dict | None = None, *, save_status: int = 200) -> None:
    self.stored = stored or {"folders": [], "uncategorized": []}
    self.save_status = save_status
    self.requests: list[tuple[str, str, object]] = []

  def __call__(self, request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content) if request.content else None
    self.requests.append((request.method, request.url.path, body))
    if request.method == "GET":
      return httpx.Response(200, json=self.stored)
    if request.url.path == "/api/user/data" and self.save_status != 200:
      return httpx.Response(self.save_status, json={"detail": "Invalid token" if self.save_status == 401 else "boom"})
    return httpx.Response(200, json={"ok": True})

  def posts(self, path: str) -> list:
    return [body for method, p, body in self.requests if method == "POST" and p == path]


def _session(storage: FakeStorage, *, token: str | None = "tok", tree=None) -> BoardSession:
  client = StorageClient("storage.test", token, transport=httpx.MockTransport(storage))
  return BoardSession(PersistenceBridge(client), tree=tree if tree is not None else sample_tree())


def _columns() -> list[ColumnBox]:
  todo = ColumnBox(
    "todo",
    Rect(0, 0, 100, 300),
    tuple(TaskBox(f"t{i}", Rect(0, i * 30, 100, 20)) for i in range(5)),
  )
  return [todo, ColumnBox("done", Rect(110, 0, 100, 300))]


@pytest.mark.anyio
async def test_mutation_is_saved_in_the_background() -> None:
  storage = FakeStorage()
  session = _session(storage)

  task = session.engine.add_task("todo", "Write tests")
  await session.drain()

  saves = storage.posts("/api/user/data")
  assert len(saves) == 1
  items = saves[0]["folders"][0]["projects"][0]["columns"][0]["items"]
  assert items[-1]["id"] == task.id
  assert session.dirty is False


@pytest.mark.anyio
async def test_saves_follow_issue_order() -> None:
  storage = FakeStorage()
  session = _session(storage)

  session.engine.rename_entity("project", "a", "First")
  session.engine.rename_entity("project", "a", "Second")
  await session.drain()

  names = [s["folders"][0]["projects"][0]["name"] for s in storage.posts("/api/user/data")]
  assert names == ["First", "Second"]


@pytest.mark.anyio
async def test_failed_save_keeps_the_change_and_reports_it() -> None:
  storage = FakeStorage(save_status=500)
  session = _session(storage)

  session.engine.rename_entity("project", "a", "Renamed")
  await session.drain()

  assert session.tree.find_project("a").name == "Renamed"
  assert session.dirty is True
  assert session.notices == [Notice("error", "Failed to save data: boom")]


@pytest.mark.anyio
async def test_expired_credential_requires_login() -> None:
  storage = FakeStorage(save_status=401)
  session = _session(storage)

  session.engine.toggle_folder("f1")
  await session.drain()

  assert session.needs_login is True
  assert session.authenticated is False
  assert session.bridge.client.token is None
  assert session.notices == [Notice("error", "Your session has expired. Please log in again.")]

  storage.save_status = 200
  session.login("fresh")
  await session.flush()
  assert session.dirty is False
  assert storage.posts("/api/user/data")[-1]["folders"][0]["expanded"] is False


@pytest.mark.anyio
async def test_load_uses_default_tree_when_storage_is_empty() -> None:
  session = _session(FakeStorage())
  assert await session.load() is False
  assert session.current_project_id == "z-task"


@pytest.mark.anyio
async def test_load_replaces_tree_and_resets_view_state() -> None:
  stored_tree = sample_tree()
  stored_tree.folders.reverse()
  session = _session(FakeStorage(tree_to_data(stored_tree)))
  session.selection.toggle("a")
  session.resolver.begin_column_drag("todo")

  assert await session.load() is True
  assert session.current_project_id == "c"
  assert not session.selection
  assert not session.resolver.drag.active


@pytest.mark.anyio
async def test_invalid_stored_data_falls_back_with_a_notice() -> None:
  session = _session(FakeStorage({"folders": [{"id": "f", "name": "F", "projects": [{"id": "p", "name": "P", "columns": []}]}]}))
  assert await session.load() is False
  assert session.current_project_id == "z-task"
  assert session.notices[0].level == "error"


@pytest.mark.anyio
async def test_task_drop_moves_and_swaps_tags() -> None:
  storage = FakeStorage()
  session = _session(storage)

  session.resolver.begin_task_drag("t0", "todo")
  assert session.drop_task(150, _columns()) is True
  await session.drain()

  _, done = session.tree.find_column("done")
  assert task_ids(done) == ["t0"]
  assert done.items[0].tags == ["done"]
  assert not session.resolver.drag.active
  assert len(storage.posts("/api/user/data")) == 1


@pytest.mark.anyio
async def test_missed_drop_clears_drag_state_without_saving() -> None:
  storage = FakeStorage()
  session = _session(storage)

  session.resolver.begin_task_drag("t0", "todo")
  assert session.drop_task(150, []) is False
  await session.drain()

  assert not session.resolver.drag.active
  assert storage.requests == []


@pytest.mark.anyio
async def test_project_drop_moves_the_selection() -> None:
  storage = FakeStorage()
  session = _session(storage)
  session.click_project("a", toggle=True)
  session.click_project("c", extend=True)
  session.resolver.begin_project_drag("a", session.selection, session.tree.project_ids())

  zones = [DropZone(Location.uncategorized(), Rect(0, 500, 200, 100))]
  moved = session.drop_projects(50, 550, zones)
  await session.drain()

  assert moved == ["a", "b", "c"]
  assert [p.id for p in session.tree.uncategorized] == ["d", "a", "b", "c"]
  assert not session.selection


@pytest.mark.anyio
async def test_rejected_gesture_becomes_a_notice() -> None:
  storage = FakeStorage()
  session = _session(storage)

  assert session.attempt(session.engine.delete_column, "b-col") is None
  await session.drain()

  assert session.notices == [Notice("warn", "You must have at least one column")]
  assert storage.requests == []


@pytest.mark.anyio
async def test_over_long_name_is_rejected_and_saving_continues() -> None:
  storage = FakeStorage()
  session = _session(storage)

  assert session.attempt(session.engine.rename_entity, "project", "a", "x" * 201) is None
  assert session.attempt(session.engine.add_task, "todo", "t" * 2001) is None
  await session.drain()

  assert session.tree.find_project("a").name == "Alpha"
  assert len(session.tree.find_column("todo")[1].items) == 5
  assert [n.level for n in session.notices] == ["warn", "warn"]
  assert storage.requests == []

  session.engine.rename_entity("project", "a", "Apollo")
  await session.drain()
  assert storage.posts("/api/user/data")[0]["folders"][0]["projects"][0]["name"] == "Apollo"


@pytest.mark.anyio
async def test_deleting_a_completed_task_archives_it() -> None:
  storage = FakeStorage()
  session = _session(storage)

  session.engine.toggle_task_completion("t2")
  session.engine.delete_task("t2")
  await session.drain()

  appended = storage.posts("/api/user/history")
  assert [(b["projectId"], [e["id"] for e in b["entries"]]) for b in appended] == [("a", ["t2"])]
  assert len(storage.posts("/api/user/data")) == 2


@pytest.mark.anyio
async def test_deleting_current_project_moves_to_first() -> None:
  session = _session(FakeStorage())
  session.open_project("b")
  session.selection.toggle("b")

  assert session.delete_project("b") is True
  assert session.current_project_id == "a"
  assert "b" not in session.selection
  await session.drain()


@pytest.mark.anyio
async def test_background_sweep_archives_and_saves() -> None:
  tree = sample_tree()
  done = tree.find_task("t1")[2]
  done.completed = True
  done.completed_at = hours_ago(48)
  storage = FakeStorage(tree_to_data(tree))
  session = _session(storage)

  await session.start(3600)
  await asyncio.sleep(0)
  await session.stop()

  assert "t1" not in task_ids(session.tree.find_column("todo")[1])
  assert [b["entries"][0]["id"] for b in storage.posts("/api/user/history")] == ["t1"]
  assert len(storage.posts("/api/user/data")) == 1


def test_changes_without_a_loop_are_deferred_until_flush() -> None:
  storage = FakeStorage()
  session = _session(storage)

  session.engine.rename_entity("column", "todo", "Backlog")
  session.engine.toggle_task_completion("t0")
  session.engine.delete_task("t0")
  assert session.dirty is True
  assert storage.requests == []

  anyio.run(session.flush)

  assert session.dirty is False
  saved = storage.posts("/api/user/data")
  assert len(saved) == 1
  assert saved[0]["folders"][0]["projects"][0]["columns"][0]["title"] == "Backlog"
  assert storage.posts("/api/user/history")[0]["entries"][0]["id"] == "t0"


def test_view_reflects_session_state() -> None:
  session = _session(FakeStorage())
  session.click_project("c")
  view = session.view()
  assert view.current_project_id == "c"
  assert [c.id for c in view.columns] == ["c-col"]
