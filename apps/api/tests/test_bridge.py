from __future__ import annotations

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from ztask.board.defaults import default_tree
from ztask.board.history import HistoryLog
from ztask.board.models import Priority
from ztask.bridge.bridge import PersistenceBridge, SaveResult
from ztask.bridge.client import StorageApiError, StorageClient, StorageUnauthorizedError
from ztask.bridge.codec import BoardDataError, data_to_tree, history_from_wire, history_to_wire, tree_to_data

from conftest import sample_tree


def _project(pid: str = "p1", **task_overrides) -> dict:
  task = {"id": "t1", "text": "Ship it", **task_overrides}
  return {"id": pid, "name": "Project", "columns": [{"id": "c1", "title": "TODO", "tag": "todo", "items": [task]}]}


def _board(**task_overrides) -> dict:
  return {"folders": [{"id": "f", "name": "F", "projects": [_project(**task_overrides)]}], "uncategorized": []}


# -- codec ---------------------------------------------------------------------


def test_stored_fields_are_normalized_on_load() -> None:
  tree = data_to_tree(_board(tags="a, b ,,a", dueDate="", completedAt="2024-01-01T10:00:00Z", completed=True))
  task = tree.find_task("t1")[2]
  assert task.tags == ["a", "b"]
  assert task.due_date is None
  assert task.priority is Priority.MEDIUM
  assert task.completed_at == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_naive_timestamps_become_utc_and_dates_parse() -> None:
  tree = data_to_tree(_board(createdAt="2024-02-03T04:05:06", dueDate="2024-02-10", priority="High"))
  task = tree.find_task("t1")[2]
  assert task.created_at.tzinfo is not None
  assert task.due_date == date(2024, 2, 10)
  assert task.priority is Priority.HIGH


def test_completion_time_is_dropped_for_open_tasks() -> None:
  tree = data_to_tree(_board(completed=False, completedAt="2024-01-01T00:00:00Z"))
  assert tree.find_task("t1")[2].completed_at is None


@pytest.mark.parametrize(
  "overrides",
  [
    {"priority": "urgent"},
    {"dueDate": "01/02/2024"},
    {"tags": 7},
    {"tags": ["ok", 3]},
    {"completedAt": "yesterday"},
    {"text": ""},
  ],
)
def test_malformed_task_fields_are_rejected(overrides: dict) -> None:
  with pytest.raises(BoardDataError):
    data_to_tree(_board(**overrides))


def test_duplicate_project_ids_are_rejected() -> None:
  data = _board()
  data["uncategorized"] = [_project("p1")]
  with pytest.raises(BoardDataError, match="duplicate project id"):
    data_to_tree(data)


def test_project_without_columns_is_rejected() -> None:
  with pytest.raises(BoardDataError):
    data_to_tree({"folders": [], "uncategorized": [{"id": "p", "name": "P", "columns": []}]})


def test_legacy_flat_projects_move_into_default_folder() -> None:
  tree = data_to_tree({"projects": [_project("p1"), _project("p2")]})
  assert [(f.id, f.name) for f in tree.folders] == [("default", "Default")]
  assert tree.project_ids() == ["p1", "p2"]


def test_array_order_wins_over_stored_positions() -> None:
  data = _board()
  items = data["folders"][0]["projects"][0]["columns"][0]["items"]
  items.append({"id": "t2", "text": "Second", "position": 0})
  items[0]["position"] = 9
  tree = data_to_tree(data)
  assert [(t.id, t.position) for t in tree.find_column("c1")[1].items] == [("t1", 0), ("t2", 1)]


def test_tree_round_trips_through_the_wire_format() -> None:
  tree = default_tree()
  tree.find_task("ui1")[2].completed = True
  tree.find_task("ui1")[2].completed_at = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
  body = tree_to_data(tree)
  json.dumps(body)
  assert data_to_tree(body) == tree


def test_history_wire_round_trip() -> None:
  log = HistoryLog()
  task = sample_tree().find_task("t0")[2]
  task.tags = ["x"]
  entry = log.append("a", task, now=datetime(2024, 1, 1, tzinfo=timezone.utc))
  assert history_from_wire(history_to_wire([entry])) == [entry]


# -- client / bridge -----------------------------------------------------------


def _bridge(handler, token: str | None = "tok") -> PersistenceBridge:
  client = StorageClient("storage.test", token, transport=httpx.MockTransport(handler))
  return PersistenceBridge(client)


@pytest.mark.anyio
async def test_empty_storage_loads_the_default_tree() -> None:
  seen = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append((request.method, request.url.path, request.headers.get("authorization")))
    return httpx.Response(200, json={"folders": [], "uncategorized": []})

  tree, loaded = await _bridge(handler).load()
  assert loaded is False
  assert tree_to_data(tree)["folders"][0]["projects"][0]["id"] == "z-task"
  assert len(tree.find_project("z-task").columns) == len(default_tree().find_project("z-task").columns)
  assert seen == [("GET", "/api/user/data", "Bearer tok")]


@pytest.mark.anyio
async def test_stored_board_is_loaded() -> None:
  board = sample_tree()
  stored = tree_to_data(board)
  tree, loaded = await _bridge(lambda r: httpx.Response(200, json=stored)).load()
  assert loaded is True
  assert tree == board


@pytest.mark.anyio
async def test_save_posts_full_snapshot() -> None:
  bodies = []

  def handler(request: httpx.Request) -> httpx.Response:
    bodies.append(json.loads(request.content))
    return httpx.Response(200, json={"ok": True, "savedAt": "2024-01-01T00:00:00Z"})

  tree = sample_tree()
  result = await _bridge(handler).save(tree)
  assert result == SaveResult(ok=True)
  assert bodies == [tree_to_data(tree)]


@pytest.mark.anyio
async def test_server_error_is_reported_not_raised() -> None:
  result = await _bridge(lambda r: httpx.Response(500, json={"detail": "disk full"})).save(sample_tree())
  assert result == SaveResult(ok=False, status_code=500, message="disk full")


@pytest.mark.anyio
async def test_transport_failure_has_status_zero() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  result = await _bridge(handler).save(sample_tree())
  assert result.ok is False and result.status_code == 0


@pytest.mark.anyio
async def test_unauthorized_escapes_the_bridge() -> None:
  bridge = _bridge(lambda r: httpx.Response(401, json={"detail": "Invalid token"}))
  with pytest.raises(StorageUnauthorizedError):
    await bridge.save(sample_tree())
  with pytest.raises(StorageUnauthorizedError) as exc:
    await bridge.load()
  assert exc.value.message == "Invalid token"


@pytest.mark.anyio
async def test_missing_token_never_hits_the_network() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise AssertionError("no request expected")

  with pytest.raises(StorageUnauthorizedError):
    await _bridge(handler, token=None).load()


@pytest.mark.anyio
async def test_malformed_stored_data_raises_board_data_error() -> None:
  bridge = _bridge(lambda r: httpx.Response(200, json=_board(priority="urgent")))
  with pytest.raises(BoardDataError):
    await bridge.load()


@pytest.mark.anyio
async def test_load_failure_is_a_storage_error() -> None:
  bridge = _bridge(lambda r: httpx.Response(503, text="upstream down"))
  with pytest.raises(StorageApiError) as exc:
    await bridge.load()
  assert exc.value.status_code == 503
  assert exc.value.message == "upstream down"
