from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, TypeVar

from ztask.board.defaults import default_tree
from ztask.board.engine import MutationEngine
from ztask.board.errors import BoardValidationError
from ztask.board.history import HistoryLog, RetentionSweep
from ztask.board.models import HistoryEntry, utcnow
from ztask.board.render import BoardView, render
from ztask.board.resolver import ColumnBox, DropTargetResolver, DropZone
from ztask.board.selection import ProjectSelection
from ztask.board.tree import BoardTree
from ztask.bridge.bridge import PersistenceBridge
from ztask.bridge.client import StorageApiError, StorageUnauthorizedError
from ztask.bridge.codec import BoardDataError, tree_to_data
from ztask.config import settings

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class Notice:
  level: str  # info | warn | error
  message: str


class BoardSession:
  """
  One user's board: tree, engine, selection, drag state, history and sweep,
  wired to the persistence bridge.

  Mutations apply in memory first; each successful one schedules a save of
  a snapshot taken at that moment. Saves run on the current asyncio loop in
  issue order, and a failed save is reported in `notices` but not retried.
  Without a running loop the session only marks itself dirty; `flush()`
  sends the current state.
  """

  def __init__(
    self,
    bridge: PersistenceBridge | None = None,
    *,
    tree: BoardTree | None = None,
    retention: timedelta | None = None,
    end_offset: float | None = None,
    clock: Callable[[], datetime] = utcnow,
  ) -> None:
    self.bridge = bridge
    self.history = HistoryLog()
    self.selection = ProjectSelection()
    self.resolver = DropTargetResolver(end_offset=end_offset if end_offset is not None else settings.end_of_column_offset)
    self.engine = MutationEngine(tree or default_tree(), history=self.history, on_change=self._on_change, clock=clock)
    self.sweep = RetentionSweep(
      lambda: self.engine.tree,
      self.history,
      retention=retention if retention is not None else timedelta(hours=settings.retention_hours),
      on_archived=self._on_archived,
    )
    self.current_project_id: str | None = self.tree.first_project_id()
    self.notices: list[Notice] = []
    self.authenticated = bridge is not None and bool(bridge.client.token)
    self.needs_login = bridge is not None and not self.authenticated
    self.dirty = False
    self._unsent_history: list[tuple[str, list[HistoryEntry]]] = []
    self._pending: set[asyncio.Task] = set()
    self._save_lock = asyncio.Lock()
    self._sweep_task: asyncio.Task | None = None

  @property
  def tree(self) -> BoardTree:
    return self.engine.tree

  # -- lifecycle -----------------------------------------------------------

  async def load(self) -> bool:
    """Replace the tree with the stored one. Returns True when storage had data."""
    if self.bridge is None:
      return False
    try:
      tree, loaded = await self.bridge.load()
    except StorageUnauthorizedError:
      self._auth_failed()
      return False
    except BoardDataError as exc:
      logger.warning("stored board rejected: %s", exc)
      self._notice("error", f"Stored data is invalid and was not loaded: {exc}")
      tree, loaded = default_tree(), False
    except StorageApiError as exc:
      logger.warning("board load failed (%s): %s", exc.status_code, exc.message)
      self._notice("error", f"Failed to load data: {exc.message}")
      tree, loaded = default_tree(), False
    self._replace_tree(tree)
    return loaded

  async def start(self, interval_seconds: float | None = None) -> None:
    await self.load()
    if self._sweep_task is None:
      interval = interval_seconds if interval_seconds is not None else settings.sweep_interval_seconds
      self._sweep_task = asyncio.get_running_loop().create_task(self.sweep.run_forever(interval))

  async def stop(self) -> None:
    task, self._sweep_task = self._sweep_task, None
    if task is not None:
      task.cancel()
      try:
        await task
      except asyncio.CancelledError:
        pass
    await self.drain()

  async def drain(self) -> None:
    """Wait for every save scheduled so far."""
    while self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)

  async def flush(self) -> None:
    """Send whatever was deferred while no loop was running."""
    await self.drain()
    if self.dirty:
      await self._save(tree_to_data(self.tree))
    unsent, self._unsent_history = self._unsent_history, []
    for project_id, entries in unsent:
      await self._append_history(project_id, entries)

  def login(self, token: str) -> None:
    if self.bridge is None:
      raise RuntimeError("session has no storage bridge")
    self.bridge.client.token = token
    self.authenticated = True
    self.needs_login = False

  def _auth_failed(self) -> None:
    logger.warning("storage rejected the credential; login required")
    if self.bridge is not None:
      self.bridge.client.token = None
    if self.authenticated:
      self._notice("error", "Your session has expired. Please log in again.")
    self.authenticated = False
    self.needs_login = True

  def _replace_tree(self, tree: BoardTree) -> None:
    self.engine.tree = tree
    self.selection.clear()
    self.resolver.end_drag()
    self.current_project_id = tree.first_project_id()

  # -- persistence ---------------------------------------------------------

  def _notice(self, level: str, message: str) -> None:
    self.notices.append(Notice(level, message))

  def _schedule(self, make: Callable[[], Awaitable[None]]) -> bool:
    try:
      loop = asyncio.get_running_loop()
    except RuntimeError:
      return False
    task = loop.create_task(make())
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)
    return True

  def _on_change(self, op: str, info: dict[str, Any]) -> None:
    archived = info.get("archived")
    if isinstance(archived, HistoryEntry):
      self._queue_history(info["projectId"], [archived])
    self._queue_save()

  def _on_archived(self, archived: dict[str, list[HistoryEntry]]) -> None:
    for project_id, entries in archived.items():
      self._queue_history(project_id, entries)
    self._queue_save()

  def _queue_save(self) -> None:
    body = tree_to_data(self.tree)
    if not self._schedule(lambda: self._save(body)):
      self.dirty = True

  def _queue_history(self, project_id: str, entries: list[HistoryEntry]) -> None:
    if not self._schedule(lambda: self._append_history(project_id, entries)):
      self._unsent_history.append((project_id, list(entries)))

  async def _save(self, body: dict) -> None:
    async with self._save_lock:
      if self.bridge is None or not self.authenticated:
        self.dirty = True
        return
      try:
        result = await self.bridge.save_snapshot(body)
      except StorageUnauthorizedError:
        self.dirty = True
        self._auth_failed()
        return
      if result.ok:
        self.dirty = False
      else:
        self.dirty = True
        self._notice("error", f"Failed to save data: {result.message}")

  async def _append_history(self, project_id: str, entries: list[HistoryEntry]) -> None:
    if self.bridge is None or not self.authenticated:
      self._unsent_history.append((project_id, list(entries)))
      return
    try:
      result = await self.bridge.append_history(project_id, entries)
    except StorageUnauthorizedError:
      self._unsent_history.append((project_id, list(entries)))
      self._auth_failed()
      return
    if not result.ok:
      self._notice("warn", f"Failed to archive history: {result.message}")

  # -- gestures ------------------------------------------------------------

  def attempt(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R | None:
    """Run an engine call; a rejection becomes a notice instead of an exception."""
    try:
      return fn(*args, **kwargs)
    except BoardValidationError as exc:
      self._rejected(getattr(fn, "__name__", "mutation"), exc)
      return None

  def _rejected(self, what: str, exc: BoardValidationError) -> None:
    logger.warning("rejected %s: %s", what, exc)
    self._notice("warn", str(exc))

  def open_project(self, project_id: str) -> None:
    self.current_project_id = self.tree.find_project(project_id).id

  def click_project(self, project_id: str, *, toggle: bool = False, extend: bool = False) -> None:
    """Sidebar click: ctrl/cmd toggles, shift extends from the anchor, plain opens."""
    if toggle:
      self.selection.toggle(project_id)
    elif extend:
      self.selection.extend_to(project_id, self.tree.project_ids())
    else:
      self.selection.clear()
      self.open_project(project_id)

  def drop_task(self, pointer_y: float, columns: list[ColumnBox]) -> bool:
    with self.resolver.dropping() as drag:
      if drag.kind != "task" or drag.primary_id is None or drag.source_column_id is None:
        return False
      target = self.resolver.resolve_task(pointer_y, columns, dragged_id=drag.primary_id)
      if target is None:
        return False
      return bool(self.attempt(self.engine.move_task, drag.primary_id, drag.source_column_id, target.column_id, target.anchor))

  def drop_column(self, pointer_x: float, columns: list[ColumnBox]) -> bool:
    with self.resolver.dropping() as drag:
      if drag.kind != "column" or drag.primary_id is None:
        return False
      target = self.resolver.resolve_column(pointer_x, columns, dragged_id=drag.primary_id)
      if target is None:
        return False
      return bool(self.attempt(self.engine.move_column, drag.primary_id, target.column_id, target.position))

  def drop_projects(self, x: float, y: float, zones: list[DropZone]) -> list[str]:
    with self.resolver.dropping() as drag:
      if drag.kind != "project" or not drag.ids:
        return []
      location = self.resolver.resolve_project(x, y, zones)
      if location is None:
        return []
      return self.attempt(self.engine.move_projects, drag.ids, location, selection=self.selection) or []

  def delete_project(self, project_id: str) -> bool:
    try:
      self.engine.delete_project(project_id)
    except BoardValidationError as exc:
      self._rejected("delete_project", exc)
      return False
    self.selection.discard(project_id)
    if self.current_project_id == project_id:
      self.current_project_id = self.tree.first_project_id()
    return True

  def delete_selected_projects(self) -> list[str]:
    ids = self.selection.ids(self.tree.project_ids())
    removed = self.attempt(self.engine.delete_projects, ids, selection=self.selection) or []
    if self.current_project_id in removed:
      self.current_project_id = self.tree.first_project_id()
    return removed

  def view(self) -> BoardView:
    return render(self.tree, self.current_project_id, self.selection)
