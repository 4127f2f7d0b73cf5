from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from ztask.board.models import HistoryEntry, Task
from ztask.board.tree import BoardTree

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(hours=24)


class HistoryLog:
  """Append-only archive of completed tasks, grouped by project id."""

  def __init__(self, entries: dict[str, list[HistoryEntry]] | None = None) -> None:
    self._by_project: dict[str, list[HistoryEntry]] = {k: list(v) for k, v in (entries or {}).items()}

  def append(self, project_id: str, task: Task, *, now: datetime | None = None) -> HistoryEntry:
    entry = HistoryEntry.from_task(task, now=now)
    self._by_project.setdefault(project_id, []).append(entry)
    return entry

  def entries(self, project_id: str) -> list[HistoryEntry]:
    return list(self._by_project.get(project_id, []))

  def project_ids(self) -> list[str]:
    return list(self._by_project.keys())

  def __len__(self) -> int:
    return sum(len(v) for v in self._by_project.values())


class RetentionSweep:
  """
  Archives completed tasks whose completedAt is older than the retention
  threshold, then removes them from their column.

  Runs are non-reentrant: a run requested while another is in flight is
  skipped rather than queued.
  """

  def __init__(
    self,
    tree_getter: Callable[[], BoardTree],
    history: HistoryLog,
    *,
    retention: timedelta = DEFAULT_RETENTION,
    on_archived: Callable[[dict[str, list[HistoryEntry]]], None] | None = None,
  ) -> None:
    self._tree_getter = tree_getter
    self.history = history
    self.retention = retention
    self._on_archived = on_archived
    self._running = False

  @property
  def running(self) -> bool:
    return self._running

  def _is_expired(self, task: Task, now: datetime) -> bool:
    if not task.completed or task.completed_at is None:
      return False
    completed_at = task.completed_at
    if completed_at.tzinfo is None:
      completed_at = completed_at.replace(tzinfo=timezone.utc)
    return (now - completed_at) > self.retention

  def run_once(self, now: datetime | None = None) -> dict[str, list[HistoryEntry]]:
    if self._running:
      logger.info("retention sweep already running; skipped")
      return {}
    self._running = True
    try:
      return self._sweep(now or datetime.now(timezone.utc))
    finally:
      self._running = False

  def _sweep(self, now: datetime) -> dict[str, list[HistoryEntry]]:
    archived: dict[str, list[HistoryEntry]] = {}
    tree = self._tree_getter()
    for project in tree.all_projects():
      for column in project.columns:
        expired = [t for t in column.items if self._is_expired(t, now)]
        if not expired:
          continue
        for t in expired:
          archived.setdefault(project.id, []).append(self.history.append(project.id, t, now=now))
        expired_ids = {t.id for t in expired}
        column.items = [t for t in column.items if t.id not in expired_ids]
        column.renumber()
    if archived:
      count = sum(len(v) for v in archived.values())
      logger.info("retention sweep archived %d task(s) across %d project(s)", count, len(archived))
      if self._on_archived is not None:
        self._on_archived(archived)
    return archived

  async def run_forever(self, interval_seconds: float, *, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
    # Runs once immediately, then on every tick.
    while True:
      try:
        self.run_once()
      except Exception:
        logger.exception("retention sweep failed")
      await sleep(max(1.0, float(interval_seconds)))
