from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Literal

from ztask.board.models import Location
from ztask.board.ordering import InsertionAnchor
from ztask.board.selection import ProjectSelection

logger = logging.getLogger(__name__)

END_OF_COLUMN_OFFSET = 20.0

DragKind = Literal["task", "column", "project"]


@dataclass(frozen=True)
class Rect:
  left: float
  top: float
  width: float
  height: float

  @property
  def right(self) -> float:
    return self.left + self.width

  @property
  def bottom(self) -> float:
    return self.top + self.height

  @property
  def center_x(self) -> float:
    return self.left + self.width / 2

  @property
  def center_y(self) -> float:
    return self.top + self.height / 2

  def contains(self, x: float, y: float) -> bool:
    return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class TaskBox:
  task_id: str
  rect: Rect


@dataclass(frozen=True)
class ColumnBox:
  column_id: str
  rect: Rect
  tasks: tuple[TaskBox, ...] = ()


@dataclass(frozen=True)
class DropZone:
  """A continuous hit area for project drops: a folder header/body or the uncategorized area."""

  location: Location
  rect: Rect


@dataclass(frozen=True)
class TaskDropTarget:
  column_id: str
  anchor: InsertionAnchor


@dataclass(frozen=True)
class ColumnDropTarget:
  column_id: str
  position: Literal["before", "after"]


@dataclass
class DragState:
  """
  Single-slot record of the gesture in progress. `begin` overwrites any
  stale state; `end` is unconditional and safe to call twice.
  """

  kind: DragKind | None = None
  ids: list[str] = field(default_factory=list)
  source_column_id: str | None = None

  @property
  def active(self) -> bool:
    return self.kind is not None

  @property
  def primary_id(self) -> str | None:
    return self.ids[0] if self.ids else None

  def begin(self, kind: DragKind, ids: list[str], *, source_column_id: str | None = None) -> None:
    if self.active:
      logger.debug("discarding stale %s drag %s", self.kind, self.ids)
    self.kind = kind
    self.ids = list(ids)
    self.source_column_id = source_column_id

  def end(self) -> None:
    self.kind = None
    self.ids = []
    self.source_column_id = None


class DropTargetResolver:
  """
  Nearest-neighbour drop resolution for task and column drags, containment
  hit-testing for project drags. The closest candidate wins even when the
  pointer is not inside its column.
  """

  def __init__(self, *, end_offset: float = END_OF_COLUMN_OFFSET) -> None:
    self.end_offset = end_offset
    self.drag = DragState()

  # -- gesture lifecycle ---------------------------------------------------

  def begin_task_drag(self, task_id: str, column_id: str) -> None:
    self.drag.begin("task", [task_id], source_column_id=column_id)

  def begin_column_drag(self, column_id: str) -> None:
    self.drag.begin("column", [column_id])

  def begin_project_drag(self, project_id: str, selection: ProjectSelection | None = None, ordered_ids: list[str] | None = None) -> list[str]:
    if selection is not None and project_id in selection:
      ids = selection.ids(ordered_ids)
    else:
      ids = [project_id]
    self.drag.begin("project", ids)
    return ids

  def end_drag(self) -> None:
    self.drag.end()

  @contextmanager
  def dropping(self) -> Iterator[DragState]:
    """Yields a copy of the drag state; the live state is cleared on exit no matter what."""
    snapshot = DragState(kind=self.drag.kind, ids=list(self.drag.ids), source_column_id=self.drag.source_column_id)
    try:
      yield snapshot
    finally:
      self.drag.end()

  # -- resolution ----------------------------------------------------------

  def resolve_task(self, pointer_y: float, columns: list[ColumnBox], *, dragged_id: str | None = None) -> TaskDropTarget | None:
    dragged = dragged_id if dragged_id is not None else (self.drag.primary_id if self.drag.kind == "task" else None)
    best: TaskDropTarget | None = None
    best_distance = float("inf")

    for col in columns:
      boxes = [b for b in col.tasks if b.task_id != dragged]
      if not boxes:
        distance = abs(pointer_y - col.rect.center_y)
        if distance < best_distance:
          best_distance = distance
          best = TaskDropTarget(col.column_id, InsertionAnchor.end())
        continue

      for box in boxes:
        center = box.rect.center_y
        distance = abs(pointer_y - center)
        if distance < best_distance:
          best_distance = distance
          anchor = InsertionAnchor.before(box.task_id) if pointer_y < center else InsertionAnchor.after(box.task_id)
          best = TaskDropTarget(col.column_id, anchor)

      last = boxes[-1]
      distance = abs(pointer_y - (last.rect.bottom + self.end_offset))
      if distance < best_distance:
        best_distance = distance
        best = TaskDropTarget(col.column_id, InsertionAnchor.after(last.task_id))

    return best

  def resolve_column(self, pointer_x: float, columns: list[ColumnBox], *, dragged_id: str | None = None) -> ColumnDropTarget | None:
    dragged = dragged_id if dragged_id is not None else (self.drag.primary_id if self.drag.kind == "column" else None)
    best: ColumnDropTarget | None = None
    best_distance = float("inf")
    for col in columns:
      if col.column_id == dragged:
        continue
      center = col.rect.center_x
      distance = abs(pointer_x - center)
      if distance < best_distance:
        best_distance = distance
        best = ColumnDropTarget(col.column_id, "before" if pointer_x < center else "after")
    return best

  @staticmethod
  def resolve_project(x: float, y: float, zones: list[DropZone]) -> Location | None:
    for zone in zones:
      if zone.rect.contains(x, y):
        return zone.location
    return None
