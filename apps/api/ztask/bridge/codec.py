from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from ztask.board.errors import BoardValidationError
from ztask.board.models import Column, Folder, HistoryEntry, Priority, Project, Task, utcnow
from ztask.board.tree import BoardTree
from ztask.schemas import BoardData, ColumnIn, FolderIn, HistoryEntryIn, ProjectIn, TaskIn


class BoardDataError(ValueError):
  """Stored board data that does not pass validation."""

  def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
    super().__init__(message)
    self.errors = errors or []


def _summarize(exc: ValidationError) -> str:
  parts = []
  for err in exc.errors(include_url=False)[:3]:
    loc = ".".join(str(x) for x in err.get("loc", ()))
    parts.append(f"{loc}: {err.get('msg')}")
  more = exc.error_count() - len(parts)
  if more > 0:
    parts.append(f"and {more} more")
  return "; ".join(parts)


def _task(t: TaskIn) -> Task:
  return Task(
    id=t.id,
    text=t.text,
    description=t.description,
    priority=Priority(t.priority),
    due_date=t.dueDate,
    tags=list(t.tags),
    completed=t.completed,
    completed_at=t.completedAt,
    created_at=t.createdAt or utcnow(),
  )


def _project(p: ProjectIn) -> Project:
  return Project(
    id=p.id,
    name=p.name,
    description=p.description,
    columns=[Column(id=c.id, title=c.title, tag=c.tag, items=[_task(t) for t in c.items]) for c in p.columns],
  )


def parse_board_data(payload: Mapping[str, Any] | None) -> BoardData:
  try:
    return BoardData.model_validate(payload or {})
  except ValidationError as exc:
    raise BoardDataError(f"Invalid board data: {_summarize(exc)}", errors=exc.errors(include_url=False, include_context=False)) from exc


def data_to_tree(payload: Mapping[str, Any] | BoardData | None) -> BoardTree:
  data = payload if isinstance(payload, BoardData) else parse_board_data(payload)
  tree = BoardTree(
    folders=[Folder(id=f.id, name=f.name, expanded=f.expanded, projects=[_project(p) for p in f.projects]) for f in data.folders],
    uncategorized=[_project(p) for p in data.uncategorized],
  )
  tree.renumber()
  try:
    tree.check_invariants()
  except BoardValidationError as exc:
    raise BoardDataError(str(exc)) from exc
  return tree


def _task_in(t: Task, position: int) -> TaskIn:
  return TaskIn(
    id=t.id,
    text=t.text,
    description=t.description,
    priority=t.priority.value,
    dueDate=t.due_date,
    tags=list(t.tags),
    completed=t.completed,
    completedAt=t.completed_at,
    createdAt=t.created_at,
    position=position,
  )


def _project_in(p: Project) -> ProjectIn:
  return ProjectIn(
    id=p.id,
    name=p.name,
    description=p.description,
    columns=[
      ColumnIn(id=c.id, title=c.title, tag=c.tag, position=ci, items=[_task_in(t, ti) for ti, t in enumerate(c.items)])
      for ci, c in enumerate(p.columns)
    ],
  )


def tree_to_data(tree: BoardTree) -> dict[str, Any]:
  """Snapshot the tree as the JSON body of a full-replace save."""
  data = BoardData(
    folders=[FolderIn(id=f.id, name=f.name, expanded=f.expanded, projects=[_project_in(p) for p in f.projects]) for f in tree.folders],
    uncategorized=[_project_in(p) for p in tree.uncategorized],
  )
  return data.model_dump(mode="json")


def history_to_wire(entries: Iterable[HistoryEntry]) -> list[dict[str, Any]]:
  return [
    HistoryEntryIn(
      id=e.id,
      text=e.text,
      description=e.description,
      dueDate=e.due_date,
      priority=e.priority.value,
      tags=list(e.tags),
      completedAt=e.completed_at,
      createdAt=e.created_at,
    ).model_dump(mode="json")
    for e in entries
  ]


def history_from_wire(rows: Iterable[Mapping[str, Any]]) -> list[HistoryEntry]:
  out: list[HistoryEntry] = []
  for row in rows:
    try:
      e = HistoryEntryIn.model_validate(row)
    except ValidationError as exc:
      raise BoardDataError(f"Invalid history entry: {_summarize(exc)}") from exc
    out.append(
      HistoryEntry(
        id=e.id,
        text=e.text,
        description=e.description,
        due_date=e.dueDate,
        priority=Priority(e.priority),
        tags=tuple(e.tags),
        completed_at=e.completedAt,
        created_at=e.createdAt,
      )
    )
  return out
