from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ztask.board.models import Project, Task
from ztask.board.selection import ProjectSelection
from ztask.board.tree import BoardTree

BRIEF_DESCRIPTION_LIMIT = 50


@dataclass(frozen=True)
class ProjectRow:
  id: str
  name: str
  outstanding: int
  selected: bool
  current: bool


@dataclass(frozen=True)
class FolderRow:
  id: str
  name: str
  expanded: bool
  projects: tuple[ProjectRow, ...]


@dataclass(frozen=True)
class TaskCard:
  id: str
  text: str
  brief: str
  priority: str
  due_date: date | None
  tags: tuple[str, ...]
  completed: bool


@dataclass(frozen=True)
class ColumnView:
  id: str
  title: str
  tag: str
  count: int
  cards: tuple[TaskCard, ...]


@dataclass(frozen=True)
class BoardView:
  folders: tuple[FolderRow, ...]
  uncategorized: tuple[ProjectRow, ...]
  current_project_id: str | None
  current_project_name: str
  columns: tuple[ColumnView, ...]


def brief_description(text: str, limit: int = BRIEF_DESCRIPTION_LIMIT) -> str:
  s = (text or "").strip()
  if len(s) <= limit:
    return s
  return s[:limit] + "..."


def _card(t: Task) -> TaskCard:
  return TaskCard(
    id=t.id,
    text=t.text,
    brief=brief_description(t.description),
    priority=t.priority.value,
    due_date=t.due_date,
    tags=tuple(t.tags),
    completed=t.completed,
  )


def render(tree: BoardTree, current_project_id: str | None = None, selection: ProjectSelection | None = None) -> BoardView:
  """Pure projection of the tree for a view layer; never mutates its inputs."""

  def row(p: Project) -> ProjectRow:
    return ProjectRow(
      id=p.id,
      name=p.name,
      outstanding=tree.outstanding_task_count(p.id),
      selected=bool(selection is not None and p.id in selection),
      current=p.id == current_project_id,
    )

  current = tree.get_project(current_project_id) if current_project_id else None
  columns: tuple[ColumnView, ...] = ()
  if current is not None:
    columns = tuple(
      ColumnView(id=c.id, title=c.title, tag=c.tag, count=len(c.items), cards=tuple(_card(t) for t in c.items))
      for c in current.columns
    )
  return BoardView(
    folders=tuple(FolderRow(id=f.id, name=f.name, expanded=f.expanded, projects=tuple(row(p) for p in f.projects)) for f in tree.folders),
    uncategorized=tuple(row(p) for p in tree.uncategorized),
    current_project_id=current.id if current else None,
    current_project_name=current.name if current else "",
    columns=columns,
  )
