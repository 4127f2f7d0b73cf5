from __future__ import annotations

from dataclasses import dataclass, field

from ztask.board.errors import BoardValidationError, EntityNotFoundError
from ztask.board.models import Column, Folder, Location, Project, Task


@dataclass
class BoardTree:
  """
  Canonical in-memory board: folders -> projects -> columns -> tasks.

  Array order is the source of truth for every ordered list. `position` on
  columns and tasks is a cached hint kept in sync by `renumber()`.
  """

  folders: list[Folder] = field(default_factory=list)
  uncategorized: list[Project] = field(default_factory=list)

  # -- reads ---------------------------------------------------------------

  def all_projects(self) -> list[Project]:
    out: list[Project] = []
    for folder in self.folders:
      out.extend(folder.projects)
    out.extend(self.uncategorized)
    return out

  def project_ids(self) -> list[str]:
    return [p.id for p in self.all_projects()]

  def first_project_id(self) -> str | None:
    for folder in self.folders:
      if folder.projects:
        return folder.projects[0].id
    if self.uncategorized:
      return self.uncategorized[0].id
    return None

  def locate(self, project_id: str) -> Location | None:
    for folder in self.folders:
      if any(p.id == project_id for p in folder.projects):
        return Location.folder(folder.id)
    if any(p.id == project_id for p in self.uncategorized):
      return Location.uncategorized()
    return None

  def container(self, location: Location) -> list[Project]:
    if location.container_id is None:
      return self.uncategorized
    return self.find_folder(location.container_id).projects

  def outstanding_task_count(self, project_id: str) -> int:
    project = self.get_project(project_id)
    if project is None:
      return 0
    return sum(1 for c in project.columns for t in c.items if not t.completed)

  def get_project(self, project_id: str) -> Project | None:
    for p in self.all_projects():
      if p.id == project_id:
        return p
    return None

  def find_project(self, project_id: str) -> Project:
    p = self.get_project(project_id)
    if p is None:
      raise EntityNotFoundError("Project", project_id)
    return p

  def find_folder(self, folder_id: str) -> Folder:
    for f in self.folders:
      if f.id == folder_id:
        return f
    raise EntityNotFoundError("Folder", folder_id)

  def find_column(self, column_id: str, project_id: str | None = None) -> tuple[Project, Column]:
    projects = [self.find_project(project_id)] if project_id else self.all_projects()
    for p in projects:
      for c in p.columns:
        if c.id == column_id:
          return p, c
    raise EntityNotFoundError("Column", column_id)

  def find_task(self, task_id: str, column_id: str | None = None) -> tuple[Project, Column, Task]:
    for p in self.all_projects():
      for c in p.columns:
        if column_id is not None and c.id != column_id:
          continue
        for t in c.items:
          if t.id == task_id:
            return p, c, t
    raise EntityNotFoundError("Task", task_id)

  # -- maintenance ---------------------------------------------------------

  def renumber(self) -> None:
    for p in self.all_projects():
      p.renumber()

  def check_invariants(self) -> None:
    seen: set[str] = set()
    for p in self.all_projects():
      if p.id in seen:
        raise BoardValidationError(f"Duplicate project id: {p.id}")
      seen.add(p.id)
      if not p.columns:
        raise BoardValidationError(f"Project {p.id} has no columns")
      for c in p.columns:
        if [t.position for t in c.items] != list(range(len(c.items))):
          raise BoardValidationError(f"Column {c.id} positions are not contiguous")
