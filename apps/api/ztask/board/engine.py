from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Iterable, Literal

from ztask.board.defaults import new_id, new_project_columns
from ztask.board.errors import BoardValidationError, EntityNotFoundError
from ztask.board.history import HistoryLog
from ztask.board.models import NAME_MAX_LENGTH, TASK_TEXT_MAX_LENGTH, Column, ContainerType, Folder, Location, Priority, Project, Task, utcnow
from ztask.board.ordering import InsertionAnchor, InsertPosition, index_of, move_between, reorder_within_list
from ztask.board.selection import ProjectSelection
from ztask.board.tree import BoardTree

logger = logging.getLogger(__name__)

EntityKind = Literal["folder", "project", "column", "task"]
Confirm = bool | Callable[[Folder], bool]


def _clean_name(value: str | None, *, what: str, max_length: int = NAME_MAX_LENGTH) -> str:
  name = (value or "").strip()
  if not name:
    raise BoardValidationError(f"{what} must not be empty")
  if len(name) > max_length:
    raise BoardValidationError(f"{what} must be at most {max_length} characters")
  return name


def parse_tags(value: Iterable[str] | str | None) -> list[str]:
  """Tags from the task form: a list, or a comma-separated string."""
  if value is None:
    return []
  raw = value.split(",") if isinstance(value, str) else list(value)
  out: list[str] = []
  for t in raw:
    s = str(t).strip()
    if s and s not in out:
      out.append(s)
  return out


class MutationEngine:
  """
  Structural edits over one BoardTree.

  Every operation validates first and mutates second, so a rejected call
  leaves the tree untouched. Each successful change calls `on_change(op, info)`
  exactly once; no-ops and rejections never do.
  """

  def __init__(
    self,
    tree: BoardTree,
    *,
    history: HistoryLog | None = None,
    on_change: Callable[[str, dict[str, Any]], None] | None = None,
    clock: Callable[[], datetime] = utcnow,
  ) -> None:
    self.tree = tree
    self.history = history if history is not None else HistoryLog()
    self.on_change = on_change
    self._clock = clock

  def _changed(self, op: str, **info: Any) -> None:
    logger.debug("board mutation %s %s", op, info)
    if self.on_change is not None:
      self.on_change(op, info)

  # -- folders -------------------------------------------------------------

  def add_folder(self, name: str) -> Folder:
    folder = Folder(id=new_id(), name=_clean_name(name, what="Folder name"), expanded=True)
    self.tree.folders.append(folder)
    self._changed("folder.added", folderId=folder.id)
    return folder

  def toggle_folder(self, folder_id: str) -> bool:
    folder = self.tree.find_folder(folder_id)
    folder.expanded = not folder.expanded
    self._changed("folder.toggled", folderId=folder.id, expanded=folder.expanded)
    return folder.expanded

  def delete_folder(self, folder_id: str, *, confirm: Confirm = False) -> bool:
    """
    Remove a folder. A non-empty folder needs confirmation; its projects are
    appended to uncategorized rather than deleted. Returns False when the
    caller declined.
    """
    folder = self.tree.find_folder(folder_id)
    if folder.projects:
      ok = confirm(folder) if callable(confirm) else bool(confirm)
      if not ok:
        return False
      self.tree.uncategorized.extend(folder.projects)
    self.tree.folders = [f for f in self.tree.folders if f.id != folder_id]
    self._changed("folder.deleted", folderId=folder_id, reparented=[p.id for p in folder.projects])
    return True

  # -- projects ------------------------------------------------------------

  def add_project(self, name: str, *, folder_id: str | None = None, description: str = "") -> Project:
    clean = _clean_name(name, what="Project name")
    folder = self.tree.find_folder(folder_id) if folder_id else None
    project = Project(id=new_id(), name=clean, description=(description or "").strip(), columns=new_project_columns())
    if folder is not None:
      folder.projects.append(project)
      folder.expanded = True
    else:
      self.tree.uncategorized.append(project)
    self._changed("project.added", projectId=project.id, folderId=folder_id)
    return project

  def move_project(self, project_id: str, target: Location) -> bool:
    current = self.tree.locate(project_id)
    if current is None:
      raise EntityNotFoundError("Project", project_id)
    if not self._move_project(project_id, current, target):
      return False
    self._changed("project.moved", projectId=project_id, target=target.type.value, targetId=target.container_id)
    return True

  def move_projects(self, project_ids: Iterable[str], target: Location, *, selection: ProjectSelection | None = None) -> list[str]:
    """
    Batch move (multi-select drop). Each id is checked against its own
    current container so a project already in the target is skipped.
    The selection is cleared afterwards.
    """
    ids = list(dict.fromkeys(project_ids))
    self._target_container(target)
    moved: list[str] = []
    for pid in ids:
      current = self.tree.locate(pid)
      if current is None:
        continue
      if self._move_project(pid, current, target):
        moved.append(pid)
    if selection is not None:
      selection.clear()
    if moved:
      self._changed("projects.moved", projectIds=moved, target=target.type.value, targetId=target.container_id)
    return moved

  def _target_container(self, target: Location) -> list[Project]:
    if target.type == ContainerType.FOLDER:
      if not target.container_id:
        raise BoardValidationError("Folder target requires a folder id")
      return self.tree.find_folder(target.container_id).projects
    return self.tree.uncategorized

  def _move_project(self, project_id: str, current: Location, target: Location) -> bool:
    dest = self._target_container(target)
    if current == target:
      return False
    source = self.tree.container(current)
    idx = index_of(source, project_id)
    project = source.pop(idx)
    dest.append(project)
    if target.type == ContainerType.FOLDER:
      self.tree.find_folder(target.container_id or "").expanded = True
    return True

  def delete_project(self, project_id: str) -> None:
    location = self.tree.locate(project_id)
    if location is None:
      raise EntityNotFoundError("Project", project_id)
    if len(self.tree.all_projects()) <= 1:
      raise BoardValidationError("You must have at least one project")
    container = self.tree.container(location)
    del container[index_of(container, project_id)]
    self._changed("project.deleted", projectId=project_id)

  def delete_projects(self, project_ids: Iterable[str], *, selection: ProjectSelection | None = None) -> list[str]:
    ids = {pid for pid in project_ids if self.tree.locate(pid) is not None}
    if not ids:
      return []
    if len(ids) >= len(self.tree.all_projects()):
      raise BoardValidationError("You must have at least one project")
    for folder in self.tree.folders:
      folder.projects = [p for p in folder.projects if p.id not in ids]
    self.tree.uncategorized = [p for p in self.tree.uncategorized if p.id not in ids]
    if selection is not None:
      selection.clear()
    removed = sorted(ids)
    self._changed("projects.deleted", projectIds=removed)
    return removed

  # -- columns -------------------------------------------------------------

  def add_column(self, project_id: str, title: str, *, tag: str = "") -> Column:
    project = self.tree.find_project(project_id)
    column = Column(id=new_id(), title=_clean_name(title, what="Column title"), tag=(tag or "").strip())
    project.columns.append(column)
    project.renumber()
    self._changed("column.added", projectId=project.id, columnId=column.id)
    return column

  def update_column(self, column_id: str, *, title: str | None = None, tag: str | None = None) -> Column:
    _, column = self.tree.find_column(column_id)
    new_title = _clean_name(title, what="Column title") if title is not None else column.title
    column.title = new_title
    if tag is not None:
      column.tag = tag.strip()
      # Existing tasks pick up the new column tag.
      for t in column.items:
        t.add_tag(column.tag)
    self._changed("column.updated", columnId=column.id)
    return column

  def move_column(self, column_id: str, dest_column_id: str, position: InsertPosition = "before") -> bool:
    if column_id == dest_column_id:
      return False
    project, _ = self.tree.find_column(column_id)
    dest_project, _ = self.tree.find_column(dest_column_id)
    if dest_project is not project:
      raise BoardValidationError("Columns can only be reordered within their project")
    old, new = reorder_within_list(project.columns, column_id, InsertionAnchor(dest_column_id, position), kind="Column")
    if old == new:
      return False
    project.renumber()
    self._changed("column.moved", projectId=project.id, columnId=column_id, fromIndex=old, toIndex=new)
    return True

  def delete_column(self, column_id: str) -> None:
    project, _ = self.tree.find_column(column_id)
    if len(project.columns) <= 1:
      raise BoardValidationError("You must have at least one column")
    project.columns = [c for c in project.columns if c.id != column_id]
    project.renumber()
    self._changed("column.deleted", projectId=project.id, columnId=column_id)

  # -- tasks ---------------------------------------------------------------

  def add_task(
    self,
    column_id: str,
    text: str,
    *,
    description: str = "",
    priority: Priority | str | None = None,
    due_date: date | None = None,
    tags: Iterable[str] | str | None = None,
  ) -> Task:
    _, column = self.tree.find_column(column_id)
    task = Task(
      id=new_id(),
      text=_clean_name(text, what="Task text", max_length=TASK_TEXT_MAX_LENGTH),
      description=(description or "").strip(),
      priority=self._priority(priority),
      due_date=due_date,
      tags=parse_tags(tags),
      created_at=self._clock(),
    )
    column.items.append(task)
    column.renumber()
    self._changed("task.added", columnId=column.id, taskId=task.id)
    return task

  def update_task(
    self,
    task_id: str,
    *,
    text: str | None = None,
    description: str | None = None,
    priority: Priority | str | None = None,
    due_date: date | None | Literal[""] = "",
    tags: Iterable[str] | str | None = None,
  ) -> Task:
    _, column, task = self.tree.find_task(task_id)
    new_text = _clean_name(text, what="Task text", max_length=TASK_TEXT_MAX_LENGTH) if text is not None else task.text
    new_priority = self._priority(priority) if priority is not None else task.priority
    task.text = new_text
    task.priority = new_priority
    if description is not None:
      task.description = description.strip()
    if due_date != "":
      task.due_date = due_date or None
    if tags is not None:
      task.tags = parse_tags(tags)
      task.add_tag(column.tag)
    self._changed("task.updated", taskId=task.id)
    return task

  def toggle_task_completion(self, task_id: str) -> Task:
    _, _, task = self.tree.find_task(task_id)
    task.completed = not task.completed
    task.completed_at = self._clock() if task.completed else None
    self._changed("task.toggled", taskId=task.id, completed=task.completed)
    return task

  def delete_task(self, task_id: str) -> None:
    project, column, task = self.tree.find_task(task_id)
    entry = self.history.append(project.id, task, now=self._clock()) if task.completed else None
    column.items = [t for t in column.items if t.id != task_id]
    column.renumber()
    self._changed("task.deleted", projectId=project.id, columnId=column.id, taskId=task_id, archived=entry)

  def move_task(self, task_id: str, source_column_id: str, dest_column_id: str, anchor: InsertionAnchor | None = None) -> bool:
    """
    Move a task to `dest_column_id`, next to the anchor sibling or at the end.
    Crossing columns swaps the derived tag: the source column's tag is
    stripped and the destination column's tag added.
    """
    project, source = self.tree.find_column(source_column_id)
    dest_project, dest = self.tree.find_column(dest_column_id)
    if dest_project is not project:
      raise BoardValidationError("Tasks can only be moved within their project")
    if source.task_index(task_id) == -1:
      raise EntityNotFoundError("Task", task_id)
    if anchor is not None and anchor.target_id == task_id:
      return False

    task, old, new = move_between(source.items, task_id, dest.items, anchor, kind="Task")
    if source is dest and old == new:
      return False
    if source is not dest:
      task.remove_tag(source.tag)
      task.add_tag(dest.tag)
      source.renumber()
    dest.renumber()
    self._changed("task.moved", taskId=task_id, fromColumnId=source.id, toColumnId=dest.id, toIndex=new)
    return True

  # -- generic -------------------------------------------------------------

  def rename_entity(self, kind: EntityKind, entity_id: str, new_name: str) -> None:
    name = _clean_name(new_name, what="Name", max_length=TASK_TEXT_MAX_LENGTH if kind == "task" else NAME_MAX_LENGTH)
    if kind == "folder":
      self.tree.find_folder(entity_id).name = name
    elif kind == "project":
      self.tree.find_project(entity_id).name = name
    elif kind == "column":
      self.tree.find_column(entity_id)[1].title = name
    elif kind == "task":
      self.tree.find_task(entity_id)[2].text = name
    else:
      raise BoardValidationError(f"Unknown entity kind: {kind}")
    self._changed(f"{kind}.renamed", id=entity_id)

  @staticmethod
  def _priority(value: Priority | str | None) -> Priority:
    try:
      return Priority.parse(value)
    except ValueError as exc:
      raise BoardValidationError(str(exc)) from exc
