from __future__ import annotations

import uuid
from datetime import date

from ztask.board.models import Column, Folder, Priority, Project, Task
from ztask.board.tree import BoardTree

NEW_PROJECT_COLUMNS: tuple[tuple[str, str], ...] = (
  ("TODO", "todo"),
  ("IN PROGRESS", "in-progress"),
  ("DONE", "done"),
)


def new_id() -> str:
  return uuid.uuid4().hex


def new_project_columns() -> list[Column]:
  return [Column(id=new_id(), title=title, tag=tag, position=idx) for idx, (title, tag) in enumerate(NEW_PROJECT_COLUMNS)]


def default_tree() -> BoardTree:
  """First-run board: one folder holding one project with three columns."""
  samples = [
    (
      "ui",
      "USER INTERFACE",
      [
        ("ui1", "Add dark mode", "Implement a dark theme", Priority.HIGH, date(2024, 1, 15), ["ui", "theme"]),
        ("ui2", "Responsive layout", "Make the board usable on tablets and phones", Priority.MEDIUM, date(2024, 1, 20), ["ui", "mobile"]),
      ],
    ),
    (
      "backend",
      "BACKEND",
      [
        ("be1", "Create API endpoints", "REST endpoints for task management", Priority.HIGH, date(2024, 1, 18), ["backend", "api"]),
      ],
    ),
    (
      "feature",
      "FEATURE",
      [
        ("feat1", "Progress bar", "Show completion status of tasks and projects", Priority.MEDIUM, None, ["feature"]),
      ],
    ),
  ]
  columns: list[Column] = []
  for tag, title, tasks in samples:
    items = [
      Task(id=tid, text=text, description=desc, priority=prio, due_date=due, tags=list(tags))
      for tid, text, desc, prio, due, tags in tasks
    ]
    columns.append(Column(id=tag, title=title, tag=tag, items=items))
  project = Project(id="z-task", name="z-task", columns=columns)
  tree = BoardTree(folders=[Folder(id="business", name="Business", expanded=True, projects=[project])], uncategorized=[])
  tree.renumber()
  return tree
