from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


# Shared with the wire schema.
ID_MAX_LENGTH = 200
NAME_MAX_LENGTH = 200
TASK_TEXT_MAX_LENGTH = 2000


class Priority(str, Enum):
  LOW = "low"
  MEDIUM = "medium"
  HIGH = "high"

  @classmethod
  def parse(cls, value: "Priority | str | None") -> "Priority":
    if value is None or value == "":
      return cls.MEDIUM
    if isinstance(value, Priority):
      return value
    try:
      return cls(str(value).strip().lower())
    except ValueError:
      raise ValueError(f"Unknown priority: {value!r}") from None


class ContainerType(str, Enum):
  FOLDER = "folder"
  UNCATEGORIZED = "uncategorized"


@dataclass
class Task:
  id: str
  text: str
  description: str = ""
  priority: Priority = Priority.MEDIUM
  due_date: date | None = None
  tags: list[str] = field(default_factory=list)
  completed: bool = False
  completed_at: datetime | None = None
  created_at: datetime = field(default_factory=utcnow)
  position: int = 0

  def add_tag(self, tag: str) -> None:
    if tag and tag not in self.tags:
      self.tags.append(tag)

  def remove_tag(self, tag: str) -> None:
    if tag:
      self.tags = [t for t in self.tags if t != tag]


@dataclass
class Column:
  id: str
  title: str
  tag: str = ""
  position: int = 0
  items: list[Task] = field(default_factory=list)

  def task_index(self, task_id: str) -> int:
    for idx, t in enumerate(self.items):
      if t.id == task_id:
        return idx
    return -1

  def renumber(self) -> None:
    for idx, t in enumerate(self.items):
      t.position = idx


@dataclass
class Project:
  id: str
  name: str
  description: str = ""
  columns: list[Column] = field(default_factory=list)

  def renumber(self) -> None:
    for idx, c in enumerate(self.columns):
      c.position = idx
      c.renumber()


@dataclass
class Folder:
  id: str
  name: str
  expanded: bool = True
  projects: list[Project] = field(default_factory=list)


@dataclass(frozen=True)
class Location:
  """Where a project currently lives. `container_id` is None for uncategorized."""

  type: ContainerType
  container_id: str | None = None

  @classmethod
  def folder(cls, folder_id: str) -> "Location":
    return cls(ContainerType.FOLDER, folder_id)

  @classmethod
  def uncategorized(cls) -> "Location":
    return cls(ContainerType.UNCATEGORIZED, None)


@dataclass(frozen=True)
class HistoryEntry:
  """Immutable snapshot of an archived task."""

  id: str
  text: str
  description: str
  due_date: date | None
  priority: Priority
  tags: tuple[str, ...]
  completed_at: datetime
  created_at: datetime

  @classmethod
  def from_task(cls, task: Task, *, now: datetime | None = None) -> "HistoryEntry":
    stamp = now or utcnow()
    return cls(
      id=task.id,
      text=task.text,
      description=task.description or "",
      due_date=task.due_date,
      priority=task.priority or Priority.MEDIUM,
      tags=tuple(task.tags or ()),
      completed_at=task.completed_at or stamp,
      created_at=task.created_at or stamp,
    )
