from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import field_validator, model_validator

from ztask.board.models import ID_MAX_LENGTH, NAME_MAX_LENGTH, TASK_TEXT_MAX_LENGTH


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def _parse_due_date(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    raise ValueError("dueDate must be a calendar date (YYYY-MM-DD)")
  if isinstance(value, date):
    return value
  if isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if not _DATE_ONLY_RE.fullmatch(s):
      raise ValueError("dueDate must be YYYY-MM-DD")
    return date.fromisoformat(s)
  raise ValueError("dueDate must be YYYY-MM-DD")


def _parse_tags(value: object) -> object:
  # Older clients stored tags as "a, b, c".
  if value is None:
    return []
  if isinstance(value, str):
    value = value.split(",")
  if isinstance(value, (list, tuple)):
    out: list[str] = []
    for t in value:
      if not isinstance(t, str):
        raise ValueError("tags must be strings")
      s = t.strip()
      if s and s not in out:
        out.append(s)
    return out
  raise ValueError("tags must be a list of strings or a comma-separated string")


def _parse_priority(value: object) -> object:
  if value is None or value == "":
    return "medium"
  if isinstance(value, str):
    return value.strip().lower()
  return value


Priority = Literal["low", "medium", "high"]


class _Wire(BaseModel):
  model_config = ConfigDict(extra="ignore")


class TaskIn(_Wire):
  id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
  text: str = Field(min_length=1, max_length=TASK_TEXT_MAX_LENGTH)
  description: str = ""
  priority: Priority = "medium"
  dueDate: date | None = None
  tags: list[str] = Field(default_factory=list)
  completed: bool = False
  completedAt: datetime | None = None
  createdAt: datetime | None = None
  position: int | None = None

  @field_validator("description", mode="before")
  @classmethod
  def _v_description(cls, v: object) -> object:
    return "" if v is None else v

  @field_validator("priority", mode="before")
  @classmethod
  def _v_priority(cls, v: object) -> object:
    return _parse_priority(v)

  @field_validator("dueDate", mode="before")
  @classmethod
  def _v_due(cls, v: object) -> object:
    return _parse_due_date(v)

  @field_validator("tags", mode="before")
  @classmethod
  def _v_tags(cls, v: object) -> object:
    return _parse_tags(v)

  @field_validator("completedAt", "createdAt", mode="before")
  @classmethod
  def _v_dt(cls, v: object) -> object:
    return _parse_dt_utc(v)

  @model_validator(mode="after")
  def _completion_stamp(self) -> "TaskIn":
    if not self.completed:
      self.completedAt = None
    return self


class ColumnIn(_Wire):
  id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
  title: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
  tag: str = ""
  position: int | None = None
  items: list[TaskIn] = Field(default_factory=list)

  @field_validator("tag", mode="before")
  @classmethod
  def _v_tag(cls, v: object) -> object:
    if v is None:
      return ""
    return v.strip() if isinstance(v, str) else v


class ProjectIn(_Wire):
  id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
  name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
  description: str = ""
  columns: list[ColumnIn] = Field(min_length=1)

  @field_validator("description", mode="before")
  @classmethod
  def _v_description(cls, v: object) -> object:
    return "" if v is None else v


class FolderIn(_Wire):
  id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
  name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
  expanded: bool = True
  projects: list[ProjectIn] = Field(default_factory=list)


class BoardData(_Wire):
  folders: list[FolderIn] = Field(default_factory=list)
  uncategorized: list[ProjectIn] = Field(default_factory=list)

  @model_validator(mode="before")
  @classmethod
  def _migrate_flat_projects(cls, data: Any) -> Any:
    # Pre-folder payloads were {"projects": [...]}.
    if isinstance(data, dict) and "projects" in data and "folders" not in data and "uncategorized" not in data:
      return {"folders": [{"id": "default", "name": "Default", "expanded": True, "projects": data["projects"]}], "uncategorized": []}
    return data

  @model_validator(mode="after")
  def _unique_project_ids(self) -> "BoardData":
    seen: set[str] = set()
    for p in self.all_projects():
      if p.id in seen:
        raise ValueError(f"duplicate project id: {p.id}")
      seen.add(p.id)
    folder_ids = [f.id for f in self.folders]
    if len(folder_ids) != len(set(folder_ids)):
      raise ValueError("duplicate folder id")
    return self

  def all_projects(self) -> list[ProjectIn]:
    return [p for f in self.folders for p in f.projects] + list(self.uncategorized)

  def find_project(self, project_id: str) -> ProjectIn | None:
    for p in self.all_projects():
      if p.id == project_id:
        return p
    return None

  def renumber(self) -> "BoardData":
    """Array order wins over any stored `position` value."""
    for p in self.all_projects():
      for ci, c in enumerate(p.columns):
        c.position = ci
        for ti, t in enumerate(c.items):
          t.position = ti
    return self

  def is_empty(self) -> bool:
    return not self.folders and not self.uncategorized


class HistoryEntryIn(_Wire):
  id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
  text: str
  description: str = ""
  dueDate: date | None = None
  priority: Priority = "medium"
  tags: list[str] = Field(default_factory=list)
  completedAt: datetime
  createdAt: datetime

  @field_validator("priority", mode="before")
  @classmethod
  def _v_priority(cls, v: object) -> object:
    return _parse_priority(v)

  @field_validator("dueDate", mode="before")
  @classmethod
  def _v_due(cls, v: object) -> object:
    return _parse_due_date(v)

  @field_validator("tags", mode="before")
  @classmethod
  def _v_tags(cls, v: object) -> object:
    return _parse_tags(v)

  @field_validator("completedAt", "createdAt", mode="before")
  @classmethod
  def _v_dt(cls, v: object) -> object:
    return _parse_dt_utc(v)


class HistoryAppendIn(BaseModel):
  projectId: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
  entries: list[HistoryEntryIn] = Field(min_length=1, max_length=1000)


class HistoryEntryOut(HistoryEntryIn):
  projectId: str
  archivedAt: datetime

  @field_validator("archivedAt", mode="before")
  @classmethod
  def _v_archived(cls, v: object) -> object:
    return _parse_dt_utc(v)


class SaveOut(BaseModel):
  ok: bool = True
  savedAt: datetime


class InvitationCreateIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  permissions: list[Literal["view", "edit"]] = Field(default_factory=lambda: ["view"])


class InvitationAnswerIn(BaseModel):
  invitationToken: str = Field(min_length=1, max_length=200)


class InvitationOut(BaseModel):
  id: str
  projectId: str
  projectName: str
  inviterId: str
  email: str
  permissions: list[str]
  status: Literal["pending", "accepted", "declined"]
  createdAt: datetime
  expiresAt: datetime
  respondedAt: datetime | None = None


class InvitationCreateOut(BaseModel):
  invitation: InvitationOut
  invitationToken: str
  invitationLink: str


class InvitationPreviewOut(BaseModel):
  projectName: str
  inviterName: str
  inviteeEmail: str
  expiresAt: datetime


class InAppNotificationOut(BaseModel):
  id: str
  level: str
  title: str
  body: str
  eventType: str | None = None
  entityType: str | None = None
  entityId: str | None = None
  burstCount: int = 1
  readAt: datetime | None = None
  createdAt: datetime
