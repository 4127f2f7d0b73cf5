from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def _uuid() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ApiToken(Base):
  __tablename__ = "api_tokens"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  token_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  token_hint: Mapped[str] = mapped_column(String, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UserData(Base):
  """One row per user: the full {folders, uncategorized} document, replaced on every save."""

  __tablename__ = "user_data"

  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
  data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class HistoryRecord(Base):
  __tablename__ = "history_entries"

  seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  project_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  task_id: Mapped[str] = mapped_column(String, nullable=False)
  text: Mapped[str] = mapped_column(Text, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  due_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
  priority: Mapped[str] = mapped_column(String, nullable=False, default="medium")
  tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
  completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Invitation(Base):
  __tablename__ = "project_invitations"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  project_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  project_name: Mapped[str] = mapped_column(String, nullable=False)
  inviter_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  email: Mapped[str] = mapped_column(String, nullable=False, index=True)
  permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
  token_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False, default="pending")  # pending | accepted | declined
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class InAppNotification(Base):
  __tablename__ = "in_app_notifications"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  level: Mapped[str] = mapped_column(String, nullable=False, default="info")  # info | warn | error | ok
  title: Mapped[str] = mapped_column(String, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  event_type: Mapped[str | None] = mapped_column(String, nullable=True)
  entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  dedupe_key: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  burst_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
  last_occurrence_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AuditEvent(Base):
  __tablename__ = "audit_events"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  actor_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
