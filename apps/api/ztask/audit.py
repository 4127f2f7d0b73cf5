from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.models import AuditEvent
from ztask.schemas import BoardData


def board_summary(data: BoardData, *, revision: int) -> dict[str, Any]:
  """Counts recorded with every board save; the board itself is never copied into the audit log."""
  projects = data.all_projects()
  tasks = [t for p in projects for c in p.columns for t in c.items]
  return {
    "revision": revision,
    "folders": len(data.folders),
    "projects": len(projects),
    "uncategorized": len(data.uncategorized),
    "columns": sum(len(p.columns) for p in projects),
    "tasks": len(tasks),
    "completed": sum(1 for t in tasks if t.completed),
  }


async def write_audit(
  db: AsyncSession,
  *,
  event_type: str,
  entity_type: str,
  entity_id: str | None,
  actor_id: str | None = None,
  payload: dict[str, Any] | None = None,
) -> AuditEvent:
  ev = AuditEvent(
    actor_id=actor_id,
    event_type=event_type,
    entity_type=entity_type,
    entity_id=entity_id,
    payload=jsonable_encoder(payload or {}),
  )
  db.add(ev)
  return ev
