from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.audit import write_audit
from ztask.deps import get_current_user, get_db
from ztask.models import HistoryRecord, User
from ztask.schemas import HistoryAppendIn, HistoryEntryOut

router = APIRouter(prefix="/api/user", tags=["history"])


def _out(r: HistoryRecord) -> HistoryEntryOut:
  return HistoryEntryOut(
    projectId=r.project_id,
    id=r.task_id,
    text=r.text,
    description=r.description,
    dueDate=r.due_date,
    priority=r.priority,
    tags=list(r.tags or []),
    completedAt=r.completed_at,
    createdAt=r.created_at,
    archivedAt=r.archived_at,
  )


@router.get("/history", response_model=list[HistoryEntryOut])
async def list_history(
  projectId: str | None = None,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[HistoryEntryOut]:
  stmt = select(HistoryRecord).where(HistoryRecord.user_id == actor.id)
  if projectId:
    stmt = stmt.where(HistoryRecord.project_id == projectId)
  res = await db.execute(stmt.order_by(HistoryRecord.seq.asc()))
  return [_out(r) for r in res.scalars().all()]


@router.post("/history")
async def append_history(
  payload: HistoryAppendIn,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  # Append-only: entries are never deduplicated or rewritten.
  for e in payload.entries:
    db.add(
      HistoryRecord(
        user_id=actor.id,
        project_id=payload.projectId,
        task_id=e.id,
        text=e.text,
        description=e.description,
        due_date=e.dueDate.isoformat() if e.dueDate else None,
        priority=e.priority,
        tags=list(e.tags),
        completed_at=e.completedAt,
        created_at=e.createdAt,
      )
    )
  await write_audit(
    db,
    event_type="history.appended",
    entity_type="Project",
    entity_id=payload.projectId,
    actor_id=actor.id,
    payload={"count": len(payload.entries)},
  )
  await db.commit()
  return {"ok": True, "appended": len(payload.entries)}
