from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.audit import write_audit
from ztask.deps import get_current_user, get_db
from ztask.models import InAppNotification, User
from ztask.schemas import InAppNotificationOut

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _out(n: InAppNotification) -> InAppNotificationOut:
  return InAppNotificationOut(
    id=n.id,
    level=n.level,
    title=n.title,
    body=n.body,
    eventType=n.event_type,
    entityType=n.entity_type,
    entityId=n.entity_id,
    burstCount=int(n.burst_count or 1),
    readAt=n.read_at,
    createdAt=n.created_at,
  )


@router.get("", response_model=list[InAppNotificationOut])
async def list_notifications(
  unreadOnly: bool = False,
  limit: int = 50,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[InAppNotificationOut]:
  limit = max(1, min(int(limit), 200))
  stmt = select(InAppNotification).where(InAppNotification.user_id == actor.id)
  if unreadOnly:
    stmt = stmt.where(InAppNotification.read_at.is_(None))
  stmt = stmt.order_by(InAppNotification.created_at.desc()).limit(limit)
  res = await db.execute(stmt)
  return [_out(n) for n in res.scalars().all()]


@router.post("/{notification_id}/read")
async def mark_notification_read(
  notification_id: str,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  res = await db.execute(
    select(InAppNotification).where(InAppNotification.id == notification_id, InAppNotification.user_id == actor.id)
  )
  n = res.scalar_one_or_none()
  if not n:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
  if n.read_at is None:
    n.read_at = datetime.now(timezone.utc)
  await db.commit()
  return {"ok": True}


@router.post("/read-all")
async def mark_all_read(
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  now = datetime.now(timezone.utc)
  await db.execute(
    update(InAppNotification).where(InAppNotification.user_id == actor.id, InAppNotification.read_at.is_(None)).values(read_at=now)
  )
  await write_audit(db, event_type="notifications.read_all", entity_type="InAppNotification", entity_id=None, actor_id=actor.id, payload={})
  await db.commit()
  return {"ok": True}
