from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.models import InAppNotification, User

logger = logging.getLogger(__name__)


def _now() -> datetime:
  return datetime.now(timezone.utc)


async def notify_inapp(
  db: AsyncSession,
  *,
  user_id: str,
  level: str,
  title: str,
  body: str,
  event_type: str | None = None,
  entity_type: str | None = None,
  entity_id: str | None = None,
  dedupe_key: str | None = None,
) -> InAppNotification:
  """
  Write one in-app notification. With a dedupe key, a repeat of the same
  event bumps `burst_count` on the existing row and marks it unread again.
  """
  now = _now()
  existing = None
  if dedupe_key:
    res = await db.execute(
      select(InAppNotification).where(InAppNotification.user_id == user_id, InAppNotification.dedupe_key == dedupe_key)
    )
    existing = res.scalar_one_or_none()
  if existing is not None:
    existing.level = level
    existing.title = title
    existing.body = body
    existing.event_type = event_type
    existing.entity_type = entity_type
    existing.entity_id = entity_id
    existing.burst_count = int(existing.burst_count or 1) + 1
    existing.last_occurrence_at = now
    existing.read_at = None
    return existing

  n = InAppNotification(
    user_id=user_id,
    level=level,
    title=title,
    body=body,
    event_type=event_type,
    entity_type=entity_type,
    entity_id=entity_id,
    dedupe_key=dedupe_key,
    burst_count=1,
    last_occurrence_at=now,
    created_at=now,
  )
  db.add(n)
  return n


async def notify_email_inapp(db: AsyncSession, *, email: str, **kwargs) -> InAppNotification | None:
  """Notify the active user with this email, if there is one."""
  res = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
  user = res.scalar_one_or_none()
  if not user or not bool(user.active):
    logger.debug("no active user for %s; in-app notification skipped", email)
    return None
  return await notify_inapp(db, user_id=user.id, **kwargs)
