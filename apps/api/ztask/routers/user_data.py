from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.audit import board_summary, write_audit
from ztask.deps import get_current_user, get_db
from ztask.metrics import runtime_metrics
from ztask.models import User, UserData
from ztask.schemas import BoardData, SaveOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user-data"])

EMPTY_DATA = {"folders": [], "uncategorized": []}


async def load_user_data(db: AsyncSession, user_id: str) -> BoardData | None:
  res = await db.execute(select(UserData).where(UserData.user_id == user_id))
  row = res.scalar_one_or_none()
  if row is None or not row.data:
    return None
  return BoardData.model_validate(row.data)


@router.get("/data")
async def get_user_data(
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  res = await db.execute(select(UserData).where(UserData.user_id == actor.id))
  row = res.scalar_one_or_none()
  if row is None or not row.data:
    return dict(EMPTY_DATA)
  return row.data


@router.post("/data", response_model=SaveOut)
async def save_user_data(
  payload: dict = Body(...),
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SaveOut:
  try:
    data = BoardData.model_validate(payload).renumber()
  except ValidationError as exc:
    runtime_metrics.observe_save(False)
    logger.warning("rejected board data from user %s: %d error(s)", actor.id, exc.error_count())
    raise HTTPException(
      status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
      detail=jsonable_encoder(exc.errors(include_url=False, include_context=False)),
    ) from exc

  now = datetime.now(timezone.utc)
  res = await db.execute(select(UserData).where(UserData.user_id == actor.id))
  row = res.scalar_one_or_none()
  if row is None:
    row = UserData(user_id=actor.id, data={}, revision=0)
    db.add(row)
  # Full replace; the last write wins.
  row.data = data.model_dump(mode="json")
  row.revision = int(row.revision or 0) + 1
  row.updated_at = now

  await write_audit(
    db,
    event_type="user_data.saved",
    entity_type="UserData",
    entity_id=actor.id,
    actor_id=actor.id,
    payload=board_summary(data, revision=row.revision),
  )
  await db.commit()
  runtime_metrics.observe_save(True)
  return SaveOut(ok=True, savedAt=now)
