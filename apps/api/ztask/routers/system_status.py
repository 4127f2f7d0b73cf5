from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.config import settings
from ztask.deps import get_current_user, get_db
from ztask.metrics import runtime_metrics
from ztask.models import HistoryRecord, User, UserData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/status")
async def system_status(
  _actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  db_ok = True
  counts: dict[str, int] = {}
  try:
    await db.execute(text("SELECT 1"))
    counts["users"] = int((await db.execute(select(func.count()).select_from(User))).scalar_one())
    counts["boards"] = int((await db.execute(select(func.count()).select_from(UserData))).scalar_one())
    counts["historyEntries"] = int((await db.execute(select(func.count()).select_from(HistoryRecord))).scalar_one())
  except SQLAlchemyError:
    logger.exception("system status database probe failed")
    db_ok = False
  return {
    "version": settings.app_version,
    "buildSha": settings.build_sha,
    "checkedAt": datetime.now(timezone.utc),
    "database": "green" if db_ok else "red",
    "counts": counts,
    "runtime": runtime_metrics.snapshot(),
  }
