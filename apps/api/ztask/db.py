from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ztask.config import settings


def _ensure_sqlite_dir(url: str) -> None:
  u = make_url(url)
  if not u.drivername.startswith("sqlite"):
    return
  db = u.database or ""
  if db and db != ":memory:":
    Path(db).parent.mkdir(parents=True, exist_ok=True)


_ensure_sqlite_dir(settings.database_url)

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema() -> None:
  from ztask.models import Base

  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
