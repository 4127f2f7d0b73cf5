from __future__ import annotations

import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Must be set before ztask.config is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="ztask-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/ztask_test.db"
os.environ.setdefault("APP_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

from ztask.board.models import Column, Folder, Project, Task
from ztask.board.tree import BoardTree
from ztask.config import settings
from ztask.db import SessionLocal, create_schema, engine
from ztask.main import app
from ztask.models import ApiToken, Base, User
from ztask.security import api_token_hash, api_token_new, token_hint


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  async with SessionLocal() as db:
    for table in reversed(Base.metadata.sorted_tables):
      await db.execute(delete(table))
    await db.commit()
  await engine.dispose()


@pytest.fixture
async def clean_db() -> None:
  if "test" not in settings.database_url.rsplit("/", 1)[-1]:
    raise RuntimeError("Refusing to run destructive tests against a non-test database.")
  await create_schema()
  await _reset_db()
  yield
  await _reset_db()


@pytest.fixture
async def client(clean_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def create_user(email: str, name: str | None = None) -> tuple[str, str]:
  """Insert a user with one API token; returns (user_id, raw_token)."""
  async with SessionLocal() as db:
    u = User(email=email, name=name or email.split("@", 1)[0].title())
    db.add(u)
    await db.flush()
    raw = api_token_new()
    db.add(ApiToken(user_id=u.id, name="test", token_hash=api_token_hash(raw), token_hint=token_hint(raw)))
    await db.commit()
    return u.id, raw


def bearer(token: str) -> dict[str, str]:
  return {"Authorization": f"Bearer {token}"}


def hours_ago(hours: float, *, now: datetime | None = None) -> datetime:
  return (now or datetime.now(timezone.utc)) - timedelta(hours=hours)


def sample_tree() -> BoardTree:
  """
  folder f1: a, b   folder g: c   uncategorized: d

  Project a has column `todo` (tag "todo", tasks t0..t4) and `done` (tag "done", empty).
  """

  def single(pid: str) -> Project:
    return Project(id=pid, name=pid.upper(), columns=[Column(id=f"{pid}-col", title="TODO", tag="todo")])

  todo = Column(id="todo", title="TODO", tag="todo", items=[Task(id=f"t{i}", text=f"Task {i}") for i in range(5)])
  done = Column(id="done", title="DONE", tag="done")
  a = Project(id="a", name="Alpha", columns=[todo, done])
  tree = BoardTree(
    folders=[
      Folder(id="f1", name="Work", projects=[a, single("b")]),
      Folder(id="g", name="Goals", projects=[single("c")]),
    ],
    uncategorized=[single("d")],
  )
  tree.renumber()
  return tree


def task_ids(column: Column) -> list[str]:
  return [t.id for t in column.items]

