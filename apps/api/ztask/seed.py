from __future__ import annotations

import argparse
import asyncio

from sqlalchemy import func, select

from ztask.board.defaults import default_tree
from ztask.bridge.codec import tree_to_data
from ztask.db import SessionLocal, create_schema
from ztask.models import ApiToken, User, UserData
from ztask.security import api_token_hash, api_token_new, token_hint


async def seed(email: str, name: str, *, with_board: bool = False) -> str:
  """Create the user if missing and mint a fresh API token; returns the raw token."""
  await create_schema()
  async with SessionLocal() as db:
    res = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = res.scalar_one_or_none()
    if not user:
      user = User(email=email.strip().lower(), name=name)
      db.add(user)
      await db.flush()

    raw = api_token_new()
    db.add(ApiToken(user_id=user.id, name="seed", token_hash=api_token_hash(raw), token_hint=token_hint(raw)))

    if with_board:
      dres = await db.execute(select(UserData).where(UserData.user_id == user.id))
      if dres.scalar_one_or_none() is None:
        db.add(UserData(user_id=user.id, data=tree_to_data(default_tree()), revision=1))

    await db.commit()
    return raw


def main() -> None:
  parser = argparse.ArgumentParser(description="Create a z-task user and print an API token.")
  parser.add_argument("--email", default="demo@ztask.local")
  parser.add_argument("--name", default="Demo")
  parser.add_argument("--with-board", action="store_true", help="store the default board for a new user")
  args = parser.parse_args()

  token = asyncio.run(seed(args.email, args.name, with_board=args.with_board))
  print("z-task seed credentials created:")
  print(f"  {args.email} token={token}")


if __name__ == "__main__":
  main()
