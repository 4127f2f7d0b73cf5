from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ztask.board.defaults import default_tree
from ztask.board.models import HistoryEntry
from ztask.board.tree import BoardTree
from ztask.bridge.client import StorageApiError, StorageClient, StorageUnauthorizedError
from ztask.bridge.codec import data_to_tree, history_from_wire, history_to_wire, parse_board_data, tree_to_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
  ok: bool
  status_code: int = 200
  message: str = ""


class PersistenceBridge:
  """
  The only component that knows about the storage boundary.

  `load` raises StorageApiError (including StorageUnauthorizedError) and
  BoardDataError; `save` and `append_history` report failures through their
  result and only let StorageUnauthorizedError escape.
  """

  def __init__(self, client: StorageClient) -> None:
    self.client = client

  async def load(self) -> tuple[BoardTree, bool]:
    raw = await self.client.get_data()
    data = parse_board_data(raw)
    if data.is_empty():
      logger.info("no stored board; using the default tree")
      return default_tree(), False
    return data_to_tree(data), True

  async def save(self, tree: BoardTree) -> SaveResult:
    return await self.save_snapshot(tree_to_data(tree))

  async def save_snapshot(self, body: dict) -> SaveResult:
    try:
      await self.client.put_data(body)
    except StorageUnauthorizedError:
      raise
    except StorageApiError as exc:
      logger.warning("board save failed (%s): %s", exc.status_code, exc.message)
      return SaveResult(ok=False, status_code=exc.status_code, message=exc.message)
    return SaveResult(ok=True)

  async def append_history(self, project_id: str, entries: Iterable[HistoryEntry]) -> SaveResult:
    rows = history_to_wire(entries)
    if not rows:
      return SaveResult(ok=True)
    try:
      await self.client.append_history(project_id, rows)
    except StorageUnauthorizedError:
      raise
    except StorageApiError as exc:
      logger.warning("history append for %s failed (%s): %s", project_id, exc.status_code, exc.message)
      return SaveResult(ok=False, status_code=exc.status_code, message=exc.message)
    return SaveResult(ok=True)

  async def load_history(self, project_id: str | None = None) -> list[HistoryEntry]:
    return history_from_wire(await self.client.list_history(project_id))
