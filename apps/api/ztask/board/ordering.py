from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, TypeVar

from ztask.board.errors import EntityNotFoundError

InsertPosition = Literal["before", "after", "end"]


class _HasId(Protocol):
  id: str


T = TypeVar("T", bound=_HasId)


@dataclass(frozen=True)
class InsertionAnchor:
  """Where to drop: next to `target_id`, or at the end of the list."""

  target_id: str | None = None
  position: InsertPosition = "end"

  @classmethod
  def end(cls) -> "InsertionAnchor":
    return cls(None, "end")

  @classmethod
  def before(cls, target_id: str) -> "InsertionAnchor":
    return cls(target_id, "before")

  @classmethod
  def after(cls, target_id: str) -> "InsertionAnchor":
    return cls(target_id, "after")

  @property
  def is_end(self) -> bool:
    return self.target_id is None or self.position == "end"


def index_of(items: list[T], item_id: str) -> int:
  for idx, x in enumerate(items):
    if x.id == item_id:
      return idx
  return -1


def target_index(dest: list[T], anchor: InsertionAnchor | None) -> int:
  """Insertion index in `dest` as it is now (before any removal)."""
  if anchor is None or anchor.is_end:
    return len(dest)
  idx = index_of(dest, anchor.target_id or "")
  if idx == -1:
    return len(dest)
  return idx if anchor.position == "before" else idx + 1


def move_between(source: list[T], item_id: str, dest: list[T], anchor: InsertionAnchor | None, *, kind: str = "Item") -> tuple[T, int, int]:
  """
  Move `item_id` from `source` into `dest` next to the anchor.

  When `source is dest` the anchor index is computed against the list before
  the item is removed and shifted down by one if the item sat above it.
  Returns (item, old_index, new_index).
  """
  src_idx = index_of(source, item_id)
  if src_idx == -1:
    raise EntityNotFoundError(kind, item_id)
  to_idx = target_index(dest, anchor)
  if source is dest and src_idx < to_idx:
    to_idx -= 1
  item = source.pop(src_idx)
  to_idx = max(0, min(to_idx, len(dest)))
  dest.insert(to_idx, item)
  return item, src_idx, to_idx


def reorder_within_list(items: list[T], item_id: str, anchor: InsertionAnchor | None, *, kind: str = "Item") -> tuple[int, int]:
  _, old, new = move_between(items, item_id, items, anchor, kind=kind)
  return old, new
