from __future__ import annotations


class BoardValidationError(ValueError):
  """A mutation was rejected; the tree was left untouched."""


class EntityNotFoundError(BoardValidationError):
  def __init__(self, kind: str, entity_id: str | None) -> None:
    super().__init__(f"{kind} not found: {entity_id}")
    self.kind = kind
    self.entity_id = entity_id
