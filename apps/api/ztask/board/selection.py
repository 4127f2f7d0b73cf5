from __future__ import annotations


class ProjectSelection:
  """Multi-select state for the sidebar: a set of ids plus the last-clicked anchor."""

  def __init__(self) -> None:
    self._ids: set[str] = set()
    self.anchor: str | None = None

  def __contains__(self, project_id: str) -> bool:
    return project_id in self._ids

  def __len__(self) -> int:
    return len(self._ids)

  def __bool__(self) -> bool:
    return bool(self._ids)

  def toggle(self, project_id: str) -> None:
    if project_id in self._ids:
      self._ids.discard(project_id)
    else:
      self._ids.add(project_id)
    self.anchor = project_id

  def select_range(self, start_id: str, end_id: str, ordered_ids: list[str]) -> None:
    # Range is taken over the tree's all_projects() order.
    if start_id not in ordered_ids or end_id not in ordered_ids:
      return
    a = ordered_ids.index(start_id)
    b = ordered_ids.index(end_id)
    lo, hi = min(a, b), max(a, b)
    self._ids.update(ordered_ids[lo : hi + 1])
    self.anchor = end_id

  def extend_to(self, project_id: str, ordered_ids: list[str]) -> None:
    """Shift-click: range from the anchor, or a plain toggle when there is none."""
    if self.anchor is None:
      self.toggle(project_id)
      return
    self.select_range(self.anchor, project_id, ordered_ids)

  def clear(self) -> None:
    self._ids.clear()
    self.anchor = None

  def discard(self, project_id: str) -> None:
    self._ids.discard(project_id)
    if self.anchor == project_id:
      self.anchor = None

  def ids(self, ordered_ids: list[str] | None = None) -> list[str]:
    if ordered_ids is None:
      return sorted(self._ids)
    return [pid for pid in ordered_ids if pid in self._ids]
