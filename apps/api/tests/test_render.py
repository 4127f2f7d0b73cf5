from __future__ import annotations

import copy

from ztask.board.render import brief_description, render
from ztask.board.selection import ProjectSelection

from conftest import sample_tree


def test_brief_description_truncates_at_fifty_chars() -> None:
  assert brief_description("short") == "short"
  assert brief_description("x" * 50) == "x" * 50
  assert brief_description("y" * 51) == "y" * 50 + "..."
  assert brief_description("") == ""


def test_sidebar_rows_carry_counts_and_selection() -> None:
  tree = sample_tree()
  tree.find_task("t0")[2].completed = True
  selection = ProjectSelection()
  selection.toggle("c")

  view = render(tree, "a", selection)

  assert [f.id for f in view.folders] == ["f1", "g"]
  alpha = view.folders[0].projects[0]
  assert (alpha.id, alpha.outstanding, alpha.current, alpha.selected) == ("a", 4, True, False)
  assert view.folders[1].projects[0].selected is True
  assert [r.id for r in view.uncategorized] == ["d"]


def test_current_project_columns_and_cards() -> None:
  tree = sample_tree()
  tree.find_task("t1")[2].description = "z" * 80
  view = render(tree, "a")
  assert view.current_project_name == "Alpha"
  assert [(c.id, c.count) for c in view.columns] == [("todo", 5), ("done", 0)]
  card = view.columns[0].cards[1]
  assert card.brief == "z" * 50 + "..."
  assert card.priority == "medium"


def test_unknown_current_project_renders_no_board() -> None:
  view = render(sample_tree(), "missing")
  assert view.current_project_id is None
  assert view.columns == ()


def test_render_does_not_touch_the_tree() -> None:
  tree = sample_tree()
  before = copy.deepcopy(tree)
  render(tree, "a", ProjectSelection())
  assert tree == before
