from __future__ import annotations

import pytest

from ztask.board.defaults import NEW_PROJECT_COLUMNS, default_tree
from ztask.board.errors import BoardValidationError, EntityNotFoundError
from ztask.board.models import Column, ContainerType, Location, Project

from conftest import sample_tree


def test_default_tree_is_one_folder_with_a_seeded_project() -> None:
  tree = default_tree()
  assert [f.id for f in tree.folders] == ["business"]
  assert tree.uncategorized == []
  assert tree.first_project_id() == "z-task"
  project = tree.find_project("z-task")
  assert [c.title for c in project.columns] == ["USER INTERFACE", "BACKEND", "FEATURE"]
  assert tree.outstanding_task_count("z-task") == 4
  tree.check_invariants()


def test_new_project_columns_constant() -> None:
  assert [tag for _, tag in NEW_PROJECT_COLUMNS] == ["todo", "in-progress", "done"]


def test_all_projects_order_is_folders_then_uncategorized() -> None:
  tree = sample_tree()
  assert tree.project_ids() == ["a", "b", "c", "d"]


def test_locate_reports_container() -> None:
  tree = sample_tree()
  assert tree.locate("b") == Location.folder("f1")
  assert tree.locate("d") == Location.uncategorized()
  assert tree.locate("d").type is ContainerType.UNCATEGORIZED
  assert tree.locate("nope") is None


def test_first_project_skips_empty_folders() -> None:
  tree = sample_tree()
  tree.folders[0].projects = []
  assert tree.first_project_id() == "c"
  tree.folders[1].projects = []
  assert tree.first_project_id() == "d"
  tree.uncategorized = []
  assert tree.first_project_id() is None


def test_find_helpers() -> None:
  tree = sample_tree()
  project, column = tree.find_column("done")
  assert project.id == "a" and column.tag == "done"
  project, column, task = tree.find_task("t3")
  assert (project.id, column.id, task.position) == ("a", "todo", 3)

  with pytest.raises(EntityNotFoundError) as exc:
    tree.find_task("t3", column_id="done")
  assert exc.value.kind == "Task"
  with pytest.raises(EntityNotFoundError):
    tree.find_column("todo", project_id="b")
  with pytest.raises(EntityNotFoundError):
    tree.find_folder("missing")
  assert isinstance(EntityNotFoundError("Project", "x"), BoardValidationError)


def test_outstanding_count_ignores_completed() -> None:
  tree = sample_tree()
  tree.find_task("t1")[2].completed = True
  assert tree.outstanding_task_count("a") == 4
  assert tree.outstanding_task_count("missing") == 0


def test_check_invariants_rejects_duplicate_project() -> None:
  tree = sample_tree()
  tree.uncategorized.append(tree.folders[0].projects[0])
  with pytest.raises(BoardValidationError, match="Duplicate project id: a"):
    tree.check_invariants()


def test_check_invariants_rejects_project_without_columns() -> None:
  tree = sample_tree()
  tree.uncategorized.append(Project(id="e", name="Empty", columns=[]))
  with pytest.raises(BoardValidationError, match="no columns"):
    tree.check_invariants()


def test_check_invariants_rejects_stale_positions() -> None:
  tree = sample_tree()
  column: Column = tree.find_column("todo")[1]
  column.items.reverse()
  with pytest.raises(BoardValidationError, match="not contiguous"):
    tree.check_invariants()
  tree.renumber()
  tree.check_invariants()
