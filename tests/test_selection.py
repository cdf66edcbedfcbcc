"""
Tests for row selection.
"""
from job_tree_engine.sample_data import make_test_jobs
from job_tree_engine.selection import SelectionState
from job_tree_engine.types.rows import jobs_to_rows


def test_toggle():
    selection = SelectionState()
    assert selection.toggle("queue:queue-1") is True
    assert "queue:queue-1" in selection
    assert selection.toggle("queue:queue-1") is False
    assert len(selection) == 0


def test_selecting_group_does_not_select_loaded_children():
    selection = SelectionState()
    selection.toggle("queue:queue-1")
    assert selection.selected_row_ids == frozenset({"queue:queue-1"})


def test_children_merged_under_selected_parent_are_selected():
    selection = SelectionState(["queue:queue-1"])
    children = jobs_to_rows(make_test_jobs(3), "queue:queue-1")

    added = selection.on_rows_merged("queue:queue-1", children)

    assert added == 3
    assert all(selection.is_selected(child.row_id) for child in children)


def test_children_of_unselected_parent_are_left_alone():
    selection = SelectionState(["queue:queue-2"])
    added = selection.on_rows_merged("queue:queue-1", jobs_to_rows(make_test_jobs(2), "queue:queue-1"))
    assert added == 0
    assert len(selection) == 1


def test_selected_jobs_only_lists_leaves():
    selection = SelectionState(["queue:queue-1", "queue:queue-1>job:4", "queue:queue-2>job:1"])
    assert selection.selected_jobs == ["1", "4"]


def test_clear():
    selection = SelectionState(["job:1", "job:2"])
    selection.deselect("job:1")
    assert selection.selected_jobs == ["2"]
    selection.clear()
    assert len(selection) == 0
