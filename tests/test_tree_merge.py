"""
Tests for the copy-on-write tree merge engine and expansion state.
"""
from job_tree_engine.sample_data import make_test_jobs
from job_tree_engine.tree import (
    ExpansionState,
    find_row,
    merge_sub_rows,
    update_group_row,
    visible_rows,
)
from job_tree_engine.types.job_models import JobGroup
from job_tree_engine.types.rows import JobGroupRow, JobRow, groups_to_rows, jobs_to_rows


def queue_groups():
    return groups_to_rows([JobGroup("queue-1", 3), JobGroup("queue-2", 2)], None, "queue")


def test_groups_to_rows():
    rows = queue_groups()
    assert [r.row_id for r in rows] == ["queue:queue-1", "queue:queue-2"]
    assert rows[0].grouped_field == "queue"
    assert rows[0].group_value == "queue-1"
    assert rows[0].job_count == 3
    assert rows[0].sub_rows is None
    assert rows[0].is_group


def test_jobs_to_rows_nest_under_parent():
    rows = jobs_to_rows(make_test_jobs(2), "queue:queue-1")
    assert [r.row_id for r in rows] == ["queue:queue-1>job:0", "queue:queue-1>job:1"]
    assert not rows[0].is_group
    assert jobs_to_rows(make_test_jobs(1))[0].row_id == "job:0"


def test_empty_location_replaces_forest():
    new_rows = queue_groups()
    result = merge_sub_rows(jobs_to_rows(make_test_jobs(3)), new_rows, [])
    assert result.root_data is new_rows
    assert result.parent_row is None


def test_merge_into_top_level_group():
    forest = queue_groups()
    jobs = jobs_to_rows(make_test_jobs(3), "queue:queue-1")

    result = merge_sub_rows(forest, jobs, ["queue:queue-1"])

    assert result.root_data is not forest
    assert result.root_data[0].sub_rows == jobs
    assert result.parent_row is result.root_data[0]
    # Untouched rows are shared, the input is untouched
    assert result.root_data[1] is forest[1]
    assert forest[0].sub_rows is None


def test_merge_copy_on_write_along_path():
    forest = queue_groups()
    sets = groups_to_rows([JobGroup("job-set-1", 2), JobGroup("job-set-2", 1)], "queue:queue-1", "jobSet")
    forest = merge_sub_rows(forest, sets, ["queue:queue-1"]).root_data
    before = forest

    jobs = jobs_to_rows(make_test_jobs(2), "queue:queue-1>jobSet:job-set-2")
    result = merge_sub_rows(forest, jobs, ["queue:queue-1", "queue:queue-1>jobSet:job-set-2"])

    new_queue = result.root_data[0]
    assert new_queue is not before[0]
    assert new_queue.sub_rows[0] is before[0].sub_rows[0]
    assert new_queue.sub_rows[1].sub_rows == jobs
    assert before[0].sub_rows[1].sub_rows is None
    assert result.parent_row.row_id == "queue:queue-1>jobSet:job-set-2"


def test_append_sub_rows_keeps_existing_first():
    forest = queue_groups()
    first = jobs_to_rows(make_test_jobs(1), "queue:queue-1")
    forest = merge_sub_rows(forest, first, ["queue:queue-1"]).root_data

    more = jobs_to_rows(make_test_jobs(3)[1:], "queue:queue-1")
    result = merge_sub_rows(forest, more, ["queue:queue-1"], append_sub_rows=True)

    children = result.root_data[0].sub_rows
    assert len(children) == 3
    assert children[0] == first[0]
    assert children[1:] == more


def test_replace_sub_rows_by_default():
    forest = queue_groups()
    forest = merge_sub_rows(forest, jobs_to_rows(make_test_jobs(2), "queue:queue-1"), ["queue:queue-1"]).root_data

    replacement = jobs_to_rows(make_test_jobs(1), "queue:queue-1")
    result = merge_sub_rows(forest, replacement, ["queue:queue-1"])
    assert result.root_data[0].sub_rows == replacement


def test_merge_target_not_found_returns_original():
    forest = queue_groups()
    result = merge_sub_rows(forest, [], ["queue:queue-9"])
    assert result.root_data is forest
    assert result.parent_row is None


def test_merge_into_leaf_is_not_found():
    forest = jobs_to_rows(make_test_jobs(2))
    result = merge_sub_rows(forest, [], ["job:0"])
    assert result.root_data is forest
    assert result.parent_row is None


def test_update_group_row():
    forest = queue_groups()
    result = update_group_row(forest, ["queue:queue-2"], sub_row_count=2)

    assert result.root_data[1].sub_row_count == 2
    assert forest[1].sub_row_count is None
    assert result.root_data[0] is forest[0]


def test_load_more_flags():
    group = JobGroupRow(row_id="queue:queue-1", grouped_field="queue", group_value="queue-1", job_count=3)
    assert group.loaded_sub_row_count == 0
    assert not group.can_load_more

    group = update_group_row([group], ["queue:queue-1"], sub_row_count=3).root_data[0]
    group = merge_sub_rows([group], jobs_to_rows(make_test_jobs(1), "queue:queue-1"), ["queue:queue-1"]).root_data[0]
    assert group.loaded_sub_row_count == 1
    assert group.can_load_more


def test_find_row():
    forest = queue_groups()
    forest = merge_sub_rows(forest, jobs_to_rows(make_test_jobs(2), "queue:queue-2"), ["queue:queue-2"]).root_data

    row = find_row(forest, "queue:queue-2>job:1")
    assert isinstance(row, JobRow)
    assert row.job_id == "1"
    assert find_row(forest, "queue:queue-1").job_count == 3
    assert find_row(forest, "queue:queue-1>job:0") is None
    assert find_row(forest, "queue:queue-9") is None


def test_expansion_state_is_immutable():
    empty = ExpansionState()
    expanded = empty.expand("queue:queue-1")

    assert not empty.is_expanded("queue:queue-1")
    assert expanded.is_expanded("queue:queue-1")
    assert expanded.toggle("queue:queue-1") == empty
    assert len(expanded.expand("queue:queue-2")) == 2


def test_expansion_diff():
    previous = ExpansionState(frozenset({"a:1", "a:2"}))
    current = ExpansionState(frozenset({"a:2", "a:4", "a:3"}))

    assert current.diff(previous) == (["a:3", "a:4"], ["a:1"])
    assert current.diff(None) == (["a:2", "a:3", "a:4"], [])


def test_visible_rows_depth_first():
    forest = queue_groups()
    forest = merge_sub_rows(forest, jobs_to_rows(make_test_jobs(2), "queue:queue-1"), ["queue:queue-1"]).root_data

    collapsed = [(d, r.row_id) for d, r in visible_rows(forest, ExpansionState())]
    assert collapsed == [(0, "queue:queue-1"), (0, "queue:queue-2")]

    expanded = [(d, r.row_id) for d, r in visible_rows(forest, ExpansionState(frozenset({"queue:queue-1"})))]
    assert expanded == [
        (0, "queue:queue-1"),
        (1, "queue:queue-1>job:0"),
        (1, "queue:queue-1>job:1"),
        (0, "queue:queue-2"),
    ]


def test_merge_empty_page_marks_group_loaded():
    forest = queue_groups()

    result = merge_sub_rows(forest, [], ["queue:queue-1"])

    assert result.root_data[0].sub_rows == []
    assert result.parent_row is not None
    assert result.parent_row.loaded_sub_row_count == 0
    # Other groups stay unloaded
    assert result.root_data[1].sub_rows is None
    assert forest[0].sub_rows is None
