"""Tests for filtering, sorting, grouping and memoized derivation."""

from fakes import make_task

from kanban.records import FilterSpec, TaskPriority, TaskStatus
from kanban.views import (
    ViewMemo,
    count_by_status,
    derive_view,
    group_by_status,
    sort_key,
)


def _ids(tasks):
    return [t.id for t in tasks]


class TestFilter:
    def test_status_and_priority_conjoin(self):
        tasks = [
            make_task("a", TaskStatus.todo, TaskPriority.high),
            make_task("b", TaskStatus.todo, TaskPriority.low),
            make_task("c", TaskStatus.completed, TaskPriority.high),
            make_task("d", TaskStatus.todo, TaskPriority.high),
        ]
        view = derive_view(tasks, FilterSpec(status="todo", priority="high"))
        assert sorted(_ids(view)) == ["a", "d"]

    def test_all_all_keeps_everything(self):
        tasks = [
            make_task("a", TaskStatus.todo, created_offset=1),
            make_task("b", TaskStatus.in_progress, created_offset=3),
            make_task("c", TaskStatus.completed, created_offset=2),
        ]
        view = derive_view(tasks, FilterSpec())
        assert _ids(view) == ["b", "c", "a"]

    def test_status_only(self):
        tasks = [make_task("a", TaskStatus.in_progress), make_task("b", TaskStatus.todo)]
        assert _ids(derive_view(tasks, FilterSpec(status="in-progress"))) == ["a"]

    def test_empty_input(self):
        assert derive_view([], FilterSpec(status="todo")) == []


class TestSort:
    def test_priority_desc_and_asc(self):
        tasks = [
            make_task("low", priority=TaskPriority.low),
            make_task("high", priority=TaskPriority.high),
            make_task("medium", priority=TaskPriority.medium),
        ]
        desc = derive_view(tasks, FilterSpec(sort_by="priority", sort_order="desc"))
        asc = derive_view(tasks, FilterSpec(sort_by="priority", sort_order="asc"))
        assert _ids(desc) == ["high", "medium", "low"]
        assert _ids(asc) == ["low", "medium", "high"]

    def test_created_at_asc(self):
        tasks = [make_task("new", created_offset=10), make_task("old", created_offset=0)]
        view = derive_view(tasks, FilterSpec(sort_by="createdAt", sort_order="asc"))
        assert _ids(view) == ["old", "new"]

    def test_missing_due_date_sorts_earliest(self):
        tasks = [
            make_task("later", due_offset=100),
            make_task("none"),
            make_task("sooner", due_offset=10),
        ]
        asc = derive_view(tasks, FilterSpec(sort_by="dueDate", sort_order="asc"))
        desc = derive_view(tasks, FilterSpec(sort_by="dueDate", sort_order="desc"))
        assert _ids(asc) == ["none", "sooner", "later"]
        assert _ids(desc) == ["later", "sooner", "none"]

    def test_ties_keep_snapshot_order_in_both_directions(self):
        tasks = [
            make_task("first", priority=TaskPriority.high),
            make_task("second", priority=TaskPriority.high),
            make_task("third", priority=TaskPriority.low),
            make_task("fourth", priority=TaskPriority.high),
        ]
        desc = derive_view(tasks, FilterSpec(sort_by="priority", sort_order="desc"))
        asc = derive_view(tasks, FilterSpec(sort_by="priority", sort_order="asc"))
        assert _ids(desc) == ["first", "second", "fourth", "third"]
        assert _ids(asc) == ["third", "first", "second", "fourth"]

    def test_sort_key_values(self):
        assert sort_key(make_task("a", priority=TaskPriority.high), "priority") == 3
        assert sort_key(make_task("a"), "dueDate") == 0

    def test_derivation_does_not_touch_input(self):
        tasks = [make_task("a", created_offset=0), make_task("b", created_offset=5)]
        derive_view(tasks, FilterSpec(sort_order="asc"))
        assert _ids(tasks) == ["a", "b"]


def test_group_by_status_keeps_order_and_all_columns():
    tasks = [
        make_task("a", TaskStatus.completed),
        make_task("b", TaskStatus.todo),
        make_task("c", TaskStatus.completed),
    ]
    columns = group_by_status(tasks)
    assert list(columns) == [TaskStatus.todo, TaskStatus.in_progress, TaskStatus.completed]
    assert _ids(columns[TaskStatus.completed]) == ["a", "c"]
    assert columns[TaskStatus.in_progress] == []


def test_count_by_status():
    tasks = [
        make_task("a", TaskStatus.todo),
        make_task("b", TaskStatus.in_progress),
        make_task("c", TaskStatus.in_progress),
    ]
    assert count_by_status(tasks) == {
        "total": 3,
        "todo": 1,
        "in-progress": 2,
        "completed": 0,
    }


class TestViewMemo:
    def test_recomputes_only_on_input_change(self):
        memo = ViewMemo()
        tasks = [make_task("a", TaskStatus.todo), make_task("b", TaskStatus.completed)]
        spec = FilterSpec()

        memo.get(1, tasks, spec)
        memo.get(1, tasks, FilterSpec())
        assert memo.recomputations == 1

        assert _ids(memo.get(1, tasks, spec.with_changes(status="todo"))) == ["a"]
        assert memo.recomputations == 2

        memo.get(2, tasks, spec.with_changes(status="todo"))
        assert memo.recomputations == 3
