"""Tests for form validation and guarded submission."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from fakes import make_task

from kanban.errors import RemoteOperationError, ValidationError
from kanban.forms import TaskForm, validate_task_fields
from kanban.records import NewTaskData, TaskPriority

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestValidateTaskFields:
    def test_title_boundary(self):
        assert validate_task_fields("x" * 100, now=NOW) == {}
        errors = validate_task_fields("x" * 101, now=NOW)
        assert isinstance(errors["title"], ValidationError)
        assert errors["title"].field == "title"

    @pytest.mark.parametrize("title", ["", "   ", "\t\n"])
    def test_blank_title(self, title):
        assert "title" in validate_task_fields(title, now=NOW)

    def test_description_boundary(self):
        assert validate_task_fields("t", "d" * 500, now=NOW) == {}
        assert "description" in validate_task_fields("t", "d" * 501, now=NOW)

    def test_due_date_equal_to_now_passes(self):
        assert validate_task_fields("t", due_date=NOW, now=NOW) == {}

    def test_due_date_one_millisecond_past_fails(self):
        errors = validate_task_fields("t", due_date=NOW - timedelta(milliseconds=1), now=NOW)
        assert errors["due_date"].field == "due_date"

    def test_naive_due_date_treated_as_utc(self):
        naive_future = datetime(2025, 6, 2, 0, 0)
        assert validate_task_fields("t", due_date=naive_future, now=NOW) == {}

    def test_collects_every_failing_field(self):
        errors = validate_task_fields(
            "", "d" * 501, NOW - timedelta(days=1), now=NOW
        )
        assert set(errors) == {"title", "description", "due_date"}


class TestTaskForm:
    @pytest.mark.asyncio
    async def test_invalid_form_blocks_submission(self):
        handler = AsyncMock()
        form = TaskForm(title="  ")
        assert await form.submit(handler, now=NOW) is False
        handler.assert_not_awaited()
        assert "title" in form.errors

    def test_set_field_clears_only_that_error(self):
        form = TaskForm(title="", description="d" * 501)
        form.validate(now=NOW)
        assert set(form.errors) == {"title", "description"}
        form.set_field("title", "Fixed")
        assert set(form.errors) == {"description"}

    def test_set_unknown_field(self):
        with pytest.raises(KeyError):
            TaskForm().set_field("status", "todo")

    @pytest.mark.asyncio
    async def test_valid_add_form_forwards_and_resets(self):
        handler = AsyncMock(return_value="new-id")
        form = TaskForm(title="Write tests", priority="high", due_date=NOW + timedelta(days=1))

        assert await form.submit(handler, now=NOW) is True

        handler.assert_awaited_once()
        data = handler.await_args.args[0]
        assert isinstance(data, NewTaskData)
        assert data.title == "Write tests"
        assert data.priority is TaskPriority.high
        assert form.values["title"] == ""
        assert form.values["priority"] is TaskPriority.medium
        assert form.errors == {}

    @pytest.mark.asyncio
    async def test_edit_form_keeps_values_after_submit(self):
        task = make_task("t1", title="Existing")
        form = TaskForm.for_task(task)
        assert form.is_edit is True
        assert await form.submit(AsyncMock(), now=NOW) is True
        assert form.values["title"] == "Existing"

    @pytest.mark.asyncio
    async def test_remote_failure_propagates_and_keeps_values(self):
        handler = AsyncMock(side_effect=RemoteOperationError("create", ConnectionError("down")))
        form = TaskForm(title="Keep me")
        with pytest.raises(RemoteOperationError):
            await form.submit(handler, now=NOW)
        assert form.values["title"] == "Keep me"
        assert form.submitting is False

    @pytest.mark.asyncio
    async def test_corrected_form_can_submit(self):
        handler = AsyncMock()
        form = TaskForm(title="")
        assert await form.submit(handler, now=NOW) is False
        form.set_field("title", "Now valid")
        assert await form.submit(handler, now=NOW) is True
        handler.assert_awaited_once()

    def test_error_messages(self):
        form = TaskForm(title="x" * 101)
        form.validate(now=NOW)
        assert form.error_messages() == {"title": "Title must be 100 characters or fewer."}
