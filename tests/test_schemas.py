import pytest
from pydantic import ValidationError

from task_api.errors import MalformedIdentifier, TaskValidationError
from task_api.identifiers import is_valid_task_id, new_task_id, to_object_id
from task_api.models import apply_defaults, validate_changes, validate_task
from task_api.schemas import TaskCreate, TaskUpdate


class TestValidateTask:
    def test_valid_document(self):
        validate_task({"title": "Ok", "description": "", "completed": False})

    def test_title_only_is_valid(self):
        validate_task({"title": "Ok"})

    @pytest.mark.parametrize("doc", [{}, {"title": None}, {"title": ""}, {"title": "  \t"}])
    def test_missing_or_blank_title(self, doc):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_task(doc)
        assert exc_info.value.field == "title"

    def test_non_string_title(self):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_task({"title": 5})
        assert exc_info.value.field == "title"

    def test_non_bool_completed(self):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_task({"title": "x", "completed": "true"})
        assert exc_info.value.field == "completed"

    def test_non_string_description(self):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_task({"title": "x", "description": 3})
        assert exc_info.value.field == "description"


class TestValidateChanges:
    def test_only_supplied_fields_checked(self):
        validate_changes({"completed": True})
        validate_changes({})

    @pytest.mark.parametrize(
        "changes, field",
        [({"title": "  "}, "title"), ({"title": None}, "title"), ({"description": 1}, "description"), ({"completed": "no"}, "completed")],
    )
    def test_bad_change(self, changes, field):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_changes(changes)
        assert exc_info.value.field == field


class TestApplyDefaults:
    def test_fills_defaults_and_trims(self):
        doc = apply_defaults({"title": "  Hello "})
        assert doc == {"title": "Hello", "description": "", "completed": False}

    def test_keeps_supplied_values(self):
        doc = apply_defaults({"title": "a", "description": " b ", "completed": True})
        assert doc == {"title": "a", "description": "b", "completed": True}

    def test_drops_store_owned_fields(self):
        doc = apply_defaults({"title": "a", "id": "x", "created_at": 1})
        assert set(doc) == {"title", "description", "completed"}


class TestTaskCreate:
    def test_defaults(self):
        task = TaskCreate(title="X")
        assert task.description == ""
        assert task.completed is False

    def test_title_required(self):
        with pytest.raises(ValidationError):
            TaskCreate()

    @pytest.mark.parametrize("raw", ["yes", "1", 1])
    def test_completed_rejects_non_canonical(self, raw):
        with pytest.raises(ValidationError):
            TaskCreate(title="X", completed=raw)


class TestTaskUpdate:
    def test_changes_only_supplied_fields(self):
        update = TaskUpdate.model_validate({"completed": "false"})
        assert update.changes() == {"completed": False}

    def test_null_description_clears(self):
        update = TaskUpdate.model_validate({"description": None})
        assert update.changes() == {"description": ""}

    def test_unknown_fields_ignored(self):
        update = TaskUpdate.model_validate({"title": "t", "createdAt": "2000-01-01"})
        assert update.changes() == {"title": "t"}


class TestIdentifiers:
    def test_generated_ids_are_valid(self):
        assert is_valid_task_id(new_task_id())

    @pytest.mark.parametrize("value", ["not-an-id", "", "123", "zzzzzzzzzzzzzzzzzzzzzzzz", None, 42])
    def test_malformed(self, value):
        assert not is_valid_task_id(value)
        with pytest.raises(MalformedIdentifier):
            to_object_id(value)

    def test_round_trip_to_object_id(self):
        tid = new_task_id()
        assert str(to_object_id(tid)) == tid
