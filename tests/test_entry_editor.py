"""Tests for the entry editor form."""

import datetime as dt

import pytest

from entries import WeightUnit
from entry_editor import (
    EditorState,
    EntryEditor,
    validate_percentage,
    validate_visceral_fat,
)
from entry_store import StorageError
from tests.conftest import make_entry, solid_image

TODAY = dt.date(2024, 3, 10)


def fill(editor, weight="80", body_fat="20", muscle_mass="40", visceral_fat="5") -> None:
    editor.set_field("weight", weight)
    editor.set_field("body_fat", body_fat)
    editor.set_field("muscle_mass", muscle_mass)
    editor.set_field("visceral_fat", visceral_fat)


class FailingStore:
    def add(self, entry, photo=None):
        raise StorageError("Could not save entries: disk full")

    def update(self, existing, replacement, new_photo=None):
        raise StorageError("Could not save entries: disk full")


def test_percentage_validation() -> None:
    assert validate_percentage("101") == ("", "Value must be between 0 and 100.")
    assert validate_percentage("-0.5") == ("", "Value must be between 0 and 100.")
    assert validate_percentage("abc") == ("", "Invalid number format.")
    assert validate_percentage("45.5") == ("45.5", None)
    assert validate_percentage("") == ("", None)


def test_visceral_fat_validation() -> None:
    assert validate_visceral_fat("-1") == ("", "Value must not be negative.")
    assert validate_visceral_fat("2.5") == ("", "Visceral fat must be a whole number.")
    assert validate_visceral_fat("x") == ("", "Invalid number format.")
    assert validate_visceral_fat("7") == ("7", None)


def test_leave_field_clears_out_of_range_percentage(store) -> None:
    editor = EntryEditor(store)
    editor.begin(TODAY)
    editor.set_field("body_fat", "101")

    assert editor.leave_field("body_fat") is False
    assert editor.fields["body_fat"] == ""
    assert editor.error == "Value must be between 0 and 100."


def test_leave_field_clears_negative_visceral_fat(store) -> None:
    editor = EntryEditor(store)
    editor.begin(TODAY)
    editor.set_field("visceral_fat", "-1")

    assert editor.leave_field("visceral_fat") is False
    assert editor.fields["visceral_fat"] == ""


def test_leave_field_keeps_valid_percentage(store) -> None:
    editor = EntryEditor(store)
    editor.begin(TODAY)
    editor.set_field("body_fat", "45.5")

    assert editor.leave_field("body_fat") is True
    assert editor.fields["body_fat"] == "45.5"
    assert editor.error is None


def test_begin_enters_editing_from_idle(store) -> None:
    editor = EntryEditor(store)
    assert editor.state is EditorState.IDLE

    editor.begin(TODAY)

    assert editor.state is EditorState.EDITING
    assert editor.day == TODAY
    assert not editor.editing_existing


def test_begin_with_entry_populates_fields(store) -> None:
    entry = store.add(make_entry(day=dt.date(2024, 3, 1), weight=176.0, weight_unit=WeightUnit.LBS))
    editor = EntryEditor(store)

    editor.begin(TODAY, entry)

    assert editor.day == dt.date(2024, 3, 1)
    assert editor.unit is WeightUnit.LBS
    assert editor.fields == {
        "weight": "176.0",
        "body_fat": "20.0",
        "muscle_mass": "40.0",
        "visceral_fat": "5",
    }


def test_save_new_entry_adds_to_store(store) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1))
    fill(editor, body_fat="45.5")

    saved = editor.save(today=TODAY)

    assert editor.state is EditorState.PERSISTED
    assert saved is not None
    assert store.find(dt.date(2024, 3, 1)) == saved
    assert saved.body_fat == 45.5
    assert saved.visceral_fat == 5
    assert len(store) == 1


def test_save_existing_entry_updates_in_place(store) -> None:
    entry = store.add(make_entry(day=dt.date(2024, 3, 1)))
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1), entry)
    editor.set_field("weight", "78.2")

    saved = editor.save(today=TODAY)

    assert saved.id == entry.id
    assert len(store) == 1
    assert store.find(dt.date(2024, 3, 1)).weight == 78.2


def test_second_save_after_add_updates(store) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1))
    fill(editor)
    first = editor.save(today=TODAY)

    editor.set_field("weight", "79")
    second = editor.save(today=TODAY)

    assert second.id == first.id
    assert len(store) == 1


def test_save_with_photo_passes_it_to_store(store) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1))
    fill(editor)
    editor.set_photo(solid_image("red"))

    saved = editor.save(today=TODAY)

    assert saved.image_path is not None
    assert editor.photo is None


@pytest.mark.parametrize(
    ("field", "value", "message"),
    [
        ("weight", "heavy", "Weight must be numeric."),
        ("weight", "0", "Weight must be positive."),
        ("body_fat", "", "Body fat must be numeric."),
        ("muscle_mass", "150", "Muscle mass must be between 0 and 100."),
        ("visceral_fat", "5.5", "Visceral fat must be an integer."),
        ("visceral_fat", "-2", "Visceral fat must not be negative."),
    ],
)
def test_invalid_field_rejects_save_and_clears_field(store, field, value, message) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1))
    fill(editor)
    editor.set_field(field, value)

    assert editor.save(today=TODAY) is None

    assert editor.state is EditorState.REJECTED
    assert editor.error == message
    assert editor.fields[field] == ""
    assert len(store) == 0


def test_future_date_is_rejected(store) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 11))
    fill(editor)

    assert editor.save(today=TODAY) is None
    assert editor.error == "Date must not be in the future."
    assert editor.fields["weight"] == "80"


def test_editing_after_rejection_returns_to_editing(store) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1))
    fill(editor, weight="")
    editor.save(today=TODAY)

    editor.set_field("weight", "80")

    assert editor.state is EditorState.EDITING
    assert editor.save(today=TODAY) is not None


def test_storage_failure_is_reported_as_rejection() -> None:
    editor = EntryEditor(FailingStore())
    editor.begin(dt.date(2024, 3, 1))
    fill(editor)

    assert editor.save(today=TODAY) is None
    assert editor.state is EditorState.REJECTED
    assert "disk full" in editor.error


def test_change_unit_converts_weight_text(store) -> None:
    editor = EntryEditor(store)
    editor.begin(TODAY)
    editor.set_field("weight", "100")

    editor.change_unit("lbs")
    assert editor.fields["weight"] == "220.5"
    assert editor.unit is WeightUnit.LBS

    editor.change_unit(WeightUnit.KG)
    assert editor.fields["weight"] == "100.0"


def test_change_unit_leaves_non_numeric_weight_alone(store) -> None:
    editor = EntryEditor(store)
    editor.begin(TODAY)

    editor.change_unit("stone")

    assert editor.fields["weight"] == ""
    assert editor.unit is WeightUnit.STONE


def test_cancel_returns_to_idle(store) -> None:
    editor = EntryEditor(store)
    editor.begin(TODAY)
    fill(editor)

    editor.cancel()

    assert editor.state is EditorState.IDLE
    assert editor.fields["weight"] == ""


def test_whole_number_with_decimal_point_is_accepted_for_visceral_fat(store) -> None:
    editor = EntryEditor(store)
    editor.begin(dt.date(2024, 3, 1))
    fill(editor, visceral_fat="5.0")

    assert editor.leave_field("visceral_fat") is True
    saved = editor.save(today=TODAY)

    assert saved is not None
    assert saved.visceral_fat == 5
    assert isinstance(saved.visceral_fat, int)
    assert editor.state is EditorState.PERSISTED
