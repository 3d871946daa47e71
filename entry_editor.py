import datetime as dt
import enum
import logging
import math

from entries import Entry, WeightUnit, as_day, convert_weight
from entry_store import StorageError


FIELDS = ("weight", "body_fat", "muscle_mass", "visceral_fat")
PERCENT_FIELDS = ("body_fat", "muscle_mass")
FIELD_LABELS = {
    "weight": "Weight",
    "body_fat": "Body fat",
    "muscle_mass": "Muscle mass",
    "visceral_fat": "Visceral fat",
}

logger = logging.getLogger("weight_tracker.entry_editor")


class EditorState(enum.Enum):
    IDLE = "idle"
    EDITING = "editing"
    VALIDATING = "validating"
    PERSISTED = "persisted"
    REJECTED = "rejected"


def parse_float(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None, False
    if not math.isfinite(number):
        return None, False
    return number, True


def validate_percentage(text):
    """Return the text to keep in the field and an error message, if any."""
    text = text.strip()
    if not text:
        return text, None
    number, ok = parse_float(text)
    if not ok:
        return "", "Invalid number format."
    if number < 0 or number > 100:
        return "", "Value must be between 0 and 100."
    return text, None


def validate_visceral_fat(text):
    text = text.strip()
    if not text:
        return text, None
    number, ok = parse_float(text)
    if not ok:
        return "", "Invalid number format."
    if number < 0:
        return "", "Value must not be negative."
    if not number.is_integer():
        return "", "Visceral fat must be a whole number."
    return text, None


def format_number(value):
    if isinstance(value, float) and value.is_integer():
        return f"{value:.1f}"
    return str(value)


class EntryEditor:
    """Form state for adding or editing one entry.

    Raw text is kept per field and only parsed on ``leave_field`` and
    ``save``. Saving dispatches to ``store.add`` for a new entry and to
    ``store.update`` when an existing entry was passed to ``begin``.
    """

    def __init__(self, store):
        self.store = store
        self.state = EditorState.IDLE
        self.error = None
        self.entry = None
        self.day = None
        self.unit = WeightUnit.KG
        self.photo = None
        self.fields = dict.fromkeys(FIELDS, "")

    @property
    def editing_existing(self):
        return self.entry is not None

    def begin(self, day, entry=None):
        self.entry = entry
        self.photo = None
        self.error = None
        if entry is None:
            self.day = as_day(day)
            self.unit = WeightUnit.KG
            self.fields = dict.fromkeys(FIELDS, "")
        else:
            self.day = entry.date
            self.unit = entry.weight_unit
            self.fields = {
                "weight": format_number(entry.weight),
                "body_fat": format_number(entry.body_fat),
                "muscle_mass": format_number(entry.muscle_mass),
                "visceral_fat": str(entry.visceral_fat),
            }
        self.state = EditorState.EDITING

    def cancel(self):
        self.entry = None
        self.photo = None
        self.error = None
        self.fields = dict.fromkeys(FIELDS, "")
        self.state = EditorState.IDLE

    def _touch(self):
        if self.state in (EditorState.IDLE, EditorState.REJECTED, EditorState.PERSISTED):
            if self.day is None:
                self.day = dt.date.today()
            self.state = EditorState.EDITING

    def set_field(self, name, text):
        if name not in self.fields:
            raise KeyError(name)
        self._touch()
        self.fields[name] = text

    def set_photo(self, photo):
        self._touch()
        self.photo = photo

    def leave_field(self, name):
        """Validate a field after it loses focus; invalid text is cleared."""
        self._touch()
        if name in PERCENT_FIELDS:
            text, error = validate_percentage(self.fields[name])
        elif name == "visceral_fat":
            text, error = validate_visceral_fat(self.fields[name])
        else:
            return True
        self.fields[name] = text
        if error:
            self.error = error
            return False
        return True

    def change_unit(self, unit):
        self._touch()
        unit = WeightUnit(unit)
        weight, ok = parse_float(self.fields["weight"])
        if ok and unit is not self.unit:
            self.fields["weight"] = f"{convert_weight(weight, self.unit, unit):.1f}"
        self.unit = unit

    def reject(self, message, field_name=None):
        if field_name is not None:
            self.fields[field_name] = ""
        self.error = message
        self.state = EditorState.REJECTED
        logger.info("Entry rejected: %s", message)

    def build_entry(self, today):
        weight, ok = parse_float(self.fields["weight"])
        if not ok:
            return None, "Weight must be numeric.", "weight"
        if weight <= 0:
            return None, "Weight must be positive.", "weight"

        percentages = {}
        for name in PERCENT_FIELDS:
            value, ok = parse_float(self.fields[name])
            if not ok:
                return None, f"{FIELD_LABELS[name]} must be numeric.", name
            if value < 0 or value > 100:
                return None, f"{FIELD_LABELS[name]} must be between 0 and 100.", name
            percentages[name] = value

        visceral_number, ok = parse_float(self.fields["visceral_fat"].strip())
        if not ok:
            return None, "Visceral fat must be an integer.", "visceral_fat"
        if visceral_number < 0:
            return None, "Visceral fat must not be negative.", "visceral_fat"
        if not visceral_number.is_integer():
            return None, "Visceral fat must be an integer.", "visceral_fat"
        visceral_fat = int(visceral_number)

        if self.day is None:
            return None, "Pick a date first.", None
        if self.day > today:
            return None, "Date must not be in the future.", None

        entry = Entry(
            date=self.day,
            weight=weight,
            body_fat=percentages["body_fat"],
            muscle_mass=percentages["muscle_mass"],
            visceral_fat=visceral_fat,
            weight_unit=self.unit,
        )
        return entry, None, None

    def save(self, today=None):
        """Validate the form and persist it; returns the saved entry or None."""
        self.state = EditorState.VALIDATING
        entry, error, field_name = self.build_entry(today or dt.date.today())
        if error:
            self.reject(error, field_name)
            return None

        try:
            if self.editing_existing:
                saved = self.store.update(self.entry, entry, new_photo=self.photo)
            else:
                saved = self.store.add(entry, photo=self.photo)
        except StorageError as exc:
            logger.warning("Saving entry failed: %s", exc)
            self.reject(str(exc))
            return None

        self.entry = saved
        self.photo = None
        self.error = None
        self.state = EditorState.PERSISTED
        return saved
