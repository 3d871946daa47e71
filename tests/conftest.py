"""Shared test fixtures."""

import datetime as dt
from collections.abc import Iterator

import pytest
from PIL import Image

from entries import Entry, WeightUnit
from entry_store import EntryStore


def make_entry(day=dt.date(2024, 3, 1), **overrides) -> Entry:
    values = {
        "date": day,
        "weight": 80.0,
        "body_fat": 20.0,
        "muscle_mass": 40.0,
        "visceral_fat": 5,
        "weight_unit": WeightUnit.KG,
    }
    values.update(overrides)
    return Entry(**values)


def solid_image(color: str) -> Image.Image:
    return Image.new("RGB", (16, 16), color)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "entries.sqlite")


@pytest.fixture
def images_dir(tmp_path) -> str:
    return str(tmp_path / "images")


@pytest.fixture
def store(db_path, images_dir) -> Iterator[EntryStore]:
    entry_store = EntryStore.open(db_path, images_dir)
    yield entry_store
    entry_store.conn.close()
