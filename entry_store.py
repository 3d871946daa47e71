import io
import json
import logging
import os
import sqlite3
from dataclasses import replace

from PIL import Image, UnidentifiedImageError

from entries import Entry, as_day


ENTRIES_KEY = "Entries"
IMAGE_EXTENSION = ".jpg"
JPEG_QUALITY = 90

logger = logging.getLogger("weight_tracker.entry_store")


class StorageError(Exception):
    """A durable-storage operation failed."""


class CorruptDataError(StorageError):
    pass


class PhotoError(StorageError):
    pass


class EntryNotFoundError(LookupError):
    pass


def ensure_db(db_path):
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )
    conn.commit()
    return conn


def write_value(conn, key, value):
    conn.execute(
        """
        INSERT INTO kv (key, value)
        VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )
    conn.commit()


def read_value(conn, key):
    row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
    if row:
        return row[0]
    return None


def encode_entries(entries):
    return json.dumps([entry.to_dict() for entry in entries])


def decode_entries(blob):
    try:
        data = json.loads(blob)
        if not isinstance(data, list):
            raise TypeError(f"expected a JSON array, got {type(data).__name__}")
        return [Entry.from_dict(item) for item in data]
    except (ValueError, KeyError, TypeError) as exc:
        raise CorruptDataError(f"Stored entries could not be decoded: {exc}") from exc


def open_image(photo):
    if isinstance(photo, Image.Image):
        return photo
    try:
        if isinstance(photo, (bytes, bytearray)):
            image = Image.open(io.BytesIO(photo))
        else:
            image = Image.open(photo)
        image.load()
    except (OSError, UnidentifiedImageError) as exc:
        raise PhotoError(f"Could not read photo: {exc}") from exc
    return image


class EntryStore:
    """Dated entries kept in memory and mirrored to a key-value table.

    The whole collection is rewritten under ``ENTRIES_KEY`` after every
    mutation. Photos live in ``images_dir`` as ``<entry id>.jpg``.
    """

    def __init__(self, conn, images_dir, key=ENTRIES_KEY):
        self.conn = conn
        self.images_dir = images_dir
        self.key = key
        self.entries = []
        self.load_error = None

    @classmethod
    def open(cls, db_path, images_dir):
        """Open the database and load the stored entries.

        A blob that cannot be decoded leaves the store empty and is kept as
        ``load_error`` for the caller to report.
        """
        store = cls(ensure_db(db_path), images_dir)
        try:
            store.load()
        except CorruptDataError as exc:
            logger.warning("Starting with no entries: %s", exc)
            store.load_error = exc
        return store

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def load(self):
        """Read the stored collection.

        Raises CorruptDataError if the blob cannot be decoded; the store is
        left empty in that case and the caller decides whether to go on.
        """
        self.entries = []
        try:
            blob = read_value(self.conn, self.key)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not read entries: {exc}") from exc
        if blob is None:
            return self.entries
        self.entries = decode_entries(blob)
        logger.info("Loaded %d entries", len(self.entries))
        return self.entries

    def save(self):
        try:
            write_value(self.conn, self.key, encode_entries(self.entries))
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise StorageError(f"Could not save entries: {exc}") from exc

    def add(self, entry, photo=None):
        if photo is not None:
            entry.image_path = self.write_photo(entry.id, photo)
        self.entries.append(entry)
        self.save()
        logger.info("Added entry %s for %s", entry.id, entry.date)
        return entry

    def find(self, day):
        day = as_day(day)
        return next((entry for entry in self.entries if entry.on_day(day)), None)

    def entries_on(self, day):
        day = as_day(day)
        return [entry for entry in self.entries if entry.on_day(day)]

    def has_entry(self, day):
        return self.find(day) is not None

    def index_of(self, entry_id):
        for index, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return index
        raise EntryNotFoundError(entry_id)

    def chronological(self):
        return sorted(self.entries, key=lambda entry: entry.date)

    def update(self, existing, replacement, new_photo=None):
        index = self.index_of(existing.id)
        current = self.entries[index]
        updated = replace(replacement, id=current.id)
        if new_photo is not None:
            image = open_image(new_photo)
            self.delete_photo(current.image_path)
            updated.image_path = self.write_photo(current.id, image)
        elif replacement.image_path is None:
            updated.image_path = current.image_path
        self.entries[index] = updated
        self.save()
        logger.info("Updated entry %s", updated.id)
        return updated

    def remove(self, index):
        entry = self.entries.pop(index)
        self.save()
        logger.info("Removed entry %s for %s", entry.id, entry.date)
        self.delete_photo(entry.image_path)
        return entry

    def remove_on(self, day):
        removed = self.entries_on(day)
        if not removed:
            return []
        self.entries = [entry for entry in self.entries if not entry.on_day(day)]
        self.save()
        for entry in removed:
            self.delete_photo(entry.image_path)
        logger.info("Removed %d entries for %s", len(removed), as_day(day))
        return removed

    def photo_path(self, entry_id):
        return os.path.join(self.images_dir, f"{entry_id}{IMAGE_EXTENSION}")

    def write_photo(self, entry_id, photo):
        image = open_image(photo)
        path = self.photo_path(entry_id)
        try:
            os.makedirs(self.images_dir, exist_ok=True)
            image.convert("RGB").save(path, format="JPEG", quality=JPEG_QUALITY)
        except OSError as exc:
            raise PhotoError(f"Could not write photo {path}: {exc}") from exc
        return path

    def delete_photo(self, path):
        if not path or not os.path.exists(path):
            return
        try:
            os.remove(path)
        except OSError as exc:
            raise PhotoError(f"Could not delete photo {path}: {exc}") from exc
