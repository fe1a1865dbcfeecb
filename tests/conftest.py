"""Shared fixtures for building Anki collections and packages on disk."""
import io
import json
import sqlite3
import zipfile

import pytest

BASIC_MODELS = {
    "1": {
        "id": 1,
        "name": "Basic",
        "type": 0,
        "flds": [{"name": "Front", "ord": 0}, {"name": "Back", "ord": 1}],
    },
    "2": {
        "id": 2,
        "name": "Basic (and reversed card)",
        "type": 0,
        "flds": [{"name": "Front", "ord": 0}, {"name": "Back", "ord": 1}],
    },
    "3": {
        "id": 3,
        "name": "Cloze",
        "type": 1,
        "flds": [{"name": "Text", "ord": 0}, {"name": "Back Extra", "ord": 1}],
    },
}

SCHEMA = {
    "col": """
        CREATE TABLE col (
            id integer primary key, crt integer not null, mod integer not null,
            scm integer not null, ver integer not null, dty integer not null,
            usn integer not null, ls integer not null, conf text not null,
            models text not null, decks text not null, dconf text not null,
            tags text not null
        )
    """,
    "notes": """
        CREATE TABLE notes (
            id integer primary key, guid text not null, mid integer not null,
            mod integer not null, usn integer not null, tags text not null,
            flds text not null, sfld text not null, csum integer not null,
            flags integer not null, data text not null
        )
    """,
    "cards": """
        CREATE TABLE cards (
            id integer primary key, nid integer not null, did integer not null,
            ord integer not null, mod integer not null, usn integer not null,
            type integer not null, queue integer not null, due integer not null,
            ivl integer not null, factor integer not null, reps integer not null,
            lapses integer not null, left integer not null, odue integer not null,
            odid integer not null, flags integer not null, data text not null
        )
    """,
}


@pytest.fixture
def collection_factory(tmp_path):
    """Return a callable building SQLite collection bytes.

    ``notes`` is a list of ``(id, flds, tags, mid)`` tuples; ``flds`` may be
    bytes to store a raw BLOB.
    """
    counter = {"n": 0}

    def build(notes, models=BASIC_MODELS, tables=("col", "notes", "cards")) -> bytes:
        counter["n"] += 1
        path = tmp_path / f"collection_{counter['n']}.db"
        conn = sqlite3.connect(path)
        try:
            for table in tables:
                conn.execute(SCHEMA[table])
            if "col" in tables:
                conn.execute(
                    "INSERT INTO col VALUES (1, 0, 0, 0, 11, 0, 0, 0, '{}', ?, '{}', '{}', '{}')",
                    (json.dumps(models),),
                )
            if "notes" in tables:
                for note_id, flds, tags, mid in notes:
                    conn.execute(
                        "INSERT INTO notes VALUES (?, ?, ?, 0, 0, ?, ?, '', 0, 0, '')",
                        (note_id, f"guid{note_id}", mid, tags, flds),
                    )
                    if "cards" in tables:
                        conn.execute(
                            "INSERT INTO cards VALUES "
                            "(?, ?, 1, 0, 0, 0, 0, 0, 0, 0, 2500, 0, 0, 0, 0, 0, 0, '')",
                            (note_id, note_id),
                        )
            conn.commit()
        finally:
            conn.close()
        return path.read_bytes()

    return build


@pytest.fixture
def apkg_factory():
    """Return a callable zipping ``{entry name: bytes}`` into package bytes."""

    def build(entries) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in entries.items():
                archive.writestr(name, data)
        return buffer.getvalue()

    return build
