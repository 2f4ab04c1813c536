"""SQLite-backed note store.

Notes are keyed by id.  Metadata and outbound links live in side tables so a
note is always written (or rejected) as a whole inside one transaction.
"""

from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Iterator, Mapping
from typing import Any

import structlog

from .constraints import ValidationError, Violation
from .core import Note, NotFound

logger = structlog.get_logger()

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS notes (
    id      TEXT PRIMARY KEY,
    body    TEXT NOT NULL DEFAULT '',
    created REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS _metadata (
    note_id  TEXT NOT NULL,
    key      TEXT NOT NULL,
    value    TEXT NOT NULL,
    position INTEGER NOT NULL,
    PRIMARY KEY (note_id, key)
);

CREATE TABLE IF NOT EXISTS _links (
    source   TEXT NOT NULL,
    position INTEGER NOT NULL,
    target   TEXT NOT NULL,
    PRIMARY KEY (source, position)
);
CREATE INDEX IF NOT EXISTS idx_links_target ON _links(target);
"""

_CHANGELOG_SQL = """
CREATE TABLE IF NOT EXISTS _changelog (
    seq  INTEGER PRIMARY KEY AUTOINCREMENT,
    ts   REAL NOT NULL,
    op   TEXT NOT NULL,
    id   TEXT NOT NULL,
    data TEXT
);
"""

_SCALARS = (str, int, float, bool)


def _bad_key(key: Any) -> bool:
    if not isinstance(key, str) or not key or key != key.strip():
        return True
    return ":" in key or key[0] in "#-" or any(ch in key for ch in "\r\n")


def _check_record(note_id: Any, body: Any, metadata: Any, links: Any) -> list[Violation]:
    label = note_id if isinstance(note_id, str) and note_id.strip() else "<empty>"
    violations: list[Violation] = []
    if not isinstance(note_id, str) or not note_id.strip():
        violations.append(Violation(label, "id", "note id must be a non-empty string"))
    if not isinstance(body, str):
        violations.append(Violation(label, "body", f"body must be a string, got {type(body).__name__}"))

    if metadata is not None and not isinstance(metadata, Mapping):
        violations.append(Violation(
            label, "metadata", f"metadata must be a mapping, got {type(metadata).__name__}",
        ))
        metadata = None
    for key, val in (metadata or {}).items():
        if _bad_key(key):
            violations.append(Violation(label, "metadata", f"invalid metadata key: {key!r}"))
        elif not isinstance(val, _SCALARS):
            violations.append(Violation(
                label, "metadata",
                f"value of '{key}' must be a scalar, got {type(val).__name__}",
            ))
        elif any(ch in str(val) for ch in "\r\n"):
            violations.append(Violation(label, "metadata", f"value of '{key}' spans lines"))

    if links is not None and not isinstance(links, (list, tuple)):
        violations.append(Violation(
            label, "links", f"links must be a list or tuple, got {type(links).__name__}",
        ))
        links = None
    for target in links or ():
        if not isinstance(target, str) or not target.strip():
            violations.append(Violation(label, "links", f"invalid link target: {target!r}"))
    return violations


class NoteStore:
    """Persists notes; the single source of truth for every index."""

    def __init__(self, db_path: str = ":memory:", *, changelog: bool = True) -> None:
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            self._db.execute("PRAGMA journal_mode=WAL")
        self._changelog = changelog
        self._validator = None
        self._init_schema()
        logger.debug("Note store opened", db_path=db_path, changelog=changelog)

    def _init_schema(self) -> None:
        self._db.executescript(_SCHEMA_SQL)
        if self._changelog:
            self._db.executescript(_CHANGELOG_SQL)
        self._db.commit()

    def _log(self, op: str, note_id: str, data: dict | None = None) -> None:
        if not self._changelog:
            return
        self._db.execute(
            "INSERT INTO _changelog (ts, op, id, data) VALUES (?, ?, ?, ?)",
            (time.time(), op, note_id, json.dumps(data) if data else None),
        )

    # ------------------------------------------------------------------
    # Validator integration
    # ------------------------------------------------------------------

    def set_validator(self, validator: Any) -> "NoteStore":
        """Attach a Validator whose structural rules gate every put."""
        self._validator = validator
        return self

    def clear_validator(self) -> "NoteStore":
        self._validator = None
        return self

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def put(
        self,
        note_id: str,
        body: str = "",
        metadata: dict[str, Any] | None = None,
        links: list[str] | tuple[str, ...] | None = None,
    ) -> Note:
        """Insert or fully replace a note.

        Raises ValidationError (store unchanged) when the record is
        malformed or an attached validator rejects it.
        """
        meta: dict[str, str] = {}
        targets: list[str] = []

        violations = _check_record(note_id, body, metadata, links)
        if not violations:
            meta = {k: str(v) for k, v in (metadata or {}).items()}
            targets = [t.strip() for t in links or ()]
            if self._validator is not None:
                violations = self._validator.validate_structural(note_id, meta)
        if violations:
            logger.warning(
                "Note rejected",
                note_id=note_id if isinstance(note_id, str) else repr(note_id),
                violations=[str(v) for v in violations],
            )
            raise ValidationError(violations)

        with self._db:
            row = self._db.execute("SELECT created FROM notes WHERE id = ?", (note_id,)).fetchone()
            created = row[0] if row else time.time()
            self._db.execute(
                "INSERT OR REPLACE INTO notes (id, body, created) VALUES (?, ?, ?)",
                (note_id, body, created),
            )
            self._db.execute("DELETE FROM _metadata WHERE note_id = ?", (note_id,))
            self._db.executemany(
                "INSERT INTO _metadata (note_id, key, value, position) VALUES (?, ?, ?, ?)",
                [(note_id, k, v, pos) for pos, (k, v) in enumerate(meta.items())],
            )
            self._db.execute("DELETE FROM _links WHERE source = ?", (note_id,))
            self._db.executemany(
                "INSERT INTO _links (source, position, target) VALUES (?, ?, ?)",
                [(note_id, pos, t) for pos, t in enumerate(targets)],
            )
            self._log("note.put", note_id, {"body": body, "metadata": meta, "links": targets})

        logger.debug("Note stored", note_id=note_id, links=len(targets), replaced=row is not None)
        return Note(note_id, body, meta, tuple(targets), created)

    def get(self, note_id: str) -> Note:
        note = self._read(note_id)
        if note is None:
            raise NotFound(note_id)
        return note

    def _read(self, note_id: str) -> Note | None:
        row = self._db.execute(
            "SELECT body, created FROM notes WHERE id = ?", (note_id,)
        ).fetchone()
        if row is None:
            return None
        meta_rows = self._db.execute(
            "SELECT key, value FROM _metadata WHERE note_id = ? ORDER BY position",
            (note_id,),
        ).fetchall()
        link_rows = self._db.execute(
            "SELECT target FROM _links WHERE source = ? ORDER BY position",
            (note_id,),
        ).fetchall()
        return Note(
            note_id,
            row[0],
            dict(meta_rows),
            tuple(r[0] for r in link_rows),
            row[1],
        )

    def delete(self, note_id: str) -> None:
        """Remove a note.  Deleting an absent id is a no-op."""
        with self._db:
            cur = self._db.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            if cur.rowcount == 0:
                return
            self._db.execute("DELETE FROM _metadata WHERE note_id = ?", (note_id,))
            self._db.execute("DELETE FROM _links WHERE source = ?", (note_id,))
            self._log("note.delete", note_id)
        logger.debug("Note deleted", note_id=note_id)

    def exists(self, note_id: str) -> bool:
        row = self._db.execute("SELECT 1 FROM notes WHERE id = ?", (note_id,)).fetchone()
        return row is not None

    def ids(self) -> list[str]:
        rows = self._db.execute("SELECT id FROM notes ORDER BY id").fetchall()
        return [r[0] for r in rows]

    def list(self) -> Iterator[Note]:
        """Yield every note, ordered by id.  Each call starts a fresh pass."""
        for note_id in self.ids():
            note = self._read(note_id)
            if note is not None:
                yield note

    def __contains__(self, note_id: object) -> bool:
        return isinstance(note_id, str) and self.exists(note_id)

    def __len__(self) -> int:
        return self._db.execute("SELECT COUNT(*) FROM notes").fetchone()[0]

    # ------------------------------------------------------------------
    # Changelog
    # ------------------------------------------------------------------

    @property
    def changelog_enabled(self) -> bool:
        return self._changelog

    def changelog(self, since_seq: int = 0, limit: int = 100) -> list[tuple]:
        """Read changelog entries as (seq, ts, op, id, data) tuples.

        Returns entries with seq > since_seq, up to *limit* rows.
        """
        if not self._changelog:
            return []
        return self._db.execute(
            "SELECT seq, ts, op, id, data FROM _changelog "
            "WHERE seq > ? ORDER BY seq LIMIT ?",
            (since_seq, limit),
        ).fetchall()

    def changelog_truncate(self, before_seq: int) -> int:
        """Delete changelog entries with seq < before_seq. Returns rows deleted."""
        if not self._changelog:
            return 0
        with self._db:
            cur = self._db.execute("DELETE FROM _changelog WHERE seq < ?", (before_seq,))
        return cur.rowcount

    def close(self) -> None:
        self._db.close()
