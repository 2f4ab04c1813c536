"""NoteGraph: the query façade over a NoteStore and its derived indices.

Usage::

    graph = NoteGraph()
    graph.ingest("clr", "---\\ntopic_type: #fundamental\\nstatus: #seed\\n---\\nRuns [[IL]].")
    graph.outbound("clr")        # -> {"IL"}
    graph.filter("seed")         # -> {"clr"}
    [n.id for n in graph.search("runs")]

Mutations hold one exclusive lock across "write store, update indices";
reads take the same lock, so nobody sees the store and the indices disagree.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

import structlog

from .core import Note, NotFound, parse_note
from .index import DEFAULT_TAG_KEYS, LinkIndex, TagIndex, split_tags
from .store import NoteStore

if TYPE_CHECKING:
    from .config import GraphConfig
    from .constraints import Violation

logger = structlog.get_logger()


class NoteGraph:
    """A linked note compendium: store, backlinks, tags and search."""

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        changelog: bool = True,
        tag_keys: Iterable[str] = DEFAULT_TAG_KEYS,
    ) -> None:
        self._lock = threading.RLock()
        self._store = NoteStore(db_path, changelog=changelog)
        self._links = LinkIndex()
        self._tags = TagIndex(tag_keys)
        self._validator = None
        self.rebuild()

    @classmethod
    def from_config(cls, config: GraphConfig) -> "NoteGraph":
        return cls(config.db_path, changelog=config.changelog, tag_keys=config.tag_keys)

    def __enter__(self) -> "NoteGraph":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._store.close()

    @property
    def store(self) -> NoteStore:
        return self._store

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def put(
        self,
        note_id: str,
        body: str = "",
        metadata: dict[str, Any] | None = None,
        links: list[str] | tuple[str, ...] | None = None,
    ) -> Note:
        with self._lock:
            note = self._store.put(note_id, body, metadata, links)
            self._links.update(note)
            self._tags.update(note)
            return note

    def ingest(self, note_id: str, text: str) -> Note:
        """Parse a persisted note (front-matter + body) and store it."""
        metadata, body, links = parse_note(text)
        return self.put(note_id, body, metadata, links)

    def delete(self, note_id: str) -> None:
        with self._lock:
            self._store.delete(note_id)
            self._links.discard(note_id)
            self._tags.discard(note_id)

    def rebuild(self) -> None:
        """Recompute both indices from the store."""
        with self._lock:
            self._links.rebuild(self._store)
            self._tags.rebuild(self._store)
            logger.info("Indices rebuilt", notes=len(self._store))

    # ------------------------------------------------------------------
    # Validator integration
    # ------------------------------------------------------------------

    def set_validator(self, validator: Any) -> "NoteGraph":
        """Attach a Validator; its structural rules gate every put."""
        with self._lock:
            self._validator = validator
            self._store.set_validator(validator)
        return self

    def clear_validator(self) -> "NoteGraph":
        with self._lock:
            self._validator = None
            self._store.clear_validator()
        return self

    def validate(self) -> list[Violation]:
        """Run the attached validator's full rule set (empty when none)."""
        with self._lock:
            if self._validator is None:
                return []
            return self._validator.validate(self)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get(self, note_id: str) -> Note:
        with self._lock:
            return self._store.get(note_id)

    def exists(self, note_id: str) -> bool:
        with self._lock:
            return self._store.exists(note_id)

    def ids(self) -> list[str]:
        with self._lock:
            return self._store.ids()

    def notes(self) -> Iterator[Note]:
        """Every note ordered by id, from a snapshot taken at first use."""
        with self._lock:
            snapshot = list(self._store.list())
        yield from snapshot

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, note_id: object) -> bool:
        with self._lock:
            return note_id in self._store

    def _require(self, note_id: str) -> None:
        if not self._store.exists(note_id):
            logger.debug("Note lookup missed", note_id=note_id)
            raise NotFound(note_id)

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def outbound(self, note_id: str) -> set[str]:
        with self._lock:
            return self._links.outbound(note_id)

    def inbound(self, note_id: str) -> set[str]:
        with self._lock:
            return self._links.inbound(note_id)

    def backlinks(self, note_id: str) -> set[str]:
        """Ids of notes linking to *note_id*; the note itself must exist."""
        with self._lock:
            self._require(note_id)
            return self._links.inbound(note_id)

    def neighbors(self, note_id: str) -> set[str]:
        """Outbound targets plus backlinks of an existing note."""
        with self._lock:
            self._require(note_id)
            return self._links.outbound(note_id) | self._links.inbound(note_id)

    def edges(self) -> set[tuple[str, str]]:
        with self._lock:
            return self._links.edges()

    def stubs(self) -> dict[str, set[str]]:
        """Link targets with no note yet, mapped to the notes linking them."""
        with self._lock:
            return {
                target: self._links.inbound(target)
                for target in self._links.targets()
                if not self._store.exists(target)
            }

    def orphans(self) -> list[str]:
        """Notes with no links in or out, sorted."""
        with self._lock:
            return [
                note_id for note_id in self._store.ids()
                if not self._links.outbound(note_id) and not self._links.inbound(note_id)
            ]

    # ------------------------------------------------------------------
    # Tags & search
    # ------------------------------------------------------------------

    def filter(self, tag: str) -> set[str]:
        with self._lock:
            return self._tags.by_tag(tag)

    def tags(self, note_id: str | None = None) -> dict[str, set[str]] | set[str]:
        """Tags of one note, or the whole ``{tag: ids}`` mapping."""
        with self._lock:
            if note_id is not None:
                self._require(note_id)
                return self._tags.tags_of(note_id)
            return self._tags.tags()

    def search(self, substring: str) -> Iterator[Note]:
        """Notes whose body or a metadata value contains *substring*.

        Case-insensitive; an empty substring matches every note.  Each call
        iterates a snapshot taken when iteration starts.
        """
        needle = substring.casefold()
        for note in self.notes():
            if needle in note.body.casefold() or any(
                needle in value.casefold() for value in note.metadata.values()
            ):
                yield note

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read(self, note_id: str, depth: int = 0) -> str:
        """Render a note with progressive disclosure of linked notes.

        - ``depth=0``: the note alone
        - ``depth=1``: plus every existing note it links to
        - ``depth=N``: recursive to N levels

        Cycles are cut by a visited set; linked notes are visited in sorted
        order.  Stub targets are skipped.
        """
        with self._lock:
            root = self._store.get(note_id)
            if depth <= 0:
                return root.text()
            sections: list[str] = []
            self._read_recursive(root, depth, set(), sections, is_root=True)
            return "\n".join(sections)

    def _read_recursive(
        self,
        note: Note,
        depth: int,
        visited: set[str],
        sections: list[str],
        is_root: bool = False,
    ) -> None:
        if note.id in visited:
            return
        visited.add(note.id)

        if not is_root:
            sections.append(f"--- [[{note.id}]] ---")
        sections.append(note.text())

        if depth <= 0:
            return
        for target in sorted(self._links.outbound(note.id)):
            if target not in visited and self._store.exists(target):
                self._read_recursive(self._store.get(target), depth - 1, visited, sections)

    def tree(self) -> str:
        """Notes grouped by ``topic_type``; untyped notes listed last."""
        with self._lock:
            groups: dict[str, list[Note]] = {}
            untyped: list[Note] = []
            for note in self._store.list():
                topics = split_tags(note.metadata.get("topic_type", ""))
                if not topics:
                    untyped.append(note)
                for topic in topics:
                    groups.setdefault(topic, []).append(note)

        lines: list[str] = []
        sections = [(f"#{topic}", groups[topic]) for topic in sorted(groups)]
        if untyped:
            sections.append(("(untyped)", untyped))
        for heading, members in sections:
            lines.append(heading)
            for idx, note in enumerate(members):
                connector = "└── " if idx == len(members) - 1 else "├── "
                status = note.metadata.get("status")
                lines.append(f"{connector}{note.id}" + (f" [{status}]" if status else ""))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Changelog
    # ------------------------------------------------------------------

    def changelog(self, since_seq: int = 0, limit: int = 100) -> list[tuple]:
        with self._lock:
            return self._store.changelog(since_seq, limit)
