"""Derived indices over a NoteStore: link adjacency and tag buckets.

Both indices hold no authored data.  ``rebuild`` recomputes them from the
store; ``update``/``discard`` keep them in step with a single mutation and
must leave them exactly as a rebuild would.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from .core import Note

if TYPE_CHECKING:
    from .store import NoteStore

logger = structlog.get_logger()

DEFAULT_TAG_KEYS: tuple[str, ...] = ("topic_type", "status", "tags")

_TAG_SPLIT_RE = re.compile(r"[,\s]+")


def normalize_tag(tag: str) -> str:
    """``"#seed"`` -> ``"seed"``."""
    return tag.strip().lstrip("#")


def split_tags(value: str) -> list[str]:
    """Split a metadata value into tags: ``"#a, #b"`` -> ``["a", "b"]``."""
    tags = []
    for piece in _TAG_SPLIT_RE.split(value):
        tag = normalize_tag(piece)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def note_tags(note: Note, tag_keys: Iterable[str] = DEFAULT_TAG_KEYS) -> set[str]:
    tags: set[str] = set()
    for key in tag_keys:
        tags.update(split_tags(note.metadata.get(key, "")))
    return tags


def _add(buckets: dict[str, set[str]], key: str, member: str) -> None:
    buckets.setdefault(key, set()).add(member)


def _remove(buckets: dict[str, set[str]], key: str, member: str) -> None:
    members = buckets.get(key)
    if members is None:
        return
    members.discard(member)
    if not members:
        del buckets[key]


class LinkIndex:
    """Forward adjacency plus its transpose (backlinks)."""

    def __init__(self) -> None:
        self._forward: dict[str, set[str]] = {}
        self._backward: dict[str, set[str]] = {}

    def rebuild(self, store: NoteStore) -> None:
        self._forward = {}
        self._backward = {}
        for note in store.list():
            self.update(note)
        logger.debug("Link index rebuilt", sources=len(self._forward), targets=len(self._backward))

    def update(self, note: Note) -> None:
        """Replace the outbound edge set of *note*."""
        self.discard(note.id)
        for target in note.links:
            _add(self._forward, note.id, target)
            _add(self._backward, target, note.id)

    def discard(self, note_id: str) -> None:
        """Drop every edge authored by *note_id*."""
        for target in self._forward.pop(note_id, set()):
            _remove(self._backward, target, note_id)

    def outbound(self, note_id: str) -> set[str]:
        return set(self._forward.get(note_id, ()))

    def inbound(self, note_id: str) -> set[str]:
        return set(self._backward.get(note_id, ()))

    def targets(self) -> set[str]:
        """Every id that is linked to at least once."""
        return set(self._backward)

    def edges(self) -> set[tuple[str, str]]:
        return {(src, tgt) for src, tgts in self._forward.items() for tgt in tgts}


class TagIndex:
    """Tag -> ids of the notes whose metadata carries it."""

    def __init__(self, tag_keys: Iterable[str] = DEFAULT_TAG_KEYS) -> None:
        self.tag_keys = tuple(tag_keys)
        self._buckets: dict[str, set[str]] = {}
        self._by_note: dict[str, set[str]] = {}

    def rebuild(self, store: NoteStore) -> None:
        self._buckets = {}
        self._by_note = {}
        for note in store.list():
            self.update(note)
        logger.debug("Tag index rebuilt", tags=len(self._buckets), notes=len(self._by_note))

    def update(self, note: Note) -> None:
        self.discard(note.id)
        tags = note_tags(note, self.tag_keys)
        if not tags:
            return
        self._by_note[note.id] = tags
        for tag in tags:
            _add(self._buckets, tag, note.id)

    def discard(self, note_id: str) -> None:
        for tag in self._by_note.pop(note_id, set()):
            _remove(self._buckets, tag, note_id)

    def by_tag(self, tag: str) -> set[str]:
        return set(self._buckets.get(normalize_tag(tag), ()))

    def tags_of(self, note_id: str) -> set[str]:
        return set(self._by_note.get(note_id, ()))

    def tags(self) -> dict[str, set[str]]:
        return {tag: set(ids) for tag, ids in self._buckets.items()}
