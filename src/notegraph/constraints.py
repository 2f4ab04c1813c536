"""Validation rules for a NoteGraph.

Structural rules inspect a proposed record (id + metadata) and run on every
``put``; graph rules need the whole graph and run on demand.

Usage::

    from notegraph.constraints import Validator, requires_field, no_stubs

    v = Validator()
    v.add(requires_field("fundamental", "source_link"))
    v.add(no_stubs())

    graph.set_validator(v)   # structural rules now gate every put
    errors = v.validate(graph)
    v.check(graph)           # raises if any violations
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from .index import split_tags

if TYPE_CHECKING:
    from .graph import NoteGraph


@dataclass(frozen=True)
class Violation:
    note: str
    rule: str
    message: str

    def __str__(self) -> str:
        return f"{self.note}: [{self.rule}] {self.message}"


class ValidationError(Exception):
    """Raised when a record or a graph breaks one or more rules."""

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = violations
        summary = f"{len(violations)} violation(s):\n" + "\n".join(
            f"  - {v}" for v in violations
        )
        super().__init__(summary)


# Takes (graph, note_id, metadata) -> list of Violations (empty = pass).
# Structural rules are called with graph=None.
ConstraintFn = Callable[["NoteGraph | None", str, dict], list[Violation]]

# (topic filter, check, structural)
RuleTuple = tuple[str | None, ConstraintFn, bool]


def _topics(meta: dict) -> set[str]:
    return set(split_tags(meta.get("topic_type", "")))


class Validator:
    """Collects rules and checks records or whole graphs against them."""

    def __init__(self) -> None:
        self._rules: list[RuleTuple] = []

    def add(self, rule: RuleTuple) -> "Validator":
        self._rules.append(rule)
        return self

    def validate(self, graph: NoteGraph) -> list[Violation]:
        """Run every rule against every matching note."""
        violations: list[Violation] = []
        notes = list(graph.notes())
        for topic, check_fn, _structural in self._rules:
            for note in notes:
                if topic is not None and topic not in _topics(note.metadata):
                    continue
                violations.extend(check_fn(graph, note.id, note.metadata))
        return violations

    def check(self, graph: NoteGraph) -> None:
        violations = self.validate(graph)
        if violations:
            raise ValidationError(violations)

    def validate_structural(self, note_id: str, meta: dict) -> list[Violation]:
        """Run only structural rules against a proposed write."""
        violations: list[Violation] = []
        for topic, check_fn, structural in self._rules:
            if not structural:
                continue
            if topic is not None and topic not in _topics(meta):
                continue
            violations.extend(check_fn(None, note_id, meta))
        return violations


# ---------------------------------------------------------------------------
# Built-in rule factories
# ---------------------------------------------------------------------------


def requires_field(topic: str | None, field: str) -> RuleTuple:
    """Every note (of topic) must carry a non-empty ``field``."""

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        if not meta.get(field):
            return [Violation(note_id, "requires_field", f"missing field '{field}'")]
        return []

    return (topic, _check, True)


def requires_tag(topic: str | None, keys: tuple[str, ...] = ("topic_type", "status", "tags")) -> RuleTuple:
    """Every note (of topic) must carry at least one tag under *keys*."""

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        if any(split_tags(meta.get(k, "")) for k in keys):
            return []
        return [Violation(note_id, "requires_tag", "must have at least one tag")]

    return (topic, _check, True)


def requires_link(topic: str | None, target_topic: str | None = None) -> RuleTuple:
    """Every note (of topic) must link out at least once.

    With ``target_topic``, at least one link must reach an existing note of
    that topic.
    """

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        targets = graph.outbound(note_id)
        if not targets:
            msg = "must have at least one outgoing link"
            if target_topic:
                msg += f" to topic '{target_topic}'"
            return [Violation(note_id, "requires_link", msg)]

        if target_topic is not None:
            for target in sorted(targets):
                if graph.exists(target) and target_topic in _topics(graph.get(target).metadata):
                    return []
            return [Violation(
                note_id, "requires_link",
                f"must link to at least one note of topic '{target_topic}'",
            )]
        return []

    return (topic, _check, False)


def no_orphans(topic: str | None = None) -> RuleTuple:
    """Every note (of topic) must have at least one link in or out."""

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        if graph.outbound(note_id) or graph.inbound(note_id):
            return []
        return [Violation(note_id, "no_orphans", "note has no incoming or outgoing links")]

    return (topic, _check, False)


def no_stubs(topic: str | None = None) -> RuleTuple:
    """Every link of a note (of topic) must reach an existing note."""

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        missing = sorted(t for t in graph.outbound(note_id) if not graph.exists(t))
        if missing:
            return [Violation(note_id, "no_stubs", f"stub link(s): {', '.join(missing)}")]
        return []

    return (topic, _check, False)


def custom(
    topic: str | None,
    rule_name: str,
    fn: Callable[["NoteGraph | None", str, dict], str | None],
    structural: bool = False,
) -> RuleTuple:
    """Create a rule from an arbitrary function.

    ``fn(graph, note_id, meta)`` returns an error message, or None if valid.
    """

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        result = fn(graph, note_id, meta)
        if result:
            return [Violation(note_id, rule_name, result)]
        return []

    return (topic, _check, structural)


def freeze_schema(topic: str | None, allowed_fields: list[str]) -> RuleTuple:
    """Reject metadata keys outside *allowed_fields* (``topic_type`` is implied)."""
    allowed = set(allowed_fields) | {"topic_type"}

    def _check(graph, note_id: str, meta: dict) -> list[Violation]:
        extra = sorted(set(meta) - allowed)
        if extra:
            return [Violation(
                note_id, "freeze_schema",
                f"disallowed field(s): {', '.join(extra)}",
            )]
        return []

    return (topic, _check, True)
