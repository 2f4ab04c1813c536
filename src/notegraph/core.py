"""Note records, front-matter parsing and wikilink extraction.

Everything here is pure: no storage, no indices.  A persisted note looks like::

    ---
    created: 2024-03-01
    topic_type: #fundamental
    status: #seed
    source_link: https://learn.microsoft.com/dotnet
    ---
    The [[CLR]] runs managed code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any


class NotFound(KeyError):
    """Raised when an id-based lookup targets a note that is not stored."""

    def __init__(self, note_id: str) -> None:
        self.note_id = note_id
        super().__init__(note_id)

    def __str__(self) -> str:
        return f"note not found: {self.note_id}"


@dataclass(frozen=True)
class Note:
    """One stored note.  Hashable; metadata takes part in equality only."""

    id: str
    body: str = ""
    metadata: dict[str, str] = field(default_factory=dict, hash=False)
    links: tuple[str, ...] = ()
    created: float = 0.0

    def text(self) -> str:
        """The note in its persisted markdown form."""
        return render_note(self)


# ---------------------------------------------------------------------------
# Wikilinks
# ---------------------------------------------------------------------------

_WIKILINK_RE = re.compile(r"\[\[([^\]]+)\]\]")


def extract_wikilinks(text: str) -> list[str]:
    """Extract all ``[[wikilink]]`` targets from *text*, in order.

    Targets are trimmed; blank targets are dropped.  Duplicates are kept.
    """
    targets = []
    for raw in _WIKILINK_RE.findall(text):
        target = raw.strip()
        if target:
            targets.append(target)
    return targets


# ---------------------------------------------------------------------------
# YAML subset
# ---------------------------------------------------------------------------

# ``#`` opens a comment only when whitespace or the end of the line follows
# it.  ``#seed`` and ``#dotnet, #gc`` are hashtags and stay in the value.
_COMMENT_RE = re.compile(r"(?:^|\s)#(?=\s|$)")


def _strip_comment(value: str) -> str:
    if value[:1] in ("[", '"', "'"):
        return value
    match = _COMMENT_RE.search(value)
    return value[: match.start()].rstrip() if match else value


def _parse_yaml_subset(yaml_str: str) -> dict[str, Any]:
    """Parse the front-matter dialect into a dict.

    Supports:
    - ``key: value`` (strings, unquoted or quoted)
    - ``key: [a, b, c]`` (inline lists)
    - ``key:\\n  - a\\n  - b`` (block lists)
    - ``key:\\n  sub: val`` (one-level nested dicts)
    - ``# comment`` lines and trailing `` # comment`` text

    Hashtags are values: ``tags: #dotnet, #gc`` parses to
    ``{"tags": "#dotnet, #gc"}``.
    """
    result: dict[str, Any] = {}
    pending: str | None = None
    block: list[str] = []

    for line in yaml_str.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            continue
        if pending is not None:
            if stripped and line[0].isspace():
                block.append(stripped)
                continue
            result[pending] = _parse_block(block)
            pending, block = None, []

        key, sep, rest = stripped.partition(":")
        if not sep:
            continue
        rest = _strip_comment(rest.strip())
        if rest:
            result[key.strip()] = _parse_yaml_value(rest)
        else:
            pending = key.strip()

    if pending is not None:
        result[pending] = _parse_block(block)
    return result


def _parse_block(items: list[str]) -> Any:
    """Value of a key whose content sits on the indented lines below it."""
    if any(item.startswith("- ") for item in items):
        return [_unquote(_strip_comment(item[2:].strip())) for item in items if item.startswith("- ")]
    if any(":" in item for item in items):
        sub: dict[str, str] = {}
        for item in items:
            name, sep, val = item.partition(":")
            if sep:
                sub[name.strip()] = _unquote(_strip_comment(val.strip()))
        return sub
    return _unquote(_strip_comment(items[0])) if items else ""

def _parse_yaml_value(val: str) -> Any:
    """Parse a single YAML inline value."""
    if val.startswith("[") and val.endswith("]"):
        inner = val[1:-1].strip()
        if not inner:
            return []
        return [_unquote(item.strip()) for item in _split_yaml_list(inner)]
    return _unquote(val)


def _split_yaml_list(s: str) -> list[str]:
    """Split a YAML inline list body on commas, respecting quotes."""
    items: list[str] = []
    current: list[str] = []
    in_quote: str | None = None
    for ch in s:
        if in_quote:
            current.append(ch)
            if ch == in_quote:
                in_quote = None
        elif ch in ('"', "'"):
            in_quote = ch
            current.append(ch)
        elif ch == ",":
            items.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    if current:
        items.append("".join(current).strip())
    return items


def _unquote(val: str) -> str:
    if len(val) >= 2 and val[0] == val[-1] and val[0] in ('"', "'"):
        return val[1:-1]
    return val


# ---------------------------------------------------------------------------
# Front-matter
# ---------------------------------------------------------------------------

_FENCE = "---"


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split front-matter from body text.

    The header must open on the first line with exactly ``---`` and close on
    the next line that is exactly ``---``.  Returns ``(meta, body)``; without
    a complete header the meta dict is empty and *text* is the body.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != _FENCE:
        return {}, text

    for idx in range(1, len(lines)):
        if lines[idx].rstrip() == _FENCE:
            header = "".join(lines[1:idx])
            body = "".join(lines[idx + 1 :]).lstrip("\r\n")
            return _parse_yaml_subset(header), body
    return {}, text


def flatten_metadata(meta: dict[str, Any]) -> dict[str, str]:
    """Reduce parsed front-matter to a flat string -> string mapping.

    Lists are joined with ``", "``; one-level mappings become ``parent.child``
    keys.
    """
    flat: dict[str, str] = {}
    for key, val in meta.items():
        if isinstance(val, list):
            flat[key] = ", ".join(str(v) for v in val)
        elif isinstance(val, dict):
            for sub_key, sub_val in val.items():
                flat[f"{key}.{sub_key}"] = str(sub_val)
        else:
            flat[key] = str(val)
    return flat


def parse_note(text: str) -> tuple[dict[str, str], str, list[str]]:
    """Parse a persisted note into ``(metadata, body, links)``."""
    meta, body = parse_frontmatter(text)
    return flatten_metadata(meta), body, extract_wikilinks(body)


def _render_value(value: str) -> str:
    """*value* as written after ``key: ``, quoted if it would not read back as-is."""
    if value and value == value.strip() and _parse_yaml_value(_strip_comment(value)) == value:
        return value
    return f'"{value}"'


def render_note(note: Note) -> str:
    """Write *note* back to the persisted front-matter format.

    A note without metadata is written as its bare body, unless the body's
    first line is itself a fence; then an empty header goes in front of it.
    """
    if not note.metadata:
        first_line = note.body.splitlines()[0] if note.body else ""
        if first_line.rstrip() != _FENCE:
            return note.body
    lines = [_FENCE]
    for key, val in note.metadata.items():
        lines.append(f"{key}: {_render_value(str(val))}")
    lines.append(_FENCE)
    if note.body:
        lines.append(note.body)
    return "\n".join(lines)
