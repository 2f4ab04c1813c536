"""Load a directory of markdown notes into a NoteGraph, and write it back.

A note's id is its path relative to the vault root, with POSIX separators
and no ``.md`` suffix: ``dotnet/clr.md`` -> ``dotnet/clr``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from .graph import NoteGraph

logger = structlog.get_logger()


def note_id_for(root: Path, path: Path) -> str:
    rel = path.relative_to(root).as_posix()
    return rel[:-3] if rel.endswith(".md") else rel


def load_vault(graph: NoteGraph, root: Path | str, pattern: str = "**/*.md") -> list[str]:
    """Ingest every file under *root* matching *pattern*.

    Returns the ingested ids in path order.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"vault directory not found: {root}")

    loaded: list[str] = []
    for path in sorted(root.glob(pattern)):
        if not path.is_file():
            continue
        note_id = note_id_for(root, path)
        graph.ingest(note_id, path.read_text(encoding="utf-8"))
        loaded.append(note_id)
    logger.info("Vault loaded", root=str(root), notes=len(loaded))
    return loaded


def export_vault(graph: NoteGraph, root: Path | str) -> list[Path]:
    """Write every note to ``root/<id>.md``; returns the written paths."""
    root = Path(root)
    written: list[Path] = []
    for note in graph.notes():
        path = root / f"{note.id}.md"
        if not path.resolve().is_relative_to(root.resolve()):
            raise ValueError(f"note id escapes the vault: {note.id}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(note.text(), encoding="utf-8")
        written.append(path)
    logger.info("Vault exported", root=str(root), notes=len(written))
    return written
