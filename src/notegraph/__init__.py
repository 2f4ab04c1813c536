"""
notegraph - a linked note compendium with front-matter, wikilinks and backlinks.

Usage:
    from notegraph import NoteGraph

    graph = NoteGraph()
    graph.ingest("clr", "---\\ntopic_type: #fundamental\\nstatus: #seed\\n---\\nRuns [[IL]] code.")
    graph.outbound("clr")       # -> {"IL"}
    graph.inbound("IL")         # -> {"clr"}
    graph.filter("seed")        # -> {"clr"}
    [n.id for n in graph.search("RUNS")]  # -> ["clr"]
"""

from .core import Note, NotFound, extract_wikilinks, parse_frontmatter, parse_note, render_note
from .store import NoteStore
from .index import DEFAULT_TAG_KEYS, LinkIndex, TagIndex, note_tags
from .graph import NoteGraph
from .config import ConfigError, GraphConfig, load_config
from .shell import GraphShell, GRAPH_COMMANDS
from .vault import export_vault, load_vault
from .constraints import (
    Validator,
    Violation,
    ValidationError,
    requires_field,
    requires_tag,
    requires_link,
    no_orphans,
    no_stubs,
    custom,
    freeze_schema,
)

__version__ = "0.1.0"
__all__ = [
    "Note",
    "NotFound",
    "extract_wikilinks",
    "parse_frontmatter",
    "parse_note",
    "render_note",
    "NoteStore",
    "DEFAULT_TAG_KEYS",
    "LinkIndex",
    "TagIndex",
    "note_tags",
    "NoteGraph",
    "ConfigError",
    "GraphConfig",
    "load_config",
    "GraphShell",
    "GRAPH_COMMANDS",
    "export_vault",
    "load_vault",
    "Validator",
    "Violation",
    "ValidationError",
    "requires_field",
    "requires_tag",
    "requires_link",
    "no_orphans",
    "no_stubs",
    "custom",
    "freeze_schema",
]
