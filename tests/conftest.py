"""Shared fixtures for NoteGraph tests."""

import pytest

from notegraph.graph import NoteGraph


@pytest.fixture
def graph():
    """Fresh in-memory NoteGraph."""
    g = NoteGraph()
    yield g
    g.close()


@pytest.fixture
def populated_graph():
    """NoteGraph pre-loaded with a small study-notes compendium."""
    g = NoteGraph()
    g.ingest(
        "dotnet-cli",
        "---\ncreated: 2024-03-01\ntopic_type: #tooling\nstatus: #done\n"
        "source_link: https://learn.microsoft.com/dotnet/core/tools\n---\n"
        "The dotnet CLI builds projects for the [[CLR]].\n"
        "See also [[value-vs-reference]].",
    )
    g.ingest(
        "CLR",
        "---\ncreated: 2024-03-02\ntopic_type: #fundamental\nstatus: #seed\n---\n"
        "The CLR runs managed code and owns [[garbage-collection]].",
    )
    g.ingest(
        "garbage-collection",
        "---\ntopic_type: #fundamental\nstatus: #growing\n---\n"
        "Generational GC inside the [[CLR]]. Related: [[finalizers]].",
    )
    g.ingest(
        "value-vs-reference",
        "---\ntopic_type: #fundamental\nstatus: #seed\n---\n"
        "Structs live inline; classes live on the heap.",
    )
    g.ingest("inbox", "Loose thoughts, nothing linked yet.")
    yield g
    g.close()
