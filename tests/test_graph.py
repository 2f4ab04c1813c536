"""Tests for the NoteGraph façade: links, backlinks, tags, search, reading."""

import pytest

from notegraph.constraints import ValidationError
from notegraph.core import NotFound
from notegraph.graph import NoteGraph
from notegraph.index import LinkIndex, TagIndex


def _assert_indices_match_rebuild(graph):
    links, tags = LinkIndex(), TagIndex(graph._tags.tag_keys)
    links.rebuild(graph.store)
    tags.rebuild(graph.store)
    assert graph._links.edges() == links.edges()
    assert graph.tags() == tags.tags()


class TestScenarios:
    def test_stub_link_survives_target_deletion(self, graph):
        graph.ingest("A", "Points at [[B]].")
        graph.ingest("B", "Points nowhere.")
        assert graph.outbound("A") == {"B"}
        assert graph.inbound("B") == {"A"}
        assert graph.inbound("A") == set()

        graph.delete("B")
        assert graph.outbound("A") == {"B"}
        with pytest.raises(NotFound):
            graph.get("B")

    def test_status_change_moves_note_between_tags(self, graph):
        graph.ingest("gc", "---\ntopic_type: #fundamental\nstatus: #seed\n---\nGC notes.")
        assert "gc" in graph.filter("seed")
        assert "gc" in graph.filter("fundamental")

        graph.ingest("gc", "---\ntopic_type: #fundamental\nstatus: #done\n---\nGC notes.")
        assert "gc" not in graph.filter("seed")
        assert "gc" in graph.filter("done")
        assert "gc" in graph.filter("fundamental")


class TestGraphProperties:
    def test_every_link_has_backlink(self, populated_graph):
        for note in populated_graph.notes():
            for target in note.links:
                assert note.id in populated_graph.inbound(target)

    def test_delete_purges_tags_and_backlinks(self, populated_graph):
        populated_graph.delete("CLR")
        for ids in populated_graph.tags().values():
            assert "CLR" not in ids
        for note_id in populated_graph.ids():
            assert "CLR" not in populated_graph.inbound(note_id)
        assert "CLR" not in populated_graph.inbound("garbage-collection")

    def test_reingest_replaces_edges(self, graph):
        graph.ingest("a", "[[x]] [[y]]")
        graph.ingest("a", "[[z]]")
        assert graph.outbound("a") == {"z"}
        assert graph.inbound("x") == set()
        assert graph.inbound("y") == set()

    def test_incremental_equals_rebuild(self, populated_graph):
        populated_graph.ingest("CLR", "---\nstatus: #done\n---\nNow links [[inbox]].")
        populated_graph.delete("value-vs-reference")
        populated_graph.put("new", "", {"tags": "gc, #runtime"}, ["CLR", "missing"])
        _assert_indices_match_rebuild(populated_graph)

    def test_reopen_rebuilds_from_store(self, tmp_path):
        db = str(tmp_path / "notes.db")
        with NoteGraph(db) as g:
            g.ingest("a", "---\nstatus: #seed\n---\n[[b]]")
        with NoteGraph(db) as g:
            assert g.inbound("b") == {"a"}
            assert g.filter("seed") == {"a"}


class TestLinks:
    def test_outbound_missing_note_is_empty(self, graph):
        assert graph.outbound("ghost") == set()
        assert graph.inbound("ghost") == set()

    def test_duplicate_links_one_edge(self, graph):
        graph.ingest("a", "[[b]] and again [[b]]")
        assert graph.outbound("a") == {"b"}
        assert graph.get("a").links == ("b", "b")
        assert graph.edges() == {("a", "b")}

    def test_self_link(self, graph):
        graph.ingest("a", "I am [[a]].")
        assert graph.outbound("a") == {"a"}
        assert graph.inbound("a") == {"a"}
        assert graph.neighbors("a") == {"a"}

    def test_backlinks_requires_note(self, graph):
        graph.ingest("a", "[[stub]]")
        with pytest.raises(NotFound):
            graph.backlinks("stub")
        assert graph.inbound("stub") == {"a"}

    def test_backlinks(self, populated_graph):
        assert populated_graph.backlinks("CLR") == {"dotnet-cli", "garbage-collection"}

    def test_neighbors(self, populated_graph):
        assert populated_graph.neighbors("CLR") == {"dotnet-cli", "garbage-collection"}
        assert populated_graph.neighbors("dotnet-cli") == {"CLR", "value-vs-reference"}

    def test_neighbors_empty_is_not_error(self, populated_graph):
        assert populated_graph.neighbors("inbox") == set()

    def test_neighbors_missing_raises(self, graph):
        with pytest.raises(NotFound):
            graph.neighbors("ghost")

    def test_stubs(self, populated_graph):
        assert populated_graph.stubs() == {"finalizers": {"garbage-collection"}}

    def test_stub_resolves_when_note_written(self, populated_graph):
        populated_graph.ingest("finalizers", "Run before collection.")
        assert populated_graph.stubs() == {}
        assert populated_graph.backlinks("finalizers") == {"garbage-collection"}

    def test_orphans(self, populated_graph):
        assert populated_graph.orphans() == ["inbox"]


class TestTags:
    def test_filter(self, populated_graph):
        assert populated_graph.filter("fundamental") == {"CLR", "garbage-collection", "value-vs-reference"}
        assert populated_graph.filter("#seed") == {"CLR", "value-vs-reference"}

    def test_filter_unknown_empty(self, populated_graph):
        assert populated_graph.filter("advanced") == set()

    def test_tags_of_note(self, populated_graph):
        assert populated_graph.tags("CLR") == {"fundamental", "seed"}
        assert populated_graph.tags("inbox") == set()

    def test_tags_of_missing_note_raises(self, graph):
        with pytest.raises(NotFound):
            graph.tags("ghost")

    def test_tags_map(self, populated_graph):
        tag_map = populated_graph.tags()
        assert tag_map["tooling"] == {"dotnet-cli"}
        assert tag_map["growing"] == {"garbage-collection"}

    def test_custom_tag_keys(self):
        with NoteGraph(tag_keys=("area",)) as g:
            g.ingest("a", "---\narea: #runtime\nstatus: #seed\n---\n")
            assert g.filter("runtime") == {"a"}
            assert g.filter("seed") == set()

    def test_list_valued_tags(self, graph):
        graph.ingest("a", "---\ntags: [dotnet, \"#gc\"]\n---\n")
        assert graph.tags("a") == {"dotnet", "gc"}


class TestSearch:
    def test_empty_matches_all(self, populated_graph):
        assert [n.id for n in populated_graph.search("")] == populated_graph.ids()

    def test_case_insensitive(self, populated_graph):
        upper = [n.id for n in populated_graph.search("CLR")]
        lower = [n.id for n in populated_graph.search("clr")]
        assert upper == lower
        assert set(upper) == {"CLR", "dotnet-cli", "garbage-collection"}

    def test_matches_metadata_values(self, populated_graph):
        assert [n.id for n in populated_graph.search("learn.microsoft")] == ["dotnet-cli"]

    def test_no_match(self, populated_graph):
        assert list(populated_graph.search("kubernetes")) == []

    def test_lazy_and_restartable(self, populated_graph):
        results = populated_graph.search("heap")
        assert iter(results) is results
        assert [n.id for n in results] == ["value-vs-reference"]
        assert [n.id for n in populated_graph.search("heap")] == ["value-vs-reference"]

    def test_snapshot_ignores_later_writes(self, graph):
        graph.ingest("a", "match")
        results = graph.search("match")
        first = next(results)
        graph.ingest("b", "match too")
        assert first.id == "a"
        assert list(results) == []

    def test_empty_store(self, graph):
        assert list(graph.search("")) == []

    def test_unicode_casefold(self, graph):
        graph.ingest("de", "Die Straße")
        assert [n.id for n in graph.search("STRASSE")] == ["de"]


class TestNotes:
    def test_get_missing(self, graph):
        with pytest.raises(NotFound):
            graph.get("ghost")

    def test_delete_missing_is_noop(self, graph):
        graph.delete("ghost")
        assert len(graph) == 0

    def test_put_direct(self, graph):
        note = graph.put("a", "body", {"status": "#seed"}, ["b"])
        assert graph.get("a") == note
        assert graph.filter("seed") == {"a"}
        assert graph.inbound("b") == {"a"}

    def test_contains_and_len(self, populated_graph):
        assert "CLR" in populated_graph
        assert "ghost" not in populated_graph
        assert len(populated_graph) == 5

    def test_ingest_metadata(self, populated_graph):
        note = populated_graph.get("dotnet-cli")
        assert note.metadata["created"] == "2024-03-01"
        assert note.metadata["status"] == "#done"
        assert note.links == ("CLR", "value-vs-reference")

    def test_put_string_links_rejected_graph_unchanged(self, populated_graph):
        with pytest.raises(ValidationError):
            populated_graph.put("inbox", "", None, "CLR")
        assert populated_graph.outbound("inbox") == set()
        assert populated_graph.inbound("C") == set()
        assert populated_graph.get("inbox").body == "Loose thoughts, nothing linked yet."

    def test_notes_are_hashable(self, populated_graph):
        notes = set(populated_graph.notes())
        assert len(notes) == 5
        assert populated_graph.get("CLR") in notes


class TestRead:
    def test_depth_zero_is_note_text(self, populated_graph):
        assert populated_graph.read("inbox") == "Loose thoughts, nothing linked yet."

    def test_depth_one_includes_existing_targets(self, populated_graph):
        text = populated_graph.read("dotnet-cli", depth=1)
        assert "--- [[CLR]] ---" in text
        assert "--- [[value-vs-reference]] ---" in text
        assert "--- [[garbage-collection]] ---" not in text

    def test_depth_two_follows_further(self, populated_graph):
        text = populated_graph.read("dotnet-cli", depth=2)
        assert "--- [[garbage-collection]] ---" in text

    def test_cycles_and_stubs_skipped(self, populated_graph):
        text = populated_graph.read("CLR", depth=5)
        assert text.count("--- [[garbage-collection]] ---") == 1
        assert "[[finalizers]] ---" not in text

    def test_linked_notes_sorted(self, graph):
        graph.ingest("hub", "Links to [[zulu]] and [[alpha]].")
        graph.ingest("zulu", "Z note.")
        graph.ingest("alpha", "A note.")
        text = graph.read("hub", depth=1)
        assert text.index("--- [[alpha]] ---") < text.index("--- [[zulu]] ---")

    def test_missing_raises(self, graph):
        with pytest.raises(NotFound):
            graph.read("ghost", depth=1)


class TestTree:
    def test_grouped_by_topic(self, populated_graph):
        lines = populated_graph.tree().splitlines()
        assert lines[0] == "#fundamental"
        assert "├── CLR [#seed]" in lines
        assert "#tooling" in lines
        assert lines[-2] == "(untyped)"
        assert lines[-1] == "└── inbox"

    def test_empty(self, graph):
        assert graph.tree() == ""
