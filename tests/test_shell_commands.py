"""Tests for graph shell commands and command chaining."""

import pytest

from notegraph.core import NotFound
from notegraph.shell import (
    GRAPH_COMMANDS,
    GraphShell,
    _cmd_backlinks,
    _cmd_body,
    _cmd_cat,
    _cmd_filter,
    _cmd_grep,
    _cmd_help,
    _cmd_info,
    _cmd_links,
    _cmd_ls,
    _cmd_meta,
    _cmd_neighbors,
    _cmd_orphans,
    _cmd_read,
    _cmd_rm,
    _cmd_search,
    _cmd_stubs,
    _cmd_tags,
    _cmd_write,
)


@pytest.fixture
def shell(populated_graph):
    return GraphShell(populated_graph)


class TestNoteCommands:
    def test_ls(self, populated_graph):
        out = _cmd_ls([], "", populated_graph)
        assert out.splitlines() == populated_graph.ids()

    def test_ls_by_tag(self, populated_graph):
        assert _cmd_ls(["seed"], "", populated_graph) == "CLR\nvalue-vs-reference"

    def test_cat(self, populated_graph):
        out = _cmd_cat(["CLR"], "", populated_graph)
        assert out.startswith("---\ncreated: 2024-03-02\n")
        assert out.endswith("owns [[garbage-collection]].")

    def test_cat_stdin_passthrough(self, populated_graph):
        assert _cmd_cat([], "piped", populated_graph) == "piped"

    def test_cat_missing_raises(self, populated_graph):
        with pytest.raises(NotFound):
            _cmd_cat(["ghost"], "", populated_graph)

    def test_write_args(self, graph):
        _cmd_write(["a", "links", "[[b]]"], "", graph)
        assert graph.get("a").body == "links [[b]]"
        assert graph.inbound("b") == {"a"}

    def test_write_stdin(self, graph):
        _cmd_write(["a"], "---\nstatus: #seed\n---\nbody", graph)
        assert graph.filter("seed") == {"a"}

    def test_write_requires_id(self, graph):
        with pytest.raises(ValueError):
            _cmd_write([], "", graph)

    def test_rm_many(self, populated_graph):
        _cmd_rm(["inbox", "CLR"], "", populated_graph)
        assert "inbox" not in populated_graph
        assert "CLR" not in populated_graph

    def test_rm_requires_id(self, graph):
        with pytest.raises(ValueError):
            _cmd_rm([], "", graph)

    def test_meta(self, populated_graph):
        out = _cmd_meta(["CLR"], "", populated_graph)
        assert "topic_type: #fundamental" in out.splitlines()

    def test_body(self, populated_graph):
        assert _cmd_body(["inbox"], "", populated_graph) == "Loose thoughts, nothing linked yet."

    def test_info(self, populated_graph):
        out = _cmd_info(["CLR"], "", populated_graph)
        assert "tags: fundamental, seed" in out
        assert "links: 1" in out
        assert "backlinks: 2" in out


class TestGraphCommands:
    def test_links_marks_stubs(self, populated_graph):
        out = _cmd_links(["garbage-collection"], "", populated_graph)
        assert out == "[[CLR]]\n[[finalizers]] (stub)"

    def test_backlinks(self, populated_graph):
        assert _cmd_backlinks(["CLR"], "", populated_graph) == "dotnet-cli\ngarbage-collection"

    def test_neighbors(self, populated_graph):
        assert _cmd_neighbors(["dotnet-cli"], "", populated_graph) == "CLR\nvalue-vs-reference"

    def test_tags_all(self, populated_graph):
        out = _cmd_tags([], "", populated_graph)
        assert "seed: CLR, value-vs-reference" in out.splitlines()

    def test_tags_for_note(self, populated_graph):
        assert _cmd_tags(["CLR"], "", populated_graph) == "fundamental\nseed"

    def test_filter_intersection(self, populated_graph):
        assert _cmd_filter(["fundamental", "#seed"], "", populated_graph) == "CLR\nvalue-vs-reference"
        assert _cmd_filter(["tooling", "seed"], "", populated_graph) == ""

    def test_filter_requires_tag(self, populated_graph):
        with pytest.raises(ValueError):
            _cmd_filter([], "", populated_graph)

    def test_search(self, populated_graph):
        assert _cmd_search(["GENERATIONAL"], "", populated_graph) == "garbage-collection"

    def test_search_multiword(self, populated_graph):
        assert _cmd_search(["managed", "code"], "", populated_graph) == "CLR"

    def test_stubs(self, populated_graph):
        assert _cmd_stubs([], "", populated_graph) == "finalizers <- garbage-collection"

    def test_orphans(self, populated_graph):
        assert _cmd_orphans([], "", populated_graph) == "inbox"

    def test_read_depth(self, populated_graph):
        out = _cmd_read(["dotnet-cli", "-d", "1"], "", populated_graph)
        assert "--- [[CLR]] ---" in out

    def test_help_lists_every_command(self, populated_graph):
        text = _cmd_help([], "", populated_graph)
        for name in GRAPH_COMMANDS:
            assert name in text


class TestGrep:
    def test_regex_over_notes(self, populated_graph):
        assert _cmd_grep(["heap|inline"], "", populated_graph) == "value-vs-reference"

    def test_ignore_case(self, populated_graph):
        assert _cmd_grep(["GENERATIONAL"], "", populated_graph) == ""
        assert _cmd_grep(["-i", "GENERATIONAL"], "", populated_graph) == "garbage-collection"

    def test_count(self, populated_graph):
        assert _cmd_grep(["-c", "fundamental"], "", populated_graph) == "3"

    def test_line_mode(self, populated_graph):
        out = _cmd_grep(["-n", "See also"], "", populated_graph)
        assert out == "dotnet-cli:2:See also [[value-vs-reference]]."

    def test_invert_stdin(self, populated_graph):
        assert _cmd_grep(["-v", "b"], "a\nb\nc", populated_graph) == "a\nc"

    def test_unknown_flag(self, populated_graph):
        with pytest.raises(ValueError):
            _cmd_grep(["-z", "x"], "", populated_graph)


class TestGraphShell:
    def test_pipe(self, shell):
        assert shell.execute("ls seed | grep -i clr") == "CLR"

    def test_and_stops_on_failure(self, shell):
        output, status = shell.execute_with_status("cat ghost && echo after")
        assert status == 1
        assert "ghost" in output

    def test_or_recovers(self, shell):
        output, status = shell.execute_with_status("cat ghost || echo fallback")
        assert (output, status) == ("fallback", 0)

    def test_semicolon_continues(self, shell):
        assert shell.execute("rm inbox ; ls") == "CLR\ndotnet-cli\ngarbage-collection\nvalue-vs-reference"

    def test_write_then_query(self, shell):
        shell.execute("write finalizers 'Runs before [[garbage-collection]] frees memory.'")
        assert shell.execute("stubs") == ""
        assert shell.execute("backlinks garbage-collection") == "CLR\nfinalizers"

    def test_unknown_command(self, shell):
        output, status = shell.execute_with_status("explode")
        assert status == 1
        assert "unknown command" in output

    def test_empty_line(self, shell):
        assert shell.execute_with_status("   ") == ("", 0)

    def test_lone_ampersand_is_syntax_error(self, shell):
        output, status = shell.execute_with_status("ls & ls")
        assert status == 2
        assert "syntax error" in output

    def test_run_direct(self, shell):
        assert shell.run("body", ["inbox"]) == "Loose thoughts, nothing linked yet."
