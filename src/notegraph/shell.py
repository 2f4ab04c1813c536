"""Shell command adapter for NoteGraph.

Keeps command-line / REPL behaviour out of the graph itself.  Every command
has the signature ``(args, stdin, graph) -> str``.
"""

from __future__ import annotations

import re
import shlex
from typing import Any


def _one(args: list[str], usage: str) -> str:
    if not args:
        raise ValueError(usage)
    return args[0]


def _lines(items) -> str:
    return "\n".join(sorted(items))


def _cmd_ls(args: list[str], _stdin: str, graph: Any) -> str:
    if args:
        return _lines(graph.filter(args[0]))
    return "\n".join(graph.ids())


def _cmd_cat(args: list[str], stdin: str, graph: Any) -> str:
    if not args:
        return stdin
    return "\n".join(graph.get(a).text() for a in args)


def _cmd_write(args: list[str], stdin: str, graph: Any) -> str:
    note_id = _one(args, "write requires an id")
    content = " ".join(args[1:]) if len(args) > 1 else stdin
    graph.ingest(note_id, content)
    return ""


def _cmd_rm(args: list[str], _stdin: str, graph: Any) -> str:
    for note_id in args or [_one(args, "rm requires an id")]:
        graph.delete(note_id)
    return ""


def _cmd_meta(args: list[str], _stdin: str, graph: Any) -> str:
    note = graph.get(_one(args, "meta requires an id"))
    return "\n".join(f"{k}: {v}" for k, v in note.metadata.items())


def _cmd_body(args: list[str], _stdin: str, graph: Any) -> str:
    return graph.get(_one(args, "body requires an id")).body


def _cmd_links(args: list[str], _stdin: str, graph: Any) -> str:
    note_id = _one(args, "links requires an id")
    out_lines = []
    for target in sorted(graph.outbound(note_id)):
        if graph.exists(target):
            out_lines.append(f"[[{target}]]")
        else:
            out_lines.append(f"[[{target}]] (stub)")
    return "\n".join(out_lines)


def _cmd_backlinks(args: list[str], _stdin: str, graph: Any) -> str:
    return _lines(graph.backlinks(_one(args, "backlinks requires an id")))


def _cmd_neighbors(args: list[str], _stdin: str, graph: Any) -> str:
    return _lines(graph.neighbors(_one(args, "neighbors requires an id")))


def _cmd_tags(args: list[str], _stdin: str, graph: Any) -> str:
    if args:
        return _lines(graph.tags(args[0]))
    return "\n".join(
        f"{tag}: {', '.join(sorted(ids))}" for tag, ids in sorted(graph.tags().items())
    )


def _cmd_filter(args: list[str], _stdin: str, graph: Any) -> str:
    if not args:
        raise ValueError("filter requires a tag")
    selected = graph.filter(args[0])
    for tag in args[1:]:
        selected &= graph.filter(tag)
    return _lines(selected)


def _cmd_search(args: list[str], _stdin: str, graph: Any) -> str:
    return "\n".join(note.id for note in graph.search(" ".join(args)))


def _cmd_grep(args: list[str], stdin: str, graph: Any) -> str:
    ignore_case = False
    invert = False
    count = False
    line_mode = False
    pattern: str | None = None

    for arg in args:
        if pattern is None and arg.startswith("-") and arg != "-":
            for flag in arg[1:]:
                if flag == "i":
                    ignore_case = True
                elif flag == "v":
                    invert = True
                elif flag == "c":
                    count = True
                elif flag == "n":
                    line_mode = True
                else:
                    raise ValueError(f"unknown grep flag: -{flag}")
            continue
        if pattern is None:
            pattern = arg

    if pattern is None:
        raise ValueError("grep requires a pattern")
    regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)

    if stdin:
        matched = [line for line in stdin.splitlines() if bool(regex.search(line)) != invert]
        return str(len(matched)) if count else "\n".join(matched)

    results: list[str] = []
    for note in graph.notes():
        if line_mode:
            for lineno, line in enumerate(note.body.splitlines(), 1):
                if bool(regex.search(line)) != invert:
                    results.append(f"{note.id}:{lineno}:{line}")
            continue
        haystack = "\n".join([note.id, note.body, *note.metadata.values()])
        if bool(regex.search(haystack)) != invert:
            results.append(note.id)
    return str(len(results)) if count else "\n".join(results)


def _cmd_stubs(_args: list[str], _stdin: str, graph: Any) -> str:
    return "\n".join(
        f"{target} <- {', '.join(sorted(sources))}"
        for target, sources in sorted(graph.stubs().items())
    )


def _cmd_orphans(_args: list[str], _stdin: str, graph: Any) -> str:
    return "\n".join(graph.orphans())


def _cmd_read(args: list[str], stdin: str, graph: Any) -> str:
    depth = 0
    note_id: str | None = None

    i = 0
    while i < len(args):
        if args[i] == "-d" and i + 1 < len(args):
            depth = int(args[i + 1])
            i += 2
            continue
        if note_id is None:
            note_id = args[i]
        i += 1

    if note_id is None:
        if stdin:
            return stdin
        raise ValueError("read requires an id")
    return graph.read(note_id, depth=depth)


def _cmd_tree(_args: list[str], _stdin: str, graph: Any) -> str:
    return graph.tree()


def _cmd_info(args: list[str], _stdin: str, graph: Any) -> str:
    note = graph.get(_one(args, "info requires an id"))
    info = {
        "id": note.id,
        "tags": ", ".join(sorted(graph.tags(note.id))),
        "links": len(graph.outbound(note.id)),
        "backlinks": len(graph.inbound(note.id)),
        "body_length": len(note.body),
    }
    return "\n".join(f"{key}: {value}" for key, value in info.items())


def _cmd_echo(args: list[str], _stdin: str, _graph: Any) -> str:
    return " ".join(args)


def _cmd_help(_args: list[str], _stdin: str, _graph: Any) -> str:
    return """Available commands:
  ls [tag]              List note ids (optionally only those with tag)
  cat <id>...           Show notes in front-matter form
  write <id> [text]     Ingest text (or stdin) as a note
  rm <id>...            Delete notes
  meta <id>             Show metadata key-value pairs
  body <id>             Show body without front-matter
  links <id>            Show outgoing [[links]], marking stubs
  backlinks <id>        Show notes linking TO this note
  neighbors <id>        Show links in and out
  tags [id]             Show tags of a note, or every tag
  filter <tag>...       Notes carrying all given tags
  search <text>         Case-insensitive substring search
  grep <pattern> [-i] [-v] [-c] [-n]
  stubs                 Link targets with no note yet
  orphans               Notes with no links in or out
  read <id> [-d depth]  Read a note with linked notes
  tree                  Notes grouped by topic_type
  info <id>             Summary of a note
  echo <text>           Print text
  help                  Show this help

Command chaining:
  cmd1 | cmd2           Pipe output
  cmd1 ; cmd2           Sequential (continue on failure)
  cmd1 && cmd2          Sequential (stop on failure)
  cmd1 || cmd2          Run cmd2 only if cmd1 fails"""


GRAPH_COMMANDS: dict[str, Any] = {
    "ls": _cmd_ls,
    "cat": _cmd_cat,
    "write": _cmd_write,
    "rm": _cmd_rm,
    "meta": _cmd_meta,
    "body": _cmd_body,
    "links": _cmd_links,
    "backlinks": _cmd_backlinks,
    "neighbors": _cmd_neighbors,
    "tags": _cmd_tags,
    "filter": _cmd_filter,
    "search": _cmd_search,
    "grep": _cmd_grep,
    "stubs": _cmd_stubs,
    "orphans": _cmd_orphans,
    "read": _cmd_read,
    "tree": _cmd_tree,
    "info": _cmd_info,
    "echo": _cmd_echo,
    "help": _cmd_help,
}


_SEPARATORS = {";", "&&", "||"}

Clause = tuple[str | None, list[list[str]]]


class GraphShell:
    """REPL-friendly command interface over a NoteGraph.

    A line is a sequence of clauses joined by ``;``, ``&&`` or ``||``; each
    clause is a pipeline of commands joined by ``|``.  The exit status of a
    line is that of the last clause that ran.
    """

    def __init__(self, graph: Any, commands: dict[str, Any] | None = None) -> None:
        self.graph = graph
        self.commands = commands or GRAPH_COMMANDS

    def run(self, command: str, args: list[str] | None = None, stdin: str = "") -> str:
        if command not in self.commands:
            raise ValueError(f"unknown command: {command}")
        return self.commands[command](args or [], stdin, self.graph)

    def execute(self, line: str, stdin: str = "") -> str:
        return self.execute_with_status(line, stdin)[0]

    def execute_with_status(self, line: str, stdin: str = "") -> tuple[str, int]:
        try:
            clauses = self._parse_line(line)
        except ValueError as exc:
            return str(exc), 2

        output, ok = "", True
        for separator, pipeline in clauses:
            if (separator == "&&" and not ok) or (separator == "||" and ok):
                continue
            output, ok = self._run_pipeline(pipeline, stdin)
            stdin = ""
        return output, 0 if ok else 1

    def _run_pipeline(self, pipeline: list[list[str]], stdin: str) -> tuple[str, bool]:
        stream = stdin
        for name, *args in pipeline:
            try:
                stream = self.run(name, args, stream)
            except Exception as exc:
                return str(exc), False
        return stream, True

    @staticmethod
    def _tokenize(line: str) -> list[str]:
        lexer = shlex.shlex(line, posix=True, punctuation_chars="|&;")
        lexer.whitespace_split = True
        return list(lexer)

    def _parse_line(self, line: str) -> list[Clause]:
        """Split *line* into ``(separator, pipeline)`` clauses.

        The separator is the operator in front of the clause (``None`` for
        the first).  Raises ValueError on an operator shlex cannot pair up,
        such as a lone ``&``.
        """
        clauses: list[Clause] = []
        separator: str | None = None
        pipeline: list[list[str]] = [[]]

        for tok in self._tokenize(line):
            if tok == "|":
                pipeline.append([])
            elif tok in _SEPARATORS:
                clauses.append((separator, pipeline))
                separator, pipeline = tok, [[]]
            elif tok[0] in "|&;":
                raise ValueError(f"syntax error near {tok!r}")
            else:
                pipeline[-1].append(tok)
        clauses.append((separator, pipeline))

        return [(sep, [argv for argv in pipe if argv]) for sep, pipe in clauses if any(pipe)]
