"""notegraph CLI: query a linked note compendium.

Commands:
    notegraph load DIR          ingest a markdown vault into the database
    notegraph show ID           print a note in front-matter form
    notegraph links ID          outbound links (stubs marked)
    notegraph backlinks ID      notes linking to ID
    notegraph neighbors ID      links in and out
    notegraph filter TAG        notes carrying TAG
    notegraph search TEXT       case-insensitive substring search
    notegraph tags              every tag with its notes
    notegraph stubs             link targets with no note yet
    notegraph export DIR        write every note back to markdown
    notegraph exec LINE         run one shell line
    notegraph shell             run shell lines read from stdin
"""

from __future__ import annotations

import logging

import click
import structlog

from .config import ConfigError, GraphConfig, load_config
from .constraints import ValidationError
from .core import NotFound
from .graph import NoteGraph
from .shell import GraphShell
from .vault import export_vault, load_vault


def configure_logging(log_level: str) -> None:
    """Configure structlog to drop events below *log_level*."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper()))
    )


def _graph(ctx: click.Context) -> NoteGraph:
    return ctx.obj["graph"]


def _print_ids(ids) -> None:
    for note_id in sorted(ids):
        click.echo(note_id)


class _GraphGroup(click.Group):
    """Turns graph errors into clean CLI failures."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (NotFound, ValidationError, ConfigError, NotADirectoryError) as exc:
            raise click.ClickException(str(exc)) from exc


@click.group(cls=_GraphGroup)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to notegraph.toml.")
@click.option("--db", "db_path", default=None, help="SQLite database path.")
@click.option("--vault", default=None, type=click.Path(file_okay=False),
              help="Markdown directory loaded before the command runs.")
@click.option("--log-level", default=None,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def main(ctx: click.Context, config_path: str | None, db_path: str | None,
         vault: str | None, log_level: str | None) -> None:
    """Linked note compendium: backlinks, tags and search over markdown notes."""
    config: GraphConfig = load_config(config_path)
    if db_path is not None:
        config.db_path = db_path
    if vault is not None:
        config.vault = vault
    if log_level is not None:
        config.log_level = log_level.upper()
    configure_logging(config.log_level)

    graph = NoteGraph.from_config(config)
    ctx.call_on_close(graph.close)
    if config.vault:
        load_vault(graph, config.vault)
    ctx.obj = {"graph": graph, "config": config}


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def load(ctx: click.Context, directory: str) -> None:
    """Ingest every *.md file under DIRECTORY."""
    loaded = load_vault(_graph(ctx), directory)
    click.echo(f"loaded {len(loaded)} note(s)")


@main.command()
@click.argument("note_id")
@click.option("-d", "--depth", default=0, show_default=True, help="Levels of linked notes to include.")
@click.pass_context
def show(ctx: click.Context, note_id: str, depth: int) -> None:
    """Print a note."""
    click.echo(_graph(ctx).read(note_id, depth=depth))


@main.command()
@click.argument("note_id")
@click.pass_context
def links(ctx: click.Context, note_id: str) -> None:
    """Outbound links of NOTE_ID."""
    graph = _graph(ctx)
    for target in sorted(graph.outbound(note_id)):
        click.echo(target if graph.exists(target) else f"{target} (stub)")


@main.command()
@click.argument("note_id")
@click.pass_context
def backlinks(ctx: click.Context, note_id: str) -> None:
    """Notes linking to NOTE_ID."""
    _print_ids(_graph(ctx).backlinks(note_id))


@main.command()
@click.argument("note_id")
@click.pass_context
def neighbors(ctx: click.Context, note_id: str) -> None:
    """Links in and out of NOTE_ID."""
    _print_ids(_graph(ctx).neighbors(note_id))


@main.command("filter")
@click.argument("tag")
@click.pass_context
def filter_cmd(ctx: click.Context, tag: str) -> None:
    """Notes carrying TAG (a leading # is optional)."""
    _print_ids(_graph(ctx).filter(tag))


@main.command()
@click.argument("text", default="")
@click.pass_context
def search(ctx: click.Context, text: str) -> None:
    """Notes whose body or metadata contains TEXT."""
    for note in _graph(ctx).search(text):
        click.echo(note.id)


@main.command()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """Every tag with its notes."""
    for tag, ids in sorted(_graph(ctx).tags().items()):
        click.echo(f"{tag}: {', '.join(sorted(ids))}")


@main.command()
@click.pass_context
def stubs(ctx: click.Context) -> None:
    """Link targets that have no note yet."""
    for target, sources in sorted(_graph(ctx).stubs().items()):
        click.echo(f"{target} <- {', '.join(sorted(sources))}")


@main.command()
@click.argument("directory", type=click.Path(file_okay=False))
@click.pass_context
def export(ctx: click.Context, directory: str) -> None:
    """Write every note to DIRECTORY as markdown."""
    written = export_vault(_graph(ctx), directory)
    click.echo(f"exported {len(written)} note(s)")


@main.command("exec")
@click.argument("line")
@click.pass_context
def exec_cmd(ctx: click.Context, line: str) -> None:
    """Run one shell LINE, e.g. 'filter seed | grep clr'."""
    output, status = GraphShell(_graph(ctx)).execute_with_status(line)
    if output:
        click.echo(output)
    ctx.exit(status)


@main.command()
@click.pass_context
def shell(ctx: click.Context) -> None:
    """Run shell lines from stdin until EOF; exits non-zero if any failed."""
    sh = GraphShell(_graph(ctx))
    failed = False
    for line in click.get_text_stream("stdin"):
        output, status = sh.execute_with_status(line.strip())
        if output:
            click.echo(output)
        failed = failed or status != 0
    ctx.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
