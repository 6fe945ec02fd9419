#!/usr/bin/env python3
"""
ng: CLI for notegraph

Usage:
    ng links notes/alpha.md          # Outgoing links
    ng backlinks notes/alpha.md      # Incoming links
    ng path alpha.md gamma.md        # Shortest link paths
    ng bases query projects.base     # Run a base view
    ng conversations search          # Find AI chat exports
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as NOTEGRAPH_VERSION
from .config import (
    DEFAULT_MAX_NODES,
    DEFAULT_MAX_PATH_DEPTH,
    DEFAULT_MAX_RESULTS,
    DEFAULT_NEIGHBOR_DEPTH,
)


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


# ─────────────────────────────────────────────────────────────────────────────
# Output Formatting
# ─────────────────────────────────────────────────────────────────────────────


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}
    widths = {col: len(col) for col in columns}

    def cell(row: dict, col: str) -> str:
        val = row.get(col, "")
        val = "" if val is None else ", ".join(map(str, val)) if isinstance(val, list) else str(val)
        limit = max_widths.get(col, 50)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(cell(row, col)))

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)

    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(cell(row, col).ljust(widths[col]) for col in columns))

    return "\n".join(lines)


def _to_data(result: Any) -> Any:
    if isinstance(result, list):
        return [_to_data(item) for item in result]
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json", by_alias=True)
    return result


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(_to_data(data), indent=2, default=str))
    else:
        click.echo(data)


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error, as JSON when --json-errors is enabled, and exit."""
    from .errors import ErrorCode, NotegraphError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, NotegraphError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
    else:
        if json_errors:
            click.echo(format_error_json(ErrorCode.INTERNAL, str(error)), err=True)
        else:
            click.echo(f"Error: {error}", err=True)

    sys.exit(exit_code)


def _run(ctx: click.Context, coro):
    """Run a core coroutine, reporting notegraph errors instead of raising them."""
    from .errors import NotegraphError

    try:
        return run_async(coro)
    except NotegraphError as e:
        _handle_error(ctx, e)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    # MissingParameter is a BadParameter subclass
    if isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    return "CLI_ERROR"


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Click group that formats usage errors as JSON when --json-errors is set.

    Also suggests the closest command name for typos.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        from .errors import format_error_json

        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        # Accept --json-errors anywhere on the command line
        argv = ["--json-errors"] + [a for a in argv if a != "--json-errors"]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            code = get_error_code_for_exception(e)
            click.echo(format_error_json(code, e.format_message()), err=True)
            raise SystemExit(1)


vault_option = click.option("--vault", "-V", default=None, help="Vault name (default: first configured)")
json_option = click.option("--json", "as_json", is_flag=True, help="Output as JSON")


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=NOTEGRAPH_VERSION, prog_name="ng")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool):
    """ng: query the link graph, bases and AI conversations of a markdown vault.

    \b
    Vault selection:
      NOTEGRAPH_VAULT_ROOT=/path/to/vault ng stats
      or a .notegraph.yaml with `vaults: [{name, path}]` in a parent directory

    \b
    Graph:
      ng links note.md               # Outgoing links
      ng backlinks note.md           # Incoming links
      ng neighbors note.md --depth 2 # Nearby notes
      ng path a.md b.md              # Shortest link paths
      ng orphans                     # Unlinked notes
      ng stats                       # Graph statistics
    """
    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors


# ─────────────────────────────────────────────────────────────────────────────
# Graph Commands
# ─────────────────────────────────────────────────────────────────────────────


def _echo_link_list(nodes, empty_message: str) -> None:
    if not nodes:
        click.echo(empty_message)
        return
    rows = [{"path": n.path, "title": n.title} for n in nodes]
    click.echo(format_table(rows, ["path", "title"], {"path": 60}))


@cli.command()
@click.argument("path")
@vault_option
@json_option
@click.pass_context
def links(ctx: click.Context, path: str, vault: str | None, as_json: bool):
    """Show notes that PATH links to."""
    from .core import links as core_links

    result = _run(ctx, core_links(path, vault=vault))
    if as_json:
        output(result, as_json=True)
    else:
        _echo_link_list(result.links, f"No outgoing links from {result.path}")


@cli.command()
@click.argument("path")
@vault_option
@json_option
@click.pass_context
def backlinks(ctx: click.Context, path: str, vault: str | None, as_json: bool):
    """Show notes that link to PATH."""
    from .core import backlinks as core_backlinks

    result = _run(ctx, core_backlinks(path, vault=vault))
    if as_json:
        output(result, as_json=True)
    else:
        _echo_link_list(result.backlinks, f"No backlinks to {result.path}")


@cli.command()
@click.argument("path")
@click.option("--depth", "-d", default=DEFAULT_NEIGHBOR_DEPTH, type=click.IntRange(min=1), help="Max hops")
@click.option(
    "--direction",
    type=click.Choice(["outgoing", "incoming", "both"]),
    default="both",
    help="Which links to follow",
)
@click.option("--max-nodes", "-n", default=DEFAULT_MAX_NODES, type=click.IntRange(min=1), help="Max notes")
@vault_option
@json_option
@click.pass_context
def neighbors(
    ctx: click.Context,
    path: str,
    depth: int,
    direction: str,
    max_nodes: int,
    vault: str | None,
    as_json: bool,
):
    """Show notes within DEPTH links of PATH.

    \b
    Examples:
      ng neighbors projects/alpha.md
      ng neighbors alpha --depth 1 --direction incoming
    """
    from .core import neighbors as core_neighbors

    result = _run(
        ctx,
        core_neighbors(path, vault=vault, depth=depth, direction=direction, max_nodes=max_nodes),
    )
    if as_json:
        output(result, as_json=True)
        return

    if not result.neighbors:
        click.echo(f"No neighbors found for {result.path}")
        return
    rows = [
        {"path": n.path, "title": n.title, "out": n.outgoing_count, "in": n.incoming_count}
        for n in result.neighbors
    ]
    click.echo(format_table(rows, ["path", "title", "out", "in"], {"path": 60}))


@cli.command("path")
@click.argument("source")
@click.argument("target")
@click.option("--max-depth", default=DEFAULT_MAX_PATH_DEPTH, type=click.IntRange(min=1), help="Max hops")
@vault_option
@json_option
@click.pass_context
def path_cmd(
    ctx: click.Context,
    source: str,
    target: str,
    max_depth: int,
    vault: str | None,
    as_json: bool,
):
    """Show the shortest link paths between SOURCE and TARGET."""
    from .core import find_path_between

    result = _run(ctx, find_path_between(source, target, vault=vault, max_depth=max_depth))
    if as_json:
        output(result, as_json=True)
        return

    if not result.paths:
        click.echo(f"No path between {result.source} and {result.target} within {max_depth} hops")
        return
    for steps in result.paths:
        click.echo(" -> ".join(steps.steps))


@cli.command()
@vault_option
@json_option
@click.pass_context
def orphans(ctx: click.Context, vault: str | None, as_json: bool):
    """Show notes with no links in or out."""
    from .core import orphans as core_orphans

    result = _run(ctx, core_orphans(vault=vault))
    if as_json:
        output(result, as_json=True)
        return

    if not result.orphans:
        click.echo("No orphan notes.")
        return
    rows = [{"path": n.path, "title": n.title} for n in result.orphans]
    click.echo(format_table(rows, ["path", "title"], {"path": 60}))


@cli.command()
@vault_option
@json_option
@click.pass_context
def stats(ctx: click.Context, vault: str | None, as_json: bool):
    """Show link graph statistics."""
    from .core import graph_stats

    result = _run(ctx, graph_stats(vault=vault))
    if as_json:
        output(result, as_json=True)
        return

    click.echo(f"Notes:            {result.total_nodes}")
    click.echo(f"Links:            {result.total_edges}")
    click.echo(f"Orphans:          {result.orphan_count}")
    click.echo(f"Unresolved links: {result.unresolved_count}")
    click.echo(f"Avg outgoing:     {result.avg_outgoing}")
    click.echo(f"Avg incoming:     {result.avg_incoming}")
    click.echo(f"Build time:       {result.build_time_ms} ms")
    if result.most_linked:
        click.echo("\nMost linked:")
        for entry in result.most_linked:
            click.echo(f"  {entry.incoming_count:>4}  {entry.path}")
    if result.most_linking:
        click.echo("\nMost linking:")
        for entry in result.most_linking:
            click.echo(f"  {entry.outgoing_count:>4}  {entry.path}")


@cli.command()
@click.argument("path")
@vault_option
@json_option
@click.pass_context
def note(ctx: click.Context, path: str, vault: str | None, as_json: bool):
    """Print a note with its tags and links."""
    from .core import get_note

    result = _run(ctx, get_note(path, vault=vault))
    if as_json:
        output(result, as_json=True)
        return

    click.echo(f"# {result.path}")
    if result.tags:
        click.echo(f"Tags: {', '.join(result.tags)}")
    if result.links:
        click.echo(f"Links: {', '.join(result.links)}")
    for field in result.inline_fields:
        click.echo(f"{field.key}: {field.value}")
    click.echo("")
    click.echo(result.body)


# ─────────────────────────────────────────────────────────────────────────────
# Bases Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def bases():
    """Work with .base files (metadata queries)."""


@bases.command("list")
@vault_option
@json_option
@click.pass_context
def bases_list(ctx: click.Context, vault: str | None, as_json: bool):
    """List .base files in the vault."""
    from .core import list_bases

    result = _run(ctx, list_bases(vault=vault))
    if as_json:
        output(result, as_json=True)
        return

    if not result:
        click.echo("No bases found.")
        return
    rows = [{"path": b.path, "name": b.name, "modified": b.modified} for b in result]
    click.echo(format_table(rows, ["path", "name", "modified"]))


@bases.command("show")
@click.argument("path")
@vault_option
@json_option
@click.pass_context
def bases_show(ctx: click.Context, path: str, vault: str | None, as_json: bool):
    """Show a parsed .base file."""
    from .bases.parser import stringify_base_file
    from .core import read_base

    result = _run(ctx, read_base(path, vault=vault))
    if as_json:
        output(result, as_json=True)
    else:
        click.echo(f"# {result.path} ({result.view_count} views)")
        click.echo(stringify_base_file(result.definition))


@bases.command("create")
@click.argument("path")
@click.option("--filters", "-f", default=None, help='Filter expression, e.g. \'status == "done"\'')
@click.option("--columns", "-c", default=None, help="Comma-separated columns")
@click.option("--folder", default=None, help="Only include notes in this folder")
@vault_option
@json_option
@click.pass_context
def bases_create(
    ctx: click.Context,
    path: str,
    filters: str | None,
    columns: str | None,
    folder: str | None,
    vault: str | None,
    as_json: bool,
):
    """Create a .base file with a default table view."""
    from .core import create_base

    column_list = [c.strip() for c in columns.split(",") if c.strip()] if columns else None
    result = _run(
        ctx,
        create_base(path, vault=vault, filters=filters, columns=column_list, folder=folder),
    )
    if as_json:
        output(result, as_json=True)
    else:
        click.echo(f"Created {result.path}")


@bases.command("query")
@click.argument("path")
@click.option("--view", "view_index", default=0, type=click.IntRange(min=0), help="View index")
@vault_option
@json_option
@click.pass_context
def bases_query(ctx: click.Context, path: str, view_index: int, vault: str | None, as_json: bool):
    """Run a view of a .base file.

    \b
    Examples:
      ng bases query projects.base
      ng bases query projects --view 1 --json
    """
    from .core import query_base

    result = _run(ctx, query_base(path, vault=vault, view_index=view_index))
    if as_json:
        output(result, as_json=True)
        return

    click.echo(f"{result.view.name}: {len(result.documents)} of {result.total}")
    if not result.documents:
        return
    columns = result.view.columns or ["file.name", "file.folder"]
    rows = [{"path": doc.path, **doc.properties} for doc in result.documents]
    click.echo(format_table(rows, columns))


# ─────────────────────────────────────────────────────────────────────────────
# Conversation Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def conversations():
    """Find and analyze AI conversation exports."""


@conversations.command("search")
@click.option("--source", "-s", default=None, help="Assistant name (Claude, ChatGPT, ...)")
@click.option("--query", "-q", default=None, help="Text in title or body")
@click.option("--min-messages", default=None, type=click.IntRange(min=1), help="Minimum messages")
@click.option("--callout", "callout_type", default=None, help="Callout type, e.g. TIP")
@click.option("--from", "date_from", default=None, help="Created on or after (YYYY-MM-DD)")
@click.option("--to", "date_to", default=None, help="Created on or before (YYYY-MM-DD)")
@click.option("--folder", default=None, help="Only search this folder")
@click.option("--limit", "-n", default=DEFAULT_MAX_RESULTS, type=click.IntRange(min=1), help="Max results")
@vault_option
@json_option
@click.pass_context
def conversations_search(
    ctx: click.Context,
    source: str | None,
    query: str | None,
    min_messages: int | None,
    callout_type: str | None,
    date_from: str | None,
    date_to: str | None,
    folder: str | None,
    limit: int,
    vault: str | None,
    as_json: bool,
):
    """Search conversation notes, newest first."""
    from .core import search_conversations

    result = _run(
        ctx,
        search_conversations(
            vault=vault,
            source=source,
            query=query,
            min_messages=min_messages,
            callout_type=callout_type,
            date_from=date_from,
            date_to=date_to,
            folder=folder,
            max_results=limit,
        ),
    )
    if as_json:
        output(result, as_json=True)
        return

    if not result.conversations:
        click.echo("No conversations found.")
        return
    rows = [
        {
            "path": c.path,
            "source": c.source.value if c.source else "",
            "created": c.created or "",
            "messages": c.message_count,
        }
        for c in result.conversations
    ]
    click.echo(format_table(rows, ["path", "source", "created", "messages"], {"path": 60}))


@conversations.command("analyze")
@click.argument("path")
@vault_option
@json_option
@click.pass_context
def conversations_analyze(ctx: click.Context, path: str, vault: str | None, as_json: bool):
    """Break a conversation note into messages."""
    from .core import analyze_conversation

    result = _run(ctx, analyze_conversation(path, vault=vault))
    if as_json:
        output(result, as_json=True)
        return

    if not result.is_conversation:
        click.echo(f"{result.path} does not appear to be an AI conversation export.")
        return

    source = result.source.value if result.source else "unknown"
    click.echo(f"# {result.title} ({source})")
    click.echo(
        f"Messages: {result.message_count} "
        f"(user {result.user_messages}, assistant {result.assistant_messages})"
    )
    click.echo(f"Words: {result.word_count} (avg {result.avg_message_length} per message)")
    if result.callout_types:
        click.echo(f"Callouts: {result.callout_count} ({', '.join(result.callout_types)})")


@conversations.command("stats")
@vault_option
@json_option
@click.pass_context
def conversations_stats(ctx: click.Context, vault: str | None, as_json: bool):
    """Count conversations by source and month."""
    from .core import conversation_stats

    result = _run(ctx, conversation_stats(vault=vault))
    if as_json:
        output(result, as_json=True)
        return

    click.echo(f"Conversations: {result.total_conversations}")
    click.echo(f"Messages:      {result.total_messages} (avg {result.avg_messages_per_conversation})")
    if result.by_source:
        click.echo("\nBy source:")
        for source, count in sorted(result.by_source.items()):
            click.echo(f"  {source}: {count}")
    if result.by_month:
        click.echo("\nBy month:")
        for month, count in sorted(result.by_month.items()):
            click.echo(f"  {month}: {count}")


@conversations.command("create-base")
@click.argument("path")
@click.option("--source", "-s", default=None, help="Only this assistant")
@click.option("--folder", default=None, help="Only this folder")
@vault_option
@json_option
@click.pass_context
def conversations_create_base(
    ctx: click.Context,
    path: str,
    source: str | None,
    folder: str | None,
    vault: str | None,
    as_json: bool,
):
    """Create a .base file indexing conversation notes."""
    from .core import create_conversations_base

    result = _run(ctx, create_conversations_base(path, vault=vault, source=source, folder=folder))
    if as_json:
        output(result, as_json=True)
    else:
        click.echo(f"Created {result.path} ({result.view_count} views)")


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def main():
    """Entry point for ng CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
