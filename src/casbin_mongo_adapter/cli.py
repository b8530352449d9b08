"""
CLI entry point for the Casbin MongoDB adapter.

This module provides a Typer-based command-line interface for operating on
the stored policy without writing Python.

Commands:
    show        List stored rules
    import      Replace stored rules with a Casbin CSV policy file
    export      Write stored rules as a Casbin CSV policy file
    doctor      Check connectivity, collection and indexes

Connection settings come from --config (YAML), then --url/--database/
--collection, with CASBIN_MONGO_URL read from the environment.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from casbin_mongo_adapter import __version__
from casbin_mongo_adapter.codec import decode, encode
from casbin_mongo_adapter.errors import AdapterError
from casbin_mongo_adapter.logging import setup_logging
from casbin_mongo_adapter.schema import (
    RECORD_FIELDS,
    AdapterConfig,
    CasbinRule,
    load_config,
)
from casbin_mongo_adapter.store import MongoSession, redact_url

app = typer.Typer(
    name="casbin-mongo",
    help="Inspect and manage Casbin policy rules stored in MongoDB.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


@dataclass
class CliState:
    """Global options shared by all commands."""

    url: str | None = None
    config_path: Path | None = None
    database: str | None = None
    collection: str | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]casbin-mongo[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    url: Annotated[
        Optional[str],
        typer.Option(
            "--url",
            "-u",
            envvar="CASBIN_MONGO_URL",
            help="MongoDB connection URL.",
        ),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to an adapter configuration YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    database: Annotated[
        Optional[str],
        typer.Option("--database", "-d", help="Database name."),
    ] = None,
    collection: Annotated[
        Optional[str],
        typer.Option("--collection", help="Collection holding the rules."),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Log level for adapter events."),
    ] = "warning",
    log_format: Annotated[
        str,
        typer.Option("--log-format", help="Log format: console or json."),
    ] = "console",
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    casbin-mongo - Casbin policy storage in MongoDB.
    """
    setup_logging(log_level, log_format)
    ctx.obj = CliState(
        url=url,
        config_path=config_path,
        database=database,
        collection=collection,
    )


def _resolve_config(state: CliState) -> AdapterConfig:
    """Merge the config file with command-line overrides."""
    config = load_config(state.config_path) if state.config_path else AdapterConfig()

    overrides = {
        key: value
        for key, value in (
            ("url", state.url),
            ("database", state.database),
            ("collection", state.collection),
        )
        if value
    }
    return config.model_copy(update=overrides)


def _open_session(state: CliState) -> MongoSession:
    """Open a session or exit with an error message."""
    try:
        config = _resolve_config(state)
        return MongoSession(
            config.url,
            database=config.database,
            collection=config.collection,
            timeout_ms=config.timeout_ms,
        )
    except AdapterError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def split_policy_line(line: str) -> list[str]:
    """
    Split a policy line on commas outside of brackets and parentheses.

    Matches the Casbin file format, where a field such as
    "keyMatch(/a, /b)" stays one token.
    """
    depth = 0
    tokens = [""]
    for char in line:
        if char in "([":
            depth += 1
        elif char in ")]" and depth:
            depth -= 1
        elif char == "," and depth == 0:
            tokens.append("")
            continue
        tokens[-1] += char
    return [token.strip() for token in tokens]


def parse_policy_csv(path: Path) -> list[CasbinRule]:
    """
    Read a Casbin CSV policy file into records.

    Blank lines and lines starting with "#" are ignored. Each remaining
    line is "ptype, field, field, ...".
    """
    records = []
    with path.open() as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            tokens = split_policy_line(line)
            records.append(encode(tokens[0], tokens[1:]))
    return records


def format_policy_line(ptype: str, rule: list[str]) -> str:
    """Render one rule as a Casbin CSV policy line."""
    return ", ".join([ptype, *rule])


@app.command()
def show(ctx: typer.Context) -> None:
    """
    List stored rules.
    """
    with _open_session(ctx.obj) as session:
        try:
            records = list(session.iter_records())
        except AdapterError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(code=1) from e

        if not records:
            console.print("[dim]No rules stored.[/dim]")
            return

        table = Table(title=f"{session.database_name}.{session.collection_name}")
        for name in RECORD_FIELDS:
            table.add_column(name, style="cyan" if name == "ptype" else None)
        for record in records:
            table.add_row(*record.to_document().values())

        console.print(table)
        console.print(f"[dim]Total: {len(records)} rules[/dim]")


@app.command("import")
def import_policy(
    ctx: typer.Context,
    policy_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the Casbin CSV policy file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
) -> None:
    """
    Replace stored rules with the rules of a Casbin CSV policy file.
    """
    try:
        records = parse_policy_csv(policy_path)
    except OSError as e:
        console.print(f"[red]Error reading policy: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    with _open_session(ctx.obj) as session:
        try:
            inserted = session.replace_all(records)
        except AdapterError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(code=1) from e

    console.print(f"[green]✓[/green] Imported {inserted} rules from {policy_path.name}")


@app.command()
def export(
    ctx: typer.Context,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--out",
            "-o",
            help="Write to this file instead of stdout.",
            resolve_path=True,
        ),
    ] = None,
) -> None:
    """
    Write stored rules as a Casbin CSV policy file.
    """
    with _open_session(ctx.obj) as session:
        try:
            lines = []
            for record in session.iter_records():
                _, ptype, rule = decode(record)
                lines.append(format_policy_line(ptype, rule))
        except AdapterError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(code=1) from e

    content = "\n".join(lines) + ("\n" if lines else "")
    if output is None:
        typer.echo(content, nl=False)
    else:
        output.write_text(content)
        console.print(f"[green]✓[/green] Exported {len(lines)} rules to {output}")


@app.command()
def doctor(ctx: typer.Context) -> None:
    """
    Check connectivity, collection and indexes.
    """
    state: CliState = ctx.obj
    checks: list[tuple[str, bool, str]] = []

    try:
        config = _resolve_config(state)
        session = MongoSession(
            config.url,
            database=config.database,
            collection=config.collection,
            timeout_ms=config.timeout_ms,
        )
    except AdapterError as e:
        console.print(f"[red]✗[/red] Connection: {escape(e.message)}")
        raise typer.Exit(code=1) from e

    failed = False
    with session:
        checks.append(("Connection", True, redact_url(session.url)))
        checks.append(
            ("Collection", True, f"{session.database_name}.{session.collection_name}")
        )
        try:
            checks.append(("Rules", True, str(session.count())))
            present = set(session.index_names())
            missing = [name for name in RECORD_FIELDS if f"{name}_1" not in present]
            if missing:
                checks.append(("Indexes", False, f"missing: {', '.join(missing)}"))
            else:
                checks.append(("Indexes", True, ", ".join(RECORD_FIELDS)))
        except AdapterError as e:
            checks.append(("Storage", False, e.message))

    console.print(f"[bold]casbin-mongo doctor[/bold] v{__version__}")
    console.print()
    for name, ok, detail in checks:
        icon = "[green]✓[/green]" if ok else "[red]✗[/red]"
        console.print(f"{icon} {name}: [dim]{detail}[/dim]")
        failed = failed or not ok

    if failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
