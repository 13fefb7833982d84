"""CLI entry point for abappretty.

Provides commands:
  - list: Show the objects a prettyprint run would process
  - prettyprint: Pretty print every supported include in the selection
  - config: Manage connection passwords in the system keyring
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import httpx
import keyring
import typer
from keyring.errors import KeyringError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from abappretty.adt.client import AdtClient, AdtError
from abappretty.config import get_connection, get_password
from abappretty.constants import KEYRING_SERVICE
from abappretty.exceptions import AbapPrettyError
from abappretty.formatter import build_formatter
from abappretty.models import AbapObject, ListOptions, SyncOptions
from abappretty.sync.loader import ObjectListLoader
from abappretty.sync.orchestrator import SourceSyncOrchestrator
from abappretty.sync.progress import ConsoleSyncReporter

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Pretty print ABAP sources in place on an SAP system",
    rich_markup_mode="rich",
)
console = Console()

config_app = typer.Typer(help="Manage connection passwords (system keyring)")
app.add_typer(config_app, name="config")

# Errors reported as a one-line message and exit code 1
_EXPECTED_ERRORS = (AbapPrettyError, AdtError, httpx.HTTPError)

ConnectionArg = Annotated[str, typer.Argument(help="Connection name from connections.json")]
TypeArg = Annotated[str, typer.Argument(help="Object type, e.g. DEVC/K or PROG/P")]
NameArg = Annotated[str, typer.Argument(help="Object name")]
FileOpt = Annotated[
    Path | None,
    typer.Option("--file", "-f", help="Object list file (type name url per line)", dir_okay=False),
]
RecursiveOpt = Annotated[
    bool, typer.Option("--recursive", "-r", help="Include sub-packages of packages")
]
ConnectionsOpt = Annotated[
    Path | None,
    typer.Option(
        "--connections",
        help="Connections file (default: $ABAPPRETTY_CONNECTIONS or ~/.config/abappretty/connections.json)",
        dir_okay=False,
    ),
]


def configure_logging(level: int, log_file: Path | None = None) -> None:
    """Route log records to stderr through rich, optionally also to a file."""
    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False)
    ]
    if log_file is not None:
        fh = logging.FileHandler(log_file)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(fh)
    logging.basicConfig(level=level, handlers=handlers, force=True, format="%(message)s")


@app.callback()
def app_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log progress at INFO level")
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Log every request")] = False,
    log_file: Annotated[
        Path | None, typer.Option("--log-file", help="Also write a debug log to this file")
    ] = None,
) -> None:
    """Configure logging for all commands."""
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    configure_logging(level, log_file)


def _open_client(connection: str, connections: Path | None) -> AdtClient:
    config = get_connection(connection, connections)
    return AdtClient(config, get_password(connection))


def _fail(error: Exception) -> typer.Exit:
    console.print(f"[red]Error:[/red] {error}")
    return typer.Exit(code=1)


@app.command("list")
def list_cmd(
    connection: ConnectionArg,
    object_type: TypeArg = "",
    object_name: NameArg = "",
    file: FileOpt = None,
    recursive: RecursiveOpt = False,
    connections: ConnectionsOpt = None,
) -> None:
    """List objects that would be updated.

    Examples:
      abappretty list MYCONN DEVC/K ZMYPACKAGE
      abappretty list MYCONN --file objects.txt
    """

    async def _list() -> list[AbapObject]:
        async with _open_client(connection, connections) as client:
            loader = ObjectListLoader(client, progress=lambda m: console.print(f"[dim]{m}[/dim]"))
            return await loader.list(
                object_type, object_name, ListOptions(file=file, recursive=recursive)
            )

    try:
        objects = asyncio.run(_list())
    except _EXPECTED_ERRORS as e:
        raise _fail(e)

    table = Table(title=f"{len(objects)} objects")
    table.add_column("type", style="bold")
    table.add_column("name")
    table.add_column("url", style="dim")
    for obj in objects:
        table.add_row(obj.type, obj.name, obj.url)
    console.print(table)


@app.command()
def prettyprint(
    connection: ConnectionArg,
    object_type: TypeArg = "",
    object_name: NameArg = "",
    file: FileOpt = None,
    recursive: RecursiveOpt = False,
    transport: Annotated[
        str | None,
        typer.Option("--transport", "-t", help="Transport request for non-local objects"),
    ] = None,
    abaplint: Annotated[
        str | None,
        typer.Option(
            "--abaplint",
            "-l",
            help="Format with abaplint using this abaplint.json ('default' for built-in rules)",
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Lock and validate, but do not write or activate"),
    ] = False,
    connections: ConnectionsOpt = None,
) -> None:
    """Pretty print every supported include in the selected range.

    Examples:
      abappretty prettyprint MYCONN DEVC/K ZMYPACKAGE -t DEVK900123
      abappretty prettyprint MYCONN --file objects.txt --abaplint abaplint.json
    """

    async def _prettyprint() -> None:
        async with _open_client(connection, connections) as client:
            loader = ObjectListLoader(client, progress=lambda m: console.print(f"[dim]{m}[/dim]"))
            objects = await loader.list(
                object_type, object_name, ListOptions(file=file, recursive=recursive)
            )
            orchestrator = SourceSyncOrchestrator(
                client,
                build_formatter(client, abaplint),
                progress=ConsoleSyncReporter(console),
            )
            await orchestrator.process_objects(
                objects, SyncOptions(dry_run=dry_run, transport=transport)
            )

    try:
        asyncio.run(_prettyprint())
    except _EXPECTED_ERRORS as e:
        raise _fail(e)


@config_app.command("set-password")
def set_password(
    connection: ConnectionArg,
    password: Annotated[
        str,
        typer.Option(prompt=True, hide_input=True, help="Logon password"),
    ],
) -> None:
    """Store the logon password of a connection in the system keyring."""
    if not password or password.strip() == "":
        console.print("[red]Error:[/red] Password cannot be empty")
        raise typer.Exit(code=1)

    try:
        keyring.set_password(KEYRING_SERVICE, connection, password)
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Failed to store password: {e}")
        raise typer.Exit(code=1)
    console.print(
        f"[green]✓[/green] Password for {connection} stored in system keyring "
        f"(service: {KEYRING_SERVICE})"
    )


@config_app.command("get-password")
def show_password(connection: ConnectionArg) -> None:
    """Show whether a password is stored for a connection (masked)."""
    password = keyring.get_password(KEYRING_SERVICE, connection)
    if not password:
        console.print(
            f"[yellow]No password found for {connection}.[/yellow]\n"
            f"Set it with: [bold]abappretty config set-password {connection}[/bold]"
        )
        raise typer.Exit(code=1)

    masked = password[:2] + "*" * max(1, len(password) - 2)
    console.print(f"[green]Password:[/green] {masked}")
    console.print(f"[dim](stored in service: {KEYRING_SERVICE})[/dim]")


@config_app.command("remove-password")
def remove_password(connection: ConnectionArg) -> None:
    """Delete the stored password of a connection."""
    if not keyring.get_password(KEYRING_SERVICE, connection):
        console.print(
            f"[yellow]Warning:[/yellow] No password found for {connection}.\n"
            "Nothing to remove."
        )
        return

    try:
        keyring.delete_password(KEYRING_SERVICE, connection)
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Failed to remove password: {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Password for {connection} removed from system keyring")


def main() -> None:
    app()
