"""BurrowDB CLI - Main entry point."""

import logging
from typing import Annotated

import typer

import burrowdb
from burrowdb.cli.context import CLIContext

# Create main Typer app
app = typer.Typer(
    name="burrowdb",
    help="BurrowDB CLI - inspect and maintain a BurrowDB document store",
    no_args_is_help=True,
)

@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="BURROWDB_URL",
            help="Database URL (PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log debug messages to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    ctx.obj = CLIContext.from_options(database, echo, json_output)


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"BurrowDB v{burrowdb.__version__}")


# Register command groups
from burrowdb.cli.commands import documents, keys

app.add_typer(keys.app, name="key")

app.command(name="kinds")(documents.kinds_command)
app.command(name="get")(documents.get_command)
app.command(name="query")(documents.query_command)
app.command(name="delete")(documents.delete_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
