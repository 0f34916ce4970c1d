"""Key encoding commands."""

from typing import Annotated

import typer

from burrowdb.cli.context import CLIContext
from burrowdb.cli.output import OutputFormatter
from burrowdb.cli.parsing import parse_key, parse_key_elements

app = typer.Typer(help="Encode and decode document keys")


def _describe(key_text: str) -> dict[str, object]:
    key = parse_key(key_text)
    return {
        "key": key.urlsafe(),
        "path": key.path,
        "kind": key.kind,
        "id_or_name": key.id_or_name,
        "parent": key.parent.urlsafe() if key.parent is not None else None,
    }


@app.command("encode")
def key_encode(
    ctx: typer.Context,
    elements: Annotated[list[str], typer.Argument(help="KIND:NAME elements, root first")],
) -> None:
    """Build a key from its elements.

    A name written as #123 is a numeric id.

    Examples:

        burrowdb key encode Customer:acme Order:#42
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        key = parse_key_elements(elements)
        formatter.print_data(_describe(key.urlsafe()))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("decode")
def key_decode(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key as URL-safe string or readable path")],
) -> None:
    """Show the parts of a key.

    Examples:

        burrowdb key decode Q3VzdG9tZXI6YWNtZQ
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        formatter.print_data(_describe(key))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
