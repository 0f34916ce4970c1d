"""Raw document commands: list kinds, get, query and delete."""

from typing import Annotated

import typer

from burrowdb.cli.context import CLIContext
from burrowdb.cli.output import OutputFormatter
from burrowdb.cli.parsing import parse_filter, parse_key, parse_sort
from burrowdb.exceptions import DocumentNotFoundError
from burrowdb.query import QueryBuilder


def kinds_command(ctx: typer.Context) -> None:
    """List stored kinds with document counts.

    Examples:

        burrowdb kinds
        burrowdb --json kinds
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        kinds = db.kinds()
        rows = [{"kind": kind, "documents": count} for kind, count in kinds.items()]
        formatter.print_table("Kinds", rows, ["kind", "documents"])

    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def get_command(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key as URL-safe string or readable path")],
) -> None:
    """Show one stored document.

    Examples:

        burrowdb get Q3VzdG9tZXI6YWNtZQ
        burrowdb get "Customer:acme/Order:#42"
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        document = db.store.get(parse_key(key))
        formatter.print_document(document)

    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def query_command(
    ctx: typer.Context,
    kind: Annotated[str, typer.Argument(help="Kind to query")],
    ancestor: Annotated[
        str | None,
        typer.Option("--ancestor", "-a", help="Only documents under this key"),
    ] = None,
    filters: Annotated[
        list[str] | None,
        typer.Option("--filter", "-f", help="Equality filter name=value (repeatable)"),
    ] = None,
    sorts: Annotated[
        list[str] | None,
        typer.Option("--sort", "-s", help="Sort name[:asc|desc] (repeatable)"),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum number of documents"),
    ] = None,
) -> None:
    """Query stored documents of one kind.

    Filter values are parsed as JSON when possible (42, true, null),
    otherwise taken as strings. Stored enums are ordinals, so filter them
    by number.

    Examples:

        burrowdb query Order --ancestor "Customer:acme"
        burrowdb query Order -f state=1 -s placed_at:desc -n 10
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        builder = QueryBuilder(kind, ancestor=parse_key(ancestor) if ancestor else None)
        for spec in filters or []:
            name, value = parse_filter(spec)
            builder.filter(name, value)
        for spec in sorts or []:
            name, direction = parse_sort(spec)
            builder.sort(name, direction)
        builder.limit(limit)

        db = cli_ctx.get_db()
        documents = list(db.store.prepare(builder.build()))
        formatter.print_documents(f"{kind} ({len(documents)})", documents)

    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def delete_command(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key as URL-safe string or readable path")],
    force: Annotated[
        bool,
        typer.Option("--force", "-y", help="Skip confirmation"),
    ] = False,
) -> None:
    """Delete one stored document (descendants are kept).

    Examples:

        burrowdb delete "Customer:acme" --force
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        parsed = parse_key(key)
        db = cli_ctx.get_db()
        if not db.store.exists(parsed):
            raise DocumentNotFoundError(parsed.path)

        if not force and not cli_ctx.json_output:
            typer.confirm(f"Delete {parsed.path}?", abort=True)

        db.store.delete(parsed)
        formatter.print_success(f"Deleted {parsed.path}", {"key": parsed.urlsafe()})

    except typer.Abort:
        raise
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
