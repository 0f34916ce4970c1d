"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from burrowdb.exceptions import BurrowDBError
from burrowdb.store.document import Document

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_document(self, document: Document) -> None:
        """Print one document with its key forms and properties."""
        if self.json_mode:
            print(json.dumps(document.to_dict(), default=str, indent=2))
            return

        console.print(f"\n[bold]Kind:[/bold] {document.kind}")
        console.print(f"Path: {document.key.path}")
        console.print(f"Key: {document.key.urlsafe()}")
        if document.parent is not None:
            console.print(f"Parent: {document.parent.path}")

        if len(document):
            console.print(f"\n[bold]Properties ({len(document)}):[/bold]")
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Name")
            table.add_column("Value")
            for name, value in document.properties.items():
                table.add_row(escape(name), escape(json.dumps(value, default=str)))
            console.print(table)

    def print_documents(self, title: str, documents: list[Document]) -> None:
        """Print a query result, one row per document."""
        if self.json_mode:
            print(json.dumps([d.to_dict() for d in documents], default=str, indent=2))
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Path")
        table.add_column("Properties")
        for document in documents:
            table.add_row(
                escape(document.key.path), escape(json.dumps(document.properties, default=str))
            )
        console.print(table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, BurrowDBError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            if isinstance(error, BurrowDBError) and error.context:
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            console.print(panel)

    def print_data(self, data: dict[str, Any]) -> None:
        """Print a flat mapping as JSON or as ``key: value`` lines."""
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            for key, value in data.items():
                console.print(f"[bold]{key}:[/bold] {value}")
