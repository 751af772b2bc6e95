"""
Command-line interface for dbmd.

Provides fetch, info and join commands for database metadata snapshots.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from dbmd import __version__
from dbmd.database import DatabaseMetadata
from dbmd.errors import DbmdError
from dbmd.models import DateMapping, EquationStyle

console = Console()

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@click.group()
@click.version_option(version=__version__, prog_name="dbmd")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """
    dbmd - Database Metadata Snapshots

    Fetch table, view, column, primary key and foreign key metadata from a
    database into a portable JSON or XML document, and query it.
    """
    setup_logging(verbose)


@cli.command()
@click.option(
    "--connection",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="YAML file with connection settings",
)
@click.option(
    "--options",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML file with fetch options (schema, date_mapping, exclude_pattern, ...)",
)
@click.option(
    "--schema",
    type=str,
    default=None,
    help="Schema to fetch (overrides the options file; all schemas if not given)",
)
@click.option(
    "--date_mapping",
    type=click.Choice([m.value for m in DateMapping], case_sensitive=False),
    default=None,
    help="How to report native DATE columns (overrides the options file)",
)
@click.option(
    "--exclude",
    type=str,
    default=None,
    help="Regular expression for relation ids to leave out (overrides the options file)",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["json", "xml"]),
    default=None,
    help="Output format (default: from the output file suffix)",
)
@click.argument("output", type=click.Path(path_type=Path))
def fetch(
    connection: Path,
    options: Optional[Path],
    schema: Optional[str],
    date_mapping: Optional[str],
    exclude: Optional[str],
    fmt: Optional[str],
    output: Path,
) -> None:
    """
    Fetch metadata from a database and write it to OUTPUT.

    Examples:

        # Oracle schema to XML
        dbmd fetch --connection conn.yaml --schema SALES sales.xml

        # With options file and timestamps for DATE columns
        dbmd fetch --connection conn.yaml --options opts.yaml \\
            --date_mapping DATES_AS_TIMESTAMPS sales.json
    """
    from dbmd.config import load_connection_settings, load_fetch_options
    from dbmd.metadata import DatabaseMetadataFetcher
    from dbmd.serialization import format_for_path, save_metadata

    # Configuration problems are reported before connecting.
    try:
        settings = load_connection_settings(connection)
        fetch_options = load_fetch_options(options).with_overrides(
            schema=schema,
            date_mapping=date_mapping,
            exclude_pattern=exclude,
        )
        fmt = format_for_path(output, fmt)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(2)

    console.print("[bold blue]dbmd fetch[/bold blue]")
    console.print(f"Source: {settings.source}")
    console.print(f"Schema: {fetch_options.schema or '<any>'}")

    fetcher = DatabaseMetadataFetcher(fetch_options.date_mapping)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Fetching metadata...", total=None)

            with settings.create_source() as source:
                metadata = fetcher.fetch_metadata(
                    source,
                    schema=fetch_options.schema,
                    include_tables=fetch_options.include_tables,
                    include_views=fetch_options.include_views,
                    include_fields=fetch_options.include_fields,
                    include_foreign_keys=fetch_options.include_foreign_keys,
                    exclude_pattern=fetch_options.exclude_pattern,
                )

            progress.update(task, completed=True)
    except Exception as e:
        logger.exception("Metadata fetch failed")
        console.print(f"[red]Error: Could not fetch metadata: {escape(str(e))}[/red]")
        sys.exit(1)

    save_metadata(metadata, output, fmt)
    console.print(f"\n[green]Metadata saved to: {output}[/green]")

    # Print summary
    table = Table(title="Fetch Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("DBMS", metadata.dbms_name or "N/A")
    table.add_row("Case Sensitivity", metadata.case_sensitivity.value)
    table.add_row("Relations", str(len(metadata.relation_metadatas)))
    table.add_row("Foreign Keys", str(len(metadata.foreign_keys)))
    table.add_row("Output", str(output))

    console.print(table)


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, path_type=Path))
def info(snapshot: Path) -> None:
    """
    Display the relations and foreign keys of a metadata snapshot.

    Example:

        dbmd info sales.xml
    """
    metadata = DatabaseMetadata.load(snapshot)

    console.print("[bold blue]Database Metadata[/bold blue]")

    info_table = Table(title="Snapshot Details")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")

    info_table.add_row("Schema", metadata.requested_schema or "N/A")
    info_table.add_row("Case Sensitivity", metadata.case_sensitivity.value)
    info_table.add_row("DBMS", metadata.dbms_name or "N/A")
    info_table.add_row("DBMS Version", metadata.dbms_version or "N/A")

    console.print(info_table)

    rels_table = Table(title="Relations")
    rels_table.add_column("Relation", style="cyan")
    rels_table.add_column("Type", style="magenta")
    rels_table.add_column("Fields", style="green", justify="right")
    rels_table.add_column("PK", style="yellow")

    for rel_md in metadata.relation_metadatas:
        pk_names = rel_md.get_primary_key_field_names()
        rels_table.add_row(
            rel_md.rel_id.id_string,
            rel_md.rel_type.value,
            str(len(rel_md.fields)),
            ", ".join(pk_names) if pk_names else "-",
        )

    console.print(rels_table)

    if metadata.foreign_keys:
        fk_table = Table(title="Foreign Keys")
        fk_table.add_column("Child", style="cyan")
        fk_table.add_column("Child Fields", style="green")
        fk_table.add_column("Parent", style="yellow")
        fk_table.add_column("Parent Fields", style="magenta")

        for fk in metadata.foreign_keys:
            fk_table.add_row(
                fk.source_rel_id.id_string,
                ", ".join(fk.source_field_names),
                fk.target_rel_id.id_string,
                ", ".join(fk.target_field_names),
            )

        console.print(fk_table)
    else:
        console.print("\n[yellow]No foreign keys.[/yellow]")


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, path_type=Path))
@click.argument("child", type=str)
@click.argument("parent", type=str)
@click.option(
    "--fields",
    type=str,
    default=None,
    help="Comma-separated child field names of the foreign key, to pick among several",
)
@click.option("--child_alias", type=str, default=None, help="Alias for the child relation")
@click.option("--parent_alias", type=str, default=None, help="Alias for the parent relation")
@click.option(
    "--parent_first",
    is_flag=True,
    default=False,
    help="Write the parent side first in each equation",
)
@click.option(
    "--all_fks",
    is_flag=True,
    default=False,
    help="Also consider foreign keys whose relations are not in the snapshot",
)
def join(
    snapshot: Path,
    child: str,
    parent: str,
    fields: Optional[str],
    child_alias: Optional[str],
    parent_alias: Optional[str],
    parent_first: bool,
    all_fks: bool,
) -> None:
    """
    Print the join condition for the foreign key from CHILD to PARENT.

    Relations are given as "schema.name", or "name" for the schema the
    snapshot was fetched for.

    Examples:

        dbmd join sales.xml ORDERS CUSTOMERS --child_alias o --parent_alias c

        dbmd join sales.xml ORDERS CUSTOMERS --fields BILL_TO_CUSTOMER_ID
    """
    from dbmd.models import ForeignKeyScope

    metadata = DatabaseMetadata.load(snapshot)

    child_id = metadata.parse_rel_id(child)
    parent_id = metadata.parse_rel_id(parent)
    field_names = [f.strip() for f in fields.split(",")] if fields else None
    scope = ForeignKeyScope.ALL_FKS if all_fks else ForeignKeyScope.REGISTERED_TABLES_ONLY

    try:
        fk = metadata.get_foreign_key_from_to(child_id, parent_id, field_names, scope)
    except DbmdError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    if fk is None:
        console.print(f"[red]Error: No foreign key found from {child_id} to {parent_id}.[/red]")
        sys.exit(1)

    style = EquationStyle.TARGET_ON_LEFTHAND_SIDE if parent_first else EquationStyle.SOURCE_ON_LEFTHAND_SIDE
    click.echo(fk.as_equation(child_alias, parent_alias, style))


if __name__ == "__main__":
    cli()
