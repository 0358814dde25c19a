"""CLI interface for the Family Graph engine."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .exceptions import FamilyGraphError

app = typer.Typer(
    name="family-graph",
    help="Family relationship graph: links, pedigrees and kinship",
    add_completion=False,
)
console = Console()


def get_config():
    """Load configuration from environment, after applying any .env file."""
    from dotenv import find_dotenv, load_dotenv

    from .config import EngineConfig

    load_dotenv(find_dotenv(usecwd=True))
    return EngineConfig.from_env()


def get_service(db: Path | None):
    """Build a service over the SQLite store."""
    config = get_config()

    from .logging import configure_logging
    from .service import RelationshipService
    from .store.sqlite import SQLiteRelationshipStore

    configure_logging(config.log_level)
    store = SQLiteRelationshipStore(db or config.db_path)
    return RelationshipService(store, config=config)


def _run(coro):
    """Run a service coroutine, turning engine errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except FamilyGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


def _fmt(value) -> str:
    return "-" if value is None else str(value)


@app.command("add-person")
def add_person(
    person_id: str = typer.Argument(..., help="Person identifier"),
    name: str = typer.Option(None, "--name", "-n", help="Display name"),
    gender: str = typer.Option(None, "--gender", "-g", help="male or female"),
    birth_date: str = typer.Option(None, "--birth-date", "-b", help="YYYY-MM-DD"),
    deceased: bool = typer.Option(False, "--deceased", help="Person is no longer alive"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Register or update a person in the directory."""
    from pydantic import ValidationError as ModelError

    from .models.person import Person

    service = get_service(db)
    try:
        person = Person(
            id=person_id,
            name=name,
            gender=gender,
            birth_date=birth_date,
            is_alive=not deceased,
        )
    except ModelError as e:
        console.print(f"[red]Error: invalid person: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1) from e

    service.store.upsert_person(person)
    console.print(f"[green]Saved person {person.id}[/green]")


@app.command()
def link(
    person_id: str = typer.Argument(..., help="Subject of the relationship"),
    related_person_id: str = typer.Argument(..., help="Object of the relationship"),
    relationship_type: str = typer.Argument(..., help="e.g. FATHER: subject is FATHER of object"),
    certainty: str = typer.Option("CONFIRMED", "--certainty", "-c", help="Certainty level"),
    start_date: str = typer.Option(None, "--start-date", help="YYYY-MM-DD"),
    end_date: str = typer.Option(None, "--end-date", help="YYYY-MM-DD"),
    non_biological: bool = typer.Option(False, "--non-biological", help="Not a blood relationship"),
    notes: str = typer.Option(None, "--notes", help="Free-text note"),
    created_by: str = typer.Option(None, "--by", help="User recording the link"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Create a relationship edge between two persons."""
    service = get_service(db)
    edge = _run(
        service.create_relationship(
            {
                "person_id": person_id,
                "related_person_id": related_person_id,
                "relationship_type": relationship_type.upper(),
                "certainty_level": certainty.upper(),
                "start_date": start_date,
                "end_date": end_date,
                "is_biological": not non_biological,
                "notes": notes,
            },
            created_by,
        )
    )
    console.print(
        f"[green]Linked {edge.person_id} -[{edge.relationship_type.value}]-> "
        f"{edge.related_person_id}[/green] [dim]({edge.id})[/dim]"
    )


@app.command()
def ancestors(
    person_id: str = typer.Argument(..., help="Root person"),
    generations: int = typer.Option(None, "--generations", "-g", help="Maximum generations"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Show the ancestors of a person, by generation."""
    service = get_service(db)
    result = _run(service.get_ancestors(person_id, generations))

    if not result.ancestors:
        console.print(f"[yellow]No ancestors found for {person_id}[/yellow]")
        return

    table = Table(title=f"Ancestors of {person_id}")
    table.add_column("Gen")
    table.add_column("Ancestor")
    table.add_column("Of")
    table.add_column("Relationship")
    table.add_column("Lineage")

    for entry in result.ancestors:
        table.add_row(
            str(entry.generation),
            entry.ancestor_id,
            entry.child_id,
            entry.relationship_label,
            entry.lineage,
        )

    console.print(table)


@app.command()
def descendants(
    person_id: str = typer.Argument(..., help="Root person"),
    generations: int = typer.Option(None, "--generations", "-g", help="Maximum generations"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Show the descendants of a person as a tree."""
    service = get_service(db)
    result = _run(service.get_descendants(person_id, generations))

    if not result.descendants:
        console.print(f"[yellow]No descendants found for {person_id}[/yellow]")
        return

    tree = Tree(f"[bold]{person_id}[/bold]")

    def add(branch, nodes):
        for node in nodes:
            child = branch.add(f"{node.person_id} [dim]({node.entry.relationship_label})[/dim]")
            add(child, node.children)

    add(tree, result.family_tree)
    console.print(tree)
    console.print(f"[dim]{result.total_descendants} descendants[/dim]")


@app.command()
def family(
    person_id: str = typer.Argument(..., help="Focal person"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Show parents, spouse, children and siblings of a person."""
    service = get_service(db)
    result = _run(service.get_immediate_family(person_id))

    if result.is_empty:
        console.print(f"[yellow]No family recorded for {person_id}[/yellow]")
        return

    table = Table(title=f"Immediate family of {person_id}")
    table.add_column("Role")
    table.add_column("Person")
    table.add_column("Born")

    members = result.parents.members()
    if result.spouse:
        members.append(result.spouse)
    members += result.children + result.siblings
    for member in members:
        label = member.person.name if member.person and member.person.name else member.related_person_id
        table.add_row(member.relationship_type, label, _fmt(member.birth_date))

    console.print(table)


@app.command()
def degree(
    person_a: str = typer.Argument(..., help="First person"),
    person_b: str = typer.Argument(..., help="Second person"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Compute how two persons are related."""
    service = get_service(db)
    result = _run(service.calculate_degree(person_a, person_b))

    body = f"[bold]{result.degree}[/bold]: {result.description}"
    if result.common_ancestor_id:
        body += (
            f"\nCommon ancestor: {result.common_ancestor_id}"
            f" (generations {result.generation_a} / {result.generation_b})"
        )
    console.print(Panel(body, title=f"{person_a} -> {person_b}"))


@app.command("import")
def import_file(
    file_path: Path = typer.Argument(..., help="JSON file holding a list of relationships"),
    update_existing: bool = typer.Option(False, "--update-existing", help="Update matching edges"),
    skip_duplicates: bool = typer.Option(True, "--skip-duplicates/--no-skip-duplicates"),
    verify_all: bool = typer.Option(False, "--verify-all", help="Verify every created edge"),
    user_id: str = typer.Option(None, "--by", help="User performing the import"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Import relationships from a JSON file."""
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    with open(file_path) as f:
        items = json.load(f)
    if not isinstance(items, list):
        console.print("[red]Error: expected a JSON list of relationships[/red]")
        raise typer.Exit(1)

    service = get_service(db)
    result = _run(
        service.import_relationships(
            items,
            user_id,
            update_existing=update_existing,
            skip_duplicates=skip_duplicates,
            verify_all=verify_all,
        )
    )

    table = Table(title=f"Import of {file_path.name}")
    table.add_column("Outcome")
    table.add_column("Count")
    table.add_row("Created", str(result.created))
    table.add_row("Updated", str(result.updated))
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Failed", str(result.failed))
    console.print(table)

    for error in result.errors:
        console.print(f"[red]  #{error.index}: {error.message}[/red]")


@app.command()
def export(
    output: Path = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    format: str = typer.Option("json", "--format", "-f", help="json or csv"),
    person_id: str = typer.Option(None, "--person", help="Only edges touching this person"),
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Export relationships as JSON or CSV."""
    service = get_service(db)
    filters = {"person_id": person_id} if person_id else None
    result = _run(service.export_relationships(filters, format.lower()))

    text = result.to_csv() if format.lower() == "csv" else json.dumps(result.to_dict(), indent=2)
    if output:
        output.write_text(text)
        console.print(f"[green]Exported {result.metadata['total_records']} records to {output}[/green]")
    else:
        typer.echo(text)


@app.command()
def stats(
    db: Path = typer.Option(None, "--db", help="SQLite database file"),
):
    """Show relationship statistics."""
    service = get_service(db)
    summary = _run(service.get_statistics())

    table = Table(title="Relationship Statistics")
    table.add_column("Metric")
    table.add_column("Value")

    table.add_row("Total", str(summary.total_relationships))
    table.add_row("Active", str(summary.active_relationships))
    table.add_row("Dissolved", str(summary.dissolved_relationships))
    table.add_row("Deceased", str(summary.deceased_relationships))
    table.add_row("Biological", str(summary.biological_relationships))
    table.add_row("Verified", str(summary.verified_relationships))
    table.add_row("Persons with relationships", str(summary.unique_persons_with_relationships))
    table.add_row("Avg duration (days)", _fmt(summary.avg_relationship_duration_days))

    console.print(table)

    by_type = _run(service.get_type_statistics())
    if by_type:
        type_table = Table(title="Relationships by Type")
        type_table.add_column("Type")
        type_table.add_column("Count")
        type_table.add_column("Active")
        type_table.add_column("Verified")

        for row in by_type:
            type_table.add_row(
                row.relationship_type,
                str(row.count),
                str(row.active_count),
                str(row.verified_count),
            )

        console.print(type_table)


if __name__ == "__main__":
    app()
