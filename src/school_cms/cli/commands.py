"""CLI commands for the school CMS.

Server:
- serve: Run the Web API with uvicorn

Database maintenance:
- init-db, check-db, migrate, fix-filenames
- stats, export, import, clear
- create-user
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from school_cms.config import load_app_config
from school_cms.core.errors import SchoolCMSError
from school_cms.core.logging import configure_logging
from school_cms.db import maintenance
from school_cms.db.database import get_db, get_db_path, init_db, migrate_schema, table_columns
from school_cms.db.users_repository import ROLES, create_user

app = typer.Typer(
    name="school-cms",
    help="School content management system: API server and database tools.",
    no_args_is_help=True,
)

console = Console()


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def _open_db() -> Path:
    """Create/upgrade the configured database and return its path."""
    config = load_app_config()
    configure_logging(config.server.log_format)
    db_path = Path(config.storage.db_path)
    init_db(db_path)
    return db_path


# =============================================================================
# SERVER
# =============================================================================


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API server."""
    import uvicorn

    server = load_app_config().server
    bind_host = host or server.host
    bind_port = port or server.port

    console.print(f"[blue]Serving School CMS on http://{bind_host}:{bind_port}[/blue]")
    console.print(f"  [dim]docs:[/dim] http://{bind_host}:{bind_port}/docs")
    uvicorn.run(
        "school_cms.web.api:app",
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level="info",
    )


# =============================================================================
# DATABASE COMMANDS
# =============================================================================


@app.command(name="init-db")
def init_db_command() -> None:
    """Create tables, apply migrations and insert seed data."""
    db_path = _open_db()
    console.print(f"[green]✓ Database ready[/green] [dim]{db_path}[/dim]")


@app.command(name="check-db")
def check_db() -> None:
    """Show tables, row counts and media_urls state without changing anything."""
    db_path = get_db_path()
    if not db_path.exists():
        console.print(f"[red]✗ Database not found: {db_path}[/red]")
        raise typer.Exit(code=1)

    report = maintenance.schema_report()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    table.add_column("Columns")
    for name, columns in report["tables"].items():
        rows = report["counts"].get(name)
        table.add_row(
            name,
            str(rows) if rows is not None else "[red]missing[/red]",
            ", ".join(columns),
        )
    console.print(table)

    if report["has_media_urls"]:
        console.print(
            f"[green]✓ media_urls present[/green] ({report['media_urls_rows']} rows with URLs)"
        )
    else:
        console.print("[yellow]⚠ content.media_urls missing. Run: school-cms migrate[/yellow]")
    if report["legacy_url_rows"]:
        console.print(f"  [dim]legacy url values:[/dim] {report['legacy_url_rows']}")


@app.command()
def migrate() -> None:
    """Upgrade an older database file to the current schema."""
    db_path = get_db_path()
    if not db_path.exists():
        console.print(f"[red]✗ Database not found: {db_path}[/red]")
        console.print("  Run first: school-cms init-db")
        raise typer.Exit(code=1)

    with get_db() as conn:
        if not table_columns(conn, "content"):
            console.print("[red]✗ content table not found. Run: school-cms init-db[/red]")
            raise typer.Exit(code=1)
        applied = migrate_schema(conn)

    if applied:
        for step in applied:
            console.print(f"[green]✓ {step}[/green]")
    else:
        console.print("[dim]Schema already up to date[/dim]")


@app.command(name="fix-filenames")
def fix_filenames(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only show what would change"),
) -> None:
    """Repair attachment names stored as latin-1 mojibake."""
    _open_db()
    fixes = maintenance.fix_filenames(dry_run=dry_run)

    if not fixes:
        console.print("[green]✓ No filenames need fixing[/green]")
        return

    for fix in fixes:
        console.print(f"  {fix.old} [dim]→[/dim] {fix.new}")
    verb = "Would fix" if dry_run else "Fixed"
    console.print(f"[green]✓ {verb} {len(fixes)} filenames[/green]")


@app.command()
def stats() -> None:
    """Show row counts and storage usage."""
    _open_db()
    counts = maintenance.get_stats()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Item", style="cyan")
    table.add_column("Count", justify="right")
    for name in maintenance.TABLES:
        table.add_row(name, str(counts[name]))
    table.add_row("file size", _format_size(counts["totalFileSize"]))
    console.print(table)


@app.command()
def export(
    file: Path | None = typer.Argument(
        None, help="Output JSON file (default: school_database_<date>.json)"
    ),
) -> None:
    """Export the database to a JSON file."""
    _open_db()
    now = datetime.now(timezone.utc)
    document = maintenance.export_database(now=now)
    target = file or Path(f"school_database_{now.strftime('%Y-%m-%d')}.json")

    target.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(f"[green]✓ Exported[/green] [dim]{target}[/dim]")
    for name in maintenance.TABLES:
        console.print(f"  [dim]{name}:[/dim] {len(document[name])}")


@app.command(name="import")
def import_command(
    file: Path = typer.Argument(..., help="JSON file produced by export"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace the database contents with an exported JSON file."""
    if not file.exists():
        console.print(f"[red]✗ File not found: {file}[/red]")
        raise typer.Exit(code=1)

    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON: {e}[/red]")
        raise typer.Exit(code=1)

    if not yes and not typer.confirm("All current data except the admin will be replaced. Continue?"):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(code=0)

    _open_db()
    try:
        summary = maintenance.import_database(data)
    except SchoolCMSError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]✓ Database imported[/green]")
    for name in maintenance.TABLES:
        console.print(f"  [dim]{name}:[/dim] {getattr(summary, name)}")
    for skipped in summary.skipped:
        console.print(f"  [yellow]skipped[/yellow] {skipped}")
    console.print("[dim]Uploaded files are not part of exports and were not restored.[/dim]")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all data except the admin account, including uploads."""
    if not yes and not typer.confirm("Delete all users, subjects, content and files?"):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(code=0)

    _open_db()
    removed = maintenance.clear_database()
    console.print(f"[green]✓ Database cleared[/green] ({removed} stored files removed)")


@app.command(name="create-user")
def create_user_command(
    username: str = typer.Argument(..., help="Login name (3-20 characters)"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Password (min 6)"
    ),
    role: str = typer.Option("user", "--role", "-r", help="admin, teacher or user"),
    full_name: str | None = typer.Option(None, "--full-name", "-n", help="Display name"),
    subject_id: str | None = typer.Option(
        None, "--subject", "-s", help="Assigned subject (teachers)"
    ),
) -> None:
    """Create a user account."""
    if role not in ROLES:
        console.print(f"[red]✗ Invalid role: {role}[/red] (choose from {', '.join(ROLES)})")
        raise typer.Exit(code=1)
    if not 3 <= len(username) <= 20:
        console.print("[red]✗ Username must be 3-20 characters[/red]")
        raise typer.Exit(code=1)
    if len(password) < 6:
        console.print("[red]✗ Password must be at least 6 characters[/red]")
        raise typer.Exit(code=1)

    _open_db()
    try:
        user = create_user(
            username=username,
            password=password,
            full_name=full_name,
            role=role,
            assigned_subject_id=subject_id,
        )
    except SchoolCMSError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ User created[/green] {user.username} ({user.role})")
    console.print(f"  [dim]id:[/dim] {user.id}")


if __name__ == "__main__":
    app()
