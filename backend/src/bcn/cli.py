"""Command-line interface for BCN."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from bcn.errors import NotFoundError
from bcn.logging_config import configure_logging, get_logger
from bcn.settings import settings
from bcn.storage.db import db
from bcn.teams.models import Team
from bcn.teams.service import team_service

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="bcn",
    help="BCN - Team collaboration and delegated payments",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Bind port")] = 8000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "bcn.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("repair-memberships")
def repair_memberships(
    user_id: Annotated[int | None, typer.Option("--user", "-u", help="Repair a single user")] = None,
) -> None:
    """Reconcile users' team back-references with the member rows."""
    if user_id is not None:
        try:
            fixed = team_service.repair_membership(user_id)
        except NotFoundError as e:
            console.print(f"[red]{e.message}[/red]")
            raise typer.Exit(1)

        if fixed:
            console.print(f"[bold green]✓[/bold green] User {user_id} repaired")
        else:
            console.print(f"[green]User {user_id} is consistent[/green]")
        return

    fixed_count = team_service.repair_all_memberships()
    console.print(f"[bold green]✓[/bold green] Repaired {fixed_count} user(s)")


@app.command("team-show")
def show_team(
    team_id: Annotated[int, typer.Argument(help="Team ID")],
) -> None:
    """Show a team and its members."""
    with db.session() as session:
        team = session.get(Team, team_id)

        if not team:
            console.print(f"[red]Team {team_id} not found[/red]")
            raise typer.Exit(1)

        console.print(f"[bold]Team ID:[/bold] {team.id}")
        console.print(f"[bold]Name:[/bold] {team.name}")
        console.print(f"[bold]Owner:[/bold] {team.owner.email} (ID {team.owner_id})")

        table = Table(title="Members")
        table.add_column("User ID", style="cyan")
        table.add_column("Email", style="green")
        table.add_column("Role")
        table.add_column("Status")
        table.add_column("Joined")

        for member in team.members:
            table.add_row(
                str(member.user_id),
                member.user.email,
                member.role.value,
                member.invitation_status.value,
                member.created_at.strftime("%Y-%m-%d %H:%M") if member.created_at else "",
            )

        console.print(table)


if __name__ == "__main__":
    app()
