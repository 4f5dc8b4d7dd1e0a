"""
Main CLI application using Typer.

Entry point: python -m imageguard.cli
CLI Name: imageguard-admin
"""
import typer

from imageguard import __version__ as app_version

app = typer.Typer(
    name="imageguard-admin",
    help="imageguard Admin CLI - Category image integrity and migration tools",
)

@app.command()
def version():
    """Show CLI version information."""
    typer.echo(f"imageguard CLI version {app_version}")

# Register command groups
from imageguard.cli.commands import images
app.add_typer(images.app, name="images")
