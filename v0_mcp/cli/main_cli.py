# v0_mcp/cli/main_cli.py
import typer
from . import admin_cli
from . import utils_cli

# Main CLI application with help enabled when no arguments are provided
app = typer.Typer(
    name="v0-mcp",
    help="v0 MCP Server Command Line Interface.",
    no_args_is_help=True
)

app.add_typer(admin_cli.app, name="admin")
app.add_typer(utils_cli.app, name="utils")


@app.callback()
def main_callback():
    """
    v0 MCP main CLI application.
    Use 'v0-mcp admin --help' for admin commands.
    """
    pass


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
