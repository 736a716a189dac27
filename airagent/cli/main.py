"""Air Agent CLI - Main entry point."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from airagent import __version__
from airagent.cli.commands.mcp_cmd import mcp_app
from airagent.core.config import AirAgentConfig, get_config, set_config
from airagent.core.log import setup_logging
from airagent.core.prompt_template import resolve_system_prompt_template
from airagent.core.storage import KeyValueStore, StorageFormatError
from airagent.core.workspace import (
    WorkspaceImportError,
    dumps_workspace,
    export_workspace,
    import_workspace,
)

app = typer.Typer(
    name="airagent",
    help="Air Agent - chat with LLMs, extended by MCP tools",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _get_kv_store() -> KeyValueStore:
    """Get the key-value store."""
    from airagent.core.storage import get_store

    return get_store()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]Air Agent[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
) -> None:
    """Air Agent - chat with LLMs, extended by MCP tools.

    Manage settings and MCP servers, and inspect the tools a server exposes.
    """
    setup_logging("DEBUG" if verbose else get_config().log_level)


# Config subcommand group
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

# MCP server commands
app.add_typer(mcp_app, name="mcp")

# Workspace import/export
workspace_app = typer.Typer(help="Workspace settings import/export")
app.add_typer(workspace_app, name="workspace")


def _mask(secret: str) -> str:
    if not secret:
        return "[dim]Not Set[/dim]"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}"


def _display_config(config: AirAgentConfig) -> None:
    """Display configuration in a table."""
    table = Table(title="Air Agent Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Data Directory", str(config.data_dir))
    table.add_row("Storage File", str(config.storage_path))
    table.add_row("Log Level", config.log_level)
    table.add_row("", "")
    table.add_row("[bold]LLM Settings[/bold]", "")
    table.add_row("API Key", _mask(config.llm.api_key))
    table.add_row("Base URL", config.llm.base_url or "[dim]Default[/dim]")
    table.add_row("Model", config.llm.model)
    table.add_row("", "")
    table.add_row("[bold]MCP Client[/bold]", "")
    table.add_row("Connect Timeout", f"{config.mcp.connect_timeout}s")
    table.add_row("Request Timeout", f"{config.mcp.request_timeout}s")
    table.add_row("Protocol Version", config.mcp.protocol_version)
    table.add_row("", "")
    table.add_row("[bold]Prompt[/bold]", "")
    table.add_row("System Prompt", config.system_prompt or "[dim]Not Set[/dim]")
    table.add_row("Location Timeout", f"{config.location_timeout}s")

    console.print(table)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration."""
    _display_config(get_config())


@config_app.command("reset")
def config_reset() -> None:
    """Reset all settings to defaults."""
    if Confirm.ask("Reset all settings to defaults?"):
        current_config = get_config()
        new_config = AirAgentConfig(data_dir=current_config.data_dir)
        new_config.ensure_directories()
        new_config.save()
        set_config(new_config)
        console.print("[green]Configuration reset to defaults.[/green]")


@config_app.command("llm")
def config_llm(
    api_key: str = typer.Option(None, "--api-key", help="OpenAI API key"),
    base_url: str = typer.Option(None, "--base-url", help="OpenAI-compatible base URL"),
    model: str = typer.Option(None, "--model", "-m", help="Model name"),
) -> None:
    """Update LLM settings."""
    current_config = get_config()

    if api_key is None and base_url is None and model is None:
        console.print("[yellow]Nothing to change.[/yellow] Pass --api-key, --base-url or --model.")
        return

    if api_key is not None:
        current_config.llm.api_key = api_key
    if base_url is not None:
        current_config.llm.base_url = base_url
    if model is not None:
        current_config.llm.model = model

    current_config.save()
    set_config(current_config)
    console.print("[green]LLM settings saved.[/green]")


@config_app.command("prompt")
def config_prompt(
    template: str = typer.Option(None, "--set", help="New system prompt template"),
) -> None:
    """Show (or set) the system prompt, with placeholders resolved."""
    current_config = get_config()

    if template is not None:
        current_config.system_prompt = template
        current_config.save()
        set_config(current_config)
        console.print("[green]System prompt saved.[/green]")

    resolved = asyncio.run(
        resolve_system_prompt_template(
            current_config.system_prompt,
            timeout=current_config.location_timeout,
        )
    )
    console.print(resolved or "[dim]No system prompt set.[/dim]")


@workspace_app.command("export")
def workspace_export(
    path: Path = typer.Argument(None, help="Output file (defaults to a timestamped file)"),
) -> None:
    """Export settings and MCP servers to a JSON file."""
    try:
        document = export_workspace(get_config(), _get_kv_store())
    except StorageFormatError as e:
        console.print(f"[red]Export failed:[/red] {e}")
        raise typer.Exit(1)

    if path is None:
        stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        path = Path.cwd() / f"air-agent-workspace-settings-{stamp}.json"

    path.write_text(dumps_workspace(document), encoding="utf-8")
    console.print(f"[green]Exported workspace settings to[/green] {path}")


@workspace_app.command("import")
def workspace_import(
    path: Path = typer.Argument(..., help="Exported workspace JSON file"),
) -> None:
    """Import settings and MCP servers from a JSON file."""
    if not path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(1)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Import failed:[/red] not valid JSON ({e})")
        raise typer.Exit(1)

    current_config = get_config()
    try:
        count = import_workspace(data, current_config, _get_kv_store())
    except WorkspaceImportError as e:
        console.print(f"[red]Import failed:[/red] {e}")
        raise typer.Exit(1)

    current_config.save()
    set_config(current_config)
    console.print(f"[green]Workspace settings imported successfully[/green] ({count} sections)")


if __name__ == "__main__":
    app()
