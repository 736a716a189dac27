"""MCP (Model Context Protocol) CLI commands."""

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from airagent.core.llm.tool_calling import ToolCall, ToolRegistry, ToolResult
from airagent.core.mcp.client import HttpMcpTransport, McpTransport
from airagent.core.mcp.connection import ConnectionStatus, McpConnectionController, StatusSnapshot
from airagent.core.mcp.exceptions import ServerConfigNotFoundError
from airagent.core.mcp.registry import McpServerStore
from airagent.core.mcp.settings import McpChatSettings, load_mcp_settings, save_mcp_settings
from airagent.core.storage import KeyValueStore, StorageFormatError

mcp_app = typer.Typer(
    name="mcp",
    help="Manage MCP (Model Context Protocol) servers",
)
console = Console()

STATUS_STYLES = {
    ConnectionStatus.DISCONNECTED: "dim",
    ConnectionStatus.CONNECTING: "yellow",
    ConnectionStatus.CONNECTED: "green",
    ConnectionStatus.ERROR: "red",
}


def _get_kv_store() -> KeyValueStore:
    """Get the key-value store."""
    from airagent.core.storage import get_store

    return get_store()


def _get_server_store() -> McpServerStore:
    """Get the MCP server store."""
    return McpServerStore(_get_kv_store())


def _get_transport() -> McpTransport:
    """Get the MCP transport."""
    from airagent.core.config import get_config

    return HttpMcpTransport.from_config(get_config().mcp)


def _format_status(snapshot: StatusSnapshot) -> str:
    style = STATUS_STYLES[snapshot.status]
    text = f"[{style}]{snapshot.status.value}[/{style}]"
    if snapshot.error:
        text += f" [red]({snapshot.error})[/red]"
    return text


def _load_servers(store: McpServerStore) -> list:
    try:
        return store.list_servers()
    except StorageFormatError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


async def _with_connection(action: Any) -> Any:
    """Apply the persisted MCP state, run an action, then disconnect."""
    registry = ToolRegistry()
    controller = McpConnectionController(
        registry,
        _get_server_store(),
        _get_transport(),
        settings_store=_get_kv_store(),
    )
    async with controller:
        controller.restore()
        snapshot = await controller.wait_until_settled()
        return await action(controller, registry, snapshot)


@mcp_app.command("list")
def mcp_list() -> None:
    """List configured MCP servers."""
    store = _get_server_store()
    servers = _load_servers(store)
    settings = load_mcp_settings(_get_kv_store())

    if not servers:
        console.print("[dim]No MCP servers configured.[/dim]")
        console.print("[dim]Use 'airagent mcp add <name> <url>' to add one.[/dim]")
        return

    table = Table(title="MCP Servers", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Enabled")
    table.add_column("Selected")

    for server in servers:
        selected = server.id == settings.mcp_server_id
        if selected and settings.mcp_enabled:
            selected_text = "[green]active[/green]"
        elif selected:
            selected_text = "[dim]selected (MCP off)[/dim]"
        else:
            selected_text = ""

        table.add_row(
            server.id,
            server.name,
            server.url,
            "[green]yes[/green]" if server.enabled else "[dim]no[/dim]",
            selected_text,
        )

    console.print(table)


@mcp_app.command("add")
def mcp_add(
    name: str = typer.Argument(..., help="Display name of the server"),
    url: str = typer.Argument(..., help="Endpoint URL of the server"),
    description: str = typer.Option(None, "--description", "-d", help="Optional description"),
    api_key: str = typer.Option(None, "--api-key", "-k", help="API key sent as a bearer token"),
    disabled: bool = typer.Option(False, "--disabled", help="Add the server disabled"),
) -> None:
    """Add an MCP server."""
    store = _get_server_store()
    _load_servers(store)

    config = store.add_server(
        name=name,
        url=url,
        description=description,
        api_key=api_key,
        enabled=not disabled,
    )
    console.print(f"[green]Added[/green] {config.name} [dim]({config.id})[/dim]")
    console.print(f"[dim]Use 'airagent mcp enable {config.id}' to use it in chats.[/dim]")


@mcp_app.command("remove")
def mcp_remove(
    server_id: str = typer.Argument(..., help="ID of the server"),
) -> None:
    """Remove an MCP server."""
    store = _get_server_store()
    _load_servers(store)

    if not store.remove_server(server_id):
        console.print(f"[red]Unknown server:[/red] {server_id}")
        raise typer.Exit(1)

    kv_store = _get_kv_store()
    settings = load_mcp_settings(kv_store)
    if settings.mcp_server_id == server_id:
        save_mcp_settings(kv_store, McpChatSettings(mcp_enabled=False))

    console.print(f"[green]Removed[/green] {server_id}")


@mcp_app.command("info")
def mcp_info(
    server_id: str = typer.Argument(..., help="ID of the server"),
) -> None:
    """Show details of an MCP server."""
    store = _get_server_store()
    _load_servers(store)

    server = store.get_server_config(server_id)
    if server is None:
        console.print(f"[red]Unknown server:[/red] {server_id}")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]ID:[/bold] {server.id}\n"
            f"[bold]URL:[/bold] {server.url}\n"
            f"[bold]Description:[/bold] {server.description or '-'}\n"
            f"[bold]API Key:[/bold] {'set' if server.api_key else '[dim]not set[/dim]'}\n"
            f"[bold]Enabled:[/bold] {'yes' if server.enabled else 'no'}\n"
            f"[bold]Created:[/bold] {server.created_at}\n"
            f"[bold]Updated:[/bold] {server.updated_at}",
            title=f"[cyan]{server.name}[/cyan]",
            border_style="blue",
        )
    )


@mcp_app.command("enable")
def mcp_enable(
    server_id: str = typer.Argument(..., help="ID of the server to use in chats"),
) -> None:
    """Use an MCP server's tools in chats."""
    store = _get_server_store()
    _load_servers(store)

    if store.get_server_config(server_id) is None:
        console.print(f"[red]Error:[/red] {ServerConfigNotFoundError(server_id)}")
        raise typer.Exit(1)

    save_mcp_settings(_get_kv_store(), McpChatSettings(mcp_enabled=True, mcp_server_id=server_id))
    console.print(f"[green]MCP enabled[/green] with server {server_id}")


@mcp_app.command("disable")
def mcp_disable() -> None:
    """Stop using MCP tools in chats."""
    kv_store = _get_kv_store()
    settings = load_mcp_settings(kv_store)
    save_mcp_settings(
        kv_store,
        McpChatSettings(mcp_enabled=False, mcp_server_id=settings.mcp_server_id),
    )
    console.print("[yellow]MCP disabled[/yellow]")


@mcp_app.command("status")
def mcp_status() -> None:
    """Connect with the saved MCP settings and report the status."""

    async def action(controller, registry, snapshot):
        return snapshot, len(registry)

    with console.status("[bold blue]Connecting..."):
        snapshot, tool_count = asyncio.run(_with_connection(action))

    console.print(f"[bold]Status:[/bold] {_format_status(snapshot)}")
    if snapshot.status == ConnectionStatus.CONNECTED:
        console.print(f"[bold]Tools:[/bold] {tool_count}")
    if snapshot.status == ConnectionStatus.ERROR:
        raise typer.Exit(1)


@mcp_app.command("tools")
def mcp_tools(
    as_json: bool = typer.Option(False, "--json", help="Print OpenAI-format tool definitions"),
) -> None:
    """List the tools of the active MCP server."""

    async def action(controller, registry, snapshot):
        return snapshot, registry.list_tools()

    with console.status("[bold blue]Connecting..."):
        snapshot, tools = asyncio.run(_with_connection(action))

    if snapshot.status != ConnectionStatus.CONNECTED:
        console.print(f"[bold]Status:[/bold] {_format_status(snapshot)}")
        raise typer.Exit(1 if snapshot.status == ConnectionStatus.ERROR else 0)

    if as_json:
        console.print_json(json.dumps([tool.definition.to_openai_format() for tool in tools]))
        return

    table = Table(title="MCP Tools", show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Parameters")

    for tool in tools:
        function = tool.definition.function
        params = ", ".join(function.parameters.get("properties", {}).keys()) or "-"
        description = function.description
        table.add_row(
            function.name,
            description[:60] + "..." if len(description) > 60 else description,
            params,
        )

    console.print(table)


@mcp_app.command("call")
def mcp_call(
    tool_name: str = typer.Argument(..., help="Name of the tool"),
    args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object"),
) -> None:
    """Call a tool on the active MCP server."""
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] --args is not valid JSON: {e}")
        raise typer.Exit(1)

    if not isinstance(arguments, dict):
        console.print("[red]Error:[/red] --args must be a JSON object")
        raise typer.Exit(1)

    async def action(controller, registry, snapshot):
        if snapshot.status != ConnectionStatus.CONNECTED:
            return snapshot, None
        result = await registry.execute(ToolCall(id="cli", name=tool_name, arguments=arguments))
        return snapshot, result

    with console.status(f"[bold blue]Calling {tool_name}..."):
        snapshot, result = asyncio.run(_with_connection(action))

    if result is None:
        console.print(f"[bold]Status:[/bold] {_format_status(snapshot)}")
        raise typer.Exit(1)

    _print_result(result)
    if not result.success:
        raise typer.Exit(1)


def _print_result(result: ToolResult) -> None:
    if not result.success:
        console.print(f"[red]Tool failed:[/red] {result.error}")
        return

    if isinstance(result.result, str):
        console.print(result.result)
    else:
        console.print_json(json.dumps(result.result, default=str))
