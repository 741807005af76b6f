import asyncio
import importlib.util
import json
import sys
from pathlib import Path
from types import ModuleType
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .actions import get_registered_actions
from .core import Worker
from .messaging import MessageSender
from .schemas import EntityType, MessageConfig, OutboundMessage, Settings

app = typer.Typer(
    name="busworq",
    help="busworq: run async actions on Azure Service Bus messages",
    add_completion=False,
)

console = Console()

EXAMPLE_CONFIG = """from busworq import MessageConfig, ReceiverCreate, Settings, register_action
from busworq.serialization import decode_body


@register_action("Print message")
async def print_message(message) -> None:
    \"\"\"Print the decoded body of a received message\"\"\"
    print(decode_body(message))


# Connection details are read from SERVICE_BUS_HOST, SERVICE_BUS_USER and
# SERVICE_BUS_PASSWORD (or SERVICE_BUS_CONNECTION_STRING)
receivers = [
    ReceiverCreate(
        config=MessageConfig.from_env("my-queue"),
        action="print_message",
    ),
]

settings = Settings.from_env(
    api_on=False,
    api_host="localhost",
    api_port=8000,
)
"""


def create_example_config(config_path: Path) -> None:
    """Create example configuration file"""
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)


def load_config_module(config: str) -> ModuleType:
    """Import a worker configuration file as a module."""
    config_path = Path(config).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    # Let the config import its own sibling modules
    if str(config_path.parent) not in sys.path:
        sys.path.append(str(config_path.parent))

    spec = importlib.util.spec_from_file_location("config", config_path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config from {config_path}")

    config_module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(config_module)
    return config_module


@app.command()
def init(
    path: str = typer.Option(
        ".",
        "--path",
        "-p",
        help="Path where the configuration should be initialized",
    )
) -> None:
    """Initialize a new busworq workspace"""
    try:
        workspace_path = Path(path).resolve()
        workspace_path.mkdir(parents=True, exist_ok=True)

        config_path = workspace_path / "config.py"
        if config_path.exists():
            if not typer.confirm(
                "Configuration file already exists. Do you want to overwrite it?"
            ):
                raise typer.Abort()

        create_example_config(config_path)

        console.print()
        console.print(
            Panel.fit(
                "[green]✓[/green] busworq workspace initialized successfully!\n\n"
                f"[bold]Configuration file created:[/bold] {config_path}\n\n"
                "To get started:\n"
                f"1. Edit the configuration file: {config_path}\n"
                "2. Run the worker: [bold]busworq run[/bold]",
                title="busworq Initialization",
                border_style="green",
            )
        )

    except typer.Abort:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/red] Failed to initialize workspace: {str(e)}")
        raise typer.Exit(1)


@app.command()
def run(
    config: str = typer.Option(
        "config.py",
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    server: bool = typer.Option(
        False,
        "--server",
        "-s",
        help="Start the status web server",
    ),
) -> None:
    """Start the busworq worker"""
    try:
        config_module = load_config_module(config)

        settings = getattr(config_module, "settings", None) or Settings.from_env()
        receivers = getattr(config_module, "receivers", [])

        if server:
            settings.api_on = True

        console.print()
        console.print(
            Panel.fit(
                "[green]✓[/green] Starting busworq...\n\n"
                f"[bold]Configuration:[/bold] {Path(config).resolve()}\n"
                f"[bold]Status Server:[/bold] {'Enabled' if settings.api_on else 'Disabled'}\n"
                f"[bold]Telemetry:[/bold] {'Enabled' if settings.appinsights_key else 'Disabled'}\n"
                f"[bold]Receivers:[/bold] {len(receivers)}",
                title="busworq Startup",
                border_style="green",
            )
        )

        Worker(settings=settings, receivers=receivers).run_sync()

    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    except Exception as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)


@app.command()
def actions(
    config: str = typer.Option(
        "config.py",
        "--config",
        "-c",
        help="Path to configuration file",
    ),
) -> None:
    """List the actions registered by a configuration file"""
    try:
        load_config_module(config)
    except Exception as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)

    table = Table(title="Registered actions")
    table.add_column("Name", style="bold")
    table.add_column("Title")
    table.add_column("Description")
    for action in get_registered_actions().values():
        table.add_row(action.name, action.title, (action.description or "").strip())
    console.print(table)


@app.command()
def send(
    address: str = typer.Option(..., "--address", "-a", help="Queue or topic name"),
    body: str = typer.Option(..., "--body", "-b", help="JSON message body"),
    entity_type: EntityType = typer.Option(
        EntityType.QUEUE,
        "--type",
        "-t",
        help="Entity type",
    ),
    subject: Optional[str] = typer.Option(None, "--subject", help="Message subject"),
    correlation_id: Optional[str] = typer.Option(
        None,
        "--correlation-id",
        help="Correlation id",
    ),
) -> None:
    """Send a JSON message (connection details come from SERVICE_BUS_* variables)"""
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Body is not valid JSON: {str(e)}")
        raise typer.Exit(1)

    async def _send() -> None:
        message_config = MessageConfig.from_env(address, type=entity_type)
        async with MessageSender(message_config) as sender:
            await sender.send_message(
                OutboundMessage(
                    body=payload,
                    subject=subject,
                    correlation_id=correlation_id,
                )
            )

    try:
        asyncio.run(_send())
    except Exception as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Message sent to {address}")


def main() -> None:
    app()
