"""openribcage CLI — discover and talk to A2A agents from the terminal.

    openribcage discover http://localhost:8083/api/a2a/kagent/k8s-agent
    openribcage send http://localhost:8083/api/a2a/kagent/k8s-agent "cluster status?"
    openribcage stream http://localhost:8083/api/a2a/kagent/k8s-agent "watch pods"
"""

from __future__ import annotations

import contextlib

import orjson
import typer
from rich.console import Console
from rich.table import Table

from openribcage import __version__
from openribcage.a2a.models import AgentCard, Message, TaskRequest
from openribcage.cli.context import (
    build_client,
    build_discoverer,
    configure_logging,
    run_async,
)
from openribcage.exceptions import AgentCardValidationError, OpenRibcageError

console = Console()

app = typer.Typer(
    name="openribcage",
    help="openribcage -- A2A protocol client: discover agents, send tasks, stream updates.",
    no_args_is_help=True,
)


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    configure_logging(verbose)


def _fail(e: Exception) -> None:
    console.print(f"[red]{type(e).__name__}:[/red] {e}")
    raise typer.Exit(code=1)


def _dump(obj) -> str:
    return orjson.dumps(
        obj.model_dump(mode="json", by_alias=True, exclude_none=True),
        option=orjson.OPT_INDENT_2,
    ).decode()


def _print_card_summary(card: AgentCard) -> None:
    table = Table(title=f"{card.name} {card.version}")
    table.add_column("Type", style="cyan")
    table.add_column("URL", style="white")
    table.add_column("Methods", style="blue")
    for ep in card.endpoints:
        table.add_row(ep.type, ep.url, ", ".join(ep.methods))
    console.print(table)
    caps = card.capabilities.enabled()
    console.print(f"[dim]Capabilities: {', '.join(caps) if caps else 'none'}[/dim]")


@app.command("discover")
def discover(
    agent_url: str = typer.Argument(help="Agent base URL"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-attempt timeout (s)"),
):
    """Fetch an agent's AgentCard and print it as JSON."""
    try:
        card = run_async(build_discoverer(timeout).discover(agent_url))
    except (OpenRibcageError, ValueError) as e:
        _fail(e)
    typer.echo(_dump(card))


@app.command("validate")
def validate(
    agent_url: str = typer.Argument(help="Agent base URL"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-attempt timeout (s)"),
):
    """Fetch an AgentCard and report whether it is valid."""
    try:
        card = run_async(build_discoverer(timeout).discover(agent_url))
    except AgentCardValidationError as e:
        console.print(f"[red]Invalid[/red] AgentCard: {e.field}: {e.reason}")
        raise typer.Exit(code=1)
    except (OpenRibcageError, ValueError) as e:
        _fail(e)
    console.print(f"[green]Valid[/green] AgentCard: [bold]{card.name}[/bold]")
    _print_card_summary(card)


@app.command("send")
def send(
    agent: str = typer.Argument(help="Agent RPC URL, or id under OPENRIBCAGE_BASE_URL"),
    text: str = typer.Argument(help="Message text"),
    task_id: str = typer.Option(None, "--task-id", help="Task id (generated if omitted)"),
):
    """Send a task and print the response."""
    request = TaskRequest(message=Message.text(text))
    if task_id:
        request.id = task_id
    try:
        response = run_async(build_client().send_task(agent, request))
    except (OpenRibcageError, ValueError) as e:
        _fail(e)
    typer.echo(_dump(response))


@app.command("stream")
def stream(
    agent: str = typer.Argument(help="Agent RPC URL, or id under OPENRIBCAGE_BASE_URL"),
    text: str = typer.Argument(help="Message text"),
):
    """Send a task and print streamed updates as they arrive."""
    request = TaskRequest(message=Message.text(text))

    async def _consume() -> int:
        client = build_client()
        count = 0
        async with contextlib.aclosing(client.stream_task(agent, request)) as events:
            async for event in events:
                count += 1
                typer.echo(_dump(event))
                if event.done:
                    break
        return count

    try:
        count = run_async(_consume())
    except KeyboardInterrupt:
        console.print("\n[dim]Stream cancelled.[/dim]")
        raise typer.Exit(code=130)
    except (OpenRibcageError, ValueError) as e:
        _fail(e)
    console.print(f"[dim]{count} events[/dim]")


@app.command("status")
def status(
    agent: str = typer.Argument(help="Agent RPC URL, or id under OPENRIBCAGE_BASE_URL"),
    task_id: str = typer.Argument(help="Task id"),
):
    """Show the status of a task."""
    try:
        task_status = run_async(build_client().get_task_status(agent, task_id))
    except (OpenRibcageError, ValueError) as e:
        _fail(e)
    typer.echo(_dump(task_status))


@app.command("cancel")
def cancel(
    agent: str = typer.Argument(help="Agent RPC URL, or id under OPENRIBCAGE_BASE_URL"),
    task_id: str = typer.Argument(help="Task id"),
):
    """Cancel a running task."""
    try:
        run_async(build_client().cancel_task(agent, task_id))
    except (OpenRibcageError, ValueError) as e:
        _fail(e)
    console.print(f"[green]Cancelled task {task_id}[/green]")


@app.command("version")
def version():
    """Show the installed version."""
    typer.echo(__version__)


if __name__ == "__main__":
    app()
