from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from models.sync_state import ConnectionState
from services.backend_client import InboxBackendClient
from services.inbox_pipeline import FetchOutcome, FetchResult, InboxPipeline, MessageSummary, MessageView, TriggerResult
from services.status_sync import StatusSyncChannel, WebSocketTransport
from utils.config import AppConfig, load_config
from utils.logger import configure_logging


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    console: Console

    def build_pipeline(self) -> InboxPipeline:
        backend = InboxBackendClient(self.config.api_url, timeout=self.config.request_timeout)
        channel = StatusSyncChannel(WebSocketTransport(self.config.ws_url))
        return InboxPipeline(backend, channel)


def build_context(env_file: str) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level)
    return AppContext(config=config, console=Console())


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.pass_context
def cli(ctx: click.Context, env_file: str) -> None:
    """Inspect the latest message of an inbox and follow its verification link."""

    try:
        ctx.obj = build_context(env_file)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--env-file") from exc


@cli.command("inspect")
@click.argument("address")
@click.option("--verify/--no-verify", default=False, help="Trigger the verification link if one is found")
@click.option("--watch", type=int, default=0, show_default=True, help="Seconds to keep listening for status updates")
@click.pass_obj
def inspect_inbox(app: AppContext, address: str, verify: bool, watch: int) -> None:
    """Fetch and display the latest message for ADDRESS."""

    if not address.strip():
        raise click.BadParameter("Please enter a valid address", param_hint="ADDRESS")
    asyncio.run(_inspect(app, address, verify, watch))


@cli.command("message")
@click.argument("message_id")
@click.option("--address", default=None, help="Mailbox address, required with --verify")
@click.option("--verify/--no-verify", default=False, help="Trigger the verification link if one is found")
@click.pass_obj
def show_message(app: AppContext, message_id: str, address: Optional[str], verify: bool) -> None:
    """Fetch and display a single message by id."""

    if verify and not address:
        raise click.BadParameter("--address is required with --verify", param_hint="--address")
    asyncio.run(_show_message(app, message_id, address, verify))


def main() -> None:
    cli(standalone_mode=True)


async def _inspect(app: AppContext, address: str, verify: bool, watch: int) -> None:
    pipeline = app.build_pipeline()
    try:
        outcome = await pipeline.inspect(address)
        if not _report_outcome(app, outcome, f"No messages found for {address}"):
            return
        _render_summaries(app, address.strip(), pipeline.summaries)
        _render_view(app, pipeline.view())
        app.console.print(f"[dim]Live updates: {pipeline.connection_state.value}[/dim]")
        if verify:
            await _trigger(app, pipeline)
        if watch > 0:
            await _watch(app, pipeline, watch)
    finally:
        await pipeline.close()


async def _show_message(app: AppContext, message_id: str, address: Optional[str], verify: bool) -> None:
    pipeline = app.build_pipeline()
    pipeline.address = address
    try:
        outcome = await pipeline.select(message_id)
        if not _report_outcome(app, outcome, f"Message {message_id} not found"):
            return
        _render_view(app, pipeline.view())
        if verify:
            await _trigger(app, pipeline)
    finally:
        await pipeline.close()


async def _trigger(app: AppContext, pipeline: InboxPipeline) -> None:
    result = await pipeline.trigger_verification()
    if result is TriggerResult.TRIGGERED:
        app.console.print("[bold blue]Verification triggered.[/bold blue]")
    elif result is TriggerResult.NO_LINK:
        app.console.print("[yellow]No verification link found in this message.[/yellow]")
    elif result is TriggerResult.NO_MESSAGE:
        app.console.print("[yellow]No message selected.[/yellow]")
    else:
        app.console.print("[bold red]Failed to trigger verification.[/bold red]")


async def _watch(app: AppContext, pipeline: InboxPipeline, seconds: int) -> None:
    app.console.print(f"Listening for status updates for {seconds} second(s). Press Ctrl+C to stop.")
    seen = pipeline.statuses
    for _ in range(seconds):
        await asyncio.sleep(1)
        current = pipeline.statuses
        for message_id, status in current.items():
            if seen.get(message_id) != status:
                app.console.print(f"[bold]{escape(message_id)}[/bold]: {escape(status)}")
        seen = current
        if pipeline.connection_state is ConnectionState.CLOSED:
            app.console.print("[yellow]Live updates stopped; run inspect again to resubscribe.[/yellow]")
            return


def _report_outcome(app: AppContext, outcome: FetchOutcome, not_found: str) -> bool:
    if outcome.result is FetchResult.FAILED:
        app.console.print(f"[bold red]Failed to fetch messages:[/bold red] {escape(outcome.error or '')}")
        raise click.exceptions.Exit(1)
    if outcome.result is FetchResult.NOT_FOUND:
        app.console.print(f"[yellow]{not_found}[/yellow]")
        return False
    return True


def _render_summaries(app: AppContext, address: str, summaries: List[MessageSummary]) -> None:
    table = Table(title=f"Latest messages for {escape(address)}")
    table.add_column("ID", overflow="fold")
    table.add_column("Snippet")
    for summary in summaries:
        table.add_row(escape(summary.id), escape(summary.snippet))
    app.console.print(table)


def _render_view(app: AppContext, view: MessageView | None) -> None:
    if view is None:
        return
    table = Table(title=f"Message {view.id}", show_header=False)
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    table.add_row("From", escape(view.headers.get("from") or "N/A"))
    table.add_row("To", escape(view.headers.get("to") or "N/A"))
    table.add_row("Subject", escape(view.headers.get("subject") or "N/A"))
    table.add_row("Date", escape(format_date(view.headers.get("date"))))
    table.add_row("Status", escape(view.status or "N/A"))
    app.console.print(table)

    body = view.html_content or view.text_content or "No content available."
    app.console.print(Panel(Text(body), title="HTML" if view.html_content else "Text", expand=False))

    if view.verify_url:
        app.console.print("[bold]Verification URL[/bold]")
        app.console.print(view.verify_url, markup=False, soft_wrap=True)


def format_date(value: str | None) -> str:
    """Render a Date header in local time, echoing anything unparseable."""

    if not value:
        return "N/A"
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        LOGGER.debug("Unable to parse date header: %s", value)
        return value
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


if __name__ == "__main__":
    main()
