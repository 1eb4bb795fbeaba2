"""CLI command implementations — all commands delegate to BriefingController."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

import click
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from inbox_brief.briefing.scheduler import create_briefing_scheduler
from inbox_brief.briefing.state import ActiveSlot, BriefingState

if TYPE_CHECKING:
    from inbox_brief.briefing.controller import BriefingController

logger = logging.getLogger(__name__)
console = Console(width=100)

_EMPTY_BRIEFING = "No new mail since yesterday."


def render(state: BriefingState) -> None:
    """Print the on-screen briefing with its status label."""
    # Text() rather than a markup string: briefings and errors quote raw email.
    body = Text(state.summary) if state.summary else Text(_EMPTY_BRIEFING, style="dim")
    title = "Previous briefing" if state.active is ActiveSlot.PREVIOUS else "Morning briefing"
    style = "red" if state.summary.startswith("Error: ") else "green"
    console.print(
        Panel(
            body,
            title=f"[bold]{title}[/bold]",
            subtitle=Text(state.last_updated_label, style="dim"),
            border_style=style,
        )
    )


@click.command()
@click.pass_obj
def show(controller: BriefingController) -> None:
    """Show the briefing currently on screen."""
    render(controller.state)


@click.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """Read yesterday's and today's mail and generate a new briefing."""
    controller: BriefingController = ctx.obj
    with console.status("Reading inbox..."):
        result = asyncio.run(controller.refresh())
    render(controller.state)
    if result is not None and not result.ok:
        ctx.exit(1)


@click.command()
@click.pass_obj
def previous(controller: BriefingController) -> None:
    """Switch to the briefing before the latest one."""
    if not controller.view_previous():
        console.print("[yellow]No previous briefing yet.[/yellow]")
        return
    render(controller.state)


@click.command()
@click.pass_obj
def current(controller: BriefingController) -> None:
    """Switch back to the latest briefing."""
    if not controller.view_current():
        console.print("[yellow]No briefing yet. Run `inbox-brief refresh` first.[/yellow]")
        return
    render(controller.state)


@click.command()
@click.option("--now", "refresh_now", is_flag=True, help="Refresh once immediately on start.")
@click.pass_obj
def watch(controller: BriefingController, refresh_now: bool) -> None:
    """Stay running and refresh the briefing daily at BRIEFING_TIME."""
    root = logging.getLogger()
    if root.level > logging.INFO:
        root.setLevel(logging.INFO)
    try:
        asyncio.run(_watch_async(controller, refresh_now))
    except KeyboardInterrupt:
        # Ctrl+C on Windows (no add_signal_handler) arrives here
        logger.info("Interrupted — goodbye")


async def _watch_async(controller: BriefingController, refresh_now: bool) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
    except (NotImplementedError, AttributeError):
        pass

    def _on_job_done(event: JobExecutionEvent) -> None:
        if event.exception is not None:
            logger.error("Scheduled refresh failed: %s", event.exception)
        render(controller.state)

    scheduler = create_briefing_scheduler(controller)
    scheduler.add_listener(_on_job_done, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.start()
    try:
        if refresh_now:
            await controller.refresh()
            render(controller.state)
        await stop.wait()
    finally:
        controller.cancel_refresh()
        scheduler.shutdown(wait=False)
