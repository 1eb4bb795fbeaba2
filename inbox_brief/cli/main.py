"""CLI entry point for the inbox briefing."""

import logging

import click
from dotenv import load_dotenv

from inbox_brief.briefing.controller import BriefingController
from inbox_brief.briefing.pipeline import BriefingPipeline
from inbox_brief.briefing.state import StateStore

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Daily inbox briefing — refresh, show, and step between briefings."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,  # keep CLI output clean
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj = BriefingController(StateStore(), BriefingPipeline())


# Import and register commands after cli is defined to avoid circular imports.
from inbox_brief.cli.commands import current, previous, refresh, show, watch  # noqa: E402

cli.add_command(show)
cli.add_command(refresh)
cli.add_command(previous)
cli.add_command(current)
cli.add_command(watch)
