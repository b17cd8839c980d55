import datetime
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from config.models import Config
from core.llm.router import ProviderTable, default_provider_table
from utils.errors import MissingCredentialError, NoIdeaError
from utils.logger import logger

TIME_UNITS = (
    (60 * 60, 60, "minute"),
    (24 * 60 * 60, 60 * 60, "hour"),
    (30 * 24 * 60 * 60, 24 * 60 * 60, "day"),
    (365 * 24 * 60 * 60, 30 * 24 * 60 * 60, "month"),
    (float("inf"), 365 * 24 * 60 * 60, "year"),
)


def get_config(ctx: click.Context) -> Config:
    obj = ctx.find_root().obj or {}
    return obj.get("config") or Config()


def get_console(ctx: click.Context) -> Console:
    obj = ctx.find_root().obj or {}
    return obj.get("console") or Console()


def get_provider_table(ctx: click.Context) -> ProviderTable:
    obj = ctx.find_root().obj or {}
    return obj.get("providers") or default_provider_table()


def is_verbose(ctx: click.Context) -> bool:
    return bool((ctx.find_root().obj or {}).get("verbose"))


def close_on_exit(ctx: click.Context, resource):
    """Closes `resource` (an HTTP client or engine) when the command's context is torn down."""
    close = getattr(resource, "close", None)
    if close is not None:
        ctx.call_on_close(close)
    return resource


def report_error(console: Console, error: NoIdeaError, verbose: bool = False, quiet: bool = False) -> None:
    """Logs a handled error and prints it, unless running quietly inside a hook."""
    logger.error(f"{type(error).__name__}: {error}")
    if verbose:
        logger.exception(error)
    if quiet:
        return
    if isinstance(error, MissingCredentialError):
        console.print(f"[bold yellow]⚠️  {escape(str(error))}[/bold yellow]")
    else:
        console.print(f"[bold red]❌ Error:[/bold red] {escape(str(error))}")


def split_list(values) -> list:
    """Flattens repeated and comma-separated option values."""
    items = []
    for value in values or ():
        items.extend(part.strip() for part in value.split(",") if part.strip())
    return items


def format_time_ago(moment: Optional[datetime.datetime], now: Optional[datetime.datetime] = None) -> str:
    if moment is None:
        return "unknown"
    now = now or datetime.datetime.now(moment.tzinfo)
    seconds = (now - moment).total_seconds()
    if seconds < 60:
        return "just now"

    for limit, size, unit in TIME_UNITS:
        if seconds < limit:
            break
    count = int(seconds // size)
    return f"{count} {unit}{'' if count == 1 else 's'} ago"
