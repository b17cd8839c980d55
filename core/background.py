"""
Fire-and-forget checks started alongside a command. Threads are daemons and
are never joined; whatever they print appears whenever they finish.
"""
import threading
from typing import Any, Callable, Optional

from rich.console import Console

from config.models import Config
from core.llm.providers.openai_compatible import validate_api_key
from core.llm.router import ProviderTable, default_provider_table, resolve_api_key
from core.update import CURRENT_VERSION, check_for_update, upgrade_command
from utils.credentials import CredentialStore
from utils.logger import logger

KEY_CHECKED_COMMANDS = ("suggest", "moai", "summary", "analyze")


def run_detached(target: Callable[..., Any], *args: Any, name: str = "noidea-background") -> threading.Thread:
    def runner():
        try:
            target(*args)
        except Exception as e:
            # best effort: failures are only logged
            logger.debug(f"Background task {name} failed: {e}")

    thread = threading.Thread(target=runner, name=name, daemon=True)
    thread.start()
    return thread


def _report_update(config: Config, console: Console) -> None:
    latest = check_for_update(config.update)
    if latest:
        console.print()
        console.print("[bold yellow]🔔 Update available![/bold yellow]")
        console.print(f"A new version of noidea is available: {CURRENT_VERSION} → {latest}")
        console.print(f"To update, run: [cyan]noidea update[/cyan] (or {upgrade_command()})")
        console.print()


def _report_api_key(config: Config, console: Console, table: ProviderTable, credentials: Optional[CredentialStore]) -> None:
    if not config.llm.enabled:
        return
    provider = table.resolve(config.llm.provider)
    key = resolve_api_key(config.llm, provider, credentials)
    if not key:
        return
    valid = validate_api_key(provider, key, config.llm.base_url)
    if valid is False:
        console.print(
            f"\n[bold red]❌ Warning:[/bold red] Your API key for [cyan]{provider.display_name}[/cyan] appears to be invalid.\n"
            "      Please update it with '[cyan]noidea config apikey[/cyan]'\n"
        )


def start_update_check(config: Config, console: Console) -> Optional[threading.Thread]:
    if not config.update.check:
        return None
    return run_detached(_report_update, config, console, name="noidea-update-check")


def start_api_key_check(
    config: Config,
    console: Console,
    command: Optional[str],
    table: Optional[ProviderTable] = None,
    credentials: Optional[CredentialStore] = None,
) -> Optional[threading.Thread]:
    if command not in KEY_CHECKED_COMMANDS or not config.llm.enabled:
        return None
    return run_detached(
        _report_api_key,
        config,
        console,
        table or default_provider_table(),
        credentials,
        name="noidea-api-key-check",
    )
