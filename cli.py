from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# imported for their registration side effects
import core.collectors.diff_collector
import core.collectors.history_collector

from commands.common import close_on_exit, get_config, get_console, get_provider_table, is_verbose, report_error
from commands.config_cmd import config_group
from commands.issue import issue_group
from config.logic import load_and_merge_configs, load_env_files
from config.models import Config
from config.personalities import load_personalities
from core.background import start_api_key_check, start_update_check
from core.contracts.models import CommitContext
from core.diff.parser import parse_diff
from core.github.client import GitHubClient
from core.hooks import POST_COMMIT, PREPARE_COMMIT_MSG, HookInstaller, hook_installed
from core.llm.router import default_provider_table
from core.moai import random_face
from core.pipeline import LLMFeedbackEngine, LocalFeedbackEngine, create_feedback_engine, local_commit_suggestion
from core.registry import collector_registry
from core.update import CURRENT_VERSION, get_latest_version, is_newer_version, upgrade_command
from utils.errors import CollectorError, ConfigError, FormatterError, NoIdeaError, ProviderError
from utils.git import (
    get_config_value,
    get_recent_patch,
    get_repo_name,
    get_user_name,
    has_staged_changes,
    is_git_repository,
    set_config_value,
)
from utils.logger import logger, setup_logger

MOAI_HISTORY_SIZE = 5


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging for debugging.")
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a custom configuration file.",
)
@click.version_option(CURRENT_VERSION, "--version", prog_name="noidea")
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[str]):
    """
    noidea: a Git companion that suggests commit messages, gives Moai
    feedback on your commits and manages GitHub issues.
    """
    setup_logger(log_level="DEBUG" if verbose else "WARNING")
    console = Console()
    load_env_files()

    try:
        config = load_and_merge_configs(custom_config_path=config_path)
    except ConfigError as e:
        report_error(console, e, verbose)
        config = Config()

    providers = default_provider_table()
    ctx.obj = {"verbose": verbose, "config": config, "console": console, "providers": providers}

    if ctx.invoked_subcommand != "update":
        start_update_check(config, Console(stderr=True))
    start_api_key_check(config, Console(stderr=True), ctx.invoked_subcommand, providers)


cli.add_command(issue_group)
cli.add_command(config_group)


def _write_message_file(path: str, message: str) -> None:
    """Puts the message above whatever git already wrote (usually comments)."""
    target = Path(path)
    try:
        existing = target.read_text(encoding="utf-8") if target.exists() else ""
        target.write_text(f"{message}\n{existing}", encoding="utf-8")
    except OSError as e:
        raise CollectorError(f"Could not write commit message file {path}: {e}") from e


@cli.command("suggest")
@click.option("-n", "--history", type=click.IntRange(min=0), default=None, help="Number of recent commit messages to use as context.")
@click.option("-f", "--full-diff", is_flag=True, help="Send the whole diff instead of a truncated one.")
@click.option("-q", "--quiet", is_flag=True, help="Print nothing except errors (used by the git hook).")
@click.option("--file", "file_path", type=click.Path(dir_okay=False), help="Write the suggestion into this commit message file.")
@click.option("--no-ai", is_flag=True, help="Use the local heuristic even if AI is enabled.")
@click.pass_context
def suggest(ctx, history: Optional[int], full_diff: bool, quiet: bool, file_path: Optional[str], no_ai: bool):
    """
    Suggest a commit message for the staged changes.
    """
    config = get_config(ctx)
    console = get_console(ctx)

    try:
        if not is_git_repository():
            raise CollectorError("Not a git repository. Run this command inside a repository.")
        if not has_staged_changes():
            if not quiet:
                console.print("[yellow]No staged changes found. Stage files with 'git add' first.[/yellow]")
            return

        history = config.suggest.history if history is None else history
        max_chars = None if (full_diff or config.suggest.full_diff) else config.suggest.max_diff_chars
        diff_data = collector_registry.create("diff", max_chars=max_chars).collect()
        commits = collector_registry.create("history", n=history).collect()["history"] if history > 0 else []

        analysis = parse_diff(diff_data["raw_diff"], config.file_categories, config.test_markers)
        context = CommitContext(diff=diff_data["diff"], commit_history=commits)

        engine = close_on_exit(ctx, create_feedback_engine(config, use_ai=False if no_ai else None, table=get_provider_table(ctx)))
        message = None
        if isinstance(engine, LLMFeedbackEngine):
            try:
                if quiet:
                    message = engine.suggest_commit_message(context, analysis)
                else:
                    with console.status("[bold green]🧠 Generating commit message suggestion...[/bold green]"):
                        message = engine.suggest_commit_message(context, analysis)
            except ProviderError as e:
                logger.warning(f"AI suggestion failed, using local heuristic: {e}")
                if not quiet:
                    console.print(f"[yellow]AI suggestion failed ({escape(str(e))}), using a local suggestion.[/yellow]")
        if not message:
            message = local_commit_suggestion(analysis)

        if file_path:
            _write_message_file(file_path, message)

        if not quiet:
            console.print(Panel(
                escape(message),
                title="[bold cyan]Suggested commit message[/bold cyan]",
                border_style="cyan",
                expand=False,
            ))
            if not file_path:
                console.print(f"[dim]Use it with:[/dim] git commit -m {escape(repr(message))}")
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx), quiet=quiet)


def _show_personalities(console: Console, config: Config) -> None:
    personalities = load_personalities(config.moai.personality_file)
    table = Table(title="🧠 Available personalities", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="yellow")
    table.add_column("Description")
    for name, personality in personalities.personalities.items():
        marker = " [green](default)[/green]" if name == personalities.default else ""
        table.add_row(f"{name}{marker}", escape(personality.description))
    console.print(table)
    console.print("\nTo use a specific personality:  [cyan]noidea moai --ai --personality=<name>[/cyan]")
    console.print("To set a default personality:   [cyan]export NOIDEA_PERSONALITY=<name>[/cyan] or set moai.personality in .noidea.yaml")


@cli.command("moai")
@click.argument("message", nargs=-1)
@click.option("-a", "--ai", "use_ai", is_flag=True, help="Use AI to generate feedback.")
@click.option("-d", "--diff", "include_diff", is_flag=True, help="Include the last commit's stat summary in the AI context.")
@click.option("-p", "--personality", type=str, default=None, help="Personality to use (default: from config).")
@click.option("-l", "--list-personalities", is_flag=True, help="List available personalities.")
@click.option("-H", "--history", "include_history", is_flag=True, help="Include recent commit history in the AI context.")
@click.option("-D", "--debug", is_flag=True, help="Show provider details when AI generation fails.")
@click.pass_context
def moai(ctx, message, use_ai: bool, include_diff: bool, personality: Optional[str], list_personalities: bool, include_history: bool, debug: bool):
    """
    Display a Moai with feedback on your commit.
    """
    config = get_config(ctx)
    console = get_console(ctx)

    if list_personalities:
        _show_personalities(console, config)
        return

    commit = collector_registry.create("last_commit", include_diff=include_diff).collect()
    commit_message = " ".join(message).strip() or commit["message"]

    console.print(f"  [bold magenta]{escape(random_face())}[/bold magenta]  [bold]{escape(commit_message)}[/bold]\n")

    use_ai = use_ai or config.llm.enabled
    context_kwargs = {"message": commit_message, "diff": commit["diff"]}

    if use_ai and (include_history or config.moai.include_history):
        try:
            recent = collector_registry.create("history", n=MOAI_HISTORY_SIZE, skip=1).collect()
            context_kwargs["commit_history"] = recent["history"]
            context_kwargs["commit_stats"] = recent["stats"]
        except CollectorError as e:
            logger.warning(f"Could not read commit history: {e}")

    context = CommitContext(**context_kwargs)
    engine = close_on_exit(ctx, create_feedback_engine(
        config,
        personality_name=personality,
        use_ai=use_ai,
        table=get_provider_table(ctx),
        username=get_user_name(),
        repo_name=get_repo_name(),
    ))

    if isinstance(engine, LLMFeedbackEngine):
        try:
            with console.status("[dim]Generating AI feedback...[/dim]"):
                feedback = engine.generate_feedback(context)
        except (ProviderError, FormatterError) as e:
            console.print(f"  [yellow]{escape(LocalFeedbackEngine().generate_feedback(context))}[/yellow]\n")
            console.print(f"  [bold red]❌ AI Error:[/bold red] {escape(str(e))}")
            if debug:
                provider = get_provider_table(ctx).resolve(config.llm.provider)
                console.print("\n  [bold cyan]🔍 Debug information:[/bold cyan]")
                console.print(f"    Provider: [cyan]{provider.display_name}[/cyan]")
                console.print(f"    Model: [cyan]{escape(config.llm.model or provider.default_model)}[/cyan]")
                console.print(f"    Base URL: [cyan]{escape(config.llm.base_url or provider.base_url)}[/cyan]")
            return
        for line in feedback.splitlines():
            console.print(f"  [cyan]{escape(line)}[/cyan]" if line else "")
        console.print()
    else:
        console.print(f"  [yellow]{escape(engine.generate_feedback(context))}[/yellow]\n")


def _print_stats(console: Console, title: str, stats: dict) -> None:
    table = Table(title=title, show_header=False, box=None)
    table.add_column("Metric", style="bold")
    table.add_column("Value", style="cyan", justify="right")
    table.add_row("Commits", str(stats.get("total_commits", 0)))
    table.add_row("Authors", str(stats.get("unique_authors", 0)))
    table.add_row("Files changed", str(stats.get("total_files_changed", 0)))
    table.add_row("Lines added", f"+{stats.get('total_insertions', 0)}")
    table.add_row("Lines deleted", f"-{stats.get('total_deletions', 0)}")
    console.print(table)


def _run_analysis(ctx, context: CommitContext, title: str) -> None:
    config = get_config(ctx)
    console = get_console(ctx)
    engine = close_on_exit(ctx, create_feedback_engine(config, table=get_provider_table(ctx)))
    if not isinstance(engine, LLMFeedbackEngine):
        console.print("\n[yellow]Enable AI (llm.enabled: true) and configure an API key for an AI analysis.[/yellow]")
        return
    try:
        with console.status("[bold green]Analyzing commit history...[/bold green]"):
            analysis = engine.generate_summary(context)
    except (ProviderError, FormatterError) as e:
        report_error(console, e, is_verbose(ctx))
        return
    console.print(Panel(escape(analysis), title=f"[bold cyan]{title}[/bold cyan]", border_style="cyan"))


@cli.command("summary")
@click.option("--days", type=click.IntRange(min=1), default=7, show_default=True, help="Number of days of history to summarize.")
@click.pass_context
def summary(ctx, days: int):
    """
    Summarize recent commit history.
    """
    console = get_console(ctx)
    try:
        history = collector_registry.create("history", n=None, days=days).collect()
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    if not history["records"]:
        console.print(f"[yellow]No commits found in the last {days} days.[/yellow]")
        return

    _print_stats(console, f"📊 Last {days} days", history["stats"])
    context = CommitContext(
        message=f"Weekly Summary ({days} days)",
        commit_history=history["history"],
        commit_stats=history["stats"],
    )
    _run_analysis(ctx, context, "Commit history summary")


@cli.command("analyze")
@click.option("-n", "--count", type=click.IntRange(min=1), default=5, show_default=True, help="Number of recent commits to analyze.")
@click.option("-d", "--diff", "include_diff", is_flag=True, help="Include the commits' patches in the analysis.")
@click.pass_context
def analyze(ctx, count: int, include_diff: bool):
    """
    On-demand feedback on the most recent commits.
    """
    config = get_config(ctx)
    console = get_console(ctx)
    try:
        history = collector_registry.create("history", n=count).collect()
        patch = get_recent_patch(count)[:config.suggest.max_diff_chars] if include_diff else None
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    if not history["records"]:
        console.print("[yellow]No commits to analyze yet.[/yellow]")
        return

    _print_stats(console, f"🔍 Last {len(history['records'])} commits", history["stats"])
    context = CommitContext(
        message=f"On-Demand Analysis of the last {count} commits",
        diff=patch,
        commit_history=history["history"],
        commit_stats=history["stats"],
    )
    _run_analysis(ctx, context, "Commit analysis")


@cli.command("init")
@click.option("--suggest/--no-suggest", "enable_suggest", default=True, help="Enable commit message suggestions in the prepare-commit-msg hook.")
@click.pass_context
def init(ctx, enable_suggest: bool):
    """
    Install noidea's git hooks in the current repository.
    """
    config = get_config(ctx)
    console = get_console(ctx)
    try:
        if not is_git_repository():
            raise CollectorError("Not a git repository.")
        installer = HookInstaller(config)
        existing = {name for name in (POST_COMMIT, PREPARE_COMMIT_MSG) if hook_installed(installer.hooks_dir, name)}
        for path in installer.install_all():
            action = "Updated" if path.name in existing else "Installed"
            console.print(f"[green]✓[/green] {action} hook: {escape(str(path))}")
        set_config_value("noidea.suggest", "true" if enable_suggest else "false")
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    state = "enabled" if get_config_value("noidea.suggest") == "true" else "disabled"
    console.print(f"\n[bold green]✅ noidea is set up.[/bold green] Commit message suggestions are {state}.")
    console.print("[dim]Toggle suggestions with: git config noidea.suggest true|false[/dim]")


@cli.command("update")
@click.option("--force", is_flag=True, help="Show upgrade instructions even when already up to date.")
@click.pass_context
def update(ctx, force: bool):
    """
    Check for a newer release of noidea.
    """
    config = get_config(ctx)
    console = get_console(ctx)

    console.print("\n[bold]🔄 Checking for updates[/bold]")
    try:
        with console.status("Fetching latest release information..."), \
                GitHubClient(api_url=config.github.api_url, timeout_sec=config.github.timeout_sec) as client:
            latest = get_latest_version(config.update, client)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    console.print(f"  [magenta]◆[/magenta] [bold]Current version[/bold]: [cyan]{CURRENT_VERSION}[/cyan]")
    console.print(f"  [magenta]◆[/magenta] [bold]Latest version[/bold]: [cyan]{latest or 'unknown'}[/cyan]\n")

    newer = bool(latest) and is_newer_version(latest, CURRENT_VERSION)
    if not newer and not force:
        console.print("  [bold green]✓ Already running the latest version![/bold green]\n")
        return
    console.print(f"  To upgrade, run: [cyan]{upgrade_command()}[/cyan]\n")


if __name__ == "__main__":
    cli()
