from typing import Dict, Optional, Tuple

import click
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from commands.common import (
    close_on_exit,
    format_time_ago,
    get_config,
    get_console,
    get_provider_table,
    is_verbose,
    report_error,
    split_list,
)
from core.contracts.models import RepoInfo
from core.formatter.extractor import fallback_issue
from core.github.auth import GitHubAuthenticator
from core.github.client import GitHubClient
from core.github.code_refs import append_missing_refs, expand_code_refs, read_code_refs
from core.github.repo import get_current_repo
from core.pipeline import LLMFeedbackEngine, create_feedback_engine
from utils.errors import NoIdeaError
from utils.git import get_changed_files, get_repo_root
from utils.logger import logger

CLOSING_TOPIC = "Closing this issue"


def _connect(ctx) -> Tuple[RepoInfo, GitHubClient]:
    config = get_config(ctx)
    repo = get_current_repo()
    token = GitHubAuthenticator(env_var=config.github.token_env_var).require_token()
    client = GitHubClient(token=token, api_url=config.github.api_url, timeout_sec=config.github.timeout_sec)
    return repo, close_on_exit(ctx, client)


def _ai_engine(ctx, personality: Optional[str] = None) -> Optional[LLMFeedbackEngine]:
    engine = create_feedback_engine(
        get_config(ctx),
        personality_name=personality,
        use_ai=True,
        table=get_provider_table(ctx),
    )
    if isinstance(engine, LLMFeedbackEngine):
        return close_on_exit(ctx, engine)
    get_console(ctx).print("[yellow]No API key configured, AI generation is not available.[/yellow]")
    return None


def _code_refs(files) -> Dict[str, str]:
    paths = split_list(files)
    if not paths:
        return {}
    return read_code_refs(paths, root=get_repo_root())


def _state_style(state: str) -> str:
    return "green" if state == "open" else "magenta"


@click.group("issue")
def issue_group():
    """
    Manage GitHub issues of the current repository.
    """
    pass


@issue_group.command("list")
@click.option("--state", type=click.Choice(["open", "closed", "all"]), default="open", show_default=True)
@click.option("--limit", type=click.IntRange(min=1), default=10, show_default=True, help="Maximum number of issues to show.")
@click.option("--open", "only_open", is_flag=True, help="Shortcut for --state open.")
@click.option("--closed", "only_closed", is_flag=True, help="Shortcut for --state closed.")
@click.pass_context
def list_issues(ctx, state: str, limit: int, only_open: bool, only_closed: bool):
    """List issues."""
    console = get_console(ctx)
    if only_closed:
        state = "closed"
    elif only_open:
        state = "open"

    try:
        repo, client = _connect(ctx)
        with console.status(f"Fetching {state} issues from {repo.full_name}..."):
            issues = client.list_issues(repo, state=state, limit=limit)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    if not issues:
        console.print(f"[yellow]No {state} issues found in {repo.full_name}.[/yellow]")
        return

    table = Table(title=f"Issues in {repo.full_name}", show_header=True, header_style="bold cyan")
    table.add_column("#", style="bold", justify="right")
    table.add_column("Title")
    table.add_column("State")
    table.add_column("Labels", style="yellow")
    table.add_column("Updated", style="dim")
    for issue in issues:
        style = _state_style(issue.state)
        table.add_row(
            str(issue.number),
            escape(issue.title),
            f"[{style}]{issue.state}[/{style}]",
            escape(", ".join(issue.labels)),
            format_time_ago(issue.updated_at),
        )
    console.print(table)


@issue_group.command("view")
@click.argument("number", type=int)
@click.pass_context
def view_issue(ctx, number: int):
    """Show a single issue."""
    console = get_console(ctx)
    try:
        repo, client = _connect(ctx)
        issue = client.get_issue(repo, number)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    style = _state_style(issue.state)
    console.print(f"\n[bold]#{issue.number} {escape(issue.title)}[/bold]  [{style}]{issue.state}[/{style}]")
    console.print(f"[dim]Opened by {escape(issue.author or 'unknown')} {format_time_ago(issue.created_at)}, {issue.comments} comments[/dim]")
    if issue.labels:
        console.print(f"Labels: [yellow]{escape(', '.join(issue.labels))}[/yellow]")
    if issue.assignees:
        console.print(f"Assignees: {escape(', '.join(issue.assignees))}")
    if issue.milestone:
        console.print(f"Milestone: {escape(issue.milestone)}")
    console.print()
    console.print(Panel(Markdown(issue.body or "_No description provided._"), border_style="cyan"))
    console.print(f"[dim]{issue.url}[/dim]")


@issue_group.command("create")
@click.option("-t", "--title", type=str, default=None, help="Issue title.")
@click.option("-b", "--body", type=str, default=None, help="Issue body; with --ai, the description to expand.")
@click.option("-l", "--labels", multiple=True, help="Labels to apply (repeatable or comma-separated).")
@click.option("--ai", "use_ai", is_flag=True, help="Draft the title and body with AI.")
@click.option("-p", "--personality", type=str, default=None, help="Personality used for the AI draft.")
@click.option("-f", "--files", multiple=True, help="Files to reference in the issue (repeatable or comma-separated).")
@click.option("--context", "additional_context", type=str, default="", help="Additional context for the AI draft.")
@click.option("--scan", is_flag=True, help="Reference all files changed in the working tree.")
@click.pass_context
def create_issue(
    ctx,
    title: Optional[str],
    body: Optional[str],
    labels,
    use_ai: bool,
    personality: Optional[str],
    files,
    additional_context: str,
    scan: bool,
):
    """
    Create an issue, optionally drafted by AI and with code references.
    """
    config = get_config(ctx)
    console = get_console(ctx)

    try:
        repo, client = _connect(ctx)
        paths = list(files)
        if scan:
            changed = get_changed_files()
            logger.debug(f"Scan found {len(changed)} changed files")
            paths.extend(changed)
        code_refs = _code_refs(paths)

        if use_ai:
            description = body or title
            if not description:
                description = click.prompt("Describe the issue")
            engine = _ai_engine(ctx, personality)
            if engine:
                with console.status("[bold green]🧠 Drafting issue...[/bold green]"):
                    title, body = engine.draft_issue(description, repo, code_refs, additional_context)
            else:
                title, body = fallback_issue(description, repo)
        elif not title:
            title = click.prompt("Issue title")

        body = append_missing_refs(body or "", code_refs)
        body = expand_code_refs(body, code_refs, config.trimmer.max_lines)

        console.print(Panel(
            Markdown(body or "_No description provided._"),
            title=f"[bold cyan]{escape(title)}[/bold cyan]",
            border_style="cyan",
        ))
        with console.status("Creating issue..."):
            issue = client.create_issue(repo, title, body, split_list(labels))
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    console.print(f"[bold green]✅ Created issue #{issue.number}:[/bold green] {issue.url}")


@issue_group.command("close")
@click.argument("number", type=int)
@click.option("-q", "--quiet", is_flag=True, help="Only print errors.")
@click.option("-c", "--comment", type=str, default=None, help="Comment to post before closing.")
@click.option("--ai", "use_ai", is_flag=True, help="Write the closing comment with AI.")
@click.pass_context
def close_issue(ctx, number: int, quiet: bool, comment: Optional[str], use_ai: bool):
    """Close an issue, optionally with a comment."""
    console = get_console(ctx)
    try:
        repo, client = _connect(ctx)
        if use_ai:
            engine = _ai_engine(ctx)
            if engine:
                issue = client.get_issue(repo, number)
                comment = engine.draft_comment(comment or CLOSING_TOPIC, issue)
        issue = client.close_issue(repo, number, comment)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    if not quiet:
        console.print(f"[bold green]✅ Closed issue #{issue.number}:[/bold green] {escape(issue.title)}")


@issue_group.command("comment")
@click.argument("number", type=int)
@click.option("-b", "--body", type=str, default=None, help="Comment text; with --ai, the topic to write about.")
@click.option("--ai", "use_ai", is_flag=True, help="Write the comment with AI.")
@click.option("-f", "--files", multiple=True, help="Files to reference in the comment.")
@click.pass_context
def comment_issue(ctx, number: int, body: Optional[str], use_ai: bool, files):
    """Comment on an issue."""
    config = get_config(ctx)
    console = get_console(ctx)
    try:
        repo, client = _connect(ctx)
        code_refs = _code_refs(files)
        if not body:
            body = click.prompt("Comment" if not use_ai else "What should the comment be about")

        if use_ai:
            engine = _ai_engine(ctx)
            if engine:
                issue = client.get_issue(repo, number)
                with console.status("[bold green]🧠 Writing comment...[/bold green]"):
                    body = engine.draft_comment(body, issue)

        body = expand_code_refs(append_missing_refs(body, code_refs), code_refs, config.trimmer.max_lines)
        url = client.add_comment(repo, number, body)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return

    console.print(f"[bold green]✅ Comment added to issue #{number}[/bold green] {url}")
