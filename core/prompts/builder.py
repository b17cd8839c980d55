from typing import Any, Dict, List, Optional, Sequence

from config.models import FileCategoryRule, Personality
from core.contracts.models import CommitContext, DiffAnalysis, Prompt, RepoInfo, TaskKind
from core.diff.parser import DEFAULT_TEST_MARKERS, format_analysis, parse_diff
from core.diff.trimmer import DEFAULT_MAX_LINES, trim_content
from core.formatter.renderer import TemplateRenderer
from core.registry import prompt_registry

ON_DEMAND_MARKER = "On-Demand"
ONE_LINER_MARKERS = ("one-liner", "one sentence")

COMMIT_TYPE_DESCRIPTIONS = (
    ("docs", "for documentation changes"),
    ("feat", "for new features"),
    ("fix", "for bug fixes"),
    ("refactor", "for code restructuring without behavior changes"),
    ("style", "for formatting/style changes"),
    ("test", "for adding or fixing tests"),
    ("chore", "for routine maintenance tasks"),
    ("build", "for changes to build system or dependencies"),
)

COMMIT_TEMPERATURE = 0.3
COMMIT_MAX_TOKENS = 150
ISSUE_TEMPERATURE = 0.7
ISSUE_MAX_TOKENS = 2000
COMMENT_TEMPERATURE = 0.7
COMMENT_MAX_TOKENS = 1000
SUMMARY_MAX_TOKENS = 800


def format_commit_list(commits: Sequence[str]) -> str:
    return "\n".join(f"{i}. {commit}" for i, commit in enumerate(commits, start=1))


def time_of_day(context: CommitContext) -> str:
    hour = context.timestamp.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def is_on_demand(context: CommitContext) -> bool:
    return ON_DEMAND_MARKER in (context.message or "")


def summary_task(context: CommitContext) -> TaskKind:
    return TaskKind.ON_DEMAND_ANALYSIS if is_on_demand(context) else TaskKind.WEEKLY_SUMMARY


def _truncate(text: str, limit: Optional[int]) -> str:
    if limit and len(text) > limit:
        return text[:limit] + "\n... (diff truncated)"
    return text


@prompt_registry.register(TaskKind.COMMIT_SUGGESTION.value)
def build_commit_prompt(
    context: CommitContext,
    personality: Personality,
    renderer: TemplateRenderer,
    analysis: Optional[DiffAnalysis] = None,
    file_categories: Optional[List[FileCategoryRule]] = None,
    test_markers: Sequence[str] = DEFAULT_TEST_MARKERS,
    max_diff_chars: Optional[int] = None,
    **_: Any,
) -> Prompt:
    # commit messages ignore the personality
    diff = context.diff or ""
    if analysis is None:
        analysis = parse_diff(diff, file_categories, test_markers)

    system = renderer.render("commit_system.txt.j2", commit_types=COMMIT_TYPE_DESCRIPTIONS)
    user = renderer.render(
        "commit_user.txt.j2",
        diff=_truncate(diff, max_diff_chars),
        analysis=format_analysis(analysis),
        history=format_commit_list(context.commit_history) or "(none)",
    )
    return Prompt(
        task=TaskKind.COMMIT_SUGGESTION,
        system=system.strip(),
        user=user.strip(),
        temperature=COMMIT_TEMPERATURE,
        max_tokens=COMMIT_MAX_TOKENS,
    )


@prompt_registry.register(TaskKind.FEEDBACK.value)
def build_feedback_prompt(
    context: CommitContext,
    personality: Personality,
    renderer: TemplateRenderer,
    username: str = "User",
    repo_name: str = "repository",
    **_: Any,
) -> Prompt:
    user = renderer.render_string(
        personality.user_prompt_template,
        message=context.message,
        time_of_day=time_of_day(context),
        diff=context.diff or "",
        username=username,
        repo_name=repo_name,
        commit_history=context.commit_history,
        commit_stats=context.commit_stats,
    )
    return Prompt(
        task=TaskKind.FEEDBACK,
        system=personality.system_prompt.strip(),
        user=user.strip(),
        temperature=personality.temperature,
        max_tokens=personality.max_tokens,
    )


@prompt_registry.register(TaskKind.ISSUE_CREATE.value)
def build_issue_prompt(
    context: CommitContext,
    personality: Personality,
    renderer: TemplateRenderer,
    repo: Optional[RepoInfo] = None,
    code_refs: Optional[Dict[str, str]] = None,
    additional_context: str = "",
    max_lines: int = DEFAULT_MAX_LINES,
    **_: Any,
) -> Prompt:
    excerpts = {path: trim_content(content, path, max_lines) for path, content in (code_refs or {}).items()}
    user = renderer.render(
        "issue_user.txt.j2",
        description=context.message,
        code_refs=excerpts,
        additional_context=additional_context,
        repo=repo or RepoInfo(owner="unknown", name="repository"),
    )
    return Prompt(
        task=TaskKind.ISSUE_CREATE,
        system=renderer.render("issue_system.txt.j2").strip(),
        user=user.strip(),
        temperature=ISSUE_TEMPERATURE,
        max_tokens=ISSUE_MAX_TOKENS,
    )


@prompt_registry.register(TaskKind.ISSUE_COMMENT.value)
def build_comment_prompt(
    context: CommitContext,
    personality: Personality,
    renderer: TemplateRenderer,
    issue_number: int = 0,
    issue_title: str = "",
    issue_body: str = "",
    **_: Any,
) -> Prompt:
    user = renderer.render(
        "comment_user.txt.j2",
        topic=context.message,
        issue_number=issue_number,
        issue_title=issue_title,
        issue_body=issue_body,
    )
    return Prompt(
        task=TaskKind.ISSUE_COMMENT,
        system=renderer.render("comment_system.txt.j2").strip(),
        user=user.strip(),
        temperature=COMMENT_TEMPERATURE,
        max_tokens=COMMENT_MAX_TOKENS,
    )


def build_summary_prompt(
    context: CommitContext,
    personality: Personality,
    renderer: TemplateRenderer,
    **_: Any,
) -> Prompt:
    """
    Weekly summary or on-demand analysis, chosen by the 'On-Demand' marker in
    the context message. A one-liner personality is too terse for either, so
    its system prompt gives way to the task's own.
    """
    on_demand = is_on_demand(context)
    prefix = "on_demand" if on_demand else "summary"

    system = personality.system_prompt
    if any(marker in system for marker in ONE_LINER_MARKERS):
        system = renderer.render(f"{prefix}_system.txt.j2")

    user = renderer.render(
        f"{prefix}_user.txt.j2",
        history=format_commit_list(context.commit_history) or "(none)",
        stats=context.commit_stats,
        diff=context.diff or "",
    )
    return Prompt(
        task=TaskKind.ON_DEMAND_ANALYSIS if on_demand else TaskKind.WEEKLY_SUMMARY,
        system=system.strip(),
        user=user.strip(),
        temperature=personality.temperature,
        max_tokens=SUMMARY_MAX_TOKENS,
    )


prompt_registry.register(TaskKind.WEEKLY_SUMMARY.value)(build_summary_prompt)
prompt_registry.register(TaskKind.ON_DEMAND_ANALYSIS.value)(build_summary_prompt)


def build_prompt(
    task: TaskKind,
    context: CommitContext,
    personality: Personality,
    renderer: Optional[TemplateRenderer] = None,
    **details: Any,
) -> Prompt:
    """
    Builds the system/user prompt pair and decoding parameters for a task.

    Args:
        task: What the completion is for.
        context: The commit context (message, diff, history, stats).
        personality: Tone and decoding defaults; ignored for commit suggestions.
        renderer: Template renderer, created on demand.
        **details: Task-specific inputs, e.g. `repo` and `code_refs` for issues.

    Raises:
        KeyError: If no builder is registered for the task.
    """
    renderer = renderer or TemplateRenderer()
    return prompt_registry.create(TaskKind(task).value, context, personality, renderer, **details)
