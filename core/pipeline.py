import random
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from config.models import Config, FileCategoryRule, Personality
from config.personalities import PersonalitySet, load_personalities
from core.contracts.models import CommitContext, DiffAnalysis, Issue, Prompt, RepoInfo, TaskKind
from core.contracts.provider import CompletionProvider
from core.diff.parser import DEFAULT_TEST_MARKERS
from core.diff.trimmer import DEFAULT_MAX_LINES
from core.formatter.extractor import (
    AI_COMMENT_FOOTER,
    FAILED_COMMENT_NOTE,
    extract_commit_message,
    extract_issue,
    fallback_issue,
)
from core.formatter.renderer import TemplateRenderer
from core.llm.router import ProviderTable, get_provider
from core.moai import local_feedback
from core.prompts.builder import build_prompt, summary_task
from core.registry import engine_registry
from utils.credentials import CredentialStore
from utils.errors import MissingCredentialError, ProviderError
from utils.logger import logger


class FeedbackEngine(Protocol):
    def generate_feedback(self, context: CommitContext) -> str:
        ...


@engine_registry.register("local")
class LocalFeedbackEngine:
    """Offline engine: canned Moai lines, no network."""

    def __init__(self, rng: Optional[random.Random] = None, **_):
        self.rng = rng

    def generate_feedback(self, context: CommitContext) -> str:
        return local_feedback(context.message, context.timestamp, self.rng)


@engine_registry.register("llm")
class LLMFeedbackEngine:
    """
    Engine backed by a chat-completion provider.

    Besides Moai feedback it drafts commit messages, history summaries,
    issues and issue comments. Provider failures surface as ProviderError
    from the text-generating methods; the issue and comment drafts fall back
    to their templates instead.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        personality: Personality,
        renderer: Optional[TemplateRenderer] = None,
        username: str = "User",
        repo_name: str = "repository",
        file_categories: Optional[List[FileCategoryRule]] = None,
        test_markers: Sequence[str] = DEFAULT_TEST_MARKERS,
        max_lines: int = DEFAULT_MAX_LINES,
    ):
        self.provider = provider
        self.personality = personality
        self.renderer = renderer or TemplateRenderer()
        self.username = username
        self.repo_name = repo_name
        self.file_categories = file_categories
        self.test_markers = test_markers
        self.max_lines = max_lines

    def _complete(self, prompt: Prompt) -> str:
        logger.debug(f"Sending '{prompt.task.value}' prompt (temperature={prompt.temperature}, max_tokens={prompt.max_tokens})")
        return self.provider.complete(
            prompt.system,
            prompt.user,
            temperature=prompt.temperature,
            max_tokens=prompt.max_tokens,
        )

    def _build(self, task: TaskKind, context: CommitContext, **details) -> Prompt:
        return build_prompt(task, context, self.personality, self.renderer, **details)

    def close(self) -> None:
        """Releases the provider's HTTP connections, if it holds any."""
        close = getattr(self.provider, "close", None)
        if close is not None:
            close()

    def generate_feedback(self, context: CommitContext) -> str:
        prompt = self._build(TaskKind.FEEDBACK, context, username=self.username, repo_name=self.repo_name)
        return self._complete(prompt).strip()

    def suggest_commit_message(
        self,
        context: CommitContext,
        analysis: Optional[DiffAnalysis] = None,
        max_diff_chars: Optional[int] = None,
    ) -> str:
        prompt = self._build(
            TaskKind.COMMIT_SUGGESTION,
            context,
            analysis=analysis,
            file_categories=self.file_categories,
            test_markers=self.test_markers,
            max_diff_chars=max_diff_chars,
        )
        return extract_commit_message(self._complete(prompt))

    def generate_summary(self, context: CommitContext) -> str:
        prompt = self._build(summary_task(context), context)
        return self._complete(prompt).strip()

    def draft_issue(
        self,
        description: str,
        repo: RepoInfo,
        code_refs: Optional[Dict[str, str]] = None,
        additional_context: str = "",
    ) -> Tuple[str, str]:
        context = CommitContext(message=description)
        prompt = self._build(
            TaskKind.ISSUE_CREATE,
            context,
            repo=repo,
            code_refs=code_refs,
            additional_context=additional_context,
            max_lines=self.max_lines,
        )
        try:
            raw = self._complete(prompt)
        except ProviderError as e:
            logger.warning(f"AI issue generation failed, falling back to template: {e}")
            return fallback_issue(description, repo, self.renderer)
        return extract_issue(raw, description, repo, self.renderer)

    def draft_comment(self, topic: str, issue: Issue) -> str:
        context = CommitContext(message=topic)
        prompt = self._build(
            TaskKind.ISSUE_COMMENT,
            context,
            issue_number=issue.number,
            issue_title=issue.title,
            issue_body=issue.body,
        )
        try:
            raw = self._complete(prompt).strip()
        except ProviderError as e:
            logger.warning(f"AI comment generation failed: {e}")
            return topic + FAILED_COMMENT_NOTE
        if not raw:
            return topic + FAILED_COMMENT_NOTE
        return raw + AI_COMMENT_FOOTER


def create_feedback_engine(
    config: Config,
    personality_name: Optional[str] = None,
    use_ai: Optional[bool] = None,
    table: Optional[ProviderTable] = None,
    credentials: Optional[CredentialStore] = None,
    personalities: Optional[PersonalitySet] = None,
    username: str = "User",
    repo_name: str = "repository",
) -> FeedbackEngine:
    """
    Returns the LLM engine when AI is wanted and an API key is available,
    otherwise the local engine.

    Args:
        use_ai: Forces AI on or off; None defers to `llm.enabled`.
    """
    wants_ai = config.llm.enabled if use_ai is None else use_ai
    if not wants_ai:
        return engine_registry.create("local")

    try:
        provider = get_provider(config.llm, table, credentials)
    except MissingCredentialError as e:
        logger.warning(f"{e} Using local feedback.")
        return engine_registry.create("local")

    personalities = personalities or load_personalities(config.moai.personality_file)
    personality = personalities.get(personality_name or config.moai.personality)
    return engine_registry.create(
        "llm",
        provider=provider,
        personality=personality,
        username=username,
        repo_name=repo_name,
        file_categories=config.file_categories,
        test_markers=config.test_markers,
        max_lines=config.trimmer.max_lines,
    )


def _describe(files: List[str]) -> str:
    if len(files) == 1:
        return PurePosixPath(files[0]).name
    return f"{len(files)} files"


def local_commit_suggestion(analysis: DiffAnalysis) -> str:
    """A conventional-commit line derived only from the diff analysis."""
    files = analysis.changed_files
    if not files:
        return "chore: update files"

    only = {category for category, paths in analysis.categories.items() if paths}
    uncategorized = [f for f in files if not any(f in paths for paths in analysis.categories.values())]
    single_category = len(only) == 1 and not uncategorized
    category = next(iter(only)) if single_category else None

    if category == "doc":
        verb = "add" if analysis.added and not analysis.modified else "update"
        return f"docs: {verb} {_describe(files)}"
    if category == "test":
        return f"test: update {_describe(files)}"
    if category == "build":
        return f"build: update {_describe(files)}"
    if category == "config":
        return f"chore: update configuration in {_describe(files)}"
    if category == "script":
        return f"chore: update scripts in {_describe(files)}"

    if analysis.added and not analysis.modified and not analysis.deleted:
        return f"feat: add {_describe(analysis.added)}"
    if analysis.deleted and not analysis.added and not analysis.modified:
        return f"chore: remove {_describe(analysis.deleted)}"
    if category == "code":
        return f"refactor: update {_describe(files)}"
    return f"chore: update {_describe(files)}"
