import re
from typing import Optional, Tuple

from core.contracts.models import RepoInfo
from core.formatter.renderer import TemplateRenderer
from utils.logger import logger

COMMIT_TYPES = ("feat", "fix", "docs", "style", "refactor", "perf", "test", "build", "ci", "chore", "revert")
CONVENTIONAL_PATTERN = re.compile(r"^(%s)(\([^)]*\))?!?:\s*\S" % "|".join(COMMIT_TYPES))

MAX_COMMIT_LINE = 100
MAX_SUBJECT_LENGTH = 72
MAX_ISSUE_TITLE = 60

QUOTE_CHARS = "\"'`"
ISSUE_DELIMITER = "---"
AI_ISSUE_FOOTER = "\n\n---\n_Generated with noidea CLI_"
AI_COMMENT_FOOTER = "\n\n_Generated with noidea CLI_"
FAILED_COMMENT_NOTE = "\n\n_Note: AI comment generation was attempted but failed._"


def _strip_quotes(text: str) -> str:
    text = text.strip()
    while len(text) >= 2 and text[0] == text[-1] and text[0] in QUOTE_CHARS and not text.startswith("```"):
        text = text[1:-1].strip()
    return text


def _first_fenced_block(text: str) -> Optional[str]:
    parts = text.split("```")
    if len(parts) < 3:
        return None
    return parts[1].strip()


def extract_commit_message(raw: Optional[str]) -> str:
    """
    Reduces a model response to a single commit message line.

    Surrounding whitespace and quotes are removed and a fenced block, if any,
    replaces the text. The first conventional-commit line wins, then the first
    plausible non-comment line; as a last resort the first line is cut to 72
    characters. Never raises.
    """
    text = _strip_quotes(raw or "")

    fenced = _first_fenced_block(text)
    if fenced is not None:
        text = fenced

    lines = [_strip_quotes(line) for line in text.split("\n")]

    for line in lines:
        if len(line) < MAX_COMMIT_LINE and CONVENTIONAL_PATTERN.match(line):
            return line

    for line in lines:
        if line and len(line) < MAX_COMMIT_LINE and not line.startswith("#"):
            return line

    first = lines[0] if lines else ""
    return first[:MAX_SUBJECT_LENGTH]


def split_title_body(raw: Optional[str]) -> Optional[Tuple[str, str]]:
    """Splits on the first '---'. Returns None when the response has no usable title."""
    if not raw or ISSUE_DELIMITER not in raw:
        return None
    title, body = raw.split(ISSUE_DELIMITER, 1)
    title = _strip_quotes(title.strip().lstrip("#").strip())
    if title.lower().startswith("title:"):
        title = title[len("title:"):].strip()
    if not title:
        return None
    return title, body.strip()


def truncate_title(description: str, limit: int = MAX_ISSUE_TITLE) -> str:
    first_line = description.strip().split("\n")[0].strip() if description else ""
    if len(first_line) > limit:
        return first_line[:limit - 3] + "..."
    return first_line


def fallback_issue(
    description: str,
    repo: RepoInfo,
    renderer: Optional[TemplateRenderer] = None,
) -> Tuple[str, str]:
    """Deterministic, non-AI issue title and Markdown body."""
    renderer = renderer or TemplateRenderer()
    body = renderer.render("issue_fallback.md.j2", description=description, repo=repo)
    return truncate_title(description) or "New issue", body


def extract_issue(
    raw: Optional[str],
    description: str,
    repo: RepoInfo,
    renderer: Optional[TemplateRenderer] = None,
) -> Tuple[str, str]:
    """Title and body from a model response, or the fallback template. Never raises."""
    parts = split_title_body(raw)
    if parts is None:
        logger.info("Model response has no title/body delimiter, using the issue template.")
        return fallback_issue(description, repo, renderer)

    title, body = parts
    return title, body + AI_ISSUE_FOOTER
