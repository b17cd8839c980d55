import re
from pathlib import Path
from typing import Dict, Iterable, Optional

from core.diff.trimmer import DEFAULT_MAX_LINES, comment_marker, file_extension, trim_content
from utils.logger import logger

PLACEHOLDER_PATTERN = re.compile(r"\{file:([^}]+)\}")


def read_code_refs(paths: Iterable[str], root: Optional[Path] = None) -> Dict[str, str]:
    """
    Reads the referenced files. Unreadable files are logged and skipped.
    """
    refs: Dict[str, str] = {}
    for raw in paths:
        path = raw.strip()
        if not path:
            continue
        location = (root / path) if root else Path(path)
        try:
            refs[path] = location.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read referenced file {path}: {e}")
    return refs


def render_code_ref(path: str, content: str, max_lines: int = DEFAULT_MAX_LINES) -> str:
    """A fenced, trimmed excerpt of one file, labelled with its path."""
    marker = comment_marker(path)
    trimmed = trim_content(content, path, max_lines)
    label = f"{marker} File: {path} (extracted relevant portion)" if trimmed != content else f"{marker} File: {path}"
    return f"Reference to file `{path}`\n\n```{file_extension(path)}\n{label}\n\n{trimmed}\n```"


def expand_code_refs(body: str, code_refs: Dict[str, str], max_lines: int = DEFAULT_MAX_LINES) -> str:
    """
    Replaces each `{file:<path>}` placeholder whose path was read with an
    excerpt. Placeholders for unknown paths are left alone.
    """
    if not code_refs:
        return body

    def replace(match: re.Match) -> str:
        path = match.group(1).strip()
        if path not in code_refs:
            return match.group(0)
        return render_code_ref(path, code_refs[path], max_lines)

    return PLACEHOLDER_PATTERN.sub(replace, body)


def append_missing_refs(body: str, code_refs: Dict[str, str]) -> str:
    """Adds placeholders for referenced files the body does not mention yet."""
    missing = [path for path in code_refs if f"{{file:{path}}}" not in body]
    if not missing:
        return body
    sections = "\n\n".join(f"{{file:{path}}}" for path in missing)
    return f"{body}\n\n## Referenced Code\n\n{sections}"
