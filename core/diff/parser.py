from typing import Dict, Iterable, List, Optional, Sequence

from config.models import FileCategoryRule, default_file_categories
from core.contracts.models import DiffAnalysis

DEFAULT_TEST_MARKERS = ("_test.", ".test.", ".spec.")

CATEGORY_LABELS = {
    "doc": "Documentation files",
    "code": "Code files",
    "build": "Build files",
    "script": "Script files",
    "config": "Config files",
    "test": "Test files",
}


def _is_test_path(path: str, test_markers: Iterable[str]) -> bool:
    basename = path.rsplit("/", 1)[-1]
    return basename.startswith("test_") or any(marker in basename for marker in test_markers)


def categorize(
    path: str,
    rules: Sequence[FileCategoryRule],
    test_markers: Iterable[str] = DEFAULT_TEST_MARKERS,
) -> Optional[str]:
    """
    Returns the category of a path, or None when no rule matches.
    The first matching rule wins; code files that look like tests are 'test'.
    """
    for rule in rules:
        if any(path.endswith(suffix) for suffix in rule.suffixes):
            if rule.category == "code" and _is_test_path(path, test_markers):
                return "test"
            return rule.category
    return None


def _path_from_header(line: str) -> Optional[str]:
    # diff --git a/<path> b/<path>
    parts = line.split()
    if len(parts) < 3:
        return None
    path = parts[2]
    return path[2:] if path.startswith("a/") else path


def parse_diff(
    diff: Optional[str],
    rules: Optional[Sequence[FileCategoryRule]] = None,
    test_markers: Iterable[str] = DEFAULT_TEST_MARKERS,
) -> DiffAnalysis:
    """
    Classifies the files of a unified diff and counts changed lines.

    Every file is 'modified' unless a 'new file mode' or 'deleted file mode'
    marker says otherwise. Malformed input yields an empty analysis.
    """
    if not diff or not isinstance(diff, str):
        return DiffAnalysis()

    rules = rules if rules is not None else default_file_categories()
    test_markers = tuple(test_markers)

    changed: List[str] = []
    categories: Dict[str, List[str]] = {}
    added: List[str] = []
    deleted: List[str] = []
    additions = deletions = 0
    current: Optional[str] = None

    for line in diff.splitlines():
        if line.startswith("diff --git"):
            current = _path_from_header(line)
            if current and current not in changed:
                changed.append(current)
                category = categorize(current, rules, test_markers)
                if category:
                    categories.setdefault(category, []).append(current)
            continue

        if current and line.startswith("new file mode"):
            if current not in added:
                added.append(current)
        elif current and line.startswith("deleted file mode"):
            if current not in deleted:
                deleted.append(current)

        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            deletions += 1

    modified = [f for f in changed if f not in added and f not in deleted]

    return DiffAnalysis(
        changed_files=changed,
        categories=categories,
        added=added,
        modified=modified,
        deleted=deleted,
        additions=additions,
        deletions=deletions,
    )


def format_analysis(analysis: DiffAnalysis) -> str:
    """Renders the analysis block embedded in commit-suggestion prompts."""
    lines = [
        f"- Total files changed: {len(analysis.changed_files)} "
        f"({len(analysis.added)} added, {len(analysis.modified)} modified, {len(analysis.deleted)} deleted)",
        f"- Lines: +{analysis.additions}, -{analysis.deletions}",
        "",
    ]
    for category, label in CATEGORY_LABELS.items():
        files = analysis.files_in(category)
        if files:
            lines.append(f"{label}: {', '.join(files)}")

    lines.append("")
    lines.append("File operations:")
    for label, files in (("Added", analysis.added), ("Modified", analysis.modified), ("Deleted", analysis.deleted)):
        if files:
            lines.append(f"{label}: {', '.join(files)}")

    return "\n".join(lines)
