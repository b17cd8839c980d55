from typing import Any, Mapping, Optional

from core.contracts.collector import Collector
from core.registry import collector_registry
from utils.errors import CollectorError
from utils.git import get_last_commit_message, get_last_commit_stat, get_staged_diff, get_staged_files


@collector_registry.register("diff")
class DiffCollector(Collector):
    """
    A collector that retrieves the staged changes from a Git repository.
    """

    def __init__(self, max_chars: Optional[int] = None):
        """
        Args:
            max_chars: Truncates the diff to this many characters; None keeps it whole.
        """
        self.max_chars = max_chars

    def collect(self) -> Mapping[str, Any]:
        """
        Executes `git diff --cached` to get the staged changes.

        Returns:
            A mapping with the (possibly truncated) diff, the untouched diff
            and the staged file list.

        Raises:
            CollectorError: If the git command fails.
        """
        raw_diff = get_staged_diff()
        diff = raw_diff
        if self.max_chars and len(diff) > self.max_chars:
            diff = diff[:self.max_chars] + "\n... (diff truncated, use --full-diff to send everything)"
        return {"diff": diff, "raw_diff": raw_diff, "files": get_staged_files()}


@collector_registry.register("last_commit")
class LastCommitCollector(Collector):
    """The most recent commit message and, optionally, its `--stat` summary."""

    def __init__(self, include_diff: bool = False):
        self.include_diff = include_diff

    def collect(self) -> Mapping[str, Any]:
        try:
            message = get_last_commit_message()
        except CollectorError:
            message = "unknown commit"

        diff = None
        if self.include_diff:
            try:
                diff = get_last_commit_stat()
            except CollectorError:
                diff = None
        return {"message": message, "diff": diff}
