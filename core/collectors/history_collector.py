import datetime
import re
import subprocess
from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.contracts.collector import Collector
from core.contracts.models import CommitRecord
from core.registry import collector_registry
from utils.errors import CollectorError

RECORD_SEPARATOR = "\x1e"
FIELD_SEPARATOR = "\x1f"
LOG_FORMAT = f"--pretty=format:{RECORD_SEPARATOR}%H{FIELD_SEPARATOR}%an{FIELD_SEPARATOR}%at{FIELD_SEPARATOR}%s"

FILES_PATTERN = re.compile(r"(\d+) files? changed")
INSERTIONS_PATTERN = re.compile(r"(\d+) insertions?\(\+\)")
DELETIONS_PATTERN = re.compile(r"(\d+) deletions?\(-\)")


def _count(pattern: re.Pattern, text: str) -> int:
    match = pattern.search(text)
    return int(match.group(1)) if match else 0


def parse_history(output: str) -> List[CommitRecord]:
    """
    Parses `git log --shortstat` output produced with LOG_FORMAT.
    Records with a malformed header are skipped.
    """
    records = []
    for chunk in output.split(RECORD_SEPARATOR):
        if not chunk.strip():
            continue
        header, _, rest = chunk.partition("\n")
        fields = header.split(FIELD_SEPARATOR)
        if len(fields) != 4:
            continue
        sha, author, epoch, subject = fields
        try:
            timestamp = datetime.datetime.fromtimestamp(int(epoch))
        except ValueError:
            continue
        records.append(
            CommitRecord(
                sha=sha,
                author=author,
                timestamp=timestamp,
                subject=subject.strip(),
                files_changed=_count(FILES_PATTERN, rest),
                insertions=_count(INSERTIONS_PATTERN, rest),
                deletions=_count(DELETIONS_PATTERN, rest),
            )
        )
    return records


def calculate_stats(records: Sequence[CommitRecord]) -> Dict[str, Any]:
    return {
        "total_commits": len(records),
        "unique_authors": len({r.author for r in records}),
        "total_files_changed": sum(r.files_changed for r in records),
        "total_insertions": sum(r.insertions for r in records),
        "total_deletions": sum(r.deletions for r in records),
    }


@collector_registry.register("history")
class HistoryCollector(Collector):
    """
    A collector that retrieves the recent commit history from a Git repository,
    with per-commit line statistics.
    """

    def __init__(self, n: Optional[int] = 10, days: Optional[int] = None, skip: int = 0):
        """
        Initializes the HistoryCollector.

        Args:
            n: The number of recent commits to retrieve; None for no limit.
            days: Only include commits from the last `days` days.
            skip: Number of most recent commits to leave out.
        """
        if n is not None and n <= 0:
            raise ValueError("Number of commits (n) must be a positive integer.")
        self._n = n
        self._days = days
        self._skip = skip

    def _command(self) -> List[str]:
        command = ["git", "log", LOG_FORMAT, "--shortstat"]
        if self._n is not None:
            command.append(f"-n{self._n + self._skip}")
        if self._days:
            command.append(f"--since={self._days}.days")
        return command

    def records(self) -> List[CommitRecord]:
        try:
            result = subprocess.run(
                self._command(),
                capture_output=True,
                text=True,
                check=True,
                encoding="utf-8",
            )
        except FileNotFoundError:
            raise CollectorError("Git is not installed or not in PATH.")
        except subprocess.CalledProcessError as e:
            # An empty repository has no history yet.
            if "does not have any commits" in (e.stderr or ""):
                return []
            raise CollectorError(f"Failed to get git history: {e.stderr}") from e
        return parse_history(result.stdout)[self._skip:]

    def collect(self) -> Mapping[str, Any]:
        """
        Returns:
            A mapping with commit subjects ("history"), the parsed records and
            aggregate statistics ("stats").

        Raises:
            CollectorError: If the git command fails.
        """
        records = self.records()
        return {
            "history": [r.subject for r in records],
            "records": records,
            "stats": calculate_stats(records),
        }
