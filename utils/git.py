import subprocess
from pathlib import Path
from typing import List, Optional

from utils.errors import CollectorError


def _run_git(args: List[str]) -> str:
    """
    Runs a git command and returns its stdout.

    Raises:
        CollectorError: If git is missing or the command fails.
    """
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            check=True,
            encoding="utf-8",
        )
        return result.stdout
    except FileNotFoundError:
        raise CollectorError("Git is not installed or not in PATH.")
    except subprocess.CalledProcessError as e:
        raise CollectorError(f"'git {' '.join(args)}' failed: {(e.stderr or '').strip()}") from e


def is_git_repository() -> bool:
    """Checks if the current directory is a Git repository."""
    try:
        return _run_git(["rev-parse", "--is-inside-work-tree"]).strip() == "true"
    except CollectorError:
        return False


def has_staged_changes() -> bool:
    """Checks if there are any staged changes."""
    try:
        # --quiet exits with 1 if there are changes, 0 otherwise.
        subprocess.run(["git", "diff", "--cached", "--quiet"], check=True)
        return False
    except FileNotFoundError:
        raise CollectorError("Git is not installed or not in PATH.")
    except subprocess.CalledProcessError:
        return True


def get_staged_diff() -> str:
    """Returns the diff of the staging area."""
    return _run_git(["diff", "--cached"])


def get_staged_files() -> List[str]:
    return [f for f in _run_git(["diff", "--cached", "--name-only"]).splitlines() if f.strip()]


def get_last_commit_message() -> str:
    return _run_git(["log", "-1", "--pretty=%B"]).strip()


def get_last_commit_stat() -> str:
    """Returns `git show --stat HEAD`, used as lightweight diff context."""
    return _run_git(["show", "--stat", "HEAD"])


def get_config_value(key: str) -> Optional[str]:
    """Reads a git config value, returning None when it is unset."""
    try:
        value = _run_git(["config", "--get", key]).strip()
    except CollectorError:
        return None
    return value or None


def set_config_value(key: str, value: str) -> None:
    _run_git(["config", key, value])


def get_remote_url(remote: str = "origin") -> Optional[str]:
    return get_config_value(f"remote.{remote}.url")


def get_user_name() -> str:
    return get_config_value("user.name") or "User"


def get_repo_name() -> str:
    """Derives the repository name from the origin URL."""
    url = get_remote_url()
    if not url:
        return "repository"
    name = url.rstrip("/").split("/")[-1].split(":")[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repository"


def get_git_dir() -> Path:
    """Returns the absolute path of the .git directory."""
    raw = _run_git(["rev-parse", "--git-dir"]).strip()
    if not raw:
        raise CollectorError("Unable to determine git directory.")
    git_dir = Path(raw)
    return git_dir if git_dir.is_absolute() else Path.cwd() / git_dir


def get_repo_root() -> Path:
    root = _run_git(["rev-parse", "--show-toplevel"]).strip()
    if not root:
        raise CollectorError("Unable to determine repository root.")
    return Path(root)


def get_changed_files() -> List[str]:
    """
    Returns files changed relative to HEAD, staged files and untracked files,
    de-duplicated in that order.
    """
    files: List[str] = []
    for args in (
        ["diff", "--name-only", "HEAD"],
        ["diff", "--name-only", "--staged"],
        ["ls-files", "--others", "--exclude-standard"],
    ):
        try:
            files.extend(_run_git(args).splitlines())
        except CollectorError:
            continue

    seen = set()
    result = []
    for f in files:
        f = f.strip()
        if f and f not in seen:
            seen.add(f)
            result.append(f)
    return result


def get_recent_patch(count: int) -> str:
    """Patches of the last `count` commits, newest first."""
    return _run_git(["log", "-p", f"-n{count}", "--pretty=format:commit %h %s"])
