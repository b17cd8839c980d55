from typing import Optional, Tuple

from core.contracts.models import RepoInfo
from utils.errors import GitHubError
from utils.git import get_remote_url, is_git_repository

GITHUB_URL_PREFIXES = (
    "git@github.com:",
    "ssh://git@github.com/",
    "https://github.com/",
    "http://github.com/",
    "github.com/",
)


def parse_github_url(url: str) -> Tuple[str, str]:
    """
    Splits a GitHub remote URL into (owner, name).

    Raises:
        GitHubError: If the URL does not point at a GitHub repository.
    """
    url = (url or "").strip()
    for prefix in GITHUB_URL_PREFIXES:
        if url.startswith(prefix):
            path = url[len(prefix):].rstrip("/")
            if path.endswith(".git"):
                path = path[:-len(".git")]
            parts = path.split("/")
            if len(parts) < 2 or not parts[0] or not parts[1]:
                raise GitHubError(f"Invalid GitHub repository path: {path}")
            return parts[0], parts[1]
    raise GitHubError(f"Not a GitHub repository URL: {url}")


def get_current_repo(remote: str = "origin") -> RepoInfo:
    """
    Detects the GitHub repository of the working directory from its remote.

    Raises:
        GitHubError: If this is not a git repository or the remote is not on GitHub.
    """
    if not is_git_repository():
        raise GitHubError("Not a Git repository.")
    url: Optional[str] = get_remote_url(remote)
    if not url:
        raise GitHubError(f"No GitHub remote repository found (remote '{remote}').")
    owner, name = parse_github_url(url)
    return RepoInfo(owner=owner, name=name, url=url)
