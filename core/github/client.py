import datetime
import json
from typing import Any, Dict, List, Optional

import httpx

from core.contracts.models import Issue, RepoInfo
from utils.errors import GitHubError
from utils.logger import logger

DEFAULT_API_URL = "https://api.github.com"
MAX_PAGE_SIZE = 100


def _parse_time(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def issue_from_json(data: Dict[str, Any], repository: str = "") -> Issue:
    """Projects GitHub's issue JSON onto the Issue model."""
    milestone = data.get("milestone") or {}
    return Issue(
        number=data["number"],
        title=data.get("title") or "",
        body=data.get("body") or "",
        state=data.get("state") or "open",
        url=data.get("html_url") or "",
        created_at=_parse_time(data.get("created_at")),
        updated_at=_parse_time(data.get("updated_at")),
        author=(data.get("user") or {}).get("login", ""),
        assignees=[a.get("login", "") for a in data.get("assignees") or []],
        labels=[label.get("name", "") for label in data.get("labels") or [] if isinstance(label, dict)],
        milestone=milestone.get("title", ""),
        comments=data.get("comments") or 0,
        repository=repository,
    )


class GitHubClient:
    """
    Minimal GitHub REST client for issues, the authenticated user and releases.
    Every call is a single attempt bounded by the client timeout.
    """

    def __init__(self, token: Optional[str] = None, api_url: str = DEFAULT_API_URL, timeout_sec: float = 10):
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "noidea-cli",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(base_url=api_url, headers=headers, timeout=timeout_sec)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise GitHubError(f"GitHub request {method} {path} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            try:
                message = e.response.json().get("message", e.response.text)
            except (json.JSONDecodeError, AttributeError):
                message = e.response.text
            raise GitHubError(f"GitHub API error ({e.response.status_code}) on {method} {path}: {message}") from e
        except httpx.RequestError as e:
            raise GitHubError(f"Network error talking to GitHub: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GitHubError(f"GitHub returned invalid JSON for {method} {path}") from e

    def list_issues(self, repo: RepoInfo, state: str = "open", limit: int = 10) -> List[Issue]:
        """Lists issues, skipping pull requests, until `limit` issues are found."""
        issues: List[Issue] = []
        page = 1
        while len(issues) < limit:
            batch = self._request(
                "GET",
                f"/repos/{repo.owner}/{repo.name}/issues",
                params={"state": state, "per_page": min(MAX_PAGE_SIZE, max(limit, 1)), "page": page},
            )
            if not batch:
                break
            for item in batch:
                if "pull_request" in item:
                    continue
                issues.append(issue_from_json(item, repo.full_name))
                if len(issues) >= limit:
                    break
            if len(batch) < min(MAX_PAGE_SIZE, max(limit, 1)):
                break
            page += 1
        logger.debug(f"Fetched {len(issues)} {state} issues from {repo.full_name}")
        return issues

    def get_issue(self, repo: RepoInfo, number: int) -> Issue:
        data = self._request("GET", f"/repos/{repo.owner}/{repo.name}/issues/{number}")
        return issue_from_json(data, repo.full_name)

    def create_issue(self, repo: RepoInfo, title: str, body: str, labels: Optional[List[str]] = None) -> Issue:
        payload: Dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = labels
        data = self._request("POST", f"/repos/{repo.owner}/{repo.name}/issues", json=payload)
        return issue_from_json(data, repo.full_name)

    def add_comment(self, repo: RepoInfo, number: int, body: str) -> str:
        """Returns the comment's URL."""
        data = self._request("POST", f"/repos/{repo.owner}/{repo.name}/issues/{number}/comments", json={"body": body})
        return (data or {}).get("html_url", "")

    def close_issue(self, repo: RepoInfo, number: int, comment: Optional[str] = None) -> Issue:
        """Closes an issue; the optional comment is posted first."""
        if comment:
            self.add_comment(repo, number, comment)
        data = self._request("PATCH", f"/repos/{repo.owner}/{repo.name}/issues/{number}", json={"state": "closed"})
        return issue_from_json(data, repo.full_name)

    def get_authenticated_user(self) -> str:
        data = self._request("GET", "/user")
        return (data or {}).get("login", "")

    def get_latest_release(self, full_name: str) -> Optional[str]:
        """Tag of the latest release, or None if the repository has none."""
        try:
            data = self._request("GET", f"/repos/{full_name}/releases/latest")
        except GitHubError as e:
            if "(404)" in str(e):
                return None
            raise
        return (data or {}).get("tag_name")

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

