import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from core.contracts.models import RepoInfo
from core.github.auth import TOKEN_SERVICE, GitHubAuthenticator, token_from_gh_cli
from core.github.client import GitHubClient, issue_from_json
from core.github.code_refs import append_missing_refs, expand_code_refs, read_code_refs, render_code_ref
from core.github.repo import get_current_repo, parse_github_url
from utils.errors import GitHubError, MissingCredentialError

REPO = RepoInfo(owner="octo", name="widgets")


def _issue_json(number, title="Bug", **extra):
    data = {
        "number": number,
        "title": title,
        "body": "Body",
        "state": "open",
        "html_url": f"https://github.com/octo/widgets/issues/{number}",
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-02T10:00:00Z",
        "user": {"login": "ada"},
        "assignees": [{"login": "linus"}],
        "labels": [{"name": "bug"}],
        "milestone": {"title": "v1"},
        "comments": 2,
    }
    data.update(extra)
    return data


def _response(mocker, payload, status=200):
    response = mocker.MagicMock(spec=httpx.Response)
    response.status_code = status
    response.content = b"{}" if payload is not None else b""
    response.json.return_value = payload
    response.text = str(payload)
    if status >= 400:
        request = httpx.Request("GET", "https://api.github.com")
        response.raise_for_status.side_effect = httpx.HTTPStatusError("error", request=request, response=response)
    return response


class FakeCredentials:
    def __init__(self, secrets=None):
        self.secrets = dict(secrets or {})

    def get(self, service_name):
        return self.secrets.get(service_name)

    def store(self, service_name, secret):
        self.secrets[service_name] = secret

    def delete(self, service_name):
        self.secrets.pop(service_name, None)


class TestRepoDetection(unittest.TestCase):

    def test_parse_github_url(self):
        for url in (
            "git@github.com:octo/widgets.git",
            "ssh://git@github.com/octo/widgets.git",
            "https://github.com/octo/widgets",
            "https://github.com/octo/widgets.git/",
            "http://github.com/octo/widgets.git",
            "github.com/octo/widgets",
        ):
            self.assertEqual(parse_github_url(url), ("octo", "widgets"), url)

    def test_parse_non_github_url(self):
        with self.assertRaises(GitHubError):
            parse_github_url("https://gitlab.com/octo/widgets.git")
        with self.assertRaises(GitHubError):
            parse_github_url("https://github.com/octo")

    @patch("core.github.repo.get_remote_url", return_value="git@github.com:octo/widgets.git")
    @patch("core.github.repo.is_git_repository", return_value=True)
    def test_get_current_repo(self, mock_repo, mock_url):
        repo = get_current_repo()
        self.assertEqual(repo.full_name, "octo/widgets")
        self.assertEqual(repo.url, "git@github.com:octo/widgets.git")

    @patch("core.github.repo.get_remote_url", return_value=None)
    @patch("core.github.repo.is_git_repository", return_value=True)
    def test_get_current_repo_without_remote(self, mock_repo, mock_url):
        with self.assertRaises(GitHubError):
            get_current_repo()


class TestAuthenticator(unittest.TestCase):

    def test_environment_wins(self):
        auth = GitHubAuthenticator(FakeCredentials({TOKEN_SERVICE: "ghp_stored"}), environ={"GITHUB_TOKEN": "ghp_env"})
        self.assertEqual(auth.get_token(), "ghp_env")
        self.assertEqual(auth.token_source(), "environment")

    def test_keyring_fallback(self):
        auth = GitHubAuthenticator(FakeCredentials({TOKEN_SERVICE: "ghp_stored"}), environ={})
        self.assertEqual(auth.get_token(), "ghp_stored")
        self.assertEqual(auth.token_source(), "keyring")

    def test_require_token(self):
        auth = GitHubAuthenticator(FakeCredentials(), environ={})
        self.assertIsNone(auth.token_source())
        with self.assertRaises(MissingCredentialError) as cm:
            auth.require_token()
        self.assertIn("noidea config github-auth", str(cm.exception))

    def test_set_and_delete_token(self):
        credentials = FakeCredentials()
        auth = GitHubAuthenticator(credentials, environ={})

        auth.set_token("  github_pat_abc123  ")
        self.assertEqual(credentials.secrets[TOKEN_SERVICE], "github_pat_abc123")

        auth.delete_token()
        self.assertNotIn(TOKEN_SERVICE, credentials.secrets)

    def test_set_token_rejects_bad_prefix(self):
        auth = GitHubAuthenticator(FakeCredentials(), environ={})
        with self.assertRaises(GitHubError):
            auth.set_token("not-a-token")

    @patch("subprocess.run", side_effect=FileNotFoundError)
    def test_gh_cli_missing(self, mock_run):
        with self.assertRaises(GitHubError):
            token_from_gh_cli()


def test_issue_from_json():
    issue = issue_from_json(_issue_json(5), "octo/widgets")

    assert issue.number == 5
    assert issue.author == "ada"
    assert issue.assignees == ["linus"]
    assert issue.labels == ["bug"]
    assert issue.milestone == "v1"
    assert issue.comments == 2
    assert issue.is_open
    assert issue.created_at.year == 2024


def test_list_issues_skips_pull_requests(mocker):
    page_one = [_issue_json(1), _issue_json(2, pull_request={"url": "x"}), _issue_json(3)]
    page_two = [_issue_json(4)]
    mock_request = mocker.patch(
        "httpx.Client.request",
        side_effect=[_response(mocker, page_one), _response(mocker, page_two)],
    )

    issues = GitHubClient(token="ghp_x").list_issues(REPO, state="open", limit=3)

    assert [i.number for i in issues] == [1, 3, 4]
    assert mock_request.call_count == 2
    assert mock_request.call_args_list[0][0] == ("GET", "/repos/octo/widgets/issues")
    assert mock_request.call_args_list[1][1]["params"]["page"] == 2


def test_create_issue(mocker):
    mock_request = mocker.patch("httpx.Client.request", return_value=_response(mocker, _issue_json(9, "New")))

    issue = GitHubClient(token="ghp_x").create_issue(REPO, "New", "Body", labels=["bug"])

    assert issue.number == 9
    assert mock_request.call_args[0] == ("POST", "/repos/octo/widgets/issues")
    assert mock_request.call_args[1]["json"] == {"title": "New", "body": "Body", "labels": ["bug"]}


def test_close_issue_comments_first(mocker):
    mock_request = mocker.patch(
        "httpx.Client.request",
        side_effect=[
            _response(mocker, {"html_url": "https://github.com/octo/widgets/issues/9#c1"}),
            _response(mocker, _issue_json(9, state="closed")),
        ],
    )

    issue = GitHubClient(token="ghp_x").close_issue(REPO, 9, comment="Done")

    assert issue.state == "closed"
    first, second = mock_request.call_args_list
    assert first[0] == ("POST", "/repos/octo/widgets/issues/9/comments")
    assert first[1]["json"] == {"body": "Done"}
    assert second[0] == ("PATCH", "/repos/octo/widgets/issues/9")
    assert second[1]["json"] == {"state": "closed"}


def test_api_error(mocker):
    mocker.patch("httpx.Client.request", return_value=_response(mocker, {"message": "Bad credentials"}, status=401))

    with pytest.raises(GitHubError, match=r"GitHub API error \(401\).*Bad credentials"):
        GitHubClient(token="ghp_bad").get_authenticated_user()


def test_latest_release(mocker):
    mocker.patch("httpx.Client.request", return_value=_response(mocker, {"tag_name": "v0.6.0"}))
    assert GitHubClient().get_latest_release("octo/widgets") == "v0.6.0"


def test_latest_release_missing(mocker):
    mocker.patch("httpx.Client.request", return_value=_response(mocker, {"message": "Not Found"}, status=404))
    assert GitHubClient().get_latest_release("octo/widgets") is None


def test_network_error(mocker):
    mocker.patch("httpx.Client.request", side_effect=httpx.ConnectError("offline"))
    with pytest.raises(GitHubError, match="Network error"):
        GitHubClient().get_issue(REPO, 1)


class TestCodeRefs(unittest.TestCase):

    def test_read_code_refs_skips_unreadable(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "main.go").write_text("package main\n", encoding="utf-8")
            refs = read_code_refs(["main.go", "missing.go", " "], root=root)
        self.assertEqual(refs, {"main.go": "package main\n"})

    def test_render_short_file(self):
        rendered = render_code_ref("main.go", "package main")
        self.assertEqual(rendered, "Reference to file `main.go`\n\n```go\n// File: main.go\n\npackage main\n```")

    def test_render_long_file_is_trimmed(self):
        content = "\n".join(f"x = {i}" for i in range(200))
        rendered = render_code_ref("conf.py", content, max_lines=20)
        self.assertIn("# File: conf.py (extracted relevant portion)", rendered)
        self.assertIn("Beginning of file:", rendered)
        self.assertNotIn("x = 50\n", rendered)

    def test_expand_placeholders(self):
        body = "See {file:main.go} and {file:other.go}."
        expanded = expand_code_refs(body, {"main.go": "package main"})

        self.assertIn("```go\n// File: main.go", expanded)
        self.assertIn("{file:other.go}", expanded)
        self.assertNotIn("{file:main.go}", expanded)

    def test_append_missing_refs(self):
        refs = {"a.py": "", "b.py": ""}
        body = append_missing_refs("Uses {file:a.py}", refs)
        self.assertEqual(body, "Uses {file:a.py}\n\n## Referenced Code\n\n{file:b.py}")
        self.assertEqual(append_missing_refs("Uses {file:a.py} {file:b.py}", refs), "Uses {file:a.py} {file:b.py}")


def test_client_closes_on_exit(mocker):
    close = mocker.patch("httpx.Client.close")
    mocker.patch("httpx.Client.request", return_value=_response(mocker, {"login": "ada"}))

    with GitHubClient(token="ghp_x") as client:
        assert client.get_authenticated_user() == "ada"

    close.assert_called_once()
