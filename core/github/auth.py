import os
import subprocess
from typing import Mapping, Optional

from utils.credentials import CredentialStore
from utils.errors import GitHubError, MissingCredentialError
from utils.logger import logger

TOKEN_SERVICE = "noidea-github-token"
TOKEN_ENV_VAR = "GITHUB_TOKEN"
TOKEN_PREFIXES = ("ghp_", "github_pat_", "gho_")


class GitHubAuthenticator:
    """
    Resolves the GitHub token: the environment variable first, then the
    keyring. Tokens set through noidea are stored in the keyring only.
    """

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        env_var: str = TOKEN_ENV_VAR,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.credentials = credentials or CredentialStore()
        self.env_var = env_var
        self.environ = os.environ if environ is None else environ

    def token_source(self) -> Optional[str]:
        if self.environ.get(self.env_var):
            return "environment"
        if self.credentials.get(TOKEN_SERVICE):
            return "keyring"
        return None

    def get_token(self) -> Optional[str]:
        token = self.environ.get(self.env_var)
        if token:
            return token.strip()
        return self.credentials.get(TOKEN_SERVICE)

    def require_token(self) -> str:
        token = self.get_token()
        if not token:
            raise MissingCredentialError("GitHub authentication required", remediation="noidea config github-auth")
        return token

    def set_token(self, token: str) -> None:
        """
        Raises:
            GitHubError: If the token does not look like a GitHub token.
        """
        token = (token or "").strip()
        if not token.startswith(TOKEN_PREFIXES):
            raise GitHubError("Invalid GitHub token format (expected a 'ghp_', 'github_pat_' or 'gho_' token).")
        self.credentials.store(TOKEN_SERVICE, token)
        logger.info("GitHub token stored in keyring.")

    def delete_token(self) -> None:
        self.credentials.delete(TOKEN_SERVICE)


def token_from_gh_cli() -> str:
    """
    Reads the token of an authenticated GitHub CLI session (`gh auth token`).

    Raises:
        GitHubError: If gh is missing, not logged in, or prints nothing.
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            check=True,
            encoding="utf-8",
        )
    except FileNotFoundError:
        raise GitHubError("GitHub CLI (gh) is not installed.")
    except subprocess.CalledProcessError as e:
        raise GitHubError(f"GitHub CLI is not authenticated, run 'gh auth login' first: {(e.stderr or '').strip()}") from e

    token = result.stdout.strip()
    if not token:
        raise GitHubError("GitHub CLI returned an empty token.")
    return token
