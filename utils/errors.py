"""
Defines custom exception classes for the application.
"""
from typing import Optional


class NoIdeaError(Exception):
    """Base exception class for noidea."""
    pass

class ConfigError(NoIdeaError):
    """Raised when there is a configuration error."""
    pass

class CollectorError(NoIdeaError):
    """Raised when an error occurs while reading data from git."""
    pass

class ProviderError(NoIdeaError):
    """Raised when an error occurs with an LLM provider."""
    pass

class FormatterError(NoIdeaError):
    """Raised when a template cannot be rendered."""
    pass

class GitHubError(NoIdeaError):
    """Raised when a GitHub API call fails."""
    pass

class HookError(NoIdeaError):
    """Raised when a git hook cannot be installed."""
    pass

class MissingCredentialError(NoIdeaError):
    """Raised when no token or API key is available."""

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        base = super().__str__()
        if self.remediation:
            return f"{base}. Run '{self.remediation}' to configure it."
        return base
