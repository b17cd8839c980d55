import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class CommitContext(BaseModel):
    """Everything a prompt may be built from. Immutable once constructed."""
    model_config = ConfigDict(frozen=True)

    message: str = ""
    timestamp: datetime.datetime = Field(default_factory=datetime.datetime.now)
    diff: Optional[str] = None
    commit_history: List[str] = []
    commit_stats: Dict[str, Any] = {}


class DiffAnalysis(BaseModel):
    changed_files: List[str] = []
    categories: Dict[str, List[str]] = {}  # category -> paths
    added: List[str] = []
    modified: List[str] = []
    deleted: List[str] = []
    additions: int = 0
    deletions: int = 0

    def files_in(self, category: str) -> List[str]:
        return self.categories.get(category, [])


class TaskKind(str, Enum):
    COMMIT_SUGGESTION = "commit-suggestion"
    FEEDBACK = "feedback"
    ISSUE_CREATE = "issue-create"
    ISSUE_COMMENT = "issue-comment"
    WEEKLY_SUMMARY = "weekly-summary"
    ON_DEMAND_ANALYSIS = "on-demand-analysis"


class Prompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: TaskKind
    system: str
    user: str
    temperature: float
    max_tokens: int


class RepoInfo(BaseModel):
    owner: str
    name: str
    url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class Issue(BaseModel):
    """Read-only projection of a GitHub issue."""
    number: int
    title: str
    body: str = ""
    state: str = "open"
    url: str = ""
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
    author: str = ""
    assignees: List[str] = []
    labels: List[str] = []
    milestone: str = ""
    comments: int = 0
    repository: str = ""

    @property
    def is_open(self) -> bool:
        return self.state == "open"


class CommitRecord(BaseModel):
    sha: str
    author: str
    timestamp: datetime.datetime
    subject: str
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0
