from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class LLMConfig(BaseModel):
    enabled: bool = False
    provider: str = "openai"
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout_sec: int = 10


class MoaiConfig(BaseModel):
    personality: str = Field("snarky_reviewer", description="Default personality name")
    personality_file: Optional[str] = Field(None, description="Optional YAML file with extra personalities")
    include_history: bool = False


class SuggestConfig(BaseModel):
    history: int = Field(10, description="Number of past commit messages sent as weak context")
    full_diff: bool = Field(False, description="Send the whole diff instead of truncating it")
    max_diff_chars: int = 12000


class GitHubConfig(BaseModel):
    api_url: str = "https://api.github.com"
    token_env_var: str = "GITHUB_TOKEN"
    timeout_sec: int = 10


class UpdateConfig(BaseModel):
    check: bool = True
    interval_hours: int = 24
    release_repo: str = "AccursedGalaxy/noidea"


class TrimmerConfig(BaseModel):
    max_lines: int = 50


class FileCategoryRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    suffixes: List[str]


def default_file_categories() -> List[FileCategoryRule]:
    # Order matters: the first matching rule wins, so build files that
    # end in .txt (CMakeLists.txt) are checked before documentation.
    return [
        FileCategoryRule(category="build", suffixes=[
            "Makefile", ".mk", "CMakeLists.txt", ".bazel", "BUILD", "Dockerfile",
            "go.mod", "go.sum", "Cargo.toml", "Cargo.lock", "pyproject.toml",
            "setup.py", "package.json", "package-lock.json", ".gradle", ".gradle.kts", "pom.xml",
        ]),
        FileCategoryRule(category="doc", suffixes=[".md", ".txt", ".rst", ".adoc"]),
        FileCategoryRule(category="code", suffixes=[
            ".go", ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".c", ".cc", ".cpp", ".h", ".hpp",
            ".rs", ".kt", ".kts", ".swift", ".rb", ".php", ".cs", ".scala",
        ]),
        FileCategoryRule(category="config", suffixes=[
            ".json", ".yaml", ".yml", ".toml", ".ini", ".config", ".cfg", ".env",
        ]),
        FileCategoryRule(category="script", suffixes=[".sh", ".bash", ".zsh", ".bat", ".ps1"]),
    ]


class Personality(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    system_prompt: str
    user_prompt_template: str = "{{ message }}"
    max_tokens: int = 150
    temperature: float = 0.7


class Config(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig, description="LLM provider settings")
    moai: MoaiConfig = Field(default_factory=MoaiConfig, description="Moai feedback settings")
    suggest: SuggestConfig = Field(default_factory=SuggestConfig, description="Commit suggestion settings")
    github: GitHubConfig = Field(default_factory=GitHubConfig, description="GitHub API settings")
    update: UpdateConfig = Field(default_factory=UpdateConfig, description="Update check settings")
    trimmer: TrimmerConfig = Field(default_factory=TrimmerConfig, description="File excerpt settings")
    file_categories: List[FileCategoryRule] = Field(
        default_factory=default_file_categories,
        description="Ordered suffix rules used to categorize changed files",
    )
    test_markers: List[str] = Field(default_factory=lambda: ["_test.", ".test.", ".spec."])
