import os
import shutil
import stat
import sys
from pathlib import Path
from typing import List, Optional

from config.models import Config
from core.formatter.renderer import TemplateRenderer
from utils.errors import CollectorError, HookError
from utils.git import get_config_value, get_git_dir, get_repo_root
from utils.logger import logger

POST_COMMIT = "post-commit"
PREPARE_COMMIT_MSG = "prepare-commit-msg"
HUSKY_MARKER = ".husky"
BLOCK_MARKERS = {
    POST_COMMIT: "noidea - post-commit hook",
    PREPARE_COMMIT_MSG: "noidea - prepare-commit-msg hook",
}


def find_executable() -> str:
    """Absolute path of the noidea entry point, for hooks to call."""
    found = shutil.which("noidea")
    if found:
        return str(Path(found).resolve())
    argv0 = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if argv0 is not None and argv0.name == "noidea" and argv0.exists():
        return str(argv0.resolve())
    return "noidea"


def effective_hooks_dir() -> Path:
    """
    The hooks directory git will actually run: `core.hooksPath` (relative
    paths resolved against the repository root) or `<git dir>/hooks`.

    Raises:
        HookError: Outside a git repository.
    """
    try:
        hooks_path = get_config_value("core.hooksPath")
        if not hooks_path:
            return get_git_dir() / "hooks"
        path = Path(hooks_path).expanduser()
        return path if path.is_absolute() else get_repo_root() / path
    except CollectorError as e:
        raise HookError(f"Not in a git repository: {e}") from e


def is_husky_dir(hooks_dir: Path) -> bool:
    return HUSKY_MARKER in hooks_dir.parts


def _post_commit_flags(config: Config) -> str:
    flags = []
    if config.llm.enabled:
        flags.append("--ai")
    if config.moai.personality:
        flags.append(f"--personality={config.moai.personality}")
    return "".join(f"{flag} " for flag in flags)


def _write_executable(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise HookError(f"Failed to write hook {path}: {e}") from e


class HookInstaller:
    """Writes noidea's git hooks into a hooks directory."""

    def __init__(
        self,
        config: Config,
        hooks_dir: Optional[Path] = None,
        executable: Optional[str] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.config = config
        self.hooks_dir = Path(hooks_dir) if hooks_dir else effective_hooks_dir()
        self.executable = executable or find_executable()
        self.renderer = renderer or TemplateRenderer()

    def _values(self) -> dict:
        return {
            "executable": self.executable,
            "flags": _post_commit_flags(self.config),
            "history": self.config.suggest.history,
        }

    def _install(self, hook: str) -> Path:
        try:
            self.hooks_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise HookError(f"Failed to create hooks directory {self.hooks_dir}: {e}") from e

        path = self.hooks_dir / hook
        template = hook.replace("-", "_") + ".sh.j2"

        if is_husky_dir(self.hooks_dir):
            return self._install_husky(path, "husky_" + template)

        _write_executable(path, self.renderer.render(template, **self._values()))
        logger.info(f"Installed {hook} hook at {path}")
        return path

    def _install_husky(self, path: Path, template: str) -> Path:
        block = self.renderer.render(template, **self._values())
        if path.exists():
            try:
                existing = path.read_text(encoding="utf-8")
            except OSError as e:
                raise HookError(f"Failed to read Husky hook {path}: {e}") from e
            if BLOCK_MARKERS[path.name] in existing:
                logger.info(f"Husky {path.name} hook already calls noidea, leaving it unchanged.")
                return path
            if not existing.endswith("\n"):
                existing += "\n"
            _write_executable(path, existing + block)
            logger.info(f"Updated Husky {path.name} hook at {path}")
            return path

        header = self.renderer.render("husky_header.sh.j2")
        _write_executable(path, header + block)
        logger.info(f"Installed Husky {path.name} hook at {path}")
        return path

    def install_post_commit(self) -> Path:
        return self._install(POST_COMMIT)

    def install_prepare_commit_msg(self) -> Path:
        return self._install(PREPARE_COMMIT_MSG)

    def install_all(self) -> List[Path]:
        return [self.install_post_commit(), self.install_prepare_commit_msg()]


def hook_installed(hooks_dir: Path, hook: str) -> bool:
    path = hooks_dir / hook
    if not path.is_file():
        return False
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return False
    return BLOCK_MARKERS[hook] in content and os.access(path, os.X_OK)
