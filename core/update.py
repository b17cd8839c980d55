import datetime
import re
import sys
from pathlib import Path
from typing import List, Optional

from platformdirs import user_config_dir

from config.models import UpdateConfig
from core.github.client import GitHubClient
from utils.errors import GitHubError
from utils.logger import logger

CURRENT_VERSION = "0.5.0"
CHECK_FILE_NAME = ".update_check"


def _numeric_parts(version: str) -> List[int]:
    base = version.strip().lstrip("v").split("-")[0].split("+")[0]
    parts = []
    for piece in base.split(".")[:3]:
        match = re.match(r"\d+", piece)
        parts.append(int(match.group(0)) if match else 0)
    while len(parts) < 3:
        parts.append(0)
    return parts


def is_newer_version(latest: str, current: str) -> bool:
    """
    True when `latest` is a higher release than `current`.

    A development build such as `0.4.0-11-g9839b73` or `0.4.0-dev` counts as
    at least as new as the `0.4.0` release it was built from.
    """
    latest = latest.strip().lstrip("v")
    current = current.strip().lstrip("v")
    if latest == current:
        return False
    return _numeric_parts(latest) > _numeric_parts(current)


def is_dev_version(version: str) -> bool:
    return "dev" in version or version in ("", "unknown")


def update_check_path() -> Path:
    return Path(user_config_dir("noidea")) / CHECK_FILE_NAME


def should_check(path: Path, interval_hours: int = 24, now: Optional[datetime.datetime] = None) -> bool:
    """True if the timestamp file is missing or older than the interval."""
    try:
        mtime = datetime.datetime.fromtimestamp(path.stat().st_mtime)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.debug(f"Cannot stat update check file {path}: {e}")
        return False
    now = now or datetime.datetime.now()
    return now - mtime > datetime.timedelta(hours=interval_hours)


def mark_checked(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
    except OSError as e:
        logger.debug(f"Cannot write update check file {path}: {e}")


def get_latest_version(config: UpdateConfig, client: Optional[GitHubClient] = None) -> Optional[str]:
    """
    Raises:
        GitHubError: If the release lookup fails.
    """
    if client is None:
        with GitHubClient() as owned:
            return get_latest_version(config, owned)
    tag = client.get_latest_release(config.release_repo)
    return tag.lstrip("v") if tag else None


def check_for_update(
    config: UpdateConfig,
    current: str = CURRENT_VERSION,
    client: Optional[GitHubClient] = None,
    path: Optional[Path] = None,
) -> Optional[str]:
    """
    Rate-limited release check used in the background. Returns the newer
    version if there is one; every failure is swallowed into None.
    """
    if not config.check or is_dev_version(current):
        return None

    path = path or update_check_path()
    if not should_check(path, config.interval_hours):
        return None

    try:
        latest = get_latest_version(config, client)
    except GitHubError as e:
        logger.debug(f"Update check failed: {e}")
        return None
    mark_checked(path)

    if latest and is_newer_version(latest, current):
        return latest
    return None


def upgrade_command() -> str:
    """The command that upgrades the running installation."""
    if "pipx" in sys.prefix:
        return "pipx upgrade noidea"
    return f"{Path(sys.executable).name} -m pip install --upgrade noidea"
