import collections.abc
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from config.loader import load_config_file
from config.models import Config
from utils.errors import ConfigError
from utils.logger import logger

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"
USER_CONFIG_DIR = Path.home() / ".noidea"
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_FILENAME = ".noidea.yaml"

ENV_FILE_LOCATIONS = [Path(".env"), Path(".noidea.env"), USER_CONFIG_DIR / ".env"]

# Environment variables that override the merged file configuration.
ENV_OVERRIDES = {
    "NOIDEA_PROVIDER": ("llm", "provider"),
    "NOIDEA_MODEL": ("llm", "model"),
    "NOIDEA_LLM_ENABLED": ("llm", "enabled"),
    "NOIDEA_PERSONALITY": ("moai", "personality"),
}


def deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merges two dictionaries.
    Arrays are replaced, not merged.
    """
    for key, value in source.items():
        if isinstance(value, collections.abc.Mapping) and key in target and isinstance(target[key], collections.abc.Mapping):
            target[key] = deep_merge(dict(target[key]), value)
        else:
            target[key] = value
    return target


def find_project_root(start_dir: Path = Path(".")) -> Optional[Path]:
    """
    Finds the project root by searching upwards for a .git directory.
    """
    d = start_dir.resolve()
    while d != d.parent:
        if (d / ".git").exists():
            return d
        d = d.parent
    return None


def find_project_config() -> Optional[Path]:
    project_root = find_project_root()
    if project_root:
        project_config_path = project_root / PROJECT_CONFIG_FILENAME
        if project_config_path.is_file():
            return project_config_path
    return None


def load_env_files() -> Optional[Path]:
    """
    Loads the first .env file found. Variables already present in the
    environment are never overridden.
    """
    for location in ENV_FILE_LOCATIONS:
        if location.is_file():
            load_dotenv(location, override=False)
            logger.debug(f"Loaded environment from {location}")
            return location
    return None


def apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            config_data.setdefault(section, {})[key] = value
            logger.debug(f"Config {section}.{key} overridden by {env_var}")
    return config_data


def load_and_merge_configs(custom_config_path: Optional[str] = None) -> Config:
    """
    Loads all configurations (default, user, project) and merges them, then
    applies environment overrides. A custom config path replaces the user and
    project files.
    """
    config_paths: List[Path] = []

    if DEFAULT_CONFIG_PATH.is_file():
        config_paths.append(DEFAULT_CONFIG_PATH)

    if custom_config_path:
        path = Path(custom_config_path)
        if not path.is_file():
            raise ConfigError(f"Custom config file not found at: {custom_config_path}")
        config_paths.append(path)
        logger.info(f"Using custom configuration from: {custom_config_path}")
    else:
        if USER_CONFIG_PATH.is_file():
            config_paths.append(USER_CONFIG_PATH)
        project_config_path = find_project_config()
        if project_config_path:
            config_paths.append(project_config_path)

    merged_config: Dict[str, Any] = {}
    for path in config_paths:
        logger.info(f"Loading configuration from: {path}")
        try:
            merged_config = deep_merge(merged_config, load_config_file(path))
        except ConfigError as e:
            logger.warning(f"Could not load or parse config at {path}: {e}")

    merged_config = apply_env_overrides(merged_config)

    try:
        final_config = Config(**merged_config)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    logger.debug(f"Final merged config: {final_config.model_dump_json(indent=2, exclude={'llm': {'api_key'}})}")
    return final_config
