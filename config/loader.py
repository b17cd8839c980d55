import os
import re
from pathlib import Path
from typing import Any, Dict, IO, Union

import yaml

from utils.errors import ConfigError

# Regex for environment variable substitution
ENV_VAR_MATCHER = re.compile(r"^\$\{(\w+)\}$")


class EnvVarLoader(yaml.SafeLoader):
    """SafeLoader that expands scalars of the form ${VAR_NAME}."""


def _env_var_constructor(loader: EnvVarLoader, node: yaml.ScalarNode) -> str:
    """
    Substitutes an environment variable, e.g. ``${OPENAI_API_KEY}``.
    """
    value = loader.construct_scalar(node)
    match = ENV_VAR_MATCHER.match(value)
    if not match:
        return value

    env_var = match.group(1)
    replacement = os.getenv(env_var)
    if replacement is None:
        raise ConfigError(f"Environment variable '{env_var}' not found for substitution in config.")

    return replacement


EnvVarLoader.add_constructor("!env", _env_var_constructor)
EnvVarLoader.add_implicit_resolver("!env", ENV_VAR_MATCHER, None)


def load_config(config_file: IO[str]) -> Dict[str, Any]:
    """
    Loads a YAML document from a file-like object.

    Raises:
        ConfigError: If the document cannot be parsed or is not a mapping.
    """
    try:
        data = yaml.load(config_file, Loader=EnvVarLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping.")
    return data


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return load_config(f)
    except OSError as e:
        raise ConfigError(f"Could not read configuration file {path}: {e}") from e
