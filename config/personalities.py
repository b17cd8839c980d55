from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from config.loader import load_config_file
from config.models import Personality
from utils.errors import ConfigError
from utils.logger import logger

BUILTIN_PERSONALITIES_PATH = Path(__file__).parent / "personalities.yaml"

FALLBACK_PERSONALITY = Personality(
    name="snarky_reviewer",
    description="A sarcastic code reviewer with a sharp wit",
    system_prompt="You are a snarky but insightful Git expert named Moai. Give a one-liner of feedback on the commit.",
    user_prompt_template='Commit message: "{{ message }}". Give your one-liner feedback.',
    max_tokens=150,
    temperature=0.7,
)


class PersonalitySet(BaseModel):
    default: str = FALLBACK_PERSONALITY.name
    personalities: Dict[str, Personality] = Field(default_factory=dict)

    def get(self, name: Optional[str] = None) -> Personality:
        """
        Looks up a personality by name. Never raises: an unknown or empty
        name resolves to the set's default, then to the built-in fallback.
        """
        if name and name in self.personalities:
            return self.personalities[name]
        if name:
            logger.warning(f"Personality '{name}' not found, using '{self.default}'.")
        if self.default in self.personalities:
            return self.personalities[self.default]
        if self.personalities:
            return next(iter(self.personalities.values()))
        return FALLBACK_PERSONALITY

    def names(self):
        return list(self.personalities.keys())


def _parse_personalities(data: dict) -> PersonalitySet:
    """
    Raises:
        ConfigError: If `personalities` or one of its entries is not a mapping.
    """
    section = data.get("personalities") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'personalities' must be a mapping of name to settings, got {type(section).__name__}.")

    entries = {}
    for name, raw in section.items():
        if not isinstance(raw, dict):
            raise ConfigError(f"Personality '{name}' must be a mapping, got {type(raw).__name__}.")
        entries[str(name)] = Personality(name=str(name), **raw)
    return PersonalitySet(default=data.get("default") or FALLBACK_PERSONALITY.name, personalities=entries)


def default_personalities() -> PersonalitySet:
    """The packaged personality set, or a single fallback if it is unreadable."""
    try:
        return _parse_personalities(load_config_file(BUILTIN_PERSONALITIES_PATH))
    except (ConfigError, ValidationError, TypeError) as e:
        logger.error(f"Built-in personalities could not be loaded: {e}")
        return PersonalitySet(personalities={FALLBACK_PERSONALITY.name: FALLBACK_PERSONALITY})


def load_personalities(personality_file: Optional[str] = None) -> PersonalitySet:
    """
    Loads the built-in personalities and overlays a user file, if any.
    A broken user file is logged and ignored.
    """
    builtin = default_personalities()
    if not personality_file:
        return builtin

    path = Path(personality_file).expanduser()
    if not path.is_file():
        logger.warning(f"Personality file {path} not found, using built-in personalities.")
        return builtin

    try:
        custom = _parse_personalities(load_config_file(path))
    except (ConfigError, ValidationError, TypeError) as e:
        logger.warning(f"Could not load personalities from {path}: {e}")
        return builtin

    merged = dict(builtin.personalities)
    merged.update(custom.personalities)
    default = custom.default if custom.default in merged else builtin.default
    return PersonalitySet(default=default, personalities=merged)
