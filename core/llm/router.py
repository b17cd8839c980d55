import os
from typing import Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from config.models import LLMConfig
from utils.credentials import CredentialStore
from utils.errors import MissingCredentialError
from utils.logger import logger

DEFAULT_PROVIDER = "openai"
GENERIC_API_KEY_ENV = "NOIDEA_API_KEY"


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    base_url: str
    default_model: str
    api_key_env: str

    @property
    def keyring_service(self) -> str:
        return f"noidea-{self.name}-api-key"


BUILTIN_PROVIDERS = (
    ProviderConfig(
        name="xai",
        display_name="xAI",
        base_url="https://api.x.ai/v1",
        default_model="grok-2-1212",
        api_key_env="XAI_API_KEY",
    ),
    ProviderConfig(
        name="openai",
        display_name="OpenAI",
        base_url="https://api.openai.com/v1",
        default_model="gpt-3.5-turbo",
        api_key_env="OPENAI_API_KEY",
    ),
    ProviderConfig(
        name="deepseek",
        display_name="DeepSeek",
        base_url="https://api.deepseek.com/v1",
        default_model="deepseek-chat",
        api_key_env="DEEPSEEK_API_KEY",
    ),
)


class ProviderTable:
    """
    Immutable lookup of known providers. Built once at startup and passed
    to whatever needs to resolve a provider name.
    """

    def __init__(self, providers: Iterable[ProviderConfig], default: str = DEFAULT_PROVIDER):
        self._providers: Dict[str, ProviderConfig] = {p.name: p for p in providers}
        if default not in self._providers:
            raise ValueError(f"Default provider '{default}' is not in the table.")
        self._default = default

    @property
    def default(self) -> ProviderConfig:
        return self._providers[self._default]

    def resolve(self, name: Optional[str]) -> ProviderConfig:
        """Unknown or empty names resolve to the default provider."""
        key = (name or "").strip().lower()
        if key in self._providers:
            return self._providers[key]
        if key:
            logger.warning(f"Unknown provider '{name}', falling back to '{self._default}'.")
        return self.default

    def names(self):
        return list(self._providers)

    def __contains__(self, name: str) -> bool:
        return name in self._providers


def default_provider_table() -> ProviderTable:
    return ProviderTable(BUILTIN_PROVIDERS)


def locate_api_key(
    llm_config: LLMConfig,
    provider: ProviderConfig,
    credentials: Optional[CredentialStore] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Finds an API key and says where it came from: explicit config,
    NOIDEA_API_KEY, the provider's own environment variable, then the keyring.

    Returns:
        (key, source), or (None, None) when nothing is configured.
    """
    environ = os.environ if environ is None else environ
    for source, candidate in (
        ("config", llm_config.api_key),
        (GENERIC_API_KEY_ENV, environ.get(GENERIC_API_KEY_ENV)),
        (provider.api_key_env, environ.get(provider.api_key_env)),
    ):
        if candidate:
            return candidate, source

    credentials = credentials or CredentialStore()
    stored = credentials.get(provider.keyring_service)
    return (stored, "keyring") if stored else (None, None)


def resolve_api_key(
    llm_config: LLMConfig,
    provider: ProviderConfig,
    credentials: Optional[CredentialStore] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    return locate_api_key(llm_config, provider, credentials, environ)[0]


def get_provider(
    llm_config: LLMConfig,
    table: Optional[ProviderTable] = None,
    credentials: Optional[CredentialStore] = None,
):
    """
    Builds the completion client for the configured provider.

    Raises:
        MissingCredentialError: If no API key can be found.
    """
    # deferred: the provider module imports ProviderConfig from here
    from core.llm.providers.openai_compatible import OpenAICompatibleProvider

    table = table or default_provider_table()
    provider = table.resolve(llm_config.provider)
    api_key = resolve_api_key(llm_config, provider, credentials)
    if not api_key:
        raise MissingCredentialError(
            f"No API key found for {provider.display_name}",
            remediation="noidea config apikey",
        )

    return OpenAICompatibleProvider(
        provider=provider,
        api_key=api_key,
        model=llm_config.model or provider.default_model,
        base_url=llm_config.base_url or provider.base_url,
        timeout_sec=llm_config.timeout_sec,
    )
