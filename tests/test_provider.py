import httpx
import pytest

from config.models import LLMConfig
from core.llm.providers.openai_compatible import OpenAICompatibleProvider, validate_api_key
from core.llm.router import default_provider_table, get_provider, locate_api_key, resolve_api_key
from utils.errors import MissingCredentialError, ProviderError


class FakeCredentials:
    def __init__(self, secrets=None):
        self.secrets = dict(secrets or {})

    def get(self, service_name):
        return self.secrets.get(service_name)

    def store(self, service_name, secret):
        self.secrets[service_name] = secret

    def delete(self, service_name):
        self.secrets.pop(service_name, None)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("NOIDEA_API_KEY", "OPENAI_API_KEY", "XAI_API_KEY", "DEEPSEEK_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def openai_provider():
    table = default_provider_table()
    return OpenAICompatibleProvider(table.resolve("openai"), api_key="sk-test", model="gpt-4o-mini")


def test_unknown_provider_resolves_to_default():
    """An unknown provider name falls back to OpenAI's base URL and model."""
    table = default_provider_table()
    resolved = table.resolve("nonexistent")

    assert resolved.name == "openai"
    assert resolved.base_url == "https://api.openai.com/v1"
    assert resolved.default_model == "gpt-3.5-turbo"
    assert table.resolve(None) is table.default


def test_known_providers():
    table = default_provider_table()
    assert table.resolve("XAI").base_url == "https://api.x.ai/v1"
    assert table.resolve("deepseek").default_model == "deepseek-chat"
    assert set(table.names()) == {"xai", "openai", "deepseek"}


def test_api_key_resolution_order():
    provider = default_provider_table().resolve("xai")
    credentials = FakeCredentials({"noidea-xai-api-key": "from-keyring"})

    env = {"NOIDEA_API_KEY": "generic", "XAI_API_KEY": "specific"}
    assert locate_api_key(LLMConfig(api_key="explicit"), provider, credentials, env) == ("explicit", "config")
    assert locate_api_key(LLMConfig(), provider, credentials, env) == ("generic", "NOIDEA_API_KEY")
    assert locate_api_key(LLMConfig(), provider, credentials, {"XAI_API_KEY": "specific"}) == ("specific", "XAI_API_KEY")
    assert locate_api_key(LLMConfig(), provider, credentials, {}) == ("from-keyring", "keyring")
    assert resolve_api_key(LLMConfig(), provider, FakeCredentials(), {}) is None


def test_get_provider(clean_env):
    config = LLMConfig(provider="deepseek", api_key="sk-test")
    provider = get_provider(config, credentials=FakeCredentials())

    assert isinstance(provider, OpenAICompatibleProvider)
    assert provider.model == "deepseek-chat"


def test_get_provider_without_key(clean_env):
    with pytest.raises(MissingCredentialError) as excinfo:
        get_provider(LLMConfig(provider="openai"), credentials=FakeCredentials())
    assert "noidea config apikey" in str(excinfo.value)


def test_provider_requires_api_key():
    with pytest.raises(ProviderError, match="API key is empty"):
        OpenAICompatibleProvider(default_provider_table().default, api_key="")


def test_complete(openai_provider, mocker):
    mock_response = mocker.MagicMock(spec=httpx.Response)
    mock_response.status_code = 200
    mock_response.json.return_value = {"choices": [{"message": {"content": "feat: add parser"}}]}
    mock_post = mocker.patch("httpx.Client.post", return_value=mock_response)

    result = openai_provider.complete("system", "user", temperature=0.3, max_tokens=150)

    assert result == "feat: add parser"
    mock_post.assert_called_once()
    assert mock_post.call_args[0][0] == "/chat/completions"
    payload = mock_post.call_args[1]["json"]
    assert payload["model"] == "gpt-4o-mini"
    assert payload["temperature"] == 0.3
    assert payload["max_tokens"] == 150
    assert payload["n"] == 1
    assert payload["stream"] is False
    assert payload["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "user"},
    ]


def test_complete_http_error(openai_provider, mocker):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    mock_response = mocker.MagicMock(spec=httpx.Response)
    mock_response.status_code = 401
    mock_response.json.return_value = {"error": {"message": "Incorrect API key"}}
    mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "Unauthorized", request=request, response=mock_response
    )
    mocker.patch("httpx.Client.post", return_value=mock_response)

    with pytest.raises(ProviderError, match=r"OpenAI API error \(401\): Incorrect API key"):
        openai_provider.complete("s", "u", temperature=0.3, max_tokens=10)


def test_complete_timeout(openai_provider, mocker):
    mocker.patch("httpx.Client.post", side_effect=httpx.ReadTimeout("timed out"))

    with pytest.raises(ProviderError, match="timed out"):
        openai_provider.complete("s", "u", temperature=0.3, max_tokens=10)


def test_complete_without_choices(openai_provider, mocker):
    mock_response = mocker.MagicMock(spec=httpx.Response)
    mock_response.json.return_value = {"choices": []}
    mocker.patch("httpx.Client.post", return_value=mock_response)

    with pytest.raises(ProviderError, match="no choices"):
        openai_provider.complete("s", "u", temperature=0.3, max_tokens=10)


def test_validate_api_key(mocker):
    provider = default_provider_table().default
    ok = mocker.MagicMock(spec=httpx.Response)
    ok.is_success = True
    mock_get = mocker.patch("httpx.get", return_value=ok)

    assert validate_api_key(provider, "sk-test") is True
    assert mock_get.call_args[0][0] == "https://api.openai.com/v1/models"

    mock_get.side_effect = httpx.ConnectError("offline")
    assert validate_api_key(provider, "sk-test") is None
    assert validate_api_key(provider, "") is False


def test_provider_closes_its_client(mocker):
    close = mocker.patch("httpx.Client.close")
    with OpenAICompatibleProvider(default_provider_table().default, api_key="sk-test") as provider:
        assert provider.model == "gpt-3.5-turbo"
    close.assert_called_once()
