import json
from typing import Optional

import httpx

from core.llm.router import ProviderConfig
from utils.errors import ProviderError
from utils.logger import logger

VALIDATION_TIMEOUT_SEC = 5


class OpenAICompatibleProvider:
    """
    A provider for any OpenAI-compatible chat-completion endpoint
    (OpenAI, xAI, DeepSeek). One request per call, no retries.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_sec: float = 10,
    ):
        if not api_key:
            raise ProviderError(f"{provider.display_name} API key is empty.")
        self.provider = provider
        self.model = model or provider.default_model
        self._client = httpx.Client(
            base_url=base_url or provider.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout_sec,
        )

    def _request(self, payload: dict) -> httpx.Response:
        name = self.provider.display_name
        try:
            response = self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            raise ProviderError(f"{name} API error: request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            try:
                error_details = e.response.json()
                error_message = error_details.get("error", {}).get("message", e.response.text)
            except (json.JSONDecodeError, AttributeError):
                error_message = e.response.text
            raise ProviderError(f"{name} API error ({e.response.status_code}): {error_message}") from e
        except httpx.RequestError as e:
            raise ProviderError(f"{name} API error: network failure: {e}") from e

    def _build_payload(self, system_prompt: str, user_prompt: str, model: str, temperature: float, max_tokens: int) -> dict:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "n": 1,
            "stream": False,
        }

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        model = model or self.model
        logger.debug(f"Requesting completion from {self.provider.display_name} ({model}), max_tokens={max_tokens}")
        response = self._request(self._build_payload(system_prompt, user_prompt, model, temperature, max_tokens))

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.provider.display_name} API error: invalid JSON response: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"{self.provider.display_name} API error: no choices in response") from e
        return content or ""

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()



def validate_api_key(provider: ProviderConfig, api_key: str, base_url: Optional[str] = None) -> Optional[bool]:
    """
    Checks a key against GET /models. Returns None when the endpoint could
    not be reached at all.
    """
    if not api_key:
        return False
    try:
        response = httpx.get(
            f"{(base_url or provider.base_url).rstrip('/')}/models",
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=VALIDATION_TIMEOUT_SEC,
        )
    except httpx.HTTPError as e:
        logger.debug(f"API key validation for {provider.display_name} failed: {e}")
        return None
    return response.is_success
