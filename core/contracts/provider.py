from typing import Optional, Protocol


class CompletionProvider(Protocol):
    """A protocol for chat-completion providers."""

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        """
        Requests a single, non-streamed chat completion.

        Args:
            system_prompt: The system message.
            user_prompt: The user message.
            temperature: Sampling temperature.
            max_tokens: Upper bound on generated tokens.
            model: Overrides the provider's configured model.

        Returns:
            The text of the first (and only) candidate.

        Raises:
            ProviderError: On network, HTTP, decoding or response-shape failures.
        """
        ...
