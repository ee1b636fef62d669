"""Abstract base for all chat model providers."""

from abc import ABC, abstractmethod

from roundtable.models import ChatMessage, ChatResponse


class ProviderError(Exception):
    """Raised when a single provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ChatProvider(ABC):
    """Abstract base for all chat model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'deepseek', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    def is_available(self) -> bool:
        """Whether the provider can currently take requests."""
        return True

    @abstractmethod
    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        """Send a conversation and return the model's reply.

        Args:
            messages: System/user/assistant messages, in order.

        Returns:
            ChatResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...
