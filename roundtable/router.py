"""Provider failover: one chat request, tried across providers until one answers."""

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from config.config_loader import AppConfig
from roundtable.errors import TransportError
from roundtable.models import ChatMessage, ChatResponse
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import ChatProvider, ProviderError
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[ChatProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


class ChatClient(Protocol):
    """What roles and the chairman need from the transport layer."""

    async def chat(
        self,
        messages: list[ChatMessage],
        preferred: str | None = None,
        peer: str | None = None,
    ) -> ChatResponse: ...


class FailureTracker:
    """Recent consecutive-failure counts per provider, scoped to one router."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def count(self, provider: str) -> int:
        return self._counts.get(provider, 0)

    def record_failure(self, provider: str) -> int:
        self._counts[provider] = self.count(provider) + 1
        return self._counts[provider]

    def record_success(self, provider: str) -> None:
        self._counts[provider] = 0

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()


class ChatRouter:
    """Send a conversation to the preferred provider, failing over to the rest.

    Order: preferred (or the router default), then the named peer, then every
    other available provider by ascending failure count.
    """

    def __init__(
        self,
        providers: Iterable[ChatProvider],
        tracker: FailureTracker | None = None,
        default_provider: str | None = None,
        default_peer: str | None = None,
    ) -> None:
        self._providers = list(providers)
        self.tracker = tracker if tracker is not None else FailureTracker()
        self._default_provider = default_provider
        self._default_peer = default_peer

    def provider_names(self) -> list[str]:
        return [p.name() for p in self._providers]

    def ordered_providers(self, preferred: str | None = None, peer: str | None = None) -> list[ChatProvider]:
        preferred = preferred or self._default_provider
        peer = peer or self._default_peer
        available = [p for p in self._providers if p.is_available()]

        primary = next((p for p in available if p.name() == preferred), None)
        peer_provider = None
        if peer and peer != preferred:
            peer_provider = next((p for p in available if p.name() == peer), None)
        rest = [p for p in available if p.name() not in (preferred, peer)]
        rest.sort(key=lambda p: self.tracker.count(p.name()))

        ordered: list[ChatProvider] = []
        if primary:
            ordered.append(primary)
        if peer_provider:
            ordered.append(peer_provider)
        ordered.extend(rest)
        return ordered

    async def chat(
        self,
        messages: list[ChatMessage],
        preferred: str | None = None,
        peer: str | None = None,
    ) -> ChatResponse:
        """Return the first successful reply.

        Raises:
            TransportError: No provider available, or all of them failed.
        """
        providers = self.ordered_providers(preferred, peer)
        if not providers:
            raise TransportError("No chat providers available. Check API keys in .env.")

        last_error: Exception | None = None
        for provider in providers:
            try:
                response = await provider.chat(messages)
            except asyncio.CancelledError:
                count = self.tracker.record_failure(provider.name())
                logger.warning("Provider %s abandoned mid-call (failures: %d)", provider.name(), count)
                raise
            except ProviderError as exc:
                last_error = exc
                count = self.tracker.record_failure(provider.name())
                logger.warning("Provider %s failed (failures: %d): %s", provider.name(), count, exc)
                continue
            self.tracker.record_success(provider.name())
            return response

        raise TransportError(f"All chat providers failed, last error: {last_error}")


def build_providers(config: AppConfig) -> dict[str, ChatProvider]:
    """Build all available providers. Returns dict keyed by name."""
    providers: dict[str, ChatProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except ProviderError as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def build_router(config: AppConfig, providers: dict[str, ChatProvider] | None = None) -> ChatRouter:
    if providers is None:
        providers = build_providers(config)
    return ChatRouter(
        providers.values(),
        tracker=FailureTracker(),
        default_provider=config.router.default_provider,
        default_peer=config.router.peer_provider,
    )
