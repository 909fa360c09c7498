from abc import ABC, abstractmethod
from collections.abc import Iterator

import structlog

from ..exceptions import ProviderRegistrationError
from ..schemas import ComplianceCheckResult

log = structlog.get_logger(__name__)


class WatchlistProvider(ABC):
    """A single watchlist source. Implementations are I/O bound."""

    source: str

    @property
    def key(self) -> str:
        return self.source.lower()

    @abstractmethod
    async def check_person(
        self, identification: str, full_name: str
    ) -> ComplianceCheckResult: ...


class ProviderRegistry:
    """Open collection of watchlist providers, keyed by lower-cased source."""

    def __init__(self, providers: list[WatchlistProvider] | None = None):
        self._providers: dict[str, WatchlistProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: WatchlistProvider) -> None:
        if not getattr(provider, "source", None):
            raise ProviderRegistrationError(
                f"{type(provider).__name__} does not declare a source"
            )
        if provider.key in self._providers:
            raise ProviderRegistrationError(
                f"Provider for source {provider.source} already registered"
            )
        self._providers[provider.key] = provider
        log.info("Watchlist provider registered", source=provider.source)

    def unregister(self, source: str) -> None:
        self._providers.pop(source.lower(), None)

    @property
    def sources(self) -> list[str]:
        return list(self._providers)

    def __iter__(self) -> Iterator[WatchlistProvider]:
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)
