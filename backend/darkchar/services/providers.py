"""Provider capability interface and the registry that resolves providers by type."""
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from darkchar.models.character import CharacterInput, DarknessSelection
from darkchar.models.provider import (
    AiProviderContext,
    ProviderConfigurationStatus,
    ProviderGenerationResult,
    ProviderType,
)


class CharacterGenerationProvider(ABC):
    """A pluggable narrative generation backend."""

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        ...

    @property
    def display_name(self) -> str:
        return self.provider_type.display_name

    @abstractmethod
    def assess_configuration(self, context: AiProviderContext) -> ProviderConfigurationStatus:
        """Inspect the settings snapshot and report readiness. Never calls the network."""

    @abstractmethod
    def generate(
        self,
        context: AiProviderContext,
        character_input: CharacterInput,
        selection: DarknessSelection,
    ) -> ProviderGenerationResult:
        """Produce a narrative.

        Raises:
            ProviderIntegrationError: When the backend cannot produce text.
        """

    def build_failure_warning(self, error: Optional[BaseException]) -> str:
        """Build the user-facing warning shown when generation fell back to the sample."""
        detail = str(error) if error is not None else ""
        base = f"{self.display_name}連携に失敗したため、サンプル結果を表示しています。"
        if not detail.strip():
            return base
        return f"{base}詳細: {detail}"

    def supports_model_listing(self) -> bool:
        return False

    def list_available_models(self, api_key: str) -> list[str]:
        return []


class CharacterGenerationStrategyRegistry:
    """Resolves provider implementations by :class:`ProviderType`.

    Built once from the full set of providers; a later registration of the
    same type replaces an earlier one.
    """

    def __init__(self, providers: Iterable[CharacterGenerationProvider]) -> None:
        self._providers: dict[ProviderType, CharacterGenerationProvider] = {}
        for provider in providers:
            self._providers[provider.provider_type] = provider

    def find_provider(self, provider_type: Optional[ProviderType]) -> Optional[CharacterGenerationProvider]:
        """Return the provider for ``provider_type``, or None when unknown."""
        if provider_type is None:
            return None
        return self._providers.get(provider_type)

    def registered_provider_types(self) -> list[ProviderType]:
        return [t for t in ProviderType if t in self._providers]
