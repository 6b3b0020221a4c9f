"""OpenAI-backed character generation provider."""
from darkchar.models.character import CharacterInput, DarknessSelection
from darkchar.models.provider import (
    AiProviderContext,
    ProviderConfigurationStatus,
    ProviderGenerationResult,
    ProviderType,
)
from darkchar.services.errors import ProviderIntegrationError
from darkchar.services.model_catalog import OpenAiModelCatalogClient
from darkchar.services.openai_client import (
    MISSING_API_KEY_MESSAGE,
    MISSING_MODEL_MESSAGE,
    OpenAiCharacterGenerationClient,
)
from darkchar.services.providers import CharacterGenerationProvider

MODEL_NOT_SELECTED_WARNING = "OpenAIモデルが選択されていないため、サンプル結果を表示しています。"


class OpenAiCharacterGenerationProvider(CharacterGenerationProvider):
    """Generates narratives through the OpenAI Responses API."""

    def __init__(
        self,
        generation_client: OpenAiCharacterGenerationClient,
        model_catalog_client: OpenAiModelCatalogClient,
    ) -> None:
        self.generation_client = generation_client
        self.model_catalog_client = model_catalog_client

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.openai

    def assess_configuration(self, context: AiProviderContext) -> ProviderConfigurationStatus:
        if context.api_key is None:
            return ProviderConfigurationStatus.not_ready()
        if context.selected_model is None:
            return ProviderConfigurationStatus.not_ready_with_warning(MODEL_NOT_SELECTED_WARNING)
        return ProviderConfigurationStatus.on_ready()

    def generate(
        self,
        context: AiProviderContext,
        character_input: CharacterInput,
        selection: DarknessSelection,
    ) -> ProviderGenerationResult:
        if context.api_key is None:
            raise ProviderIntegrationError(MISSING_API_KEY_MESSAGE)
        if context.selected_model is None:
            raise ProviderIntegrationError(MISSING_MODEL_MESSAGE)
        return self.generation_client.generate_narrative(
            context.api_key, context.selected_model, character_input, selection
        )

    def supports_model_listing(self) -> bool:
        return True

    def list_available_models(self, api_key: str) -> list[str]:
        return self.model_catalog_client.list_models(api_key)
