"""Wires the generation services together from settings."""
from dataclasses import dataclass
from typing import Optional

from darkchar.core.config import Settings
from darkchar.core.logging import setup_logging
from darkchar.models.provider import ProviderType
from darkchar.services.context_store import AiProviderContextStore
from darkchar.services.generation import CharacterGenerationService
from darkchar.services.local import LocalCharacterGenerationProvider, LocalNarrativeSynthesizer
from darkchar.services.model_catalog import GenerationModelCatalog, OpenAiModelCatalogClient
from darkchar.services.openai_client import OpenAiCharacterGenerationClient, OpenAiClientFactory
from darkchar.services.openai_provider import OpenAiCharacterGenerationProvider
from darkchar.services.prompt import PromptTemplateRenderer
from darkchar.services.providers import CharacterGenerationStrategyRegistry

logger = setup_logging("darkchar.bootstrap")


@dataclass
class ServiceContainer:
    """Long-lived services shared by the API routers."""

    context_store: AiProviderContextStore
    registry: CharacterGenerationStrategyRegistry
    model_catalog: GenerationModelCatalog
    generation_service: CharacterGenerationService


def _parse_provider_type(value: Optional[str]) -> ProviderType:
    try:
        return ProviderType((value or "").strip().lower())
    except ValueError:
        logger.warning("Unknown active provider %r; using %s", value, ProviderType.default().value)
        return ProviderType.default()


def build_services(settings: Settings) -> ServiceContainer:
    """Build the provider registry, settings store and generation service.

    An API key or model given in settings is copied into the store so the
    remote provider is ready without a manual settings step.
    """
    client_factory = OpenAiClientFactory(
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
        connect_timeout_seconds=settings.openai_connect_timeout_seconds,
    )
    synthesizer = LocalNarrativeSynthesizer()
    openai_provider = OpenAiCharacterGenerationProvider(
        generation_client=OpenAiCharacterGenerationClient(
            client_factory,
            renderer=PromptTemplateRenderer(),
            temperature=settings.openai_temperature,
            max_output_tokens=settings.openai_max_output_tokens,
        ),
        model_catalog_client=OpenAiModelCatalogClient(client_factory),
    )
    registry = CharacterGenerationStrategyRegistry(
        [openai_provider, LocalCharacterGenerationProvider(synthesizer)]
    )

    context_store = AiProviderContextStore(_parse_provider_type(settings.active_provider))
    if settings.openai_api_key:
        context_store.set_api_key(ProviderType.openai, settings.openai_api_key)
        context_store.set_selected_model(ProviderType.openai, settings.openai_model)

    return ServiceContainer(
        context_store=context_store,
        registry=registry,
        model_catalog=GenerationModelCatalog(),
        generation_service=CharacterGenerationService(context_store, registry, synthesizer),
    )
