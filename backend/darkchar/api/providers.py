"""Provider settings API router (API key, model selection, active provider)."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from darkchar.models.api import (
    ActiveProviderRequest,
    ApiKeyRequest,
    ModelListResponse,
    ModelSelectionRequest,
    ProviderSettings,
    ProvidersResponse,
)
from darkchar.models.provider import ProviderType
from darkchar.services.bootstrap import ServiceContainer
from darkchar.services.errors import ProviderIntegrationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/providers", tags=["providers"])


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency: retrieve the ServiceContainer from app.state."""
    services: ServiceContainer | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=503,
            detail="Provider settings unavailable. Service not initialized.",
        )
    return services


def _provider_settings(services: ServiceContainer, provider_type: ProviderType) -> ProviderSettings:
    context = services.context_store.get_context(provider_type)
    provider = services.registry.find_provider(provider_type)
    return ProviderSettings(
        provider_type=provider_type,
        display_name=provider.display_name if provider else provider_type.display_name,
        has_api_key=context.api_key is not None,
        selected_model=context.selected_model,
        available_models=list(context.available_models),
        supports_model_listing=provider.supports_model_listing() if provider else False,
        requires_model_selection=services.model_catalog.requires_model_selection(provider_type),
    )


@router.get("", response_model=ProvidersResponse)
def list_providers(services: ServiceContainer = Depends(get_services)) -> ProvidersResponse:
    """Return the active provider and a settings summary for each registered provider."""
    return ProvidersResponse(
        active_provider=services.context_store.get_active_provider_type(),
        providers=[
            _provider_settings(services, provider_type)
            for provider_type in services.registry.registered_provider_types()
        ],
    )


@router.put("/active", response_model=ProvidersResponse)
def set_active_provider(
    body: ActiveProviderRequest,
    services: ServiceContainer = Depends(get_services),
) -> ProvidersResponse:
    services.context_store.set_active_provider_type(body.provider_type)
    logger.info("Active provider set to %s", body.provider_type.value)
    return list_providers(services)


@router.put("/{provider_type}/api-key", response_model=ProviderSettings)
def set_api_key(
    provider_type: ProviderType,
    body: ApiKeyRequest,
    services: ServiceContainer = Depends(get_services),
) -> ProviderSettings:
    """Store an API key. A blank key clears the key, the selected model and the model list."""
    services.context_store.set_api_key(provider_type, body.api_key)
    return _provider_settings(services, provider_type)


@router.delete("/{provider_type}", response_model=ProviderSettings)
def clear_provider(
    provider_type: ProviderType,
    services: ServiceContainer = Depends(get_services),
) -> ProviderSettings:
    services.context_store.clear(provider_type)
    return _provider_settings(services, provider_type)


@router.put("/{provider_type}/model", response_model=ProviderSettings)
def select_model(
    provider_type: ProviderType,
    body: ModelSelectionRequest,
    services: ServiceContainer = Depends(get_services),
) -> ProviderSettings:
    services.context_store.set_selected_model(provider_type, body.model_id)
    return _provider_settings(services, provider_type)


@router.get("/{provider_type}/models", response_model=ModelListResponse)
def list_models(
    provider_type: ProviderType,
    services: ServiceContainer = Depends(get_services),
) -> ModelListResponse:
    """Return fetched models, or the static catalog when none were fetched yet."""
    context = services.context_store.get_context(provider_type)
    models = list(context.available_models) or services.model_catalog.list_models(provider_type)
    return ModelListResponse(
        provider_type=provider_type,
        models=models,
        selected_model=context.selected_model,
    )


@router.post("/{provider_type}/models/refresh", response_model=ModelListResponse)
def refresh_models(
    provider_type: ProviderType,
    services: ServiceContainer = Depends(get_services),
) -> ModelListResponse:
    """Fetch the model list from the provider using the stored API key.

    Raises:
        HTTPException 400: Provider cannot list models, or no API key is set.
        HTTPException 409: The API key changed while the list was being fetched.
        HTTPException 502: The upstream request failed.
    """
    provider = services.registry.find_provider(provider_type)
    if provider is None or not provider.supports_model_listing():
        raise HTTPException(status_code=400, detail="このプロバイダはモデル一覧の取得に対応していません。")
    api_key = services.context_store.get_api_key(provider_type)
    if api_key is None:
        raise HTTPException(status_code=400, detail="APIキーを入力してください。")

    try:
        models = provider.list_available_models(api_key)
    except ProviderIntegrationError as exc:
        logger.warning(
            "Model list refresh failed: %s",
            exc,
            extra={"provider": provider_type.value, "error_type": type(exc).__name__},
        )
        raise HTTPException(status_code=502, detail=str(exc) or "モデル一覧の取得に失敗しました。") from exc

    context = services.context_store.set_available_models_if_key(provider_type, api_key, models)
    if context is None:
        logger.warning(
            "API key changed during model list refresh; discarding result",
            extra={"provider": provider_type.value},
        )
        raise HTTPException(
            status_code=409,
            detail="モデル一覧の取得中にAPIキーが変更されました。もう一度お試しください。",
        )
    return ModelListResponse(
        provider_type=provider_type,
        models=list(context.available_models),
        selected_model=context.selected_model,
    )
