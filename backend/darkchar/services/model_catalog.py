"""Model catalogs: the remote OpenAI model list and the static per-provider defaults."""
import re
from typing import Any, Iterable, Optional

import openai
from openai import OpenAI

from darkchar.core.logging import setup_logging
from darkchar.models.provider import ProviderType
from darkchar.services.errors import ProviderIntegrationError
from darkchar.services.openai_client import OpenAiClientFactory

logger = setup_logging("darkchar.model_catalog")

_ALLOWED_PREFIX = re.compile(r"^(gpt-|o\d+-)", re.IGNORECASE)
_DATE_SUFFIX = re.compile(r"-(\d{4}-\d{2}-\d{2}|\d{4})$")
_EXCLUDED_TOKENS = (
    "embedding",
    "image",
    "audio",
    "realtime",
    "preview",
    "tts",
    "transcribe",
    "speech-to-text",
)

OPENAI_DEFAULT_MODELS = (
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4.1",
    "gpt-4.1-mini",
)


def filter_allowed_models(model_ids: Iterable[Optional[str]]) -> list[str]:
    """Keep text-generation model ids usable for narrative generation.

    Keeps ids starting with ``gpt-`` or ``o<digits>-``; drops None,
    date-stamped snapshots and embedding/image/audio/realtime/preview/TTS/
    transcription variants. The result is trimmed, de-duplicated and sorted.
    """
    allowed: set[str] = set()
    for model_id in model_ids:
        if model_id is None:
            continue
        candidate = model_id.strip()
        if not _ALLOWED_PREFIX.match(candidate):
            continue
        if _DATE_SUFFIX.search(candidate):
            continue
        lowered = candidate.lower()
        if any(token in lowered for token in _EXCLUDED_TOKENS):
            continue
        allowed.add(candidate)
    return sorted(allowed)


class OpenAiModelCatalogClient:
    """Fetches the model list available to an API key."""

    def __init__(self, client_factory: OpenAiClientFactory) -> None:
        self.client_factory = client_factory

    def list_models(self, api_key: str) -> list[str]:
        """Return the filtered, sorted model ids for ``api_key``.

        Raises:
            ProviderIntegrationError: When the request fails or returns nothing.
        """
        logger.info("Fetching OpenAI model catalog")
        with self.client_factory.create_client(api_key) as client:
            page = self._fetch_page(client)

        data = getattr(page, "data", None)
        if data is None:
            logger.warning("Model catalog response was empty")
            raise ProviderIntegrationError("OpenAIモデル一覧を取得できませんでした。")

        models = filter_allowed_models(getattr(model, "id", None) for model in data)
        logger.info("Retrieved %d models from OpenAI", len(models))
        return models

    @staticmethod
    def _fetch_page(client: OpenAI) -> Any:
        try:
            return client.models.list()
        except openai.OpenAIError as exc:
            logger.warning(
                "OpenAI model catalog request failed: %s",
                exc,
                extra={"provider": ProviderType.openai.value, "error_type": type(exc).__name__},
            )
            raise ProviderIntegrationError("OpenAIモデル一覧の取得に失敗しました。") from exc
        except Exception as exc:
            logger.warning(
                "OpenAI model catalog request error: %s",
                exc,
                extra={"provider": ProviderType.openai.value, "error_type": type(exc).__name__},
            )
            raise ProviderIntegrationError("OpenAIモデル一覧の取得中にエラーが発生しました。") from exc


class GenerationModelCatalog:
    """Static model ids per provider, used before a remote list has been fetched."""

    def __init__(self) -> None:
        self._models: dict[ProviderType, tuple[str, ...]] = {
            ProviderType.openai: OPENAI_DEFAULT_MODELS,
        }
        self._requires_selection = frozenset({ProviderType.openai})

    def list_models(self, provider_type: ProviderType) -> list[str]:
        return list(self._models.get(provider_type, ()))

    def requires_model_selection(self, provider_type: ProviderType) -> bool:
        return provider_type in self._requires_selection
