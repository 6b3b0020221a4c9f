"""Request and response schemas for the HTTP API."""
from typing import Optional

from pydantic import BaseModel, Field

from darkchar.models.character import CharacterInput, DarknessSelection
from darkchar.models.provider import GenerationResult, ProviderType


class GenerateCharacterRequest(BaseModel):
    """Request model for one narrative generation."""

    character_input: CharacterInput
    darkness_selection: DarknessSelection
    provider_type: Optional[ProviderType] = None


class GenerateCharacterResponse(BaseModel):
    """生成結果。warning_message があればUIで警告として表示する。"""

    narrative: str
    generated_at: str
    used_provider: bool
    warning_message: Optional[str] = None
    prompt: Optional[str] = None

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateCharacterResponse":
        return cls(
            narrative=result.generated_character.narrative,
            generated_at=result.generated_character.generated_at.isoformat(),
            used_provider=result.used_provider,
            warning_message=result.warning_message,
            prompt=result.prompt,
        )


class ApiKeyRequest(BaseModel):
    """A blank key clears the stored key and its model state."""

    api_key: str = Field("", max_length=512)


class ModelSelectionRequest(BaseModel):
    model_id: Optional[str] = None


class ActiveProviderRequest(BaseModel):
    provider_type: ProviderType


class ProviderSettings(BaseModel):
    """Per-provider settings summary. The API key itself is never returned."""

    provider_type: ProviderType
    display_name: str
    has_api_key: bool
    selected_model: Optional[str] = None
    available_models: list[str] = Field(default_factory=list)
    supports_model_listing: bool = False
    requires_model_selection: bool = False


class ProvidersResponse(BaseModel):
    active_provider: ProviderType
    providers: list[ProviderSettings]


class ModelListResponse(BaseModel):
    provider_type: ProviderType
    models: list[str]
    selected_model: Optional[str] = None
