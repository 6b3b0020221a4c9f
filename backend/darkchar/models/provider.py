"""Provider configuration and generation result data models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from darkchar.models.character import GeneratedCharacter


class ProviderType(str, Enum):
    """Available generation backends."""

    openai = "openai"
    local = "local"

    @property
    def display_name(self) -> str:
        return "OpenAI" if self is ProviderType.openai else "ローカル"

    @classmethod
    def default(cls) -> "ProviderType":
        return cls.openai


class AiProviderContext(BaseModel):
    """Read-only snapshot of one provider's settings."""

    model_config = ConfigDict(frozen=True)

    provider_type: ProviderType
    api_key: Optional[str] = None
    selected_model: Optional[str] = None
    available_models: tuple[str, ...] = ()


class ProviderConfigurationStatus(BaseModel):
    """Answer to "can this provider run right now?"."""

    model_config = ConfigDict(frozen=True)

    ready: bool
    warning_message: Optional[str] = None

    @classmethod
    def on_ready(cls) -> "ProviderConfigurationStatus":
        return cls(ready=True)

    @classmethod
    def not_ready(cls) -> "ProviderConfigurationStatus":
        return cls(ready=False)

    @classmethod
    def not_ready_with_warning(cls, warning: Optional[str]) -> "ProviderConfigurationStatus":
        return cls(ready=False, warning_message=warning)


class ProviderGenerationResult(BaseModel):
    """What a provider returns on success. ``narrative`` is never None."""

    model_config = ConfigDict(frozen=True)

    narrative: str
    prompt: Optional[str] = None


class GenerationResult(BaseModel):
    """Uniform output of the generation service, whichever path produced it.

    used_provider is True only when a remote provider returned the narrative;
    warning_message carries configuration or failure notes for the UI.
    """

    model_config = ConfigDict(frozen=True)

    generated_character: GeneratedCharacter
    used_provider: bool
    warning_message: Optional[str] = None
    prompt: Optional[str] = None

    @property
    def narrative(self) -> str:
        return self.generated_character.narrative
