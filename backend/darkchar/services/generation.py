"""CharacterGenerationService: orchestrates one generation request with local fallback."""
from datetime import datetime, timezone
from typing import Callable, Optional

from darkchar.core.logging import setup_logging
from darkchar.models.character import (
    CharacterInput,
    DarknessSelection,
    GeneratedCharacter,
    InputMode,
)
from darkchar.models.provider import GenerationResult, ProviderType
from darkchar.services.context_store import AiProviderContextStore
from darkchar.services.errors import InvalidGenerationInputError
from darkchar.services.local import LocalNarrativeSynthesizer
from darkchar.services.providers import CharacterGenerationStrategyRegistry

logger = setup_logging("darkchar.generation")

MIN_DARKNESS_PERCENTAGE = 10
MAX_DARKNESS_PERCENTAGE = 300
DARKNESS_PERCENTAGE_STEP = 10


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CharacterGenerationService:
    """Top-level entry point for narrative generation.

    Responsibilities:
    1. Validate the input (the only failure that reaches the caller)
    2. Resolve the provider: explicit argument, else the store's active one
    3. Ask the provider whether its configuration is ready
    4. Call the provider when ready; on any error build a failure warning
    5. Fall back to the local synthesizer whenever the provider was not used
    6. Wrap the narrative in a GenerationResult stamped at build time

    ``generate`` blocks on network I/O when a remote provider is used;
    callers run it off their interactive thread.
    """

    def __init__(
        self,
        context_store: AiProviderContextStore,
        registry: CharacterGenerationStrategyRegistry,
        synthesizer: Optional[LocalNarrativeSynthesizer] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.context_store = context_store
        self.registry = registry
        self.synthesizer = synthesizer or LocalNarrativeSynthesizer()
        self.clock = clock

    def generate(
        self,
        character_input: CharacterInput,
        selection: DarknessSelection,
        provider_type: Optional[ProviderType] = None,
    ) -> GenerationResult:
        """Generate a narrative, preferring the configured provider.

        Args:
            character_input: Character input from the UI.
            selection: Darkness selection from the UI.
            provider_type: Provider to use; defaults to the store's active provider.

        Returns:
            GenerationResult. Always produced for valid input.

        Raises:
            InvalidGenerationInputError: When the input is incomplete.
        """
        # --- 1. Validate ---
        self.validate(character_input, selection)

        # --- 2. Resolve provider ---
        resolved_type = provider_type or self.context_store.get_active_provider_type()
        context = self.context_store.get_context(resolved_type)
        provider = self.registry.find_provider(resolved_type)

        narrative: Optional[str] = None
        prompt: Optional[str] = None
        warning: Optional[str] = None
        used_provider = False

        # --- 3. Assess configuration / 4. Attempt provider ---
        if provider is not None and provider.provider_type is not ProviderType.local:
            status = provider.assess_configuration(context)
            if status.ready:
                try:
                    provider_result = provider.generate(context, character_input, selection)
                    narrative = provider_result.narrative
                    prompt = provider_result.prompt
                    used_provider = True
                except Exception as exc:
                    logger.error(
                        "Provider generation failed; falling back to local narrative: %s",
                        exc,
                        exc_info=True,
                        extra={"provider": resolved_type.value, "error_type": type(exc).__name__},
                    )
                    warning = provider.build_failure_warning(exc)
            else:
                logger.info(
                    "Provider %s is not ready; using local narrative",
                    resolved_type.value,
                    extra={"provider": resolved_type.value},
                )
                warning = status.warning_message

        # --- 5. Local fallback ---
        if not used_provider:
            narrative = self.synthesizer.build_narrative(character_input, selection)
            prompt = None

        # --- 6. Build result ---
        assert narrative is not None
        generated = GeneratedCharacter(
            character_input=character_input,
            darkness_selection=selection,
            narrative=narrative,
            generated_at=self.clock(),
        )
        return GenerationResult(
            generated_character=generated,
            used_provider=used_provider,
            warning_message=warning,
            prompt=prompt,
        )

    @staticmethod
    def validate(character_input: CharacterInput, selection: DarknessSelection) -> None:
        """Reject incomplete input before any provider is touched.

        Raises:
            InvalidGenerationInputError: With a message suitable for the user.
        """
        if character_input.world_genre is None:
            raise InvalidGenerationInputError("世界観ジャンルを選択してください。")
        if character_input.mode is InputMode.semi_auto and not character_input.character_traits:
            raise InvalidGenerationInputError(
                "セミオートモードではキャラクター属性を1つ以上選択してください。"
            )
        if not selection.has_any_selection():
            raise InvalidGenerationInputError("闇堕ちカテゴリから少なくとも1つは選択してください。")
        percentage = selection.percentage
        if (
            percentage < MIN_DARKNESS_PERCENTAGE
            or percentage > MAX_DARKNESS_PERCENTAGE
            or percentage % DARKNESS_PERCENTAGE_STEP != 0
        ):
            raise InvalidGenerationInputError(
                f"闇堕ち度は{MIN_DARKNESS_PERCENTAGE}〜{MAX_DARKNESS_PERCENTAGE}%の"
                f"{DARKNESS_PERCENTAGE_STEP}%刻みで指定してください。"
            )
