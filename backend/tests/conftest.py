"""Shared test fixtures and configuration."""
import pytest

from darkchar.models.character import (
    AttributeCategory,
    AttributeOption,
    CharacterInput,
    DarknessPreset,
    DarknessSelection,
    InputMode,
    WorldGenre,
)


@pytest.fixture(autouse=True)
def clear_provider_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's OpenAI settings out of every test."""
    for name in (
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "OPENAI_BASE_URL",
        "ACTIVE_PROVIDER",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def character_input() -> CharacterInput:
    return CharacterInput(
        mode=InputMode.semi_auto,
        world_genre=WorldGenre(id=1, name="ダークファンタジー"),
        character_traits=(
            AttributeOption(
                id=1,
                category=AttributeCategory.character_trait,
                name="堕ちた騎士",
                description="名誉を失った騎士",
            ),
        ),
        trait_free_text="秘密の弱み",
        protagonist_score=4,
        darkness_free_text="影に魅入られた",
    )


@pytest.fixture
def darkness_selection() -> DarknessSelection:
    return DarknessSelection(
        selections={
            AttributeCategory.mindset: (
                AttributeOption(
                    id=2,
                    category=AttributeCategory.mindset,
                    name="復讐心",
                    description="復讐に燃える",
                ),
            ),
        },
        preset=DarknessPreset.mild,
    )
