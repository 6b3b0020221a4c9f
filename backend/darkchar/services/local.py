"""Offline narrative synthesis used as the default and fallback generator."""
from typing import Optional

from darkchar.models.character import AttributeOption, CharacterInput, DarknessSelection, InputMode
from darkchar.models.provider import (
    AiProviderContext,
    ProviderConfigurationStatus,
    ProviderGenerationResult,
    ProviderType,
)
from darkchar.services.providers import CharacterGenerationProvider

UNKNOWN_DARKNESS_TEXT = "闇の属性はまだ不明瞭です"


def _option_line(option: AttributeOption) -> str:
    if option.description and option.description.strip():
        return f"・{option.name} - {option.description}"
    return f"・{option.name}"


def _free_text(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


class LocalNarrativeSynthesizer:
    """Builds a readable narrative from the input alone, without network access."""

    def build_narrative(self, character_input: CharacterInput, selection: DarknessSelection) -> str:
        genre = character_input.world_genre.name if character_input.world_genre else ""
        alignment = character_input.protagonist_alignment
        lines: list[str] = [
            "【闇堕ちキャラクター概要】",
            f"世界観ジャンル: {genre}",
            f"モード: {character_input.mode.display_name}",
        ]
        score_line = f"主人公度: {character_input.protagonist_score}/5"
        if alignment is not None:
            score_line += f"（{alignment.prompt_description}）"
        lines += [score_line, ""]

        if character_input.mode is InputMode.semi_auto:
            lines.append("■キャラクター属性")
            lines += [_option_line(option) for option in character_input.character_traits]
            lines.append("")

        trait_memo = _free_text(character_input.trait_free_text)
        if trait_memo:
            lines += ["■キャラクター属性メモ", trait_memo, ""]

        lines.append("■闇堕ちカテゴリ")
        for category, options in selection.iter_selections():
            lines.append(f"【{category.display_name}】")
            lines += [_option_line(option) for option in options]
        lines += ["", f"闇堕ち度: {selection.preset.format_value_with_label()}", ""]

        darkness_memo = _free_text(character_input.darkness_free_text)
        if darkness_memo:
            lines += ["■闇堕ちメモ", darkness_memo, ""]

        lines += ["■生成ストーリー", self._story_paragraph(character_input, selection)]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _story_paragraph(character_input: CharacterInput, selection: DarknessSelection) -> str:
        genre = character_input.world_genre.name if character_input.world_genre else ""
        alignment = character_input.protagonist_alignment
        standing = (
            alignment.prompt_description
            if alignment is not None
            else f"主人公度{character_input.protagonist_score}/5の立場"
        )
        highlights = [
            f"{category.display_name}は" + "、".join(option.name for option in options)
            for category, options in selection.iter_selections()
        ]
        highlight_text = "。".join(highlights) if highlights else UNKNOWN_DARKNESS_TEXT
        return (
            f"元のキャラクターは{genre}の世界で{standing}にありましたが、その心の揺らぎが闇への扉を開きました。\n"
            f"{highlight_text}。\n"
            f"闇堕ち度{selection.percentage}%の現在、彼/彼女はかつての姿を忘れ、"
            "独自の正義で世界を塗り替えようとしています。"
        )


class LocalCharacterGenerationProvider(CharacterGenerationProvider):
    """Provider wrapper around :class:`LocalNarrativeSynthesizer`. Always ready."""

    def __init__(self, synthesizer: Optional[LocalNarrativeSynthesizer] = None) -> None:
        self.synthesizer = synthesizer or LocalNarrativeSynthesizer()

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.local

    def assess_configuration(self, context: AiProviderContext) -> ProviderConfigurationStatus:
        return ProviderConfigurationStatus.on_ready()

    def generate(
        self,
        context: AiProviderContext,
        character_input: CharacterInput,
        selection: DarknessSelection,
    ) -> ProviderGenerationResult:
        return ProviderGenerationResult(
            narrative=self.synthesizer.build_narrative(character_input, selection)
        )
