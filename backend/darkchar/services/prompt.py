"""Prompt rendering for remote narrative generation."""
import re
from pathlib import Path
from typing import Optional

from darkchar.models.character import CharacterInput, DarknessSelection, InputMode

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "prompts" / "dark_character_prompt.txt"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
# Two or more consecutive blank (or whitespace-only) lines.
_BLANK_LINE_RUN = re.compile(r"(?P<lead>^|\n)(?:[ \t]*\n){2,}")


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of 2+ blank lines into exactly one blank line.

    Single blank lines and all non-blank content are kept verbatim.
    """
    return _BLANK_LINE_RUN.sub(lambda m: m.group("lead") + "\n", text.replace("\r\n", "\n"))


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class PromptTemplateRenderer:
    """Fills the prompt template from a character input and darkness selection.

    The template is read once at construction; :meth:`render` is a pure
    function of its arguments.
    """

    def __init__(
        self,
        template: Optional[str] = None,
        template_path: Path = DEFAULT_TEMPLATE_PATH,
    ) -> None:
        self.template = template if template is not None else template_path.read_text(encoding="utf-8")

    def render(self, character_input: CharacterInput, selection: DarknessSelection) -> str:
        """Render the prompt text.

        Args:
            character_input: Validated character input.
            selection: Darkness selection and preset.

        Returns:
            Prompt string with optional sections omitted and blank-line runs
            collapsed.
        """
        alignment = character_input.protagonist_alignment
        values: dict[str, str] = {
            "worldGenre": character_input.world_genre.name if character_input.world_genre else "",
            "mode": character_input.mode.display_name,
            "characterAttributesSection": self._character_attributes_section(character_input),
            "traitFreeTextSection": self._free_text_section(
                "キャラクター属性メモ", character_input.trait_free_text
            ),
            "protagonistAlignment": alignment.format_prompt_line() if alignment else "",
            "darknessSelections": self._darkness_selections(selection),
            "darknessLevel": f"{selection.preset.format_value_with_label()}: {selection.preset.description}",
            "darknessFreeTextSection": self._free_text_section(
                "闇堕ちメモ", character_input.darkness_free_text
            ),
        }
        # Single pass so that user text containing "{{...}}" is never expanded.
        rendered = _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), self.template)
        return collapse_blank_lines(rendered)

    @staticmethod
    def _character_attributes_section(character_input: CharacterInput) -> str:
        if character_input.mode is not InputMode.semi_auto:
            return ""
        lines = []
        for option in character_input.character_traits:
            if _is_blank(option.name):
                continue
            if _is_blank(option.description):
                lines.append(f"・{option.name}")
            else:
                lines.append(f"・{option.name}: {option.description}")
        if not lines:
            return ""
        return "[キャラクター属性]\n" + "\n".join(lines) + "\n\n"

    @staticmethod
    def _free_text_section(heading: str, text: Optional[str]) -> str:
        if text is None or _is_blank(text):
            return ""
        return f"[{heading}]\n{text.strip()}\n\n"

    @staticmethod
    def _darkness_selections(selection: DarknessSelection) -> str:
        lines = [
            f"{category.display_name}: " + "、".join(option.name for option in options)
            for category, options in selection.iter_selections()
        ]
        # Trailing blank line separates the block from the darkness level.
        return "".join(line + "\n" for line in lines) + "\n"
