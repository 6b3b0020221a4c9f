"""Character input and darkness selection data models."""
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class InputMode(str, Enum):
    """How much of the character the user specifies up front."""

    auto = "auto"
    semi_auto = "semi_auto"

    @property
    def display_name(self) -> str:
        return "オート" if self is InputMode.auto else "セミオート"


class AttributeCategory(str, Enum):
    """Attribute catalog categories."""

    character_trait = "character_trait"
    motive = "motive"
    transformation_process = "transformation_process"
    mindset = "mindset"
    appearance = "appearance"

    @property
    def display_name(self) -> str:
        return _CATEGORY_DISPLAY_NAMES[self]

    @classmethod
    def from_code(cls, code: str) -> "AttributeCategory":
        """Resolve a category from its code, ignoring case.

        Raises:
            ValueError: When the code does not name a category.
        """
        normalized = (code or "").strip().lower()
        for category in cls:
            if category.value == normalized:
                return category
        raise ValueError(f"Unknown category code: {code}")

    @classmethod
    def darkness_categories(cls) -> tuple["AttributeCategory", ...]:
        """Categories selectable on the darkness side, in display order."""
        return tuple(c for c in cls if c is not cls.character_trait)


_CATEGORY_DISPLAY_NAMES: dict[AttributeCategory, str] = {
    AttributeCategory.character_trait: "キャラクター属性",
    AttributeCategory.motive: "動機・欲求",
    AttributeCategory.transformation_process: "変質プロセス",
    AttributeCategory.mindset: "性向の変質",
    AttributeCategory.appearance: "外見・象徴表現",
}


class ProtagonistAlignment(int, Enum):
    """Where the character stands in the story before the fall (score 1-5)."""

    heroic_leader = 1
    reliable_ally = 2
    independent_agent = 3
    fallen_anti_hero = 4
    villain_core = 5

    @classmethod
    def from_score(cls, score: int) -> Optional["ProtagonistAlignment"]:
        for alignment in cls:
            if alignment.value == score:
                return alignment
        return None

    @property
    def preview_text(self) -> str:
        return _ALIGNMENT_TEXTS[self][0]

    @property
    def prompt_description(self) -> str:
        return _ALIGNMENT_TEXTS[self][1]

    def format_prompt_line(self) -> str:
        """Return the prompt description as a single sentence ending in punctuation."""
        description = self.prompt_description.strip()
        if not description or description[-1] in "。！？.!?":
            return description
        return description + "。"


_ALIGNMENT_TEXTS: dict[ProtagonistAlignment, tuple[str, str]] = {
    ProtagonistAlignment.heroic_leader: (
        "例: 正義側の中心人物として物語が始まる。",
        "正義側の中心人物として物語を牽引する英雄的な立場",
    ),
    ProtagonistAlignment.reliable_ally: (
        "例: 主人公陣営の頼れる仲間として登場する。",
        "主人公陣営を陰で支える頼れる仲間という立場",
    ),
    ProtagonistAlignment.independent_agent: (
        "例: 利害で動く第三勢力、どちらにも肩入れしない。",
        "利害で動きどちらにも肩入れしない独立勢力の立場",
    ),
    ProtagonistAlignment.fallen_anti_hero: (
        "例: 敵側に傾いた反英雄として物語に関与する。",
        "敵側に傾き始めた反英雄として揺らぐ立場",
    ),
    ProtagonistAlignment.villain_core: (
        "例: 開幕から敵組織の中核メンバーとして暗躍する。",
        "物語開始時点で敵組織の中核として暗躍する立場",
    ),
}


class DarknessPreset(int, Enum):
    """Discrete darkness intensity levels, expressed as a percentage.

    100% is the standard fully-fallen state. Arbitrary numeric intensities
    are snapped to the nearest preset with :meth:`closest_to`.
    """

    mild = 50
    standard = 100
    heavy = 150
    radical = 200
    extreme = 250

    @property
    def label(self) -> str:
        return _PRESET_TEXTS[self][0]

    @property
    def description(self) -> str:
        return _PRESET_TEXTS[self][1]

    @classmethod
    def default(cls) -> "DarknessPreset":
        return cls.standard

    @classmethod
    def from_value(cls, value: int) -> Optional["DarknessPreset"]:
        for preset in cls:
            if preset.value == value:
                return preset
        return None

    @classmethod
    def is_valid_value(cls, value: int) -> bool:
        return cls.from_value(value) is not None

    @classmethod
    def closest_to(cls, value: float) -> "DarknessPreset":
        """Snap a numeric intensity to the nearest preset (ties go to the lower one)."""
        return min(cls, key=lambda preset: abs(value - preset.value))

    @classmethod
    def min_value(cls) -> int:
        return min(preset.value for preset in cls)

    @classmethod
    def max_value(cls) -> int:
        return max(preset.value for preset in cls)

    def format_value_with_label(self) -> str:
        return f"{self.value}%（{self.label}）"


_PRESET_TEXTS: dict[DarknessPreset, tuple[str, str]] = {
    DarknessPreset.mild: (
        "軽度",
        "闇の力に傾倒し、それをかなり受け入れているが、かつての情や未練がわずかに残る。"
        "状況と相手次第では説得に耳を傾けることもあるが、闇への決意は容易には揺らがない。",
    ),
    DarknessPreset.standard: (
        "通常",
        "闇に完全支配され、価値観も忠誠も暗黒側に固定。自分の行動理念を達成するためには手段を選ばない。"
        "正義側から見れば完全敵対化であり、理詰めの説得も情の訴えも通用しない。",
    ),
    DarknessPreset.heavy: (
        "重め",
        "単なる闇堕ちを越え、深く闇そのものへと同化した段階。"
        "闇堕ち前の自我の多くは剥落し、力の行使それ自体が行動目的へとなり替わってきている。",
    ),
    DarknessPreset.radical: (
        "過激",
        "世界を闇に塗りつぶすために動く存在となった段階。禁忌や人道は抑止力を失い、"
        "反対勢力は体系的に排除され、都市・国家規模で世界が闇に堕ち始める。",
    ),
    DarknessPreset.extreme: (
        "極端",
        "絶対的な闇の権化。存在そのものが破局の引き金となり、正義は壊滅、"
        "世界は取り返しのつかない崩壊へ傾く。物語は完全なバッドエンドに収束する。",
    ),
}


class WorldGenre(BaseModel):
    """世界観ジャンル。シードデータから供給される。"""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str


class AttributeOption(BaseModel):
    """One selectable attribute from the static catalog."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    category: AttributeCategory
    name: str
    description: str = ""


class CharacterInput(BaseModel):
    """User input for one generation request.

    ``world_genre`` and the semi-auto trait requirement are checked by the
    generation service, not here, so partially filled forms can still be
    represented.
    """

    model_config = ConfigDict(frozen=True)

    mode: InputMode = InputMode.auto
    world_genre: Optional[WorldGenre] = None
    character_traits: tuple[AttributeOption, ...] = ()
    trait_free_text: Optional[str] = None
    protagonist_score: int = Field(3, ge=1, le=5)
    darkness_free_text: Optional[str] = None

    @property
    def protagonist_alignment(self) -> Optional[ProtagonistAlignment]:
        return ProtagonistAlignment.from_score(self.protagonist_score)


class DarknessSelection(BaseModel):
    """Selected darkness options per category plus the intensity preset."""

    model_config = ConfigDict(frozen=True)

    selections: dict[AttributeCategory, tuple[AttributeOption, ...]] = Field(default_factory=dict)
    preset: DarknessPreset = DarknessPreset.standard

    @model_validator(mode="before")
    @classmethod
    def _normalize_preset(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        level = data.pop("darkness_level", None)
        if data.get("preset") is None:
            if level is not None:
                data["preset"] = DarknessPreset.closest_to(float(level))
            else:
                data["preset"] = DarknessPreset.default()
        return data

    @field_validator("selections")
    @classmethod
    def _reject_character_traits(
        cls, value: dict[AttributeCategory, tuple[AttributeOption, ...]]
    ) -> dict[AttributeCategory, tuple[AttributeOption, ...]]:
        if AttributeCategory.character_trait in value:
            raise ValueError("character_trait is not a darkness category")
        return value

    @property
    def percentage(self) -> int:
        return self.preset.value

    def iter_selections(self) -> Iterator[tuple[AttributeCategory, tuple[AttributeOption, ...]]]:
        """Yield (category, options) for non-empty categories in display order."""
        for category in AttributeCategory.darkness_categories():
            options = self.selections.get(category) or ()
            if options:
                yield category, options

    def has_any_selection(self) -> bool:
        return any(True for _ in self.iter_selections())


class GeneratedCharacter(BaseModel):
    """A finished narrative together with the input it was generated from."""

    model_config = ConfigDict(frozen=True)

    character_input: CharacterInput
    darkness_selection: DarknessSelection
    narrative: str
    generated_at: datetime
