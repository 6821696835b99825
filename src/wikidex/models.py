"""Pydantic models for records extracted from wiki pages."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from wikidex.text import clean_key, first_match, humanize_slug

_MODEL_CONFIG = {"populate_by_name": True}


def _quantity_from_text(text: str | None) -> int | None:
    raw = first_match(clean_key(text), r"([0-9][0-9,]*)")
    return int(raw.replace(",", "")) if raw else None


def collection_key(category: str, slug: str) -> str:
    return f"{category}:{slug}"


# --- Pages and sections ---


class RawPage(BaseModel):
    source_url: str = Field(alias="sourceUrl")
    html: str

    model_config = {"populate_by_name": True, "frozen": True}


class Section(BaseModel):
    key: str
    title: str
    level: int
    start_offset: int = Field(alias="startOffset", ge=0)
    heading_offset: int = Field(alias="headingOffset", ge=0)
    end_offset: int = Field(alias="endOffset", ge=0)

    model_config = _MODEL_CONFIG

    @model_validator(mode="after")
    def _validate_offsets(self) -> Section:
        if not self.start_offset <= self.heading_offset <= self.end_offset:
            raise ValueError(
                f"Section '{self.key}' offsets out of order: "
                f"{self.start_offset} <= {self.heading_offset} <= {self.end_offset}"
            )
        return self


# --- Shared row vocabulary ---


class ItemRef(BaseModel):
    slug: str
    name: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")

    model_config = _MODEL_CONFIG

    @model_validator(mode="after")
    def _derive_name(self) -> ItemRef:
        if not self.name:
            self.name = humanize_slug(self.slug) or self.slug
        return self


class Ingredient(ItemRef):
    quantity: int | None = Field(default=None, alias="qty")
    quantity_text: str | None = Field(default=None, alias="qtyText")

    @model_validator(mode="after")
    def _derive_quantity(self) -> Ingredient:
        if self.quantity is None and self.quantity_text:
            self.quantity = _quantity_from_text(self.quantity_text)
        return self


class RecipeRow(BaseModel):
    materials: list[Ingredient] = Field(default_factory=list)
    product: Ingredient | None = None
    schematic_text: str | None = Field(default=None, alias="schematicText")

    model_config = _MODEL_CONFIG


class KeyValueRow(BaseModel):
    key: str
    value_text: str | None = Field(default=None, alias="valueText")
    key_item: ItemRef | None = Field(default=None, alias="keyItem")
    value_item: ItemRef | None = Field(default=None, alias="valueItem")
    key_icon_url: str | None = Field(default=None, alias="keyIconUrl")

    model_config = _MODEL_CONFIG


class DropRow(BaseModel):
    item: ItemRef | None = None
    quantity_text: str | None = Field(default=None, alias="qtyText")
    probability_text: str | None = Field(default=None, alias="probabilityText")

    model_config = _MODEL_CONFIG


class TreasureRow(BaseModel):
    item: ItemRef | None = None
    quantity_text: str | None = Field(default=None, alias="qtyText")
    source_text: str | None = Field(default=None, alias="sourceText")

    model_config = _MODEL_CONFIG


class MerchantRow(BaseModel):
    item: ItemRef | None = None
    source_text: str | None = Field(default=None, alias="sourceText")

    model_config = _MODEL_CONFIG


class ResearchRow(BaseModel):
    title: str | None = None
    required_level: int | None = Field(default=None, alias="requiredLevel")
    effect_text: str | None = Field(default=None, alias="effectText")
    materials: list[Ingredient] = Field(default_factory=list)
    product_text: str | None = Field(default=None, alias="productText")

    model_config = _MODEL_CONFIG


class SoulUpgradeRow(BaseModel):
    material: ItemRef | None = None
    quantity: int | None = Field(default=None, alias="qty")
    quantity_text: str | None = Field(default=None, alias="qtyText")
    rank_text: str | None = Field(default=None, alias="rankText")

    model_config = _MODEL_CONFIG


class MediaCandidate(BaseModel):
    url: str
    caption: str | None = None


class TreeNode(BaseModel):
    slug: str | None = None
    name: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")
    quantity: float | None = Field(default=None, alias="qty")
    children: list[TreeNode] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


# --- Boat tour islands ---

BoatTourCategory = Literal["normal", "rare"]

BoatTourIslandId = Literal[
    "normal",
    "gyroid",
    "produce",
    "vinesMoss",
    "starFragment",
    "cherryBlossom",
    "springBamboo",
    "summerShell",
    "mushroom",
    "mapleLeaf",
    "snowflake",
    "unknown",
]


class BoatTourIntroSection(BaseModel):
    title: str
    paragraphs: list[str] = Field(default_factory=list)


class BoatTourDateRule(BaseModel):
    kind: Literal["gameTime", "fixedDate"] = "gameTime"
    north: str | None = None
    south: str | None = None


class BoatTourCell(BaseModel):
    label: str
    value: str
    icon_url: str | None = Field(default=None, alias="iconUrl")

    model_config = _MODEL_CONFIG


class BoatTourTableRow(BaseModel):
    label: str
    icon_url: str | None = Field(default=None, alias="iconUrl")
    items: list[str] = Field(default_factory=list)
    note: str | None = None

    model_config = _MODEL_CONFIG


class BoatTourSpecialRow(BaseModel):
    name: str
    probability: str
    icon_url: str | None = Field(default=None, alias="iconUrl")

    model_config = _MODEL_CONFIG


class BoatTourSpecialTable(BaseModel):
    label: str
    rows: list[BoatTourSpecialRow] = Field(default_factory=list)


class BoatTourIsland(BaseModel):
    id: BoatTourIslandId
    key: str
    category: BoatTourCategory
    name: str
    subtitle: str
    chance_pct: float = Field(default=0.0, alias="chancePct")
    internal_id: str | None = Field(default=None, alias="internalId")
    date_rule: BoatTourDateRule = Field(default_factory=BoatTourDateRule, alias="dateRule")
    weather_patterns: list[str] = Field(default_factory=list, alias="weatherPatterns")
    tables: list[BoatTourTableRow] = Field(default_factory=list)
    special_tables: list[BoatTourSpecialTable] = Field(default_factory=list, alias="specialTables")
    notes: list[str] = Field(default_factory=list)
    maps: list[MediaCandidate] = Field(default_factory=list)
    screenshots: list[MediaCandidate] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class BoatTourIndex(BaseModel):
    intro: list[BoatTourIntroSection] = Field(default_factory=list)
    islands: list[BoatTourIsland] = Field(default_factory=list)


# --- Nook Mystery Tour islands ---

MysteryTourCategory = Literal["current", "previous"]


class MysteryTourIsland(BaseModel):
    id: str
    key: str
    category: MysteryTourCategory
    name: str
    chance_pct: float = Field(default=0.0, alias="chancePct")
    internal_id: str | None = Field(default=None, alias="internalId")
    requirements: list[str] = Field(default_factory=list)
    requirements_icon_url: str | None = Field(default=None, alias="requirementsIconUrl")
    tables: list[BoatTourTableRow] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    screenshots: list[MediaCandidate] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class MysteryTourIndex(BaseModel):
    intro: list[BoatTourIntroSection] = Field(default_factory=list)
    islands: list[MysteryTourIsland] = Field(default_factory=list)


# --- Nook Miles ---


class NookMilesTier(BaseModel):
    task: str
    miles: int
    tier_names: list[str] | None = Field(default=None, alias="tierNames")

    model_config = _MODEL_CONFIG


class NookMilesAchievement(BaseModel):
    id: str
    bucket: Literal["nookMiles"] = "nookMiles"
    title: str
    description: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")
    tiers: list[NookMilesTier] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class NookMilesPlusTask(BaseModel):
    title: str
    miles: int


class NookMilesPlusCategory(BaseModel):
    id: str
    bucket: Literal["nookMilesPlus"] = "nookMilesPlus"
    title: str
    icon_url: str | None = Field(default=None, alias="iconUrl")
    tasks: list[NookMilesPlusTask] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class NookMilesData(BaseModel):
    achievements: list[NookMilesAchievement] = Field(default_factory=list)
    plus_categories: list[NookMilesPlusCategory] = Field(
        default_factory=list, alias="plusCategories"
    )
    source_url: str | None = Field(default=None, alias="sourceUrl")
    fetched_at: str | None = Field(default=None, alias="fetchedAt")

    model_config = _MODEL_CONFIG


# --- Dungeons ---


class DungeonIndexItem(BaseModel):
    slug: str
    name: str
    level: int | None = None
    level_text: str | None = Field(default=None, alias="levelText")
    url: str

    model_config = _MODEL_CONFIG


class DungeonSpawnRow(BaseModel):
    slug: str
    name: str
    icon_url: str | None = Field(default=None, alias="iconUrl")
    is_alpha: bool = Field(default=False, alias="isAlpha")
    level_range_text: str | None = Field(default=None, alias="levelRangeText")
    level_min: int | None = Field(default=None, alias="levelMin")
    level_max: int | None = Field(default=None, alias="levelMax")

    model_config = _MODEL_CONFIG


class DungeonDetail(BaseModel):
    slug: str
    name: str
    level: int | None = None
    level_text: str | None = Field(default=None, alias="levelText")
    code: str | None = None
    boss_spawns: list[DungeonSpawnRow] = Field(default_factory=list, alias="bossSpawns")
    normal_spawns: list[DungeonSpawnRow] = Field(default_factory=list, alias="normalSpawns")
    treasure_drops: list[DropRow] = Field(default_factory=list, alias="treasureDrops")

    model_config = _MODEL_CONFIG


class DungeonPal(BaseModel):
    pal_slug: str | None = Field(default=None, alias="palSlug")
    pal_name: str = Field(alias="palName")
    icon_url: str | None = Field(default=None, alias="iconUrl")
    level_text: str | None = Field(default=None, alias="levelText")
    is_alpha: bool = Field(default=False, alias="isAlpha")
    source: Literal["boss", "normal"]

    model_config = _MODEL_CONFIG


class DungeonWithPals(BaseModel):
    slug: str
    name: str
    level: int | None = None
    level_text: str | None = Field(default=None, alias="levelText")
    code: str | None = None
    pals: list[DungeonPal] = Field(default_factory=list)
    treasure: list[DropRow] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


# --- Work suitability ---


class WorkSuitability(BaseModel):
    slug: str
    name: str
    code: str
    icon_id: int = Field(alias="iconId")
    icon_url: str = Field(alias="iconUrl")

    model_config = {"populate_by_name": True, "frozen": True}


class WorkLevelStat(BaseModel):
    level: int
    power: int | None = None
    damage_rate: float | None = Field(default=None, alias="damageRate")
    raw_text: str = Field(alias="rawText")

    model_config = _MODEL_CONFIG


class WorkStructureRef(BaseModel):
    slug: str | None = None
    name: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")
    required_level: int | None = Field(default=None, alias="requiredLevel")

    model_config = _MODEL_CONFIG


class WorkExtraColumn(BaseModel):
    key: str
    label: str


class WorkExtraCell(BaseModel):
    text: str | None = None
    link: ItemRef | None = None


class WorkPalRef(BaseModel):
    slug: str | None = None
    name: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")
    level: int | None = None
    nocturnal: bool = False
    extras: dict[str, WorkExtraCell | None] | None = None

    model_config = _MODEL_CONFIG


class WorkSuitabilityDetail(BaseModel):
    slug: str
    name: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")
    stats: list[KeyValueRow] = Field(default_factory=list)
    type: str | None = None
    code: str | None = None
    levels: list[WorkLevelStat] = Field(default_factory=list)
    structures: list[WorkStructureRef] = Field(default_factory=list)
    pals: list[WorkPalRef] = Field(default_factory=list)
    pal_extra_columns: list[WorkExtraColumn] = Field(
        default_factory=list, alias="palExtraColumns"
    )
    research: list[ResearchRow] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


# --- Item detail pages ---


class ItemDetail(BaseModel):
    slug: str
    category: str = "item"
    name: str | None = None
    icon_url: str | None = Field(default=None, alias="iconUrl")
    description: str | None = None
    effects: list[str] = Field(default_factory=list)
    stats: list[KeyValueRow] = Field(default_factory=list)
    others: list[KeyValueRow] = Field(default_factory=list)
    foods: list[KeyValueRow] = Field(default_factory=list)
    recipes: list[RecipeRow] = Field(default_factory=list)
    produced_at: list[ItemRef] = Field(default_factory=list, alias="producedAt")
    dropped_by: list[DropRow] = Field(default_factory=list, alias="droppedBy")
    possible_drops: list[DropRow] = Field(default_factory=list, alias="possibleDrops")
    treasure: list[TreasureRow] = Field(default_factory=list)
    merchants: list[MerchantRow] = Field(default_factory=list)
    research: list[ResearchRow] = Field(default_factory=list)
    soul_upgrades: list[SoulUpgradeRow] = Field(default_factory=list, alias="soulUpgrades")
    tree: TreeNode | None = None

    model_config = _MODEL_CONFIG


# --- Technologies ---


class TechnologyItem(BaseModel):
    level: int
    category: str
    name: str
    slug: str
    icon_url: str | None = Field(default=None, alias="iconUrl")
    is_boss: bool = Field(default=False, alias="isBoss")
    cost_tech_points: int | None = Field(default=None, alias="costTechPoints")
    cost_ancient_tech_points: int | None = Field(default=None, alias="costAncientTechPoints")
    description: str | None = None

    model_config = _MODEL_CONFIG


class TechnologyPointTotals(BaseModel):
    technology_points: int | None = Field(default=None, alias="technologyPoints")
    ancient_technology_points: int | None = Field(default=None, alias="ancientTechnologyPoints")

    model_config = _MODEL_CONFIG


class TechnologyHoverDetails(BaseModel):
    name: str | None = None
    category: str | None = None
    level: int | None = None
    technology_points: int | None = Field(default=None, alias="technologyPoints")
    ancient_technology_points: int | None = Field(default=None, alias="ancientTechnologyPoints")
    description: str | None = None

    model_config = _MODEL_CONFIG


class TechnologyIndex(BaseModel):
    totals: TechnologyPointTotals = Field(default_factory=TechnologyPointTotals)
    technologies: list[TechnologyItem] = Field(default_factory=list)
