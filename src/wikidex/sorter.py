"""
Deterministic ordering for assembled records.

Batch fetches complete in arbitrary order, so every content family is sorted
by a fixed compound key before output. Category priorities live in the
order constants below; unknown categories sort after known ones.
"""

from wikidex.models import (
    BoatTourIsland,
    DungeonWithPals,
    ItemDetail,
    MysteryTourIsland,
    TechnologyItem,
    WorkLevelStat,
    WorkSuitabilityDetail,
)

# Boat tour: everyday islands before the rare seasonal ones
ISLAND_CATEGORY_ORDER = ["normal", "rare"]

# Mystery tour: islands still in rotation before retired ones
MYSTERY_CATEGORY_ORDER = ["current", "previous"]

# Dungeons whose page has no regular index entry; listed after all others
SPECIAL_DUNGEON_SLUGS = {"___"}
SPECIAL_DUNGEON_NAMES = {"yakushima"}

# Work suitabilities follow the in-game icon order
WORK_SUITABILITY_ORDER = [
    "Kindling",
    "Watering",
    "Planting",
    "Generating_Electricity",
    "Handiwork",
    "Gathering",
    "Lumbering",
    "Mining",
    "Medicine_Production",
    "Cooling",
    "Transporting",
    "Farming",
]


def _priority(order: list[str], value: str) -> int:
    try:
        return order.index(value)
    except ValueError:
        return 999


def _name_key(name: str | None) -> str:
    return (name or "").casefold()


def island_sort_key(island: BoatTourIsland) -> tuple[int, float, str]:
    return (
        _priority(ISLAND_CATEGORY_ORDER, island.category),
        -island.chance_pct,
        _name_key(island.name),
    )


def mystery_island_sort_key(island: MysteryTourIsland) -> tuple[int, float, str]:
    return (
        _priority(MYSTERY_CATEGORY_ORDER, island.category),
        -island.chance_pct,
        _name_key(island.name),
    )


def is_special_dungeon(slug: str | None, name: str | None = None) -> bool:
    return (slug or "").strip() in SPECIAL_DUNGEON_SLUGS or _name_key(name) in SPECIAL_DUNGEON_NAMES


def dungeon_sort_key(dungeon: DungeonWithPals) -> tuple[bool, float, str]:
    """Special dungeons last, then by level (unknown last), then by name."""
    level = float(dungeon.level) if dungeon.level is not None else float("inf")
    return (is_special_dungeon(dungeon.slug, dungeon.name), level, _name_key(dungeon.name))


def work_suitability_sort_key(detail: WorkSuitabilityDetail) -> tuple[int, str]:
    return (_priority(WORK_SUITABILITY_ORDER, detail.slug), detail.slug.casefold())


def item_sort_key(item: ItemDetail) -> tuple[str, str, str]:
    return (item.category, _name_key(item.name or item.slug), item.slug)


def technology_sort_key(tech: TechnologyItem) -> tuple[int, str, str]:
    return (tech.level, _name_key(tech.name), tech.slug)


def sort_level_stats(levels: list[WorkLevelStat]) -> list[WorkLevelStat]:
    return sorted(levels, key=lambda stat: stat.level)

