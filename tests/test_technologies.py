"""Tests for the technology tree and hover cards."""

import pytest

from wikidex import technologies as tech
from wikidex.exceptions import TransportError
from wikidex.models import TechnologyHoverDetails, TechnologyItem


def tile(slug: str, category: str, name: str, boss: bool = False) -> str:
    cls = "hoverTech BossTechnology" if boss else "hoverTech"
    return (
        f'<div class="{cls}" data-hover="?s={slug}" '
        f"style=\"background-image: url('/image/{name.replace(' ', '_')}.webp')\">"
        f'<div class="hoverTechHeader">{category}</div>'
        f'<div class="hoverTechFooter">{name}</div></div>'
    )


def level_row(level: int, *tiles: str) -> str:
    return (
        '<div class="col pt-2 pb-1 border-bottom">'
        f'<div style="position: absolute; left: 4px">{level}</div>' + "".join(tiles) + "</div>"
    )


TREE_HTML = (
    '<div><span>Technology Points</span><span class="badge">12</span></div>'
    '<div><span>Ancient Technology Points</span><span class="badge">3</span></div>'
    + level_row(
        1,
        tile("Technology/Workbench", "Structure", "Primitive Workbench"),
        tile("Technology/Pal%20Sphere", "Item", "Pal Sphere", boss=True),
    )
    + level_row(
        2,
        tile("Technology/Kiln", "Structure", "Kiln"),
        tile("Technology/Kiln", "Structure", "Kiln"),
        '<div class="hoverTech"><div class="hoverTechHeader">Broken</div></div>',
    )
    + level_row(0, tile("Technology/Ghost", "Item", "Ghost"))
)

HOVER_HTML = (
    '<div class="card"><div class="d-flex">'
    '<div class="align-self-center">Primitive Workbench</div>'
    '<span style="color: #959ea9">Structure</span></div>'
    '<span class="bg-dark px-1">Technology</span><span class="border px-1">Lv. 1</span>'
    '<span class="bg-dark px-1">Technology Points</span><span class="border px-1">1</span>'
    '<div class="card-body"><div> A basic workbench. </div></div></div>'
)


class TestTree:
    def test_point_totals_do_not_confuse_ancient_points(self):
        totals = tech.parse_point_totals(TREE_HTML)

        assert (totals.technology_points, totals.ancient_technology_points) == (12, 3)

    def test_point_totals_absent(self):
        totals = tech.parse_point_totals("<p>none</p>")

        assert totals.technology_points is None
        assert totals.ancient_technology_points is None

    def test_tiles_sorted_and_deduplicated(self):
        result = tech.parse_technologies(TREE_HTML)

        assert [(t.level, t.name, t.slug) for t in result] == [
            (1, "Pal Sphere", "Technology/Pal Sphere"),
            (1, "Primitive Workbench", "Technology/Workbench"),
            (2, "Kiln", "Technology/Kiln"),
        ]

    def test_tile_fields(self):
        pal_sphere, workbench, _ = tech.parse_technologies(TREE_HTML)

        assert pal_sphere.is_boss
        assert not workbench.is_boss
        assert workbench.category == "Structure"
        assert workbench.icon_url == "https://cdn.paldb.cc/image/Primitive_Workbench.webp"

    def test_index(self):
        index = tech.parse_technology_index(TREE_HTML)

        assert index.totals.technology_points == 12
        assert len(index.technologies) == 3


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("?s=Technology/Workbench", "Technology/Workbench"),
        ("/en/hover?x=1&s=Technology%2FKiln#a", "Technology/Kiln"),
        ("Technology/Kiln", "Technology/Kiln"),
        ("", "Technology"),
        (None, "Technology"),
    ],
)
def test_data_hover_to_slug(raw, expected):
    assert tech.data_hover_to_slug(raw) == expected


def test_hover_url_quotes_slug():
    assert tech.hover_url("Technology/Pal Sphere") == "https://paldb.cc/en/hover?s=Technology/Pal%20Sphere"


class TestHover:
    def test_parse_hover_card(self):
        details = tech.parse_technology_hover(HOVER_HTML)

        assert details == TechnologyHoverDetails(
            name="Primitive Workbench",
            category="Structure",
            level=1,
            technology_points=1,
            description="A basic workbench.",
        )

    def test_ancient_points(self):
        html = (
            '<span class="bg-dark">Ancient Technology Points</span><span class="border">2</span>'
        )

        details = tech.parse_technology_hover(html)

        assert details.ancient_technology_points == 2
        assert details.technology_points is None

    def test_enrich_keeps_tree_values(self):
        item = TechnologyItem(level=1, category="Structure", name="Primitive Workbench", slug="Technology/Workbench")
        details = TechnologyHoverDetails(name="Other", level=9, technology_points=1, description="A basic workbench.")

        result = tech.enrich_with_hover(item, details)

        assert (result.level, result.name) == (1, "Primitive Workbench")
        assert (result.cost_tech_points, result.description) == (1, "A basic workbench.")
        assert item.cost_tech_points is None


@pytest.mark.asyncio
async def test_fetch_hover_with_empty_slug_skips_network():
    async def fetch_text(url: str) -> str:
        raise AssertionError("no fetch expected")

    assert await tech.fetch_technology_hover(fetch_text, "  ") == TechnologyHoverDetails()


@pytest.mark.asyncio
async def test_fetch_technologies_with_hover_falls_back_on_failed_cards():
    async def fetch_text(url: str) -> str:
        if url == tech.TECHNOLOGIES_URL:
            return TREE_HTML
        if url == tech.hover_url("Technology/Workbench"):
            return HOVER_HTML
        if url == tech.hover_url("Technology/Pal Sphere"):
            raise TransportError("gone", url=url, status_code=404)
        return ""

    progress: list[tuple[int, int]] = []

    index = await tech.fetch_technologies_with_hover(
        fetch_text, concurrency=2, on_progress=lambda d, t: progress.append((d, t))
    )

    assert [t.name for t in index.technologies] == ["Pal Sphere", "Primitive Workbench", "Kiln"]
    pal_sphere, workbench, kiln = index.technologies
    assert pal_sphere.cost_tech_points is None
    assert (workbench.cost_tech_points, workbench.description) == (1, "A basic workbench.")
    assert kiln.description is None
    assert index.totals.ancient_technology_points == 3
    assert progress[-1] == (3, 3)


@pytest.mark.asyncio
async def test_fetch_technology_index_degrades_to_empty():
    async def fetch_text(url: str) -> str:
        raise TransportError("down", url=url, status_code=503)

    index = await tech.fetch_technology_index(fetch_text)

    assert index.technologies == []
    assert index.totals.technology_points is None
