"""Tests for row/cell extractors and quantity parsing."""

import pytest

from wikidex import rows
from wikidex.models import Ingredient, ItemRef, RecipeRow


def item_link(slug: str, name: str, qty: str | None = None) -> str:
    small = f'<small class="itemQuantity">{qty}</small>' if qty else ""
    return (
        f'<a class="itemname" href="/en/{slug}">'
        f'<img src="/image/{slug}.webp"> {name}</a>{small}'
    )


WORK_ICON = '<img src="/image/T_icon_status_05.webp"><small class="itemQuantity">40</small>'


class TestParseQuantity:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("x3", (3, "x3")),
            (" 1,500 ", (1500, "1,500")),
            ("1,000–1,500", (1000, "1,000–1,500")),
            ("none", (None, "none")),
            ("", (None, None)),
            (None, (None, None)),
        ],
    )
    def test_parse_quantity(self, raw, expected):
        assert rows.parse_quantity(raw) == expected

    @pytest.mark.parametrize("raw", ["x3", "1,000–1,500", "  12 pieces "])
    def test_parse_quantity_idempotent_on_raw(self, raw):
        qty, text = rows.parse_quantity(raw)

        assert rows.parse_quantity(text) == (qty, text)

    def test_inline_x_quantity(self):
        assert rows.parse_inline_x_quantity("Pal Soul x 12") == (12, "x12")
        assert rows.parse_inline_x_quantity("no marker") == (None, None)


def test_dedupe_by_keeps_first_seen_and_is_idempotent():
    data = [("a", 1), ("b", 2), ("a", 3), ("c", 4), ("b", 5)]

    once = rows.dedupe_by(data, lambda r: r[0])

    assert once == [("a", 1), ("b", 2), ("c", 4)]
    assert rows.dedupe_by(once, lambda r: r[0]) == once


class TestItemLinks:
    def test_first_item_link(self):
        ref = rows.parse_first_item_link(item_link("Wood", "Wood"))

        assert ref == ItemRef(slug="Wood", name="Wood", icon_url="https://cdn.paldb.cc/image/Wood.webp")

    def test_first_item_link_unclosed_anchor(self):
        ref = rows.parse_first_item_link('<a href="/en/Stone">Stone')

        assert ref is not None
        assert ref.slug == "Stone"

    def test_no_link(self):
        assert rows.parse_first_item_link("<span>plain</span>") is None

    def test_item_links_only_itemname_and_unique(self):
        html = item_link("Wood", "Wood") + '<a href="/en/Other">x</a>' + item_link("Wood", "Wood")

        assert [r.slug for r in rows.parse_item_links(html)] == ["Wood"]


class TestKeyValueRows:
    HTML = (
        '<div class="d-flex justify-content-between"><div>Type</div><div>Fire</div></div>'
        '<div class="d-flex justify-content-between"><div>Weight</div><div>3</div></div>'
        '<div class="d-flex justify-content-between">'
        f"<div>{item_link('Pal_Fluids', 'Pal Fluids')}</div><div>x2</div></div>"
        '<div class="d-flex justify-content-between"><div>Type</div><div>Fire</div></div>'
    )

    def test_rows_in_order_and_deduplicated(self):
        result = rows.parse_key_value_rows(self.HTML)

        assert [(r.key, r.value_text) for r in result] == [
            ("Type", "Fire"),
            ("Weight", "3"),
            ("Pal Fluids", "x2"),
        ]
        assert result[2].key_item.slug == "Pal_Fluids"
        assert result[2].key_icon_url == "https://cdn.paldb.cc/image/Pal_Fluids.webp"

    def test_allow_list_rejects_unknown_labels(self):
        result = rows.parse_key_value_rows(self.HTML, allowed_keys=["type"])

        assert [r.key for r in result] == ["Type"]

    def test_idempotent(self):
        once = rows.parse_key_value_rows(self.HTML)

        assert rows.parse_key_value_rows(self.HTML) == once


class TestRecipes:
    TABLE = (
        "<table><tbody>"
        f"<tr><td>{item_link('Wood', 'Wood', 'x3')}{WORK_ICON}</td>"
        f"<td>{item_link('Chair', 'Chair', '1')}</td><td>Blueprint</td></tr>"
        f"<tr><td>{WORK_ICON}</td><td></td></tr>"
        "</tbody></table>"
    )

    def test_materials_include_labor_marker(self):
        result = rows.parse_recipe_table(self.TABLE)

        assert [m.slug for m in result[0].materials] == ["Wood", rows.WORK_SLUG]
        assert result[0].materials[0].quantity == 3
        assert result[0].materials[1].quantity == 40
        assert result[0].product.slug == "Chair"
        assert result[0].schematic_text == "Blueprint"

    def test_filter_out_work_drops_labor_and_empty_rows(self):
        result = rows.filter_out_work(rows.parse_recipe_table(self.TABLE))

        assert len(result) == 1
        assert [m.slug for m in result[0].materials] == ["Wood"]

    def test_filter_out_work_returns_copies(self):
        original = rows.parse_recipe_table(self.TABLE)

        rows.filter_out_work(original)

        assert [m.slug for m in original[0].materials] == ["Wood", rows.WORK_SLUG]

    def test_labor_filter_on_constructed_rows(self):
        row = RecipeRow(
            materials=[Ingredient(slug="wood", quantity_text="x3"), Ingredient(slug="__work__")],
            product=Ingredient(slug="chair"),
        )

        (result,) = rows.filter_out_work([row])

        assert [(m.slug, m.quantity) for m in result.materials] == [("wood", 3)]
        assert result.product.slug == "chair"

    def test_work_icon_url_detected(self):
        ing = Ingredient(slug="x", icon_url="https://cdn.paldb.cc/image/T_icon_status_05.webp")

        assert rows.is_work_ingredient(ing)


class TestDropTables:
    def test_dropped_by_table(self):
        table = (
            "<table><tbody>"
            f"<tr><td>{item_link('Lamball', 'Lamball')}</td><td>1–3</td><td>100%</td></tr>"
            "<tr><td>Unlinked Pal</td><td>1</td><td>50%</td></tr>"
            "<tr><td></td><td>1</td><td>5%</td></tr>"
            "<tr><td>short</td></tr>"
            "</tbody></table>"
        )

        result = rows.parse_dropped_by_table(table)

        assert [(r.item.slug, r.quantity_text, r.probability_text) for r in result] == [
            ("Lamball", "1–3", "100%"),
            ("unlinked-pal", "1", "50%"),
        ]

    def test_treasure_box_table(self):
        table = (
            "<table><tbody>"
            f"<tr><td>{item_link('Wood', 'Wood', '5')}</td><td>Treasure_Box_Grade_01</td></tr>"
            "</tbody></table>"
        )

        (row,) = rows.parse_treasure_box_table(table)

        assert row.item.slug == "Wood"
        assert row.quantity_text == "5"
        assert row.source_text == "Treasure Box Grade 01"

    def test_merchant_table(self):
        table = f"<table><tbody><tr><td>{item_link('Wood', 'Wood')}</td><td>Wandering Merchant</td></tr></tbody></table>"

        (row,) = rows.parse_merchant_table(table)

        assert (row.item.slug, row.source_text) == ("Wood", "Wandering Merchant")

    def test_possible_drops_tolerates_broken_rows(self):
        html = (
            '<h5 data-i18n="paldex_drop_item_title">Possible Drops</h5>'
            "<table><tr><td>"
            f"{item_link('Wool', 'Wool', '1–3')} 100 %"
            f"{item_link('Lamball_Mutton', 'Lamball Mutton', '1')} 50%"
            "</table>"
        )

        result = rows.parse_possible_drops(html)

        assert [(r.item.slug, r.quantity_text, r.probability_text) for r in result] == [
            ("Wool", "1–3", "100%"),
            ("Lamball_Mutton", "1", "50%"),
        ]

    def test_possible_drops_missing(self):
        assert rows.parse_possible_drops("<p>nothing</p>") == []


class TestResearch:
    def test_research_table(self):
        table = (
            "<table><tbody>"
            f"<tr><td>{item_link('Wood', 'Wood')}<small class='itemQuantity'>10</small></td><td>Kiln</td></tr>"
            "</tbody></table>"
        )

        (row,) = rows.parse_research_table(table)

        assert row.materials[0].slug == "Wood"
        assert row.materials[0].quantity == 10
        assert row.product_text == "Kiln"

    def test_research_cards(self):
        pane = (
            '<div class="card itemPopup">'
            '<div class="align-self-center">Efficient Lumbering</div>'
            "<span>Lv. 3</span>"
            '<div class="card-body">Work speed +10%</div>'
            '<div class="recipes">'
            f'<div class="d-flex border-top">{item_link("Wood", "Wood")}<div>1,200</div></div>'
            f'<div class="d-flex border-top">{item_link("Stone", "Stone")}<div>50</div></div>'
            "</div></div>"
        )

        (row,) = rows.parse_research_cards(pane)

        assert row.title == "Efficient Lumbering"
        assert row.required_level == 3
        assert row.effect_text == "Work speed +10%"
        assert [(m.slug, m.quantity, m.quantity_text) for m in row.materials] == [
            ("Wood", 1200, "1,200"),
            ("Stone", 50, "50"),
        ]

    def test_research_cards_empty(self):
        assert rows.parse_research_cards(None) == []


def test_soul_upgrade_rows():
    page = (
        '<div class="card mt-3"><h5 class="card-title">Soul Upgrade</h5>'
        '<table class="table mb-0"><tbody>'
        f"<tr><td>{item_link('Pal_Soul_Small', 'Small Pal Soul')} x 3</td><td>Rank 1</td></tr>"
        "</tbody></table></div>"
    )

    (row,) = rows.parse_soul_upgrade_rows(page)

    assert row.material.slug == "Pal_Soul_Small"
    assert (row.quantity, row.quantity_text, row.rank_text) == (3, "x3", "Rank 1")
