"""Tests for record models."""

import pytest
from pydantic import ValidationError

from wikidex.models import (
    DropRow,
    Ingredient,
    ItemRef,
    Section,
    TreeNode,
    WorkSuitability,
    collection_key,
)


def test_collection_key():
    assert collection_key("material", "Wood") == "material:Wood"


class TestSection:
    def test_offsets_in_order(self):
        section = Section(key="Drops", title="Drops", level=2, start_offset=0, heading_offset=10, end_offset=10)

        assert section.end_offset == 10

    def test_offsets_out_of_order(self):
        with pytest.raises(ValidationError, match="offsets out of order"):
            Section(key="Drops", title="Drops", level=2, start_offset=20, heading_offset=10, end_offset=30)

    def test_negative_offset(self):
        with pytest.raises(ValidationError):
            Section(key="Drops", title="Drops", level=2, start_offset=-1, heading_offset=0, end_offset=0)


def test_item_ref_derives_name_from_slug():
    assert ItemRef(slug="Pal_Metal_Ingot").name == "Pal Metal Ingot"
    assert ItemRef(slug="Wood", name="Lumber").name == "Lumber"


class TestIngredient:
    def test_quantity_from_text(self):
        assert Ingredient(slug="Wood", quantity_text="x1,200").quantity == 1200

    def test_explicit_quantity_wins(self):
        assert Ingredient(slug="Wood", quantity=3, quantity_text="5").quantity == 3

    def test_no_digits(self):
        assert Ingredient(slug="Wood", quantity_text="some").quantity is None


def test_dump_uses_camel_case_aliases():
    row = DropRow(item=ItemRef(slug="Bone", icon_url="https://x.test/bone.webp"), probability_text="5%")

    assert row.model_dump(by_alias=True, exclude_none=True) == {
        "item": {"slug": "Bone", "name": "Bone", "iconUrl": "https://x.test/bone.webp"},
        "probabilityText": "5%",
    }


def test_models_accept_aliases():
    node = TreeNode.model_validate({"slug": "Ingot", "qty": 2, "children": [{"slug": "Ore"}]})

    assert node.quantity == 2.0
    assert node.children[0].slug == "Ore"


def test_work_suitability_is_frozen():
    work = WorkSuitability(slug="Mining", name="Mining", code="Mining", icon_id=8, icon_url="https://x.test/8.webp")

    with pytest.raises(ValidationError):
        work.name = "Digging"
