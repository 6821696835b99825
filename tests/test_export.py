"""Tests for the export script."""

import json
import sys
from pathlib import Path

import pytest
import yaml

from scripts import export
from wikidex.exceptions import ConfigurationError
from wikidex.models import (
    BoatTourIndex,
    DungeonWithPals,
    MysteryTourIndex,
    NookMilesAchievement,
    NookMilesData,
    TechnologyIndex,
    TechnologyItem,
)


def test_to_plain_uses_aliases_and_drops_none():
    dungeon = DungeonWithPals(slug="___", name="Yakushima", level_text="Lv. 50")

    assert export.to_plain([dungeon]) == [
        {"slug": "___", "name": "Yakushima", "levelText": "Lv. 50", "pals": [], "treasure": []}
    ]
    assert export.to_plain({"a": 1}) == {"a": 1}


class TestRender:
    DATA = [{"slug": "Kiln", "name": "Kiln", "names": ["Ü", "b"]}]

    def test_yaml_keeps_key_order_and_unicode(self):
        text = export.render(self.DATA, "yaml")

        assert text.index("slug") < text.index("name:")
        assert "Ü" in text
        assert yaml.safe_load(text) == self.DATA

    def test_json(self):
        text = export.render(self.DATA, "json")

        assert text.endswith("\n")
        assert json.loads(text) == self.DATA


def test_record_count():
    tech = TechnologyIndex(
        technologies=[TechnologyItem(level=1, category="Item", name="Pal Sphere", slug="Technology/Pal_Sphere")]
    )
    miles = NookMilesData(
        achievements=[NookMilesAchievement(id="a", title="A"), NookMilesAchievement(id="b", title="B")]
    )

    assert export.record_count([1, 2, 3]) == 3
    assert export.record_count(BoatTourIndex()) == 0
    assert export.record_count(tech) == 1
    assert export.record_count(miles) == 2
    assert export.record_count(None) == 0


@pytest.mark.asyncio
async def test_export_family_rejects_unknown_family():
    with pytest.raises(ValueError, match="Unknown content family"):
        await export.export_family("pals", fetcher=None)


@pytest.mark.asyncio
async def test_export_family_passes_slugs_for_items(mocker):
    fetch_all = mocker.patch.object(export.items, "fetch_all_item_details", mocker.AsyncMock(return_value=[]))

    await export.export_family("items", fetcher="fetcher", concurrency=2, slugs=["Wood"])

    args, kwargs = fetch_all.call_args
    assert args == ("fetcher", ["Wood"])
    assert kwargs["concurrency"] == 2


@pytest.mark.asyncio
async def test_export_family_dispatches_mystery_tour(mocker):
    index = MysteryTourIndex()
    fetch = mocker.patch.object(
        export.mystery_tour, "fetch_mystery_tour_index", mocker.AsyncMock(return_value=index)
    )

    assert await export.export_family("mystery-tour", fetcher="fetcher") is index
    fetch.assert_awaited_once_with("fetcher")
    assert export.record_count(index) == 0


class TestMain:
    @pytest.fixture(autouse=True)
    def isolated_cache(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("WIKIDEX_CACHE_DIR", str(tmp_path / "cache"))
        from wikidex.config import reload_settings

        reload_settings()
        yield
        monkeypatch.delenv("WIKIDEX_CACHE_DIR")
        reload_settings()

    def test_writes_output_file(self, mocker, monkeypatch, tmp_path: Path):
        dungeon = DungeonWithPals(slug="Hillside_Cavern", name="Hillside Cavern", level=15)
        mocker.patch.object(export, "export_family", mocker.AsyncMock(return_value=[dungeon]))
        out = tmp_path / "out" / "dungeons.json"
        monkeypatch.setattr(sys, "argv", ["export.py", "dungeons", "--format", "json", "--output", str(out)])

        export.main()

        assert json.loads(out.read_text())[0]["slug"] == "Hillside_Cavern"

    def test_writes_stdout_by_default(self, mocker, monkeypatch, capsys):
        mocker.patch.object(export, "export_family", mocker.AsyncMock(return_value=[]))
        monkeypatch.setattr(sys, "argv", ["export.py", "technologies", "--format", "json"])

        export.main()

        assert json.loads(capsys.readouterr().out) == []

    def test_configuration_error_exits_2(self, mocker, monkeypatch):
        mocker.patch.object(
            export, "export_family", mocker.AsyncMock(side_effect=ConfigurationError("Concurrency must be at least 1"))
        )
        monkeypatch.setattr(sys, "argv", ["export.py", "dungeons", "--concurrency", "0"])

        with pytest.raises(SystemExit) as exc_info:
            export.main()

        assert exc_info.value.code == 2

    def test_items_requires_slugs(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["export.py", "items"])

        with pytest.raises(SystemExit) as exc_info:
            export.main()

        assert exc_info.value.code == 2

    def test_clear_cache_alone(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["export.py", "--clear-cache"])

        export.main()

        assert "Cache cleared" in capsys.readouterr().out
