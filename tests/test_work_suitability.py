"""Tests for the work suitability vocabulary and detail pages."""

import pytest

from wikidex import work_suitability as ws
from wikidex.exceptions import TransportError
from wikidex.models import KeyValueRow

STATS_CARD = (
    '<div class="card mt-3"><div class="card-body">'
    '<h5 class="card-title">Stats</h5>'
    '<div class="d-flex justify-content-between"><div>Type</div><div>Fire</div></div>'
    '<div class="d-flex justify-content-between"><div>Weight</div><div>3</div></div>'
    "</div></div>"
)

STRUCTURES_CARD = (
    '<div class="card mt-3"><div class="card-body">'
    '<h5 class="card-title">Structures</h5>'
    '<div class="d-flex justify-content-between border-bottom">'
    '<div><a class="itemname" href="/en/Kiln">Kiln</a></div><div>2</div>'
    "</div></div></div>"
)

PALS_TABLE = (
    "<h5>Pals with this Work Suitability</h5>"
    "<table><thead><tr><th>Pal</th><th>Lv</th><th>Work Speed</th><th>Drop</th></tr></thead>"
    "<tbody>"
    '<tr><td><a class="itemname" href="/en/Foxparks"><img src="/image/Foxparks.webp">Foxparks</a></td>'
    '<td>Lv 1</td><td>100</td><td><a class="itemname" href="/en/Flame_Organ">Flame Organ</a></td></tr>'
    '<tr><td><a class="itemname" href="/en/Depresso">Depresso</a>'
    '<img src="/image/T_icon_nocturnal.webp"><td>2<td><td>-'
    "<tr><td>No link</td><td>1</td><td>x</td><td>y</td></tr>"
    "</tbody></table>"
)

RESEARCH_PANE = (
    '<div id="Research" class="tab-pane fade">'
    '<div class="card itemPopup"><div class="align-self-center">Kindling Efficiency</div>'
    '<span>Lv. 2</span><div class="card-body">Work speed +20%</div></div>'
    "</div>"
    '<div id="Other" class="tab-pane fade">other</div>'
)


class TestVocabulary:
    def test_twelve_entries_with_unique_codes(self):
        assert len(ws.WORK_SUITABILITIES) == 12
        assert len({w.code for w in ws.WORK_SUITABILITIES}) == 12
        assert 9 not in {w.icon_id for w in ws.WORK_SUITABILITIES}

    def test_lookup_by_slug_and_code(self):
        assert ws.get_by_slug("kindling").code == "EmitFlame"
        assert ws.get_by_slug(" Medicine_Production ").icon_id == 8
        assert ws.get_by_code("MonsterFarm").slug == "Farming"
        assert ws.get_by_slug("Swimming") is None
        assert ws.get_by_code(None) is None

    def test_icon_url(self):
        assert ws.get_by_code("Cool").icon_url == (
            "https://cdn.paldb.cc/image/Pal/Texture/UI/InGame/T_icon_palwork_10.webp"
        )

    def test_lookups_are_read_only(self):
        with pytest.raises(TypeError):
            ws._BY_SLUG["new"] = ws.WORK_SUITABILITIES[0]

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Mining", "Mining"),
            ("/en/Mining", "Mining"),
            ("https://paldb.cc/en/Cooling?x=1", "Cooling"),
            ("", "Lumbering"),
            (None, "Lumbering"),
        ],
    )
    def test_normalize_work_slug(self, raw, expected):
        assert ws.normalize_work_slug(raw) == expected


class TestLevels:
    def test_power_and_damage_rate(self):
        assert ws.parse_power("1,200 DamageRate x 1.5") == 1200
        assert ws.parse_damage_rate("1,200 DamageRate x 1.5") == 1.5
        assert ws.parse_power("n/a") is None
        assert ws.parse_damage_rate("100") is None

    def test_level_stats_from_rows_sorted(self):
        stats = [
            KeyValueRow(key="Lv.2", value_text="200 DamageRate x 2"),
            KeyValueRow(key="Type", value_text="Fire"),
            KeyValueRow(key="Lv.1", value_text="100"),
        ]

        levels = ws.parse_level_stats(stats)

        assert [(lv.level, lv.power, lv.damage_rate) for lv in levels] == [(1, 100, None), (2, 200, 2.0)]
        assert levels[1].raw_text == "200 DamageRate x 2"


def test_parse_header():
    html = (
        '<img src="/image/small.webp" width="32">'
        '<img src="/image/Pal/Texture/UI/InGame/T_icon_palwork_00.webp" width="80">'
        '<h5 class="text-center card-title">Kindling</h5>'
    )

    name, icon = ws.parse_header(html)

    assert name == "Kindling"
    assert icon == "https://cdn.paldb.cc/image/Pal/Texture/UI/InGame/T_icon_palwork_00.webp"


class TestPalsTable:
    def test_rows_levels_and_extras(self):
        pals, columns = ws.parse_pals_table(PALS_TABLE)

        assert [(c.key, c.label) for c in columns] == [("work_speed", "Work Speed"), ("drop", "Drop")]
        assert [(p.slug, p.level, p.nocturnal) for p in pals] == [
            ("Foxparks", 1, False),
            ("Depresso", 2, True),
        ]
        assert pals[0].icon_url == "https://cdn.paldb.cc/image/Foxparks.webp"
        assert pals[0].extras["work_speed"].text == "100"
        assert pals[0].extras["drop"].link.slug == "Flame_Organ"
        assert pals[1].extras["work_speed"] is None
        assert pals[1].extras["drop"].text == "-"

    def test_missing_table(self):
        assert ws.parse_pals_table("<p>No pals</p>") == ([], [])

    def test_normalize_header_key(self):
        assert ws.normalize_header_key("<b>Work&nbsp;Speed (%)</b>") == "work_speed"
        assert ws.normalize_header_key("") == ""


class TestDetailPage:
    def test_stats_and_structures(self):
        detail = ws.parse_work_suitability_detail("Kindling", STATS_CARD + STRUCTURES_CARD)

        assert [(s.key, s.value_text) for s in detail.stats] == [("Type", "Fire"), ("Weight", "3")]
        assert detail.type == "Fire"
        assert [(s.slug, s.name, s.required_level) for s in detail.structures] == [("Kiln", "Kiln", 2)]

    def test_serialized_shape(self):
        detail = ws.parse_work_suitability_detail("Kindling", STATS_CARD + STRUCTURES_CARD)

        data = detail.model_dump(by_alias=True, exclude_none=True)

        assert data["stats"] == [{"key": "Type", "valueText": "Fire"}, {"key": "Weight", "valueText": "3"}]
        assert data["structures"] == [{"slug": "Kiln", "name": "Kiln", "requiredLevel": 2}]

    def test_falls_back_to_vocabulary_name_and_icon(self):
        detail = ws.parse_work_suitability_detail("/en/Kindling", "")

        assert detail.slug == "Kindling"
        assert detail.name == "Kindling"
        assert detail.icon_url.endswith("T_icon_palwork_00.webp")
        assert detail.stats == []
        assert detail.pals == []

    def test_research_tab(self):
        detail = ws.parse_work_suitability_detail("Kindling", RESEARCH_PANE)

        (row,) = detail.research
        assert (row.title, row.required_level, row.effect_text) == (
            "Kindling Efficiency",
            2,
            "Work speed +20%",
        )


@pytest.mark.asyncio
async def test_fetch_detail_uses_page_url():
    requested: list[str] = []

    async def fetch_text(url: str) -> str:
        requested.append(url)
        return STATS_CARD

    detail = await ws.fetch_work_suitability_detail(fetch_text, "/en/Mining")

    assert requested == ["https://paldb.cc/en/Mining"]
    assert detail.slug == "Mining"


@pytest.mark.asyncio
async def test_fetch_all_isolates_failures_and_sorts():
    async def fetch_text(url: str) -> str:
        if url.endswith("/Mining"):
            raise TransportError("down", url=url, status_code=503)
        return ""

    progress: list[tuple[int, int]] = []

    result = await ws.fetch_all_work_suitabilities(
        fetch_text, concurrency=3, on_progress=lambda d, t: progress.append((d, t))
    )

    assert len(result) == 11
    assert "Mining" not in [d.slug for d in result]
    assert [d.slug for d in result][:2] == ["Kindling", "Watering"]
    assert progress[-1] == (12, 12)
