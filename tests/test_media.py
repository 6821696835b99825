"""Tests for gallery discovery and Maps/Screenshots bucketing."""

import pytest

from wikidex import media
from wikidex.models import MediaCandidate


def thumb(src: str, alt: str) -> str:
    return (
        '<div class="thumb tright"><div class="thumbinner">'
        f'<a href="/wiki/File:x"><img alt="{alt}" src="{src}" width="220"></a>'
        "</div></div>"
    )


class TestClassifyMedia:
    @pytest.mark.parametrize(
        ("url", "alt", "bucket"),
        [
            ("https://x.test/Island.png", "Island Map", media.MAPS),
            ("https://x.test/NH_Map_Mystery.png", "", media.MAPS),
            ("https://x.test/Boat_Tour_Island_Spring_Map.png", "", media.MAPS),
            ("https://x.test/Island.jpg", "Island", media.SCREENSHOTS),
            ("https://x.test/Island.jpeg?version=2", "Island map", media.SCREENSHOTS),
            ("https://x.test/minimap.webp", "", media.MAPS),
            ("https://x.test/Island.webp", "", media.SCREENSHOTS),
        ],
    )
    def test_buckets(self, url, alt, bucket):
        assert media.classify_media(url, alt) == bucket

    def test_png_without_map_hint_is_screenshot(self):
        assert media.classify_media("https://x.test/Beach.png", "Beach") == media.SCREENSHOTS


def test_pick_best_from_srcset_takes_last_candidate():
    srcset = "/images/a_150.png 1.5x, /images/a_300.png 2x"

    assert media.pick_best_from_srcset(srcset) == "/images/a_300.png"
    assert media.pick_best_from_srcset("") == ""


def test_image_url_prefers_srcset_and_resolves_against_origin():
    tag = '<img src="/images/small.png" srcset="/images/big.png 2x">'

    assert media.image_url_from_tag(tag) == "https://nookipedia.com/images/big.png"
    assert media.image_url_from_tag('<img data-src="//cdn.test/a.png">') == "https://cdn.test/a.png"
    assert media.image_url_from_tag("<img>") == ""


def test_thumb_galleries_split_into_maps_and_screenshots():
    html = thumb("/images/1/1a/Island_Layout.png", "Island Map") + thumb(
        "/images/2/2b/Island_Photo.jpg", "Arriving on the island"
    )

    result = media.parse_thumb_galleries(html)

    assert result == {
        media.MAPS: [MediaCandidate(url="https://nookipedia.com/images/1/1a/Island_Layout.png")],
        media.SCREENSHOTS: [MediaCandidate(url="https://nookipedia.com/images/2/2b/Island_Photo.jpg")],
    }


def test_thumb_galleries_empty_buckets_omitted():
    html = thumb("/images/a.jpg", "photo") + thumb("/images/a.jpg", "photo")

    result = media.parse_thumb_galleries(html)

    assert list(result) == [media.SCREENSHOTS]
    assert len(result[media.SCREENSHOTS]) == 1


def test_list_galleries_use_caption_and_default_name():
    html = (
        '<ul class="gallery mw-gallery-traditional">'
        '<li class="gallerycaption">Maps</li>'
        '<li><img src="/images/m1.png"></li><li><img src="/images/m1.png"></li>'
        "</ul>"
        '<ul class="gallery"><li><img src="/images/s1.jpg"></li></ul>'
        '<ul class="gallery"></ul>'
    )

    result = media.parse_list_galleries(html)

    assert [c.url for c in result["Maps"]] == ["https://nookipedia.com/images/m1.png"]
    assert result["Maps"][0].caption == "Maps"
    assert [c.url for c in result["Gallery"]] == ["https://nookipedia.com/images/s1.jpg"]


def test_merge_galleries_dedupes_bucket_and_url_pairs():
    a = {"Maps": [MediaCandidate(url="u1")]}
    b = {"Maps": [MediaCandidate(url="u1"), MediaCandidate(url="u2")], "Screenshots": [MediaCandidate(url="u1")]}

    result = media.merge_galleries(a, b)

    assert [c.url for c in result["Maps"]] == ["u1", "u2"]
    assert [c.url for c in result["Screenshots"]] == ["u1"]


def test_resolve_galleries_combines_both_sources():
    html = (
        '<ul class="gallery"><li class="gallerycaption">Screenshots</li>'
        '<li><img src="/images/a.jpg"></li></ul>'
        + thumb("/images/a.jpg", "photo")
        + thumb("/images/b_map.png", "")
    )

    result = media.resolve_galleries(html)

    assert [c.url for c in result["Screenshots"]] == ["https://nookipedia.com/images/a.jpg"]
    assert [c.url for c in result["Maps"]] == ["https://nookipedia.com/images/b_map.png"]
