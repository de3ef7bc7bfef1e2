"""バイアクセント/コアクセントのテスト"""

import pytest

from catppuccin_mapper.accent_schemes import (
    DISTRIBUTION_RATIOS,
    AccentSchemeEngine,
    compute_accent_set_for,
    nearest_accent,
)
from catppuccin_mapper.palettes import ACCENT_NAMES, FLAVORS, PALETTES


@pytest.fixture(scope="module")
def engine():
    return AccentSchemeEngine()


@pytest.mark.parametrize("metric", ["rgb", "lab"])
@pytest.mark.parametrize("flavor", FLAVORS)
def test_no_self_pairing_or_duplicates(flavor, metric):
    for accent in ACCENT_NAMES:
        accent_set = compute_accent_set_for(flavor, accent, metric)
        picked = [
            accent_set.bi_accent1,
            accent_set.bi_accent2,
            accent_set.co_accent1,
            accent_set.co_accent2,
        ]
        assert accent not in picked
        assert len(set(picked)) == 4
        assert all(name in ACCENT_NAMES for name in picked)


def test_bi_only_variant():
    accent_set = compute_accent_set_for("mocha", "mauve", include_co=False)
    assert accent_set.co_accent1 is None
    assert accent_set.co_accent2 is None
    assert accent_set.co_accents == ()
    assert "co_accent1" not in accent_set.to_dict()
    full = compute_accent_set_for("mocha", "mauve")
    # コアクセントの有無でバイアクセントは変わらない
    assert full.bi_accents == accent_set.bi_accents


def test_palette_dict_input():
    assert compute_accent_set_for(PALETTES["mocha"], "blue").flavor == "mocha"
    custom = dict(PALETTES["mocha"], red="#ff0000")
    accent_set = compute_accent_set_for(custom, "blue")
    assert accent_set.flavor is None
    assert accent_set.main_accent == "blue"


def test_nearest_accent_excludes():
    palette = PALETTES["mocha"]
    assert nearest_accent((0x89, 0xB4, 0xFA), palette) == "blue"
    assert nearest_accent((0x89, 0xB4, 0xFA), palette, exclude=("blue",)) != "blue"
    assert nearest_accent((0x89, 0xB4, 0xFA), palette, metric="lab") == "blue"


def test_invalid_inputs():
    with pytest.raises(ValueError):
        compute_accent_set_for("mocha", "purple")
    with pytest.raises(ValueError):
        compute_accent_set_for("dracula", "blue")
    with pytest.raises(ValueError, match="Unknown accent metric"):
        AccentSchemeEngine(metric="cie2000")


def test_engine_matches_direct_computation(engine):
    for flavor in FLAVORS:
        assert len(engine.table(flavor)) == len(ACCENT_NAMES)
        for accent in ACCENT_NAMES:
            assert engine.accent_set(flavor, accent) == compute_accent_set_for(flavor, accent)


def test_engine_table_is_read_only(engine):
    table = engine.table("mocha")
    with pytest.raises(TypeError):
        table["blue"] = None


def test_engine_accessors(engine):
    bi = engine.bi_accents("latte", "peach")
    assert len(bi) == 2
    assert len(engine.co_accents("latte", "peach")) == 2
    assert engine.hover_gradient_tokens("latte", "peach") == ("peach", bi[0])

    scheme = engine.distribution_scheme("latte", "peach")
    assert scheme["primary"]["accent"] == "peach"
    assert [scheme[k]["accent"] for k in ("secondary", "tertiary")] == list(bi)
    assert sum(scheme[k]["ratio"] for k in scheme) == pytest.approx(sum(DISTRIBUTION_RATIOS))


def test_cascade(engine):
    tree = engine.cascade("mocha", "blue", depth=2)
    assert tree["main"] == "blue"
    assert len(tree["children"]) == 2
    for child, co_accent in zip(tree["children"], tree["co_accents"]):
        assert child["main"] == co_accent
        assert child["main"] != "blue"
        assert len(child["children"]) == 2
        assert all(grandchild["children"] == [] for grandchild in child["children"])

    assert engine.cascade("mocha", "blue", depth=0)["children"] == []
