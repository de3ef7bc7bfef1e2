"""ロールマッピングのテスト"""

import pytest

from catppuccin_mapper.accent_schemes import AccentSchemeEngine
from catppuccin_mapper.color_extractor import build_source_colors, extract_colors
from catppuccin_mapper.models import ColorUsage, MappingConfig, SemanticClassification
from catppuccin_mapper.palettes import ACCENT_NAMES, CONTRAST_MODES, FLAVORS, get_color
from catppuccin_mapper.role_mapper import (
    CRITICAL_ROLES,
    SEMANTIC_BASES,
    blend,
    choose_secondary_accent,
    detect_primary_accent,
    get_default_role_map,
    map_to_catppuccin_theme,
    passes_contrast,
    text_on_accent,
    try_fix_contrast,
)

SCENARIO = [
    ColorUsage("#101010", 0.6, contexts=("background",)),
    ColorUsage("#e6e6e6", 0.5, contexts=("text",)),
    ColorUsage("#58a6ff", 0.3, contexts=("link",)),
    ColorUsage("#2ea043", 0.1, contexts=("background",), semantic_hints=(".alert-success",)),
]


def _all_pairs_pass(output, mode):
    role_map = output.role_map
    if not passes_contrast(role_map["text.primary"].hex, role_map["background.primary"].hex, mode):
        return False
    return all(
        passes_contrast(role_map[f"{s}.text"].hex, role_map[f"{s}.base"].hex, mode)
        for s in SEMANTIC_BASES
    )


# =============================================
# ヘルパー
# =============================================

def test_passes_contrast_modes():
    # #777777 / #ffffff ≈ 4.48:1
    assert passes_contrast("#777777", "#ffffff", "strict") is False
    assert passes_contrast("#777777", "#ffffff", "normal") is True
    assert passes_contrast("not-a-color", "#ffffff") is False


def test_try_fix_contrast():
    assert try_fix_contrast("text", "#ffffff", "latte") == "subtext1"
    assert try_fix_contrast("overlay1", "#ffffff", "latte") is None
    assert try_fix_contrast("base", "#ffffff", "latte") is None


def test_blend_endpoints():
    assert blend("#000000", "#ffffff", 0.0).hex == "#000000"
    assert blend("#000000", "#ffffff", 1.0).hex == "#ffffff"


def test_text_on_accent_candidates():
    mocha = text_on_accent(get_color("mocha", "mauve"), "mocha")
    assert mocha.hex in (get_color("mocha", "crust"), get_color("mocha", "base"))
    latte = text_on_accent(get_color("latte", "mauve"), "latte")
    assert latte.hex in (get_color("latte", "text"), get_color("latte", "base"))


@pytest.mark.parametrize("flavor", FLAVORS)
def test_secondary_never_equals_primary(flavor):
    for accent in ACCENT_NAMES:
        secondary = choose_secondary_accent(accent, flavor)
        assert secondary != accent
        assert secondary in ACCENT_NAMES


# =============================================
# 既定ロールマップ
# =============================================

def test_default_interactive_accent():
    assert get_default_role_map("latte")["accent.interactive"].hex == get_color("latte", "sky")
    assert get_default_role_map("mocha")["accent.interactive"].hex == get_color("mocha", "sapphire")


def test_default_primary_is_mauve():
    role_map = get_default_role_map("frappe")
    assert role_map["primary.base"].hex == get_color("frappe", "mauve")
    assert role_map["accent.focus"].hex == get_color("frappe", "mauve")


# =============================================
# map_to_catppuccin_theme
# =============================================

@pytest.mark.parametrize("flavor", FLAVORS)
@pytest.mark.parametrize("source", [[], SCENARIO])
def test_critical_roles_always_present(flavor, source):
    output = map_to_catppuccin_theme(source, flavor)
    for role in CRITICAL_ROLES:
        assert output.role_map[role] is not None
    assert output.metadata.flavor == flavor
    assert len(output.derived_scales) == 14


def test_deterministic():
    first = map_to_catppuccin_theme(SCENARIO, "macchiato")
    second = map_to_catppuccin_theme(list(SCENARIO), "macchiato")
    assert first.to_dict() == second.to_dict()


def test_mocha_normal_validates_cleanly():
    output = map_to_catppuccin_theme([], "mocha")
    assert output.metadata.contrast_validated is True
    assert output.metadata.warnings == []


@pytest.mark.parametrize("mode", ["normal", "strict"])
def test_latte_success_pair_cannot_be_repaired(mode):
    output = map_to_catppuccin_theme([], "latte", {"contrast_mode": mode})
    assert output.metadata.contrast_validated is False
    assert any("success" in w for w in output.metadata.warnings)


@pytest.mark.parametrize("mode", list(CONTRAST_MODES))
@pytest.mark.parametrize("flavor", FLAVORS)
def test_validated_flag_matches_pairs(flavor, mode):
    output = map_to_catppuccin_theme(SCENARIO, flavor, MappingConfig(contrast_mode=mode))
    assert output.metadata.contrast_validated == _all_pairs_pass(output, mode)
    if not output.metadata.contrast_validated:
        assert output.metadata.warnings


def test_background_override_uses_background_tier():
    output = map_to_catppuccin_theme([ColorUsage("#101010", 0.6, contexts=("background",))], "mocha")
    assert output.role_map["background.primary"].hex == get_color("mocha", "crust")


def test_background_override_needs_frequency():
    output = map_to_catppuccin_theme([ColorUsage("#101010", 0.4, contexts=("background",))], "mocha")
    assert output.role_map["background.primary"].hex == get_color("mocha", "base")


def test_link_sets_primary_and_interactive():
    output = map_to_catppuccin_theme([ColorUsage("#58a6ff", 0.3, contexts=("link",))], "mocha")
    assert output.metadata.primary_accent == "blue"
    assert output.role_map["accent.interactive"].hex == get_color("mocha", "blue")
    assert output.metadata.secondary_accent != "blue"


def test_no_candidates_falls_back_to_mauve():
    output = map_to_catppuccin_theme([ColorUsage("#101010", 0.6, contexts=("background",))], "mocha")
    assert output.metadata.primary_accent == "mauve"


def test_white_button_text_is_not_the_primary_accent():
    css = (
        ".btn{background:#1e66f5;color:#fff}.btn-lg{color:#fff}.btn-sm{color:#fff}"
        ".card{background:#f8f8f8}"
    )
    sources = build_source_colors(extract_colors(css))
    assert sources["#ffffff"].frequency > sources["#1e66f5"].frequency

    assert map_to_catppuccin_theme(sources, "latte").metadata.primary_accent == "blue"
    assert map_to_catppuccin_theme(sources, "mocha").metadata.primary_accent != "rosewater"


def test_detect_primary_accent_skips_achromatic_candidates():
    white = SemanticClassification("#ffffff", "accent.interactive", 0.9, ("Semantic keyword",))
    blue = SemanticClassification("#1e66f5", "accent.interactive", 0.9, ("Semantic keyword",))
    usages = {
        "#ffffff": ColorUsage("#ffffff", 0.6, contexts=("text",)),
        "#1e66f5": ColorUsage("#1e66f5", 0.2, contexts=("background",)),
    }
    assert detect_primary_accent({"#ffffff": white, "#1e66f5": blue}, usages, "latte") == "blue"
    assert detect_primary_accent({"#ffffff": white}, usages, "latte") == "mauve"


def test_config_accents_and_overrides():
    config = MappingConfig(primary_accent="peach", semantic_overrides={"info": "blue"})
    output = map_to_catppuccin_theme(SCENARIO, "mocha", config)
    role_map = output.role_map
    assert output.metadata.primary_accent == "peach"
    assert output.metadata.secondary_accent != "peach"
    assert role_map["primary.base"].hex == get_color("mocha", "peach")
    assert role_map["info.base"].hex == get_color("mocha", "blue")
    assert role_map["success.base"].hex == get_color("mocha", "green")

    hover = blend(role_map["primary.base"].hex, get_color("mocha", "overlay1"), 0.2)
    assert output.derived_scales["primary.hover"] == hover


def test_explicit_secondary_accent():
    output = map_to_catppuccin_theme([], "mocha", {"primary_accent": "blue", "secondary_accent": "teal"})
    assert output.metadata.secondary_accent == "teal"
    assert output.role_map["secondary.base"].hex == get_color("mocha", "teal")


def test_accepts_mapping_of_usages():
    as_dict = {usage.hex: usage for usage in SCENARIO}
    assert (
        map_to_catppuccin_theme(as_dict, "mocha").to_dict()
        == map_to_catppuccin_theme(SCENARIO, "mocha").to_dict()
    )


def test_bi_accents_from_engine():
    engine = AccentSchemeEngine()
    output = map_to_catppuccin_theme(SCENARIO, "mocha", accent_engine=engine)
    assert output.metadata.bi_accents == list(engine.bi_accents("mocha", output.metadata.primary_accent))
    assert map_to_catppuccin_theme(SCENARIO, "mocha").metadata.bi_accents == output.metadata.bi_accents


def test_malformed_usage_is_skipped():
    bad = [ColorUsage("not-a-color", 0.9, contexts=("background",))]
    assert map_to_catppuccin_theme(bad, "mocha").to_dict() == map_to_catppuccin_theme([], "mocha").to_dict()


def test_invalid_arguments():
    with pytest.raises(ValueError):
        map_to_catppuccin_theme([], "dracula")
    with pytest.raises(ValueError):
        map_to_catppuccin_theme([], "mocha", {"contrast_mode": "extreme"})
    with pytest.raises(ValueError):
        MappingConfig(primary_accent="purple")
    with pytest.raises(ValueError):
        MappingConfig(semantic_overrides={"neutral": "blue"})


def test_hex_table_contains_derived_scales():
    output = map_to_catppuccin_theme([], "mocha")
    table = output.hex_table()
    assert table["background.primary"] == get_color("mocha", "base")
    assert "focus.ring" in table
    assert "selection.bg" in table
