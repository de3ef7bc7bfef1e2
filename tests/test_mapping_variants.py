"""マッピング形式（旧対応表 / ロールマップ）のテスト"""

import pytest

from catppuccin_mapper.mapping_variants import (
    LegacyEntry,
    LegacyMapping,
    RoleMapping,
    resolve_color_table,
)
from catppuccin_mapper.palettes import get_color
from catppuccin_mapper.role_mapper import map_to_catppuccin_theme


def test_legacy_table():
    mapping = LegacyMapping(entries=[
        LegacyEntry(original="#FFF", target="base"),
        LegacyEntry(original="not-a-color", target="text"),
        LegacyEntry(original="#1f6feb", target="blue", role="accent.link"),
        LegacyEntry(original="#ffffff", target="text"),
    ])
    table = resolve_color_table(mapping, "mocha")
    assert table == {
        # 同じ元hexは後勝ち
        "#ffffff": get_color("mocha", "text"),
        "#1f6feb": get_color("mocha", "blue"),
    }


def test_legacy_table_follows_flavor():
    mapping = LegacyMapping(entries=[LegacyEntry(original="#000", target="base")])
    assert resolve_color_table(mapping, "latte") == {"#000000": get_color("latte", "base")}


def test_legacy_unknown_target():
    mapping = LegacyMapping(entries=[LegacyEntry(original="#000000", target="purple")])
    with pytest.raises(ValueError, match="Unknown color name"):
        resolve_color_table(mapping, "mocha")


def test_role_table():
    output = map_to_catppuccin_theme([], "frappe")
    table = resolve_color_table(RoleMapping(output=output), "frappe")
    assert table == output.hex_table()
    assert table["background.primary"] == get_color("frappe", "base")
    assert "primary.hover" in table


def test_kind_tags():
    assert LegacyMapping().kind == "legacy"
    assert RoleMapping(output=map_to_catppuccin_theme([], "mocha")).to_dict()["kind"] == "role"
    entry = LegacyEntry(original="#000000", target="base", role="background.primary", reason="dark")
    assert LegacyMapping(entries=[entry]).to_dict() == {
        "kind": "legacy",
        "entries": [{"original": "#000000", "target": "base", "role": "background.primary", "reason": "dark"}],
    }


def test_invalid_inputs():
    with pytest.raises(ValueError, match="Unsupported mapping type"):
        resolve_color_table({"#000000": "base"}, "mocha")
    with pytest.raises(ValueError):
        resolve_color_table(LegacyMapping(), "dracula")
