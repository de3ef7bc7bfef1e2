"""色空間変換・コントラスト・色差のテスト"""

import pytest

from catppuccin_mapper.cache import SharedColorCache
from catppuccin_mapper.color_space import (
    ColorConverter,
    blend_hex,
    canonical_hex,
    contrast_ratio,
    delta_e76,
    hex_delta_e,
    hex_to_lab,
    hex_to_rgb,
    hsl_to_rgb,
    hue_distance,
    normalize_to_hex,
    relative_luminance,
    rgb_to_hsl,
    rgb_to_hsl_float,
    wrap_hue,
)


@pytest.mark.parametrize("value", ["#fff", "rgb(255,255,255)", "hsl(0,0%,100%)", "#FFFFFF", "  #ffffff  "])
def test_normalize_to_hex_white(value):
    assert normalize_to_hex(value) == "#ffffff"


def test_normalize_to_hex_variants():
    assert normalize_to_hex("rgba(255, 0, 0, 0.5)") == "#ff0000"
    assert normalize_to_hex("hsl(120, 100%, 50%)") == "#00ff00"
    assert normalize_to_hex("#AbC") == "#aabbcc"


@pytest.mark.parametrize("value", ["", "#12", "#ggg", "not-a-color", "rgb(1, 2)", None])
def test_normalize_to_hex_malformed(value):
    assert normalize_to_hex(value) is None


def test_canonical_hex():
    assert canonical_hex("FFF") == "#ffffff"
    assert canonical_hex("#1E1E2E") == "#1e1e2e"
    assert canonical_hex("#1e1e2") is None
    assert canonical_hex(123) is None


def test_malformed_hex_returns_none_everywhere():
    assert hex_to_rgb("zzz") is None
    assert hex_to_lab("#12") is None
    assert relative_luminance("nope") is None
    assert contrast_ratio("nope", "#ffffff") is None
    assert hex_delta_e("#ffffff", "nope") is None
    assert blend_hex("#ffffff", "nope", 0.5) is None


def test_hsl_round_trip():
    assert rgb_to_hsl(255, 0, 0) == (0, 100, 50)
    assert hsl_to_rgb(0, 1.0, 0.5) == (255, 0, 0)
    # 範囲外の色相は折り返す
    assert hsl_to_rgb(480, 1.0, 0.5) == (0, 255, 0)
    assert hsl_to_rgb(-240, 1.0, 0.5) == (0, 255, 0)


def test_hsl_matches_known_values():
    assert rgb_to_hsl(88, 166, 255) == (212, 100, 67)
    assert rgb_to_hsl(255, 255, 255) == (0, 0, 100)
    h, s, l = rgb_to_hsl_float(0, 0, 255)
    assert (h, s, l) == pytest.approx((240.0, 1.0, 0.5))
    assert hsl_to_rgb(120, 0.5, 0.5) == (64, 191, 64)
    # 範囲外の彩度・明度はクランプ
    assert hsl_to_rgb(0, 2.0, -1.0) == (0, 0, 0)


@pytest.mark.parametrize("value", ["hsl(120,50,50)", "hsl(120, 50%, 50%)", "hsla(120deg, 50, 50, 0.3)", "hsl(120 50 50)"])
def test_normalize_to_hex_accepts_unitless_hsl(value):
    assert normalize_to_hex(value) == "#40bf40"


@pytest.mark.parametrize("value", ["hsl(120, 50)", "hsl(120, 50, red)", "hsl(1, 2, 3, 4, 5)"])
def test_normalize_to_hex_rejects_malformed_hsl(value):
    assert normalize_to_hex(value) is None


def test_hue_wrapping():
    assert wrap_hue(370) == pytest.approx(10)
    assert wrap_hue(-10) == pytest.approx(350)
    assert hue_distance(350, 10) == pytest.approx(20)
    assert hue_distance(10, 350) == pytest.approx(20)
    assert hue_distance(0, 180) == pytest.approx(180)


def test_contrast_extremes():
    assert contrast_ratio("#000000", "#ffffff") == pytest.approx(21.0)
    assert contrast_ratio("#777777", "#ffffff") == pytest.approx(4.48, abs=0.01)


@pytest.mark.parametrize("a,b", [
    ("#1e1e2e", "#cdd6f4"),
    ("#ff0000", "#00ff00"),
    ("#58a6ff", "#0d1117"),
    ("#eff1f5", "#40a02b"),
])
def test_contrast_symmetry(a, b):
    assert contrast_ratio(a, b) == contrast_ratio(b, a)
    assert 1.0 <= contrast_ratio(a, b) <= 21.0


@pytest.mark.parametrize("value", ["#000000", "#ffffff", "#89b4fa", "#abc"])
def test_contrast_identity(value):
    assert contrast_ratio(value, value) == 1.0


def test_luminance_bounds():
    assert relative_luminance("#000000") == pytest.approx(0.0)
    assert relative_luminance("#ffffff") == pytest.approx(1.0)


def test_lab_white_and_delta_e():
    l, a, b = hex_to_lab("#ffffff")
    assert l == pytest.approx(100.0, abs=0.5)
    assert a == pytest.approx(0.0, abs=0.5)
    assert b == pytest.approx(0.0, abs=0.5)
    assert delta_e76((50.0, 0.0, 0.0), (53.0, 4.0, 0.0)) == pytest.approx(5.0)
    assert hex_delta_e("#123456", "#123456") == 0.0
    assert hex_delta_e("#000000", "#ffffff") == pytest.approx(100.0, abs=0.5)


def test_blend():
    assert blend_hex("#000000", "#ffffff", 0.5) == "#808080"
    assert blend_hex("#000000", "#ffffff", 0.0) == "#000000"
    assert blend_hex("#000000", "#ffffff", 1.0) == "#ffffff"
    # アルファは [0, 1] にクランプ
    assert blend_hex("#000000", "#ffffff", 2.0) == "#ffffff"


def test_converter_memoizes_by_canonical_hex():
    cache = SharedColorCache()
    converter = ColorConverter(cache)
    first = converter.hex_to_lab("#FFF")
    assert cache.get("lab:#ffffff") == first
    size = len(cache)
    assert converter.hex_to_lab("#ffffff") == first
    assert len(cache) == size


def test_converter_skips_malformed_without_caching():
    cache = SharedColorCache()
    converter = ColorConverter(cache)
    assert converter.hex_to_rgb("bogus") is None
    assert len(cache) == 0
