"""
Catppuccin パレット定義
4フレーバー（latte / frappe / macchiato / mocha）× 26色。
フレーバーは明るい順に並ぶ。アクセント14色・ニュートラル12色はどのフレーバーにも存在する。
"""

from __future__ import annotations

from dataclasses import dataclass

from catppuccin_mapper.color_space import (
    canonical_hex,
    delta_e76,
    hex_to_hsl,
    hex_to_lab,
    hex_to_rgb,
)

FLAVORS = ("latte", "frappe", "macchiato", "mocha")

ACCENT_NAMES = (
    "rosewater", "flamingo", "pink", "mauve", "red", "maroon", "peach",
    "yellow", "green", "teal", "sky", "sapphire", "blue", "lavender",
)

NEUTRAL_NAMES = (
    "base", "mantle", "crust",
    "surface0", "surface1", "surface2",
    "overlay0", "overlay1", "overlay2",
    "subtext0", "subtext1", "text",
)

CONTRAST_MODES = {
    "strict": 4.5,
    "normal": 3.0,
    "relaxed": 2.5,
}

_COLOR_ORDER = NEUTRAL_NAMES + ACCENT_NAMES

_RAW_PALETTES = {
    "latte": (
        "eff1f5 e6e9ef dce0e8 ccd0da bcc0cc acb0be 9ca0b0 8c8fa1 7c7f93 6c6f85 5c5f77 4c4f69 "
        "dc8a78 dd7878 ea76cb 8839ef d20f39 e64553 fe640b df8e1d 40a02b 179299 04a5e5 209fb5 1e66f5 7287fd"
    ),
    "frappe": (
        "303446 292c3c 232634 414559 51576d 626880 737994 838ba7 949cbb a5adce b5bfe2 c6d0f5 "
        "f2d5cf eebebe f4b8e4 ca9ee6 e78284 ea999c ef9f76 e5c890 a6d189 81c8be 99d1db 85c1dc 8caaee babbf1"
    ),
    "macchiato": (
        "24273a 1e2030 181926 363a4f 494d64 5b6078 6e738d 8087a2 939ab7 a5adcb b8c0e0 cad3f5 "
        "f4dbd6 f0c6c6 f5bde6 c6a0f6 ed8796 ee99a0 f5a97f eed49f a6da95 8bd5ca 91d7e3 7dc4e4 8aadf4 b7bdf8"
    ),
    "mocha": (
        "1e1e2e 181825 11111b 313244 45475a 585b70 6c7086 7f849c 9399b2 a6adc8 bac2de cdd6f4 "
        "f5e0dc f2cdcd f5c2e7 cba6f7 f38ba8 eba0ac fab387 f9e2af a6e3a1 94e2d5 89dceb 74c7ec 89b4fa b4befe"
    ),
}


@dataclass(frozen=True)
class ColorValue:
    """シリアライズ用の色表現（hex + RGB + HSL）"""

    hex: str
    rgb: tuple[int, int, int]
    hsl: tuple[int, int, int]

    def to_dict(self) -> dict:
        r, g, b = self.rgb
        h, s, l = self.hsl
        return {
            "hex": self.hex,
            "rgb": {"r": r, "g": g, "b": b},
            "hsl": {"h": h, "s": s, "l": l},
        }


def make_color_value(value: str) -> ColorValue | None:
    """hex文字列から ColorValue を作る。不正なら None"""
    hex_color = canonical_hex(value)
    if hex_color is None:
        return None
    return ColorValue(hex=hex_color, rgb=hex_to_rgb(hex_color), hsl=hex_to_hsl(hex_color))


def _build_palettes() -> dict[str, dict[str, str]]:
    palettes = {}
    for flavor, raw in _RAW_PALETTES.items():
        values = raw.split()
        palettes[flavor] = {name: f"#{value}" for name, value in zip(_COLOR_ORDER, values)}
    return palettes


# flavor → {色名: "#rrggbb"}
PALETTES: dict[str, dict[str, str]] = _build_palettes()


# =============================================
# 入力検証（境界で即失敗させる）
# =============================================

def validate_flavor(flavor: str) -> str:
    if flavor not in PALETTES:
        raise ValueError(f"Unknown flavor: {flavor!r} (expected one of {', '.join(FLAVORS)})")
    return flavor


def validate_accent(accent: str) -> str:
    if accent not in ACCENT_NAMES:
        raise ValueError(f"Unknown accent: {accent!r} (expected one of {', '.join(ACCENT_NAMES)})")
    return accent


def validate_contrast_mode(mode: str) -> str:
    if mode not in CONTRAST_MODES:
        raise ValueError(f"Unknown contrast mode: {mode!r} (expected one of {', '.join(CONTRAST_MODES)})")
    return mode


def get_palette(flavor: str) -> dict[str, str]:
    return PALETTES[validate_flavor(flavor)]


def get_color(flavor: str, name: str) -> str:
    """フレーバー内の色名からhexを返す"""
    palette = get_palette(flavor)
    if name not in palette:
        raise ValueError(f"Unknown color name: {name!r}")
    return palette[name]


def is_light_flavor(flavor: str) -> bool:
    return validate_flavor(flavor) == "latte"


def flavor_mode(flavor: str) -> str:
    return "light" if is_light_flavor(flavor) else "dark"


def get_color_value(flavor: str, name: str) -> ColorValue:
    return make_color_value(get_color(flavor, name))


def nearest_color_name(hex_color: str, flavor: str, names: tuple[str, ...] | None = None) -> str | None:
    """
    LAB色差で最も近いパレット色名を返す（names で候補を絞れる）。

    同距離なら候補の並び順で先勝ち。hexが不正なら None。
    """
    target = hex_to_lab(hex_color)
    if target is None:
        return None
    palette = get_palette(flavor)
    candidates = names or _COLOR_ORDER
    return min(candidates, key=lambda name: delta_e76(target, hex_to_lab(palette[name])))
