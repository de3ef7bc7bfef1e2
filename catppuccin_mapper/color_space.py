"""
色空間演算モジュール
hex ↔ RGB ↔ HSL ↔ LAB の相互変換、Delta-E76（知覚色差）、WCAG相対輝度・コントラスト比。
変換結果は正規化済みhexをキーに ColorCache でメモ化する。
不正なhexには例外ではなく None を返す（呼び出し側でスキップする）。
"""

from __future__ import annotations

import colorsys
import logging
import math
import re

import numpy as np
import tinycss2
from tinycss2 import color3

from catppuccin_mapper.cache import ColorCache, SharedColorCache

logger = logging.getLogger(__name__)

HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# 色リテラルとして解釈する関数名（名前付き色・currentColor は対象外）
COLOR_FUNCTIONS = ("rgb", "rgba", "hsl", "hsla")

# sRGB (D65) → XYZ 変換行列
SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])

# D65 白色点（Y=100 スケール）
D65_WHITE = (95.047, 100.0, 108.883)

# WCAG 2.1 相対輝度係数
LUMINANCE_COEFFICIENTS = np.array([0.2126, 0.7152, 0.0722])

# CIE LAB の区分関数定数
LAB_EPSILON = 0.008856
LAB_KAPPA = 7.787

Lab = tuple[float, float, float]


# =============================================
# 正規化・基本変換（メモ化不要な純関数）
# =============================================

def canonical_hex(value: str) -> str | None:
    """
    hex表記を小文字6桁 "#rrggbb" に正規化する。

    "#FFF" / "fff" / "#ffffff" はすべて "#ffffff"。解釈できなければ None。
    """
    if not isinstance(value, str):
        return None
    match = HEX_RE.match(value.strip())
    if not match:
        return None
    digits = match.group(1).lower()
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return f"#{digits}"


def clamp_channel(value: float) -> int:
    """0-255に丸めてクランプ"""
    return max(0, min(255, int(round(value))))


def token_to_hex(token) -> str | None:
    """
    tinycss2 のトークン1つを6桁hexに変換する。

    hash（#rgb / #rrggbb / #rrggbbaa）と rgb()/rgba()/hsl()/hsla() のみ対象。
    hsl() の彩度・明度は % を省略した数値（hsl(120,50,50)）も受け付ける。
    アルファは無視する。解釈できなければ None。
    """
    is_hash = token.type == "hash"
    is_function = token.type == "function" and token.lower_name in COLOR_FUNCTIONS
    if not (is_hash or is_function):
        return None
    parsed = color3.parse_color(token)
    if not isinstance(parsed, color3.RGBA):
        if is_function and token.lower_name in ("hsl", "hsla"):
            return _loose_hsl_to_hex(token)
        return None
    return rgb_to_hex(parsed.red * 255, parsed.green * 255, parsed.blue * 255)


def _loose_hsl_to_hex(token) -> str | None:
    """% 無しの hsl(h, s, l[, a])。引数が3-4個の数値でなければ None"""
    values = []
    for arg in token.arguments:
        if arg.type in ("whitespace", "comment") or (arg.type == "literal" and arg.value in (",", "/")):
            continue
        if arg.type in ("number", "percentage") or (arg.type == "dimension" and arg.lower_unit == "deg"):
            values.append(arg.value)
        else:
            return None
    if len(values) not in (3, 4):
        return None
    h, s, l = values[:3]
    return rgb_to_hex(*hsl_to_rgb(h, s / 100.0, l / 100.0))


def normalize_to_hex(value: str) -> str | None:
    """
    任意の色表記を小文字6桁hexに正規化する。

    "#fff" / "rgb(255,255,255)" / "hsl(0,0%,100%)" → "#ffffff"
    """
    if not isinstance(value, str) or not value.strip():
        return None
    token = tinycss2.parse_one_component_value(value.strip(), skip_comments=True)
    return token_to_hex(token)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    r, g, b = clamp_channel(r), clamp_channel(g), clamp_channel(b)
    return f"#{r:02x}{g:02x}{b:02x}"


def wrap_hue(hue: float) -> float:
    """色相を [0, 360) に折り返す"""
    wrapped = hue % 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def hue_distance(a: float, b: float) -> float:
    """色相環上の最短距離（0-180）"""
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def rgb_to_hsl_float(r: int, g: int, b: int) -> tuple[float, float, float]:
    """RGB → HSL（h: 0-360度, s/l: 0-1 の実数）。colorsys は HLS 順なので並べ替える"""
    h, l, s = colorsys.rgb_to_hls(r / 255.0, g / 255.0, b / 255.0)
    return wrap_hue(h * 360.0), s, l


def rgb_to_hsl(r: int, g: int, b: int) -> tuple[int, int, int]:
    """RGB → HSL（h: 0-359度, s/l: 0-100% の整数）。分類のしきい値判定はこちらを使う"""
    h, s, l = rgb_to_hsl_float(r, g, b)
    return int(round(h)) % 360, int(round(s * 100)), int(round(l * 100))


def hsl_to_rgb(h: float, s: float, l: float) -> tuple[int, int, int]:
    """
    HSL → RGB。

    Args:
        h: 色相（度）。範囲外は折り返す
        s: 彩度 0-1
        l: 明度 0-1
    """
    s = max(0.0, min(1.0, s))
    l = max(0.0, min(1.0, l))
    r, g, b = colorsys.hls_to_rgb(wrap_hue(h) / 360.0, l, s)
    return clamp_channel(r * 255), clamp_channel(g * 255), clamp_channel(b * 255)


def srgb_to_linear(channel: int) -> float:
    """sRGBガンマ展開（0-255 → 0-1 の線形値）"""
    v = channel / 255.0
    return v / 12.92 if v <= 0.04045 else ((v + 0.055) / 1.055) ** 2.4


def linear_to_luminance(linear: tuple[float, float, float]) -> float:
    return float(np.dot(LUMINANCE_COEFFICIENTS, linear))


def rgb_to_xyz(r: int, g: int, b: int) -> tuple[float, float, float]:
    linear = np.array([srgb_to_linear(r), srgb_to_linear(g), srgb_to_linear(b)])
    x, y, z = SRGB_TO_XYZ @ linear * 100.0
    return float(x), float(y), float(z)


def xyz_to_lab(x: float, y: float, z: float) -> Lab:
    def f(t: float) -> float:
        return t ** (1 / 3) if t > LAB_EPSILON else LAB_KAPPA * t + 16 / 116

    xr = f(x / D65_WHITE[0])
    yr = f(y / D65_WHITE[1])
    zr = f(z / D65_WHITE[2])
    return 116 * yr - 16, 500 * (xr - yr), 200 * (yr - zr)


def delta_e76(lab1: Lab, lab2: Lab) -> float:
    """
    CIE76 色差。ΔE<1 はほぼ識別不能、2-10 で一見して分かる差。
    システム全体の「最も近い色」探索のタイブレーク指標。
    """
    return math.sqrt(
        (lab1[0] - lab2[0]) ** 2
        + (lab1[1] - lab2[1]) ** 2
        + (lab1[2] - lab2[2]) ** 2
    )


def blend_rgb(
    base: tuple[int, int, int],
    overlay: tuple[int, int, int],
    alpha: float,
) -> tuple[int, int, int]:
    """Porter-Duff "over" 合成: C = α·overlay + (1-α)·base"""
    alpha = max(0.0, min(1.0, alpha))
    return (
        clamp_channel(alpha * overlay[0] + (1 - alpha) * base[0]),
        clamp_channel(alpha * overlay[1] + (1 - alpha) * base[1]),
        clamp_channel(alpha * overlay[2] + (1 - alpha) * base[2]),
    )


# =============================================
# メモ化付きコンバーター
# =============================================

class ColorConverter:
    """正規化hexをキーに変換結果をキャッシュするコンバーター"""

    def __init__(self, cache: ColorCache | None = None):
        self.cache = cache if cache is not None else SharedColorCache()

    def _memo(self, kind: str, value: str, compute):
        key = canonical_hex(value)
        if key is None:
            logger.debug("Unparseable hex skipped: %r", value)
            return None
        return self.cache.get_or_compute(f"{kind}:{key}", lambda: compute(key))

    def hex_to_rgb(self, value: str) -> tuple[int, int, int] | None:
        return self._memo(
            "rgb", value,
            lambda h: (int(h[1:3], 16), int(h[3:5], 16), int(h[5:7], 16)),
        )

    def hex_to_hsl(self, value: str) -> tuple[int, int, int] | None:
        return self._memo("hsl", value, lambda h: rgb_to_hsl(*self.hex_to_rgb(h)))

    def hex_to_hsl_float(self, value: str) -> tuple[float, float, float] | None:
        return self._memo("hslf", value, lambda h: rgb_to_hsl_float(*self.hex_to_rgb(h)))

    def hex_to_lab(self, value: str) -> Lab | None:
        return self._memo("lab", value, lambda h: xyz_to_lab(*rgb_to_xyz(*self.hex_to_rgb(h))))

    def relative_luminance(self, value: str) -> float | None:
        def compute(h: str) -> float:
            r, g, b = self.hex_to_rgb(h)
            return linear_to_luminance((srgb_to_linear(r), srgb_to_linear(g), srgb_to_linear(b)))

        return self._memo("lum", value, compute)

    def contrast_ratio(self, a: str, b: str) -> float | None:
        """WCAG コントラスト比 (Lmax+0.05)/(Lmin+0.05)、範囲 [1, 21]"""
        la = self.relative_luminance(a)
        lb = self.relative_luminance(b)
        if la is None or lb is None:
            return None
        lighter, darker = max(la, lb), min(la, lb)
        return (lighter + 0.05) / (darker + 0.05)

    def delta_e(self, a: str, b: str) -> float | None:
        lab_a = self.hex_to_lab(a)
        lab_b = self.hex_to_lab(b)
        if lab_a is None or lab_b is None:
            return None
        return delta_e76(lab_a, lab_b)


_default_converter = ColorConverter()


def get_default_converter() -> ColorConverter:
    return _default_converter


def set_default_cache(cache: ColorCache) -> None:
    """既定コンバーターのキャッシュを差し替える（リクエスト単位キャッシュ等）"""
    _default_converter.cache = cache


# ----- 既定コンバーター経由のショートカット -----

def hex_to_rgb(value: str) -> tuple[int, int, int] | None:
    return _default_converter.hex_to_rgb(value)


def hex_to_hsl(value: str) -> tuple[int, int, int] | None:
    return _default_converter.hex_to_hsl(value)


def hex_to_hsl_float(value: str) -> tuple[float, float, float] | None:
    return _default_converter.hex_to_hsl_float(value)


def hex_to_lab(value: str) -> Lab | None:
    return _default_converter.hex_to_lab(value)


def relative_luminance(value: str) -> float | None:
    return _default_converter.relative_luminance(value)


def contrast_ratio(a: str, b: str) -> float | None:
    return _default_converter.contrast_ratio(a, b)


def hex_delta_e(a: str, b: str) -> float | None:
    return _default_converter.delta_e(a, b)


def blend_hex(base: str, overlay: str, alpha: float) -> str | None:
    """hex同士のアルファ合成。どちらかが不正なら None"""
    base_rgb = hex_to_rgb(base)
    overlay_rgb = hex_to_rgb(overlay)
    if base_rgb is None or overlay_rgb is None:
        return None
    return rgb_to_hex(*blend_rgb(base_rgb, overlay_rgb, alpha))
