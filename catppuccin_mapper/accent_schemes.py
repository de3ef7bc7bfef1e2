"""
アクセントスキーム（バイアクセント / コアクセント）
主アクセントの色相を ±72°（バイ: 類似色）と ±144°（コ: 三色配色）回転させ、
パレット内で最も近い「別の」アクセント名を選ぶ。選択済みのアクセントは候補から除外する。

全 (フレーバー × アクセント) = 56通りを AccentSchemeEngine の生成時に一度だけ計算し、
以後は読み取り専用テーブルとして共有する。
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

from catppuccin_mapper.color_space import (
    delta_e76,
    hex_to_lab,
    hex_to_rgb,
    hsl_to_rgb,
    rgb_to_hsl_float,
    rgb_to_xyz,
    xyz_to_lab,
)
from catppuccin_mapper.models import AccentSet
from catppuccin_mapper.palettes import (
    ACCENT_NAMES,
    FLAVORS,
    PALETTES,
    get_palette,
    validate_accent,
)

logger = logging.getLogger(__name__)

METRICS = ("rgb", "lab")

BI_OFFSET = 72
CO_OFFSET = 144

# 60/20/20 配分（主 / バイ1 / バイ2）
DISTRIBUTION_RATIOS = (0.6, 0.2, 0.2)

MAX_CASCADE_DEPTH = 3


def validate_metric(metric: str) -> str:
    if metric not in METRICS:
        raise ValueError(f"Unknown accent metric: {metric!r} (expected one of {', '.join(METRICS)})")
    return metric


def _resolve_palette(palette: str | Mapping[str, str]) -> tuple[str | None, Mapping[str, str]]:
    """フレーバー名 or {色名: hex} を受け取り (フレーバー名, パレット) を返す"""
    if isinstance(palette, str):
        return palette, get_palette(palette)
    for flavor, known in PALETTES.items():
        if known == palette:
            return flavor, known
    return None, palette


def nearest_accent(
    target_rgb: tuple[int, int, int],
    palette: Mapping[str, str],
    exclude: tuple[str, ...] = (),
    metric: str = "rgb",
) -> str:
    """
    目標色に最も近いアクセント名（exclude は除外）。

    metric="rgb" は RGB 二乗距離、"lab" は Delta-E76。同距離なら ACCENT_NAMES の順で先勝ち。
    """
    candidates = [name for name in ACCENT_NAMES if name not in exclude]
    if metric == "lab":
        target_lab = xyz_to_lab(*rgb_to_xyz(*target_rgb))
        return min(candidates, key=lambda name: delta_e76(target_lab, hex_to_lab(palette[name])))

    def distance(name: str) -> int:
        r, g, b = hex_to_rgb(palette[name])
        return (r - target_rgb[0]) ** 2 + (g - target_rgb[1]) ** 2 + (b - target_rgb[2]) ** 2

    return min(candidates, key=distance)


def compute_accent_set_for(
    palette: str | Mapping[str, str],
    main_accent: str,
    metric: str = "rgb",
    include_co: bool = True,
) -> AccentSet:
    """
    主アクセントからバイアクセント2つ（と任意でコアクセント2つ）を決める。

    選択順は +72° → -72° → +144° → -144°。各段で主アクセントと選択済みを除外するので、
    自己選択も重複も起きない。

    Args:
        palette: フレーバー名、または {色名: hex} のパレット
        main_accent: 主アクセント名
        metric: "rgb" または "lab"
        include_co: False ならバイアクセントのみ（co_accent1/2 は None）
    """
    validate_accent(main_accent)
    validate_metric(metric)
    flavor, colors = _resolve_palette(palette)

    h, s, l = rgb_to_hsl_float(*hex_to_rgb(colors[main_accent]))
    offsets = [BI_OFFSET, -BI_OFFSET]
    if include_co:
        offsets += [CO_OFFSET, -CO_OFFSET]

    chosen: list[str] = [main_accent]
    for offset in offsets:
        target = hsl_to_rgb(h + offset, s, l)
        chosen.append(nearest_accent(target, colors, tuple(chosen), metric))

    picked = chosen[1:] + [None] * (4 - len(offsets))
    return AccentSet(
        flavor=flavor,
        main_accent=main_accent,
        bi_accent1=picked[0],
        bi_accent2=picked[1],
        co_accent1=picked[2],
        co_accent2=picked[3],
    )


class AccentSchemeEngine:
    """
    事前計算済みアクセントスキームのテーブル。
    生成後は読み取り専用なので、複数の解析処理から同時に参照してよい。
    """

    def __init__(self, metric: str = "rgb"):
        self.metric = validate_metric(metric)
        table = {}
        for flavor in FLAVORS:
            per_accent = {
                accent: compute_accent_set_for(flavor, accent, metric)
                for accent in ACCENT_NAMES
            }
            table[flavor] = MappingProxyType(per_accent)
        self._table: Mapping[str, Mapping[str, AccentSet]] = MappingProxyType(table)
        logger.debug("Precomputed %d accent schemes (metric=%s)", len(FLAVORS) * len(ACCENT_NAMES), metric)

    def table(self, flavor: str) -> Mapping[str, AccentSet]:
        get_palette(flavor)
        return self._table[flavor]

    def accent_set(self, flavor: str, main_accent: str) -> AccentSet:
        validate_accent(main_accent)
        return self.table(flavor)[main_accent]

    def bi_accents(self, flavor: str, main_accent: str) -> tuple[str, str]:
        """主アクセントとペアでのみ使う（グラデーション用）"""
        return self.accent_set(flavor, main_accent).bi_accents

    def co_accents(self, flavor: str, main_accent: str) -> tuple[str, ...]:
        """主アクセントとは別の要素で、独立した主アクセントとして使う"""
        return self.accent_set(flavor, main_accent).co_accents

    def distribution_scheme(self, flavor: str, main_accent: str) -> dict:
        bi1, bi2 = self.bi_accents(flavor, main_accent)
        primary, secondary, tertiary = DISTRIBUTION_RATIOS
        return {
            "primary": {"accent": main_accent, "ratio": primary},
            "secondary": {"accent": bi1, "ratio": secondary},
            "tertiary": {"accent": bi2, "ratio": tertiary},
        }

    def hover_gradient_tokens(self, flavor: str, main_accent: str) -> tuple[str, str]:
        """ホバー時のグラデーション: 主アクセント → 近い方のバイアクセント"""
        return main_accent, self.bi_accents(flavor, main_accent)[0]

    def cascade(self, flavor: str, main_accent: str, depth: int = 1) -> dict:
        """
        コアクセントを別要素の主アクセントに昇格させた階層を返す。

        Returns:
            {"main": ..., "bi_accents": [...], "co_accents": [...], "children": [同じ形の dict, ...]}
        """
        depth = max(0, min(depth, MAX_CASCADE_DEPTH))
        accent_set = self.accent_set(flavor, main_accent)
        node = {
            "main": main_accent,
            "bi_accents": list(accent_set.bi_accents),
            "co_accents": list(accent_set.co_accents),
            "children": [],
        }
        if depth > 0:
            node["children"] = [
                self.cascade(flavor, co_accent, depth - 1)
                for co_accent in accent_set.co_accents
            ]
        return node
