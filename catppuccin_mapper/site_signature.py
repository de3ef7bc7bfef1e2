"""
サイトシグネチャ生成モジュール
抽出 → 分類の結果から、サイトごとの色の「指紋」を作る。
見た目の異なるサイトは、支配的色相と推奨アクセントの異なるシグネチャになる。
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Iterable

from catppuccin_mapper.color_extractor import extract_colors, get_saturated_colors
from catppuccin_mapper.color_space import hue_distance
from catppuccin_mapper.models import (
    AggregatedColor,
    ColorExtractionResult,
    ColorProfile,
    SemanticClassification,
    SignatureMetadata,
    SiteSignature,
)
from catppuccin_mapper.palettes import ACCENT_NAMES, nearest_color_name
from catppuccin_mapper.semantic_classifier import (
    ACCENT_MIN_SATURATION,
    classify_all_colors,
    detect_element_type,
    get_best_classifications,
)

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("url", "directory", "mhtml")

DEFAULT_DOMINANT_HUE = 220

BRAND_ROLES = ("accent.brand", "accent.interactive", "accent.link")

MAX_BRAND_COLORS = 3

# 色相の代表名（30度刻み、345度以降は Red に戻る）
_HUE_NAMES = [
    (15, "Red"), (45, "Orange"), (75, "Yellow"), (105, "Lime"),
    (135, "Green"), (165, "Teal"), (195, "Cyan"), (225, "Sky"),
    (255, "Blue"), (285, "Purple"), (315, "Magenta"), (345, "Pink"),
]

# 色相 → Catppuccin アクセント（上限未満で判定）
_HUE_ACCENTS = [
    (15, "red"), (30, "maroon"), (45, "peach"), (70, "yellow"),
    (150, "green"), (180, "teal"), (200, "sky"), (220, "sapphire"),
    (260, "blue"), (290, "lavender"), (320, "mauve"), (340, "pink"),
    (355, "flamingo"),
]


def get_hue_name(hue: float) -> str:
    hue = hue % 360
    for upper, name in _HUE_NAMES:
        if hue < upper:
            return name
    return "Red"


def hue_to_accent(hue: float) -> str:
    """色相だけからアクセントを引く（精度は低いが常に使える）"""
    hue = hue % 360
    for upper, accent in _HUE_ACCENTS:
        if hue < upper:
            return accent
    return "rosewater"


def find_nearest_accent(hex_color: str, flavor: str = "mocha") -> str:
    """LAB色差で最も近いアクセント名。hexが不正なら blue"""
    return nearest_color_name(hex_color, flavor, ACCENT_NAMES) or "blue"


# =============================================
# プロファイル計算
# =============================================

def calculate_dominant_hue(colors: Iterable[AggregatedColor]) -> int:
    """
    頻度×彩度で重み付けした色相の円周平均。

    各色相を単位ベクトル (cos, sin) にして重みを掛けて合算し、atan2 で角度に戻す。
    350° と 10° の平均は 0° 付近になる（単純平均の 180° にはならない）。
    有効な色が無ければ 220°。
    """
    x = y = total_weight = 0.0
    for color in colors:
        h, s, _ = color.hsl
        weight = color.frequency * s
        radians = math.radians(h)
        x += math.cos(radians) * weight
        y += math.sin(radians) * weight
        total_weight += weight

    if total_weight == 0:
        return DEFAULT_DOMINANT_HUE

    degrees = math.degrees(math.atan2(y / total_weight, x / total_weight))
    return int(round(degrees % 360)) % 360


def calculate_saturation_level(colors: Iterable[AggregatedColor]) -> str:
    """頻度加重平均の彩度: ≥60 vibrant / ≥30 muted / それ以外 neutral"""
    weighted = total = 0.0
    for color in colors:
        weighted += color.hsl[1] * color.frequency
        total += color.frequency
    if total == 0:
        return "neutral"
    average = weighted / total
    if average >= 60:
        return "vibrant"
    if average >= 30:
        return "muted"
    return "neutral"


def extract_brand_colors(
    classifications: dict[str, SemanticClassification],
    extraction: ColorExtractionResult,
) -> list[str]:
    """ブランド系ロールの有彩色を 頻度×信頼度 で並べた上位3色"""
    candidates = []
    for hex_color, classification in classifications.items():
        if classification.role not in BRAND_ROLES:
            continue
        color = extraction.colors.get(hex_color)
        if color is None or color.hsl[1] < ACCENT_MIN_SATURATION:
            continue
        score = color.frequency * classification.confidence
        candidates.append((-score, -color.hsl[1], hex_color))
    candidates.sort()
    return [hex_color for _, _, hex_color in candidates[:MAX_BRAND_COLORS]]


# =============================================
# シグネチャ生成
# =============================================

def signature_from_extraction(
    extraction: ColorExtractionResult,
    domain: str,
    source_type: str = "url",
    generated_at: str | None = None,
) -> SiteSignature:
    """抽出済みの結果からシグネチャを組み立てる"""
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"Unknown source type: {source_type!r} (expected one of {', '.join(SOURCE_TYPES)})")

    classifications = classify_all_colors(extraction)
    saturated = get_saturated_colors(extraction, 20)

    dominant_hue = calculate_dominant_hue(saturated)
    saturation_level = calculate_saturation_level(saturated)
    brand_colors = extract_brand_colors(classifications, extraction)

    accent_distribution = {c.hex: c.frequency for c in saturated}

    semantic_roles = {
        role: classification.hex
        for role, classification in get_best_classifications(classifications).items()
    }

    selector_map = {hex_color: list(c.selectors) for hex_color, c in extraction.colors.items()}

    selector_classifications: dict[str, str] = {}
    for color in extraction.colors.values():
        for selector in color.selectors:
            if selector not in selector_classifications:
                selector_classifications[selector] = detect_element_type(selector)

    if brand_colors:
        suggested_accent = find_nearest_accent(brand_colors[0])
        logger.debug("Suggested accent %s from brand color %s", suggested_accent, brand_colors[0])
    else:
        suggested_accent = hue_to_accent(dominant_hue)
        logger.debug("Suggested accent %s from dominant hue %d", suggested_accent, dominant_hue)

    if classifications:
        overall_confidence = sum(c.confidence for c in classifications.values()) / len(classifications)
    else:
        overall_confidence = 0.5

    return SiteSignature(
        domain=domain,
        color_profile=ColorProfile(
            dominant_hue=dominant_hue,
            dominant_hue_name=get_hue_name(dominant_hue),
            saturation_level=saturation_level,
            luminance_mode=extraction.detected_mode,
            brand_colors=brand_colors,
            accent_distribution=accent_distribution,
            unique_color_count=len(extraction.colors),
        ),
        semantic_roles=semantic_roles,
        selector_map=selector_map,
        selector_classifications=selector_classifications,
        suggested_accent=suggested_accent,
        metadata=SignatureMetadata(
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
            source_type=source_type,
            overall_confidence=overall_confidence,
        ),
    )


def build_site_signature(
    css: str,
    domain: str,
    source_type: str = "url",
    html: str | None = None,
    generated_at: str | None = None,
) -> SiteSignature:
    """
    CSS（と任意のHTML）からサイトシグネチャを生成する。

    Args:
        css: 生のCSSテキスト
        domain: サイトのドメイン
        source_type: "url" / "directory" / "mhtml"
        html: 生のHTML（<style>・inline style を追加で解析）
        generated_at: 生成時刻（ISO 8601）。指定すれば出力は完全に決定的になる

    Returns:
        SiteSignature
    """
    extraction = extract_colors(css, html)
    return signature_from_extraction(extraction, domain, source_type, generated_at)


def summarize_signature(signature: SiteSignature) -> str:
    """人が読むためのシグネチャ要約"""
    profile = signature.color_profile
    return "\n".join([
        f"Domain: {signature.domain}",
        f"Color Mode: {profile.luminance_mode}",
        f"Dominant Hue: {profile.dominant_hue_name} ({profile.dominant_hue}°)",
        f"Saturation: {profile.saturation_level}",
        f"Brand Colors: {', '.join(profile.brand_colors) or 'none detected'}",
        f"Unique Colors: {profile.unique_color_count}",
        f"Suggested Accent: {signature.suggested_accent}",
        f"Confidence: {signature.metadata.overall_confidence * 100:.0f}%",
    ])


def compare_signatures(a: SiteSignature, b: SiteSignature) -> dict:
    """
    2サイトのシグネチャ差分（色相差は円周上の最短距離）。
    brand_overlap は a のブランド色のうち b と共有している割合（a にブランド色が無ければ 0）。
    """
    brands_a = set(a.color_profile.brand_colors)
    brands_b = set(b.color_profile.brand_colors)
    shared = brands_a & brands_b
    return {
        "hue_difference": hue_distance(a.color_profile.dominant_hue, b.color_profile.dominant_hue),
        "same_saturation_level": a.color_profile.saturation_level == b.color_profile.saturation_level,
        "same_mode": a.color_profile.luminance_mode == b.color_profile.luminance_mode,
        "same_suggested_accent": a.suggested_accent == b.suggested_accent,
        "shared_brand_colors": sorted(shared),
        "brand_overlap": len(shared) / len(brands_a) if brands_a else 0.0,
    }
