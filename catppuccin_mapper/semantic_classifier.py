"""
セマンティック分類モジュール
抽出した各色に意味的ロール（背景/テキスト/アクセント/状態色など）を割り当てる。

判定は優先度順のカスケードで、最初に一致した段で確定する:
  1. セレクタのキーワード一致
  2. 無彩色 × 輝度帯 × 用途（背景/テキスト）
  3. 高彩度アクセント（色相帯 + 用途で補正）
  4. ボーダー専用
  5. SVG fill/stroke
  6. 輝度のみのフォールバック
  7. unknown
各段は reasoning（判定理由）を必ず記録する。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from catppuccin_mapper.color_space import canonical_hex, hex_to_hsl
from catppuccin_mapper.models import (
    AggregatedColor,
    ColorExtractionResult,
    ColorUsage,
    SemanticClassification,
)

logger = logging.getLogger(__name__)

ROLES = (
    "background.primary", "background.secondary",
    "surface.card", "surface.overlay",
    "text.primary", "text.secondary", "text.muted",
    "accent.brand", "accent.link", "accent.interactive",
    "accent.secondary", "accent.tertiary",
    "semantic.success", "semantic.warning", "semantic.error", "semantic.info",
    "border.subtle", "border.default",
    "unknown",
)

ELEMENT_TYPES = ("button", "link", "card", "nav", "input", "text", "other")

# 段ごとの信頼度（手調整の定数）
CONFIDENCE = {
    "keyword": 0.9,
    "keyword_strong": 0.95,
    "neutral": 0.8,
    "accent_background": 0.75,
    "accent_link": 0.85,
    "accent_text": 0.7,
    "accent_other": 0.6,
    "border": 0.7,
    "fill_saturated": 0.6,
    "fill_neutral": 0.5,
    "luminance_fallback": 0.4,
    "unknown": 0.2,
}

# 無彩色とみなす彩度上限(%)
NEUTRAL_SATURATION = 10

# アクセント系ロール（ブランド・リンク・操作）に必要な彩度の下限(%)
ACCENT_MIN_SATURATION = 20

ACCENT_ROLES = ("accent.brand", "accent.link", "accent.interactive")


def _compile(*patterns: str) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# 単独の a 要素セレクタ（.a-b や header 内の a は除外）
_ANCHOR = r"(?<![\w-])a(?![\w-])"

LINK_SELECTOR_RE = re.compile(rf"{_ANCHOR}|link", re.IGNORECASE)

# (ロール, 信頼度キー, パターン)。上から順に評価
SEMANTIC_KEYWORDS: list[tuple[str, str, list[re.Pattern]]] = [
    ("semantic.success", "keyword", _compile("success", "valid", "ok", "check", "confirm", "complete")),
    ("semantic.warning", "keyword", _compile("warn", "caution", "attention", "notice")),
    ("semantic.error", "keyword", _compile("error", "danger", "fail", "invalid", "critical", "delete", "remove")),
    ("semantic.info", "keyword", _compile("info", "help", "tip", "hint", "note")),
    ("accent.brand", "keyword_strong", _compile("brand", "primary", "accent", "main", "hero", "cta")),
    ("accent.link", "keyword_strong", _compile("link", "href", _ANCHOR)),
    ("accent.interactive", "keyword", _compile("button", "btn", "action", "interactive")),
    ("background.primary", "keyword", _compile(r"bg-?main", "body", "page", "container")),
    ("background.secondary", "keyword", _compile(r"bg-?alt", r"bg-?secondary")),
    ("surface.card", "keyword", _compile("card", "panel", "modal")),
    ("surface.overlay", "keyword", _compile("overlay", "backdrop", "scrim")),
    ("text.primary", "keyword", _compile(r"text-?primary", "content", "body")),
    ("text.secondary", "keyword", _compile(r"text-?secondary", "subtitle", "caption")),
    ("text.muted", "keyword", _compile("muted", "disabled", "placeholder", "hint")),
    ("border.subtle", "keyword", _compile(r"border-?subtle", "divider", "separator")),
    ("border.default", "keyword", _compile("border", "outline")),
]

SELECTOR_PATTERNS: dict[str, list[re.Pattern]] = {
    "button": _compile(
        r"\bbutton\b", r"\bbtn\b", r"\[type=[\"']?submit[\"']?\]",
        r"\[type=[\"']?button[\"']?\]", r"\.button", r"\.btn-",
    ),
    "link": _compile(_ANCHOR, r"\.link", r"\[href\]"),
    "card": _compile(r"\.card", r"\.panel", r"\.box", r"\.tile", r"\.modal", r"\.dialog"),
    "nav": _compile(
        r"\bnav\b", r"\.nav", r"\.menu", r"\.sidebar", r"\.header", r"\.footer", r"\.toolbar",
    ),
    "input": _compile(
        r"\binput\b", r"\btextarea\b", r"\bselect\b", r"\.form-control", r"\.input",
    ),
    "text": _compile(r"\bh[1-6]\b", r"\bp\b", r"text", r"content", r"heading"),
}


def detect_element_type(selector: str) -> str:
    """セレクタから要素種別（button/link/card/nav/input/text/other）を推定"""
    for element_type, patterns in SELECTOR_PATTERNS.items():
        if any(p.search(selector) for p in patterns):
            return element_type
    return "other"


# =============================================
# 分類の根拠（AggregatedColor / ColorUsage 共通）
# =============================================

@dataclass(frozen=True)
class ColorEvidence:
    """分類器が参照する特徴量。入力の型に依存しない"""

    hex: str
    hsl: tuple[int, int, int]
    frequency: float
    keyword_text: str
    has_bg: bool
    has_text: bool
    has_border: bool
    has_fill: bool
    link_selector: bool

    @classmethod
    def from_aggregated(cls, color: AggregatedColor) -> ColorEvidence:
        return cls(
            hex=color.hex,
            hsl=color.hsl,
            frequency=color.frequency,
            keyword_text=" ".join(color.selectors),
            has_bg=color.usage_count("background-color") > 0,
            has_text=color.usage_count("color") > 0,
            has_border=color.usage_count("border-color") > 0,
            has_fill=color.usage_count("fill") > 0 or color.usage_count("stroke") > 0,
            link_selector=any(LINK_SELECTOR_RE.search(s) for s in color.selectors),
        )

    @classmethod
    def from_usage(cls, usage: ColorUsage) -> ColorEvidence | None:
        hex_color = canonical_hex(usage.hex)
        if hex_color is None:
            return None
        contexts = set(usage.contexts)
        return cls(
            hex=hex_color,
            hsl=hex_to_hsl(hex_color),
            frequency=usage.frequency,
            keyword_text=" ".join(usage.semantic_hints),
            has_bg="background" in contexts,
            has_text="text" in contexts or "link" in contexts,
            has_border="border" in contexts,
            has_fill=False,
            link_selector="link" in contexts,
        )


def _find_keyword(text: str, saturation: int = 100) -> tuple[str, str, str] | None:
    """
    (ロール, 信頼度キー, 一致した文字列) を返す。
    彩度が ACCENT_MIN_SATURATION 未満の色はアクセント系キーワードを飛ばす（灰色のリンク・ボタン文字色など）。
    """
    if not text:
        return None
    for role, confidence_key, patterns in SEMANTIC_KEYWORDS:
        if role in ACCENT_ROLES and saturation < ACCENT_MIN_SATURATION:
            continue
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return role, confidence_key, match.group(0)
    return None


def classify_by_luminance(hsl: tuple[int, int, int], mode: str) -> str | None:
    """無彩色のみ、モードに応じた輝度帯でロールを返す"""
    _, s, l = hsl
    if s >= NEUTRAL_SATURATION:
        return None

    if mode == "dark":
        if l <= 15:
            return "background.primary"
        if l <= 30:
            return "background.secondary"
        if l <= 50:
            return "surface.card"
        if l >= 90:
            return "text.primary"
        if l >= 70:
            return "text.secondary"
        if l >= 50:
            return "text.muted"
    else:
        if l >= 95:
            return "background.primary"
        if l >= 85:
            return "background.secondary"
        if l >= 70:
            return "surface.card"
        if l <= 20:
            return "text.primary"
        if l <= 40:
            return "text.secondary"
        if l <= 60:
            return "text.muted"
    return None


def classify_accent_hue(hsl: tuple[int, int, int]) -> str | None:
    """高彩度色（S≥30, 20≤L≤90）を色相帯で分類"""
    h, s, l = hsl
    if s < 30 or l < 20 or l > 90:
        return None
    if h >= 340 or h <= 20:
        return "semantic.error"
    if h <= 60:
        return "semantic.warning"
    if 80 < h <= 160:
        return "semantic.success"
    if 180 < h <= 260:
        return "semantic.info"
    if 260 < h < 340:
        return "accent.brand"
    return "accent.interactive"


def classify_evidence(evidence: ColorEvidence, mode: str) -> SemanticClassification:
    reasoning: list[str] = []

    def result(role: str, confidence_key: str) -> SemanticClassification:
        return SemanticClassification(
            hex=evidence.hex,
            role=role,
            confidence=CONFIDENCE[confidence_key],
            reasoning=tuple(reasoning),
        )

    h, s, l = evidence.hsl

    # 1. キーワード
    keyword = _find_keyword(evidence.keyword_text, s)
    if keyword:
        role, confidence_key, matched = keyword
        reasoning.append(f"Semantic keyword '{matched}' detected in selectors")
        return result(role, confidence_key)

    # 2. 無彩色 × 輝度帯 × 用途
    luminance_role = classify_by_luminance(evidence.hsl, mode)
    if luminance_role:
        if evidence.has_bg and luminance_role.startswith("background"):
            reasoning.append(f"Neutral color used as background (L={l}%, {mode} mode)")
            return result(luminance_role, "neutral")
        if evidence.has_text and luminance_role.startswith("text"):
            reasoning.append(f"Neutral color used as text (L={l}%, {mode} mode)")
            return result(luminance_role, "neutral")

    # 3. 高彩度アクセント
    accent_role = classify_accent_hue(evidence.hsl)
    if accent_role:
        reasoning.append(f"Saturated color (S={s}%, H={h}°) in {accent_role} hue band")
        if evidence.has_bg and evidence.frequency > 0.1:
            reasoning.append(f"Background usage at frequency {evidence.frequency:.2f} suggests brand color")
            return result("accent.brand", "accent_background")
        if evidence.has_text:
            if evidence.link_selector:
                reasoning.append("Text usage on link selector")
                return result("accent.link", "accent_link")
            reasoning.append("Text-only usage")
            return result(accent_role, "accent_text")
        return result(accent_role, "accent_other")

    # 4. ボーダー専用
    if evidence.has_border and not evidence.has_bg and not evidence.has_text:
        reasoning.append(f"Used only for borders (S={s}%)")
        return result("border.subtle" if s < 15 else "border.default", "border")

    # 5. SVG fill/stroke
    if evidence.has_fill:
        reasoning.append(f"Used as SVG fill/stroke (S={s}%)")
        if s > 30:
            return result("accent.interactive", "fill_saturated")
        return result("text.secondary", "fill_neutral")

    # 6. 輝度のみ
    if luminance_role:
        reasoning.append(f"Fallback based on luminance (L={l}%)")
        return result(luminance_role, "luminance_fallback")

    # 7. 不明
    reasoning.append(f"Could not determine role (H={h}°, S={s}%, L={l}%)")
    return result("unknown", "unknown")


# =============================================
# 公開API
# =============================================

def classify_color(color: AggregatedColor, mode: str) -> SemanticClassification:
    """抽出結果の1色を分類"""
    return classify_evidence(ColorEvidence.from_aggregated(color), mode)


def classify_usage(usage: ColorUsage, mode: str) -> SemanticClassification | None:
    """マッピング入力の1色を分類。hexが不正なら None"""
    evidence = ColorEvidence.from_usage(usage)
    if evidence is None:
        logger.debug("Skipping unparseable source color: %r", usage.hex)
        return None
    return classify_evidence(evidence, mode)


def classify_all_colors(result: ColorExtractionResult) -> dict[str, SemanticClassification]:
    return {
        hex_color: classify_color(color, result.detected_mode)
        for hex_color, color in result.colors.items()
    }


def classify_all_usages(
    source_colors: dict[str, ColorUsage],
    mode: str,
) -> dict[str, SemanticClassification]:
    """ColorUsage群を分類。キーは正規化済みhex、不正な色は除外"""
    classifications: dict[str, SemanticClassification] = {}
    for usage in source_colors.values():
        classification = classify_usage(usage, mode)
        if classification is not None:
            classifications[classification.hex] = classification
    return classifications


def group_by_role(
    classifications: dict[str, SemanticClassification],
) -> dict[str, list[SemanticClassification]]:
    groups: dict[str, list[SemanticClassification]] = {}
    for classification in classifications.values():
        groups.setdefault(classification.role, []).append(classification)
    return groups


def get_best_classifications(
    classifications: dict[str, SemanticClassification],
) -> dict[str, SemanticClassification]:
    """ロールごとに最も信頼度の高い分類（同点は先勝ち）"""
    best: dict[str, SemanticClassification] = {}
    for classification in classifications.values():
        existing = best.get(classification.role)
        if existing is None or classification.confidence > existing.confidence:
            best[classification.role] = classification
    return best
