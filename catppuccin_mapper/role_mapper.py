"""
ロールマッピング（中核オーケストレーター）
ソースカラー群を分類し、主/副アクセントを決め、Catppuccin パレット上の
ロール → 色 テーブル（RoleMap）と派生スケール（hover/active/focus/selection）を作る。
最後にコントラスト検証・修復を行い、満たせない場合は警告と contrast_validated=False で返す
（例外は投げない）。
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from catppuccin_mapper.accent_schemes import AccentSchemeEngine, compute_accent_set_for
from catppuccin_mapper.color_space import blend_hex, canonical_hex, contrast_ratio, hex_to_hsl, hex_to_hsl_float, hue_distance
from catppuccin_mapper.models import (
    ColorUsage,
    MappingConfig,
    MappingMetadata,
    MappingOutput,
    SemanticClassification,
)
from catppuccin_mapper.palettes import (
    ACCENT_NAMES,
    CONTRAST_MODES,
    NEUTRAL_NAMES,
    ColorValue,
    flavor_mode,
    get_color,
    get_color_value,
    get_palette,
    is_light_flavor,
    make_color_value,
    nearest_color_name,
    validate_contrast_mode,
)
from catppuccin_mapper.semantic_classifier import ACCENT_MIN_SATURATION, classify_all_usages

logger = logging.getLogger(__name__)

SEMANTIC_BASES = ("primary", "secondary", "success", "warning", "danger", "info")

DEFAULT_SEMANTIC_ACCENTS = {
    "success": "green",
    "warning": "yellow",
    "danger": "red",
    "info": "sky",
}

# どの出力にも必ず値が入るロールと、その既定トークン
CRITICAL_ROLES = {
    "background.primary": "base",
    "background.secondary": "mantle",
    "background.tertiary": "crust",
    "surface.0": "surface0",
    "surface.1": "surface1",
    "surface.2": "surface2",
    "text.primary": "text",
    "text.secondary": "subtext1",
    "text.muted": "subtext0",
    "text.disabled": "overlay2",
    "border.default": "overlay1",
}

PRIMARY_FALLBACK_ORDER = ("mauve", "blue", "sapphire", "lavender", "teal")

# 主アクセント検出の候補になる分類ロール
PRIMARY_CANDIDATE_ROLES = ("accent.link", "accent.brand", "accent.interactive")

# コントラスト修復で辿るテキストトークン（明→暗の順ではなく本文→控えめの順）
TEXT_LADDER = ("text", "subtext1", "subtext0", "overlay2", "overlay1")

SECONDARY_FALLBACK = {
    "mauve": "sapphire",
    "blue": "lavender",
    "sapphire": "teal",
    "lavender": "mauve",
    "sky": "blue",
    "teal": "green",
    "green": "yellow",
    "yellow": "peach",
    "peach": "red",
    "red": "pink",
    "maroon": "flamingo",
    "pink": "mauve",
    "flamingo": "rosewater",
    "rosewater": "pink",
}

# 分類結果で上書きする際の候補トークン（階層を崩さないよう層ごとに絞る）
BACKGROUND_TOKENS = ("base", "mantle", "crust")
SURFACE_TOKENS = ("surface0", "surface1", "surface2")

# 上書きに必要な最低頻度
BACKGROUND_OVERRIDE_FREQUENCY = 0.5
SURFACE_OVERRIDE_FREQUENCY = 0.3
LINK_OVERRIDE_FREQUENCY = 0.2
OVERRIDE_CONFIDENCE = 0.5

HOVER_ALPHA = 0.2
ACTIVE_ALPHA = 0.3
FOCUS_ALPHA = 0.5
SELECTION_ALPHA = 0.3


# =============================================
# ヘルパー
# =============================================

def blend(hex_a: str, hex_b: str, alpha: float) -> ColorValue:
    """
    アルファ合成（Porter-Duff over）: C = α·B + (1-α)·A

    Args:
        hex_a: 下地の色
        hex_b: 重ねる色
        alpha: 重ねる色の不透明度 0-1
    """
    blended = blend_hex(hex_a, hex_b, alpha)
    return make_color_value(blended or hex_a)


def passes_contrast(fg_hex: str, bg_hex: str, mode: str = "normal") -> bool:
    ratio = contrast_ratio(fg_hex, bg_hex)
    if ratio is None:
        return False
    return ratio >= CONTRAST_MODES[mode]


def nearest_neutral_token(hex_color: str, flavor: str, candidates: tuple[str, ...] | None = None) -> str:
    """LAB色差で最も近いニュートラル（背景・サーフェス・テキスト系）トークン"""
    return nearest_color_name(hex_color, flavor, candidates or NEUTRAL_NAMES) or "base"


def nearest_accent_token(hex_color: str, flavor: str) -> str:
    return nearest_color_name(hex_color, flavor, ACCENT_NAMES) or PRIMARY_FALLBACK_ORDER[0]


def choose_secondary_accent(primary: str, flavor: str) -> str:
    """
    主アクセントと色相が 30-60°（45°が最良）離れたアクセントを選ぶ。

    スコア: 30-60° → 100-|d-45|、60-120° → 50-(d-60)/2、30°未満 → d、それ以上 → 0。
    どれも 0 以下なら固定の対応表にフォールバックするので、必ず値を返す。
    """
    palette = get_palette(flavor)
    primary_hue = hex_to_hsl_float(palette[primary])[0]

    scored = []
    for accent in ACCENT_NAMES:
        if accent == primary:
            continue
        diff = hue_distance(primary_hue, hex_to_hsl_float(palette[accent])[0])
        if 30 <= diff <= 60:
            score = 100 - abs(diff - 45)
        elif 60 < diff <= 120:
            score = 50 - (diff - 60) / 2
        elif diff < 30:
            score = diff
        else:
            score = 0
        scored.append((score, accent))

    # 同点は ACCENT_NAMES の順（sorted は安定）
    scored.sort(key=lambda x: -x[0])
    if scored and scored[0][0] > 0:
        return scored[0][1]
    return SECONDARY_FALLBACK.get(primary, "sapphire")


def text_on_accent(accent_hex: str, flavor: str) -> ColorValue:
    """
    アクセント背景上の文字色。
    ダーク系は crust/base、ライト系は text/base のうちコントラストが高い方（同値なら前者）。
    """
    candidates = ("text", "base") if is_light_flavor(flavor) else ("crust", "base")
    best = max(candidates, key=lambda name: contrast_ratio(get_color(flavor, name), accent_hex) or 0.0)
    return get_color_value(flavor, best)


def try_fix_contrast(text_token: str, bg_hex: str, flavor: str, mode: str = "normal") -> str | None:
    """
    TEXT_LADDER を text_token の次から辿り、最初に基準を満たすトークンを返す。
    見つからなければ None。
    """
    if text_token not in TEXT_LADDER:
        return None
    start = TEXT_LADDER.index(text_token)
    for candidate in TEXT_LADDER[start + 1:]:
        if passes_contrast(get_color(flavor, candidate), bg_hex, mode):
            return candidate
    return None


def best_ladder_token(bg_hex: str, flavor: str) -> str:
    """修復できないときの次善策: ラダー中で最もコントラストが高いトークン"""
    return max(TEXT_LADDER, key=lambda name: contrast_ratio(get_color(flavor, name), bg_hex) or 0.0)


def ensure_critical_roles(role_map: dict[str, ColorValue], flavor: str) -> dict[str, ColorValue]:
    """必須ロールの欠けをフレーバー既定値で埋める"""
    for role, token in CRITICAL_ROLES.items():
        if role_map.get(role) is None:
            role_map[role] = get_color_value(flavor, token)
    return role_map


def _as_config(config: MappingConfig | dict | None) -> MappingConfig:
    if config is None:
        return MappingConfig()
    if isinstance(config, MappingConfig):
        return config
    return MappingConfig.from_dict(config)


# =============================================
# 公開API
# =============================================

def get_default_role_map(flavor: str, config: MappingConfig | dict | None = None) -> dict[str, ColorValue]:
    """
    フレーバー既定のロールマップ。
    背景・サーフェス・ボーダー・テキストはフレーバー固定、アクセント系は主/副アクセントから作る。
    """
    config = _as_config(config)
    get_palette(flavor)
    primary = config.primary_accent or PRIMARY_FALLBACK_ORDER[0]
    secondary = config.secondary_accent or choose_secondary_accent(primary, flavor)
    interactive = "sky" if is_light_flavor(flavor) else "sapphire"

    def value(name: str) -> ColorValue:
        return get_color_value(flavor, name)

    role_map = {
        # 背景
        "background.primary": value("base"),
        "background.secondary": value("mantle"),
        "background.tertiary": value("crust"),
        # サーフェス
        "surface.0": value("surface0"),
        "surface.1": value("surface1"),
        "surface.2": value("surface2"),
        # ボーダー
        "border.subtle": value("overlay0"),
        "border.default": value("overlay1"),
        "border.strong": value("overlay2"),
        # テキスト
        "text.primary": value("text"),
        "text.secondary": value("subtext1"),
        "text.muted": value("subtext0"),
        "text.disabled": value("overlay2"),
        # インタラクティブ
        "accent.interactive": value(interactive),
        "accent.selection": value("sky"),
        "accent.focus": value(primary),
    }

    accents = {"primary": primary, "secondary": secondary}
    for key, default in DEFAULT_SEMANTIC_ACCENTS.items():
        accents[key] = config.semantic_overrides.get(key, default)

    for semantic in SEMANTIC_BASES:
        base = value(accents[semantic])
        role_map[f"{semantic}.base"] = base
        role_map[f"{semantic}.text"] = text_on_accent(base.hex, flavor)

    return role_map


def detect_primary_accent(
    classifications: dict[str, SemanticClassification],
    usages: Mapping[str, ColorUsage],
    flavor: str,
) -> str:
    """
    リンク/ブランド/操作系に分類された色のうち最頻出のものに最も近いアクセント。
    彩度が ACCENT_MIN_SATURATION 未満の色（白・灰色のボタン文字など）は候補にしない。
    候補が無ければ固定順（mauve → blue → sapphire → lavender → teal）の先頭。
    """
    candidates = []
    for hex_color, classification in classifications.items():
        if classification.role not in PRIMARY_CANDIDATE_ROLES:
            continue
        usage = usages.get(hex_color)
        if usage is None:
            continue
        if hex_to_hsl(hex_color)[1] < ACCENT_MIN_SATURATION:
            logger.debug("Skipping achromatic primary candidate %s", hex_color)
            continue
        candidates.append((-usage.frequency, -classification.confidence, hex_color))

    if candidates:
        candidates.sort()
        return nearest_accent_token(candidates[0][2], flavor)
    return PRIMARY_FALLBACK_ORDER[0]


def _index_usages(source_colors: Mapping[str, ColorUsage] | Iterable[ColorUsage]) -> dict[str, ColorUsage]:
    """正規化hex → ColorUsage。不正なhexは除外"""
    values = source_colors.values() if isinstance(source_colors, Mapping) else source_colors
    usages: dict[str, ColorUsage] = {}
    for usage in values:
        hex_color = canonical_hex(usage.hex)
        if hex_color is not None:
            usages[hex_color] = usage
    return usages


def _apply_overrides(
    role_map: dict[str, ColorValue],
    classifications: dict[str, SemanticClassification],
    usages: dict[str, ColorUsage],
    flavor: str,
) -> None:
    """信頼度・頻度の高い分類結果で既定ロールを上書きする"""
    for hex_color, classification in classifications.items():
        usage = usages.get(hex_color)
        if usage is None:
            continue

        if classification.confidence >= OVERRIDE_CONFIDENCE:
            if classification.role == "background.primary" and usage.frequency >= BACKGROUND_OVERRIDE_FREQUENCY:
                token = nearest_neutral_token(hex_color, flavor, BACKGROUND_TOKENS)
                role_map["background.primary"] = get_color_value(flavor, token)
                logger.debug("background.primary ← %s (source %s)", token, hex_color)
            elif classification.role == "surface.card" and usage.frequency >= SURFACE_OVERRIDE_FREQUENCY:
                token = nearest_neutral_token(hex_color, flavor, SURFACE_TOKENS)
                role_map["surface.0"] = get_color_value(flavor, token)
                logger.debug("surface.0 ← %s (source %s)", token, hex_color)

        if classification.role == "accent.link" and usage.frequency >= LINK_OVERRIDE_FREQUENCY:
            accent = nearest_accent_token(hex_color, flavor)
            role_map["accent.interactive"] = get_color_value(flavor, accent)
            logger.debug("accent.interactive ← %s (source %s)", accent, hex_color)


def build_derived_scales(role_map: dict[str, ColorValue], flavor: str) -> dict[str, ColorValue]:
    """各セマンティックベースの hover/active と focus.ring / selection.bg"""
    overlay1 = get_color(flavor, "overlay1")
    overlay2 = get_color(flavor, "overlay2")
    derived: dict[str, ColorValue] = {}

    for semantic in SEMANTIC_BASES:
        base = role_map.get(f"{semantic}.base")
        if base is None:
            continue
        derived[f"{semantic}.hover"] = blend(base.hex, overlay1, HOVER_ALPHA)
        derived[f"{semantic}.active"] = blend(base.hex, overlay2, ACTIVE_ALPHA)

    interactive = role_map.get("accent.interactive") or get_color_value(flavor, "sapphire")
    selection = role_map.get("accent.selection") or get_color_value(flavor, "sky")
    derived["focus.ring"] = blend(interactive.hex, overlay1, FOCUS_ALPHA)
    derived["selection.bg"] = blend(selection.hex, get_color(flavor, "base"), SELECTION_ALPHA)
    return derived


def validate_and_repair_contrast(
    role_map: dict[str, ColorValue],
    flavor: str,
    mode: str,
    warnings: list[str],
) -> bool:
    """
    text.primary / 各セマンティックの base-text ペアを検証し、必要なら差し替える。

    Returns:
        すべて基準を満たせば True
    """
    threshold = CONTRAST_MODES[mode]
    validated = True

    bg_hex = role_map["background.primary"].hex
    text = role_map["text.primary"]
    if not passes_contrast(text.hex, bg_hex, mode):
        fixed = try_fix_contrast("text", bg_hex, flavor, mode)
        if fixed:
            role_map["text.primary"] = get_color_value(flavor, fixed)
            warnings.append(f"Adjusted text.primary to {fixed} for contrast")
        else:
            best = best_ladder_token(bg_hex, flavor)
            role_map["text.primary"] = get_color_value(flavor, best)
            ratio = contrast_ratio(get_color(flavor, best), bg_hex)
            validated = False
            warnings.append(
                f"Failed to meet {mode} contrast for text.primary: "
                f"best available {best} is {ratio:.2f}:1 on {bg_hex} (needs {threshold}:1)"
            )
            logger.warning("text.primary contrast unsatisfiable for %s/%s", flavor, mode)

    for semantic in SEMANTIC_BASES:
        base = role_map.get(f"{semantic}.base")
        text = role_map.get(f"{semantic}.text")
        if base is None or text is None or passes_contrast(text.hex, base.hex, mode):
            continue

        better = text_on_accent(base.hex, flavor)
        role_map[f"{semantic}.text"] = better
        if passes_contrast(better.hex, base.hex, mode):
            warnings.append(f"Adjusted {semantic}.text to {better.hex} for contrast")
            continue

        ratio = contrast_ratio(better.hex, base.hex)
        validated = False
        warnings.append(
            f"Low contrast for {semantic}: {better.hex} on {base.hex} "
            f"is {ratio:.2f}:1 (needs {threshold}:1)"
        )
        logger.warning("Low contrast for %s in %s/%s (%.2f:1)", semantic, flavor, mode, ratio)

    return validated


def map_to_catppuccin_theme(
    source_colors: Mapping[str, ColorUsage] | Iterable[ColorUsage],
    flavor: str,
    config: MappingConfig | dict | None = None,
    accent_engine: AccentSchemeEngine | None = None,
) -> MappingOutput:
    """
    ソースカラーを Catppuccin のロールにマッピングする。

    入力が同じなら出力も常に同じ。色が1つも無くても完全なロールマップを返す。
    コントラストを満たせない場合も例外は投げず、warnings と contrast_validated=False で知らせる。

    Args:
        source_colors: hex → ColorUsage（または ColorUsage の列）
        flavor: latte / frappe / macchiato / mocha
        config: MappingConfig または同じキーを持つ dict
        accent_engine: 事前計算済みのアクセントテーブル（省略時はその場で計算）

    Returns:
        MappingOutput
    """
    get_palette(flavor)
    config = _as_config(config)
    mode = validate_contrast_mode(config.contrast_mode)
    warnings: list[str] = []

    # 1. 分類
    usages = _index_usages(source_colors)
    classifications = classify_all_usages(usages, flavor_mode(flavor))

    # 2-3. 主/副アクセント
    primary = config.primary_accent or detect_primary_accent(classifications, usages, flavor)
    secondary = config.secondary_accent or choose_secondary_accent(primary, flavor)
    logger.debug("Accents for %s: primary=%s secondary=%s", flavor, primary, secondary)

    # 4. 既定ロールマップ
    role_map = get_default_role_map(
        flavor,
        MappingConfig(
            primary_accent=primary,
            secondary_accent=secondary,
            semantic_overrides=dict(config.semantic_overrides),
            contrast_mode=mode,
        ),
    )

    # 5. 分類結果による上書き
    _apply_overrides(role_map, classifications, usages, flavor)

    # 6. 派生スケール
    derived_scales = build_derived_scales(role_map, flavor)

    # 7. コントラスト検証・修復
    contrast_validated = validate_and_repair_contrast(role_map, flavor, mode, warnings)
    ensure_critical_roles(role_map, flavor)

    if accent_engine is not None:
        bi_accents = list(accent_engine.bi_accents(flavor, primary))
    else:
        bi_accents = list(compute_accent_set_for(flavor, primary, include_co=False).bi_accents)

    return MappingOutput(
        role_map=role_map,
        derived_scales=derived_scales,
        metadata=MappingMetadata(
            flavor=flavor,
            primary_accent=primary,
            secondary_accent=secondary,
            contrast_validated=contrast_validated,
            warnings=warnings,
            bi_accents=bi_accents,
        ),
    )
