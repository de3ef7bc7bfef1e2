"""
CSSテキストからカラーを抽出・集計するモジュール
tinycss2 でスタイルシートを1回だけ走査し、@media 等の入れ子ルールも辿る。
<style>タグ・inline style属性（HTML指定時）も収集対象。
出現頻度・プロパティ別の使用回数・セレクタを集計し、背景色からライト/ダークを推定する。
"""

from __future__ import annotations

import logging
import re

import tinycss2
from bs4 import BeautifulSoup

from catppuccin_mapper.color_space import (
    hex_to_hsl,
    normalize_to_hex,
    relative_luminance,
    token_to_hex,
)
from catppuccin_mapper.models import (
    AggregatedColor,
    ColorExtractionResult,
    ColorOccurrence,
    ColorUsage,
)
from catppuccin_mapper.semantic_classifier import detect_element_type

__all__ = [
    "COLOR_PROPERTIES",
    "build_source_colors",
    "collect_css_from_html",
    "extract_colors",
    "extract_css_variables",
    "get_colors_by_property",
    "get_saturated_colors",
    "get_top_colors",
    "normalize_to_hex",
    "resolve_value",
    "resolve_variable",
]

logger = logging.getLogger(__name__)

# 色を持つプロパティ（部分一致で判定: border-top-color 等も対象）
COLOR_PROPERTIES = (
    "color",
    "background-color",
    "background",
    "border-color",
    "border-top-color",
    "border-right-color",
    "border-bottom-color",
    "border-left-color",
    "border",
    "outline-color",
    "outline",
    "box-shadow",
    "text-shadow",
    "fill",
    "stroke",
    "stop-color",
    "caret-color",
    "accent-color",
    "text-decoration-color",
)

HINT_SPLIT_RE = re.compile(r"[^a-z0-9]+")

# 中のルールを走査する @ルール（@font-face 等の宣言ブロックは対象外）
NESTED_AT_RULES = ("media", "supports", "layer", "container", "document")

# inline style属性を集計するときのセレクタ名
INLINE_SELECTOR = "[style]"

# var() の入れ子解決の上限
MAX_VAR_DEPTH = 8


# =============================================
# ソース収集
# =============================================

def collect_css_from_html(html: str) -> list[str]:
    """HTML内の <style> タグと inline style属性をCSSテキストとして収集"""
    soup = BeautifulSoup(html, "html.parser")
    css_texts = []

    # <style>タグ
    for style_tag in soup.find_all("style"):
        if style_tag.string:
            css_texts.append(style_tag.string)

    # inline style属性
    for tag in soup.find_all(style=True):
        css_texts.append(f"{INLINE_SELECTOR} {{ {tag['style']} }}")

    return css_texts


def iter_rules(css: str):
    """
    (selector, 宣言リスト) を出現順に返す。

    スタイルシートは tinycss2 で1回だけトークン化する。
    @media / @supports 等は中のルールを再帰的に辿り、それ以外の @ルールは飛ばす。
    閉じていないブロックや壊れたルールは tinycss2 が ParseError として返すので読み捨てる。
    """
    rules = tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True)
    yield from _walk_rules(rules)


def _walk_rules(rules):
    for rule in rules:
        if rule.type == "qualified-rule":
            selector = " ".join(tinycss2.serialize(rule.prelude).split())
            if not selector:
                continue
            decls = tinycss2.parse_declaration_list(
                rule.content, skip_comments=True, skip_whitespace=True
            )
            yield selector, [d for d in decls if d.type == "declaration"]
        elif rule.type == "at-rule" and rule.content is not None:
            if rule.lower_at_keyword not in NESTED_AT_RULES:
                continue
            nested = tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True)
            yield from _walk_rules(nested)
        elif rule.type == "error":
            logger.debug("Skipping unparsable CSS: %s", rule.message)


def _collect_variables(rules) -> dict[str, str]:
    variables: dict[str, str] = {}
    for _, decls in rules:
        for decl in decls:
            if decl.name.startswith("--"):
                value = tinycss2.serialize(decl.value).strip()
                variables[decl.name] = normalize_to_hex(value) or value
    return variables


def extract_css_variables(css: str) -> dict[str, str]:
    """
    カスタムプロパティ宣言を収集する。

    Returns:
        {"--name": "#rrggbb" または 正規化できなかった生の値}
        同名の宣言は後勝ち。
    """
    return _collect_variables(iter_rules(css))


def resolve_variable(name: str, variables: dict[str, str], depth: int = 0) -> str | None:
    """var(--x) の参照先をhexまで辿る。循環・未定義は None"""
    if depth > MAX_VAR_DEPTH:
        return None
    value = variables.get(name)
    if value is None:
        return None
    if value.startswith("#"):
        return value
    return resolve_value(value, variables, depth + 1)


def resolve_value(value: str, variables: dict[str, str], depth: int = 0) -> str | None:
    """宣言値に含まれる最初の色（var() は variables で解決）。無ければ None"""
    tokens = tinycss2.parse_component_value_list(value, skip_comments=True)
    for hex_color in _colors_from_tokens(tokens, variables, depth):
        return hex_color
    return None


# =============================================
# 宣言の解析
# =============================================

def is_color_property(prop: str) -> bool:
    if prop.startswith("--"):
        return False
    return any(p in prop for p in COLOR_PROPERTIES)


def property_type(prop: str) -> str:
    """プロパティ名を集計用の種別にまとめる"""
    if prop == "color":
        return "color"
    if "background" in prop:
        return "background-color"
    if "border" in prop:
        return "border-color"
    if prop == "fill":
        return "fill"
    if prop == "stroke":
        return "stroke"
    if "shadow" in prop:
        return "box-shadow"
    if "outline" in prop:
        return "outline"
    return "other"


def _var_name(token) -> str | None:
    for arg in token.arguments:
        if arg.type == "ident" and arg.value.startswith("--"):
            return arg.value
    return None


def _var_fallback(token) -> list:
    """var(--x, fallback) のフォールバック部分"""
    for i, arg in enumerate(token.arguments):
        if arg.type == "literal" and arg.value == ",":
            return token.arguments[i + 1:]
    return []


def _colors_from_tokens(tokens, variables: dict[str, str], depth: int = 0):
    """値トークン列から色（hex）を順に取り出す。不正なリテラルは黙って飛ばす"""
    for token in tokens:
        if token.type == "hash":
            hex_color = token_to_hex(token)
            if hex_color:
                yield hex_color
            else:
                logger.debug("Skipping malformed hex literal: #%s", token.value)
        elif token.type == "function":
            if token.lower_name == "var":
                name = _var_name(token)
                resolved = resolve_variable(name, variables, depth) if name else None
                if resolved:
                    yield resolved
                else:
                    yield from _colors_from_tokens(_var_fallback(token), variables, depth + 1)
                continue
            hex_color = token_to_hex(token)
            if hex_color:
                yield hex_color
            elif token.lower_name in ("rgb", "rgba", "hsl", "hsla"):
                logger.debug("Skipping malformed color function: %s()", token.lower_name)
            else:
                # linear-gradient() 等は引数の中を探す
                yield from _colors_from_tokens(token.arguments, variables, depth)


def parse_rule(selector: str, declarations: list, variables: dict[str, str]) -> list[ColorOccurrence]:
    """1ルール分の宣言（tinycss2 の Declaration）から色の出現を取り出す"""
    occurrences = []
    for decl in declarations:
        prop = decl.lower_name
        if not is_color_property(prop):
            continue
        prop_type = property_type(prop)
        for hex_color in _colors_from_tokens(decl.value, variables):
            occurrences.append(
                ColorOccurrence(hex=hex_color, property=prop, prop_type=prop_type, selector=selector)
            )
    return occurrences


# =============================================
# 集計
# =============================================

def _aggregate(
    occurrences: list[ColorOccurrence],
    variables: dict[str, str],
) -> dict[str, AggregatedColor]:
    colors: dict[str, AggregatedColor] = {}
    for occ in occurrences:
        color = colors.get(occ.hex)
        if color is None:
            color = AggregatedColor(
                hex=occ.hex,
                total_count=0,
                frequency=0.0,
                property_distribution={},
                selectors=[],
                variable_names=[name for name, value in variables.items() if value == occ.hex],
                hsl=hex_to_hsl(occ.hex),
            )
            colors[occ.hex] = color
        color.total_count += 1
        color.property_distribution[occ.prop_type] = color.property_distribution.get(occ.prop_type, 0) + 1
        if occ.selector not in color.selectors:
            color.selectors.append(occ.selector)

    total = len(occurrences)
    for color in colors.values():
        color.frequency = color.total_count / total if total else 0.0
    return colors


def detect_mode(colors: dict[str, AggregatedColor], total: int) -> str:
    """
    背景用途の頻度が最も高い色の輝度でライト/ダークを判定する。
    背景色が1つも無ければ dark。
    """
    mode = "dark"
    max_bg_frequency = 0.0
    for color in colors.values():
        bg_frequency = color.usage_count("background-color") / (total or 1)
        if bg_frequency > max_bg_frequency:
            max_bg_frequency = bg_frequency
            mode = "light" if relative_luminance(color.hex) > 0.5 else "dark"
    return mode


def extract_colors(css: str, html: str | None = None) -> ColorExtractionResult:
    """
    CSS（と任意のHTML）から全カラーを抽出・集計する。

    Args:
        css: 生のCSSテキスト
        html: 生のHTML。<style> と inline style を追加のソースとして扱う

    Returns:
        ColorExtractionResult（色が無くても空の有効な結果を返す）
    """
    sources = [css or ""]
    if html:
        sources.extend(collect_css_from_html(html))
    rules = list(iter_rules("\n".join(sources)))

    variables = _collect_variables(rules)
    occurrences: list[ColorOccurrence] = []
    for selector, declarations in rules:
        occurrences.extend(parse_rule(selector, declarations, variables))

    colors = _aggregate(occurrences, variables)
    total = len(occurrences)
    mode = detect_mode(colors, total)
    logger.debug(
        "Extracted %d occurrences of %d unique colors (%d variables, mode=%s)",
        total, len(colors), len(variables), mode,
    )
    return ColorExtractionResult(
        colors=colors,
        variables=variables,
        total_occurrences=total,
        detected_mode=mode,
    )


def get_top_colors(result: ColorExtractionResult, n: int = 10) -> list[AggregatedColor]:
    """出現頻度の上位N色"""
    return sorted(result.colors.values(), key=lambda c: -c.frequency)[:n]


def get_colors_by_property(result: ColorExtractionResult, prop_type: str) -> list[AggregatedColor]:
    return [c for c in result.colors.values() if c.usage_count(prop_type) > 0]


def get_saturated_colors(result: ColorExtractionResult, min_saturation: int = 20) -> list[AggregatedColor]:
    """彩度が min_saturation(%) 以上の色（アクセント・ブランド色の候補）"""
    return [c for c in result.colors.values() if c.hsl[1] >= min_saturation]


# =============================================
# マッピング入力への変換
# =============================================

_PROPERTY_CONTEXTS = {
    "background-color": "background",
    "color": "text",
    "border-color": "border",
    "outline": "border",
}

_SEMANTIC_HINT_RE = re.compile(r"success|warn|danger|error|info", re.IGNORECASE)


def _semantic_hints(color: AggregatedColor) -> tuple[str, ...]:
    """セレクタとカスタムプロパティ名から単語トークンを集める（出現順・重複なし）"""
    hints: list[str] = []
    if INLINE_SELECTOR in color.selectors:
        hints.append("inline")
    for source in [*color.selectors, *color.variable_names]:
        for token in HINT_SPLIT_RE.split(source.lower()):
            if token and not token.isdigit() and token not in hints:
                hints.append(token)
    return tuple(hints)


def build_source_colors(extraction: ColorExtractionResult) -> dict[str, ColorUsage]:
    """
    抽出結果をロールマッパーの入力（hex → ColorUsage）に変換する。

    contexts はプロパティ種別とセレクタの要素種別から、
    semantic_hints はセレクタ・カスタムプロパティ名の単語から作る。
    """
    source_colors: dict[str, ColorUsage] = {}
    for hex_color, color in extraction.colors.items():
        contexts: list[str] = []
        for prop_type in color.property_distribution:
            context = _PROPERTY_CONTEXTS.get(prop_type, "other")
            if context not in contexts:
                contexts.append(context)

        element_types = {detect_element_type(s) for s in color.selectors}
        if "button" in element_types and "button" not in contexts:
            contexts.append("button")
        if "link" in element_types and color.usage_count("color") > 0 and "link" not in contexts:
            contexts.append("link")

        hints = _semantic_hints(color)
        if any(_SEMANTIC_HINT_RE.search(h) for h in hints) and "semantic" not in contexts:
            contexts.append("semantic")

        source_colors[hex_color] = ColorUsage(
            hex=hex_color,
            frequency=color.frequency,
            contexts=tuple(contexts),
            semantic_hints=hints,
        )
    return source_colors
