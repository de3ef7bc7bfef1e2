"""
オフライン実行パイプライン
CSS/HTML → 抽出 → シグネチャ → ソースカラー → ロールマッピング を1回で通す。
ネットワーク・AIは使わない（旧形式のヒューリスティック対応表も一緒に作る）。
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass

from catppuccin_mapper.accent_schemes import AccentSchemeEngine
from catppuccin_mapper.color_extractor import build_source_colors, extract_colors
from catppuccin_mapper.models import ColorUsage, MappingConfig, MappingOutput, SiteSignature
from catppuccin_mapper.mapping_variants import LegacyEntry, LegacyMapping
from catppuccin_mapper.palettes import get_palette
from catppuccin_mapper.role_mapper import map_to_catppuccin_theme
from catppuccin_mapper.site_signature import signature_from_extraction, summarize_signature

logger = logging.getLogger(__name__)

HEURISTIC_REASON = "Heuristic mapping"

# 分類ロール → パレット色名（"accent" は選ばれた主アクセントに置き換える）
ROLE_TO_TOKEN = {
    "background.primary": "base",
    "background.secondary": "mantle",
    "surface.card": "surface0",
    "surface.overlay": "surface1",
    "text.primary": "text",
    "text.secondary": "subtext1",
    "text.muted": "subtext0",
    "accent.brand": "accent",
    "accent.link": "accent",
    "accent.interactive": "accent",
    "semantic.success": "green",
    "semantic.warning": "yellow",
    "semantic.error": "red",
    "semantic.info": "blue",
    "border.subtle": "surface2",
    "border.default": "overlay0",
}


@dataclass
class PipelineResult:
    signature: SiteSignature
    source_colors: dict[str, ColorUsage]
    mapping: MappingOutput
    legacy_mapping: LegacyMapping
    summary: str
    # 段階ごとの所要時間（ミリ秒）
    timing: dict[str, float]

    def to_dict(self) -> dict:
        return {
            "signature": self.signature.to_dict(),
            "source_colors": {h: u.to_dict() for h, u in self.source_colors.items()},
            "mapping": self.mapping.to_dict(),
            "legacy_mapping": self.legacy_mapping.to_dict(),
            "summary": self.summary,
            "timing": dict(self.timing),
        }


def create_heuristic_mappings(signature: SiteSignature, accent: str) -> LegacyMapping:
    """シグネチャの代表色（ロールごと1色）をパレット色名に対応づける。未知のロールは text"""
    entries = []
    for role, hex_color in signature.semantic_roles.items():
        token = ROLE_TO_TOKEN.get(role, "text")
        if token == "accent":
            token = accent
        entries.append(LegacyEntry(original=hex_color, target=token, role=role, reason=HEURISTIC_REASON))
    return LegacyMapping(entries=entries)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def run_offline_pipeline(
    css: str,
    domain: str,
    flavor: str = "mocha",
    html: str | None = None,
    config: MappingConfig | dict | None = None,
    accent_engine: AccentSchemeEngine | None = None,
    generated_at: str | None = None,
    source_type: str = "url",
) -> PipelineResult:
    """
    解析からマッピングまでを通しで実行する。

    主アクセントは config で指定がなければシグネチャの推奨アクセントを使う。

    Args:
        css: 生のCSSテキスト
        domain: サイトのドメイン
        flavor: 出力フレーバー
        html: 生のHTML（任意）
        config: MappingConfig または同じキーを持つ dict
        accent_engine: 共有のアクセントテーブル
        generated_at: シグネチャの生成時刻（固定すると出力が決定的になる）
        source_type: "url" / "directory" / "mhtml"

    Returns:
        PipelineResult
    """
    get_palette(flavor)
    if config is None or isinstance(config, dict):
        config = MappingConfig.from_dict(config)

    start = time.perf_counter()

    # 1. 解析
    analysis_start = time.perf_counter()
    extraction = extract_colors(css, html)
    signature = signature_from_extraction(extraction, domain, source_type, generated_at)
    source_colors = build_source_colors(extraction)
    analysis_ms = _elapsed_ms(analysis_start)

    # 2. マッピング
    mapping_start = time.perf_counter()
    if config.primary_accent is None:
        config = dataclasses.replace(config, primary_accent=signature.suggested_accent)
    mapping = map_to_catppuccin_theme(source_colors, flavor, config, accent_engine)
    legacy = create_heuristic_mappings(signature, config.primary_accent)
    mapping_ms = _elapsed_ms(mapping_start)

    total_ms = _elapsed_ms(start)
    logger.info(
        "Pipeline finished for %s: %d colors, accent=%s, flavor=%s, contrast_validated=%s (%.1f ms)",
        domain,
        signature.color_profile.unique_color_count,
        mapping.metadata.primary_accent,
        flavor,
        mapping.metadata.contrast_validated,
        total_ms,
    )

    return PipelineResult(
        signature=signature,
        source_colors=source_colors,
        mapping=mapping,
        legacy_mapping=legacy,
        summary=summarize_signature(signature),
        timing={"analysis_ms": analysis_ms, "mapping_ms": mapping_ms, "total_ms": total_ms},
    )
