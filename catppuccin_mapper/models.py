"""
データモデル定義
抽出 → 分類 → シグネチャ → マッピングの各段階で受け渡す値オブジェクト。
すべて to_dict() でJSON互換のdictに変換できる（map型フィールドは文字列キーのdict）。
"""

from __future__ import annotations

from dataclasses import dataclass, field

from catppuccin_mapper.palettes import (
    ColorValue,
    make_color_value,
    validate_accent,
    validate_contrast_mode,
)

SEMANTIC_OVERRIDE_KEYS = ("success", "warning", "danger", "info")


def _color_dict(hex_color: str) -> dict:
    value = make_color_value(hex_color)
    return value.to_dict() if value else {"hex": hex_color}


def _hex_of(data) -> str:
    """ColorValue dict / hex文字列 のどちらからでもhexを取り出す"""
    if isinstance(data, dict):
        return data["hex"]
    return data


# =============================================
# 抽出段階
# =============================================

@dataclass(frozen=True)
class ColorOccurrence:
    """CSS内の1回分の色出現"""

    hex: str
    property: str
    prop_type: str
    selector: str


@dataclass(frozen=True)
class ColorUsage:
    """マッピング入力となる1色分の利用状況"""

    hex: str
    frequency: float
    contexts: tuple[str, ...] = ()
    semantic_hints: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "hex": self.hex,
            "frequency": self.frequency,
            "contexts": list(self.contexts),
            "semantic_hints": list(self.semantic_hints),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ColorUsage:
        return cls(
            hex=data["hex"],
            frequency=float(data.get("frequency", 0.0)),
            contexts=tuple(data.get("contexts", ())),
            semantic_hints=tuple(data.get("semantic_hints", ())),
        )


@dataclass
class AggregatedColor:
    """ユニークなhexごとの集計結果"""

    hex: str
    total_count: int
    frequency: float
    property_distribution: dict[str, int]
    selectors: list[str]
    variable_names: list[str]
    hsl: tuple[int, int, int]

    def dominant_property(self) -> str | None:
        """最も多く使われたプロパティ種別（同数なら先に出現したもの）"""
        if not self.property_distribution:
            return None
        return max(self.property_distribution.items(), key=lambda x: x[1])[0]

    def usage_count(self, prop_type: str) -> int:
        return self.property_distribution.get(prop_type, 0)

    def to_dict(self) -> dict:
        h, s, l = self.hsl
        return {
            "hex": self.hex,
            "total_count": self.total_count,
            "frequency": self.frequency,
            "property_distribution": dict(self.property_distribution),
            "selectors": list(self.selectors),
            "variable_names": list(self.variable_names),
            "hsl": {"h": h, "s": s, "l": l},
        }


@dataclass
class ColorExtractionResult:
    colors: dict[str, AggregatedColor]
    variables: dict[str, str]
    total_occurrences: int
    detected_mode: str

    def to_dict(self) -> dict:
        return {
            "colors": {hex_color: c.to_dict() for hex_color, c in self.colors.items()},
            "variables": dict(self.variables),
            "total_occurrences": self.total_occurrences,
            "detected_mode": self.detected_mode,
        }


# =============================================
# 分類段階
# =============================================

@dataclass(frozen=True)
class SemanticClassification:
    """1色の意味的ロール判定。reasoning は判定理由の監査ログ"""

    hex: str
    role: str
    confidence: float
    reasoning: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "hex": self.hex,
            "role": self.role,
            "confidence": self.confidence,
            "reasoning": list(self.reasoning),
        }


# =============================================
# シグネチャ
# =============================================

@dataclass
class ColorProfile:
    dominant_hue: int
    dominant_hue_name: str
    saturation_level: str
    luminance_mode: str
    brand_colors: list[str]
    accent_distribution: dict[str, float]
    unique_color_count: int

    def to_dict(self) -> dict:
        return {
            "dominant_hue": self.dominant_hue,
            "dominant_hue_name": self.dominant_hue_name,
            "saturation_level": self.saturation_level,
            "luminance_mode": self.luminance_mode,
            "brand_colors": [_color_dict(c) for c in self.brand_colors],
            "accent_distribution": dict(self.accent_distribution),
            "unique_color_count": self.unique_color_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ColorProfile:
        return cls(
            dominant_hue=int(data["dominant_hue"]),
            dominant_hue_name=data["dominant_hue_name"],
            saturation_level=data["saturation_level"],
            luminance_mode=data["luminance_mode"],
            brand_colors=[_hex_of(c) for c in data.get("brand_colors", [])],
            accent_distribution=dict(data.get("accent_distribution", {})),
            unique_color_count=int(data.get("unique_color_count", 0)),
        )


@dataclass
class SignatureMetadata:
    generated_at: str
    source_type: str
    overall_confidence: float

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at,
            "source_type": self.source_type,
            "overall_confidence": self.overall_confidence,
        }


@dataclass
class SiteSignature:
    """サイトの色的アイデンティティ（比較可能なスナップショット）"""

    domain: str
    color_profile: ColorProfile
    semantic_roles: dict[str, str]
    selector_map: dict[str, list[str]]
    selector_classifications: dict[str, str]
    suggested_accent: str
    metadata: SignatureMetadata

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "color_profile": self.color_profile.to_dict(),
            "semantic_roles": {role: _color_dict(h) for role, h in self.semantic_roles.items()},
            "selector_map": {h: list(sels) for h, sels in self.selector_map.items()},
            "selector_classifications": dict(self.selector_classifications),
            "suggested_accent": self.suggested_accent,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SiteSignature:
        meta = data.get("metadata", {})
        return cls(
            domain=data["domain"],
            color_profile=ColorProfile.from_dict(data["color_profile"]),
            semantic_roles={role: _hex_of(v) for role, v in data.get("semantic_roles", {}).items()},
            selector_map={h: list(v) for h, v in data.get("selector_map", {}).items()},
            selector_classifications=dict(data.get("selector_classifications", {})),
            suggested_accent=data["suggested_accent"],
            metadata=SignatureMetadata(
                generated_at=meta.get("generated_at", ""),
                source_type=meta.get("source_type", "url"),
                overall_confidence=float(meta.get("overall_confidence", 0.5)),
            ),
        )


# =============================================
# アクセントスキーム
# =============================================

@dataclass(frozen=True)
class AccentSet:
    """flavor はカスタムパレットから計算した場合 None"""

    flavor: str | None
    main_accent: str
    bi_accent1: str
    bi_accent2: str
    co_accent1: str | None = None
    co_accent2: str | None = None

    @property
    def bi_accents(self) -> tuple[str, str]:
        return self.bi_accent1, self.bi_accent2

    @property
    def co_accents(self) -> tuple[str, ...]:
        return tuple(a for a in (self.co_accent1, self.co_accent2) if a)

    def to_dict(self) -> dict:
        data = {
            "flavor": self.flavor,
            "main_accent": self.main_accent,
            "bi_accent1": self.bi_accent1,
            "bi_accent2": self.bi_accent2,
        }
        if self.co_accent1 or self.co_accent2:
            data["co_accent1"] = self.co_accent1
            data["co_accent2"] = self.co_accent2
        return data


# =============================================
# マッピング
# =============================================

@dataclass
class MappingConfig:
    """
    マッピングオプション。未知のアクセント名・コントラストモードは ValueError。

    Args:
        primary_accent: 主アクセントの明示指定（None なら自動検出）
        secondary_accent: 副アクセントの明示指定（None なら色相から選択）
        semantic_overrides: success/warning/danger/info → アクセント名
        contrast_mode: strict(4.5) / normal(3.0) / relaxed(2.5)
    """

    primary_accent: str | None = None
    secondary_accent: str | None = None
    semantic_overrides: dict[str, str] = field(default_factory=dict)
    contrast_mode: str = "normal"

    def __post_init__(self):
        if self.primary_accent is not None:
            validate_accent(self.primary_accent)
        if self.secondary_accent is not None:
            validate_accent(self.secondary_accent)
        for key, accent in self.semantic_overrides.items():
            if key not in SEMANTIC_OVERRIDE_KEYS:
                raise ValueError(f"Unknown semantic override: {key!r}")
            validate_accent(accent)
        validate_contrast_mode(self.contrast_mode)

    def to_dict(self) -> dict:
        return {
            "primary_accent": self.primary_accent,
            "secondary_accent": self.secondary_accent,
            "semantic_overrides": dict(self.semantic_overrides),
            "contrast_mode": self.contrast_mode,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> MappingConfig:
        data = data or {}
        return cls(
            primary_accent=data.get("primary_accent") or None,
            secondary_accent=data.get("secondary_accent") or None,
            semantic_overrides={k: v for k, v in (data.get("semantic_overrides") or {}).items() if v},
            contrast_mode=data.get("contrast_mode") or "normal",
        )


@dataclass
class MappingMetadata:
    flavor: str
    primary_accent: str
    secondary_accent: str
    contrast_validated: bool
    warnings: list[str] = field(default_factory=list)
    # 主アクセントとグラデーションで組むバイアクセント
    bi_accents: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "flavor": self.flavor,
            "primary_accent": self.primary_accent,
            "secondary_accent": self.secondary_accent,
            "contrast_validated": self.contrast_validated,
            "warnings": list(self.warnings),
            "bi_accents": list(self.bi_accents),
        }


@dataclass
class MappingOutput:
    """RoleMap + DerivedScales + メタデータ。生成側からは読み取り専用で使う"""

    role_map: dict[str, ColorValue]
    derived_scales: dict[str, ColorValue]
    metadata: MappingMetadata

    def hex_table(self) -> dict[str, str]:
        """ロール → hex の平坦なテーブル（派生スケール込み）"""
        table = {role: value.hex for role, value in self.role_map.items()}
        table.update({key: value.hex for key, value in self.derived_scales.items()})
        return table

    def to_dict(self) -> dict:
        return {
            "role_map": {role: v.to_dict() for role, v in self.role_map.items()},
            "derived_scales": {key: v.to_dict() for key, v in self.derived_scales.items()},
            "metadata": self.metadata.to_dict(),
        }
