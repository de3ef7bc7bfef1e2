"""
パレットプロファイル
HTML（と任意のCSS）に宣言された CSS カスタムプロパティから、サイトのデザイントークンを
ロール単位で推定する。結果は URL + コンテンツハッシュをキーに ProfileStore へキャッシュする。

コンテンツハッシュは FNV-1a（4レーン×32bit）。暗号学的ハッシュではないので、
キャッシュキーの安定化以外（改ざん検知など）には使わないこと。
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Comment

from catppuccin_mapper.accent_schemes import AccentSchemeEngine, compute_accent_set_for, nearest_accent
from catppuccin_mapper.color_extractor import resolve_value
from catppuccin_mapper.color_space import hex_to_rgb, normalize_to_hex
from catppuccin_mapper.models import MappingMetadata, MappingOutput
from catppuccin_mapper.palettes import (
    ColorValue,
    get_color_value,
    get_palette,
    nearest_color_name,
)
from catppuccin_mapper.role_mapper import ensure_critical_roles
from catppuccin_mapper.storage import StorageBackend

logger = logging.getLogger(__name__)

VAR_DECL_RE = re.compile(r"(--[A-Za-z0-9_-]+)\s*:\s*([^;{}]+)")
WHITESPACE_RE = re.compile(r"\s+")

FNV_PRIME = 0x01000193
FNV_OFFSET = 0x811C9DC5
FNV_LANES = 4

MAX_UNMAPPED_TOKENS = 25

# シードで選ぶ 主/副/第3 の配分
WEIGHT_VARIANTS = (
    (0.7, 0.2, 0.1),
    (0.65, 0.25, 0.1),
    (0.6, 0.25, 0.15),
)

# トークン名 → 利用文脈
_CONTEXT_RULES = (
    ("background", re.compile(r"bg|background")),
    ("surface", re.compile(r"surface|card|panel")),
    ("text", re.compile(r"text|font")),
    ("border", re.compile(r"border|divider|outline")),
    ("button", re.compile(r"button|btn|cta|primary|secondary")),
    ("link", re.compile(r"link|anchor")),
    ("semantic", re.compile(r"success|warning|danger|error|info")),
)


def _rule(role: str, pattern: str, hint: str) -> tuple[str, re.Pattern, str]:
    return role, re.compile(pattern, re.IGNORECASE), hint


# トークン名 → ロール。1トークンにつき最初に一致したルールだけを使う。
# *.text は *.base より先に置く（--button-primary-text は primary.text）
ROLE_RULES = (
    _rule("background.primary", r"--.*(bg|background).*(page|base|primary)", "Matches background primary variable"),
    _rule("background.secondary", r"--.*(bg|background).*(secondary|mantle)", "Matches background secondary variable"),
    _rule("background.tertiary", r"--.*(bg|background).*(tertiary|crust|alt)", "Matches background tertiary variable"),
    _rule("surface.0", r"--.*(surface-?0|bg-card)", "Matches surface level 0"),
    _rule("surface.1", r"--.*(surface-?1|bg-ui$)", "Matches surface level 1"),
    _rule("surface.2", r"--.*(surface-?2|bg-ui-active)", "Matches surface level 2"),
    _rule("border.subtle", r"--.*border.*(subtle|light)", "Matches subtle border token"),
    _rule("border.default", r"--.*border.*(default|card)", "Matches default border token"),
    _rule("border.strong", r"--.*border.*(strong|accent)", "Matches strong border token"),
    _rule("primary.text", r"--.*(button|btn).*primary.*(text|fg)", "Matches primary button text"),
    _rule("secondary.text", r"--.*(button|btn).*secondary.*(text|fg)", "Matches secondary button text"),
    _rule("success.text", r"--.*success.*(text|fg)", "Matches success text"),
    _rule("warning.text", r"--.*warning.*(text|fg)", "Matches warning text"),
    _rule("danger.text", r"--.*(danger|destructive).*(text|fg)", "Matches danger text"),
    _rule("info.text", r"--.*info.*(text|fg)", "Matches info text"),
    _rule("text.primary", r"--.*text-?(primary|01|base)", "Matches primary text token"),
    _rule("text.secondary", r"--.*text-?(secondary|02|subtext)", "Matches secondary text token"),
    _rule("text.muted", r"--.*text.*(muted|subtle|03)", "Matches muted text token"),
    _rule("text.disabled", r"--.*text.*(disabled|04|overlay)", "Matches disabled text token"),
    _rule("accent.interactive", r"--.*(accent|link|cta|brand).*(color|main)", "Matches interactive accent token"),
    _rule("accent.selection", r"--.*selection", "Matches text selection token"),
    _rule("accent.focus", r"--.*focus", "Matches focus token"),
    _rule("primary.base", r"--.*(button|btn).*primary", "Matches primary button background"),
    _rule("secondary.base", r"--.*(button|btn).*secondary", "Matches secondary button background"),
    _rule("success.base", r"--.*success", "Matches success color"),
    _rule("warning.base", r"--.*warning", "Matches warning color"),
    _rule("danger.base", r"--.*(danger|destructive)", "Matches danger color"),
    _rule("info.base", r"--.*info", "Matches info color"),
)

# 解決できなかったロールのフレーバー内トークン
ROLE_FALLBACKS = {
    "background.primary": "base",
    "background.secondary": "mantle",
    "background.tertiary": "crust",
    "surface.0": "surface0",
    "surface.1": "surface1",
    "surface.2": "surface2",
    "border.subtle": "overlay0",
    "border.default": "overlay1",
    "border.strong": "overlay2",
    "text.primary": "text",
    "text.secondary": "subtext1",
    "text.muted": "subtext0",
    "text.disabled": "overlay2",
    "accent.interactive": "mauve",
    "accent.selection": "sky",
    "accent.focus": "lavender",
    "primary.base": "mauve",
    "primary.text": "base",
    "secondary.base": "sapphire",
    "secondary.text": "base",
    "success.base": "green",
    "success.text": "base",
    "warning.base": "yellow",
    "warning.text": "base",
    "danger.base": "red",
    "danger.text": "base",
    "info.base": "sky",
    "info.text": "base",
}


# =============================================
# データモデル
# =============================================

@dataclass
class SourceToken:
    name: str
    value: str
    resolved_hex: str | None = None
    frequency: float = 0.0
    occurrences: int = 0
    contexts: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "resolved_hex": self.resolved_hex,
            "frequency": self.frequency,
            "occurrences": self.occurrences,
            "contexts": list(self.contexts),
            "sources": list(self.sources),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SourceToken:
        return cls(
            name=data["name"],
            value=data["value"],
            resolved_hex=data.get("resolved_hex"),
            frequency=float(data.get("frequency", 0.0)),
            occurrences=int(data.get("occurrences", 0)),
            contexts=list(data.get("contexts", [])),
            sources=list(data.get("sources", [])),
        )


@dataclass
class RoleAssignment:
    token: str
    confidence: float
    hints: list[str]

    def to_dict(self) -> dict:
        return {"token": self.token, "confidence": self.confidence, "hints": list(self.hints)}

    @classmethod
    def from_dict(cls, data: dict) -> RoleAssignment:
        return cls(token=data["token"], confidence=float(data["confidence"]), hints=list(data.get("hints", [])))


@dataclass
class AccentDistribution:
    primary: str
    bi_accents: tuple[str, str]
    weights: tuple[float, float, float]
    seed: str

    def to_dict(self) -> dict:
        first, second = self.bi_accents
        primary, secondary, tertiary = self.weights
        return {
            "primary": self.primary,
            "bi_accents": {"first": first, "second": second},
            "weights": {"primary": primary, "secondary": secondary, "tertiary": tertiary},
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AccentDistribution:
        bi = data["bi_accents"]
        weights = data["weights"]
        return cls(
            primary=data["primary"],
            bi_accents=(bi["first"], bi["second"]),
            weights=(weights["primary"], weights["secondary"], weights["tertiary"]),
            seed=data["seed"],
        )


@dataclass
class PaletteDiagnostics:
    css_variable_count: int
    inferred_roles: list[str]
    unmapped_tokens: list[str]
    warnings: list[str]

    def to_dict(self) -> dict:
        return {
            "css_variable_count": self.css_variable_count,
            "inferred_roles": list(self.inferred_roles),
            "unmapped_tokens": list(self.unmapped_tokens),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PaletteDiagnostics:
        return cls(
            css_variable_count=int(data.get("css_variable_count", 0)),
            inferred_roles=list(data.get("inferred_roles", [])),
            unmapped_tokens=list(data.get("unmapped_tokens", [])),
            warnings=list(data.get("warnings", [])),
        )


@dataclass
class PaletteProfile:
    url: str
    hash: str
    tokens: dict[str, SourceToken]
    roles: dict[str, RoleAssignment]
    accents: AccentDistribution
    diagnostics: PaletteDiagnostics

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "hash": self.hash,
            "tokens": {name: t.to_dict() for name, t in self.tokens.items()},
            "roles": {role: a.to_dict() for role, a in self.roles.items()},
            "accents": self.accents.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PaletteProfile:
        return cls(
            url=data["url"],
            hash=data["hash"],
            tokens={name: SourceToken.from_dict(t) for name, t in data.get("tokens", {}).items()},
            roles={role: RoleAssignment.from_dict(a) for role, a in data.get("roles", {}).items()},
            accents=AccentDistribution.from_dict(data["accents"]),
            diagnostics=PaletteDiagnostics.from_dict(data.get("diagnostics", {})),
        )


# =============================================
# キャッシュ
# =============================================

def cache_key(url: str, content_hash: str) -> str:
    return f"{url}|{content_hash}"


class ProfileStore:
    """
    PaletteProfile の読み書きキャッシュ。
    キー（url|hash）はファイル名に使えないので、FNV-1aでハッシュしたものを保存キーにし、
    元のキーはエントリ内に持って照合する。
    """

    def __init__(self, storage: StorageBackend, prefix: str = "profiles/"):
        self.storage = storage
        self.prefix = prefix

    def _storage_key(self, key: str) -> str:
        return f"{self.prefix}{fnv1a_hash(key)}.json"

    def get(self, key: str) -> PaletteProfile | None:
        """キャッシュを引く。無い・壊れている・別キーのエントリなら None"""
        storage_key = self._storage_key(key)
        if not self.storage.exists(storage_key):
            logger.debug("Profile cache miss: %s", key)
            return None
        try:
            entry = json.loads(self.storage.load_text(storage_key))
            if entry.get("key") != key:
                logger.debug("Profile cache key mismatch: %s", key)
                return None
            profile = PaletteProfile.from_dict(entry["profile"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Ignoring corrupt profile cache entry %s: %s", storage_key, e)
            return None
        logger.debug("Profile cache hit: %s", key)
        return profile

    def put(self, key: str, profile: PaletteProfile) -> None:
        entry = {"key": key, "profile": profile.to_dict()}
        self.storage.save_text(self._storage_key(key), json.dumps(entry, ensure_ascii=False, indent=2))

    def delete(self, key: str) -> None:
        self.storage.delete(self._storage_key(key))

    def clear(self) -> None:
        self.storage.delete(self.prefix)


# =============================================
# 正規化・ハッシュ
# =============================================

def canonicalize_html(html: str) -> str:
    """<script> とコメントを除き、空白を1つにまとめる"""
    soup = BeautifulSoup(html or "", "html.parser")
    for script in soup.find_all("script"):
        script.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    return WHITESPACE_RE.sub(" ", str(soup)).strip()


def fnv1a_hash(text: str) -> str:
    """4レーンの FNV-1a（32bit）。文字位置 i はレーン i % 4 に混ぜる。16進32文字"""
    lanes = [FNV_OFFSET] * FNV_LANES
    for i, ch in enumerate(text):
        idx = i % FNV_LANES
        lanes[idx] = ((lanes[idx] ^ ord(ch)) * FNV_PRIME) & 0xFFFFFFFF
    return "".join(f"{lane:08x}" for lane in lanes)


# =============================================
# トークン抽出・ロール推定
# =============================================

def infer_contexts(name: str) -> list[str]:
    lower = name.lower()
    contexts = [context for context, pattern in _CONTEXT_RULES if pattern.search(lower)]
    return contexts or ["other"]


def _declaration_sources(canonical_html: str, css: str | None) -> list[tuple[str, str]]:
    """(由来, テキスト) の列: <style> タグ → 追加CSS → inline style"""
    soup = BeautifulSoup(canonical_html, "html.parser")
    sources = [("style-tag", tag.string) for tag in soup.find_all("style") if tag.string]
    if css:
        sources.append(("css", css))
    sources.extend(("inline-style", tag["style"]) for tag in soup.find_all(style=True))
    return sources


def extract_tokens(canonical_html: str, css: str | None = None) -> tuple[dict[str, SourceToken], int]:
    """
    カスタムプロパティ宣言をトークンとして集める。

    同名トークンは最初の値を保持し、出現回数だけ加算する。
    resolved_hex は値の中の最初の色（var() 参照は宣言表で解決）。

    Returns:
        (トークン名 → SourceToken, 総出現数)
    """
    declarations = []
    for origin, text in _declaration_sources(canonical_html, css):
        for match in VAR_DECL_RE.finditer(text):
            declarations.append((match.group(1), match.group(2).strip(), origin))

    variables: dict[str, str] = {}
    for name, value, _ in declarations:
        variables[name] = normalize_to_hex(value) or value

    tokens: dict[str, SourceToken] = {}
    for name, value, origin in declarations:
        token = tokens.get(name)
        if token is None:
            token = SourceToken(
                name=name,
                value=value,
                resolved_hex=resolve_value(value, variables),
                contexts=infer_contexts(name),
            )
            tokens[name] = token
        token.occurrences += 1
        token.sources.append(origin)

    total = len(declarations)
    for token in tokens.values():
        token.frequency = token.occurrences / total if total else 0.0
    return tokens, total


def infer_roles(tokens: dict[str, SourceToken]) -> dict[str, RoleAssignment]:
    """トークン名からロールを推定する。同じロールに複数候補があれば信頼度の高い方（同値は先勝ち）"""
    roles: dict[str, RoleAssignment] = {}
    for name, token in tokens.items():
        for role, pattern, hint in ROLE_RULES:
            if not pattern.search(name):
                continue
            confidence = min(1.0, 0.6 + token.frequency * 0.4)
            existing = roles.get(role)
            if existing is None or confidence > existing.confidence:
                roles[role] = RoleAssignment(token=name, confidence=confidence, hints=[hint, *token.contexts])
            break
    return roles


def derive_accent_distribution(
    tokens: dict[str, SourceToken],
    url: str,
    content_hash: str,
    flavor: str,
    accent_engine: AccentSchemeEngine | None = None,
) -> AccentDistribution:
    """
    ボタン・リンク系トークンのうち最頻出で色が解決できたものから主アクセントを決める（無ければ mauve）。
    配分はシード（url|hash|flavor のハッシュ）で3パターンから決定的に選ぶ。
    """
    palette = get_palette(flavor)
    seed = fnv1a_hash(f"{url}|{content_hash}|{flavor}")
    seed_value = int(seed[:8], 16)

    interactive = [
        t for t in tokens.values()
        if t.resolved_hex and ("button" in t.contexts or "link" in t.contexts)
    ]
    interactive.sort(key=lambda t: -t.frequency)

    primary = "mauve"
    if interactive:
        primary = nearest_accent(hex_to_rgb(interactive[0].resolved_hex), palette)

    if accent_engine is not None:
        bi_accents = accent_engine.bi_accents(flavor, primary)
    else:
        bi_accents = compute_accent_set_for(flavor, primary, include_co=False).bi_accents

    return AccentDistribution(
        primary=primary,
        bi_accents=bi_accents,
        weights=WEIGHT_VARIANTS[seed_value % len(WEIGHT_VARIANTS)],
        seed=seed,
    )


def build_diagnostics(
    tokens: dict[str, SourceToken],
    roles: dict[str, RoleAssignment],
    total_occurrences: int,
) -> PaletteDiagnostics:
    assigned = {assignment.token for assignment in roles.values()}
    warnings = []
    if not tokens:
        warnings.append("No CSS custom properties detected in source.")
    if total_occurrences == 0:
        warnings.append("No inline styles or CSS variables found to analyze.")
    return PaletteDiagnostics(
        css_variable_count=len(tokens),
        inferred_roles=list(roles),
        unmapped_tokens=[name for name in tokens if name not in assigned][:MAX_UNMAPPED_TOKENS],
        warnings=warnings,
    )


# =============================================
# 公開API
# =============================================

def build_palette_profile(
    url: str,
    html: str,
    css: str | None = None,
    flavor: str = "mocha",
    store: ProfileStore | None = None,
    accent_engine: AccentSchemeEngine | None = None,
) -> PaletteProfile:
    """
    HTML（と任意のCSS）からパレットプロファイルを作る。

    Args:
        url: 取得元URL（キャッシュキーの一部）
        html: 生のHTML
        css: 追加のCSSテキスト
        flavor: アクセント計算に使うフレーバー
        store: 指定時はキャッシュを読み書きする

    Returns:
        PaletteProfile
    """
    get_palette(flavor)
    canonical = canonicalize_html(html)
    content_hash = fnv1a_hash(canonical)
    key = cache_key(url, content_hash)

    if store is not None:
        cached = store.get(key)
        if cached is not None:
            return cached

    tokens, total = extract_tokens(canonical, css)
    roles = infer_roles(tokens)
    profile = PaletteProfile(
        url=url,
        hash=content_hash,
        tokens=tokens,
        roles=roles,
        accents=derive_accent_distribution(tokens, url, content_hash, flavor, accent_engine),
        diagnostics=build_diagnostics(tokens, roles, total),
    )
    logger.debug("Built palette profile for %s: %d tokens, %d roles", url, len(tokens), len(roles))

    if store is not None:
        store.put(key, profile)
    return profile


def _profile_derived_scales(accents: AccentDistribution, flavor: str) -> dict[str, ColorValue]:
    first, second = accents.bi_accents
    tokens = {
        "primary.hover": first,
        "primary.active": second,
        "secondary.hover": accents.primary,
        "secondary.active": second,
        "success.hover": "green",
        "success.active": "teal",
        "warning.hover": "yellow",
        "warning.active": "peach",
        "danger.hover": "red",
        "danger.active": "maroon",
        "info.hover": "blue",
        "info.active": "sapphire",
        "focus.ring": accents.primary,
        "selection.bg": first,
    }
    return {key: get_color_value(flavor, name) for key, name in tokens.items()}


def convert_profile_to_mapping(profile: PaletteProfile, flavor: str) -> MappingOutput:
    """
    プロファイルを MappingOutput に変換する。
    コントラスト検証はしないので contrast_validated は常に False。
    """
    get_palette(flavor)
    role_map: dict[str, ColorValue] = {}

    for role, assignment in profile.roles.items():
        token = profile.tokens.get(assignment.token)
        name = None
        if token is not None and token.resolved_hex:
            name = nearest_color_name(token.resolved_hex, flavor)
        name = name or ROLE_FALLBACKS.get(role)
        if name:
            role_map[role] = get_color_value(flavor, name)

    ensure_critical_roles(role_map, flavor)

    primary = profile.accents.primary
    first, second = profile.accents.bi_accents
    role_map["accent.interactive"] = get_color_value(flavor, primary)
    role_map["accent.selection"] = get_color_value(flavor, first)
    role_map["accent.focus"] = get_color_value(flavor, second)
    role_map["primary.base"] = get_color_value(flavor, primary)
    role_map["primary.text"] = get_color_value(flavor, "base")
    role_map["secondary.base"] = get_color_value(flavor, first)
    role_map["secondary.text"] = get_color_value(flavor, "base")

    return MappingOutput(
        role_map=role_map,
        derived_scales=_profile_derived_scales(profile.accents, flavor),
        metadata=MappingMetadata(
            flavor=flavor,
            primary_accent=primary,
            secondary_accent=first,
            contrast_validated=False,
            warnings=list(profile.diagnostics.warnings),
            bi_accents=[first, second],
        ),
    )
