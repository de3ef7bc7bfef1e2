"""パレットプロファイルのテスト"""

import json

import pytest

from catppuccin_mapper.accent_schemes import AccentSchemeEngine, compute_accent_set_for
from catppuccin_mapper.palette_profile import (
    WEIGHT_VARIANTS,
    ProfileStore,
    build_palette_profile,
    cache_key,
    canonicalize_html,
    convert_profile_to_mapping,
    extract_tokens,
    fnv1a_hash,
    infer_contexts,
    infer_roles,
)
from catppuccin_mapper.palettes import get_color
from catppuccin_mapper.role_mapper import CRITICAL_ROLES
from catppuccin_mapper.storage import MemoryStorage

URL = "https://example.com"

HTML = """<!DOCTYPE html>
<html>
<head>
  <style>:root{--bg-page:#1e1e2e;--text-base:#cdd6f4;--link-color:#89b4fa;--button-primary-bg:var(--link-color)}</style>
  <script>const theme = ":root{--evil:#ff0000}";</script>
</head>
<body>
  <!-- <div style="--ghost: #000000"></div> -->
  <div style="--surface-0: #313244">content</div>
</body>
</html>
"""


@pytest.fixture
def store():
    return ProfileStore(MemoryStorage())


# =============================================
# ハッシュ・正規化
# =============================================

def test_fnv1a_hash_lanes():
    assert fnv1a_hash("") == "811c9dc5" * 4
    assert fnv1a_hash("a") == "e40c292c" + "811c9dc5" * 3
    assert len(fnv1a_hash(HTML)) == 32


def test_canonicalize_drops_scripts_and_comments():
    canonical = canonicalize_html(HTML)
    assert "--evil" not in canonical
    assert "--ghost" not in canonical
    assert "--surface-0" in canonical
    assert "\n" not in canonical


def test_hash_ignores_whitespace_and_scripts():
    variant = HTML.replace("ff0000", "00ff00").replace("<body>\n  ", "<body>\n\n\t  ")
    assert canonicalize_html(variant) == canonicalize_html(HTML)
    assert build_palette_profile(URL, variant).hash == build_palette_profile(URL, HTML).hash


def test_hash_changes_with_content():
    changed = HTML.replace("#313244", "#45475a")
    assert build_palette_profile(URL, changed).hash != build_palette_profile(URL, HTML).hash


# =============================================
# トークン・ロール
# =============================================

def test_extract_tokens():
    tokens, total = extract_tokens(canonicalize_html(HTML))
    assert list(tokens) == ["--bg-page", "--text-base", "--link-color", "--button-primary-bg", "--surface-0"]
    assert total == 5
    assert tokens["--button-primary-bg"].resolved_hex == "#89b4fa"
    assert tokens["--button-primary-bg"].value == "var(--link-color)"
    assert tokens["--surface-0"].sources == ["inline-style"]
    assert tokens["--bg-page"].sources == ["style-tag"]
    assert tokens["--bg-page"].frequency == pytest.approx(0.2)


def test_extract_tokens_first_value_wins():
    html = "<style>:root{--accent-color:#ff0000}</style><div style='--accent-color: #00ff00'></div>"
    tokens, total = extract_tokens(canonicalize_html(html))
    token = tokens["--accent-color"]
    assert token.resolved_hex == "#ff0000"
    assert token.occurrences == 2
    assert token.frequency == pytest.approx(1.0)
    assert total == 2


def test_extra_css_is_scanned():
    tokens, _ = extract_tokens(canonicalize_html("<p>hi</p>"), ":root{--danger-color:#f38ba8}")
    assert tokens["--danger-color"].sources == ["css"]
    assert infer_roles(tokens)["danger.base"].token == "--danger-color"


def test_infer_contexts():
    assert infer_contexts("--bg-page") == ["background"]
    assert infer_contexts("--button-primary-bg") == ["background", "button"]
    assert infer_contexts("--radius") == ["other"]


def test_infer_roles():
    tokens, _ = extract_tokens(canonicalize_html(HTML))
    roles = infer_roles(tokens)
    expected = {
        "background.primary": "--bg-page",
        "text.primary": "--text-base",
        "accent.interactive": "--link-color",
        "primary.base": "--button-primary-bg",
        "surface.0": "--surface-0",
    }
    assert {role: a.token for role, a in roles.items()} == expected
    for assignment in roles.values():
        assert assignment.confidence == pytest.approx(0.68)
    assert roles["background.primary"].hints[0] == "Matches background primary variable"


def test_text_rules_take_precedence_over_base():
    tokens, _ = extract_tokens(
        canonicalize_html("<style>:root{--button-primary-text:#ffffff;--button-primary:#0000ff}</style>")
    )
    roles = infer_roles(tokens)
    assert roles["primary.text"].token == "--button-primary-text"
    assert roles["primary.base"].token == "--button-primary"


# =============================================
# build_palette_profile
# =============================================

def test_build_profile():
    profile = build_palette_profile(URL, HTML)
    assert profile.url == URL
    assert len(profile.tokens) == 5
    assert profile.accents.primary == "blue"
    assert profile.accents.bi_accents == compute_accent_set_for("mocha", "blue", include_co=False).bi_accents
    assert profile.accents.weights in WEIGHT_VARIANTS
    assert profile.diagnostics.css_variable_count == 5
    assert profile.diagnostics.unmapped_tokens == []
    assert profile.diagnostics.warnings == []


def test_build_profile_is_deterministic():
    first = build_palette_profile(URL, HTML, flavor="latte")
    second = build_palette_profile(URL, HTML, flavor="latte", accent_engine=AccentSchemeEngine())
    assert first.to_dict() == second.to_dict()


def test_unresolvable_interactive_token_is_skipped():
    html = "<style>:root{--cta-color:inherit;--link-color:#f38ba8}</style>"
    assert build_palette_profile(URL, html).accents.primary == "red"


def test_empty_html():
    profile = build_palette_profile(URL, "")
    assert profile.tokens == {}
    assert profile.accents.primary == "mauve"
    assert profile.diagnostics.warnings == [
        "No CSS custom properties detected in source.",
        "No inline styles or CSS variables found to analyze.",
    ]


def test_unknown_flavor():
    with pytest.raises(ValueError):
        build_palette_profile(URL, HTML, flavor="dracula")


# =============================================
# キャッシュ
# =============================================

def test_cache_round_trip(store):
    profile = build_palette_profile(URL, HTML, store=store)
    key = cache_key(URL, profile.hash)
    cached = store.get(key)
    assert cached is not None
    assert cached.to_dict() == profile.to_dict()
    assert build_palette_profile(URL, HTML, store=store).to_dict() == profile.to_dict()


def test_cache_miss_and_delete(store):
    assert store.get(cache_key(URL, "0" * 32)) is None
    profile = build_palette_profile(URL, HTML, store=store)
    key = cache_key(URL, profile.hash)
    store.delete(key)
    assert store.get(key) is None


def test_cache_key_mismatch_is_ignored(store):
    profile = build_palette_profile(URL, HTML, store=store)
    key = cache_key(URL, profile.hash)
    storage_key = store._storage_key(key)
    entry = json.loads(store.storage.load_text(storage_key))
    entry["key"] = "https://other.example|" + profile.hash
    store.storage.save_text(storage_key, json.dumps(entry))
    assert store.get(key) is None


def test_corrupt_cache_entry_is_rebuilt(store):
    profile = build_palette_profile(URL, HTML)
    key = cache_key(URL, profile.hash)
    store.storage.save_text(store._storage_key(key), "{not json")
    assert store.get(key) is None

    rebuilt = build_palette_profile(URL, HTML, store=store)
    assert rebuilt.to_dict() == profile.to_dict()
    assert store.get(key) is not None


def test_cache_clear(store):
    profile = build_palette_profile(URL, HTML, store=store)
    store.clear()
    assert store.get(cache_key(URL, profile.hash)) is None


# =============================================
# MappingOutput への変換
# =============================================

def test_convert_profile_to_mapping():
    profile = build_palette_profile(URL, HTML)
    output = convert_profile_to_mapping(profile, "mocha")
    role_map = output.role_map

    assert role_map["background.primary"].hex == get_color("mocha", "base")
    assert role_map["text.primary"].hex == get_color("mocha", "text")
    assert role_map["surface.0"].hex == get_color("mocha", "surface0")
    assert role_map["accent.interactive"].hex == get_color("mocha", "blue")
    assert role_map["primary.base"].hex == get_color("mocha", "blue")

    first, second = profile.accents.bi_accents
    assert output.metadata.primary_accent == "blue"
    assert output.metadata.secondary_accent == first
    assert output.metadata.bi_accents == [first, second]
    assert output.metadata.contrast_validated is False
    assert output.derived_scales["primary.hover"].hex == get_color("mocha", first)
    assert len(output.derived_scales) == 14


def test_convert_empty_profile_keeps_critical_roles():
    profile = build_palette_profile(URL, "")
    output = convert_profile_to_mapping(profile, "latte")
    for role in CRITICAL_ROLES:
        assert role in output.role_map
    assert output.metadata.warnings == profile.diagnostics.warnings
