"""
マッピング形式の切り替え
旧形式（元の色 → Catppuccin 色名 の対応表）と新形式（ロールマップ）を
タグ付きの型で区別し、両方を受け付けるのは resolve_color_table の1か所だけにする。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from catppuccin_mapper.color_space import canonical_hex
from catppuccin_mapper.models import MappingOutput
from catppuccin_mapper.palettes import get_color, get_palette


@dataclass(frozen=True)
class LegacyEntry:
    """元サイトの1色をパレットの色名に置き換える対応"""

    original: str
    target: str
    role: str = ""
    reason: str = ""

    def to_dict(self) -> dict:
        return {"original": self.original, "target": self.target, "role": self.role, "reason": self.reason}


@dataclass
class LegacyMapping:
    entries: list[LegacyEntry] = field(default_factory=list)
    kind: Literal["legacy"] = "legacy"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "entries": [e.to_dict() for e in self.entries]}


@dataclass
class RoleMapping:
    output: MappingOutput
    kind: Literal["role"] = "role"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "output": self.output.to_dict()}


ThemeMapping = Union[LegacyMapping, RoleMapping]


def resolve_color_table(mapping: ThemeMapping, flavor: str) -> dict[str, str]:
    """
    どちらの形式からも キー → hex の平坦な表を作る。

    LegacyMapping: 正規化した元hex → パレット色（flavor で解決）。不正な元hexは除外、同じ元hexは後勝ち。
    RoleMapping: ロール（派生スケール込み）→ hex。flavor は出力側で決まっているので検証のみ。

    Raises:
        ValueError: 未知のフレーバー・色名、または未対応のマッピング型
    """
    get_palette(flavor)
    if isinstance(mapping, LegacyMapping):
        table = {}
        for entry in mapping.entries:
            original = canonical_hex(entry.original)
            if original is None:
                continue
            table[original] = get_color(flavor, entry.target)
        return table
    if isinstance(mapping, RoleMapping):
        return mapping.output.hex_table()
    raise ValueError(f"Unsupported mapping type: {type(mapping).__name__}")
