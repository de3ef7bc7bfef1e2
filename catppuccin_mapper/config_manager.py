"""
サイト設定の管理（JSON永続化）
サイトごとのマッピング設定（フレーバー・アクセント指定・セマンティック上書き・コントラスト基準）を管理する。
"""

from __future__ import annotations

import copy
import json

from catppuccin_mapper.accent_schemes import validate_metric
from catppuccin_mapper.models import MappingConfig
from catppuccin_mapper.palettes import validate_flavor
from catppuccin_mapper.storage import StorageBackend

DEFAULT_KEY = "_default.json"

DEFAULT_CONFIG = {
    "domain": "",
    "flavor": "mocha",
    # 空文字は「自動」（主アクセントはシグネチャの推奨、副アクセントは色相から選択）
    "primary_accent": "",
    "secondary_accent": "",
    "semantic_overrides": {
        "success": "",
        "warning": "",
        "danger": "",
        "info": "",
    },
    # strict(4.5) / normal(3.0) / relaxed(2.5)
    "contrast_mode": "normal",
    # バイアクセントの近傍探索: rgb / lab
    "accent_metric": "rgb",
    "notes": "",
}


def validate_site_config(config: dict) -> dict:
    """保存前の検証。未知のフレーバー・アクセント・モードは ValueError"""
    validate_flavor(config.get("flavor", DEFAULT_CONFIG["flavor"]))
    validate_metric(config.get("accent_metric", DEFAULT_CONFIG["accent_metric"]))
    MappingConfig.from_dict(config)
    return config


class ConfigManager:
    """サイト設定のCRUD管理"""

    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self._ensure_default()

    def _ensure_default(self):
        """デフォルト設定が存在しなければ作成"""
        if not self.storage.exists(DEFAULT_KEY):
            self.storage.save_text(
                DEFAULT_KEY,
                json.dumps(DEFAULT_CONFIG, ensure_ascii=False, indent=2),
            )

    def list_sites(self) -> list[str]:
        """登録済みサイト名一覧を返す"""
        keys = self.storage.list_keys(suffix=".json")
        return [
            k.replace(".json", "")
            for k in keys
            if k != DEFAULT_KEY and "/" not in k
        ]

    def load(self, site_name: str) -> dict:
        """
        サイト設定を読み込む。存在しなければデフォルトを返す。
        保存済みの設定に無いキーはデフォルトで補う。
        """
        config = json.loads(self.storage.load_text(DEFAULT_KEY))
        key = f"{site_name}.json"
        if self.storage.exists(key):
            saved = json.loads(self.storage.load_text(key))
            overrides = {**config.get("semantic_overrides", {}), **saved.get("semantic_overrides", {})}
            config.update(saved)
            config["semantic_overrides"] = overrides
        return config

    def save(self, site_name: str, config: dict) -> None:
        """サイト設定を検証して保存"""
        validate_site_config(config)
        key = f"{site_name}.json"
        self.storage.save_text(
            key,
            json.dumps(config, ensure_ascii=False, indent=2),
        )

    def delete(self, site_name: str) -> None:
        key = f"{site_name}.json"
        if self.storage.exists(key):
            self.storage.delete(key)

    def get_default(self) -> dict:
        """デフォルト設定のコピーを返す"""
        return copy.deepcopy(DEFAULT_CONFIG)

    # =============================================
    # マッピング用の変換
    # =============================================

    def load_mapping_config(self, site_name: str) -> MappingConfig:
        """サイト設定から MappingConfig を作る（空欄は自動扱い）"""
        return MappingConfig.from_dict(self.load(site_name))

    def load_flavor(self, site_name: str) -> str:
        return validate_flavor(self.load(site_name).get("flavor") or DEFAULT_CONFIG["flavor"])
