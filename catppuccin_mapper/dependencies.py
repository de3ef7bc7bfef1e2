"""
共有依存関係（サービスオブジェクト）
アクセントテーブル・プロファイルキャッシュ・設定マネージャーはプロセス起動時に一度だけ作り、
ThemeServices として呼び出し側へ明示的に渡す（モジュールレベルのシングルトンにしない）。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from catppuccin_mapper.accent_schemes import AccentSchemeEngine, validate_metric
from catppuccin_mapper.cache import ColorCache, LRUColorCache
from catppuccin_mapper.color_space import set_default_cache
from catppuccin_mapper.config_manager import ConfigManager
from catppuccin_mapper.models import MappingConfig
from catppuccin_mapper.palette_profile import ProfileStore
from catppuccin_mapper.palettes import validate_contrast_mode, validate_flavor
from catppuccin_mapper.pipeline import PipelineResult, run_offline_pipeline
from catppuccin_mapper.storage import LocalStorage, MemoryStorage, StorageBackend

PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

ENV_PREFIX = "CATPPUCCIN_MAPPER_"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    flavor: str
    contrast_mode: str
    accent_metric: str


def load_settings() -> Settings:
    """
    環境変数（.env を含む）から設定を読む。不正な値は ValueError。

    CATPPUCCIN_MAPPER_DATA_DIR / _FLAVOR / _CONTRAST_MODE / _ACCENT_METRIC
    """
    data_dir = Path(os.getenv(f"{ENV_PREFIX}DATA_DIR", "./data"))
    return Settings(
        data_dir=data_dir,
        flavor=validate_flavor(os.getenv(f"{ENV_PREFIX}FLAVOR", "mocha")),
        contrast_mode=validate_contrast_mode(os.getenv(f"{ENV_PREFIX}CONTRAST_MODE", "normal")),
        accent_metric=validate_metric(os.getenv(f"{ENV_PREFIX}ACCENT_METRIC", "rgb")),
    )


@dataclass
class ThemeServices:
    settings: Settings
    accent_engine: AccentSchemeEngine
    color_cache: ColorCache
    config_storage: StorageBackend
    profile_storage: StorageBackend
    config_manager: ConfigManager
    profile_store: ProfileStore

    def run_pipeline(
        self,
        css: str,
        domain: str,
        html: str | None = None,
        site_name: str | None = None,
        generated_at: str | None = None,
        source_type: str = "url",
    ) -> PipelineResult:
        """
        共有サービスを使ってパイプラインを実行する。

        保存済みのサイト設定（site_name、省略時は domain）があればそのフレーバーと設定を使い、
        無ければ環境変数のフレーバー・コントラストモードで自動マッピングする。
        """
        site = site_name or domain
        if site in self.config_manager.list_sites():
            flavor = self.config_manager.load_flavor(site)
            config = self.config_manager.load_mapping_config(site)
        else:
            flavor = self.settings.flavor
            config = MappingConfig(contrast_mode=self.settings.contrast_mode)
        return run_offline_pipeline(
            css,
            domain,
            flavor=flavor,
            html=html,
            config=config,
            accent_engine=self.accent_engine,
            generated_at=generated_at,
            source_type=source_type,
        )


def build_services(
    data_dir: str | Path | None = None,
    metric: str | None = None,
    in_memory: bool = False,
    color_cache: ColorCache | None = None,
    install_cache: bool = False,
) -> ThemeServices:
    """
    サービス一式を組み立てる。

    Args:
        data_dir: 設定・キャッシュの保存先（省略時は環境変数）
        metric: アクセント近傍探索の距離（"rgb" / "lab"、省略時は環境変数）
        in_memory: True ならディスクに書かない
        color_cache: 色変換キャッシュ（省略時は LRU）
        install_cache: True なら color_cache をモジュール既定のコンバーターにも設定する（プロセス全体に効く）
    """
    settings = load_settings()
    if data_dir is not None:
        settings = Settings(
            data_dir=Path(data_dir),
            flavor=settings.flavor,
            contrast_mode=settings.contrast_mode,
            accent_metric=settings.accent_metric,
        )

    if in_memory:
        config_storage: StorageBackend = MemoryStorage()
        profile_storage: StorageBackend = MemoryStorage()
    else:
        config_storage = LocalStorage(settings.data_dir / "configs")
        profile_storage = LocalStorage(settings.data_dir / "cache")

    cache = color_cache if color_cache is not None else LRUColorCache()
    if install_cache:
        set_default_cache(cache)

    return ThemeServices(
        settings=settings,
        accent_engine=AccentSchemeEngine(metric or settings.accent_metric),
        color_cache=cache,
        config_storage=config_storage,
        profile_storage=profile_storage,
        config_manager=ConfigManager(config_storage),
        profile_store=ProfileStore(profile_storage),
    )
