"""サイト設定管理のテスト"""

import json

import pytest

from catppuccin_mapper.config_manager import DEFAULT_CONFIG, DEFAULT_KEY, ConfigManager
from catppuccin_mapper.models import MappingConfig
from catppuccin_mapper.storage import LocalStorage, MemoryStorage


@pytest.fixture
def manager():
    return ConfigManager(MemoryStorage())


def test_default_is_created(manager):
    assert manager.storage.exists(DEFAULT_KEY)
    assert json.loads(manager.storage.load_text(DEFAULT_KEY)) == DEFAULT_CONFIG


def test_existing_default_is_kept():
    storage = MemoryStorage()
    storage.save_text(DEFAULT_KEY, json.dumps({**DEFAULT_CONFIG, "flavor": "latte"}))
    assert ConfigManager(storage).load("anything")["flavor"] == "latte"


def test_load_missing_returns_default(manager):
    assert manager.load("unknown-site") == DEFAULT_CONFIG


def test_save_and_load_merges_defaults(manager):
    manager.save("github", {"domain": "github.com", "flavor": "frappe", "semantic_overrides": {"info": "blue"}})
    config = manager.load("github")
    assert config["domain"] == "github.com"
    assert config["flavor"] == "frappe"
    assert config["contrast_mode"] == "normal"
    assert config["semantic_overrides"] == {"success": "", "warning": "", "danger": "", "info": "blue"}


def test_list_sites(manager):
    manager.save("github", {"flavor": "mocha"})
    manager.save("stripe", {"flavor": "latte"})
    manager.storage.save_text("archive/old.json", "{}")
    assert manager.list_sites() == ["github", "stripe"]


def test_delete(manager):
    manager.save("github", {"flavor": "mocha"})
    manager.delete("github")
    assert manager.list_sites() == []
    manager.delete("github")


def test_save_rejects_invalid(manager):
    with pytest.raises(ValueError):
        manager.save("bad", {"flavor": "dracula"})
    with pytest.raises(ValueError):
        manager.save("bad", {"primary_accent": "purple"})
    with pytest.raises(ValueError):
        manager.save("bad", {"accent_metric": "cie2000"})
    with pytest.raises(ValueError):
        manager.save("bad", {"contrast_mode": "extreme"})
    assert manager.list_sites() == []


def test_get_default_is_a_copy(manager):
    config = manager.get_default()
    config["semantic_overrides"]["info"] = "blue"
    assert DEFAULT_CONFIG["semantic_overrides"]["info"] == ""


def test_load_mapping_config(manager):
    assert manager.load_mapping_config("unknown") == MappingConfig()
    manager.save("github", {
        "flavor": "macchiato",
        "primary_accent": "green",
        "semantic_overrides": {"danger": "maroon"},
        "contrast_mode": "strict",
    })
    config = manager.load_mapping_config("github")
    assert config == MappingConfig(
        primary_accent="green",
        semantic_overrides={"danger": "maroon"},
        contrast_mode="strict",
    )
    assert manager.load_flavor("github") == "macchiato"
    assert manager.load_flavor("unknown") == "mocha"


def test_local_storage_persists(tmp_path):
    ConfigManager(LocalStorage(tmp_path)).save("github", {"flavor": "latte"})
    reopened = ConfigManager(LocalStorage(tmp_path))
    assert reopened.list_sites() == ["github"]
    assert reopened.load("github")["flavor"] == "latte"
