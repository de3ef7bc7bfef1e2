"""
ストレージ抽象層
設定JSON・パレットプロファイルのキャッシュはこのBackend経由で読み書きし、
ローカルパスに直接依存しない。テストやバッチ処理ではメモリ実装に差し替えられる。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from threading import Lock
import shutil


def validate_key(key: str) -> str:
    """ストレージキーは base_dir 配下の相対パスに限る"""
    path = PurePosixPath(key)
    if not key or path.is_absolute() or ".." in path.parts:
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class StorageBackend(ABC):
    """ストレージバックエンドの抽象クラス"""

    @abstractmethod
    def save(self, key: str, data: bytes) -> str:
        """データを保存し、キーを返す"""
        ...

    @abstractmethod
    def load(self, key: str) -> bytes:
        """キーからデータを読み込む（無ければ FileNotFoundError）"""
        ...

    def load_text(self, key: str, encoding: str = "utf-8") -> str:
        return self.load(key).decode(encoding)

    def save_text(self, key: str, text: str, encoding: str = "utf-8") -> str:
        return self.save(key, text.encode(encoding))

    @abstractmethod
    def list_keys(self, prefix: str = "", suffix: str = "") -> list[str]:
        """指定プレフィックス/サフィックスに一致するキー一覧を返す（ソート済み）"""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """キーを削除（プレフィックスなら配下すべて）。無ければ何もしない"""
        ...


class LocalStorage(StorageBackend):
    """ローカルファイルシステムベースのストレージ"""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        return self.base_dir / validate_key(key)

    def save(self, key: str, data: bytes) -> str:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return key

    def load(self, key: str) -> bytes:
        path = self._resolve(key)
        if not path.is_file():
            raise FileNotFoundError(f"Key not found: {key}")
        return path.read_bytes()

    def load_text(self, key: str, encoding: str = "utf-8") -> str:
        path = self._resolve(key)
        if not path.is_file():
            raise FileNotFoundError(f"Key not found: {key}")
        return path.read_text(encoding=encoding)

    def save_text(self, key: str, text: str, encoding: str = "utf-8") -> str:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding=encoding)
        return key

    def list_keys(self, prefix: str = "", suffix: str = "") -> list[str]:
        search_dir = self._resolve(prefix) if prefix else self.base_dir
        if not search_dir.exists():
            return []
        if search_dir.is_file():
            rel = search_dir.relative_to(self.base_dir).as_posix()
            return [rel] if rel.endswith(suffix) else []
        results = []
        for path in search_dir.rglob("*"):
            if path.is_file():
                rel = path.relative_to(self.base_dir).as_posix()
                if rel.endswith(suffix):
                    results.append(rel)
        return sorted(results)

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)


class MemoryStorage(StorageBackend):
    """プロセス内のdictに保持するストレージ（永続化しない）"""

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self._lock = Lock()

    def save(self, key: str, data: bytes) -> str:
        with self._lock:
            self._data[validate_key(key)] = bytes(data)
        return key

    def load(self, key: str) -> bytes:
        with self._lock:
            if key not in self._data:
                raise FileNotFoundError(f"Key not found: {key}")
            return self._data[key]

    def list_keys(self, prefix: str = "", suffix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix) and k.endswith(suffix))

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data or any(k.startswith(key.rstrip("/") + "/") for k in self._data)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
            nested = key.rstrip("/") + "/"
            for k in [k for k in self._data if k.startswith(nested)]:
                del self._data[k]
