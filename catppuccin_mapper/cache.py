"""
変換結果メモ化用のキャッシュ抽象層
色空間変換はすべてこのCache経由でメモ化し、実装（共有/リクエスト単位）を差し替え可能にする。
キーは正規化済みの文字列（例: "lab:#1e1e2e"）。
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable

# キャッシュミスを表すセンチネル（None は「不正な色」として正当にキャッシュされる）
MISSING = object()


class ColorCache(ABC):
    """メモ化キャッシュの抽象クラス"""

    @abstractmethod
    def get(self, key: str) -> Any:
        """キーの値を返す。無ければ MISSING"""
        ...

    @abstractmethod
    def put(self, key: str, value: Any) -> Any:
        """値を登録し、実際に保持された値を返す（既存があればそちらを優先）"""
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is MISSING:
            value = self.put(key, compute())
        return value


class SharedColorCache(ColorCache):
    """
    プロセス共有の無制限キャッシュ。
    書き込みは dict.setdefault（insert-if-absent）で、先に入った値を返す。
    """

    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._data.get(key, MISSING)

    def put(self, key: str, value: Any) -> Any:
        return self._data.setdefault(key, value)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class LRUColorCache(ColorCache):
    """サイズ上限付きLRUキャッシュ（リクエスト単位やメモリ制約のある環境向け）"""

    def __init__(self, maxsize: int = 4096):
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive: {maxsize}")
        self.maxsize = maxsize
        self._data: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            if key not in self._data:
                return MISSING
            self._data.move_to_end(key)
            return self._data[key]

    def put(self, key: str, value: Any) -> Any:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
                return self._data[key]
            self._data[key] = value
            if len(self._data) > self.maxsize:
                self._data.popitem(last=False)
            return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
