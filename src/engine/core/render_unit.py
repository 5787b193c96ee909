"""
どこで: `engine.core` のレンダーユニット契約。
何を: 1 節（verse）ぶんのアニメーション単位 `RenderUnit` の Protocol、補助基底 `BaseUnit`、
      コンテンツ記述子 `ContentDescriptor`、ユニット生成ファクトリ `UnitFactory` とその
      レジストリ実装 `UnitRegistry` を定義する。
なぜ: ハーネスが個々のユニットの中身（形状/色/カメラ）を知らずに、構築 → advance → draw →
      release のライフサイクルだけを一様に検査できるようにするため。

契約:
- 構築は `cls(renderer, descriptor)`。
- `advance()` は 1 ステップ分の内部状態更新、`draw()` は現在状態をレンダラへ提出。
- `release()` は構築以降に確保した資源をすべて解放する。呼び出しは正確に 1 回。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from common.base_registry import BaseRegistry

REQUIRED_METHODS: tuple[str, ...] = ("advance", "draw", "release")

# 元のチャプター設定で使われていた種別キー（先勝ち）
UNIT_TYPE_KEYS: tuple[str, ...] = ("unit_type", "animation", "animationType")

logger = logging.getLogger(__name__)


class UnitReleasedError(RuntimeError):
    """解放済みユニットに対して再度 `release()` が呼ばれた。"""


@dataclass(frozen=True)
class ContentDescriptor:
    """1 ユニットを生成するためのコンテンツ記述子（不変）。

    `unit_type` はファクトリへのキー。`fields` は表示/設定用の任意データで、ハーネスは中身を見ない。
    """

    unit_type: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # 呼び出し側の dict を後から書き換えられないよう読み取り専用ビューに包む
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ContentDescriptor":
        unit_type = ""
        for key in UNIT_TYPE_KEYS:
            value = data.get(key)
            if isinstance(value, str) and value:
                unit_type = value
                break
        rest = {k: v for k, v in data.items() if k not in UNIT_TYPE_KEYS}
        return cls(unit_type=unit_type, fields=rest)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


@runtime_checkable
class RenderUnit(Protocol):
    """構築 → advance → draw → release を満たすアニメーション単位。"""

    def advance(self) -> None:
        """内部状態を 1 ステップ進める。"""

    def draw(self) -> None:
        """現在状態をレンダラへ提出する。"""

    def release(self) -> None:
        """確保した資源をすべて解放する（1 回だけ）。"""


class UnitFactory(Protocol):
    """種別タグからユニットを生成するファクトリ。未知のタグには `None` を返す。"""

    def create_unit(self, type_tag: str, renderer: Any, descriptor: ContentDescriptor) -> Any: ...


def missing_methods(obj: Any) -> list[str]:
    """契約メソッドのうち呼び出し可能でないものの名前を返す。"""
    return [name for name in REQUIRED_METHODS if not callable(getattr(obj, name, None))]


def _release_resource(resource: Any) -> None:
    for name in ("release", "dispose", "close"):
        fn = getattr(resource, name, None)
        if callable(fn):
            fn()
            return
    if callable(resource):
        resource()


class BaseUnit(ABC):
    """ユニット実装の補助基底。

    - `track()` で登録した資源を `release()` 時に逆順で解放する。
    - 2 回目の `release()` は `UnitReleasedError`。
    - 派生クラスは `step()` と `submit()` を実装する（`advance()`/`draw()` から呼ばれる）。
    """

    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        self.renderer = renderer
        self.descriptor = descriptor
        self.frame = 0
        self._resources: list[Any] = []
        self._released = False

    # -------- 資源管理 --------
    def track(self, resource: Any) -> Any:
        """解放対象として資源を登録し、そのまま返す。"""
        if self._released:
            raise UnitReleasedError(f"{type(self).__name__} is already released")
        self._resources.append(resource)
        return resource

    @property
    def released(self) -> bool:
        return self._released

    @property
    def resource_count(self) -> int:
        return len(self._resources)

    # -------- 契約 --------
    def advance(self) -> None:
        if self._released:
            raise UnitReleasedError(f"{type(self).__name__} is already released")
        self.step()
        self.frame += 1

    def draw(self) -> None:
        if self._released:
            raise UnitReleasedError(f"{type(self).__name__} is already released")
        self.submit()

    def release(self) -> None:
        if self._released:
            raise UnitReleasedError(f"{type(self).__name__} is already released")
        self._released = True
        errors: list[Exception] = []
        while self._resources:
            resource = self._resources.pop()
            try:
                _release_resource(resource)
            except Exception as e:
                # 残りの資源は解放を続け、最後にまとめて送出
                logger.warning("failed to release %r: %s", resource, e)
                errors.append(e)
        if errors:
            raise errors[0]

    @abstractmethod
    def step(self) -> None:
        """1 ステップ分の状態更新。"""

    @abstractmethod
    def submit(self) -> None:
        """現在状態の描画提出。"""


class UnitRegistry(BaseRegistry):
    """種別タグ → ユニットクラスのレジストリ（`UnitFactory` 実装）。

    ファクトリ自身が型メタデータ（`unit_class`）を公開するため、ハーネスは
    プローブインスタンスからクラスを逆算する必要がない。
    """

    def create_unit(self, type_tag: str, renderer: Any, descriptor: ContentDescriptor) -> Any:
        cls = self.unit_class(type_tag)
        if cls is None:
            return None
        return cls(renderer, descriptor)

    def unit_class(self, type_tag: str) -> Callable[..., Any] | None:
        if not self.is_registered(type_tag):
            return None
        return self.get(type_tag)

    def list_types(self) -> list[str]:
        """登録時の表記で種別タグを返す（登録順）。"""
        return [self.display_name(key) for key in self.list_all()]


__all__ = [
    "REQUIRED_METHODS",
    "ContentDescriptor",
    "RenderUnit",
    "UnitFactory",
    "BaseUnit",
    "UnitRegistry",
    "UnitReleasedError",
    "missing_methods",
]
