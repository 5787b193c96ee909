"""
どこで: `harness.chapter`
何を: チャプター（記述子列 + ユニットファクトリ）の取得口 `ChapterModuleProvider` と、その実装
      （パッケージを動的 import する `ModuleChapterProvider` / 値をそのまま渡す `StaticChapterProvider`）。
なぜ: オーケストレータを import 機構から切り離し、テストやスクリプトからも同じ経路で検査できるようにするため。

チャプターパッケージの規約（`ModuleChapterProvider`）:
- `<package>.config` が `VERSES`（記述子またはマッピングの列）と任意で `COLORS` を公開する。
- `<package>.animations` が `animations`（`create_unit()` を持つファクトリ）を公開する。
"""

from __future__ import annotations

import importlib
import logging
from types import ModuleType
from typing import Any, Iterable, Mapping, Protocol, Sequence

from engine.core.render_unit import ContentDescriptor, UnitFactory

logger = logging.getLogger(__name__)

DESCRIPTOR_EXPORTS: tuple[str, ...] = ("VERSES", "verses", "verseData")
COLOR_EXPORTS: tuple[str, ...] = ("COLORS", "colors")
FACTORY_EXPORTS: tuple[str, ...] = ("animations", "FACTORY")


class ChapterLoadError(RuntimeError):
    """チャプターのモジュール/公開値を解決できない。"""


class ChapterModuleProvider(Protocol):
    def get_descriptors(self) -> list[ContentDescriptor]: ...

    def get_factory(self) -> UnitFactory: ...

    @property
    def colors(self) -> Mapping[str, Any]: ...


def to_descriptors(items: Iterable[ContentDescriptor | Mapping[str, Any]]) -> list[ContentDescriptor]:
    out: list[ContentDescriptor] = []
    for item in items:
        if isinstance(item, ContentDescriptor):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(ContentDescriptor.from_mapping(item))
        else:
            raise ChapterLoadError(f"invalid content descriptor: {item!r}")
    return out


def _first_export(module: ModuleType, names: Sequence[str]) -> Any:
    for name in names:
        if hasattr(module, name):
            return getattr(module, name)
    return None


class ModuleChapterProvider:
    """`importlib` でチャプターパッケージを解決するプロバイダ。"""

    def __init__(
        self, package: str, *, config_module: str = "config", factory_module: str = "animations"
    ):
        self.package = package
        self.config_module = f"{package}.{config_module}"
        self.factory_module = f"{package}.{factory_module}"
        self._config: ModuleType | None = None
        self._factory: ModuleType | None = None

    def _import(self, name: str) -> ModuleType:
        logger.debug("importing chapter module %s", name)
        try:
            return importlib.import_module(name)
        except Exception as e:
            raise ChapterLoadError(f"failed to import {name}: {e}") from e

    def _config_mod(self) -> ModuleType:
        if self._config is None:
            self._config = self._import(self.config_module)
        return self._config

    def get_descriptors(self) -> list[ContentDescriptor]:
        items = _first_export(self._config_mod(), DESCRIPTOR_EXPORTS)
        if items is None:
            raise ChapterLoadError(f"{self.config_module} exports none of {DESCRIPTOR_EXPORTS}")
        return to_descriptors(items)

    @property
    def colors(self) -> Mapping[str, Any]:
        table = _first_export(self._config_mod(), COLOR_EXPORTS)
        return dict(table) if isinstance(table, Mapping) else {}

    def get_factory(self) -> UnitFactory:
        if self._factory is None:
            self._factory = self._import(self.factory_module)
        factory = _first_export(self._factory, FACTORY_EXPORTS)
        if factory is None or not callable(getattr(factory, "create_unit", None)):
            raise ChapterLoadError(f"{self.factory_module} exports no unit factory ({FACTORY_EXPORTS})")
        return factory


class StaticChapterProvider:
    """既に手元にある記述子列とファクトリを返すだけのプロバイダ。"""

    def __init__(
        self,
        descriptors: Iterable[ContentDescriptor | Mapping[str, Any]],
        factory: UnitFactory,
        colors: Mapping[str, Any] | None = None,
    ):
        self._descriptors = to_descriptors(descriptors)
        self._factory = factory
        self._colors = dict(colors or {})

    def get_descriptors(self) -> list[ContentDescriptor]:
        return list(self._descriptors)

    def get_factory(self) -> UnitFactory:
        return self._factory

    @property
    def colors(self) -> Mapping[str, Any]:
        return dict(self._colors)


__all__ = [
    "ChapterLoadError",
    "ChapterModuleProvider",
    "ModuleChapterProvider",
    "StaticChapterProvider",
    "to_descriptors",
]
