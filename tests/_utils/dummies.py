"""検査対象として使うダミーユニットとファクトリ。

どのユニットもクラス属性のカウンタで構築/解放回数を数える（`reset_counters()` で 0 に戻す）。
"""

from __future__ import annotations

from typing import Any

from engine.core.render_unit import ContentDescriptor, UnitRegistry


class CountingUnit:
    """契約を満たす最小ユニット。"""

    constructed = 0
    released = 0

    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        type(self).constructed += 1
        self.renderer = renderer
        self.descriptor = descriptor
        self.frames = 0

    def advance(self) -> None:
        self.frames += 1

    def draw(self) -> None:
        self.renderer.render()

    def release(self) -> None:
        type(self).released += 1

    @classmethod
    def reset_counters(cls) -> None:
        cls.constructed = 0
        cls.released = 0


class NoDrawUnit:
    """`draw()` を持たない（構造的欠陥）。"""

    released = 0

    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        self.renderer = renderer

    def advance(self) -> None:
        pass

    def release(self) -> None:
        type(self).released += 1


class RaisingAdvanceUnit(CountingUnit):
    """`advance()` が必ず失敗する。"""

    constructed = 0
    released = 0

    def advance(self) -> None:
        raise RuntimeError("advance exploded")


class RaisingReleaseUnit(RaisingAdvanceUnit):
    """`advance()` も `release()` も失敗する。"""

    constructed = 0
    released = 0

    def release(self) -> None:
        type(self).released += 1
        raise RuntimeError("release exploded")


class BrokenConstructorUnit:
    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        raise ValueError("bad descriptor")


class NullFactory:
    """特定の種別に対して何も返さないファクトリ（それ以外は `CountingUnit`）。"""

    def __init__(self, missing: str):
        self.missing = missing
        self.calls: list[str] = []

    def create_unit(self, type_tag: str, renderer: Any, descriptor: ContentDescriptor) -> Any:
        self.calls.append(type_tag)
        if type_tag == self.missing:
            return None
        return CountingUnit(renderer, descriptor)


def counting_registry(*tags: str) -> UnitRegistry:
    """指定タグをすべて `CountingUnit` に割り当てたレジストリ。"""
    reg = UnitRegistry()
    for tag in tags:
        reg.register(tag)(CountingUnit)
    return reg


def reset_all() -> None:
    for cls in (CountingUnit, RaisingAdvanceUnit, RaisingReleaseUnit):
        cls.reset_counters()
    NoDrawUnit.released = 0
