"""
どこで: `engine.render` 型定義。
何を: レンダラの introspection 面（能力フラグ / 描画・資源カウンタ）を表す軽量データクラス。
なぜ: ユニットのコンストラクタが参照する `capabilities` / `info` をスタブと実レンダラで共通化するため。
"""

from __future__ import annotations

from dataclasses import dataclass, field

RGBA = tuple[float, float, float, float]


@dataclass
class RendererCapabilities:
    """レンダラの能力フラグ。"""

    is_gl2: bool = True
    max_anisotropy: float = 1.0
    max_texture_size: int = 4096

    def get_max_anisotropy(self) -> float:
        return self.max_anisotropy


@dataclass
class RenderCounters:
    """直近フレーム/累計の描画カウンタ。"""

    calls: int = 0
    triangles: int = 0
    frame: int = 0


@dataclass
class MemoryCounters:
    """レンダラ側で確保中の資源数。"""

    geometries: int = 0
    textures: int = 0


@dataclass
class RendererInfo:
    render: RenderCounters = field(default_factory=RenderCounters)
    memory: MemoryCounters = field(default_factory=MemoryCounters)

    def reset(self) -> None:
        self.render = RenderCounters()


__all__ = ["RGBA", "RendererCapabilities", "RenderCounters", "MemoryCounters", "RendererInfo"]
