"""
どこで: `chapters.sample.animations`
何を: サンプルチャプターのユニット実装 3 種と、それらを登録したファクトリ `animations`。
なぜ: ハーネスを実際のユニットで通しで動かすための最小の題材。見た目の正しさは扱わない。
"""

from __future__ import annotations

from typing import Any

import numpy as np

from engine.core.render_unit import BaseUnit, ContentDescriptor, UnitRegistry

from .config import COLORS

animations = UnitRegistry()


class _Scene:
    """レンダラへ渡すだけの軽量シーン（三角形数の目安のみ持つ）。"""

    def __init__(self, triangle_count: int = 0):
        self.triangle_count = int(triangle_count)


class _SampleUnit(BaseUnit):
    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        super().__init__(renderer, descriptor)
        renderer.set_clear_color(COLORS["background"])
        self.scene = _Scene()

    def _upload(self, data: np.ndarray) -> None:
        allocate = getattr(self.renderer, "allocate_buffer", None)
        if callable(allocate):
            self.track(allocate(data))

    def submit(self) -> None:
        self.renderer.render(self.scene)


@animations.register("superposition")
class SuperpositionUnit(_SampleUnit):
    """球面上の粒子群がゆっくり回転する。"""

    def __init__(self, renderer: Any, descriptor: ContentDescriptor, count: int = 512):
        super().__init__(renderer, descriptor)
        rng = np.random.default_rng(int(descriptor.get("verse_number", 0) or 0))
        v = rng.normal(size=(count, 3)).astype(np.float32)
        self.points = v / np.linalg.norm(v, axis=1, keepdims=True)
        self.angle = 0.0
        self.scene.triangle_count = count * 2
        self._upload(self.points)

    def step(self) -> None:
        self.angle += 0.01
        c, s = np.cos(0.01), np.sin(0.01)
        rot = np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]], dtype=np.float32)
        self.points = self.points @ rot.T


@animations.register("quantumField")
class QuantumFieldUnit(_SampleUnit):
    """格子状の場が正弦波で揺れる。"""

    def __init__(self, renderer: Any, descriptor: ContentDescriptor, size: int = 48):
        super().__init__(renderer, descriptor)
        axis = np.linspace(-1.0, 1.0, size, dtype=np.float32)
        self.xx, self.yy = np.meshgrid(axis, axis)
        self.heights = np.zeros_like(self.xx)
        self.t = 0.0
        self.scene.triangle_count = (size - 1) * (size - 1) * 2
        self._upload(np.stack([self.xx, self.yy, self.heights], axis=-1))

    def step(self) -> None:
        self.t += 1.0 / 60.0
        r = np.sqrt(self.xx**2 + self.yy**2)
        self.heights = 0.1 * np.sin(6.0 * r - 2.0 * self.t)


@animations.register("entanglement")
class EntanglementUnit(_SampleUnit):
    """対になった粒子が原点対称に運動する。"""

    def __init__(self, renderer: Any, descriptor: ContentDescriptor, pairs: int = 64):
        super().__init__(renderer, descriptor)
        rng = np.random.default_rng(7)
        self.a = rng.uniform(-1.0, 1.0, size=(pairs, 3)).astype(np.float32)
        self.velocity = rng.normal(scale=0.01, size=(pairs, 3)).astype(np.float32)
        self.scene.triangle_count = pairs * 4
        self._upload(np.concatenate([self.a, -self.a]))

    @property
    def b(self) -> np.ndarray:
        return -self.a

    def step(self) -> None:
        self.a = self.a + self.velocity
        # 単位立方体の外へ出た成分は反射
        out = np.abs(self.a) > 1.0
        self.velocity[out] *= -1.0
        self.a = np.clip(self.a, -1.0, 1.0)
