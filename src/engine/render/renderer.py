"""
どこで: `engine.render` のレンダラ面。
何を: ユニットが呼び出す最小のレンダラ API（サイズ/ピクセル比設定、`render()`、`dispose()`、
      バッファ確保、introspection カウンタ）を、何もしない `StubRenderer` と
      ModernGL のスタンドアロンコンテキストで動く `HeadlessRenderer` の 2 実装で提供する。
なぜ: ウィンドウ無し・GPU 無しの環境でもユニットのコンストラクタ/描画が例外なく走るか検査できるようにし、
      GPU がある環境では実バッファの確保/解放まで含めて検査できるようにするため。
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import moderngl
import numpy as np

from .types import RGBA, RendererCapabilities, RendererInfo

logger = logging.getLogger(__name__)

RENDERER_KINDS = ("stub", "headless")


class RendererUnavailableError(RuntimeError):
    """要求されたレンダラをこの環境で生成できない。"""


class _StubBuffer:
    """`StubRenderer.allocate_buffer` が返すダミーバッファ。"""

    def __init__(self, owner: "StubRenderer", nbytes: int):
        self._owner = owner
        self.size = int(nbytes)
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._owner._on_buffer_released()


class StubRenderer:
    """何も描かないレンダラ。

    呼び出し回数と確保中バッファ数だけを数える。ユニットが参照しうる属性
    （`dom_element`, `shadow_map_enabled` など）は無害な既定値で用意する。
    """

    kind = "stub"

    def __init__(self, width: int = 640, height: int = 480):
        self.size: tuple[int, int] = (int(width), int(height))
        self.pixel_ratio: float = 1.0
        self.clear_color: RGBA = (0.0, 0.0, 0.0, 1.0)
        self.dom_element = None
        self.shadow_map_enabled = False
        self.capabilities = RendererCapabilities()
        self.info = RendererInfo()
        self.disposed = False

    # -------- 設定 --------
    def set_size(self, width: int, height: int) -> None:
        self.size = (int(width), int(height))

    def set_pixel_ratio(self, ratio: float) -> None:
        self.pixel_ratio = float(ratio)

    def set_clear_color(self, rgba: Sequence[float]) -> None:
        r, g, b, *rest = (float(c) for c in rgba)
        self.clear_color = (r, g, b, rest[0] if rest else 1.0)

    # -------- 描画 --------
    def render(self, scene: Any = None, camera: Any = None) -> None:
        self.info.render.calls += 1
        self.info.render.frame += 1
        self.info.render.triangles += int(getattr(scene, "triangle_count", 0) or 0)

    # -------- 資源 --------
    def allocate_buffer(self, data: np.ndarray) -> _StubBuffer:
        self.info.memory.geometries += 1
        return _StubBuffer(self, np.asarray(data).nbytes)

    def _on_buffer_released(self) -> None:
        self.info.memory.geometries = max(0, self.info.memory.geometries - 1)

    def dispose(self) -> None:
        self.disposed = True


class _GpuBuffer:
    """ModernGL バッファの薄いラッパ。解放時にレンダラのカウンタを 1 回だけ減らす。"""

    def __init__(self, owner: "HeadlessRenderer", raw: Any):
        self._owner = owner
        self.raw = raw
        self.size = int(raw.size)
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._owner._forget(self)
        self.raw.release()


class HeadlessRenderer(StubRenderer):
    """ModernGL のスタンドアロンコンテキスト + オフスクリーン FBO で動くレンダラ。

    `render()` はクリア色で FBO を塗りつぶすだけだが、`allocate_buffer()` は実際に
    GPU バッファを確保するため、ユニットの解放漏れがカウンタに現れる。
    """

    kind = "headless"

    def __init__(self, width: int = 640, height: int = 480):
        super().__init__(width, height)
        try:
            self.ctx = moderngl.create_standalone_context()
        except Exception as e:
            raise RendererUnavailableError(f"ModernGL standalone context unavailable: {e}") from e
        self.capabilities = RendererCapabilities(
            is_gl2=self.ctx.version_code >= 300,
            max_anisotropy=float(self.ctx.max_anisotropy),
            max_texture_size=int(self.ctx.info.get("GL_MAX_TEXTURE_SIZE", 4096)),
        )
        self.fbo = self.ctx.simple_framebuffer(self._fbo_size())
        self._buffers: list[_GpuBuffer] = []

    def _fbo_size(self) -> tuple[int, int]:
        w, h = self.size
        return (max(1, int(w * self.pixel_ratio)), max(1, int(h * self.pixel_ratio)))

    def _rebuild_fbo(self) -> None:
        # サイズ変更時は FBO を張り直す
        self.fbo.release()
        self.fbo = self.ctx.simple_framebuffer(self._fbo_size())

    def set_size(self, width: int, height: int) -> None:
        super().set_size(width, height)
        self._rebuild_fbo()

    def set_pixel_ratio(self, ratio: float) -> None:
        super().set_pixel_ratio(ratio)
        self._rebuild_fbo()

    def render(self, scene: Any = None, camera: Any = None) -> None:
        self.fbo.use()
        self.fbo.clear(*self.clear_color)
        super().render(scene, camera)

    def allocate_buffer(self, data: np.ndarray) -> "_GpuBuffer":
        raw = self.ctx.buffer(np.ascontiguousarray(data).tobytes())
        buf = _GpuBuffer(self, raw)
        self.info.memory.geometries += 1
        self._buffers.append(buf)
        return buf

    def _forget(self, buf: "_GpuBuffer") -> None:
        if buf in self._buffers:
            self._buffers.remove(buf)
            self._on_buffer_released()

    def dispose(self) -> None:
        if self.disposed:
            return
        for buf in list(self._buffers):
            buf.release()
        self.fbo.release()
        self.ctx.release()
        super().dispose()


def create_renderer(kind: str = "stub", *, width: int = 640, height: int = 480) -> StubRenderer:
    """種別名からレンダラを生成する。

    例外:
        ValueError: 未知の種別。
        RendererUnavailableError: headless を要求したが GL コンテキストを作れない。
    """
    k = (kind or "stub").strip().lower()
    if k == "stub":
        return StubRenderer(width, height)
    if k == "headless":
        return HeadlessRenderer(width, height)
    raise ValueError(f"unknown renderer kind: {kind!r} (expected one of {RENDERER_KINDS})")


__all__ = [
    "RENDERER_KINDS",
    "RendererUnavailableError",
    "StubRenderer",
    "HeadlessRenderer",
    "create_renderer",
]
