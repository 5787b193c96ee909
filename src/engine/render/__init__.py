"""
どこで: `engine.render` サブパッケージ。
何を: ユニットが描画を提出するレンダラ面（スタブ / ModernGL ヘッドレス）の入口。
なぜ: ユニット検査をウィンドウや GPU の有無から切り離し、資源管理を局所化するため。
"""

from .renderer import HeadlessRenderer, RendererUnavailableError, StubRenderer, create_renderer

__all__ = ["HeadlessRenderer", "RendererUnavailableError", "StubRenderer", "create_renderer"]
