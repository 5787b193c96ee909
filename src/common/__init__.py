"""
どこで: `common` パッケージ。
何を: ハーネス全体で使う軽量基盤（BaseRegistry / 環境変数・設定 / ロギング初期化）。
なぜ: engine/harness の双方から再利用する共通部分を分離し、依存の向きを単純化するため。
"""

from .base_registry import BaseRegistry

__all__ = [
    "BaseRegistry",
]
