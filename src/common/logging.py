"""
どこで: `common.logging`
何を: ハーネスの入口（CLI）で 1 度だけ適用する最小ロギング構成と、レベル名の解決。
なぜ: 各モジュールは `logging.getLogger(__name__)` に書くだけにし、ハンドラ構成は入口に集約するため。
      テストや埋め込み先が先に構成済みなら上書きしない。
"""

from __future__ import annotations

import logging

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_level(level: int | str) -> int:
    """`"info"` / `"WARNING"` / `"10"` / `20` をレベル値にする。未知の名前は INFO。"""
    if isinstance(level, int):
        return level
    text = level.strip()
    if text.isdigit():
        return int(text)
    value = logging.getLevelName(text.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_default_logging(level: int | str = "INFO") -> None:
    """ルートロガーにハンドラが無いときだけ `basicConfig` を適用する。

    指定レベルはルートロガーと追加したコンソールハンドラの両方に設定する。検証中に
    `CapturingSink` がルートのレベルを一時的に下げても、コンソールの表示量は変わらない。
    """
    root = logging.getLogger()
    if root.handlers:
        return
    lvl = resolve_level(level)
    logging.basicConfig(level=lvl, format=DEFAULT_FORMAT)
    for handler in root.handlers:
        handler.setLevel(lvl)


__all__ = ["setup_default_logging", "resolve_level", "DEFAULT_FORMAT"]
