"""
どこで: `common.env`
何を: `VH_*` 環境変数を型付きで読むパースヘルパ（整数 / 真偽 / 列挙文字列）。
なぜ: 設定層で `os.getenv` と境界ガードを繰り返さず、不正値は常に既定値へ倒すため。
"""

from __future__ import annotations

import os
from typing import Collection, Optional

_TRUE = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE = frozenset({"0", "false", "f", "no", "n", "off"})


def _raw(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_int(
    name: str, default: Optional[int] = None, *, min_value: Optional[int] = None
) -> Optional[int]:
    """整数環境変数を取得する。

    Parameters
    ----------
    name : str
        環境変数名（例: `VH_FPS_TEST_DURATION_MS`）。
    default : Optional[int]
        未設定・空・整数として解釈できない場合の値。
    min_value : Optional[int]
        下限。解釈できた値が下回れば下限に丸める（既定値には適用しない）。
    """
    raw = _raw(name)
    if raw is None:
        return default
    try:
        val = int(raw)
    except ValueError:
        return default
    return max(val, min_value) if min_value is not None else val


def env_bool(name: str, default: bool = False) -> bool:
    """真偽環境変数を取得（1/0, true/false, yes/no, on/off）。数値は非 0 を真とする。"""
    raw = _raw(name)
    if raw is None:
        return bool(default)
    s = raw.lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    try:
        return int(s) != 0
    except ValueError:
        return bool(default)


def env_str(name: str, default: str, *, choices: Optional[Collection[str]] = None) -> str:
    """小文字化した文字列環境変数を取得。`choices` 指定時は候補外を既定値に倒す。"""
    raw = _raw(name)
    if raw is None:
        return default
    s = raw.lower()
    if choices is not None and s not in choices:
        return default
    return s
