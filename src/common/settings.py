"""
どこで: `common.settings`
何を: ハーネスの実行パラメータ（計測窓・FPS・ヒーププローブ・レンダラ種別など）を型付きで一元管理する。
なぜ: サンプラ/オーケストレータ/CLI で既定値がばらつかないようにし、テストから差し替えやすくするため。
"""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_int, env_str

HEAP_PROBES = {"rss", "tracemalloc", "none"}
RENDERER_KINDS = {"stub", "headless"}


@dataclass
class _Settings:
    # Performance Sampler
    FPS_TEST_DURATION_MS: int = 5000
    TARGET_FPS: int = 60
    HEAP_PROBE: str = "rss"

    # Orchestrator
    RENDERER: str = "stub"
    PERSIST_REPORTS: bool = True

    # Misc
    LOG_LEVEL: str = "info"


_settings = _Settings()


def reload_from_env() -> None:
    """環境変数から設定を再読込。

    - 数値は下限丸め（計測窓は 1ms、FPS は 1）。
    - 列挙値は候補外なら既定値。
    """
    _settings.FPS_TEST_DURATION_MS = env_int("VH_FPS_TEST_DURATION_MS", 5000, min_value=1) or 5000
    _settings.TARGET_FPS = env_int("VH_TARGET_FPS", 60, min_value=1) or 60
    _settings.HEAP_PROBE = env_str("VH_HEAP_PROBE", "rss", choices=HEAP_PROBES)

    _settings.RENDERER = env_str("VH_RENDERER", "stub", choices=RENDERER_KINDS)
    _settings.PERSIST_REPORTS = env_bool("VH_PERSIST_REPORTS", True)

    _settings.LOG_LEVEL = env_str("VH_LOG_LEVEL", "info")


def get() -> _Settings:
    """現在の設定スナップショットを返す。"""
    return _settings


# 初期ロード
reload_from_env()


__all__ = ["get", "reload_from_env", "_Settings", "HEAP_PROBES", "RENDERER_KINDS"]
