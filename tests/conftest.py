"""共通フィクスチャ。

- 乱数シード固定
- スタブレンダラ / 仮想時計で回るサンプラ / メモリシンク
"""

from __future__ import annotations

from typing import Iterator

import numpy as np
import pytest

from common import settings
from engine.core.frame_clock import VirtualFrameClock
from engine.monitor.sampler import PerformanceSampler, ScoreThresholds
from engine.render.renderer import StubRenderer
from harness.sinks import MemoryReportSink

FAKE_HEAP_BYTES = 12 * 1024 * 1024


@pytest.fixture(scope="session", autouse=True)
def np_seed() -> None:
    """NumPy の乱数を固定。"""
    np.random.seed(12345)


@pytest.fixture()
def renderer() -> StubRenderer:
    return StubRenderer()


@pytest.fixture()
def virtual_clock() -> VirtualFrameClock:
    return VirtualFrameClock(60)


@pytest.fixture()
def fast_sampler(virtual_clock: VirtualFrameClock) -> PerformanceSampler:
    """仮想時計 60fps・計測窓 500ms・固定ヒープ値のサンプラ。"""
    return PerformanceSampler(
        virtual_clock,
        heap_probe=lambda: FAKE_HEAP_BYTES,
        test_duration_ms=500,
        thresholds=ScoreThresholds(),
    )


@pytest.fixture()
def memory_sink() -> MemoryReportSink:
    return MemoryReportSink()


@pytest.fixture()
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """`VH_*` を消した状態で設定を読み直し、終了後も読み直す。"""
    for name in (
        "VH_FPS_TEST_DURATION_MS",
        "VH_TARGET_FPS",
        "VH_HEAP_PROBE",
        "VH_RENDERER",
        "VH_PERSIST_REPORTS",
        "VH_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    settings.reload_from_env()
    yield
    monkeypatch.undo()
    settings.reload_from_env()
