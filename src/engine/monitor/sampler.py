"""
どこで: `engine.monitor` の計測サブモジュール。
何を: 呼び出し側が渡すフレームコールバックを固定の計測窓（既定 5 秒）だけスケジューラで回し、
      平均 FPS を求める。別途ヒーププローブ（psutil の RSS / tracemalloc）でメモリを 1 点採取し、
      履歴から FPS/メモリの定性スコアを算出する。
なぜ: ユニットが持続実行に耐えるか（フレームレート・メモリ増加）を、描画内容に依存せず粗く判定するため。

補足:
- `test_fps()` は asyncio のコルーチン。計測窓が過ぎた tick で Future を解決する。
- 1 インスタンスで同時に走る `test_fps()` は 1 つだけ（2 本目は `SamplerBusyError`）。
- `stop_test()` 後に遅れて届いた tick は run トークンで無視し、次の計測に混入させない。
"""

from __future__ import annotations

import asyncio
import logging
import os
import tracemalloc
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

import numpy as np
import psutil

from common.settings import get as get_settings
from util.utils import harness_config

from ..core.frame_clock import CancelHandle, FrameScheduler, RealtimeFrameClock

logger = logging.getLogger(__name__)

MB = 1024 * 1024

HeapProbe = Callable[[], Optional[int]]


class SamplerBusyError(RuntimeError):
    """同じサンプラで FPS 計測が既に進行中。"""


# -------- heap probes --------
def rss_heap_probe() -> int | None:
    """プロセス RSS（bytes）。psutil がプロセス情報を読めない環境では None。"""
    try:
        return int(psutil.Process(os.getpid()).memory_info().rss)
    except psutil.Error:
        return None


def tracemalloc_heap_probe() -> int | None:
    """tracemalloc が追跡中なら現在の割当量（bytes）、そうでなければ None。"""
    if not tracemalloc.is_tracing():
        return None
    current, _peak = tracemalloc.get_traced_memory()
    return int(current)


def unsupported_heap_probe() -> int | None:
    return None


HEAP_PROBES: dict[str, HeapProbe] = {
    "rss": rss_heap_probe,
    "tracemalloc": tracemalloc_heap_probe,
    "none": unsupported_heap_probe,
}


def resolve_heap_probe(name: str) -> HeapProbe:
    try:
        return HEAP_PROBES[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown heap probe: {name!r} (expected one of {sorted(HEAP_PROBES)})"
        ) from None


# -------- scoring --------
@dataclass(frozen=True)
class ScoreThresholds:
    """定性スコアの閾値。FPS は下限、メモリは上限（MB）。"""

    excellent_fps: float = 55.0
    good_fps: float = 45.0
    fair_fps: float = 30.0
    good_memory_mb: float = 50.0
    fair_memory_mb: float = 100.0

    @classmethod
    def from_config(cls, cfg: dict[str, Any] | None = None) -> "ScoreThresholds":
        """`harness.thresholds` から上書きする（不正値は既定値のまま）。"""
        section = (cfg if cfg is not None else harness_config()).get("thresholds", {})
        if not isinstance(section, dict):
            return cls()
        values: dict[str, float] = {}
        for name in cls.__dataclass_fields__:
            raw = section.get(name)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                values[name] = float(raw)
        return cls(**values)


def performance_score(average_fps: float, thresholds: ScoreThresholds = ScoreThresholds()) -> str:
    if average_fps >= thresholds.excellent_fps:
        return "excellent"
    if average_fps >= thresholds.good_fps:
        return "good"
    if average_fps >= thresholds.fair_fps:
        return "fair"
    return "poor"


def memory_efficiency(peak_bytes: int, thresholds: ScoreThresholds = ScoreThresholds()) -> str:
    if peak_bytes <= 0:
        return "unknown"
    if peak_bytes < thresholds.good_memory_mb * MB:
        return "good"
    if peak_bytes < thresholds.fair_memory_mb * MB:
        return "fair"
    return "poor"


@dataclass(frozen=True)
class PerformanceSummary:
    """`PerformanceSampler.get_results()` の集計値（表示用に丸めた文字列を含む）。"""

    average_fps: str
    max_memory_mb: str
    performance_score: str
    memory_efficiency: str
    tests_run: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PerformanceSampler:
    """フレームレートとヒープ使用量のサンプラ。

    - `frame_rates`: `test_fps()` ごとの平均 FPS（整数）の履歴。
    - `memory_usage`: `test_memory_usage()` ごとの採取値（bytes）の履歴。
    """

    def __init__(
        self,
        scheduler: FrameScheduler | None = None,
        *,
        heap_probe: HeapProbe | None = None,
        test_duration_ms: int | None = None,
        thresholds: ScoreThresholds | None = None,
    ):
        settings = get_settings()
        self.scheduler: FrameScheduler = scheduler or RealtimeFrameClock(settings.TARGET_FPS)
        self.heap_probe: HeapProbe = heap_probe or resolve_heap_probe(settings.HEAP_PROBE)
        self.test_duration_ms = int(
            test_duration_ms if test_duration_ms is not None else settings.FPS_TEST_DURATION_MS
        )
        self.thresholds = thresholds or ScoreThresholds.from_config()
        self.frame_rates: list[int] = []
        self.memory_usage: list[int] = []
        self._handle: CancelHandle | None = None
        self._future: asyncio.Future[int] | None = None
        self._run_id = 0

    @property
    def is_running(self) -> bool:
        return self._future is not None and not self._future.done()

    # -------- FPS --------
    async def test_fps(self, frame_callback: Callable[[], Any]) -> int:
        """計測窓のあいだ tick ごとに `frame_callback` を呼び、平均 FPS を返す。

        コールバックの例外は記録してループを継続する（1 フレームの失敗で計測を止めない）。
        フレーム数は計測窓を閉じる最後の tick も含めた tick 数（例外を出した tick も 1 と数える）。
        """
        if self.is_running:
            raise SamplerBusyError("FPS test already running on this sampler")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[int] = loop.create_future()
        self._future = future
        self._run_id += 1
        run_id = self._run_id
        duration_s = self.test_duration_ms / 1000.0
        start = self.scheduler.now()
        frames = 0

        def _tick() -> None:
            nonlocal frames
            if run_id != self._run_id or future.done():
                return
            frames += 1
            elapsed = self.scheduler.now() - start
            if elapsed < duration_s:
                try:
                    frame_callback()
                except Exception:
                    logger.exception("Error during frame callback in FPS test")
                self._handle = self.scheduler.schedule_tick(_tick)
                return
            self._handle = None
            fps = int(round(frames / elapsed)) if elapsed > 0 else 0
            self.frame_rates.append(fps)
            logger.info("FPS test result: %d FPS over %.2fs (%d frames)", fps, elapsed, frames)
            future.set_result(fps)

        self._handle = self.scheduler.schedule_tick(_tick)
        try:
            return await future
        finally:
            if self._future is future:
                self._future = None

    # -------- memory --------
    def test_memory_usage(self) -> int | None:
        """ヒープ使用量を 1 点採取して返す。非対応環境では None（失敗ではない）。"""
        used = self.heap_probe()
        if used is None:
            logger.warning("Memory usage reporting not supported in this environment.")
            return None
        used = int(used)
        self.memory_usage.append(used)
        logger.info("Memory test result: %.2f MB used", used / MB)
        return used

    # -------- control --------
    def stop_test(self) -> None:
        """進行中の FPS ループを取り消す（無ければ何もしない）。"""
        # 遅れて届く tick を無効化
        self._run_id += 1
        stopped = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            stopped = True
        if self._future is not None and not self._future.done():
            self._future.cancel()
            stopped = True
        self._future = None
        if stopped:
            logger.info("Performance test stopped.")

    def reset(self) -> None:
        """履歴を消去し、進行中のループも止める。"""
        self.stop_test()
        self.frame_rates.clear()
        self.memory_usage.clear()

    # -------- aggregate --------
    def get_results(self) -> PerformanceSummary:
        average_fps = float(np.mean(self.frame_rates)) if self.frame_rates else 0.0
        max_memory = int(np.max(self.memory_usage)) if self.memory_usage else 0
        return PerformanceSummary(
            average_fps=f"{average_fps:.1f}",
            max_memory_mb=f"{max_memory / MB:.2f}",
            performance_score=performance_score(average_fps, self.thresholds),
            memory_efficiency=memory_efficiency(max_memory, self.thresholds),
            tests_run=len(self.frame_rates),
        )


__all__ = [
    "HeapProbe",
    "HEAP_PROBES",
    "PerformanceSampler",
    "PerformanceSummary",
    "SamplerBusyError",
    "ScoreThresholds",
    "memory_efficiency",
    "performance_score",
    "resolve_heap_probe",
    "rss_heap_probe",
    "tracemalloc_heap_probe",
]
