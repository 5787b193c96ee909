"""
どこで: `engine.core` のフレームスケジューラ。
何を: 「次のフレームで 1 回コールバックする」プリミティブ `FrameScheduler` と、その実装
      （実時間の `RealtimeFrameClock` / 仮想時間の `VirtualFrameClock`）。
なぜ: サンプリングループをディスプレイのリフレッシュに依存させず、テストでは仮想時計で
      即時に回せるようにするため。

補足:
- どちらの実装も実行中の asyncio ループ上でコールバックを積む（`get_running_loop()`）。
- 返り値のハンドルは `cancel()` を持つ（`asyncio.Handle` / `asyncio.TimerHandle`）。
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol


class CancelHandle(Protocol):
    """スケジュール済み tick を取り消すためのハンドル。"""

    def cancel(self) -> None: ...


class FrameScheduler(Protocol):
    """1 tick = 1 コールバックのスケジューラ。"""

    def now(self) -> float:
        """現在時刻（秒）。単調増加であること。"""
        ...

    def schedule_tick(self, callback: Callable[[], None]) -> CancelHandle:
        """次の tick で `callback` を 1 回だけ呼ぶ。"""
        ...


class RealtimeFrameClock:
    """`time.perf_counter` と `loop.call_later` による実時間スケジューラ。"""

    def __init__(self, fps: float = 60.0):
        if fps <= 0:
            raise ValueError("fps は正の値である必要があります")
        self.fps = float(fps)
        self._interval = 1.0 / self.fps

    def now(self) -> float:
        return time.perf_counter()

    def schedule_tick(self, callback: Callable[[], None]) -> CancelHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(self._interval, callback)


class VirtualFrameClock:
    """仮想時間のスケジューラ。

    tick ごとに時刻を `1/fps` 秒進めてからコールバックする。待ち時間は発生しないため、
    5 秒の計測窓もテストでは一瞬で終わる。
    """

    def __init__(self, fps: float = 60.0, *, start: float = 0.0):
        if fps <= 0:
            raise ValueError("fps は正の値である必要があります")
        self.fps = float(fps)
        self._interval = 1.0 / self.fps
        self._time = float(start)
        self.ticks = 0

    def now(self) -> float:
        return self._time

    def advance(self, seconds: float) -> None:
        """時刻を手動で進める（tick を伴わない）。"""
        self._time += float(seconds)

    def schedule_tick(self, callback: Callable[[], None]) -> CancelHandle:
        loop = asyncio.get_running_loop()
        return loop.call_soon(self._fire, callback)

    def _fire(self, callback: Callable[[], None]) -> None:
        self.ticks += 1
        self._time += self._interval
        callback()


__all__ = ["CancelHandle", "FrameScheduler", "RealtimeFrameClock", "VirtualFrameClock"]
