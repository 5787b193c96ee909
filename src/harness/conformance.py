"""
どこで: `harness.conformance`
何を: レンダーユニットのクラスを構築 → advance+draw → release の順に 1 回ずつ駆動し、各段階の所要時間と
      成否を `PhaseResult` として記録する `ConformanceTester`。チャプターの記述子列からユニット種別を重複なく
      取り出し、種別ごとにファクトリ経由で検査する一括版も提供する。
なぜ: ユニットが契約メソッドを欠いていないか、ライフサイクルを例外なく通過できるかを、描画内容に触れずに
      確かめるため。

不変条件:
- 構築できたインスタンスは必ずちょうど 1 回 `release()` を試みる（途中で失敗しても後始末で呼ぶ）。
- 後始末中の解放失敗はログに残すが、最初の失敗理由を上書きしない。
- ある種別の失敗が残りの種別の検査を止めることはない。
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from engine.core.render_unit import ContentDescriptor

CONFORMANCE_LOGGER_NAME = __name__

logger = logging.getLogger(CONFORMANCE_LOGGER_NAME)


class ContractViolation(Exception):
    """ユニットが契約メソッドを欠いている（構造的欠陥）。"""


class UnitFactoryError(Exception):
    """ファクトリが種別に対するインスタンスを返さなかった。"""


class Phase(str, Enum):
    CONSTRUCT = "construct"
    FRAME = "advance/draw"
    RELEASE = "release"


@dataclass(frozen=True)
class PhaseResult:
    unit_type: str
    phase: Phase
    duration_ms: float
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_type": self.unit_type,
            "phase": self.phase.value,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class UnitOutcome:
    """ユニット種別 1 つ分の検査結果。`errors[0]` が最初の失敗理由。"""

    name: str
    success: bool = False
    errors: list[str] = field(default_factory=list)
    frame_time_ms: float | None = None
    release_calls: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _require(instance: Any, method: str) -> Callable[[], Any]:
    fn = getattr(instance, method, None)
    if not callable(fn):
        raise ContractViolation(f"{method}() method missing")
    return fn


def _as_descriptor(item: ContentDescriptor | Mapping[str, Any]) -> ContentDescriptor:
    if isinstance(item, ContentDescriptor):
        return item
    if not isinstance(item, Mapping):
        raise TypeError(f"invalid content descriptor: {item!r}")
    return ContentDescriptor.from_mapping(item)


class ConformanceTester:
    """ユニットのライフサイクル検査器。

    - `results`: 記録順の `PhaseResult`。
    - `outcomes`: 名前（種別タグ）→ `UnitOutcome`。
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self.results: list[PhaseResult] = []
        self.outcomes: dict[str, UnitOutcome] = {}

    def reset(self) -> None:
        self.results.clear()
        self.outcomes.clear()

    def failed(self) -> list[UnitOutcome]:
        return [o for o in self.outcomes.values() if not o.success]

    # -------- 記録 --------
    def _record(
        self, name: str, phase: Phase, start: float, error: BaseException | None = None
    ) -> PhaseResult:
        duration_ms = (self._clock() - start) * 1000.0
        result = PhaseResult(
            unit_type=name,
            phase=phase,
            duration_ms=duration_ms,
            success=error is None,
            error=_message(error) if error is not None else None,
        )
        self.results.append(result)
        return result

    def _finish(self, outcome: UnitOutcome) -> UnitOutcome:
        self.outcomes[outcome.name] = outcome
        return outcome

    def _cleanup(self, instance: Any, name: str, outcome: UnitOutcome) -> None:
        """失敗後のベストエフォート解放。"""
        release = getattr(instance, "release", None)
        if not callable(release):
            return
        start = self._clock()
        outcome.release_calls += 1
        try:
            release()
        except Exception as e:
            self._record(name, Phase.RELEASE, start, e)
            logger.error("Error during release after test failure for %s: %s", name, _message(e))
        else:
            self._record(name, Phase.RELEASE, start)

    # -------- 単体 --------
    def test_unit(
        self,
        unit_class: Callable[..., Any],
        renderer: Any,
        descriptor: ContentDescriptor | Mapping[str, Any],
        *,
        name: str | None = None,
    ) -> UnitOutcome:
        """1 クラスを構築 → advance+draw → release の順に駆動して結果を返す。"""
        descriptor = _as_descriptor(descriptor)
        name = name or getattr(unit_class, "__name__", None) or repr(unit_class)
        outcome = UnitOutcome(name=name)

        start = self._clock()
        try:
            instance = unit_class(renderer, descriptor)
        except Exception as e:
            self._record(name, Phase.CONSTRUCT, start, e)
            logger.error("Error constructing unit %s: %s", name, _message(e))
            outcome.errors.append(_message(e))
            return self._finish(outcome)
        self._record(name, Phase.CONSTRUCT, start)

        phase = Phase.FRAME
        start = self._clock()
        try:
            advance = _require(instance, "advance")
            draw = _require(instance, "draw")
            advance()
            draw()
            outcome.frame_time_ms = self._record(name, Phase.FRAME, start).duration_ms

            phase = Phase.RELEASE
            start = self._clock()
            release = _require(instance, "release")
            outcome.release_calls += 1
            release()
            self._record(name, Phase.RELEASE, start)
        except Exception as e:
            self._record(name, phase, start, e)
            logger.error("Error testing unit %s (%s): %s", name, phase.value, _message(e))
            outcome.errors.append(_message(e))
            if phase is Phase.FRAME:
                self._cleanup(instance, name, outcome)
            return self._finish(outcome)

        outcome.success = True
        return self._finish(outcome)

    # -------- 一括 --------
    def _probe_class(
        self, factory: Any, tag: str, renderer: Any, descriptor: ContentDescriptor
    ) -> Callable[..., Any]:
        """ファクトリで 1 つ生成してすぐ解放し、検査対象のクラスを決める。"""
        probe = factory.create_unit(tag, renderer, descriptor)
        if not probe:
            raise UnitFactoryError(f"factory returned nothing for type {tag}")
        release = getattr(probe, "release", None)
        if callable(release):
            release()
        resolver = getattr(factory, "unit_class", None)
        unit_class = resolver(tag) if callable(resolver) else None
        return unit_class or type(probe)

    def test_all_unit_types(
        self,
        factory: Any,
        renderer: Any,
        descriptors: Iterable[ContentDescriptor | Mapping[str, Any]],
    ) -> dict[str, UnitOutcome]:
        """記述子列に現れる種別を出現順・重複なしで 1 回ずつ検査する。"""
        if not callable(getattr(factory, "create_unit", None)):
            logger.error("Invalid unit factory provided: %r has no create_unit()", factory)
            return {}

        tested: dict[str, UnitOutcome] = {}
        for item in descriptors:
            try:
                descriptor = _as_descriptor(item)
            except TypeError as e:
                # 不正な要素は飛ばし、残りの種別の検査は続ける
                logger.error("Skipping descriptor: %s", _message(e))
                continue
            tag = descriptor.unit_type
            if not tag or tag in tested:
                continue
            try:
                unit_class = self._probe_class(factory, tag, renderer, descriptor)
            except Exception as e:
                logger.error("Error preparing test for unit type %s: %s", tag, _message(e))
                outcome = UnitOutcome(name=tag, errors=[f"Failed to create/get class: {_message(e)}"])
                tested[tag] = self._finish(outcome)
                continue
            tested[tag] = self.test_unit(unit_class, renderer, descriptor, name=tag)
        return tested


__all__ = [
    "CONFORMANCE_LOGGER_NAME",
    "ConformanceTester",
    "ContractViolation",
    "Phase",
    "PhaseResult",
    "UnitFactoryError",
    "UnitOutcome",
]
