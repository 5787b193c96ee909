"""
どこで: `harness.validator`
何を: チャプター 1 つ分の検証を loading → testing-conformance → testing-performance → reporting → done
      （回復不能なら failed）の順に進める `ChapterValidator`。
なぜ: 読み込み・適合検査・性能計測・付随診断の収集を 1 回の実行にまとめ、呼び出し側には例外ではなく
      常に 1 つの `Report` を返すため。

段階の要点:
- 読み込み失敗は致命的。残りの段階を飛ばして FAILED のレポートを作る。
- 適合検査は種別ごとに成功/失敗をロガーへ記録する。
- 性能計測はベストエフォート。先頭記述子のユニットを生かしたまま advance+draw を回し、例外は記録のみ。
- 実行中は `CapturingSink` をルートロガーと `warnings` に取り付け、終了時に必ず外す。
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping

from common.settings import get as get_settings
from engine.core.render_unit import ContentDescriptor, UnitFactory, missing_methods
from engine.monitor.sampler import PerformanceSampler, PerformanceSummary
from engine.render.renderer import RendererUnavailableError, StubRenderer, create_renderer

from .chapter import ChapterModuleProvider
from .conformance import ConformanceTester, UnitOutcome
from .diagnostics import CapturingSink, DiagnosticSink
from .report import Report, ValidationLogger
from .sinks import ReportSink

logger = logging.getLogger(__name__)


class ValidationState(str, Enum):
    LOADING = "loading"
    TESTING_CONFORMANCE = "testing-conformance"
    TESTING_PERFORMANCE = "testing-performance"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


def _live_buffers(renderer: Any) -> int | None:
    memory = getattr(getattr(renderer, "info", None), "memory", None)
    value = getattr(memory, "geometries", None)
    return int(value) if isinstance(value, int) else None


class ChapterValidator:
    """チャプター検証のオーケストレータ。

    Parameters
    ----------
    name : str
        レポートの対象名（チャプター名）。
    provider : ChapterModuleProvider
        記述子列とファクトリの取得口。
    renderer : Any, optional
        共有するレンダラ。省略時は `renderer_kind`（既定: 設定 `VH_RENDERER`）から生成し、終了時に破棄する。
    sampler, tester, diagnostics : optional
        差し替え用（テストでは `VirtualFrameClock` を持つサンプラなど）。
    report_sink : ReportSink, optional
        レポートの保存先。`persist=False` なら保存しない。
    """

    def __init__(
        self,
        name: str,
        provider: ChapterModuleProvider,
        *,
        renderer: Any = None,
        renderer_kind: str | None = None,
        sampler: PerformanceSampler | None = None,
        tester: ConformanceTester | None = None,
        report_sink: ReportSink | None = None,
        diagnostics: DiagnosticSink | None = None,
        persist: bool | None = None,
    ):
        settings = get_settings()
        self.name = name
        self.provider = provider
        self.logger = ValidationLogger(name, sink=report_sink)
        self.tester = tester or ConformanceTester()
        self.sampler = sampler or PerformanceSampler()
        self.diagnostics: DiagnosticSink = (
            diagnostics if diagnostics is not None else CapturingSink()
        )
        self.persist = settings.PERSIST_REPORTS if persist is None else bool(persist)
        self.renderer_kind = renderer_kind or settings.RENDERER
        self._renderer = renderer
        self._owns_renderer = False
        self.state = ValidationState.LOADING
        self.state_history: list[ValidationState] = [ValidationState.LOADING]
        self.outcomes: dict[str, UnitOutcome] = {}
        self.performance: PerformanceSummary | None = None

    def _enter(self, state: ValidationState) -> None:
        self.state = state
        self.state_history.append(state)
        logger.debug("[%s] state -> %s", self.name, state.value)

    # -------- entry points --------
    def run(self) -> Report:
        """同期版。内部で新しいイベントループを回す。"""
        return asyncio.run(self.validate_chapter())

    async def validate_chapter(self) -> Report:
        """検証を一通り実行してレポートを返す（検証上の失敗で例外は送出しない）。"""
        self.logger.info(f"Starting validation for {self.name}")
        self.diagnostics.clear()
        failed = False
        try:
            with self.diagnostics.capture():
                failed = not await self._run_phases()
        except Exception as e:
            self.logger.error("Chapter validation failed with unexpected error", e)
            failed = True
        finally:
            self._release_renderer()

        self._log_captured()
        self._enter(ValidationState.REPORTING)
        report = self._build_report()
        self.logger.info(f"Validation complete for {self.name}: {report.status}")
        if self.persist:
            self.logger.save_report(report)
        self._enter(ValidationState.FAILED if failed else ValidationState.DONE)
        return report

    # -------- phases --------
    async def _run_phases(self) -> bool:
        """各段階を順に実行する。読み込みに失敗した場合のみ False。"""
        self.logger.info("Importing chapter modules...")
        try:
            descriptors = self.provider.get_descriptors()
            factory = self.provider.get_factory()
        except Exception as e:
            self.logger.error("Failed to import chapter modules", e)
            return False
        if not descriptors:
            self.logger.error("Chapter exports no content descriptors")
            return False
        self.logger.success(f"Chapter modules imported successfully ({len(descriptors)} descriptors).")

        renderer = self._obtain_renderer()

        self._enter(ValidationState.TESTING_CONFORMANCE)
        self._test_conformance(factory, renderer, descriptors)

        self._enter(ValidationState.TESTING_PERFORMANCE)
        await self._test_performance(factory, renderer, descriptors)
        return True

    def _obtain_renderer(self) -> Any:
        if self._renderer is not None:
            self.logger.info(f"Using provided renderer ({type(self._renderer).__name__}).")
            return self._renderer
        try:
            self._renderer = create_renderer(self.renderer_kind)
        except RendererUnavailableError as e:
            self.logger.warn(f"Renderer '{self.renderer_kind}' unavailable, falling back to stub: {e}")
            self._renderer = StubRenderer()
        self._owns_renderer = True
        self.logger.info(f"Using {self._renderer.kind} renderer for basic tests.")
        return self._renderer

    def _release_renderer(self) -> None:
        if not self._owns_renderer or self._renderer is None:
            return
        try:
            self._renderer.dispose()
        except Exception as e:
            self.logger.error("Failed to dispose renderer", e)
        self._renderer = None
        self._owns_renderer = False

    def _test_conformance(
        self, factory: UnitFactory, renderer: Any, descriptors: list[ContentDescriptor]
    ) -> None:
        self.logger.info("Testing unit structure and basic execution...")
        baseline = _live_buffers(renderer)
        self.outcomes = self.tester.test_all_unit_types(factory, renderer, descriptors)
        if not self.outcomes:
            self.logger.warn("No unit types found to test.")
            return

        failures = 0
        for outcome in self.outcomes.values():
            if outcome.success:
                self.logger.success(f"Unit {outcome.name} passed basic tests.")
            else:
                self.logger.error(f"Unit {outcome.name} failed: {', '.join(outcome.errors)}")
                failures += 1
        if failures:
            self.logger.warn(f"{failures} unit(s) failed basic tests.")
        else:
            self.logger.success("All units passed basic tests.")

        after = _live_buffers(renderer)
        if baseline is not None and after is not None and after > baseline:
            self.logger.warn(f"Renderer still holds {after - baseline} buffer(s) after conformance tests.")

    async def _test_performance(
        self, factory: UnitFactory, renderer: Any, descriptors: list[ContentDescriptor]
    ) -> None:
        self.logger.info("Testing performance (FPS and memory) for the first unit...")
        first = descriptors[0] if descriptors else None
        if first is None or not first.unit_type:
            self.logger.warn("No descriptors or unit types found to run performance tests.")
            return

        live: Any = None
        try:
            live = factory.create_unit(first.unit_type, renderer, first)
            if not live or {"advance", "draw"} & set(missing_methods(live)):
                self.logger.warn("Could not create or run the first unit for performance testing.")
                return

            def _frame() -> None:
                live.advance()
                live.draw()

            await self.sampler.test_fps(_frame)
            self.sampler.test_memory_usage()
            summary = self.sampler.get_results()
            self.performance = summary
            self.logger.success(
                f"Performance test completed. Avg FPS: {summary.average_fps}, "
                f"Max Memory: {summary.max_memory_mb} MB"
            )
            if summary.performance_score == "poor" or summary.memory_efficiency == "poor":
                self.logger.warn("Performance or memory usage may need optimization.")
        except Exception as e:
            self.logger.error("Error during performance testing", e)
        finally:
            if live and callable(getattr(live, "release", None)):
                try:
                    live.release()
                except Exception as e:
                    self.logger.error("Failed to release performance test unit", e)
            self.sampler.stop_test()
            self.sampler.reset()

    # -------- reporting --------
    def _log_captured(self) -> None:
        errors = list(self.diagnostics.errors)
        warns = list(self.diagnostics.warnings)
        if errors:
            self.logger.warn(f"Detected {len(errors)} diagnostic error(s) during validation.")
            for message in errors:
                self.logger.error(f"Console Error: {message}")
        if warns:
            self.logger.warn(f"Detected {len(warns)} diagnostic warning(s) during validation.")
            for message in warns:
                self.logger.warn(f"Console Warning: {message}")

    def _build_report(self) -> Report:
        report = self.logger.generate_report()
        report.performance = self.performance
        report.console_errors = list(self.diagnostics.errors)
        report.console_warnings = list(self.diagnostics.warnings)
        report.units = {name: outcome.to_dict() for name, outcome in self.outcomes.items()}
        return report


async def validate_chapters(
    providers: Mapping[str, ChapterModuleProvider], **kwargs: Any
) -> dict[str, Report]:
    """複数チャプターを順番に検証する（共有状態を持ち越さないよう毎回新しい検証器を作る）。"""
    reports: dict[str, Report] = {}
    for name, provider in providers.items():
        reports[name] = await ChapterValidator(name, provider, **kwargs).validate_chapter()
    return reports


__all__ = ["ChapterValidator", "ValidationState", "validate_chapters"]
