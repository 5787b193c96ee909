from __future__ import annotations

import asyncio
import logging
import warnings
from contextlib import contextmanager
from typing import Any, Iterator

import pytest

from engine.core.render_unit import ContentDescriptor
from engine.monitor.sampler import PerformanceSampler
from engine.render.renderer import RendererUnavailableError, StubRenderer
from harness.chapter import StaticChapterProvider
from harness.sinks import MemoryReportSink
from harness.validator import ChapterValidator, ValidationState, validate_chapters
from tests._utils.dummies import CountingUnit, NullFactory, counting_registry, reset_all


@pytest.fixture(autouse=True)
def _reset_counters() -> None:
    reset_all()


class _BrokenProvider:
    colors: dict[str, Any] = {}

    def get_descriptors(self) -> list[ContentDescriptor]:
        raise ImportError("No module named 'chapters.missing.config'")

    def get_factory(self) -> Any:
        raise AssertionError("not reached")


class _NoisyUnit(CountingUnit):
    """構築時にログと警告を出すだけのユニット。"""

    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        super().__init__(renderer, descriptor)
        logging.getLogger("units.noisy").error("shader compile warning treated as error")
        warnings.warn("legacy uniform", UserWarning)


def _validator(
    provider: Any, sampler: PerformanceSampler, sink: MemoryReportSink, **kwargs: Any
) -> ChapterValidator:
    kwargs.setdefault("renderer", StubRenderer())
    return ChapterValidator("Ch01", provider, sampler=sampler, report_sink=sink, persist=True, **kwargs)


def test_all_units_pass(fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink) -> None:
    provider = StaticChapterProvider(
        [ContentDescriptor(t) for t in ("a", "b", "a")], counting_registry("a", "b")
    )
    v = _validator(provider, fast_sampler, memory_sink)
    report = v.run()

    assert report.status == "SUCCESS"
    assert v.state is ValidationState.DONE
    assert v.state_history == [
        ValidationState.LOADING,
        ValidationState.TESTING_CONFORMANCE,
        ValidationState.TESTING_PERFORMANCE,
        ValidationState.REPORTING,
        ValidationState.DONE,
    ]
    assert set(report.units) == {"a", "b"}
    assert report.performance is not None
    assert report.performance.average_fps == "60.0"
    assert report.performance.tests_run == 1
    assert report.performance.memory_efficiency == "good"
    # 計測後にサンプラはリセットされる
    assert fast_sampler.frame_rates == [] and not fast_sampler.is_running
    # 構築したユニットはすべて解放済み
    assert CountingUnit.constructed == CountingUnit.released
    assert "validation-report-Ch01" in memory_sink.store


def test_one_falsy_factory_type_fails_run(
    fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink
) -> None:
    provider = StaticChapterProvider(
        [ContentDescriptor(t) for t in ("a", "b", "c")], NullFactory(missing="b")
    )
    v = _validator(provider, fast_sampler, memory_sink)
    report = v.run()

    assert report.status == "FAILED"
    assert report.units["a"]["success"] and report.units["c"]["success"]
    assert not report.units["b"]["success"]
    successes = [e.message for e in report.logs["success"]]
    assert "Unit a passed basic tests." in successes
    assert "Unit c passed basic tests." in successes
    messages = [e.message for e in report.logs["warning"]]
    assert "1 unit(s) failed basic tests." in messages
    # 失敗は UnitOutcome 由来の 1 件だけで、適合検査ロガーの出力は重ねて数えない
    errors = [e.message for e in report.logs["error"]]
    assert errors == ["Unit b failed: Failed to create/get class: factory returned nothing for type b"]
    assert report.total_errors == 1
    assert v.state is ValidationState.DONE


def test_load_failure_reports_failed(fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink) -> None:
    v = _validator(_BrokenProvider(), fast_sampler, memory_sink)
    report = v.run()

    assert report.status == "FAILED"
    assert v.state_history == [
        ValidationState.LOADING,
        ValidationState.REPORTING,
        ValidationState.FAILED,
    ]
    err = report.logs["error"][0]
    assert err.message == "Failed to import chapter modules"
    assert "chapters.missing.config" in (err.error or "")
    assert report.performance is None and report.units == {}


def test_empty_chapter_is_load_failure(fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink) -> None:
    v = _validator(StaticChapterProvider([], counting_registry()), fast_sampler, memory_sink)
    report = v.run()
    assert report.status == "FAILED"
    assert v.state is ValidationState.FAILED


def test_console_capture_is_reported_and_restored(
    fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink
) -> None:
    root = logging.getLogger()
    handlers_before = list(root.handlers)
    showwarning_before = warnings.showwarning

    provider = StaticChapterProvider([ContentDescriptor("noisy")], counting_registry())
    provider.get_factory().register("noisy")(_NoisyUnit)
    report = _validator(provider, fast_sampler, memory_sink).run()

    assert root.handlers == handlers_before
    assert warnings.showwarning is showwarning_before
    assert any("shader compile" in m for m in report.console_errors)
    assert any("legacy uniform" in m for m in report.console_warnings)
    messages = [e.message for e in report.logs["error"]]
    assert any(m.startswith("Console Error: units.noisy") for m in messages)
    assert report.status == "FAILED"


class _WarningUnit(CountingUnit):
    """構築時に WARNING ログだけを出すユニット。"""

    def __init__(self, renderer: Any, descriptor: ContentDescriptor):
        super().__init__(renderer, descriptor)
        logging.getLogger("units.quiet").warning("deprecated uniform")


def test_console_warnings_captured_under_error_log_level(
    fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink
) -> None:
    # `--log-level error` 相当: ルートが ERROR でも警告はレポートに残る
    root = logging.getLogger()
    saved = root.level
    root.setLevel(logging.ERROR)
    try:
        provider = StaticChapterProvider([ContentDescriptor("quiet")], counting_registry())
        provider.get_factory().register("quiet")(_WarningUnit)
        report = _validator(provider, fast_sampler, memory_sink).run()
        assert root.level == logging.ERROR
    finally:
        root.setLevel(saved)

    assert "units.quiet: deprecated uniform" in report.console_warnings
    messages = [e.message for e in report.logs["warning"]]
    assert "Console Warning: units.quiet: deprecated uniform" in messages
    assert report.status == "SUCCESS"


class _ListSink:
    """`DiagnosticSink` を満たす最小の差し替え実装（ロガーには取り付けない）。"""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.captures = 0

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def clear(self) -> None:
        self.errors.clear()
        self.warnings.clear()

    @contextmanager
    def capture(self, logger: logging.Logger | None = None) -> Iterator["_ListSink"]:
        self.captures += 1
        yield self


def test_custom_diagnostic_sink_is_used(
    fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink
) -> None:
    sink = _ListSink()
    sink.warning("stale from previous run")  # 前回分は実行開始時に消える
    provider = StaticChapterProvider([ContentDescriptor("a")], counting_registry("a"))
    v = _validator(provider, fast_sampler, memory_sink, diagnostics=sink)
    report = v.run()

    assert v.diagnostics is sink
    assert sink.captures == 1
    assert report.console_errors == [] and report.console_warnings == []
    assert report.status == "SUCCESS"


def test_performance_errors_do_not_abort(
    fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink
) -> None:
    async def exploding(_cb: Any) -> int:
        raise RuntimeError("scheduler died")

    fast_sampler.test_fps = exploding  # type: ignore[method-assign]
    provider = StaticChapterProvider([ContentDescriptor("a")], counting_registry("a"))
    v = _validator(provider, fast_sampler, memory_sink)
    report = v.run()

    assert v.state is ValidationState.DONE
    assert report.performance is None
    assert any(e.message == "Error during performance testing" for e in report.logs["error"])
    assert CountingUnit.constructed == CountingUnit.released


def test_renderer_fallback_to_stub(
    fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink, monkeypatch: pytest.MonkeyPatch
) -> None:
    def unavailable(kind: str, **_: Any) -> Any:
        raise RendererUnavailableError("no GL")

    monkeypatch.setattr("harness.validator.create_renderer", unavailable)
    provider = StaticChapterProvider([ContentDescriptor("a")], counting_registry("a"))
    v = ChapterValidator(
        "Ch02", provider, renderer_kind="headless", sampler=fast_sampler, report_sink=memory_sink
    )
    report = v.run()
    assert report.status == "SUCCESS"
    assert any("falling back to stub" in e.message for e in report.logs["warning"])


def test_leaked_buffers_are_warned(fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink) -> None:
    import numpy as np

    class Leaky(CountingUnit):
        def __init__(self, renderer: Any, descriptor: ContentDescriptor):
            super().__init__(renderer, descriptor)
            renderer.allocate_buffer(np.zeros(3, dtype=np.float32))

    provider = StaticChapterProvider([ContentDescriptor("leaky")], counting_registry())
    provider.get_factory().register("leaky")(Leaky)
    report = _validator(provider, fast_sampler, memory_sink).run()
    assert any("still holds 2 buffer(s)" in e.message for e in report.logs["warning"])


def test_validate_chapters_runs_each(fast_sampler: PerformanceSampler, memory_sink: MemoryReportSink) -> None:
    providers = {
        "ok": StaticChapterProvider([ContentDescriptor("a")], counting_registry("a")),
        "broken": _BrokenProvider(),
    }
    reports = asyncio.run(
        validate_chapters(
            providers, renderer=StubRenderer(), sampler=fast_sampler, report_sink=memory_sink
        )
    )
    assert reports["ok"].status == "SUCCESS"
    assert reports["broken"].status == "FAILED"
    assert set(memory_sink.store) == {"validation-report-ok", "validation-report-broken"}
