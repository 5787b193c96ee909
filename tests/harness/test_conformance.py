from __future__ import annotations

from typing import Any

import pytest

from engine.core.render_unit import ContentDescriptor
from engine.render.renderer import StubRenderer
from harness.conformance import ConformanceTester, Phase
from tests._utils.dummies import (
    BrokenConstructorUnit,
    CountingUnit,
    NoDrawUnit,
    NullFactory,
    RaisingAdvanceUnit,
    RaisingReleaseUnit,
    counting_registry,
    reset_all,
)


@pytest.fixture(autouse=True)
def _reset_counters() -> None:
    reset_all()


def _ticking_clock() -> Any:
    t = {"now": 0.0}

    def clock() -> float:
        t["now"] += 0.001
        return t["now"]

    return clock


def test_conforming_unit_passes_all_phases(renderer: StubRenderer) -> None:
    tester = ConformanceTester(clock=_ticking_clock())
    outcome = tester.test_unit(CountingUnit, renderer, ContentDescriptor("counting"))
    assert outcome.success
    assert outcome.errors == []
    assert outcome.release_calls == 1
    assert outcome.frame_time_ms == pytest.approx(1.0)
    assert [r.phase for r in tester.results] == [Phase.CONSTRUCT, Phase.FRAME, Phase.RELEASE]
    assert CountingUnit.released == 1
    assert renderer.info.render.calls == 1


def test_missing_draw_is_reported(renderer: StubRenderer) -> None:
    tester = ConformanceTester()
    outcome = tester.test_unit(NoDrawUnit, renderer, {"unit_type": "nodraw"})
    assert not outcome.success
    assert outcome.errors == ["draw() method missing"]
    # 後始末で release は 1 回だけ
    assert NoDrawUnit.released == 1
    assert outcome.release_calls == 1


def test_release_called_once_after_advance_raises(renderer: StubRenderer) -> None:
    tester = ConformanceTester()
    outcome = tester.test_unit(RaisingAdvanceUnit, renderer, ContentDescriptor("x"))
    assert outcome.errors == ["advance exploded"]
    assert RaisingAdvanceUnit.constructed == 1
    assert RaisingAdvanceUnit.released == 1
    failed = [r for r in tester.results if not r.success]
    assert [r.phase for r in failed] == [Phase.FRAME]


def test_cleanup_failure_keeps_original_reason(renderer: StubRenderer) -> None:
    tester = ConformanceTester()
    outcome = tester.test_unit(RaisingReleaseUnit, renderer, ContentDescriptor("x"))
    assert outcome.errors == ["advance exploded"]
    assert RaisingReleaseUnit.released == 1
    release_results = [r for r in tester.results if r.phase is Phase.RELEASE]
    assert len(release_results) == 1
    assert release_results[0].error == "release exploded"


def test_constructor_failure_stops_unit(renderer: StubRenderer) -> None:
    tester = ConformanceTester()
    outcome = tester.test_unit(BrokenConstructorUnit, renderer, ContentDescriptor("x"), name="broken")
    assert outcome.name == "broken"
    assert outcome.errors == ["bad descriptor"]
    assert outcome.release_calls == 0
    assert len(tester.results) == 1


def test_duplicate_tags_probe_once_per_type(renderer: StubRenderer) -> None:
    reg = counting_registry("a", "b")
    tester = ConformanceTester()
    descriptors = [ContentDescriptor("a"), ContentDescriptor("a"), ContentDescriptor("b")]
    outcomes = tester.test_all_unit_types(reg, renderer, descriptors)
    assert list(outcomes) == ["a", "b"]
    assert all(o.success for o in outcomes.values())
    # 種別ごとに プローブ 1 回 + 検査 1 回
    assert CountingUnit.constructed == 4
    assert CountingUnit.released == 4


def test_falsy_factory_result_is_recorded_and_others_continue(renderer: StubRenderer) -> None:
    factory = NullFactory(missing="b")
    tester = ConformanceTester()
    outcomes = tester.test_all_unit_types(
        factory, renderer, [ContentDescriptor(t) for t in ("a", "b", "c")]
    )
    assert outcomes["a"].success and outcomes["c"].success
    assert not outcomes["b"].success
    assert outcomes["b"].errors == ["Failed to create/get class: factory returned nothing for type b"]
    # unit_class を持たないファクトリではプローブの型を使う
    assert factory.calls == ["a", "b", "c"]
    assert CountingUnit.constructed == 4
    assert len(tester.failed()) == 1


def test_factory_exception_is_recorded(renderer: StubRenderer) -> None:
    class Exploding:
        def create_unit(self, type_tag: str, renderer: Any, descriptor: ContentDescriptor) -> Any:
            raise KeyError(type_tag)

    outcomes = ConformanceTester().test_all_unit_types(Exploding(), renderer, [ContentDescriptor("z")])
    assert outcomes["z"].errors == ["Failed to create/get class: 'z'"]


def test_untagged_descriptors_are_skipped(renderer: StubRenderer) -> None:
    reg = counting_registry("a")
    outcomes = ConformanceTester().test_all_unit_types(
        reg, renderer, [{"verse_text": "no tag"}, {"animation": "a"}]
    )
    assert list(outcomes) == ["a"]


def test_malformed_descriptor_is_skipped_and_batch_continues(
    renderer: StubRenderer, caplog: pytest.LogCaptureFixture
) -> None:
    reg = counting_registry("a", "b")
    with caplog.at_level("ERROR", logger="harness.conformance"):
        outcomes = ConformanceTester().test_all_unit_types(
            reg, renderer, [None, ContentDescriptor("a"), 42, {"animation": "b"}]
        )
    assert list(outcomes) == ["a", "b"]
    assert all(o.success for o in outcomes.values())
    assert caplog.text.count("Skipping descriptor: invalid content descriptor") == 2


def test_invalid_factory_returns_empty(renderer: StubRenderer, caplog: pytest.LogCaptureFixture) -> None:
    tester = ConformanceTester()
    with caplog.at_level("ERROR"):
        assert tester.test_all_unit_types(object(), renderer, [ContentDescriptor("a")]) == {}
    assert "Invalid unit factory" in caplog.text


def test_reset_clears_results(renderer: StubRenderer) -> None:
    tester = ConformanceTester()
    tester.test_unit(CountingUnit, renderer, ContentDescriptor("x"))
    tester.reset()
    assert tester.results == [] and tester.outcomes == {}
