"""
CLI 実装

`python -m harness <package> [<package> ...]` でチャプターパッケージを検証し、要約を表示する。
終了コードは全チャプターが SUCCESS なら 0、1 つでも FAILED なら 1。
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

from common.logging import setup_default_logging
from common.settings import RENDERER_KINDS, get as get_settings
from engine.core.frame_clock import RealtimeFrameClock
from engine.monitor.sampler import PerformanceSampler

from .chapter import ModuleChapterProvider
from .report import Report
from .sinks import JsonFileReportSink, NullReportSink, ReportSink
from .validator import ChapterValidator


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="harness",
        description="Validate render units of one or more chapter packages.",
    )
    parser.add_argument("packages", nargs="+", help="chapter package(s), e.g. chapters.sample")
    parser.add_argument(
        "--renderer",
        choices=sorted(RENDERER_KINDS),
        default=settings.RENDERER,
        help="renderer backend used by the units (default: %(default)s)",
    )
    parser.add_argument(
        "--duration-ms",
        type=int,
        default=settings.FPS_TEST_DURATION_MS,
        help="FPS sampling window in milliseconds (default: %(default)s)",
    )
    parser.add_argument(
        "--fps", type=int, default=settings.TARGET_FPS, help="tick rate of the sampling loop"
    )
    parser.add_argument("--output-dir", type=Path, default=None, help="directory for JSON reports")
    parser.add_argument("--no-save", action="store_true", help="do not persist reports")
    parser.add_argument("--json", action="store_true", help="print full reports as JSON")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="logging level")
    return parser


def _display_summary(report: Report) -> None:
    print(f"\n=== {report.subject}: {report.status} ({report.duration_s:.2f}s) ===")
    print(
        f"success={report.total_success} info={report.total_infos} "
        f"warnings={report.total_warnings} errors={report.total_errors}"
    )
    for name, unit in report.units.items():
        mark = "ok" if unit.get("success") else "FAIL"
        detail = "" if unit.get("success") else f" - {', '.join(unit.get('errors', []))}"
        print(f"  [{mark}] {name}{detail}")
    if report.performance is not None:
        perf = report.performance
        print(
            f"  FPS {perf.average_fps} ({perf.performance_score}), "
            f"memory {perf.max_memory_mb} MB ({perf.memory_efficiency})"
        )


async def _run(args: argparse.Namespace) -> list[Report]:
    sink: ReportSink = NullReportSink() if args.no_save else JsonFileReportSink(args.output_dir)
    reports: list[Report] = []
    for package in args.packages:
        sampler = PerformanceSampler(
            RealtimeFrameClock(args.fps), test_duration_ms=args.duration_ms
        )
        validator = ChapterValidator(
            package,
            ModuleChapterProvider(package),
            renderer_kind=args.renderer,
            sampler=sampler,
            report_sink=sink,
            persist=not args.no_save,
        )
        reports.append(await validator.validate_chapter())
    return reports


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_default_logging(args.log_level)
    reports = asyncio.run(_run(args))
    for report in reports:
        if args.json:
            print(report.to_json())
        else:
            _display_summary(report)
    return 0 if all(r.ok for r in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
