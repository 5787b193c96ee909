"""
どこで: `harness` パッケージ。
何を: レンダーユニットの検証ハーネス（適合検査・性能計測・レポート・オーケストレータ）の公開入口。
なぜ: CLI/テスト/スクリプトから同じ API で 1 チャプターを検証できるようにするため。
"""

from .chapter import ChapterLoadError, ModuleChapterProvider, StaticChapterProvider
from .conformance import ConformanceTester, Phase, PhaseResult, UnitOutcome
from .diagnostics import CapturingSink
from .report import LogEntry, LogLevel, Report, ValidationLogger
from .sinks import JsonFileReportSink, MemoryReportSink, NullReportSink, ReportSinkError
from .validator import ChapterValidator, ValidationState, validate_chapters

__all__ = [
    "CapturingSink",
    "ChapterLoadError",
    "ChapterValidator",
    "ConformanceTester",
    "JsonFileReportSink",
    "LogEntry",
    "LogLevel",
    "MemoryReportSink",
    "ModuleChapterProvider",
    "NullReportSink",
    "Phase",
    "PhaseResult",
    "Report",
    "ReportSinkError",
    "StaticChapterProvider",
    "UnitOutcome",
    "ValidationLogger",
    "ValidationState",
    "validate_chapters",
]
