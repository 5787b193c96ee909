"""
どこで: `harness.report`
何を: 1 つの対象（チャプター）についてレベル付きログ（info/warning/error/success）を蓄積し、
      集計レポート `Report` を組み立てて `ReportSink` へ保存する `ValidationLogger`。
なぜ: 検証の各段階の成否を 1 箇所に集め、機械可読なステータス付きの単一レポートにまとめるため。

要点:
- ログは追記のみ。各エントリは標準 `logging`（ロガー名 `harness.report`）にも流す。
- `generate_report()` は純関数。呼ぶたびに新しいリストを持つ `Report` を返す。
- `status` はエラーが 0 件なら `SUCCESS`、それ以外は `FAILED`。
- `save_report()` の失敗はエラーとして記録するだけで送出しない。
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from engine.monitor.sampler import PerformanceSummary

from .sinks import JsonFileReportSink, ReportSink

logger = logging.getLogger(__name__)

REPORT_LOGGER_NAME = __name__
REPORT_KEY_PREFIX = "validation-report-"

STATUS_SUCCESS = "SUCCESS"
STATUS_FAILED = "FAILED"


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


_STD_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.SUCCESS: logging.INFO,
}


def describe_error(detail: Any) -> str | None:
    if detail is None:
        return None
    if isinstance(detail, BaseException):
        return f"{type(detail).__name__}: {detail}"
    return str(detail)


@dataclass(frozen=True)
class LogEntry:
    timestamp: float
    level: LogLevel
    message: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
            "error": self.error,
        }


@dataclass
class Report:
    """検証 1 回分のスナップショット。"""

    subject: str
    duration_s: float
    total_infos: int
    total_warnings: int
    total_errors: int
    total_success: int
    status: str
    logs: dict[str, list[LogEntry]]
    performance: PerformanceSummary | None = None
    console_errors: list[str] = field(default_factory=list)
    console_warnings: list[str] = field(default_factory=list)
    units: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "duration": f"{self.duration_s:.2f}s",
            "duration_s": self.duration_s,
            "total_infos": self.total_infos,
            "total_warnings": self.total_warnings,
            "total_errors": self.total_errors,
            "total_success": self.total_success,
            "status": self.status,
            "logs": {level: [e.to_dict() for e in entries] for level, entries in self.logs.items()},
            "performance": self.performance.to_dict() if self.performance is not None else None,
            "console_errors": list(self.console_errors),
            "console_warnings": list(self.console_warnings),
            "units": {name: dict(unit) for name, unit in self.units.items()},
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


class ValidationLogger:
    """対象 1 つ分のレベル付きロガー。"""

    def __init__(
        self,
        subject: str,
        *,
        sink: ReportSink | None = None,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.subject = subject
        self.sink: ReportSink = sink if sink is not None else JsonFileReportSink()
        self._clock = clock
        self._wall_clock = wall_clock
        self._started = clock()
        self._logs: dict[LogLevel, list[LogEntry]] = {level: [] for level in LogLevel}
        self._ordered: list[LogEntry] = []

    @property
    def report_key(self) -> str:
        return f"{REPORT_KEY_PREFIX}{self.subject}"

    # -------- 記録 --------
    def _append(self, level: LogLevel, message: str, detail: Any = None) -> LogEntry:
        entry = LogEntry(self._wall_clock(), level, str(message), describe_error(detail))
        self._logs[level].append(entry)
        self._ordered.append(entry)
        std_level = _STD_LEVELS[level]
        label = level.value.upper()
        if entry.error:
            logger.log(std_level, "[%s] %s: %s (%s)", self.subject, label, entry.message, entry.error)
        else:
            logger.log(std_level, "[%s] %s: %s", self.subject, label, entry.message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self._append(LogLevel.INFO, message)

    def warn(self, message: str) -> LogEntry:
        return self._append(LogLevel.WARNING, message)

    def error(self, message: str, detail: Any = None) -> LogEntry:
        return self._append(LogLevel.ERROR, message, detail)

    def success(self, message: str) -> LogEntry:
        return self._append(LogLevel.SUCCESS, message)

    def entries(self, level: LogLevel | str | None = None) -> list[LogEntry]:
        """エントリのコピーを返す（level 省略時は全レベルを記録順に）。"""
        if level is not None:
            return list(self._logs[LogLevel(level)])
        return list(self._ordered)

    def count(self, level: LogLevel | str) -> int:
        return len(self._logs[LogLevel(level)])

    # -------- レポート --------
    def generate_report(self) -> Report:
        errors = len(self._logs[LogLevel.ERROR])
        return Report(
            subject=self.subject,
            duration_s=max(0.0, self._clock() - self._started),
            total_infos=len(self._logs[LogLevel.INFO]),
            total_warnings=len(self._logs[LogLevel.WARNING]),
            total_errors=errors,
            total_success=len(self._logs[LogLevel.SUCCESS]),
            status=STATUS_SUCCESS if errors == 0 else STATUS_FAILED,
            logs={level.value: list(entries) for level, entries in self._logs.items()},
        )

    def save_report(self, report: Report | None = None) -> Report:
        """レポートを組み立て（または受け取り）、シンクへ保存する。失敗は記録のみ。"""
        report = report if report is not None else self.generate_report()
        try:
            self.sink.save(self.report_key, report.to_dict())
        except Exception as e:
            self.error(f"Failed to save report for {self.subject}", e)
        else:
            self.info(f"Report saved for {self.subject}")
        return report


__all__ = [
    "LogLevel",
    "LogEntry",
    "Report",
    "ValidationLogger",
    "REPORT_KEY_PREFIX",
    "REPORT_LOGGER_NAME",
    "STATUS_SUCCESS",
    "STATUS_FAILED",
    "describe_error",
]
