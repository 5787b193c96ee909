"""
どこで: `harness.sinks`
何を: 検証レポートの保存先（キー付きストア）を抽象化する `ReportSink` と、その実装
      （JSON ファイル / メモリ / 破棄）。
なぜ: 永続化をベストエフォートの注入可能な依存として扱い、テストではメモリ実装に差し替えるため。
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping, Protocol

from util.paths import resolve_reports_dir


class ReportSinkError(RuntimeError):
    """レポートの保存に失敗した。"""


class ReportSink(Protocol):
    def save(self, key: str, report: Mapping[str, Any]) -> None:
        """`key` に JSON 互換の `report` を保存する。失敗時は例外を送出する。"""
        ...


_UNSAFE = re.compile(r"[^0-9A-Za-z._-]+")


def _filename_for(key: str) -> str:
    # チャプター名に空白や括弧（"Ch20 (1:2)" など）が入るためファイル名用に畳む
    stem = _UNSAFE.sub("_", key).strip("_") or "report"
    return f"{stem}.json"


class JsonFileReportSink:
    """`<directory>/<key>.json` に書き出すシンク。

    directory 未指定時は `util.paths.resolve_reports_dir()`（設定 `harness.report_dir` → `data/reports`）。
    """

    def __init__(self, directory: str | Path | None = None):
        self._directory = Path(directory) if directory is not None else None

    @property
    def directory(self) -> Path:
        return self._directory if self._directory is not None else resolve_reports_dir()

    def path_for(self, key: str) -> Path:
        return self.directory / _filename_for(key)

    def save(self, key: str, report: Mapping[str, Any]) -> None:
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(report, indent=2, ensure_ascii=False)
            path.write_text(payload, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise ReportSinkError(f"failed to write {path}: {e}") from e


class MemoryReportSink:
    """辞書に保持するだけのシンク（テスト/埋め込み用）。"""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def save(self, key: str, report: Mapping[str, Any]) -> None:
        try:
            self.store[key] = json.dumps(report)
        except (TypeError, ValueError) as e:
            raise ReportSinkError(f"report for {key!r} is not JSON serialisable: {e}") from e

    def load(self, key: str) -> dict[str, Any]:
        return json.loads(self.store[key])


class NullReportSink:
    """何も保存しないシンク。"""

    def save(self, key: str, report: Mapping[str, Any]) -> None:
        return None


__all__ = [
    "ReportSink",
    "ReportSinkError",
    "JsonFileReportSink",
    "MemoryReportSink",
    "NullReportSink",
]
