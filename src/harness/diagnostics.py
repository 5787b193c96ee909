"""
どこで: `harness.diagnostics`
何を: 検証中に発生した付随的なエラー/警告（例外にならずログや `warnings` に出ただけのもの）を
      集める `CapturingSink`。`logging.Handler` としてロガーに取り付け、`warnings` は
      `showwarning` を差し替えて受け取る。どちらも元の出力先へはそのまま流れる。
なぜ: ユニットコードが投げずに報告した問題も最終レポートに残すため。取り付けは `capture()` の
      with ブロックに限定し、終了時（例外時も含む）に必ず元へ戻す。
"""

from __future__ import annotations

import logging
import warnings
from contextlib import contextmanager
from typing import ContextManager, Iterator, Protocol, Sequence

from .conformance import CONFORMANCE_LOGGER_NAME
from .report import REPORT_LOGGER_NAME

FORWARD_LOGGER_NAME = __name__

_forward = logging.getLogger(FORWARD_LOGGER_NAME)


class DiagnosticSink(Protocol):
    errors: list[str]
    warnings: list[str]

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def clear(self) -> None: ...

    def capture(self, logger: logging.Logger | None = None) -> ContextManager["DiagnosticSink"]: ...


class CapturingSink(logging.Handler):
    """WARNING 以上のログレコードと Python 警告を蓄積するシンク。

    - レポートロガー（`harness.report`）、適合検査ロガー（`harness.conformance`）、転送用ロガーの
      レコードは取り込まない（いずれも既にレポートへ記録済み）。
    - `error()` / `warning()` で明示的に報告することもできる（転送用ロガーにも流す）。
    """

    def __init__(
        self,
        level: int = logging.WARNING,
        *,
        ignore: Sequence[str] = (REPORT_LOGGER_NAME, CONFORMANCE_LOGGER_NAME, FORWARD_LOGGER_NAME),
    ):
        super().__init__(level)
        self._ignore = tuple(ignore)
        self.errors: list[str] = []
        self.warnings: list[str] = []

    # -------- 明示報告 --------
    def error(self, message: str) -> None:
        self.errors.append(str(message))
        _forward.error("%s", message)

    def warning(self, message: str) -> None:
        self.warnings.append(str(message))
        _forward.warning("%s", message)

    def clear(self) -> None:
        self.errors.clear()
        self.warnings.clear()

    # -------- logging.Handler --------
    def _ignored(self, name: str) -> bool:
        return any(name == n or name.startswith(n + ".") for n in self._ignore)

    def emit(self, record: logging.LogRecord) -> None:
        if self._ignored(record.name):
            return
        try:
            message = record.getMessage()
            if record.exc_info and record.exc_info[1] is not None:
                exc = record.exc_info[1]
                message = f"{message}: {type(exc).__name__}: {exc}"
            text = f"{record.name}: {message}"
        except Exception:
            self.handleError(record)
            return
        if record.levelno >= logging.ERROR:
            self.errors.append(text)
        else:
            self.warnings.append(text)

    # -------- 取り付け --------
    @contextmanager
    def capture(self, logger: logging.Logger | None = None) -> Iterator["CapturingSink"]:
        """with ブロックのあいだだけロガーと `warnings` を横取りする。

        取り付け先のレベルが WARNING より高くても取りこぼさないよう、ブロック中だけ
        `min(実効レベル, self.level)` まで下げ、終了時に元へ戻す。表示の絞り込みはハンドラ側の役目。
        """
        target = logger if logger is not None else logging.getLogger()
        saved_level = target.level
        target.setLevel(min(target.getEffectiveLevel(), self.level))
        target.addHandler(self)
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("always")
                original = warnings.showwarning

                def _showwarning(message, category, filename, lineno, file=None, line=None):
                    self.warnings.append(f"{category.__name__}: {message} ({filename}:{lineno})")
                    original(message, category, filename, lineno, file, line)

                warnings.showwarning = _showwarning
                yield self
        finally:
            target.removeHandler(self)
            target.setLevel(saved_level)


__all__ = ["DiagnosticSink", "CapturingSink", "FORWARD_LOGGER_NAME"]
