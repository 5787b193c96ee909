"""
どこで: `util.paths`。
何を: 検証レポートの保存先ディレクトリを解決する（作成は書き込み時にシンクが行う）。
なぜ: 出力先を `harness.report_dir` 設定とプロジェクトルートから一貫して決めるため。
"""

from __future__ import annotations

from pathlib import Path

from .utils import _find_project_root, harness_config


def resolve_reports_dir() -> Path:
    """レポート出力先を返す（作成はしない）。

    - 設定 `harness.report_dir` があればそれを優先（相対パスはプロジェクトルート基準）。
    - 無ければプロジェクトルート直下の `data/reports/`。
    """
    root = _find_project_root(Path(__file__).parent)
    configured = harness_config().get("report_dir")
    if isinstance(configured, str) and configured.strip():
        path = Path(configured)
        return path if path.is_absolute() else root / path
    return root / "data" / "reports"

