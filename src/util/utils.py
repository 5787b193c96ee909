"""
どこで: `util.utils`
何を: YAML 設定（`configs/default.yaml` → ルート `config.yaml`）をフェイルソフトに読む。
なぜ: レポート出力先やスコア閾値をコード外で調整でき、設定ファイルが壊れていても検証自体は走るようにするため。
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml

HARNESS_SECTION = "harness"


def _safe_load_yaml(path: Path) -> Dict[str, Any]:
    """読めない/YAML として不正/トップレベルが辞書でない場合は空辞書。"""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def _find_project_root(start: Path) -> Path:
    """`.git` / `pyproject.toml` / `configs/` のいずれかを持つ最も近い祖先を返す。

    見つからなければ `<repo>/src/util/utils.py` を想定して 2 つ上を返す。
    """
    cur = start.resolve()
    markers = (".git", "pyproject.toml", "configs")
    for parent in [cur, *cur.parents]:
        if any((parent / m).exists() for m in markers):
            return parent
    return cur.parent.parent


def config_paths() -> List[Path]:
    """読み込み順（後勝ち）の設定ファイル候補。"""
    root = _find_project_root(Path(__file__).parent)
    return [root / "configs" / "default.yaml", root / "config.yaml"]


def load_config() -> Dict[str, Any]:
    """構成を辞書で返す。存在するファイルだけをトップレベル単位で上書きマージする。"""
    merged: Dict[str, Any] = {}
    for path in config_paths():
        if path.exists():
            merged.update(_safe_load_yaml(path))
    return merged


def harness_config() -> Dict[str, Any]:
    """`harness:` セクションを返す。

    セクション内はキー単位で後勝ち（ルート `config.yaml` で `report_dir` だけ上書き、などを許す）。
    """
    section: Dict[str, Any] = {}
    for path in config_paths():
        if not path.exists():
            continue
        part = _safe_load_yaml(path).get(HARNESS_SECTION)
        if isinstance(part, dict):
            section.update(part)
    return section
