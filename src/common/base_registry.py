"""
どこで: `common.base_registry`
何を: 文字列タグ → 登録オブジェクトの対応表 `BaseRegistry`（デコレータ登録・タグ正規化・登録順の列挙）。
なぜ: チャプター設定のタグ表記ゆれ（"quantumField" / "quantum_field" / "quantum-field"）を吸収し、
      ユニットの生成側と検査側が同じ規則で種別を引けるようにするため。
"""

import re
from abc import ABC
from typing import Any, Callable, Iterator

_WORD_BOUNDARY = re.compile(r"(.)([A-Z][a-z]+)")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")


class BaseRegistry(ABC):
    """タグ付きレジストリの基底クラス。

    - キーは正規化して保持する（ハイフン → `_`、大文字を含めばキャメル → スネーク、常に小文字）。
    - 登録時の表記は `display_name()` で引ける（レポートには元の表記を出すため）。
    - 同じキーへ別オブジェクトを登録すると `ValueError`。同一オブジェクトの再登録は無視。
    """

    def __init__(self):
        self._registry: dict[str, Any] = {}
        self._display: dict[str, str] = {}

    @staticmethod
    def _camel_to_snake(name: str) -> str:
        return _LOWER_UPPER.sub(r"\1_\2", _WORD_BOUNDARY.sub(r"\1_\2", name)).lower()

    @classmethod
    def _normalize_key(cls, name: str) -> str:
        """例: "quantumField" -> "quantum_field", "Ripple" -> "ripple"。"""
        if not isinstance(name, str):
            raise TypeError("レジストリキーは str である必要があります")
        if not name:
            raise ValueError("レジストリキーは空であってはなりません")
        name = name.replace("-", "_")
        if any(c.isupper() for c in name):
            return cls._camel_to_snake(name)
        return name.lower()

    # -------- 登録 --------
    def register(self, name: str | None = None) -> Callable[[Any], Any]:
        """デコレータ。`name` 省略時は登録対象の `__name__` をタグにする。"""

        def decorator(obj: Any) -> Any:
            tag = name or obj.__name__
            key = self._normalize_key(tag)
            current = self._registry.get(key)
            if current is not None and current is not obj:
                raise ValueError(f"'{key}' は既に登録されています")
            self._registry[key] = obj
            self._display.setdefault(key, tag)
            return obj

        return decorator

    def unregister(self, name: str) -> None:
        """未登録のタグは無視する。"""
        key = self._normalize_key(name)
        self._registry.pop(key, None)
        self._display.pop(key, None)

    def clear(self) -> None:
        self._registry.clear()
        self._display.clear()

    # -------- 参照 --------
    def get(self, name: str) -> Any:
        try:
            return self._registry[self._normalize_key(name)]
        except KeyError:
            raise KeyError(f"'{name}' は登録されていません") from None

    def is_registered(self, name: str) -> bool:
        """不正なキー（空文字・非 str）は未登録扱い。"""
        try:
            return self._normalize_key(name) in self._registry
        except (TypeError, ValueError):
            return False

    def display_name(self, name: str) -> str:
        """最初に登録したときの表記を返す（未登録ならそのまま）。"""
        try:
            return self._display.get(self._normalize_key(name), name)
        except (TypeError, ValueError):
            return name

    def list_all(self) -> list[str]:
        """正規化済みキーを登録順で返す。"""
        return list(self._registry)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_registered(name)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._registry))

    def __len__(self) -> int:
        return len(self._registry)

    @property
    def registry(self) -> dict[str, Any]:
        """読み取り用のコピー。"""
        return dict(self._registry)
