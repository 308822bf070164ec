"""リモート呼び出し結果の絞り込み。

リモートプロシージャは型の緩い行リストを返す。ゲートウェイの各操作は
ここで CallOutcome に変換した結果だけを見て分岐する。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from kv_service.interfaces.errors import (
    KeyAlreadyExistsError,
    KeyValueError,
    StoreUnavailableError,
)
from kv_service.interfaces.remote_store import ER_TUPLE_FOUND, RemoteCallError

DUPLICATE_KEY_TEXT = "key already exists"


class OutcomeKind(Enum):
    """呼び出し結果の種別。"""

    ROWS = "rows"
    EMPTY = "empty"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class CallOutcome:
    """絞り込み済みの呼び出し結果。

    kind が ROWS のときのみ row に先頭行が入る。
    """

    kind: OutcomeKind
    row: tuple[Any, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.kind is OutcomeKind.EMPTY

    def column(self, index: int) -> Any:
        """先頭行の列を返す。列が無ければ None。"""
        if index < len(self.row):
            return self.row[index]
        return None


def narrow_rows(data: list[Any] | None) -> CallOutcome:
    """生の行リストを CallOutcome に変換する。

    - 行なし、先頭行が nil・空、先頭列が nil → EMPTY
    - 先頭行がシーケンスでない → MALFORMED
    - それ以外 → ROWS
    """
    if not data:
        return CallOutcome(OutcomeKind.EMPTY)

    first = data[0]
    if first is None:
        return CallOutcome(OutcomeKind.EMPTY)
    if not isinstance(first, (list, tuple)):
        return CallOutcome(OutcomeKind.MALFORMED)
    if len(first) == 0 or first[0] is None:
        return CallOutcome(OutcomeKind.EMPTY)
    return CallOutcome(OutcomeKind.ROWS, tuple(first))


def is_duplicate_key(error: RemoteCallError) -> bool:
    """挿入時のリモートエラーがキー重複かを判定する。

    構造化コード（ER_TUPLE_FOUND）を優先し、無ければ本文の文言で判定する。
    文言判定はリモートプロシージャのメッセージが変わると重複を見逃す。
    """
    if error.code == ER_TUPLE_FOUND:
        return True
    return DUPLICATE_KEY_TEXT in error.message


def classify_remote_error(key: str, error: RemoteCallError) -> KeyValueError:
    """挿入時のリモートエラーをエラー分類に対応付ける。"""
    if is_duplicate_key(error):
        return KeyAlreadyExistsError(key)
    return StoreUnavailableError(key, f"failed to insert key: {error.message}")
