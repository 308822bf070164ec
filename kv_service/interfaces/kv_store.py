"""キー・バリューストアの抽象インターフェース（境界①）。

API層（リクエスト調停）はこのインターフェースを介してのみ
レコードを読み書きする。リモートストアの呼び出し規約が
この境界より外へ漏洩してはならない。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Record:
    """キーと JSON オブジェクトの組（ドメインモデル）。

    key は作成後に変わらない。update は value のみを書き換える。
    """

    key: str
    value: dict[str, Any]


class KeyValueStoreInterface(ABC):
    """ストアゲートウェイの抽象インターフェース。

    失敗は全て kv_service.interfaces.errors の例外として送出する。
    入力値の検証（key が空でない、value が空でないオブジェクト）は
    呼び出し側の責務で、ここでは再検証しない。
    """

    @abstractmethod
    def create(self, record: Record) -> Record:
        """レコードを新規作成する。

        Returns:
            作成したレコード（入力をそのまま返す）

        Raises:
            KeyAlreadyExistsError: 同じキーが既に存在する
        """
        ...

    @abstractmethod
    def get(self, key: str) -> Record:
        """キーに対応するレコードを取得する。

        Raises:
            KeyNotFoundError: キーが存在しない
            DecodingError: 保存値が JSON オブジェクトとして読めない
        """
        ...

    @abstractmethod
    def update(self, record: Record) -> Record:
        """既存レコードの value を置き換える。

        Raises:
            KeyNotFoundError: キーが存在しない
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> Record:
        """レコードを削除し、削除直前のスナップショットを返す。

        Raises:
            KeyNotFoundError: キーが存在しない
        """
        ...
