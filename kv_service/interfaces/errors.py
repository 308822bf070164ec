"""ストアゲートウェイのエラー分類。

ゲートウェイはエラーをその場で回復せず、必ず以下のいずれかに
分類して呼び出し側へ送出する。HTTP ステータスへの対応付けは API 層が行う。
"""


class KeyValueError(Exception):
    """ストアゲートウェイが送出する全エラーの基底クラス。"""

    default_message = "key-value store error"

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        self.message = message or self.default_message
        super().__init__(self.message)


class KeyAlreadyExistsError(KeyValueError):
    """作成対象のキーが既に存在する。"""

    default_message = "key already exists"


class KeyNotFoundError(KeyValueError):
    """参照・更新・削除対象のキーが存在しない。"""

    default_message = "key not found"


class EncodingError(KeyValueError):
    """value を JSON テキストへ変換できない。"""

    default_message = "data serialization failed"


class DecodingError(KeyValueError):
    """保存値を JSON オブジェクトへ復元できない。"""

    default_message = "failed to deserialize value"


class StoreUnavailableError(KeyValueError):
    """リモート呼び出しの失敗（ネットワーク、プロトコル、リモート内部エラー）。"""

    default_message = "remote store call failed"
