"""ストアゲートウェイ — CRUD 操作とリモートプロシージャ呼び出しの仲介."""

import json
from typing import Any

from kv_service.gateway.outcome import (
    CallOutcome,
    OutcomeKind,
    classify_remote_error,
    narrow_rows,
)
from kv_service.interfaces.errors import (
    DecodingError,
    EncodingError,
    KeyNotFoundError,
    StoreUnavailableError,
)
from kv_service.interfaces.kv_store import KeyValueStoreInterface, Record
from kv_service.interfaces.remote_store import RemoteCallError, RemoteStoreInterface
from kv_service.log import get_logger

logger = get_logger(__name__)

INSERT_PROCEDURE = "insert_kv"
GET_PROCEDURE = "get_kv"
UPDATE_PROCEDURE = "update_kv"
DELETE_PROCEDURE = "delete_kv"


def encode_value(key: str, value: dict[str, Any]) -> str:
    """value を JSON テキストへ変換する。"""
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise EncodingError(key) from exc


def decode_value(key: str, raw: Any) -> dict[str, Any]:
    """保存されている JSON テキストを value に戻す。"""
    if not isinstance(raw, (str, bytes)):
        raise DecodingError(key, f"stored value is not text: {type(raw).__name__}")
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise DecodingError(key) from exc
    if not isinstance(value, dict):
        raise DecodingError(key, "stored value is not a JSON object")
    return value


class KeyValueManager(KeyValueStoreInterface):
    """ストアゲートウェイ.

    ドメインモデル（Record）とリモートストアの呼び出し規約の間に立ち、
    値の JSON 変換と結果・エラーの分類を行う。
    リモートストアへの接続は外部で1度だけ生成して注入する。
    ロック・キャッシュ・リトライは行わない。
    """

    def __init__(self, remote: RemoteStoreInterface) -> None:
        self._remote = remote

    def _call(self, procedure: str, key: str, args: list[Any]) -> CallOutcome:
        """プロシージャを呼び出し、結果を絞り込む。

        リモートエラーは StoreUnavailableError、
        解釈できない結果も StoreUnavailableError として送出する。
        """
        try:
            data = self._remote.call(procedure, args)
        except RemoteCallError as exc:
            logger.error(
                "remote_call_failed", procedure=procedure, key=key, error=exc.message
            )
            raise StoreUnavailableError(
                key, f"{procedure} failed: {exc.message}"
            ) from exc

        outcome = narrow_rows(data)
        if outcome.kind is OutcomeKind.MALFORMED:
            logger.error("remote_result_malformed", procedure=procedure, key=key)
            raise StoreUnavailableError(key, f"{procedure} returned malformed rows")
        return outcome

    def create(self, record: Record) -> Record:
        logger.info("create_started", key=record.key)
        serialized = self._encode(record)

        try:
            self._remote.call(INSERT_PROCEDURE, [record.key, serialized])
        except RemoteCallError as exc:
            error = classify_remote_error(record.key, exc)
            logger.error(
                "create_failed",
                key=record.key,
                kind=type(error).__name__,
                error=exc.message,
            )
            raise error from exc

        logger.info("create_succeeded", key=record.key)
        return record

    def get(self, key: str) -> Record:
        logger.info("get_started", key=key)
        outcome = self._call(GET_PROCEDURE, key, [key])

        # 行なしと値列が空の場合は区別しない
        raw = outcome.column(1)
        if outcome.is_empty or raw is None or raw == "":
            logger.info("get_not_found", key=key)
            raise KeyNotFoundError(key)

        try:
            value = decode_value(key, raw)
        except DecodingError:
            logger.error("get_decode_failed", key=key)
            raise

        logger.info("get_succeeded", key=key)
        return Record(key=key, value=value)

    def update(self, record: Record) -> Record:
        logger.info("update_started", key=record.key)
        serialized = self._encode(record)

        # 存在確認はしない。プロシージャが欠落キーを nil で報告する
        outcome = self._call(UPDATE_PROCEDURE, record.key, [record.key, serialized])
        if outcome.is_empty:
            logger.info("update_not_found", key=record.key)
            raise KeyNotFoundError(record.key)

        logger.info("update_succeeded", key=record.key)
        return record

    def delete(self, key: str) -> Record:
        """削除直前の値を取得してから削除する.

        取得と削除は2回の独立した呼び出しで、原子的ではない。
        間に同じキーへの書き込みが入ると、返すスナップショットは古くなりうる。
        """
        logger.info("delete_started", key=key)
        try:
            existing = self.get(key)
        except KeyNotFoundError:
            logger.info("delete_not_found", key=key)
            raise

        outcome = self._call(DELETE_PROCEDURE, key, [key])
        if outcome.is_empty:
            logger.info("delete_not_found", key=key)
            raise KeyNotFoundError(key)

        logger.info("delete_succeeded", key=key)
        return existing

    def _encode(self, record: Record) -> str:
        try:
            return encode_value(record.key, record.value)
        except EncodingError:
            logger.error("serialization_failed", key=record.key)
            raise
