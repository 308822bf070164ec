"""FastAPI アプリケーション。

キー・バリュー CRUD API。リクエストの形を検証してから
ストアゲートウェイへ委譲し、結果を応答エンベロープに詰める。
"""

from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from kv_service.dependencies import close_all, get_kv_store, get_remote_store
from kv_service.interfaces.errors import (
    KeyAlreadyExistsError,
    KeyNotFoundError,
    KeyValueError,
)
from kv_service.interfaces.kv_store import KeyValueStoreInterface, Record
from kv_service.log import get_logger, setup_logging
from kv_service.settings import get_settings

logger = get_logger(__name__)

KvStoreDep = Annotated[KeyValueStoreInterface, Depends(get_kv_store)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """起動時にリモートストアへ接続し、終了時に閉じる。

    接続に失敗した場合は例外をそのまま送出し、リクエストを受け付けない。
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
    logger.info("startup", backend=settings.store_backend)

    get_remote_store(settings)
    try:
        yield
    finally:
        close_all()
        logger.info("shutdown")


app = FastAPI(
    title="Key-Value Store API",
    version="0.1.0",
    lifespan=lifespan,
)


# ---------- Pydantic モデル ----------


class CreateRequest(BaseModel):
    """POST /kv のリクエストボディ。"""

    key: str = ""
    value: dict[str, Any] = Field(default_factory=dict)


class UpdateRequest(BaseModel):
    """PUT /kv/{id} のリクエストボディ。キーはパスから取る。"""

    value: dict[str, Any] = Field(default_factory=dict)


# ---------- ヘルパー ----------


def _record_body(record: Record) -> dict[str, Any]:
    return {"key": record.key, "value": record.value}


def _respond(status_code: int = 200, **fields: Any) -> JSONResponse:
    """応答エンベロープ {result?, deleted?, error?, message?} を返す。

    値が None の項目は省略する。
    """
    content = {name: v for name, v in fields.items() if v is not None}
    return JSONResponse(status_code=status_code, content=content)


def _status_for(exc: KeyValueError) -> tuple[int, str]:
    """ゲートウェイのエラーを HTTP ステータスと応答メッセージに対応付ける。"""
    if isinstance(exc, KeyAlreadyExistsError):
        return 409, "Key already exists"
    if isinstance(exc, KeyNotFoundError):
        return 404, "key not found"
    return 500, "Internal server error"


# ---------- 例外ハンドラ ----------


@app.exception_handler(RequestValidationError)
async def handle_invalid_body(request: Request, exc: RequestValidationError):
    """JSON として読めない、または型が合わないボディ。"""
    logger.info(
        "invalid_request_body",
        method=request.method,
        path=request.url.path,
        errors=len(exc.errors()),
    )
    return _respond(400, error="Invalid body")


@app.exception_handler(KeyValueError)
async def handle_kv_error(request: Request, exc: KeyValueError):
    status_code, message = _status_for(exc)
    if status_code >= 500:
        logger.error(
            "request_failed",
            method=request.method,
            path=request.url.path,
            key=exc.key,
            kind=type(exc).__name__,
            error=exc.message,
        )
    else:
        logger.info(
            "request_rejected",
            method=request.method,
            path=request.url.path,
            key=exc.key,
            status=status_code,
        )
    return _respond(status_code, error=message)


# ---------- エンドポイント ----------


@app.get("/health")
def health_check():
    """ヘルスチェック。"""
    return {"status": "ok"}


@app.post("/kv")
def create_key_value(body: CreateRequest, store: KvStoreDep):
    """キーと値を新規作成する。"""
    if not body.key:
        logger.info("key_required")
        return _respond(400, error="Key is required")
    if not body.value:
        logger.info("value_required", key=body.key)
        return _respond(400, error="Value must be a non-empty object")

    created = store.create(Record(key=body.key, value=body.value))
    logger.info("key_created", key=created.key)
    return _respond(
        result=_record_body(created), message="Key created successfully"
    )


@app.get("/kv/{key}")
def get_key_value(key: str, store: KvStoreDep):
    """キーの値を取得する。未登録なら 404。"""
    record = store.get(key)
    logger.info("key_fetched", key=key)
    return _respond(result=_record_body(record), message="Key fetched successfully")


@app.put("/kv/{key}")
def update_key_value(key: str, body: UpdateRequest, store: KvStoreDep):
    """キーの値を置き換える。ボディにキーがあっても無視してパスを使う。"""
    if not body.value:
        logger.info("value_required", key=key)
        return _respond(400, error="Value must be a non-empty object")

    updated = store.update(Record(key=key, value=body.value))
    logger.info("key_updated", key=key)
    return _respond(result=_record_body(updated), message="Key updated successfully")


@app.delete("/kv/{key}")
def delete_key_value(key: str, store: KvStoreDep):
    """キーを削除し、削除直前の値を返す。"""
    deleted = store.delete(key)
    logger.info("key_deleted", key=key)
    return _respond(deleted=_record_body(deleted), message="Key deleted successfully")
