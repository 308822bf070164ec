"""python -m kv_service でサーバーを起動する。"""

import uvicorn
from dotenv import load_dotenv

from kv_service.settings import get_settings


def main() -> None:
    load_dotenv()
    settings = get_settings()
    # 起動時の接続失敗は lifespan から送出され、uvicorn が非ゼロで終了する
    uvicorn.run(
        "kv_service.api.main:app",
        host=settings.http_host,
        port=settings.http_port,
        lifespan="on",
        log_config=None,
    )


if __name__ == "__main__":
    main()
