"""
PowerSync SQLite Host 진입점

설정을 읽어 DB 레지스트리를 만들고 Host API 서버를 실행합니다.

사용법:
    python main.py
"""

import sys
import os

# Windows 인코딩 설정 (cp949 -> UTF-8)
if sys.platform == "win32":
    os.environ["PYTHONUTF8"] = "1"

import asyncio
import signal
import logging

import uvicorn

from common.logging import setup_logging_from_config
from host.main import create_app, load_config

logger = logging.getLogger(__name__)


async def main() -> None:
    """메인 함수"""
    config = load_config()
    setup_logging_from_config(config)

    host_config = config.get("host", {})
    app = create_app(config)

    uv_config = uvicorn.Config(
        app,
        host=host_config.get("host", "127.0.0.1"),
        port=host_config.get("port", 8080),
        log_config=None,
    )
    server = uvicorn.Server(uv_config)

    # 종료 이벤트
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    # Windows는 add_signal_handler를 지원하지 않음
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

    async def wait_stop():
        await stop_event.wait()
        server.should_exit = True

    stop_task = asyncio.create_task(wait_stop())
    try:
        await server.serve()
    finally:
        stop_task.cancel()
        logger.info("Host stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
