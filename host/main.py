"""Host API 서버 진입점"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database.exception import DatabaseError
from database.registry import DatabaseRegistry
from host.api.handler.database import DatabaseHandler
from host.api.router.api import router, database_error_handler

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"


def load_config(config_dir: Path = CONFIG_DIR) -> dict[str, Any]:
    """설정 파일 로드 (host.yaml + database.yaml)"""
    with open(config_dir / "host.yaml", 'r', encoding='utf-8') as f:
        host_config = yaml.safe_load(f) or {}

    with open(config_dir / "database.yaml", 'r', encoding='utf-8') as f:
        db_config = yaml.safe_load(f) or {}

    return {**host_config, **db_config}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리"""
    registry: DatabaseRegistry = app.state.registry
    for name in app.state.preopen:
        await registry.open(name)
    logger.info(f"Database registry ready: {registry.data_dir}")

    yield

    await registry.close_all()
    logger.info("Database registry closed")


def create_app(config: dict[str, Any] | None = None, registry: DatabaseRegistry | None = None) -> FastAPI:
    """FastAPI 앱 생성"""
    if config is None:
        config = load_config()
    host_config = config.get('host', {})

    if registry is None:
        registry = DatabaseRegistry.from_config(config)

    app = FastAPI(
        title="PowerSync SQLite Host API",
        description="PowerSync SQLite 세션 명령 API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.handler = DatabaseHandler(registry)
    app.state.preopen = config.get('database', {}).get('preopen', [])

    cors_config = host_config.get('cors', {})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get('origins', ['*']),
        allow_credentials=cors_config.get('allow_credentials', True),
        allow_methods=cors_config.get('allow_methods', ['*']),
        allow_headers=cors_config.get('allow_headers', ['*']),
    )

    app.add_exception_handler(DatabaseError, database_error_handler)
    app.include_router(router)

    return app
