"""
PowerSync 확장 로드 모듈

새로 연 SQLite 연결에 PowerSync 확장 SQL 함수를 활성화합니다.
아래 순서로 시도하며 처음 성공한 방법을 사용합니다.

1. 개발용 확장 경로 (설정의 extension.path 또는 POWERSYNC_EXT_PATH)
2. 리소스 디렉토리 탐색 (루트, libs/, native/)
3. 정적 링크 감지 (pragma_function_list에 powersync_init 존재)

모두 실패하면 세션은 확장 없이 동작하고, 확장 전용 작업은
NotInitializedError로 실패합니다.
"""

import logging
import os
import sqlite3
import sys
from pathlib import Path
from typing import Awaitable, Callable

import aiosql
import aiosqlite
from aiosql.queries import Queries
from aiosql.utils import SQLLoadException, SQLParseException

from database.exception import (
    ExtensionLoadError,
    ExtensionNotFoundError,
    storage_errors,
)
from database.model import CrudEntry

logger = logging.getLogger(__name__)

EXTENSION_PATH_ENV = "POWERSYNC_EXT_PATH"
RESOURCE_SUBDIRS = ("", "libs", "native")
SQL_PATH = Path(__file__).parent / "sql" / "powersync.sql"

Probe = Callable[[aiosqlite.Connection], Awaitable[bool]]

_queries: Queries | None = None


def get_queries() -> Queries:
    """powersync.sql 쿼리 세트 반환 (최초 호출 시 로드)"""
    global _queries
    if _queries is None:
        try:
            _queries = aiosql.from_path(str(SQL_PATH), "aiosqlite")
        except (SQLLoadException, SQLParseException) as e:
            raise ExtensionLoadError(f"cannot load {SQL_PATH.name}: {e}") from e
    return _queries


def extension_filename(platform: str = sys.platform) -> str:
    """플랫폼별 확장 파일명"""
    if platform in ("darwin", "ios"):
        return "libpowersync.dylib"
    if platform.startswith("win") or platform == "cygwin":
        return "powersync.dll"
    return "libpowersync.so"


def find_extension(resource_dir: str | Path, platform: str = sys.platform) -> Path:
    """리소스 디렉토리에서 확장 파일 탐색"""
    filename = extension_filename(platform)
    resource_dir = Path(resource_dir)
    for subdir in RESOURCE_SUBDIRS:
        path = resource_dir / subdir / filename
        if path.exists():
            return path
    raise ExtensionNotFoundError(f"PowerSync extension '{filename}' not found in {resource_dir}")


async def load_extension(conn: aiosqlite.Connection, path: str | Path) -> None:
    """
    확장 로드

    확장 로딩은 load 호출 동안에만 허용하고, 성공 여부와 관계없이 즉시 다시 막습니다.
    """
    try:
        await conn.enable_load_extension(True)
    except (AttributeError, sqlite3.Error) as e:
        # sqlite3 모듈이 확장 로딩 없이 빌드된 경우
        raise ExtensionLoadError(f"extension loading not supported: {e}") from e

    try:
        await conn.load_extension(str(path))
    except sqlite3.Error as e:
        await _disable_load_extension(conn, log_only=True)
        raise ExtensionLoadError(str(e)) from e
    except BaseException:
        await _disable_load_extension(conn, log_only=True)
        raise
    await _disable_load_extension(conn)


async def _disable_load_extension(conn: aiosqlite.Connection, log_only: bool = False) -> None:
    """확장 로딩 비활성화 (log_only면 실패를 로그로만 남기고 진행 중인 에러를 유지)"""
    try:
        await conn.enable_load_extension(False)
    except sqlite3.Error as e:
        if not log_only:
            raise ExtensionLoadError(f"failed to disable extension loading: {e}") from e
        logger.error(f"Failed to disable extension loading: {e}")


async def has_powersync(conn: aiosqlite.Connection) -> bool:
    """PowerSync 함수가 이미 연결에 존재하는지 확인"""
    try:
        return bool(await get_queries().has_powersync(conn))
    except ExtensionLoadError as e:
        logger.warning(f"PowerSync queries unavailable: {e}")
        return False
    except sqlite3.Error as e:
        logger.debug(f"pragma_function_list unavailable: {e}")
        return False


async def init_powersync(conn: aiosqlite.Connection) -> None:
    """확장 로드 후 PowerSync 초기화"""
    with storage_errors():
        await get_queries().powersync_init(conn)


async def get_powersync_version(conn: aiosqlite.Connection) -> str:
    with storage_errors():
        return await get_queries().powersync_version(conn)


async def replace_schema(conn: aiosqlite.Connection, schema_json: str) -> None:
    with storage_errors():
        await get_queries().replace_schema(conn, schema_json=schema_json)


async def powersync_control(conn: aiosqlite.Connection, op: str, payload: str) -> str | None:
    with storage_errors():
        return await get_queries().powersync_control(conn, op=op, payload=payload)


async def get_crud_batch(conn: aiosqlite.Connection, limit: int) -> list[CrudEntry]:
    with storage_errors():
        rows = await get_queries().get_crud_batch(conn, limit=limit)
    return [CrudEntry(id=row[0], tx_id=row[1], data=row[2]) for row in rows]


async def remove_crud(conn: aiosqlite.Connection, crud_id: int) -> None:
    """crud_id 이하의 CRUD 엔트리 삭제"""
    with storage_errors():
        await get_queries().remove_crud(conn, crud_id=crud_id)


async def has_pending_crud(conn: aiosqlite.Connection) -> bool:
    with storage_errors():
        count = await get_queries().count_crud(conn)
    return bool(count)


async def get_write_checkpoint(conn: aiosqlite.Connection) -> str | None:
    """
    마지막 동기화 체크포인트 조회

    함수 호출이 실패하거나 값이 없으면 에러 대신 None을 반환합니다.
    """
    try:
        value = await get_queries().last_synced_at(conn)
    except sqlite3.Error as e:
        logger.debug(f"No write checkpoint available: {e}")
        return None
    return None if value is None else str(value)


class ExtensionBridge:
    """
    PowerSync 확장 활성화 담당

    probe 목록을 순서대로 실행하여 첫 번째로 성공한 probe를 사용합니다.
    실패한 probe는 연결에 아무 상태도 남기지 않습니다.
    """

    def __init__(
        self,
        extension_path: str | Path | None = None,
        resource_dir: str | Path | None = None,
        probes: list[tuple[str, Probe]] | None = None,
    ):
        if extension_path is None:
            extension_path = os.environ.get(EXTENSION_PATH_ENV) or None
        self._extension_path = Path(extension_path) if extension_path else None
        self._resource_dir = Path(resource_dir) if resource_dir else None
        self._probes = probes if probes is not None else self.default_probes()

    @property
    def extension_path(self) -> Path | None:
        return self._extension_path

    @property
    def resource_dir(self) -> Path | None:
        return self._resource_dir

    def default_probes(self) -> list[tuple[str, Probe]]:
        return [
            ("build path", self._probe_build_path),
            ("resource directory", self._probe_resource_dir),
            ("static link", has_powersync),
        ]

    async def activate(self, conn: aiosqlite.Connection) -> bool:
        """확장 활성화 (성공 시 powersync_init까지 실행)"""
        for label, probe in self._probes:
            if await probe(conn):
                logger.info(f"PowerSync extension available via {label}")
                break
        else:
            logger.info("PowerSync extension not available, running plain SQLite")
            return False

        await init_powersync(conn)
        logger.info("PowerSync initialized")
        return True

    async def _probe_build_path(self, conn: aiosqlite.Connection) -> bool:
        if self._extension_path is None:
            return False
        if not self._extension_path.exists():
            logger.debug(f"PowerSync extension build path missing: {self._extension_path}")
            return False
        try:
            await load_extension(conn, self._extension_path)
        except ExtensionLoadError as e:
            logger.warning(f"Failed to load PowerSync extension from build path: {e}")
            return False
        logger.info(f"Loaded PowerSync extension from build path: {self._extension_path}")
        return True

    async def _probe_resource_dir(self, conn: aiosqlite.Connection) -> bool:
        if self._resource_dir is None:
            return False
        try:
            path = find_extension(self._resource_dir)
        except ExtensionNotFoundError as e:
            logger.debug(str(e))
            return False
        try:
            await load_extension(conn, path)
        except ExtensionLoadError as e:
            logger.warning(f"Failed to load PowerSync extension: {e}")
            return False
        logger.info(f"Loaded PowerSync extension from {path}")
        return True
