"""
데이터베이스 레지스트리

논리 이름별로 열린 SQLiteSession을 관리합니다.
레지스트리 맵은 조회/등록/제거 동안에만 잠그며, 세션 생성과 SQL 실행은
락 밖에서 수행하므로 한 DB를 여는 동안 다른 DB 작업이 막히지 않습니다.
"""

import logging
import os
from pathlib import Path
from typing import Any

from database.exception import DatabaseNotFoundError, InvalidParameterError
from database.lock import GuardedLock
from database.sqlite3.connection import SQLiteSession, SqliteOptions
from database.sqlite3.extension import ExtensionBridge

logger = logging.getLogger(__name__)


def validate_name(name: str) -> None:
    """DB 이름 검사 (파일명으로 사용되므로 경로 구분자 불가)"""
    if not name or name in (".", ".."):
        raise InvalidParameterError(f"invalid database name: {name!r}")
    if "/" in name or "\\" in name or os.sep in name or "\x00" in name:
        raise InvalidParameterError(f"database name must not contain path separators: {name!r}")


class DatabaseRegistry:
    """
    열린 데이터베이스 세션 레지스트리

    사용 예시:
        registry = DatabaseRegistry.from_config(config)
        await registry.open('main')
        session = await registry.get('main')
        ...
        await registry.close_all()
    """

    def __init__(
        self,
        data_dir: str | Path,
        options: SqliteOptions | None = None,
        bridge: ExtensionBridge | None = None,
    ):
        self._data_dir = Path(data_dir)
        self._options = options or SqliteOptions()
        self._bridge = bridge or ExtensionBridge()
        self._sessions: dict[str, SQLiteSession] = {}
        self._lock = GuardedLock("Database registry")

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> 'DatabaseRegistry':
        """database.yaml 설정으로 레지스트리 생성"""
        db_config = config.get('database', config)

        opts = db_config.get('options', {})
        options = SqliteOptions(
            busy_timeout=opts.get('busy_timeout', 5000),
            journal_mode=opts.get('journal_mode', 'WAL'),
            synchronous=opts.get('synchronous', 'NORMAL'),
            foreign_keys=opts.get('foreign_keys', True),
        )

        ext = db_config.get('extension', {})
        bridge = ExtensionBridge(
            extension_path=ext.get('path'),
            resource_dir=db_config.get('resource_dir'),
        )

        return cls(
            data_dir=db_config.get('data_dir', './data'),
            options=options,
            bridge=bridge,
        )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    async def open(self, name: str) -> None:
        """DB 열기 (이미 열려 있으면 아무것도 하지 않음)"""
        validate_name(name)
        async with self._lock.hold():
            if name in self._sessions:
                return

        session = await SQLiteSession.open(name, self._data_dir, self._options, self._bridge)

        async with self._lock.hold():
            existing = self._sessions.get(name)
            if existing is None:
                self._sessions[name] = session
                logger.info(f"Database '{name}' registered", extra={"database": name})
                return

        # 동시에 같은 이름을 연 다른 호출이 먼저 등록함
        logger.debug(f"Database '{name}' opened concurrently, discarding duplicate session")
        await session.close()

    async def close(self, name: str) -> None:
        """DB 닫기 (열려 있지 않은 이름은 무시)"""
        async with self._lock.hold():
            session = self._sessions.pop(name, None)
        if session is None:
            logger.debug(f"Database '{name}' is not open, nothing to close")
            return
        await session.close()

    async def get(self, name: str) -> SQLiteSession:
        """열린 세션 반환"""
        async with self._lock.hold():
            session = self._sessions.get(name)
        if session is None:
            raise DatabaseNotFoundError(name)
        return session

    async def names(self) -> list[str]:
        """열린 DB 이름 목록"""
        async with self._lock.hold():
            return sorted(self._sessions)

    async def close_all(self) -> None:
        """모든 세션 종료 (앱 종료 시)"""
        async with self._lock.hold(check=False):
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.error(f"Error closing database '{session.name}': {e}")
        logger.info(f"Database registry closed ({len(sessions)} database(s))")
