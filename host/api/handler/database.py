"""데이터베이스 명령 핸들러"""

import logging

from database.codec import SqlParam
from database.model import CrudEntry, ExecuteResult, QueryResult, RowResult
from database.registry import DatabaseRegistry
from database.sqlite3.connection import validate_sql

logger = logging.getLogger(__name__)

DEFAULT_CRUD_BATCH_LIMIT = 100


class DatabaseHandler:
    """
    DB 이름으로 세션을 찾아 명령을 위임하는 핸들러

    레지스트리 락은 세션 조회 동안에만 잡고, SQL 실행은 세션 락 안에서 수행됩니다.
    """

    def __init__(self, registry: DatabaseRegistry):
        self._registry = registry

    @property
    def registry(self) -> DatabaseRegistry:
        return self._registry

    async def open(self, name: str) -> None:
        await self._registry.open(name)

    async def close(self, name: str) -> None:
        await self._registry.close(name)

    async def execute(self, name: str, sql: str, params: list[SqlParam]) -> ExecuteResult:
        validate_sql(sql)
        session = await self._registry.get(name)
        return await session.execute(sql, params)

    async def execute_batch(self, name: str, sql: str, params_batch: list[list[SqlParam]]) -> ExecuteResult:
        validate_sql(sql)
        session = await self._registry.get(name)
        return await session.execute_batch(sql, params_batch)

    async def get_all(self, name: str, sql: str, params: list[SqlParam]) -> QueryResult:
        validate_sql(sql)
        session = await self._registry.get(name)
        return await session.get_all(sql, params)

    async def get_optional(self, name: str, sql: str, params: list[SqlParam]) -> RowResult | None:
        validate_sql(sql)
        session = await self._registry.get(name)
        return await session.get_optional(sql, params)

    async def begin_transaction(self, name: str, is_write: bool) -> str:
        session = await self._registry.get(name)
        return await session.begin_transaction(is_write)

    async def commit_transaction(self, name: str, tx_id: str) -> None:
        session = await self._registry.get(name)
        await session.commit_transaction(tx_id)

    async def rollback_transaction(self, name: str, tx_id: str) -> None:
        session = await self._registry.get(name)
        await session.rollback_transaction(tx_id)

    # =====================================================
    # PowerSync 확장
    # =====================================================

    async def get_powersync_version(self, name: str) -> str:
        session = await self._registry.get(name)
        return await session.get_powersync_version()

    async def is_powersync_loaded(self, name: str) -> bool:
        session = await self._registry.get(name)
        return session.is_powersync_loaded

    async def replace_schema(self, name: str, schema_json: str) -> None:
        session = await self._registry.get(name)
        await session.replace_schema(schema_json)

    async def powersync_control(self, name: str, op: str, payload: str) -> str | None:
        session = await self._registry.get(name)
        return await session.powersync_control(op, payload)

    async def get_crud_batch(self, name: str, limit: int | None = None) -> list[CrudEntry]:
        session = await self._registry.get(name)
        return await session.get_crud_batch(limit if limit is not None else DEFAULT_CRUD_BATCH_LIMIT)

    async def remove_crud(self, name: str, crud_id: int) -> None:
        session = await self._registry.get(name)
        await session.remove_crud(crud_id)

    async def has_pending_crud(self, name: str) -> bool:
        session = await self._registry.get(name)
        return await session.has_pending_crud()

    async def get_write_checkpoint(self, name: str) -> str | None:
        session = await self._registry.get(name)
        return await session.get_write_checkpoint()
