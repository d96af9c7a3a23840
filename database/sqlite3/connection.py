"""
SQLite3 세션 모듈

논리 데이터베이스 하나당 aiosqlite 연결 하나를 소유하는 세션을 제공합니다.
SQLite는 최상위 트랜잭션을 하나만 지원하므로, 중첩된 논리 트랜잭션은
SAVEPOINT로 흉내내고 바깥 트랜잭션의 커밋은 중첩된 savepoint가 모두
정리될 때까지 지연합니다.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from database.codec import SqlParam, decode_row, decode_text, encode_params
from database.exception import (
    DatabaseIOError,
    ForbiddenSqlError,
    NotInitializedError,
    StorageError,
    TransactionCompletedError,
    TransactionNotFoundError,
    storage_errors,
)
from database.lock import GuardedLock
from database.model import CrudEntry, ExecuteResult, QueryResult, RowResult
from database.sqlite3 import extension
from database.sqlite3.extension import ExtensionBridge

logger = logging.getLogger(__name__)

FORBIDDEN_SQL_MARKER = "powersync_core"
ROW_RETURNING_PREFIXES = ("SELECT", "PRAGMA")


@dataclass
class SqliteOptions:
    """SQLite 연결 옵션"""
    busy_timeout: int = 5000
    journal_mode: str = 'WAL'
    synchronous: str = 'NORMAL'
    foreign_keys: bool = True


@dataclass
class Transaction:
    """진행 중인 논리 트랜잭션 (최상위 트랜잭션 또는 savepoint)"""
    id: str
    is_write: bool
    completed: bool = False
    is_savepoint: bool = False
    savepoint_name: str | None = None


def validate_sql(sql: str) -> None:
    """
    PowerSync 내부 네임스페이스를 참조하는 SQL 차단

    바인딩 파라미터 값은 검사하지 않습니다 (SQL로 해석되지 않는 데이터).
    """
    if FORBIDDEN_SQL_MARKER in sql:
        raise ForbiddenSqlError(f"SQL must not reference {FORBIDDEN_SQL_MARKER}")


def _returns_rows(sql: str) -> bool:
    return sql.strip().upper().startswith(ROW_RETURNING_PREFIXES)


def _log_query(sql: str, parameters: Any = None) -> None:
    """SQL 쿼리 로깅"""
    sql_oneline = ' '.join(sql.split())
    if parameters:
        logger.debug(f"[SQL] {sql_oneline} | params: {parameters}")
    else:
        logger.debug(f"[SQL] {sql_oneline}")


def _log_result(row_count: int) -> None:
    """SQL 결과 로깅"""
    logger.debug(f"[SQL Result] {row_count} row(s)")


class SQLiteSession:
    """
    PowerSync 지원 SQLite 세션

    사용 예시:
        session = await SQLiteSession.open('main', Path('./data'))

        tx_id = await session.begin_transaction(is_write=True)
        await session.execute("INSERT INTO todos (id) VALUES (?)", [TextParam(value='1')])
        await session.commit_transaction(tx_id)

        async with session.transaction() as tx_id:
            await session.execute("UPDATE todos SET done = 1")
    """

    def __init__(
        self,
        name: str,
        db_path: str | Path,
        options: SqliteOptions | None = None,
        bridge: ExtensionBridge | None = None,
    ):
        self._name = name
        self._db_path = Path(db_path)
        self._options = options or SqliteOptions()
        self._bridge = bridge or ExtensionBridge()

        self._conn: aiosqlite.Connection | None = None
        self._transactions: dict[str, Transaction] = {}
        self._depth = 0
        self._powersync_loaded = False
        self._lock = GuardedLock(f"Database '{name}'")

    @classmethod
    async def open(
        cls,
        name: str,
        data_dir: str | Path,
        options: SqliteOptions | None = None,
        bridge: ExtensionBridge | None = None,
    ) -> 'SQLiteSession':
        """<data_dir>/<name>.db 세션 생성 및 초기화"""
        instance = cls(name, Path(data_dir) / f"{name}.db", options, bridge)
        await instance._initialize()
        return instance

    async def _initialize(self) -> None:
        """내부 초기화"""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DatabaseIOError(str(e)) from e

        opts = self._options
        try:
            with storage_errors():
                # isolation_level=None: BEGIN/SAVEPOINT를 직접 관리
                self._conn = await aiosqlite.connect(
                    self._db_path,
                    timeout=opts.busy_timeout / 1000.0,
                    isolation_level=None,
                )
                self._conn.text_factory = decode_text

                await self._conn.execute(f"PRAGMA busy_timeout={opts.busy_timeout}")
                await self._conn.execute(f"PRAGMA journal_mode={opts.journal_mode}")
                await self._conn.execute(f"PRAGMA synchronous={opts.synchronous}")
                await self._conn.execute(f"PRAGMA foreign_keys={'ON' if opts.foreign_keys else 'OFF'}")

            self._powersync_loaded = await self._bridge.activate(self._conn)
        except BaseException:
            if self._conn is not None:
                await self._conn.close()
                self._conn = None
            raise

        logger.info(
            f"Database '{self._name}' opened: {self._db_path} (powersync={self._powersync_loaded})",
            extra={"database": self._name},
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        """데이터베이스 파일 경로"""
        return self._db_path

    @property
    def depth(self) -> int:
        """현재 중첩된 논리 트랜잭션 수"""
        return self._depth

    @property
    def transactions(self) -> dict[str, Transaction]:
        return dict(self._transactions)

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError(f"database '{self._name}' is closed")
        return self._conn

    # =====================================================
    # SQL 실행
    # =====================================================

    async def execute(self, sql: str, params: list[SqlParam] | None = None) -> ExecuteResult:
        """
        SQL 실행

        SELECT/PRAGMA 문은 조회로 실행하여 rows/columns를 함께 반환합니다.
        (PowerSync 확장 제어 함수가 SELECT로 호출되기 때문)
        """
        validate_sql(sql)
        values = encode_params(params)

        async with self._lock.hold():
            if _returns_rows(sql):
                result = await self._fetch(sql, values)
                return ExecuteResult(changes=0, last_insert_rowid=0, columns=result.columns, rows=result.rows)

            changes, last_rowid = await self._write(sql, values)
            return ExecuteResult(changes=changes, last_insert_rowid=last_rowid)

    async def execute_batch(self, sql: str, params_batch: list[list[SqlParam]]) -> ExecuteResult:
        """
        같은 SQL을 파라미터 세트마다 실행

        savepoint 안에서 실행하므로 열린 트랜잭션 안에서도 호출할 수 있습니다.
        하나라도 실패하면 배치 전체를 되돌리고 해당 에러를 전달합니다.
        """
        validate_sql(sql)
        batch = [encode_params(params) for params in params_batch]

        async with self._lock.hold():
            savepoint = f"batch_{uuid.uuid4().hex}"
            await self._run(f"SAVEPOINT {savepoint}")

            total_changes = 0
            last_rowid = 0
            try:
                for values in batch:
                    changes, last_rowid = await self._write(sql, values)
                    total_changes += changes
            except Exception:
                await self._discard_savepoint(savepoint)
                raise

            await self._run(f"RELEASE SAVEPOINT {savepoint}")
            logger.debug(f"Batch executed: {len(batch)} set(s), {total_changes} change(s)")
            return ExecuteResult(changes=total_changes, last_insert_rowid=last_rowid)

    async def get_all(self, sql: str, params: list[SqlParam] | None = None) -> QueryResult:
        """모든 행 조회"""
        validate_sql(sql)
        values = encode_params(params)
        async with self._lock.hold():
            return await self._fetch(sql, values)

    async def get_optional(self, sql: str, params: list[SqlParam] | None = None) -> RowResult | None:
        """첫 번째 행 조회 (없으면 None)"""
        result = await self.get_all(sql, params)
        return result.rows[0] if result.rows else None

    async def _run(self, sql: str) -> None:
        """파라미터 없는 제어 문 실행 (BEGIN/SAVEPOINT/COMMIT 등)"""
        _log_query(sql)
        with storage_errors():
            await self.connection.execute(sql)

    async def _write(self, sql: str, values: tuple) -> tuple[int, int]:
        _log_query(sql, values)
        with storage_errors():
            async with self.connection.execute(sql, values) as cursor:
                changes = max(cursor.rowcount, 0)
            async with self.connection.execute("SELECT last_insert_rowid()") as cursor:
                row = await cursor.fetchone()
        return changes, row[0]

    async def _fetch(self, sql: str, values: tuple) -> QueryResult:
        _log_query(sql, values)
        with storage_errors():
            async with self.connection.execute(sql, values) as cursor:
                columns = [d[0] for d in cursor.description or ()]
                rows = await cursor.fetchall()
        _log_result(len(rows))
        return QueryResult(columns=columns, rows=[decode_row(columns, row) for row in rows])

    async def _discard_savepoint(self, savepoint: str) -> None:
        try:
            await self._run(f"ROLLBACK TO SAVEPOINT {savepoint}")
            await self._run(f"RELEASE SAVEPOINT {savepoint}")
        except StorageError as e:
            logger.warning(f"Failed to discard savepoint {savepoint}: {e}")

    # =====================================================
    # 트랜잭션 / savepoint
    # =====================================================

    async def begin_transaction(self, is_write: bool) -> str:
        """
        트랜잭션 시작

        이미 트랜잭션이 열려 있으면 savepoint를 생성합니다.
        savepoint는 락 모드를 바꾸지 않으므로 바깥 트랜잭션의 모드를 따릅니다.
        """
        async with self._lock.hold():
            tx_id = str(uuid.uuid4())

            if self._depth > 0:
                savepoint = f"sp_{uuid.uuid4().hex}"
                await self._run(f"SAVEPOINT {savepoint}")
                tx = Transaction(id=tx_id, is_write=is_write, is_savepoint=True, savepoint_name=savepoint)
            else:
                # 쓰기 트랜잭션은 RESERVED 락을 즉시 획득
                await self._run("BEGIN IMMEDIATE" if is_write else "BEGIN DEFERRED")
                tx = Transaction(id=tx_id, is_write=is_write)

            self._transactions[tx_id] = tx
            self._depth += 1
            logger.debug(
                f"Transaction started: {tx_id} "
                f"({'savepoint' if tx.is_savepoint else 'write' if is_write else 'read'}, depth={self._depth})"
            )
            return tx_id

    async def commit_transaction(self, tx_id: str) -> None:
        """
        트랜잭션 커밋

        savepoint가 남아있는 상태에서 최상위 트랜잭션을 커밋하면
        completed로 표시만 하고, savepoint가 모두 정리된 뒤 실제 COMMIT합니다.
        """
        async with self._lock.hold():
            tx = self._pending(tx_id)

            if tx.is_savepoint:
                await self._run(f"RELEASE SAVEPOINT {tx.savepoint_name}")
                self._forget(tx_id)
                logger.debug(f"Savepoint released: {tx_id} (depth={self._depth})")
                await self._check_deferred_commits()
            elif self._depth == 1:
                await self._run("COMMIT")
                self._forget(tx_id)
                logger.debug(f"Transaction committed: {tx_id}")
            else:
                tx.completed = True
                logger.debug(f"Transaction commit deferred: {tx_id} (depth={self._depth})")

    async def rollback_transaction(self, tx_id: str) -> None:
        """
        트랜잭션 롤백

        최상위 트랜잭션 롤백은 지연 없이 즉시 실행되며, 중첩된 savepoint도 함께 폐기됩니다.
        """
        async with self._lock.hold():
            tx = self._pending(tx_id)

            if tx.is_savepoint:
                await self._run(f"ROLLBACK TO SAVEPOINT {tx.savepoint_name}")
                await self._run(f"RELEASE SAVEPOINT {tx.savepoint_name}")
                self._forget(tx_id)
                logger.debug(f"Savepoint rolled back: {tx_id} (depth={self._depth})")
                await self._check_deferred_commits()
                return

            if self.connection.in_transaction:
                await self._run("ROLLBACK")
            else:
                logger.warning(f"Transaction {tx_id} was already rolled back by SQLite")
            discarded = len(self._transactions) - 1
            self._transactions.clear()
            self._depth = 0
            logger.debug(f"Transaction rolled back: {tx_id} ({discarded} nested savepoint(s) discarded)")

    async def _check_deferred_commits(self) -> None:
        """depth가 1로 돌아왔을 때 지연된 커밋 실행"""
        if self._depth != 1:
            return
        deferred = next(
            (tx for tx in self._transactions.values() if tx.completed and not tx.is_savepoint),
            None,
        )
        if deferred is None:
            return
        try:
            await self._run("COMMIT")
        except StorageError:
            # 커밋 요청 이전 상태로 되돌림 (재시도 또는 롤백 가능)
            deferred.completed = False
            raise
        self._forget(deferred.id)
        logger.debug(f"Deferred commit applied: {deferred.id}")

    def _pending(self, tx_id: str) -> Transaction:
        tx = self._transactions.get(tx_id)
        if tx is None:
            raise TransactionNotFoundError(tx_id)
        if tx.completed:
            raise TransactionCompletedError(tx_id)
        return tx

    def _forget(self, tx_id: str) -> None:
        del self._transactions[tx_id]
        self._depth -= 1

    @asynccontextmanager
    async def transaction(self, is_write: bool = True) -> AsyncIterator[str]:
        """
        트랜잭션 컨텍스트 매니저

        블록이 정상 종료되면 커밋, 예외가 발생하면 롤백합니다.
        """
        tx_id = await self.begin_transaction(is_write)
        try:
            yield tx_id
        except BaseException:
            await self.rollback_transaction(tx_id)
            raise
        await self.commit_transaction(tx_id)

    # =====================================================
    # PowerSync 확장
    # =====================================================

    @property
    def is_powersync_loaded(self) -> bool:
        return self._powersync_loaded

    def _require_powersync(self) -> None:
        if not self._powersync_loaded:
            raise NotInitializedError()

    async def get_powersync_version(self) -> str:
        self._require_powersync()
        async with self._lock.hold():
            return await extension.get_powersync_version(self.connection)

    async def replace_schema(self, schema_json: str) -> None:
        """PowerSync 스키마 교체"""
        self._require_powersync()
        async with self._lock.hold():
            await extension.replace_schema(self.connection, schema_json)
        logger.info(f"PowerSync schema replaced on '{self._name}'", extra={"database": self._name})

    async def powersync_control(self, op: str, payload: str) -> str | None:
        """PowerSync 제어 명령 실행"""
        self._require_powersync()
        async with self._lock.hold():
            return await extension.powersync_control(self.connection, op, payload)

    async def get_crud_batch(self, limit: int = 100) -> list[CrudEntry]:
        """업로드 대기 CRUD 엔트리 조회"""
        self._require_powersync()
        async with self._lock.hold():
            entries = await extension.get_crud_batch(self.connection, limit)
        _log_result(len(entries))
        return entries

    async def remove_crud(self, crud_id: int) -> None:
        """crud_id 이하의 CRUD 엔트리 삭제"""
        self._require_powersync()
        async with self._lock.hold():
            await extension.remove_crud(self.connection, crud_id)

    async def has_pending_crud(self) -> bool:
        self._require_powersync()
        async with self._lock.hold():
            return await extension.has_pending_crud(self.connection)

    async def get_write_checkpoint(self) -> str | None:
        self._require_powersync()
        async with self._lock.hold():
            return await extension.get_write_checkpoint(self.connection)

    # =====================================================
    # 종료
    # =====================================================

    async def close(self) -> None:
        """
        연결 종료

        진행 중인 작업이 끝날 때까지 기다린 뒤 닫습니다.
        락이 오염된 세션도 닫을 수 있습니다.
        """
        async with self._lock.hold(check=False):
            if self._conn is None:
                return
            if self._transactions:
                logger.warning(
                    f"Closing '{self._name}' with {len(self._transactions)} open transaction(s); "
                    f"uncommitted changes are discarded"
                )
            try:
                with storage_errors():
                    await self._conn.close()
            finally:
                self._conn = None
                self._transactions.clear()
                self._depth = 0
        logger.info(f"Database '{self._name}' closed", extra={"database": self._name})


# 짧은 별칭
Session = SQLiteSession
