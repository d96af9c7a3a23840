"""
SQLite3 세션 패키지

사용 예시:
    from database.sqlite3 import SQLiteSession

    session = await SQLiteSession.open('main', './data')

    # 핸들 기반 트랜잭션
    tx_id = await session.begin_transaction(is_write=True)
    await session.execute("INSERT INTO ...")
    await session.commit_transaction(tx_id)

    # 컨텍스트 매니저
    async with session.transaction() as tx_id:
        await session.execute("INSERT INTO ...")
"""

from database.sqlite3.connection import (
    SQLiteSession,
    Session,
    SqliteOptions,
    Transaction,
    validate_sql,
)
from database.sqlite3.extension import ExtensionBridge

__all__ = [
    'SQLiteSession',
    'Session',
    'SqliteOptions',
    'Transaction',
    'ExtensionBridge',
    'validate_sql',
]
