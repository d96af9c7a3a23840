"""
PowerSync SQLite 데이터베이스 레이어

사용 예시:
    from database import DatabaseRegistry, TextParam

    registry = DatabaseRegistry.from_config(config)
    await registry.open('main')

    session = await registry.get('main')
    await session.execute("INSERT INTO todos (id) VALUES (?)", [TextParam(value='1')])

    await registry.close_all()
"""

from database.codec import (
    SqlParam,
    NullParam,
    BoolParam,
    IntParam,
    RealParam,
    TextParam,
    BlobParam,
    parse_params,
    parse_params_batch,
    infer_param,
    encode_param,
    decode_column,
)
from database.exception import (
    DatabaseError,
    StorageError,
    DatabaseNotFoundError,
    TransactionNotFoundError,
    TransactionCompletedError,
    ForbiddenSqlError,
    InvalidParameterError,
    LockError,
    SerializationError,
    DatabaseIOError,
    ExtensionNotFoundError,
    ExtensionLoadError,
    NotInitializedError,
)
from database.model import ExecuteResult, QueryResult, CrudEntry
from database.registry import DatabaseRegistry
from database.sqlite3 import SQLiteSession, SqliteOptions, ExtensionBridge

__all__ = [
    'SqlParam',
    'NullParam',
    'BoolParam',
    'IntParam',
    'RealParam',
    'TextParam',
    'BlobParam',
    'parse_params',
    'parse_params_batch',
    'infer_param',
    'encode_param',
    'decode_column',
    'DatabaseError',
    'StorageError',
    'DatabaseNotFoundError',
    'TransactionNotFoundError',
    'TransactionCompletedError',
    'ForbiddenSqlError',
    'InvalidParameterError',
    'LockError',
    'SerializationError',
    'DatabaseIOError',
    'ExtensionNotFoundError',
    'ExtensionLoadError',
    'NotInitializedError',
    'ExecuteResult',
    'QueryResult',
    'CrudEntry',
    'DatabaseRegistry',
    'SQLiteSession',
    'SqliteOptions',
    'ExtensionBridge',
]
