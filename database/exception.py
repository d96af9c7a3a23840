"""
Database 레이어 예외 클래스 정의

모든 예외는 DatabaseError를 상속하며, 호출자에게 그대로 전달되는
사람이 읽을 수 있는 고정 메시지를 가집니다.
"""

import sqlite3
from contextlib import contextmanager
from typing import Iterator

# sqlite3.Warning: 다중 구문 실행 등 (파이썬 버전에 따라 Error를 상속하지 않음)
SQLITE_ERRORS = (sqlite3.Error, sqlite3.Warning)


class DatabaseError(Exception):
    """Database 레이어 기본 예외"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class StorageError(DatabaseError):
    """SQLite 호출 실패 (엔진 에러 래핑)"""
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Database error: {detail}")


class DatabaseNotFoundError(DatabaseError):
    """열려있지 않은 데이터베이스"""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Database not found: {name}")


class TransactionNotFoundError(DatabaseError):
    """존재하지 않는 트랜잭션 핸들"""
    def __init__(self, tx_id: str):
        self.tx_id = tx_id
        super().__init__(f"Transaction not found: {tx_id}")


class TransactionCompletedError(DatabaseError):
    """이미 커밋 요청된 트랜잭션"""
    def __init__(self, tx_id: str):
        self.tx_id = tx_id
        super().__init__(f"Transaction already completed: {tx_id}")


class ForbiddenSqlError(DatabaseError):
    """허용되지 않는 SQL 문"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Forbidden SQL: {reason}")


class InvalidParameterError(DatabaseError):
    """잘못된 파라미터 (DB 이름 등)"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid parameter: {reason}")


class LockError(DatabaseError):
    """락 오염 (이전 작업이 락을 쥔 채 비정상 종료됨)"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Lock error: {reason}")


class SerializationError(DatabaseError):
    """파라미터/결과 직렬화 실패"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Serialization error: {reason}")


class DatabaseIOError(DatabaseError):
    """파일시스템 에러"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"IO error: {reason}")


class ExtensionNotFoundError(DatabaseError):
    """PowerSync 확장 파일을 찾을 수 없음"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Extension not found: {reason}")


class ExtensionLoadError(DatabaseError):
    """PowerSync 확장 로드 실패"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Extension load error: {reason}")


class NotInitializedError(DatabaseError):
    """PowerSync 확장이 활성화되지 않은 세션"""
    def __init__(self):
        super().__init__("PowerSync not initialized")


@contextmanager
def storage_errors() -> Iterator[None]:
    """sqlite3 예외를 StorageError로 변환"""
    try:
        yield
    except SQLITE_ERRORS as e:
        raise StorageError(str(e)) from e
