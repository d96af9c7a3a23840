"""Host API 라우터 (데이터베이스 명령 통합)"""

import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from database.exception import (
    DatabaseError,
    DatabaseNotFoundError,
    ForbiddenSqlError,
    InvalidParameterError,
    LockError,
    NotInitializedError,
    SerializationError,
    TransactionCompletedError,
    TransactionNotFoundError,
)
from database.model import CrudEntry, ExecuteResult, QueryResult
from host.api.handler.database import DatabaseHandler
from host.api.model.common import ErrorDetail, ErrorResponse
from host.api.model.database import (
    BeginTransactionRequest,
    ControlRequest,
    ControlResponse,
    ExecuteBatchRequest,
    ExecuteRequest,
    LoadedResponse,
    OptionalRowResponse,
    PendingCrudResponse,
    ReplaceSchemaRequest,
    TransactionResponse,
    VersionResponse,
    WriteCheckpointResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# (HTTP 상태, 에러 코드), 목록에 없는 DatabaseError는 500
ERROR_STATUS: dict[type[DatabaseError], tuple[int, str]] = {
    DatabaseNotFoundError: (404, "DATABASE_NOT_FOUND"),
    TransactionNotFoundError: (404, "TRANSACTION_NOT_FOUND"),
    TransactionCompletedError: (400, "TRANSACTION_COMPLETED"),
    ForbiddenSqlError: (400, "FORBIDDEN_SQL"),
    InvalidParameterError: (400, "INVALID_PARAMETER"),
    SerializationError: (400, "SERIALIZATION_ERROR"),
    LockError: (409, "LOCK_ERROR"),
    NotInitializedError: (503, "POWERSYNC_NOT_INITIALIZED"),
}


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """DatabaseError -> ErrorResponse 변환"""
    status_code, code = ERROR_STATUS.get(type(exc), (500, "DATABASE_ERROR"))
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    body = ErrorResponse(error=ErrorDetail(code=code, message=str(exc)))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def get_handler(request: Request) -> DatabaseHandler:
    return request.app.state.handler


PREFIX = "/api/databases/{name}"


# ============================================
# Database API
# ============================================

@router.post(PREFIX + "/open", status_code=204, tags=["Database"])
async def open_database(name: str, handler: DatabaseHandler = Depends(get_handler)):
    """DB 열기 (이미 열려 있으면 무시)"""
    await handler.open(name)
    return Response(status_code=204)


@router.post(PREFIX + "/close", status_code=204, tags=["Database"])
async def close_database(name: str, handler: DatabaseHandler = Depends(get_handler)):
    """DB 닫기"""
    await handler.close(name)
    return Response(status_code=204)


@router.post(PREFIX + "/execute", response_model=ExecuteResult, tags=["Database"])
async def execute(name: str, request: ExecuteRequest, handler: DatabaseHandler = Depends(get_handler)):
    """SQL 실행"""
    return await handler.execute(name, request.sql, request.params)


@router.post(PREFIX + "/execute-batch", response_model=ExecuteResult, tags=["Database"])
async def execute_batch(name: str, request: ExecuteBatchRequest, handler: DatabaseHandler = Depends(get_handler)):
    """배치 실행"""
    return await handler.execute_batch(name, request.sql, request.params_batch)


@router.post(PREFIX + "/get-all", response_model=QueryResult, tags=["Database"])
async def get_all(name: str, request: ExecuteRequest, handler: DatabaseHandler = Depends(get_handler)):
    """모든 행 조회"""
    return await handler.get_all(name, request.sql, request.params)


@router.post(PREFIX + "/get-optional", response_model=OptionalRowResponse, tags=["Database"])
async def get_optional(name: str, request: ExecuteRequest, handler: DatabaseHandler = Depends(get_handler)):
    """첫 번째 행 조회"""
    row = await handler.get_optional(name, request.sql, request.params)
    return OptionalRowResponse(row=row)


# ============================================
# Transaction API
# ============================================

@router.post(PREFIX + "/transactions", response_model=TransactionResponse, status_code=201, tags=["Transaction"])
async def begin_transaction(
    name: str,
    request: BeginTransactionRequest,
    handler: DatabaseHandler = Depends(get_handler),
):
    """트랜잭션 시작 (열린 트랜잭션이 있으면 savepoint)"""
    tx_id = await handler.begin_transaction(name, request.is_write)
    return TransactionResponse(tx_id=tx_id)


@router.post(PREFIX + "/transactions/{tx_id}/commit", status_code=204, tags=["Transaction"])
async def commit_transaction(name: str, tx_id: str, handler: DatabaseHandler = Depends(get_handler)):
    """트랜잭션 커밋"""
    await handler.commit_transaction(name, tx_id)
    return Response(status_code=204)


@router.post(PREFIX + "/transactions/{tx_id}/rollback", status_code=204, tags=["Transaction"])
async def rollback_transaction(name: str, tx_id: str, handler: DatabaseHandler = Depends(get_handler)):
    """트랜잭션 롤백"""
    await handler.rollback_transaction(name, tx_id)
    return Response(status_code=204)


# ============================================
# PowerSync API
# ============================================

@router.get(PREFIX + "/powersync/version", response_model=VersionResponse, tags=["PowerSync"])
async def get_powersync_version(name: str, handler: DatabaseHandler = Depends(get_handler)):
    """PowerSync 확장 버전"""
    return VersionResponse(version=await handler.get_powersync_version(name))


@router.get(PREFIX + "/powersync/loaded", response_model=LoadedResponse, tags=["PowerSync"])
async def is_powersync_loaded(name: str, handler: DatabaseHandler = Depends(get_handler)):
    """PowerSync 확장 활성화 여부"""
    return LoadedResponse(loaded=await handler.is_powersync_loaded(name))


@router.put(PREFIX + "/powersync/schema", status_code=204, tags=["PowerSync"])
async def replace_schema(name: str, request: ReplaceSchemaRequest, handler: DatabaseHandler = Depends(get_handler)):
    """PowerSync 스키마 교체"""
    await handler.replace_schema(name, request.schema_json)
    return Response(status_code=204)


@router.post(PREFIX + "/powersync/control", response_model=ControlResponse, tags=["PowerSync"])
async def powersync_control(name: str, request: ControlRequest, handler: DatabaseHandler = Depends(get_handler)):
    """PowerSync 제어 명령"""
    result = await handler.powersync_control(name, request.op, request.payload)
    return ControlResponse(result=result)


@router.get(PREFIX + "/powersync/crud", response_model=list[CrudEntry], tags=["PowerSync"])
async def get_crud_batch(
    name: str,
    limit: int | None = Query(default=None, ge=1, description="최대 엔트리 수 (기본 100)"),
    handler: DatabaseHandler = Depends(get_handler),
):
    """업로드 대기 CRUD 엔트리 조회"""
    return await handler.get_crud_batch(name, limit)


@router.get(PREFIX + "/powersync/crud/pending", response_model=PendingCrudResponse, tags=["PowerSync"])
async def has_pending_crud(name: str, handler: DatabaseHandler = Depends(get_handler)):
    """업로드 대기 CRUD 존재 여부"""
    return PendingCrudResponse(pending=await handler.has_pending_crud(name))


@router.delete(PREFIX + "/powersync/crud/{crud_id}", status_code=204, tags=["PowerSync"])
async def remove_crud(name: str, crud_id: int, handler: DatabaseHandler = Depends(get_handler)):
    """crud_id 이하 CRUD 엔트리 삭제"""
    await handler.remove_crud(name, crud_id)
    return Response(status_code=204)


@router.get(PREFIX + "/powersync/write-checkpoint", response_model=WriteCheckpointResponse, tags=["PowerSync"])
async def get_write_checkpoint(name: str, handler: DatabaseHandler = Depends(get_handler)):
    """마지막 쓰기 체크포인트"""
    return WriteCheckpointResponse(checkpoint=await handler.get_write_checkpoint(name))


# ============================================
# Health Check
# ============================================

@router.get("/health", tags=["Health"])
async def health_check(handler: DatabaseHandler = Depends(get_handler)):
    """서버 상태 확인 (liveness probe)"""
    return {
        "status": "healthy",
        "databases": await handler.registry.names(),
        "version": "1.0.0",
    }
