"""데이터베이스 명령 요청/응답 모델"""

from pydantic import BaseModel, Field

from database.codec import SqlParam
from database.model import RowResult


class ExecuteRequest(BaseModel):
    """SQL 실행 요청 (execute / get_all / get_optional 공용)"""
    sql: str = Field(..., min_length=1)
    params: list[SqlParam] = Field(default_factory=list)


class ExecuteBatchRequest(BaseModel):
    """배치 실행 요청"""
    sql: str = Field(..., min_length=1)
    params_batch: list[list[SqlParam]] = Field(default_factory=list)


class OptionalRowResponse(BaseModel):
    """get_optional 응답 (행이 없으면 row=null)"""
    row: RowResult | None = None


class BeginTransactionRequest(BaseModel):
    """트랜잭션 시작 요청"""
    is_write: bool = False


class TransactionResponse(BaseModel):
    """트랜잭션 핸들"""
    tx_id: str


class ReplaceSchemaRequest(BaseModel):
    """PowerSync 스키마 교체 요청"""
    schema_json: str


class ControlRequest(BaseModel):
    """PowerSync 제어 요청"""
    op: str = Field(..., min_length=1)
    payload: str = ""


class ControlResponse(BaseModel):
    result: str | None = None


class VersionResponse(BaseModel):
    version: str


class LoadedResponse(BaseModel):
    loaded: bool


class PendingCrudResponse(BaseModel):
    pending: bool


class WriteCheckpointResponse(BaseModel):
    checkpoint: str | None = None
