"""Host API 모델 패키지"""

from host.api.model.common import ErrorResponse, ErrorDetail
from host.api.model.database import (
    ExecuteRequest,
    ExecuteBatchRequest,
    OptionalRowResponse,
    BeginTransactionRequest,
    TransactionResponse,
    ReplaceSchemaRequest,
    ControlRequest,
    ControlResponse,
    VersionResponse,
    LoadedResponse,
    PendingCrudResponse,
    WriteCheckpointResponse,
)

__all__ = [
    'ErrorResponse',
    'ErrorDetail',
    'ExecuteRequest',
    'ExecuteBatchRequest',
    'OptionalRowResponse',
    'BeginTransactionRequest',
    'TransactionResponse',
    'ReplaceSchemaRequest',
    'ControlRequest',
    'ControlResponse',
    'VersionResponse',
    'LoadedResponse',
    'PendingCrudResponse',
    'WriteCheckpointResponse',
]
