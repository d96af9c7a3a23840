"""
Database 결과 모델 정의
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_serializer

RowResult = dict[str, Any]


class ExecuteResult(BaseModel):
    """execute / execute_batch 결과"""
    model_config = ConfigDict(populate_by_name=True)

    changes: int = 0
    last_insert_rowid: int = Field(default=0, alias="lastInsertRowid")
    # SELECT/PRAGMA 문일 때만 채워짐
    columns: list[str] | None = None
    rows: list[RowResult] | None = None

    @model_serializer(mode="wrap")
    def _omit_missing_rows(self, handler):
        data = handler(self)
        for key in ("columns", "rows"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class QueryResult(BaseModel):
    """get_all 결과"""
    columns: list[str]
    rows: list[RowResult]


class CrudEntry(BaseModel):
    """ps_crud 테이블의 CRUD 엔트리"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    tx_id: int | None = Field(default=None, alias="txId")
    data: str
