"""
SQL 파라미터/결과 값 변환 모듈

호출자는 타입 태그가 붙은 파라미터({"type": "int", "value": 42})를 보내고,
결과 행은 JSON 호환 값(null/number/string, blob은 base64)으로 돌려받습니다.
"""

import base64
import json
import math
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from database.exception import SerializationError

SQLITE_INT_MIN = -(2 ** 63)
SQLITE_INT_MAX = 2 ** 63 - 1

NativeValue = None | int | float | str | bytes
JsonValue = None | int | float | str


class _Param(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_sql_value(self) -> NativeValue:
        raise NotImplementedError


class NullParam(_Param):
    """NULL 파라미터"""
    type: Literal["null"] = "null"
    value: None = None

    def to_sql_value(self) -> NativeValue:
        return None


class BoolParam(_Param):
    """BOOL 파라미터 (SQLite에는 0/1 정수로 저장)"""
    type: Literal["bool"] = "bool"
    value: StrictBool

    def to_sql_value(self) -> NativeValue:
        return 1 if self.value else 0


class IntParam(_Param):
    """64비트 정수 파라미터"""
    type: Literal["int"] = "int"
    value: StrictInt = Field(ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)

    def to_sql_value(self) -> NativeValue:
        return self.value


class RealParam(_Param):
    """실수 파라미터"""
    type: Literal["real"] = "real"
    value: StrictFloat | StrictInt

    def to_sql_value(self) -> NativeValue:
        return float(self.value)


class TextParam(_Param):
    """문자열 파라미터"""
    type: Literal["text"] = "text"
    value: StrictStr

    def to_sql_value(self) -> NativeValue:
        return self.value


class BlobParam(_Param):
    """바이너리 파라미터 (JSON에서는 바이트 배열로 전달)"""
    type: Literal["blob"] = "blob"
    value: bytes

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_bytes(cls, value: Any) -> bytes:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, list):
            if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in value):
                raise ValueError("blob value must be a list of byte values (0-255)")
            return bytes(value)
        raise ValueError("blob value must be a byte array")

    def to_sql_value(self) -> NativeValue:
        return self.value


SqlParam = Annotated[
    Union[NullParam, BoolParam, IntParam, RealParam, TextParam, BlobParam],
    Field(discriminator="type"),
]

_params_adapter = TypeAdapter(list[SqlParam])
_params_batch_adapter = TypeAdapter(list[list[SqlParam]])


def parse_params(raw: Any) -> list[SqlParam]:
    """JSON 파라미터 목록을 SqlParam 목록으로 변환"""
    if raw is None:
        return []
    try:
        return _params_adapter.validate_python(raw)
    except ValidationError as e:
        raise SerializationError(_describe(e)) from e


def parse_params_batch(raw: Any) -> list[list[SqlParam]]:
    """배치용 파라미터 목록 변환"""
    try:
        return _params_batch_adapter.validate_python(raw or [])
    except ValidationError as e:
        raise SerializationError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


def infer_param(value: Any) -> SqlParam:
    """
    태그 없는 파이썬 값을 SqlParam으로 변환

    list/dict는 JSON 텍스트로 직렬화합니다 (SQLite에는 복합 타입이 없음).
    """
    if value is None:
        return NullParam()
    if isinstance(value, bool):
        return BoolParam(value=value)
    if isinstance(value, int):
        try:
            return IntParam(value=value)
        except ValidationError as e:
            raise SerializationError(f"integer out of range: {value}") from e
    if isinstance(value, float):
        return RealParam(value=value)
    if isinstance(value, str):
        return TextParam(value=value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BlobParam(value=bytes(value))
    if isinstance(value, (list, dict)):
        try:
            return TextParam(value=json.dumps(value, ensure_ascii=False))
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e
    raise SerializationError(f"unsupported parameter type: {type(value).__name__}")


def encode_param(param: SqlParam) -> NativeValue:
    """SqlParam -> SQLite 바인딩 값"""
    return param.to_sql_value()


def encode_params(params: list[SqlParam] | None) -> tuple[NativeValue, ...]:
    """파라미터 목록을 바인딩 튜플로 변환 (태그 없는 값은 infer_param 적용)"""
    if not params:
        return ()
    return tuple(
        encode_param(p if isinstance(p, _Param) else infer_param(p))
        for p in params
    )


def decode_text(raw: bytes) -> str:
    """TEXT 컬럼 디코딩 (잘못된 UTF-8 바이트는 대체 문자로 치환)"""
    return raw.decode("utf-8", errors="replace")


def decode_column(value: NativeValue) -> JsonValue:
    """SQLite 컬럼 값 -> JSON 호환 값"""
    if value is None:
        return None
    if isinstance(value, float):
        # JSON에는 NaN/Infinity 리터럴이 없음
        return value if math.isfinite(value) else None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def decode_row(columns: list[str], row: tuple) -> dict[str, JsonValue]:
    """결과 행을 {컬럼명: 값} 딕셔너리로 변환"""
    return {name: decode_column(value) for name, value in zip(columns, row)}
