"""
공통 테스트 픽스처

실제 PowerSync 확장 대신 파이썬 SQL 함수를 등록하는 probe로 확장을 흉내냅니다.
"""

import logging
import sys
from pathlib import Path

import pytest
import pytest_asyncio

sys.path.insert(0, str(Path(__file__).parent.parent))

from database.registry import DatabaseRegistry
from database.sqlite3 import SQLiteSession
from database.sqlite3.extension import ExtensionBridge

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

FAKE_VERSION = "0.3.14/test"


class FakePowerSync:
    """PowerSync SQL 함수를 파이썬 함수로 등록하는 가짜 확장"""

    def __init__(self):
        self.schemas: list[str] = []
        self.controls: list[tuple[str, str]] = []
        self.last_synced: str | None = None
        self.version = FAKE_VERSION

    async def register(self, conn) -> None:
        await conn.create_function("powersync_init", 0, lambda: "ok")
        await conn.create_function("powersync_rs_version", 0, lambda: self.version)
        await conn.create_function("powersync_replace_schema", 1, self._replace_schema)
        await conn.create_function("powersync_control", 2, self._control)
        await conn.create_function("powersync_last_synced_at", 0, lambda: self.last_synced)
        await conn.execute(
            "CREATE TABLE IF NOT EXISTS ps_crud ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, tx_id INTEGER, data TEXT NOT NULL)"
        )

    async def probe(self, conn) -> bool:
        await self.register(conn)
        return True

    def _replace_schema(self, schema_json):
        self.schemas.append(schema_json)
        return None

    def _control(self, op, payload):
        self.controls.append((op, payload))
        return f"{op}:{payload}"


@pytest.fixture
def fake_powersync():
    return FakePowerSync()


@pytest.fixture
def plain_bridge():
    """확장 없이 동작하는 브리지"""
    return ExtensionBridge(probes=[])


@pytest.fixture
def powersync_bridge(fake_powersync):
    return ExtensionBridge(probes=[("fake", fake_powersync.probe)])


@pytest_asyncio.fixture
async def session(tmp_path, plain_bridge):
    """확장 없는 테스트 세션"""
    s = await SQLiteSession.open("test", tmp_path, bridge=plain_bridge)
    await s.execute("CREATE TABLE todos (id INTEGER PRIMARY KEY, title TEXT, data BLOB)")
    yield s
    await s.close()


@pytest_asyncio.fixture
async def powersync_session(tmp_path, powersync_bridge):
    """가짜 확장이 활성화된 테스트 세션"""
    s = await SQLiteSession.open("synced", tmp_path, bridge=powersync_bridge)
    yield s
    await s.close()


@pytest_asyncio.fixture
async def registry(tmp_path, plain_bridge):
    r = DatabaseRegistry(tmp_path / "data", bridge=plain_bridge)
    yield r
    await r.close_all()
