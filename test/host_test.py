"""
Host API 테스트

테스트 항목:
1. DB 열기/닫기, SQL 실행 API
2. 트랜잭션 API (지연 커밋 포함)
3. 에러 응답 매핑 (404, 400, 503)
4. PowerSync API
5. 헬스 체크

실행: python -m pytest test/host_test.py -v
"""

import logging

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from database.registry import DatabaseRegistry
from host.main import create_app

logger = logging.getLogger(__name__)

BASE = "/api/databases"


def text(value):
    return {"type": "text", "value": value}


def integer(value):
    return {"type": "int", "value": value}


@pytest_asyncio.fixture
async def client(registry):
    """테스트용 API 클라이언트 (lifespan 없이 앱만 생성)"""
    app = create_app(config={}, registry=registry)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def opened(client):
    """'main' DB를 열고 todos 테이블 생성"""
    response = await client.post(f"{BASE}/main/open")
    assert response.status_code == 204
    response = await client.post(
        f"{BASE}/main/execute",
        json={"sql": "CREATE TABLE todos (id INTEGER PRIMARY KEY, title TEXT)"},
    )
    assert response.status_code == 200
    return client


@pytest_asyncio.fixture
async def powersync_client(tmp_path, powersync_bridge):
    registry = DatabaseRegistry(tmp_path / "ps", bridge=powersync_bridge)
    app = create_app(config={}, registry=registry)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(f"{BASE}/synced/open")
        assert response.status_code == 204
        yield ac
    await registry.close_all()


class TestDatabaseApi:
    """DB / SQL 실행 API 테스트"""

    @pytest.mark.asyncio
    async def test_execute_insert(self, opened):
        response = await opened.post(
            f"{BASE}/main/execute",
            json={"sql": "INSERT INTO todos (title) VALUES (?)", "params": [text("first")]},
        )
        assert response.status_code == 200
        assert response.json() == {"changes": 1, "lastInsertRowid": 1}

    @pytest.mark.asyncio
    async def test_execute_select(self, opened):
        await opened.post(f"{BASE}/main/execute", json={"sql": "INSERT INTO todos (title) VALUES ('a')"})
        response = await opened.post(f"{BASE}/main/execute", json={"sql": "SELECT id, title FROM todos"})
        data = response.json()
        assert data["columns"] == ["id", "title"]
        assert data["rows"] == [{"id": 1, "title": "a"}]

    @pytest.mark.asyncio
    async def test_execute_batch(self, opened):
        response = await opened.post(
            f"{BASE}/main/execute-batch",
            json={
                "sql": "INSERT INTO todos (title) VALUES (?)",
                "params_batch": [[text("a")], [text("b")]],
            },
        )
        assert response.status_code == 200
        assert response.json()["changes"] == 2

    @pytest.mark.asyncio
    async def test_get_all_and_optional(self, opened):
        await opened.post(f"{BASE}/main/execute", json={"sql": "INSERT INTO todos (title) VALUES ('a'), ('b')"})

        response = await opened.post(f"{BASE}/main/get-all", json={"sql": "SELECT title FROM todos ORDER BY id"})
        assert response.json() == {"columns": ["title"], "rows": [{"title": "a"}, {"title": "b"}]}

        response = await opened.post(
            f"{BASE}/main/get-optional",
            json={"sql": "SELECT title FROM todos WHERE id = ?", "params": [integer(2)]},
        )
        assert response.json() == {"row": {"title": "b"}}

        response = await opened.post(
            f"{BASE}/main/get-optional",
            json={"sql": "SELECT title FROM todos WHERE id = ?", "params": [integer(99)]},
        )
        assert response.json() == {"row": None}

    @pytest.mark.asyncio
    async def test_blob_round_trip(self, opened):
        await opened.post(f"{BASE}/main/execute", json={"sql": "CREATE TABLE files (data BLOB)"})
        await opened.post(
            f"{BASE}/main/execute",
            json={"sql": "INSERT INTO files VALUES (?)", "params": [{"type": "blob", "value": [1, 2, 3]}]},
        )
        response = await opened.post(f"{BASE}/main/get-optional", json={"sql": "SELECT data FROM files"})
        assert response.json() == {"row": {"data": "AQID"}}

    @pytest.mark.asyncio
    async def test_close_then_not_found(self, opened):
        response = await opened.post(f"{BASE}/main/close")
        assert response.status_code == 204

        response = await opened.post(f"{BASE}/main/get-all", json={"sql": "SELECT 1"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DATABASE_NOT_FOUND"


class TestTransactionApi:
    """트랜잭션 API 테스트"""

    async def begin(self, client, is_write=True):
        response = await client.post(f"{BASE}/main/transactions", json={"is_write": is_write})
        assert response.status_code == 201
        return response.json()["tx_id"]

    @pytest.mark.asyncio
    async def test_deferred_commit(self, opened):
        """바깥 커밋 먼저, 안쪽 커밋 후 실제 커밋"""
        h1 = await self.begin(opened)
        await opened.post(f"{BASE}/main/execute", json={"sql": "INSERT INTO todos (title) VALUES ('outer')"})
        h2 = await self.begin(opened)
        await opened.post(f"{BASE}/main/execute", json={"sql": "INSERT INTO todos (title) VALUES ('inner')"})

        assert (await opened.post(f"{BASE}/main/transactions/{h1}/commit")).status_code == 204

        response = await opened.post(f"{BASE}/main/transactions/{h1}/commit")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TRANSACTION_COMPLETED"

        assert (await opened.post(f"{BASE}/main/transactions/{h2}/commit")).status_code == 204

        response = await opened.post(f"{BASE}/main/get-all", json={"sql": "SELECT title FROM todos ORDER BY id"})
        assert response.json()["rows"] == [{"title": "outer"}, {"title": "inner"}]

    @pytest.mark.asyncio
    async def test_rollback(self, opened):
        tx_id = await self.begin(opened)
        await opened.post(f"{BASE}/main/execute", json={"sql": "INSERT INTO todos (title) VALUES ('a')"})
        assert (await opened.post(f"{BASE}/main/transactions/{tx_id}/rollback")).status_code == 204

        response = await opened.post(f"{BASE}/main/get-optional", json={"sql": "SELECT COUNT(*) AS n FROM todos"})
        assert response.json() == {"row": {"n": 0}}

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, opened):
        response = await opened.post(f"{BASE}/main/transactions/nope/commit")
        assert response.status_code == 404
        assert response.json()["error"] == {
            "code": "TRANSACTION_NOT_FOUND",
            "message": "Transaction not found: nope",
        }


class TestErrorMapping:
    """에러 응답 매핑 테스트"""

    @pytest.mark.asyncio
    async def test_forbidden_sql(self, opened):
        response = await opened.post(f"{BASE}/main/execute", json={"sql": "SELECT powersync_core_internal()"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "FORBIDDEN_SQL"

    @pytest.mark.asyncio
    async def test_forbidden_sql_before_lookup(self, client):
        """금지 SQL은 DB 조회 전에 거부"""
        response = await client.post(f"{BASE}/unknown/get-all", json={"sql": "SELECT * FROM powersync_core_x"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "FORBIDDEN_SQL"

    @pytest.mark.asyncio
    async def test_storage_error(self, opened):
        response = await opened.post(f"{BASE}/main/execute", json={"sql": "SELECT * FROM missing_table"})
        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "DATABASE_ERROR"
        assert body["error"]["message"].startswith("Database error:")

    @pytest.mark.asyncio
    async def test_invalid_name(self, client):
        response = await client.post(f"{BASE}/../open")
        assert response.status_code in (400, 404)

        response = await client.post(f"{BASE}/..%5Cx/open")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PARAMETER"

    @pytest.mark.asyncio
    async def test_invalid_param_rejected(self, opened):
        """태그와 맞지 않는 값은 요청 검증에서 거부"""
        response = await opened.post(
            f"{BASE}/main/execute",
            json={"sql": "SELECT ?", "params": [{"type": "int", "value": "x"}]},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_powersync_not_initialized(self, opened):
        response = await opened.get(f"{BASE}/main/powersync/version")
        assert response.status_code == 503
        assert response.json()["error"] == {
            "code": "POWERSYNC_NOT_INITIALIZED",
            "message": "PowerSync not initialized",
        }

        response = await opened.get(f"{BASE}/main/powersync/loaded")
        assert response.json() == {"loaded": False}


class TestPowerSyncApi:
    """PowerSync API 테스트"""

    @pytest.mark.asyncio
    async def test_version_and_loaded(self, powersync_client, fake_powersync):
        response = await powersync_client.get(f"{BASE}/synced/powersync/version")
        assert response.json() == {"version": fake_powersync.version}

        response = await powersync_client.get(f"{BASE}/synced/powersync/loaded")
        assert response.json() == {"loaded": True}

    @pytest.mark.asyncio
    async def test_schema_and_control(self, powersync_client, fake_powersync):
        response = await powersync_client.put(
            f"{BASE}/synced/powersync/schema", json={"schema_json": '{"tables": []}'}
        )
        assert response.status_code == 204
        assert fake_powersync.schemas == ['{"tables": []}']

        response = await powersync_client.post(
            f"{BASE}/synced/powersync/control", json={"op": "stop"}
        )
        assert response.json() == {"result": "stop:"}

    @pytest.mark.asyncio
    async def test_crud(self, powersync_client):
        response = await powersync_client.get(f"{BASE}/synced/powersync/crud/pending")
        assert response.json() == {"pending": False}

        await powersync_client.post(
            f"{BASE}/synced/execute-batch",
            json={
                "sql": "INSERT INTO ps_crud (tx_id, data) VALUES (?, ?)",
                "params_batch": [[integer(1), text("{}")], [integer(1), text("{}")], [integer(2), text("{}")]],
            },
        )

        response = await powersync_client.get(f"{BASE}/synced/powersync/crud", params={"limit": 2})
        assert response.json() == [
            {"id": 1, "txId": 1, "data": "{}"},
            {"id": 2, "txId": 1, "data": "{}"},
        ]

        response = await powersync_client.delete(f"{BASE}/synced/powersync/crud/2")
        assert response.status_code == 204

        response = await powersync_client.get(f"{BASE}/synced/powersync/crud")
        assert [entry["id"] for entry in response.json()] == [3]

    @pytest.mark.asyncio
    async def test_write_checkpoint(self, powersync_client, fake_powersync):
        response = await powersync_client.get(f"{BASE}/synced/powersync/write-checkpoint")
        assert response.json() == {"checkpoint": None}

        fake_powersync.last_synced = "42"
        response = await powersync_client.get(f"{BASE}/synced/powersync/write-checkpoint")
        assert response.json() == {"checkpoint": "42"}


class TestHealth:
    """헬스 체크 테스트"""

    @pytest.mark.asyncio
    async def test_health(self, opened):
        response = await opened.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "databases": ["main"], "version": "1.0.0"}
