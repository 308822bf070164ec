"""統合テスト — HTTP リクエスト→ゲートウェイ→リモートストアの一連フロー."""

import pytest
import tarantool
from fastapi.testclient import TestClient

from kv_service.api.main import app
from kv_service.dependencies import _reset_all, get_kv_store
from kv_service.gateway.manager import KeyValueManager
from kv_service.interfaces.errors import StoreUnavailableError
from kv_service.interfaces.remote_store import RemoteCallError, RemoteStoreInterface
from kv_service.store import tarantool as tarantool_store
from kv_service.store.memory import InMemoryRemoteStore


class BrokenRemoteStore(RemoteStoreInterface):
    """全呼び出しが通信エラーになるリモートストア。"""

    def call(self, procedure, args):
        raise RemoteCallError("Connection reset by peer")

    def close(self):
        pass


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture(autouse=True)
def _override_deps(remote):
    """テスト用にインメモリのリモートストアを注入する。"""
    kv_store = KeyValueManager(remote)
    app.dependency_overrides[get_kv_store] = lambda: kv_store

    yield

    app.dependency_overrides.clear()
    _reset_all()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def broken_client():
    app.dependency_overrides[get_kv_store] = lambda: KeyValueManager(
        BrokenRemoteStore()
    )
    return TestClient(app)


class TestCreate:
    def test_created(self, client):
        resp = client.post("/kv", json={"key": "a", "value": {"x": 1}})
        assert resp.status_code == 200
        assert resp.json() == {
            "result": {"key": "a", "value": {"x": 1}},
            "message": "Key created successfully",
        }

    def test_duplicate_is_conflict(self, client):
        client.post("/kv", json={"key": "a", "value": {"x": 1}})
        resp = client.post("/kv", json={"key": "a", "value": {"x": 2}})
        assert resp.status_code == 409
        assert resp.json() == {"error": "Key already exists"}

    @pytest.mark.parametrize(
        "body, message",
        [
            ({"value": {"x": 1}}, "Key is required"),
            ({"key": "", "value": {"x": 1}}, "Key is required"),
            ({"key": "a"}, "Value must be a non-empty object"),
            ({"key": "a", "value": {}}, "Value must be a non-empty object"),
            ({"key": "a", "value": [1, 2]}, "Invalid body"),
            ({"key": "a", "value": "text"}, "Invalid body"),
            ({"key": 5, "value": {"x": 1}}, "Invalid body"),
        ],
    )
    def test_bad_request(self, client, remote, body, message):
        resp = client.post("/kv", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": message}
        # 検証はゲートウェイ呼び出しより前
        assert remote.call("get_kv", ["a"]) == []

    def test_malformed_json(self, client):
        resp = client.post(
            "/kv",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid body"}

    def test_store_failure_is_internal_error(self, broken_client):
        resp = broken_client.post("/kv", json={"key": "a", "value": {"x": 1}})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}


class TestGet:
    def test_found(self, client):
        client.post("/kv", json={"key": "a", "value": {"nested": {"n": None}}})
        resp = client.get("/kv/a")
        assert resp.status_code == 200
        assert resp.json()["result"] == {"key": "a", "value": {"nested": {"n": None}}}
        assert resp.json()["message"] == "Key fetched successfully"

    def test_not_found(self, client):
        resp = client.get("/kv/missing")
        assert resp.status_code == 404
        assert resp.json() == {"error": "key not found"}

    def test_undecodable_value_is_internal_error(self, client, remote):
        remote.call("insert_kv", ["bad", "{broken"])
        resp = client.get("/kv/bad")
        assert resp.status_code == 500

    def test_store_failure_is_internal_error(self, broken_client):
        assert broken_client.get("/kv/a").status_code == 500


class TestUpdate:
    def test_updated(self, client):
        client.post("/kv", json={"key": "a", "value": {"x": 1}})
        resp = client.put("/kv/a", json={"value": {"x": 2}})
        assert resp.status_code == 200
        assert resp.json() == {
            "result": {"key": "a", "value": {"x": 2}},
            "message": "Key updated successfully",
        }

    def test_key_comes_from_path(self, client):
        client.post("/kv", json={"key": "a", "value": {"x": 1}})
        resp = client.put("/kv/a", json={"key": "b", "value": {"x": 2}})
        assert resp.status_code == 200
        assert resp.json()["result"]["key"] == "a"
        assert client.get("/kv/b").status_code == 404

    def test_not_found(self, client):
        resp = client.put("/kv/missing", json={"value": {"x": 2}})
        assert resp.status_code == 404

    @pytest.mark.parametrize("body", [{"value": []}, {"value": 3}, {"other": 1}, {"value": {}}])
    def test_bad_request(self, client, body):
        client.post("/kv", json={"key": "a", "value": {"x": 1}})
        resp = client.put("/kv/a", json=body)
        assert resp.status_code == 400
        assert client.get("/kv/a").json()["result"]["value"] == {"x": 1}


class TestDelete:
    def test_deleted_snapshot(self, client):
        client.post("/kv", json={"key": "a", "value": {"x": 1}})
        resp = client.delete("/kv/a")
        assert resp.status_code == 200
        assert resp.json() == {
            "deleted": {"key": "a", "value": {"x": 1}},
            "message": "Key deleted successfully",
        }
        assert client.get("/kv/a").status_code == 404

    def test_not_found(self, client):
        resp = client.delete("/kv/missing")
        assert resp.status_code == 404
        assert resp.json() == {"error": "key not found"}

    def test_store_failure_is_internal_error(self, broken_client):
        assert broken_client.delete("/kv/a").status_code == 500


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_full_scenario(client):
    """作成→重複→取得→更新→取得→削除→取得。"""
    assert client.post("/kv", json={"key": "a", "value": {"x": 1}}).status_code == 200
    assert client.post("/kv", json={"key": "a", "value": {"x": 2}}).status_code == 409
    assert client.get("/kv/a").json()["result"]["value"] == {"x": 1}
    assert client.put("/kv/a", json={"value": {"x": 2}}).status_code == 200
    assert client.get("/kv/a").json()["result"]["value"] == {"x": 2}
    assert client.delete("/kv/a").json()["deleted"]["value"] == {"x": 2}
    assert client.get("/kv/a").status_code == 404


class TestLifespan:
    """起動時の接続確立と失敗時の起動中止。"""

    def test_startup_with_memory_backend(self, monkeypatch):
        monkeypatch.setenv("KV_STORE_BACKEND", "memory")
        app.dependency_overrides.clear()

        with TestClient(app) as client:
            client.post("/kv", json={"key": "a", "value": {"x": 1}})
            assert client.get("/kv/a").status_code == 200

    def test_connection_failure_aborts_startup(self, monkeypatch):
        def _refuse(*args, **kwargs):
            raise tarantool.NetworkError(ConnectionRefusedError(111, "refused"))

        monkeypatch.setenv("KV_STORE_BACKEND", "tarantool")
        monkeypatch.setattr(tarantool_store.tarantool, "Connection", _refuse)

        with pytest.raises(StoreUnavailableError):
            with TestClient(app):
                pass
