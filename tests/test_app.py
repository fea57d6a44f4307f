import json
import logging

from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from task_api.db import MongoRepository
from task_api.errors import StoreFailure
from task_api.generate_openapi import generate_openapi
from task_api.logging_config import setup_logging
from task_api.main import create_app
from task_api.repositories import InMemoryRepository, Repository
from task_api.settings import get_settings, Settings


class _UnavailableRepository(Repository):
    def insert(self, data):
        raise StoreFailure("insert")

    def find_all(self, completed=None):
        raise StoreFailure("find")

    def find_by_id(self, task_id):
        raise StoreFailure("find_one")

    def update_by_id(self, task_id, data):
        raise StoreFailure("find_one_and_update")

    def delete_by_id(self, task_id):
        raise StoreFailure("delete_one")


class _ExplodingRepository(InMemoryRepository):
    def find_all(self, completed=None):
        raise KeyError("boom")


class TestStoreFailures:
    def test_list_store_unavailable_is_500(self, caplog):
        client = TestClient(create_app(settings=Settings(), repository=_UnavailableRepository()))
        with caplog.at_level(logging.ERROR, logger="task_api.main"):
            res = client.get("/api/tasks")
        assert res.status_code == 500
        assert res.json() == {"error": "Internal server error"}
        assert any("find" in r.getMessage() for r in caplog.records)

    def test_delete_store_error_is_500(self):
        client = TestClient(create_app(settings=Settings(), repository=_UnavailableRepository()))
        res = client.delete(f"/api/tasks/{ObjectId()}")
        assert res.status_code == 500
        assert res.json() == {"error": "Internal server error"}

    def test_store_failure_logged_once(self, caplog):
        class _Offline:
            def create_index(self, *args, **kwargs):
                return "completed_1"

            def find(self, *args, **kwargs):
                raise ServerSelectionTimeoutError("no servers")

        repo = MongoRepository(_Offline())  # type: ignore[arg-type]
        client = TestClient(create_app(settings=Settings(), repository=repo))
        with caplog.at_level(logging.DEBUG):
            res = client.get("/api/tasks")
        assert res.status_code == 500
        tracebacks = [r for r in caplog.records if r.exc_info]
        assert len(tracebacks) == 1
        assert tracebacks[0].name == "task_api.main"

    def test_malformed_id_never_reaches_store(self):
        client = TestClient(create_app(settings=Settings(), repository=_UnavailableRepository()))
        assert client.get("/api/tasks/nope").status_code == 400
        assert client.delete("/api/tasks/nope").status_code == 400
        assert client.put("/api/tasks/nope", json={"title": "x"}).status_code == 400

    def test_unexpected_error_hides_details(self):
        app = create_app(settings=Settings(), repository=_ExplodingRepository())
        client = TestClient(app, raise_server_exceptions=False)
        res = client.get("/api/tasks")
        assert res.status_code == 500
        assert res.json() == {"error": "Internal server error"}
        assert "boom" not in res.text


class TestLifespan:
    def test_repository_opened_and_released(self):
        app = create_app(settings=Settings(persistence_backend="memory"))
        assert app.state.repository is None
        with TestClient(app) as client:
            assert isinstance(app.state.repository, InMemoryRepository)
            res = client.post("/api/tasks", json={"title": "During lifespan"})
            assert res.status_code == 201
            assert len(client.get("/api/tasks").json()) == 1
        assert app.state.repository is None

    def test_injected_repository_kept(self):
        repo = InMemoryRepository()
        app = create_app(settings=Settings(), repository=repo)
        with TestClient(app):
            assert app.state.repository is repo
        assert app.state.repository is repo


class TestCors:
    def test_configured_origin_allowed(self):
        settings = Settings(cors_allow_origins=["http://localhost:3000"])
        client = TestClient(create_app(settings=settings, repository=InMemoryRepository()))
        res = client.get("/api/tasks", headers={"Origin": "http://localhost:3000"})
        assert res.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("PERSISTENCE_BACKEND", "MONGO_URI", "MONGO_TIMEOUT_MS", "CORS_ALLOW_ORIGINS", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = get_settings()
        assert settings.persistence_backend == "memory"
        assert settings.mongo_uri == "mongodb://localhost:27017"
        assert settings.mongo_timeout_ms == 5000
        assert settings.cors_allow_origins == ["*"]
        assert settings.log_level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "Mongo")
        monkeypatch.setenv("MONGO_URI", "mongodb://db:27017")
        monkeypatch.setenv("MONGO_DB_NAME", "tracker")
        monkeypatch.setenv("MONGO_COLLECTION", "items")
        monkeypatch.setenv("MONGO_TIMEOUT_MS", "250")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = get_settings()
        assert settings.persistence_backend == "mongo"
        assert settings.mongo_uri == "mongodb://db:27017"
        assert settings.mongo_db_name == "tracker"
        assert settings.mongo_collection == "items"
        assert settings.mongo_timeout_ms == 250
        assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
        assert settings.log_level == "DEBUG"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("MONGO_TIMEOUT_MS", "soon")
        settings = get_settings()
        assert settings.persistence_backend == "memory"
        assert settings.mongo_timeout_ms == 5000


class TestLogging:
    def test_setup_is_idempotent(self):
        root = logging.getLogger()
        setup_logging("WARNING")
        count = len(root.handlers)
        setup_logging("DEBUG")
        assert len(root.handlers) == count
        assert root.level == logging.DEBUG

    def test_unknown_level_name_defaults_to_info(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO


class TestOpenApiExport:
    def test_writes_schema(self, tmp_path):
        out = tmp_path / "interfaces" / "openapi.json"
        path = generate_openapi(str(out))
        assert path == str(out)
        schema = json.loads(out.read_text(encoding="utf-8"))
        assert "/api/tasks" in schema["paths"]
        assert "/api/tasks/{task_id}" in schema["paths"]
        assert "requestBody" in schema["paths"]["/api/tasks/{task_id}"]["put"]
        assert {t["name"] for t in schema["tags"]} >= {"tasks", "health"}
