"""
Тесты сборки приложения и загрузчика YAML-настроек
"""
import pytest
from fastapi.testclient import TestClient

from core.config import create_app, EXPOSED_HEADERS
from utils.config_loader import ConfigLoader, get_config_value


class TestConfigLoader:
    def test_nested_key(self, tmp_path):
        (tmp_path / "security.yaml").write_text(
            "security:\n  kdf:\n    iterations: 150000\n", encoding="utf-8"
        )
        loader = ConfigLoader(tmp_path)

        assert loader.get("security", "security.kdf.iterations") == 150000
        assert loader.get("security", "security.kdf.missing", default=7) == 7

    def test_missing_file_gives_default(self, tmp_path):
        loader = ConfigLoader(tmp_path)

        assert loader.section("app") == {}
        assert loader.get("app", "app.name", default="x") == "x"

    def test_empty_file(self, tmp_path):
        (tmp_path / "app.yaml").write_text("", encoding="utf-8")

        assert ConfigLoader(tmp_path).get("app", "app.debug", default=False) is False

    def test_non_mapping_file_is_rejected(self, tmp_path):
        (tmp_path / "app.yaml").write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError):
            ConfigLoader(tmp_path).section("app")

    def test_file_is_read_once(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("app:\n  name: first\n", encoding="utf-8")
        loader = ConfigLoader(tmp_path)
        loader.get("app", "app.name")

        path.write_text("app:\n  name: second\n", encoding="utf-8")

        assert loader.get("app", "app.name") == "first"

    def test_project_config(self):
        assert get_config_value("security", "security.kdf.iterations") == 600000
        assert get_config_value("app", "export.strict_references") is True


class TestApp:
    def test_unhandled_error_returns_json_with_error_id(self):
        app = create_app()

        @app.get("/boom")
        async def boom():
            raise RuntimeError("secret detail")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["detail"] == "Internal server error"
        assert body["type"] == "RuntimeError"
        assert len(body["error_id"]) == 12

    def test_cors_exposes_export_headers(self):
        app = create_app()

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        with TestClient(app) as client:
            response = client.get("/ping", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        exposed = response.headers["access-control-expose-headers"]
        for header in EXPOSED_HEADERS:
            assert header in exposed
