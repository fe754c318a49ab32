"""Unit tests for health check and metrics endpoints."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from omnisession import __version__
from omnisession.api.dependencies import get_settings, reset_dependencies
from omnisession.api.routes.health import router
from omnisession.config import Settings
from omnisession.config.settings import set_toml_config


@pytest.fixture
async def app_for():
    await reset_dependencies()
    set_toml_config({})

    def _build(**overrides) -> TestClient:
        settings = Settings(**overrides)
        app = FastAPI()
        app.include_router(router)
        app.dependency_overrides[get_settings] = lambda: settings
        return TestClient(app)

    return _build


class TestHealth:
    def test_inmemory_backend_is_healthy(self, app_for):
        response = app_for().get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["backend"] == "inmemory"
        assert [c["name"] for c in body["components"]] == ["inmemory"]


class TestMetrics:
    def test_exposes_prometheus_text(self, app_for):
        response = app_for().get("/metrics")

        assert response.status_code == 200
        assert "omnisession_" in response.text

    def test_disabled(self, app_for):
        client = app_for(observability={"metrics": {"enabled": False}})

        assert client.get("/metrics").status_code == 404
