"""
Tests for the root, health and documentation endpoints.
"""

import pytest

from mufessir import __version__


class TestHealth:

    @pytest.mark.api
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Mufessir API", "version": __version__, "docs": "/docs"}

    @pytest.mark.api
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.api
    def test_openapi_lists_routes(self, client):
        schema = client.get("/openapi.json").json()

        assert schema["info"]["title"] == "Mufessir API"
        for path in ("/tafseer", "/filters", "/verses", "/auth/login", "/auth/register"):
            assert path in schema["paths"]

    @pytest.mark.api
    def test_docs_page(self, client):
        response = client.get("/docs")
        assert response.status_code == 200
        assert "swagger" in response.text.lower()

    @pytest.mark.api
    def test_cors_preflight(self, client):
        response = client.options(
            "/tafseer",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
