"""Tests for the UI shell pages and precached assets."""

import json

import pytest
from fastapi.testclient import TestClient

from civic_match.index import app
from civic_match.services.service_worker import PRECACHE_URLS


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestShellPages:
    """Tests for HTML pages."""

    def test_app_shell(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert '<link rel="manifest" href="/manifest.webmanifest">' in response.text
        assert "<title>Civic Match</title>" in response.text

    def test_offline_page(self, client):
        response = client.get("/offline")
        assert response.status_code == 200
        assert "You are offline" in response.text
        assert "window.location.reload()" in response.text
        assert "Offline | Civic Match" in response.text

    def test_profile_redirects(self, client):
        response = client.get("/profile", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/profiles"


class TestAssets:
    """Tests for manifest and icons."""

    def test_manifest(self, client):
        response = client.get("/manifest.webmanifest")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/manifest+json")
        manifest = json.loads(response.content)
        assert manifest["name"] == "Civic Match"
        assert manifest["start_url"] == "/"
        assert manifest["display"] == "standalone"

    @pytest.mark.parametrize("path", ["/icon.svg", "/favicon.ico"])
    def test_icons(self, client, path):
        response = client.get(path)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("image/svg+xml")
        assert b"<svg" in response.content

    @pytest.mark.parametrize("path", PRECACHE_URLS)
    def test_every_precached_url_is_served(self, client, path):
        """Install fails if any precached URL is not a 2xx."""
        response = client.get(path)
        assert 200 <= response.status_code < 300
