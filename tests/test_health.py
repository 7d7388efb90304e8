"""
Tests for the liveness and health endpoints.
"""


def test_root_reports_running(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.text == "Audio X Backend is running"
    assert response.headers["content-type"].startswith("text/plain")


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "audio-x-backend"
    assert data["spotify_configured"] is True
    assert data["lastfm_configured"] is True
    assert data["cache"]["backend"] == "in-memory"
    assert data["cache"]["cached_tracks"] == 0
    assert "timestamp" in data


def test_health_reports_missing_lastfm_key(client_without_lastfm):
    assert client_without_lastfm.get("/health").json()["lastfm_configured"] is False


def test_cors_headers_present(client):
    response = client.get("/", headers={"Origin": "http://localhost:8080"})

    assert response.headers["access-control-allow-origin"] == "*"
