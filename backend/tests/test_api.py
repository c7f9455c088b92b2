import io

import numpy as np
import pytest
import soundfile as sf
from fastapi.testclient import TestClient

from chartfill.main import app
from eval.patterns import song_ini


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def folder(make_chart_text, steady_hats):
    return [
        ("files", ("My Song/notes.chart", make_chart_text(steady_hats(32)).encode(), "application/octet-stream")),
        ("files", ("My Song/song.ini", song_ini("My Song").encode(), "text/plain")),
    ]


def test_health(client) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_scan_folder(client, folder) -> None:
    response = client.post("/api/charts/scan", files=folder, data={"difficulty": "expert"})
    assert response.status_code == 200

    report = response.json()
    assert len(report["chart_md5"]) == 32
    assert report["folder_issues"] == []
    assert report["metadata"]["name"] == "Test Song"
    assert report["song_metadata"]["name"] == "My Song"
    assert report["fills"] == []
    assert report["summary"]["song_id"] == "Test Song"
    assert report["summary"]["window_count"] > 0
    assert report["audio"] is None


def test_scan_uses_song_id(client, folder) -> None:
    response = client.post("/api/charts/scan", files=folder, data={"song_id": "abc123"})
    assert response.status_code == 200
    assert response.json()["summary"]["song_id"] == "abc123"


def test_missing_difficulty_is_404(client, folder) -> None:
    response = client.post("/api/charts/scan", files=folder, data={"difficulty": "hard"})
    assert response.status_code == 404
    assert "hard" in response.json()["detail"]


def test_unknown_lane_map_is_422(client, folder) -> None:
    response = client.post("/api/charts/scan", files=folder, data={"lane_map": "guitar_hero"})
    assert response.status_code == 422
    assert any("guitar_hero" in message for message in response.json()["detail"])


def test_folder_without_chart_reports_issues(client) -> None:
    files = [("files", ("song.ini", song_ini("Lonely").encode(), "text/plain"))]
    response = client.post("/api/charts/scan", files=files)
    assert response.status_code == 200

    report = response.json()
    assert [issue["folder_issue"] for issue in report["folder_issues"]] == ["noChart"]
    assert report["summary"] is None


def test_fingerprint_runs_on_app_pool(client, folder) -> None:
    t = np.arange(22050) / 22050
    buffer = io.BytesIO()
    sf.write(buffer, (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32), 22050, format="WAV")
    files = folder + [("files", ("My Song/song.wav", buffer.getvalue(), "audio/wav"))]

    response = client.post("/api/charts/scan", files=files, data={"fingerprint": "true"})
    assert response.status_code == 200
    audio = response.json()["audio"]
    assert audio["errors"] == []
    assert audio["audio_length"] == 1
    assert len(audio["audio_hash"]) == 9


def test_run_serves_app_with_settings(monkeypatch) -> None:
    import uvicorn

    from chartfill import main

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    main.run()
    assert calls == [(main.app, {"host": main.settings.host, "port": main.settings.port, "reload": False})]
