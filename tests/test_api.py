"""Player HTTP surface: uploads, transport commands and browser engine events."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.endpoints import get_drive_relay
from app.main import app
from app.services.drive import DriveRelay

FILE_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz12345"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _upload(client, *names, last_modified=None):
    files = [("files", (name, f"data-{name}".encode(), "audio/mpeg")) for name in names]
    data = {"last_modified": [str(v) for v in last_modified]} if last_modified else None
    return client.post("/api/v1/player/upload", files=files, data=data)


def test_health(client) -> None:
    assert client.get("/api/v1/health").json() == {"status": "ok"}
    assert client.get("/api/v1/ready").json()["status"] == "ready"


def test_upload_and_state(client) -> None:
    resp = _upload(client, "Daft Punk - One More Time.mp3", "track01.mp3", last_modified=[1, 2])
    assert resp.status_code == 200
    added = resp.json()["added"]
    assert [t["title"] for t in added] == ["One More Time", "track01"]
    assert added[0]["artist"] == "Daft Punk"
    assert added[1]["last_modified"] == 2

    state = client.get("/api/v1/player/state").json()
    assert state["status"] == "loading"
    assert state["current"]["id"] == added[0]["id"]
    assert len(state["tracks"]) == 2


def test_duplicate_upload_is_reported(client) -> None:
    _upload(client, "same.mp3", last_modified=[7])
    resp = _upload(client, "same.mp3", last_modified=[7])

    assert resp.json()["duplicates"] == ["same.mp3"]
    state = client.get("/api/v1/player/state").json()
    assert len(state["tracks"]) == 1
    assert state["duplicate_warning"] == ["same.mp3"]


def test_media_is_served(client) -> None:
    track = _upload(client, "song.mp3").json()["added"][0]

    resp = client.get(track["url"])
    assert resp.status_code == 200
    assert resp.content == b"data-song.mp3"

    assert client.get("/api/v1/media/unknown").status_code == 404


def test_select_then_engine_events(client) -> None:
    tracks = _upload(client, "a.mp3", "b.mp3").json()["added"]
    client.get("/api/v1/player/commands")

    state = client.post(f"/api/v1/player/tracks/{tracks[1]['id']}/select").json()
    assert state["status"] == "loading"

    commands = client.get("/api/v1/player/commands").json()
    assert commands == [{"command": "load", "src": tracks[1]["url"], "value": None}]

    state = client.post("/api/v1/player/events", json={"type": "loadedmetadata", "duration": 180}).json()
    assert state["playing"] is True
    assert state["duration"] == 180
    assert client.get("/api/v1/player/commands").json()[-1]["command"] == "play"

    state = client.post("/api/v1/player/events", json={"type": "timeupdate", "current_time": 12.5}).json()
    assert state["progress"] == 12.5

    state = client.post("/api/v1/player/events", json={"type": "ended"}).json()
    assert state["playing"] is False
    assert state["status"] == "ended"

    assert client.post("/api/v1/player/events", json={"type": "bogus"}).status_code == 422


def test_transport_endpoints(client) -> None:
    tracks = _upload(client, "a.mp3", "b.mp3", "c.mp3").json()["added"]
    client.post("/api/v1/player/events", json={"type": "loadedmetadata", "duration": 100})

    assert client.post("/api/v1/player/play-pause").json()["playing"] is True
    assert client.post("/api/v1/player/seek", json={"seconds": 250}).json()["progress"] == 100
    assert client.post("/api/v1/player/volume", json={"volume": 1.5}).json()["volume"] == 1.0
    assert client.post("/api/v1/player/prev").json()["current"]["id"] == tracks[2]["id"]
    assert client.post("/api/v1/player/next").json()["current"]["id"] == tracks[0]["id"]


def test_remove_track(client) -> None:
    tracks = _upload(client, "a.mp3", "b.mp3").json()["added"]

    state = client.delete(f"/api/v1/player/tracks/{tracks[0]['id']}").json()
    assert state["current"] is None
    assert [t["id"] for t in state["tracks"]] == [tracks[1]["id"]]
    assert client.get(tracks[0]["url"]).status_code == 404
    assert client.delete(f"/api/v1/player/tracks/{tracks[0]['id']}").status_code == 404


def test_add_from_drive(client, tmp_path) -> None:
    def handler(request):
        return httpx.Response(
            200,
            headers={"content-type": "audio/mpeg", "content-disposition": 'attachment; filename="Band - Tune.mp3"'},
            content=b"not really mp3",
        )

    relay = DriveRelay(temp_dir=tmp_path, transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_drive_relay] = lambda: relay

    resp = client.post("/api/v1/player/drive", json={"link": f"https://drive.google.com/file/d/{FILE_ID}/view"})

    assert resp.status_code == 200
    track = resp.json()
    assert (track["artist"], track["title"]) == ("Band", "Tune")
    assert client.get("/api/v1/player/state").json()["current"]["id"] == track["id"]
    assert list(tmp_path.iterdir()) == []


def test_add_from_drive_failures(client, tmp_path) -> None:
    relay = DriveRelay(
        temp_dir=tmp_path,
        transport=httpx.MockTransport(lambda request: httpx.Response(403, text="Quota exceeded")),
    )
    app.dependency_overrides[get_drive_relay] = lambda: relay

    resp = client.post("/api/v1/player/drive", json={"link": "nope"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid Google Drive link"

    resp = client.post("/api/v1/player/drive", json={"link": f"https://drive.google.com/open?id={FILE_ID}"})
    assert resp.status_code == 502
    assert "Failed to add file from Google Drive" in resp.json()["detail"]
    assert "Quota exceeded" in resp.json()["detail"]
    assert client.get("/api/v1/player/state").json()["tracks"] == []


def test_duplicate_warning_is_serialised(client) -> None:
    assert _upload(client, "same.mp3", last_modified=[3]).json()["warning"] is None

    warning = _upload(client, "same.mp3", last_modified=[3]).json()["warning"]
    assert warning.startswith("The following file(s) already exist")
    assert warning.endswith("same.mp3")


def test_add_from_drive_staging_failure(client, tmp_path) -> None:
    relay = DriveRelay(
        temp_dir=tmp_path / "missing",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"bytes")),
    )
    app.dependency_overrides[get_drive_relay] = lambda: relay

    resp = client.post("/api/v1/player/drive", json={"link": f"https://drive.google.com/open?id={FILE_ID}"})

    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("Failed to add file from Google Drive: ")
    assert client.get("/api/v1/player/state").json()["tracks"] == []
