# tests/test_app.py
from __future__ import annotations

import io

import pytest

import app as app_module


@pytest.fixture()
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


def test_render_endpoint(client):
    response = client.post(
        "/api/render",
        json={"tags": {"x": 1, "y": ["p"] * 10}, "directive": "font-size: 10 - 20px", "tagDir": "/t"},
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["html"] == (
        '<li><a style="font-size: 10px" href="/t/x/">x</a></li>\n'
        '<li><a style="font-size: 20px" href="/t/y/">y</a></li>\n'
    )
    assert data["labels"] == [{"name": "x", "weight": 0.0}, {"name": "y", "weight": 1.0}]
    assert data["config"]["unit"] == "px"
    assert data["config"]["order"] == "asc"


def test_render_endpoint_with_seed(client):
    payload = {"tags": {name: 1 for name in "abcdef"}, "directive": "sort: rand", "seed": 5}
    first = client.post("/api/render", json=payload).get_json()
    second = client.post("/api/render", json=payload).get_json()
    assert first["html"] == second["html"]


def test_render_endpoint_reads_json_path(client):
    response = client.post("/api/render", json={"jsonPath": "data/tags.json", "directive": "limit: 2"})
    assert response.status_code == 200
    assert len(response.get_json()["labels"]) == 2


def test_render_endpoint_missing_file(client):
    response = client.post("/api/render", json={"jsonPath": "data/nope.json"})
    assert response.status_code == 404


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {},
        {"tags": ["a", "b"]},
        {"tags": {"a": "text"}},
        {"tags": {"a": 1}, "seed": "abc"},
        {"jsonPath": "../outside.json"},
    ],
)
def test_render_endpoint_rejects_bad_payloads(client, payload):
    response = client.post("/api/render", json=payload)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_index_renders_cloud(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert '<ul class="cloud">' in body
    assert 'python/">Python</a>' in body


def test_index_para_style(client):
    response = client.get("/", query_string={"directive": "style: para"})
    body = response.get_data(as_text=True)
    assert '<p class="cloud">' in body
    assert "<li>" not in body


def test_upload(client, tmp_path, monkeypatch):
    monkeypatch.setattr(app_module, "UPLOAD_DIR", tmp_path)
    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b'{"a": 1}'), "my tags.json")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["filename"] == "my_tags.json"
    assert list(tmp_path.iterdir())[0].read_bytes() == b'{"a": 1}'


def test_upload_without_file(client):
    response = client.post("/api/upload", data={}, content_type="multipart/form-data")
    assert response.status_code == 400


def test_index_uses_shared_stylesheet(client):
    body = client.get("/").get_data(as_text=True)
    assert app_module.PAGE_CSS in body


@pytest.mark.parametrize(
    "content",
    [b'["a", "b"]', b'{"a": "text"}', b"not json", b"\xff\xfe"],
)
def test_upload_rejects_invalid_tag_files(client, tmp_path, monkeypatch, content):
    monkeypatch.setattr(app_module, "UPLOAD_DIR", tmp_path)
    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(content), "tags.json")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert "error" in response.get_json()
    assert list(tmp_path.iterdir()) == []


def test_upload_reports_tag_count(client, tmp_path, monkeypatch):
    monkeypatch.setattr(app_module, "UPLOAD_DIR", tmp_path)
    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b'{"a": ["p1"], "b": 2}'), "tags.json")},
        content_type="multipart/form-data",
    )
    assert response.get_json()["tagCount"] == 2


def test_render_endpoint_requires_json_tag_file(client):
    response = client.post("/api/render", json={"jsonPath": "app.py"})
    assert response.status_code == 400
