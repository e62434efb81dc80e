"""Tests for server.py Flask endpoints. The orchestrator runs on a scripted model and compiler."""

import os
import threading
import types
from unittest.mock import AsyncMock, patch

import pytest

from config.defaults import DEFAULTS
from core.cache import TTLCache
from core.orchestrator import Orchestrator
from conftest import MAIN_PATH, FakeCompiler, FakeLLM, file_block, healing_llm, plugin_tree

TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}
BUILD_ID = "plugin-1700000000000-abcdef"


@pytest.fixture
def orch(store):
    return Orchestrator(
        llm=healing_llm(fix=file_block(MAIN_PATH, "package com.pegasus.healonjoin;\nclass HealOnJoin {}")),
        cache=TTLCache(ttl=60),
        store=store,
        compiler=FakeCompiler([True]),
        max_attempts=2,
        ai_validation=False,
    )


@pytest.fixture
def client(orch, monkeypatch):
    import server
    monkeypatch.setitem(DEFAULTS, "api_token", TOKEN)
    monkeypatch.setattr(server, "orchestrator", orch)
    server.app.config["TESTING"] = True
    with server.app.test_client() as c:
        yield c


def _make_jar(store, build_id):
    store.write_files(build_id, plugin_tree())
    target = os.path.join(store.build_dir(build_id), "target")
    os.makedirs(target, exist_ok=True)
    with open(os.path.join(target, "healonjoin-1.0-SNAPSHOT.jar"), "wb") as fp:
        fp.write(b"PK\x03\x04jar")


# ---------------------------------------------------------------------------
# Open routes and authentication
# ---------------------------------------------------------------------------

def test_index_and_health_need_no_token(client):
    assert client.get("/").status_code == 200
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer wrong"}])
def test_protected_routes_reject_bad_tokens(client, headers):
    resp = client.post("/api/create", json={"prompt": "heal"}, headers=headers)
    assert resp.status_code == 401
    data = resp.get_json()
    assert data["success"] is False
    assert data["status"] == "fail"


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nope", headers=AUTH)
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


# ---------------------------------------------------------------------------
# POST /api/create
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}, {"prompt": 42}])
def test_create_requires_prompt(client, body):
    resp = client.post("/api/create", json=body, headers=AUTH)
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_create_rejects_bad_build_id(client):
    resp = client.post("/api/create", json={"prompt": "heal", "buildId": "../x"}, headers=AUTH)
    assert resp.status_code == 400


def test_create_returns_files(client):
    resp = client.post("/api/create", json={"prompt": "a plugin that heals players on join"}, headers=AUTH)
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["success"] is True
    assert data["pluginName"] == "HealOnJoin"
    assert MAIN_PATH in data["data"]
    assert MAIN_PATH in data["files"]
    assert data["processingTime"].endswith("s")
    assert "jarPath" not in data
    assert "timestamp" in data


def test_create_with_compile(client, orch):
    resp = client.post("/api/create", json={
        "prompt": "a plugin that heals players on join",
        "compile": True,
        "buildId": BUILD_ID,
    }, headers=AUTH)
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["success"] is True
    assert data["buildId"] == BUILD_ID
    assert data["jarPath"].endswith(".jar")
    assert data["attemptsUsed"] == 1
    assert data["degraded"] is False
    assert data["downloadUrl"] == f"/api/build/download/{BUILD_ID}"
    assert orch.store.status(BUILD_ID)["status"] == "completed"


def test_create_with_failed_build_reports_failure(client, orch):
    orch.compiler.outcomes = [False] * 10
    resp = client.post("/api/create", json={"prompt": "heal players", "compile": True}, headers=AUTH)
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["success"] is False
    assert data["attemptsUsed"] == 4
    assert data["downloadUrl"] is None


def test_create_async_returns_202_then_completes(client, orch, monkeypatch):
    import server
    started = []

    class TrackedThread(threading.Thread):
        def start(self):
            started.append(self)
            super().start()

    monkeypatch.setattr(server, "threading", types.SimpleNamespace(Thread=TrackedThread))
    resp = client.post("/api/create", json={
        "prompt": "heal players", "async": True, "buildId": BUILD_ID,
    }, headers=AUTH)
    assert resp.status_code == 202
    data = resp.get_json()
    assert data["buildId"] == BUILD_ID
    assert data["status"] == "pending"
    assert data["statusCheckUrl"] == f"/api/build/status/{BUILD_ID}"

    for thread in started:
        thread.join(timeout=10)
    status = client.get(f"/api/build/status/{BUILD_ID}", headers=AUTH).get_json()
    assert status["status"] == "completed"
    assert status["pluginName"] == "HealOnJoin"


# ---------------------------------------------------------------------------
# POST /api/fix
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("body", [
    {},
    {"buildErrors": "[ERROR] x"},
    {"files": {"A.java": "x"}},
    {"buildErrors": "[ERROR] x", "files": {}},
    {"buildErrors": "[ERROR] x", "files": {"A.java": 1}},
])
def test_fix_validation(client, body):
    assert client.post("/api/fix", json=body, headers=AUTH).status_code == 400


def test_fix_returns_changed_files(client):
    body = {"buildErrors": "[ERROR] HealOnJoin.java:[1,1] error", "files": plugin_tree()}
    data = client.post("/api/fix", json=body, headers=AUTH).get_json()
    assert data["success"] is True
    assert list(data["data"]) == [MAIN_PATH]
    assert data["cached"] is False

    again = client.post("/api/fix", json=body, headers=AUTH).get_json()
    assert again["cached"] is True
    assert "(cached)" in again["message"]


def test_fix_with_no_answer_is_empty(client, orch):
    orch.fixer.llm = FakeLLM()
    body = {"buildErrors": "[ERROR] x", "files": plugin_tree()}
    data = client.post("/api/fix", json=body, headers=AUTH).get_json()
    assert data["success"] is True
    assert data["data"] == {}


# ---------------------------------------------------------------------------
# Build status, download and listing
# ---------------------------------------------------------------------------

def test_status_unknown_build(client):
    assert client.get(f"/api/build/status/{BUILD_ID}", headers=AUTH).status_code == 404
    assert client.get("/api/build/status/bad.id", headers=AUTH).status_code == 400


def test_status_with_files(client, orch):
    _make_jar(orch.store, BUILD_ID)
    data = client.get(f"/api/build/status/{BUILD_ID}?includeFiles=true", headers=AUTH).get_json()
    assert data["status"] == "completed"
    assert data["jarFile"] == "healonjoin-1.0-SNAPSHOT.jar"
    assert MAIN_PATH in data["files"]


def test_download(client, orch):
    _make_jar(orch.store, BUILD_ID)
    resp = client.get(f"/api/build/download/{BUILD_ID}", headers=AUTH)
    assert resp.status_code == 200
    assert resp.mimetype == "application/java-archive"
    assert "healonjoin.jar" in resp.headers["Content-Disposition"]
    assert "no-store" in resp.headers["Cache-Control"]
    assert resp.data == b"PK\x03\x04jar"
    resp.close()


def test_download_without_jar(client, orch):
    orch.store.create(BUILD_ID)
    resp = client.get(f"/api/build/download/{BUILD_ID}", headers=AUTH)
    assert resp.status_code == 404


def test_plugins_listing_and_details(client, orch):
    orch.store.create(BUILD_ID, "heal players")
    _make_jar(orch.store, BUILD_ID)

    data = client.get("/api/plugins", headers=AUTH).get_json()
    assert data["count"] == 1
    assert data["plugins"][0]["name"] == "HealOnJoin"

    details = client.get(f"/api/plugins/{BUILD_ID}", headers=AUTH).get_json()
    assert details["plugin"]["prompt"] == "heal players"
    assert MAIN_PATH in details["plugin"]["fileContents"]

    assert client.get("/api/plugins/plugin-1-missing", headers=AUTH).status_code == 404


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

def test_filesystem_error_is_500_with_detail(client, orch):
    with patch.object(orch, "create", AsyncMock(side_effect=OSError("disk full"))):
        resp = client.post("/api/create", json={"prompt": "heal"}, headers=AUTH)
    assert resp.status_code == 500
    data = resp.get_json()
    assert data["status"] == "error"
    assert data["error"] == "disk full"


def test_unexpected_error_is_500_without_traceback(client, orch):
    with patch.object(orch, "fix", AsyncMock(side_effect=KeyError("files"))):
        resp = client.post("/api/fix", json={"buildErrors": "[ERROR] x", "files": {"A.java": "x"}}, headers=AUTH)
    assert resp.status_code == 500
    data = resp.get_json()
    assert data["message"] == "Internal server error"
    assert "Traceback" not in resp.get_data(as_text=True)
