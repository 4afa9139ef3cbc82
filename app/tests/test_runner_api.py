"""
test_runner_api — POST /runner/build status mapping and /health.

The compiler is replaced by a fake subprocess.run; builds land in tmp_path.
"""
import json
import subprocess
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import app
from app.routers.runner import get_settings
from runner_wasm.core import toolchain

EMPTY_WASM = b"\x00asm\x01\x00\x00\x00"

PAYLOAD = {
    "name": "demo",
    "max_results": 10,
    "max_query_terms": 5,
    "terms_chunks_raw": "0xAA,0xBB",
    "terms_chunks_len": 2,
    "documents_chunks_raw": "0xCC",
    "documents_chunks_len": 1,
}


def _fake_run(returncode: int):
    calls = []

    def run(cmd, *args, **kwargs):
        if "-o" not in cmd:
            return subprocess.CompletedProcess(cmd, 0, stdout="fake clang 0.0\n", stderr="")
        calls.append(list(cmd))
        if returncode == 0:
            Path(cmd[cmd.index("-o") + 1]).write_bytes(EMPTY_WASM)
        return subprocess.CompletedProcess(cmd, returncode)

    run.calls = calls
    return run


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(RUNNER_OUTPUT_ROOT=str(tmp_path / "runners"), WASM_COMPILER="clang")


@pytest.fixture
def client(settings):
    toolchain._cached.clear()
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()
    toolchain._cached.clear()


class TestBuildEndpoint:

    def test_created(self, client, settings, monkeypatch):
        fake = _fake_run(0)
        monkeypatch.setattr(subprocess, "run", fake)

        resp = client.post("/runner/build", json=PAYLOAD)

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "SUCCESS"
        assert body["profile_id"] == "wasm32-freestanding-clang-c"
        assert body["receipt"]["artifact"]["path_rel"] == "runner.wasm"

        out = Path(settings.RUNNER_OUTPUT_ROOT) / "demo"
        assert body["output_dir"] == str(out)
        assert "{0xAA,0xBB}" in (out / "runner.c").read_text()
        assert json.loads((out / "runner_receipt.json").read_text())["job"]["name"] == "demo"
        assert "-DMAX_RESULTS=10" in fake.calls[-1]

    def test_configured_compiler_used(self, client, settings, monkeypatch):
        fake = _fake_run(0)
        monkeypatch.setattr(subprocess, "run", fake)
        settings.WASM_COMPILER = "clang-18"

        assert client.post("/runner/build", json=PAYLOAD).status_code == 201
        assert fake.calls[-1][0] == "clang-18"

    def test_compile_failure_is_422(self, client, monkeypatch):
        monkeypatch.setattr(subprocess, "run", _fake_run(1))

        resp = client.post("/runner/build", json=PAYLOAD)

        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["exit_code"] == 1
        assert detail["command"][0] == "clang"

    def test_missing_compiler_is_503(self, client, settings):
        settings.WASM_COMPILER = "runner-wasm-no-such-compiler"

        resp = client.post("/runner/build", json=PAYLOAD)
        assert resp.status_code == 503

    @pytest.mark.parametrize("override", [
        {"max_results": 0},
        {"max_query_terms": -1},
        {"terms_chunks_len": -1},
        {"name": "../escape"},
        {"name": ""},
    ])
    def test_invalid_request_is_422(self, client, monkeypatch, override):
        fake = _fake_run(0)
        monkeypatch.setattr(subprocess, "run", fake)

        resp = client.post("/runner/build", json={**PAYLOAD, **override})

        assert resp.status_code == 422
        assert isinstance(resp.json()["detail"], list)
        assert fake.calls == []

    def test_bad_fragments_dir_is_500(self, client, settings, tmp_path, monkeypatch):
        monkeypatch.setattr(subprocess, "run", _fake_run(0))
        settings.FRAGMENTS_DIR = str(tmp_path / "no-fragments")

        resp = client.post("/runner/build", json=PAYLOAD)
        assert resp.status_code == 500


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["service"] == "runner-wasm-api"

    def test_only_health_and_runner_routes(self, client):
        assert client.get("/").status_code == 404
        paths = {route.path for route in app.routes}
        assert {"/health", "/runner/build"} <= paths
