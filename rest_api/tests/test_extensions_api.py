"""Contract tests for the trusted extensions REST endpoints."""

from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from fleetext.domain.ports import TaskOperation
from fleetext.domain.targets import Target
from fleetext.engine import assemble_engine
from rest_api.app import EXTENSIONS_PATH, create_app

URL = "https://repo.example/ext-1.0-1.noarch.rpm"
INSTALLED = {
    "name": "ext",
    "version": "1.0",
    "release": "1",
    "arch": "noarch",
    "packageName": "ext-1.0-1.noarch",
}


class _Devices:
    def list_trusted_devices(self):
        return [Target(host="10.0.0.5", port=443, trust_uuid="uuid-5")]

    def ensure_device_group(self, name):
        return {}


class _Stager:
    def stage(self, source_url, target):
        return source_url.rsplit("/", 1)[-1]


class _Uploader:
    def upload(self, target, staged_filename):
        return True


class _Tasks:
    def __init__(self, installed=None) -> None:
        self.installed = list(installed or [])

    def run_task(self, target, operation, payload=None, timeout_s=None):
        if operation is TaskOperation.QUERY:
            return list(self.installed)
        if operation is TaskOperation.UNINSTALL:
            self.installed = [i for i in self.installed if i["packageName"] != payload]
        return {"status": "FINISHED"}


def _parked(work, name):
    """Runner that never starts background work; records stay REQUESTED."""


@pytest.fixture
def make_client(monkeypatch: pytest.MonkeyPatch):
    def _make(installed=None, api_key: str = ""):
        monkeypatch.setenv("FLEETEXT_API_KEY", api_key)
        engine = assemble_engine(
            device_registry=_Devices(),
            stager=_Stager(),
            uploader=_Uploader(),
            tasks=_Tasks(installed),
            runner=_parked,
        )
        return TestClient(create_app(engine))

    return _make


def test_post_accepts_install_with_202(make_client):
    with make_client() as client:
        resp = client.post(EXTENSIONS_PATH, json={"targetHost": "10.0.0.5", "url": URL})

    assert resp.status_code == 202
    body = resp.json()
    assert body["rpmFile"] == "ext-1.0-1.noarch.rpm"
    assert body["state"] == "REQUESTED"
    assert body["downloadUrl"] == URL


def test_post_reads_query_parameters(make_client):
    with make_client() as client:
        resp = client.post(EXTENSIONS_PATH, params={"targetHost": "local", "url": URL})

    assert resp.status_code == 202


def test_duplicate_post_conflicts(make_client):
    with make_client() as client:
        client.post(EXTENSIONS_PATH, json={"targetHost": "10.0.0.5", "url": URL})
        resp = client.post(EXTENSIONS_PATH, json={"targetHost": "10.0.0.5", "url": URL})

    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "OPERATION_IN_FLIGHT"


def test_post_to_untrusted_target_is_bad_request(make_client):
    with make_client() as client:
        resp = client.post(EXTENSIONS_PATH, json={"targetHost": "10.9.9.9", "url": URL})

    assert resp.status_code == 400
    assert "is not a trusted device" in resp.json()["detail"]["message"]


def test_post_without_url_is_bad_request(make_client):
    with make_client() as client:
        resp = client.post(EXTENSIONS_PATH, json={"targetHost": "10.0.0.5"})

    assert resp.status_code == 400


def test_put_reinstalls_installed_package(make_client):
    with make_client(installed=[INSTALLED]) as client:
        resp = client.put(EXTENSIONS_PATH, json={"targetHost": "10.0.0.5", "url": URL})

    assert resp.status_code == 202
    assert resp.json()["tags"] == ["info: previous package ext-1.0-1.noarch was uninstalled"]


def test_get_lists_installed_and_filters_by_name(make_client):
    with make_client(installed=[INSTALLED]) as client:
        listing = client.get(EXTENSIONS_PATH, params={"targetHost": "10.0.0.5"})
        single = client.get(EXTENSIONS_PATH, params={"targetHost": "10.0.0.5", "name": "ext"})
        missing = client.get(EXTENSIONS_PATH, params={"targetHost": "10.0.0.5", "name": "nope"})

    assert listing.status_code == 200
    assert [item["packageName"] for item in listing.json()] == ["ext-1.0-1.noarch"]
    assert single.json()["state"] == "AVAILABLE"
    assert missing.status_code == 404


def test_delete_uninstalls_or_reports_not_found(make_client):
    with make_client(installed=[INSTALLED]) as client:
        removed = client.delete(EXTENSIONS_PATH, params={"targetHost": "10.0.0.5", "url": URL})
        again = client.delete(EXTENSIONS_PATH, params={"targetHost": "10.0.0.5", "url": URL})

    assert removed.status_code == 200
    assert removed.json() == {
        "msg": "package in rpmFile ext-1.0-1.noarch.rpm uninstalled on target 10.0.0.5:443"
    }
    assert again.status_code == 404


def test_api_key_is_enforced_when_configured(make_client):
    with make_client(api_key="secret") as client:
        denied = client.get(EXTENSIONS_PATH)
        allowed = client.get(EXTENSIONS_PATH, headers={"X-API-Key": "secret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200
