"""Tests for install, reinstall, uninstall and query use cases."""

from __future__ import annotations

import pytest

from fleetext.domain.errors import (
    AlreadyInstalledError,
    DuplicateOperationError,
    ExtensionError,
    NotInstalledError,
    TaskFailedError,
    TaskTimeoutError,
    UnsupportedProtocolError,
    UntrustedTargetError,
)
from fleetext.domain.inflight_registry import make_key
from fleetext.domain.installation import InstallState
from fleetext.domain.ports import TaskOperation
from fleetext.domain.targets import Target
from fleetext.engine import assemble_engine

TARGET = Target(host="10.0.0.5", port=443, trust_uuid="uuid-5")
URL = "https://repo.example/ext-1.0-1.noarch.rpm"
ARTIFACT = "ext-1.0-1.noarch.rpm"
INSTALLED = {
    "name": "ext",
    "version": "1.0",
    "release": "1",
    "arch": "noarch",
    "packageName": "ext-1.0-1.noarch",
}


class _DeviceRegistryDouble:
    def __init__(self, devices=None) -> None:
        self.devices = [TARGET] if devices is None else list(devices)

    def list_trusted_devices(self):
        return list(self.devices)

    def ensure_device_group(self, name):
        return {"groupName": name}


class _StagerDouble:
    def stage(self, source_url, target):
        return source_url.rsplit("/", 1)[-1]


class _UploaderDouble:
    def upload(self, target, staged_filename):
        return True


class _TaskDouble:
    """In-memory package manager of one target."""

    def __init__(self, installed=None, errors=None) -> None:
        self.installed = list(installed or [])
        self.errors = dict(errors or {})
        self.calls: list[tuple[TaskOperation, object]] = []

    def run_task(self, target, operation, payload=None, timeout_s=None):
        self.calls.append((operation, payload))
        if operation in self.errors:
            raise self.errors[operation]
        if operation is TaskOperation.QUERY:
            return [dict(item) for item in self.installed]
        if operation is TaskOperation.UNINSTALL:
            self.installed = [i for i in self.installed if i["packageName"] != payload]
        if operation is TaskOperation.INSTALL:
            self.installed.append(dict(INSTALLED))
        return {"status": "FINISHED"}


class _DeferredRunner:
    """Collects background work so tests decide when it runs."""

    def __init__(self) -> None:
        self.pending: list = []

    def __call__(self, work, name):
        self.pending.append(work)

    def drain(self):
        while self.pending:
            self.pending.pop(0)()


def _engine(tasks=None, runner=None, devices=None):
    tasks = tasks or _TaskDouble()
    runner = runner or _DeferredRunner()
    engine = assemble_engine(
        device_registry=_DeviceRegistryDouble(devices),
        stager=_StagerDouble(),
        uploader=_UploaderDouble(),
        tasks=tasks,
        runner=runner,
    )
    return engine, tasks, runner


def test_install_returns_requested_snapshot_then_completes():
    engine, tasks, runner = _engine()

    record = engine.install(source_url=URL, target="10.0.0.5")

    assert record.state is InstallState.REQUESTED
    assert record.artifact_file == ARTIFACT
    assert make_key(TARGET, ARTIFACT) in engine.registry

    runner.drain()

    assert make_key(TARGET, ARTIFACT) not in engine.registry
    assert (TaskOperation.INSTALL, ARTIFACT) in tasks.calls


def test_install_resolves_by_trust_uuid():
    engine, _, _ = _engine()

    engine.install(source_url=URL, target="uuid-5", port=443)

    assert make_key(TARGET, ARTIFACT) in engine.registry


def test_duplicate_install_is_rejected_while_in_flight():
    engine, _, _ = _engine()
    engine.install(source_url=URL, target="10.0.0.5")

    with pytest.raises(DuplicateOperationError):
        engine.install(source_url=URL, target="10.0.0.5")


def test_install_of_installed_package_is_rejected_and_releases_key():
    engine, _, runner = _engine(_TaskDouble(installed=[INSTALLED]))

    with pytest.raises(AlreadyInstalledError) as excinfo:
        engine.install(source_url=URL, target="10.0.0.5")

    assert excinfo.value.status == 409
    assert len(engine.registry) == 0
    assert runner.pending == []


def test_install_validation_errors_leave_registry_empty():
    engine, _, _ = _engine()

    with pytest.raises(UnsupportedProtocolError):
        engine.install(source_url="ftp://repo/ext.rpm", target="10.0.0.5")
    with pytest.raises(UntrustedTargetError) as untrusted:
        engine.install(source_url=URL, target="10.9.9.9")

    assert untrusted.value.status == 400
    assert len(engine.registry) == 0


def test_install_query_timeout_releases_claim():
    tasks = _TaskDouble(errors={TaskOperation.QUERY: TaskTimeoutError("slow", polls=3)})
    engine, _, _ = _engine(tasks)

    with pytest.raises(TaskTimeoutError):
        engine.install(source_url=URL, target="10.0.0.5")

    assert len(engine.registry) == 0


def test_local_target_is_accepted_without_registry_lookup():
    engine, _, _ = _engine(devices=[])

    record = engine.install(source_url=URL, target="local")

    assert record.state is InstallState.REQUESTED
    assert "localhost:8100:" + ARTIFACT in engine.registry


def test_reinstall_uninstalls_previous_package_first():
    engine, tasks, runner = _engine(_TaskDouble(installed=[INSTALLED]))

    record = engine.reinstall(source_url=URL, target="10.0.0.5")
    runner.drain()

    assert record.tags == ["info: previous package ext-1.0-1.noarch was uninstalled"]
    operations = [op for op, _ in tasks.calls]
    assert operations == [TaskOperation.QUERY, TaskOperation.UNINSTALL, TaskOperation.INSTALL]


def test_reinstall_failed_uninstall_is_reported_and_released():
    tasks = _TaskDouble(
        installed=[INSTALLED],
        errors={TaskOperation.UNINSTALL: TaskFailedError("Task t-9 failed returning {}")},
    )
    engine, _, runner = _engine(tasks)

    with pytest.raises(ExtensionError) as excinfo:
        engine.reinstall(source_url=URL, target="10.0.0.5")

    assert excinfo.value.status == 500
    assert "could not be uninstalled to update" in str(excinfo.value)
    assert len(engine.registry) == 0
    assert runner.pending == []


def test_reinstall_failure_after_removal_says_so():
    tasks = _TaskDouble(
        installed=[INSTALLED],
        errors={TaskOperation.INSTALL: TaskFailedError("Task t-2 failed returning {}")},
    )
    engine, _, runner = _engine(tasks)

    engine.reinstall(source_url=URL, target="10.0.0.5")
    runner.drain()

    record = engine.registry.snapshot(make_key(TARGET, ARTIFACT))
    assert record.state is InstallState.ERROR
    assert record.tags[-1].endswith("(previous package ext-1.0-1.noarch was uninstalled)")


def test_uninstall_removes_installed_package():
    engine, tasks, _ = _engine(_TaskDouble(installed=[INSTALLED]))

    result = engine.uninstall(source_url=URL, target="10.0.0.5")

    assert result == {
        "msg": f"package in rpmFile {ARTIFACT} uninstalled on target 10.0.0.5:443"
    }
    assert (TaskOperation.UNINSTALL, "ext-1.0-1.noarch") in tasks.calls
    assert tasks.installed == []


def test_uninstall_cancels_in_flight_install():
    engine, tasks, runner = _engine()
    engine.install(source_url=URL, target="10.0.0.5")

    engine.uninstall(source_url=URL, target="10.0.0.5")
    runner.drain()

    assert len(engine.registry) == 0
    assert TaskOperation.INSTALL not in [op for op, _ in tasks.calls]


def test_uninstall_of_unknown_package_is_not_found():
    engine, _, _ = _engine()

    with pytest.raises(NotInstalledError) as excinfo:
        engine.uninstall(source_url=URL, target="10.0.0.5")

    assert excinfo.value.status == 404


def test_uninstall_requires_url():
    engine, _, _ = _engine()

    with pytest.raises(ExtensionError) as excinfo:
        engine.uninstall(source_url=None, target="10.0.0.5")

    assert excinfo.value.status == 400


def test_query_merges_in_flight_and_installed_records():
    other = Target(host="10.0.0.6", port=443)
    engine, _, _ = _engine(_TaskDouble(installed=[INSTALLED]), devices=[TARGET, other])
    engine.install(source_url="https://repo.example/new-2.0.rpm", target="10.0.0.5")
    engine.install(source_url="https://repo.example/new-2.0.rpm", target="10.0.0.6")

    records = engine.query(target="10.0.0.5")

    assert [(r.artifact_file, r.state) for r in records] == [
        ("new-2.0.rpm", InstallState.REQUESTED),
        ("ext-1.0-1.noarch.rpm", InstallState.AVAILABLE),
    ]
    assert records[1].identity.version == "1.0"


def test_query_by_name_filters_or_raises():
    engine, _, _ = _engine(_TaskDouble(installed=[INSTALLED]))

    assert [r.identity.name for r in engine.query(target="10.0.0.5", name="ext")] == ["ext"]
    with pytest.raises(NotInstalledError) as excinfo:
        engine.query(target="10.0.0.5", name="missing")
    assert str(excinfo.value) == "no extension with name missing found."


def test_query_reports_remote_download_url_for_installed_packages():
    engine, _, _ = _engine(_TaskDouble(installed=[INSTALLED]))

    (record,) = engine.query(target="10.0.0.5")

    assert record.to_dict()["downloadUrl"] == (
        "https://10.0.0.5:443/var/config/rest/downloads/ext-1.0-1.noarch.rpm"
    )


def test_install_cancelled_before_launch_is_a_conflict():
    tasks = _TaskDouble()
    engine, _, runner = _engine(tasks)
    key = make_key(TARGET, ARTIFACT)
    query = tasks.run_task

    def cancel_while_querying(target, operation, payload=None, timeout_s=None):
        engine.registry.cancel(key)
        return query(target, operation, payload, timeout_s)

    tasks.run_task = cancel_while_querying

    with pytest.raises(ExtensionError) as excinfo:
        engine.install(source_url=URL, target="10.0.0.5")

    assert excinfo.value.status == 409
    assert excinfo.value.code == "OPERATION_CANCELLED"
    assert runner.pending == []
    assert key not in engine.registry
