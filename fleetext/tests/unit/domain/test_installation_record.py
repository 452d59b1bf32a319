from __future__ import annotations

import pytest

from fleetext.domain.errors import ExtensionError, UnsupportedProtocolError
from fleetext.domain.installation import (
    INSTALL_SEQUENCE,
    InstallationRecord,
    InstallState,
    InvalidTransitionError,
    PackageIdentity,
    artifact_name_from_url,
    can_transition,
    validate_source_url,
)


def test_record_walks_forward_through_install_sequence():
    record = InstallationRecord(artifact_file="ext-1.0.rpm", source_url="file:///tmp/ext-1.0.rpm")

    for state in INSTALL_SEQUENCE[1:]:
        record.transition(state)

    assert record.state is InstallState.AVAILABLE
    assert record.state.is_terminal


@pytest.mark.parametrize(
    "current, target",
    [
        (InstallState.UPLOADING, InstallState.DOWNLOADING),
        (InstallState.REQUESTED, InstallState.UPLOADING),
        (InstallState.AVAILABLE, InstallState.ERROR),
        (InstallState.ERROR, InstallState.REQUESTED),
    ],
)
def test_illegal_transitions_are_rejected(current, target):
    record = InstallationRecord(artifact_file="a.rpm", source_url="", state=current)

    assert can_transition(current, target) is False
    with pytest.raises(InvalidTransitionError):
        record.transition(target)
    assert record.state is current


def test_fail_sets_error_and_appends_tag():
    record = InstallationRecord(
        artifact_file="a.rpm", source_url="", state=InstallState.UPLOADING, tags=["info: x"]
    )

    record.fail("upload part start: 0 end: 9 return status: 500")

    assert record.state is InstallState.ERROR
    assert record.tags == ["info: x", "err: upload part start: 0 end: 9 return status: 500"]


def test_snapshot_is_independent_copy():
    record = InstallationRecord(artifact_file="a.rpm", source_url="")
    copy = record.snapshot()

    record.tags.append("err: boom")
    record.transition(InstallState.DOWNLOADING)

    assert copy.tags == []
    assert copy.state is InstallState.REQUESTED


def test_to_dict_uses_wire_field_names():
    record = InstallationRecord(
        artifact_file="ext-1.0-2.noarch.rpm",
        source_url="https://repo/ext-1.0-2.noarch.rpm",
        state=InstallState.AVAILABLE,
        identity=PackageIdentity.from_payload(
            {
                "name": "ext",
                "version": "1.0",
                "release": "2",
                "arch": "noarch",
                "packageName": "ext-1.0-2.noarch",
            }
        ),
    )

    assert record.to_dict() == {
        "rpmFile": "ext-1.0-2.noarch.rpm",
        "downloadUrl": "https://repo/ext-1.0-2.noarch.rpm",
        "state": "AVAILABLE",
        "name": "ext",
        "version": "1.0",
        "release": "2",
        "arch": "noarch",
        "packageName": "ext-1.0-2.noarch",
        "tags": [],
    }


def test_artifact_name_is_last_path_segment():
    assert artifact_name_from_url("https://repo.example/pkgs/ext-1.0.rpm?x=1") == "ext-1.0.rpm"
    assert artifact_name_from_url("file:///var/tmp/ext.rpm") == "ext.rpm"
    assert artifact_name_from_url("") == ""


def test_validate_source_url_rejects_missing_and_foreign_schemes():
    with pytest.raises(ExtensionError) as missing:
        validate_source_url(None)
    assert missing.value.status == 400
    assert missing.value.code == "URL_REQUIRED"

    with pytest.raises(UnsupportedProtocolError):
        validate_source_url("ftp://repo/ext.rpm")

    with pytest.raises(ExtensionError) as nameless:
        validate_source_url("https://repo.example/")
    assert nameless.value.code == "URL_INVALID"

    assert validate_source_url(" https://repo.example/ext.rpm ") == "ext.rpm"
