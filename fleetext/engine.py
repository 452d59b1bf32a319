"""Composition root: wire adapters and use cases into one engine object."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fleetext.adapters.artifact_stager import ArtifactStager
from fleetext.adapters.chunked_uploader import ChunkedUploader
from fleetext.adapters.device_registry_rest import DeviceRegistryRestAdapter
from fleetext.adapters.target_access import TargetAccess
from fleetext.adapters.task_rest import TaskRestAdapter
from fleetext.adapters.token_rest import TokenRestAdapter
from fleetext.config import EngineConfig
from fleetext.domain.inflight_registry import InFlightRegistry
from fleetext.domain.installation import REMOTE_DOWNLOAD_DIR
from fleetext.domain.ports import (
    CredentialPort,
    DeviceRegistryPort,
    StagerPort,
    TaskPort,
    UploaderPort,
)
from fleetext.usecases.install_extension import (
    InstallExtension,
    ReinstallExtension,
    Runner,
    start_worker,
)
from fleetext.usecases.installation_flow import InstallationFlow
from fleetext.usecases.query_extensions import QueryExtensions
from fleetext.usecases.resolve_target import ResolveTarget
from fleetext.usecases.uninstall_extension import UninstallExtension


@dataclass
class ExtensionEngine:
    """The four inbound operations sharing one in-flight registry."""

    registry: InFlightRegistry
    install: InstallExtension
    reinstall: ReinstallExtension
    uninstall: UninstallExtension
    query: QueryExtensions


def assemble_engine(
    *,
    device_registry: DeviceRegistryPort,
    stager: StagerPort,
    uploader: UploaderPort,
    tasks: TaskPort,
    management_port: int = 8100,
    task_timeout_s: Optional[float] = None,
    remote_download_dir: str = REMOTE_DOWNLOAD_DIR,
    runner: Runner = start_worker,
    registry: Optional[InFlightRegistry] = None,
) -> ExtensionEngine:
    """Build an engine from ports; tests pass doubles and an inline runner."""
    registry = registry or InFlightRegistry()
    resolve = ResolveTarget(device_registry=device_registry, management_port=management_port)
    flow = InstallationFlow(
        registry=registry,
        stager=stager,
        uploader=uploader,
        tasks=tasks,
        task_timeout_s=task_timeout_s,
    )
    accept = dict(
        registry=registry,
        flow=flow,
        tasks=tasks,
        resolve_target=resolve,
        query_timeout_s=task_timeout_s,
        runner=runner,
    )
    return ExtensionEngine(
        registry=registry,
        install=InstallExtension(**accept),
        reinstall=ReinstallExtension(**accept),
        uninstall=UninstallExtension(
            registry=registry, tasks=tasks, resolve_target=resolve, timeout_s=task_timeout_s
        ),
        query=QueryExtensions(
            registry=registry,
            tasks=tasks,
            resolve_target=resolve,
            timeout_s=task_timeout_s,
            download_dir=remote_download_dir,
        ),
    )


def build_engine(
    config: Optional[EngineConfig] = None,
    *,
    credentials: Optional[CredentialPort] = None,
    runner: Runner = start_worker,
) -> ExtensionEngine:
    """Build the production engine talking REST to the management endpoints."""
    cfg = config or EngineConfig.from_env()
    credentials = credentials or TokenRestAdapter(
        cfg.local_base_url, cfg.http, auth=cfg.local_auth
    )
    access = TargetAccess(cfg.http, local_auth=cfg.local_auth, credentials=credentials)
    return assemble_engine(
        device_registry=DeviceRegistryRestAdapter(
            cfg.local_base_url,
            cfg.http,
            auth=cfg.local_auth,
            group_prefix=cfg.device_group_prefix,
        ),
        stager=ArtifactStager(
            cfg.staging_dir, cfg.http, link_file_sources=cfg.link_file_sources
        ),
        uploader=ChunkedUploader(cfg.staging_dir, access, chunk_size=cfg.chunk_size),
        tasks=TaskRestAdapter(
            access,
            remote_download_dir=cfg.remote_download_dir,
            poll_interval_s=cfg.poll_interval_s,
            timeout_s=cfg.task_timeout_s,
        ),
        management_port=cfg.management_port,
        remote_download_dir=cfg.remote_download_dir,
        runner=runner,
    )


__all__ = ["ExtensionEngine", "assemble_engine", "build_engine"]
