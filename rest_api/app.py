# rest_api/app.py
"""HTTP front-end for the extension orchestration engine.

``/shared/TrustedExtensions`` maps the four inbound operations:

- ``GET``: query in-flight and installed extensions (blocks on the QUERY task)
- ``POST``: install, answers 202 with the REQUESTED record
- ``PUT``: uninstall-then-install (update), answers 202
- ``DELETE``: uninstall / cancel, answers 200

``targetHost``, ``targetPort`` and ``url`` come from the query string; POST and
PUT may override them with a JSON body.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Body, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from fleetext.engine import ExtensionEngine, build_engine
from fleetext.usecases.error_mapping import map_api_error
from fleetext.utils.logging import configure_root

EXTENSIONS_PATH = "/shared/TrustedExtensions"

log = logging.getLogger("rest_api.app")


class ExtensionRequest(BaseModel):
    targetHost: Optional[str] = Field(None, description="address, trust UUID or 'local'")
    targetPort: Optional[int] = None
    url: Optional[str] = Field(None, description="file:, http: or https: artifact location")


class ExtensionOut(BaseModel):
    rpmFile: str
    downloadUrl: str
    state: str
    name: str = ""
    version: str = ""
    release: str = ""
    arch: str = ""
    packageName: str = ""
    tags: List[str] = Field(default_factory=list)


def _merge(
    body: Optional[ExtensionRequest],
    target_host: Optional[str],
    target_port: Optional[int],
    url: Optional[str],
) -> ExtensionRequest:
    merged = ExtensionRequest(targetHost=target_host, targetPort=target_port, url=url)
    if body is not None:
        for name in body.model_fields_set:
            setattr(merged, name, getattr(body, name))
    return merged


def _fail(exc: Exception, default_code: str) -> HTTPException:
    err = map_api_error(exc, default_code=default_code)
    if err.status >= 500:
        log.error("%s: %s", err.code, err.message)
    return HTTPException(err.status, {"code": err.code, "message": err.message})


def create_app(engine: Optional[ExtensionEngine] = None) -> FastAPI:
    api_key = os.getenv("FLEETEXT_API_KEY", "")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_root()
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine()
        yield

    app = FastAPI(title="Trusted Extensions API", version="0.1.0", lifespan=lifespan)
    app.state.engine = engine

    def require_key(x_api_key: Optional[str]):
        if api_key and x_api_key != api_key:
            raise HTTPException(401, "Unauthorized")

    def current_engine() -> ExtensionEngine:
        return app.state.engine

    @app.get(EXTENSIONS_PATH)
    def query_extensions(
        target_host: Optional[str] = Query(None, alias="targetHost"),
        target_port: Optional[int] = Query(None, alias="targetPort"),
        name: Optional[str] = Query(None),
        x_api_key: Optional[str] = Header(None),
    ):
        require_key(x_api_key)
        try:
            records = current_engine().query(target=target_host, port=target_port, name=name)
        except Exception as exc:
            raise _fail(exc, "QUERY_FAILED") from exc
        if name:
            return records[0].to_dict()
        return [record.to_dict() for record in records]

    @app.post(EXTENSIONS_PATH, status_code=202, response_model=ExtensionOut)
    def install_extension(
        body: Optional[ExtensionRequest] = Body(None),
        target_host: Optional[str] = Query(None, alias="targetHost"),
        target_port: Optional[int] = Query(None, alias="targetPort"),
        url: Optional[str] = Query(None),
        x_api_key: Optional[str] = Header(None),
    ):
        require_key(x_api_key)
        req = _merge(body, target_host, target_port, url)
        try:
            record = current_engine().install(
                source_url=req.url, target=req.targetHost, port=req.targetPort
            )
        except Exception as exc:
            raise _fail(exc, "INSTALL_FAILED") from exc
        return record.to_dict()

    @app.put(EXTENSIONS_PATH, status_code=202, response_model=ExtensionOut)
    def reinstall_extension(
        body: Optional[ExtensionRequest] = Body(None),
        target_host: Optional[str] = Query(None, alias="targetHost"),
        target_port: Optional[int] = Query(None, alias="targetPort"),
        url: Optional[str] = Query(None),
        x_api_key: Optional[str] = Header(None),
    ):
        require_key(x_api_key)
        req = _merge(body, target_host, target_port, url)
        try:
            record = current_engine().reinstall(
                source_url=req.url, target=req.targetHost, port=req.targetPort
            )
        except Exception as exc:
            raise _fail(exc, "REINSTALL_FAILED") from exc
        return record.to_dict()

    @app.delete(EXTENSIONS_PATH)
    def uninstall_extension(
        target_host: Optional[str] = Query(None, alias="targetHost"),
        target_port: Optional[int] = Query(None, alias="targetPort"),
        url: Optional[str] = Query(None),
        x_api_key: Optional[str] = Header(None),
    ):
        require_key(x_api_key)
        try:
            return current_engine().uninstall(
                source_url=url, target=target_host, port=target_port
            )
        except Exception as exc:
            raise _fail(exc, "UNINSTALL_FAILED") from exc

    return app


app = create_app()


def main() -> None:
    """Serve the module-level app; bind address from FLEETEXT_API_HOST/PORT."""
    import uvicorn

    config = uvicorn.Config(
        app,
        host=os.getenv("FLEETEXT_API_HOST", "127.0.0.1"),
        port=int(os.getenv("FLEETEXT_API_PORT", "8105")),
        log_level=os.getenv("FLEETEXT_LOG_LEVEL", "info").lower(),
    )
    uvicorn.Server(config).run()


if __name__ == "__main__":
    main()
