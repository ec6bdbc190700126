from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import jsonschema
from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .catalog import CollectionCatalog
from .config import CORS_ALLOW_ORIGINS
from .errors import ErrorClassifier, ErrorKind, ServiceError
from .realtime import Lifecycle, LifecycleEvent, SubscriptionRegistry
from .service import CollectionService, parse_list_options_json
from .transport import RecordClient

log = logging.getLogger("recordkit.api")

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTH: 401,
    ErrorKind.PERMISSION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NETWORK: 503,
    ErrorKind.SERVER: 502,
}


def _http_error(err: ServiceError) -> HTTPException:
    return HTTPException(status_code=STATUS_BY_KIND.get(err.kind, 500), detail=err.to_dict())


def create_app(
    client: RecordClient,
    catalog: Optional[CollectionCatalog] = None,
    lifecycle: Optional[Lifecycle] = None,
) -> FastAPI:
    """
    HTTP front for the collections of a catalog. When no catalog is given one
    is loaded from COLLECTIONS_FILE on startup.
    """
    lifecycle = lifecycle or Lifecycle()
    subscriptions = SubscriptionRegistry(client, lifecycle)
    classifier = ErrorClassifier()
    reg = catalog or CollectionCatalog()

    app = FastAPI(title="recordkit", version="0.1.0")
    app.state.catalog = reg
    app.state.lifecycle = lifecycle
    app.state.subscriptions = subscriptions

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    def service(name: str) -> CollectionService:
        try:
            return reg.service_for(name, client, subscriptions, classifier)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e.args[0]))

    @app.on_event("startup")
    def _startup():
        if catalog is None:
            reg.load()

    @app.on_event("shutdown")
    async def _shutdown():
        await lifecycle.emit(LifecycleEvent.TERMINATE)

    @app.get("/healthz")
    def health():
        return {
            "ok": True,
            "collections": reg.names(),
            "subscriptions": subscriptions.get_subscription_stats()["total"],
        }

    @app.get("/collections")
    def list_collections():
        return {
            "collections": [
                {"name": name, **reg.config_for(name).to_dict()} for name in reg.names()
            ]
        }

    @app.post("/collections/{name}/search")
    async def search(name: str, payload: Dict[str, Any] = Body(default={}, description="ListOptions JSON")):
        svc = service(name)
        try:
            options = parse_list_options_json(payload, validate=True)
        except jsonschema.ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)
        try:
            result = await svc.list(options)
        except ServiceError as err:
            raise _http_error(err)
        return result.to_dict()

    @app.get("/collections/{name}/records/{record_id}")
    async def get_record(name: str, record_id: str, expand: Optional[str] = None):
        svc = service(name)
        try:
            return await svc.get_one(record_id, expand)
        except ServiceError as err:
            raise _http_error(err)

    @app.post("/collections/{name}/records", status_code=201)
    async def create_record(name: str, payload: Dict[str, Any] = Body(..., description="Record JSON")):
        svc = service(name)
        try:
            return await svc.create(payload)
        except ServiceError as err:
            raise _http_error(err)

    @app.patch("/collections/{name}/records/{record_id}")
    async def update_record(name: str, record_id: str, payload: Dict[str, Any] = Body(..., description="Record JSON")):
        svc = service(name)
        try:
            return await svc.update(record_id, payload)
        except ServiceError as err:
            raise _http_error(err)

    @app.delete("/collections/{name}/records/{record_id}")
    async def delete_record(name: str, record_id: str):
        svc = service(name)
        try:
            return {"deleted": await svc.delete(record_id)}
        except ServiceError as err:
            raise _http_error(err)

    return app


__all__ = ["create_app", "STATUS_BY_KIND"]
