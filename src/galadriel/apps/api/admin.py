# src/galadriel/apps/api/admin.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from galadriel.services.errors import HarvesterError
from galadriel.services.hub import ConsentStatus, HubClient

__all__ = ["create_admin_app", "router"]

_log = logging.getLogger("galadriel.admin_api")

router = APIRouter(tags=["relationships"])


class PatchRelationshipRequest(BaseModel):
    consent_status: ConsentStatus


def _get_hub(request: Request) -> HubClient:
    return request.app.state.hub


def _hub_failure(exc: HarvesterError) -> HTTPException:
    _log.error("hub call failed", extra={"error": str(exc)})
    return HTTPException(status_code=502, detail=str(exc))


@router.get("/relationships")
def list_relationships(
    consent_status: Optional[ConsentStatus] = Query(None, alias="consentStatus"),
    hub: HubClient = Depends(_get_hub),
) -> list[dict[str, Any]]:
    try:
        relationships = hub.get_relationships(consent_status)
    except HarvesterError as exc:
        raise _hub_failure(exc) from exc
    return [rel.to_json() for rel in relationships]


@router.patch("/relationships/{relationshipID}")
def patch_relationship(
    relationshipID: uuid.UUID,
    body: PatchRelationshipRequest,
    hub: HubClient = Depends(_get_hub),
) -> dict[str, Any]:
    try:
        relationship = hub.update_relationship(relationshipID, body.consent_status)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except HarvesterError as exc:
        raise _hub_failure(exc) from exc
    return relationship.to_json()


def create_admin_app(hub: HubClient) -> FastAPI:
    """Local administrative API, served on the harvester's UNIX socket."""

    app = FastAPI(title="Galadriel Harvester admin API")
    app.state.hub = hub
    app.include_router(router)
    return app
