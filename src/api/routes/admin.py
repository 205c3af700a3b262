"""
Routes: admin review console. List cases, move them through
the lifecycle, inspect allowed transitions and the audit trail.

All routes require the X-API-Key header; X-Admin-User names the actor.
"""

from fastapi import APIRouter, Depends

from src.api.dependencies import Services, require_admin, require_datastore
from src.api.schemas.requests import TransitionRequest
from src.api.schemas.responses import (
    AllowedTransitionsResponse,
    AuditEntryResponse,
    HomologationListResponse,
    HomologationResponse,
)

router = APIRouter(prefix="/admin")


@router.get("/homologations", response_model=HomologationListResponse)
async def list_homologations(
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    actor: str = Depends(require_admin),
    services: Services = Depends(require_datastore),
):
    total, homologations = await services.manage.find(status=status, limit=limit, offset=offset)
    return HomologationListResponse(
        total=total,
        data=[HomologationResponse.from_entity(h) for h in homologations],
    )


@router.post("/homologations/{homologation_id}/transition", response_model=HomologationResponse)
async def transition_homologation(
    homologation_id: str,
    body: TransitionRequest,
    actor: str = Depends(require_admin),
    services: Services = Depends(require_datastore),
):
    """
    Move a homologation to `targetStatus`.

    409 `invalid_transition` when the edge is not allowed (or submission
    prerequisites are missing), 409 `version_conflict` when
    `expectedVersion` is stale; reload and retry.
    """
    homologation = await services.transition.execute(
        homologation_id,
        body.target_status,
        body.expected_version,
        actor=actor,
        reason=body.reason,
    )
    return HomologationResponse.from_entity(homologation)


@router.get("/homologations/{homologation_id}/transitions", response_model=AllowedTransitionsResponse)
async def allowed_transitions(
    homologation_id: str,
    actor: str = Depends(require_admin),
    services: Services = Depends(require_datastore),
):
    homologation, targets = await services.transition.allowed_transitions(homologation_id)
    return AllowedTransitionsResponse(
        id=homologation.id,
        status=homologation.status.value,
        version=homologation.version,
        allowed=[t.value for t in targets],
    )


@router.get("/homologations/{homologation_id}/audit", response_model=list[AuditEntryResponse])
async def audit_trail(
    homologation_id: str,
    actor: str = Depends(require_admin),
    services: Services = Depends(require_datastore),
):
    entries = await services.transition.audit_trail(homologation_id)
    return [AuditEntryResponse.from_entity(e) for e in entries]
