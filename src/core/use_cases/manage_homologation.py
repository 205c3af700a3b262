"""
Use Case: Manage Homologation

Abertura do caso pelo requerente (rascunho), consulta,
listagem administrativa e edição de dados enquanto rascunho.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from src.core.clock import utcnow
from src.core.entities.homologation import (
    EDITABLE_FIELDS,
    Homologation,
    HomologationStatus,
    VehicleType,
)
from src.core.exceptions import (
    HomologationNotEditable,
    HomologationNotFound,
    ValidationError,
    VersionConflict,
)
from src.core.interfaces.repositories import IHomologationRepository

logger = logging.getLogger(__name__)

REQUIRED_ON_CREATE = ("owner_full_name", "owner_national_id")


def _normalize(changes: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(unknown)}", fields=unknown)
    normalized = dict(changes)
    if "vehicle_type" in normalized and normalized["vehicle_type"] is not None:
        try:
            normalized["vehicle_type"] = VehicleType(normalized["vehicle_type"])
        except ValueError:
            raise ValidationError(f"Unknown vehicle type '{normalized['vehicle_type']}'") from None
    return normalized


class ManageHomologationUseCase:

    def __init__(
        self,
        homologations: IHomologationRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._homologations = homologations
        self._clock = clock

    async def create(self, **data) -> Homologation:
        """Abre um caso em rascunho: pagamento pendente, sem documentos, versão 1."""
        fields = _normalize({k: v for k, v in data.items() if v is not None})
        missing = [f for f in REQUIRED_ON_CREATE if not str(fields.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        now = self._clock()
        homologation = Homologation(id=str(uuid.uuid4()), created_at=now, updated_at=now, **fields)
        created = await self._homologations.add(homologation)
        logger.info(f"Created homologation {created.id} ({created.vehicle_type.value})")
        return created

    async def get(self, homologation_id: str) -> Homologation:
        homologation = await self._homologations.get(homologation_id)
        if homologation is None:
            raise HomologationNotFound(homologation_id)
        return homologation

    async def find(
        self,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[int, list[Homologation]]:
        parsed = None
        if status:
            try:
                parsed = HomologationStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'", status=status) from None
        return await self._homologations.find(status=parsed, limit=limit, offset=offset)

    async def update_details(
        self,
        homologation_id: str,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Homologation:
        """Edita dados do dono/veículo. Só em rascunho; versão conferida."""
        if not changes:
            raise ValidationError("No changes supplied")
        normalized = _normalize(changes)

        homologation = await self.get(homologation_id)
        if not homologation.is_editable:
            raise HomologationNotEditable(homologation_id, homologation.status.value)
        if homologation.version != expected_version:
            raise VersionConflict(homologation_id, expected_version, homologation.version)

        return await self._homologations.update(homologation_id, expected_version, normalized)
