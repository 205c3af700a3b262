"""
Use Case: Transition Homologation

Superfície administrativa que avança uma homologação pelo ciclo de vida.
Aplica a tabela de transições, o validador de vínculo documento/pagamento
e grava trilha de auditoria.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable

from src.core.clock import utcnow
from src.core.entities.homologation import AuditEntry, Homologation, HomologationStatus
from src.core.exceptions import HomologationNotFound, ValidationError, VersionConflict
from src.core.interfaces.repositories import IHomologationRepository
from src.core.workflow.transitions import TransitionTable

logger = logging.getLogger(__name__)


def parse_status(value: str | HomologationStatus) -> HomologationStatus:
    if isinstance(value, HomologationStatus):
        return value
    try:
        return HomologationStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in HomologationStatus)
        raise ValidationError(f"Unknown status '{value}'. Expected one of: {allowed}", status=value) from None


class TransitionHomologationUseCase:
    """
    Use Case: move uma homologação para um novo status.

    Dependency Injection: repositório, tabela e relógio vêm pelo construtor.
    """

    def __init__(
        self,
        homologations: IHomologationRepository,
        table: TransitionTable,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._homologations = homologations
        self._table = table
        self._clock = clock

    async def execute(
        self,
        homologation_id: str,
        target_status: str | HomologationStatus,
        expected_version: int,
        actor: str,
        reason: str | None = None,
    ) -> Homologation:
        """
        Executa a transição.

        1. Carrega o registro e compara a versão esperada
        2. Valida a aresta (e o guard de envio, quando target = submitted)
        3. Aplica efeitos colaterais + auditoria numa única escrita condicional

        Raises:
            HomologationNotFound, VersionConflict, InvalidTransition, ValidationError
        """
        target = parse_status(target_status)

        homologation = await self._homologations.get(homologation_id)
        if homologation is None:
            raise HomologationNotFound(homologation_id)

        if homologation.version != expected_version:
            raise VersionConflict(homologation_id, expected_version, homologation.version)

        rule = self._table.check(homologation.status, target, homologation)

        now = self._clock()
        audit = AuditEntry(
            id=str(uuid.uuid4()),
            homologation_id=homologation_id,
            actor=actor,
            previous_status=homologation.status,
            new_status=target,
            reason=reason,
            created_at=now,
        )
        updated = await self._homologations.update(
            homologation_id, expected_version, rule.side_effects(now), audit=audit
        )
        logger.info(
            f"Homologation {homologation_id}: {homologation.status.value} -> {target.value} "
            f"by {actor} (v{updated.version})"
        )
        return updated

    async def allowed_transitions(self, homologation_id: str) -> tuple[Homologation, list[HomologationStatus]]:
        homologation = await self._homologations.get(homologation_id)
        if homologation is None:
            raise HomologationNotFound(homologation_id)
        return homologation, self._table.allowed_targets(homologation.status)

    async def audit_trail(self, homologation_id: str) -> list[AuditEntry]:
        if await self._homologations.get(homologation_id) is None:
            raise HomologationNotFound(homologation_id)
        return await self._homologations.list_audit(homologation_id)
