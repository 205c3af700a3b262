"""
Contract: Repositories

Portas do datastore. Toda escrita que muda estado compartilhado
é condicional à versão esperada, sem lock em memória.
"""

from abc import ABC, abstractmethod
from typing import Any

from src.core.entities.document import Document
from src.core.entities.homologation import AuditEntry, Homologation, HomologationStatus
from src.core.entities.payment import Payment


class IHomologationRepository(ABC):
    """
    Port: Homologation Repository

    Dono dos documentos e da trilha de auditoria de cada homologação.
    """

    @abstractmethod
    async def ping(self) -> None:
        """Verifica conectividade com o datastore."""
        ...

    @abstractmethod
    async def add(self, homologation: Homologation) -> Homologation:
        ...

    @abstractmethod
    async def get(self, homologation_id: str) -> Homologation | None:
        ...

    @abstractmethod
    async def find(
        self,
        status: HomologationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[int, list[Homologation]]:
        """Retorna (total, página)."""
        ...

    @abstractmethod
    async def update(
        self,
        homologation_id: str,
        expected_version: int,
        changes: dict[str, Any],
        audit: AuditEntry | None = None,
    ) -> Homologation:
        """
        Atualização condicional.

        Aplica `changes` e incrementa `version` somente se a versão
        armazenada for `expected_version`. A entrada de auditoria, quando
        presente, é gravada na mesma transação.

        Raises:
            HomologationNotFound: registro ausente.
            VersionConflict: versão armazenada diferente da esperada.
        """
        ...

    @abstractmethod
    async def append_document(self, document: Document) -> Homologation:
        """
        Insere o documento e o anexa à lista da homologação, atomicamente.

        Raises:
            HomologationNotFound: registro ausente.
            HomologationNotEditable: homologação fora de rascunho.
        """
        ...

    @abstractmethod
    async def list_documents(self, homologation_id: str) -> list[Document]:
        ...

    @abstractmethod
    async def list_audit(self, homologation_id: str) -> list[AuditEntry]:
        ...


class IPaymentRepository(ABC):
    """Port: Payment Repository"""

    @abstractmethod
    async def add(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    async def get(self, payment_id: str) -> Payment | None:
        ...

    @abstractmethod
    async def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Payment | None:
        ...

    @abstractmethod
    async def get_by_preference_id(self, preference_id: str) -> Payment | None:
        ...

    @abstractmethod
    async def latest_unlinked_for_homologation(self, homologation_id: str) -> Payment | None:
        """Pagamento mais recente da homologação ainda sem id do gateway."""
        ...

    @abstractmethod
    async def list_for_homologation(self, homologation_id: str) -> list[Payment]:
        ...

    @abstractmethod
    async def update(self, payment_id: str, expected_version: int, changes: dict[str, Any]) -> Payment:
        """
        Atualização condicional, como em IHomologationRepository.update.

        Raises:
            NotFound: registro ausente.
            VersionConflict: versão armazenada diferente da esperada.
        """
        ...
