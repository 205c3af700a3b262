"""
Typed exception hierarchy for the homologation workflow.

Every error carries a machine-readable ``code``, the HTTP status the API
surfaces it with, and structured ``data`` for the response payload.

    HomologationServiceError
    |
    +-- ValidationError                  400
    +-- Unauthorized                     401
    +-- NotFound                         404
    |   +-- HomologationNotFound
    |   +-- PaymentRecordNotFound
    |   +-- DocumentNotFound
    +-- InvalidTransition                409
    +-- HomologationNotEditable          409
    +-- VersionConflict                  409
    +-- UpstreamUnavailable              503 (retryable)
        +-- GatewayUnavailable
        +-- StorageUnavailable
        +-- DatastoreUnavailable
"""


class HomologationServiceError(Exception):
    """Base class for all workflow errors."""

    code: str = "homologation_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, **data):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, **self.data}


class ValidationError(HomologationServiceError):
    code = "validation_error"
    status_code = 400


class Unauthorized(HomologationServiceError):
    code = "unauthorized"
    status_code = 401


class NotFound(HomologationServiceError):
    code = "not_found"
    status_code = 404


class HomologationNotFound(NotFound):
    code = "homologation_not_found"

    def __init__(self, homologation_id: str):
        super().__init__(
            f"Homologation {homologation_id} not found",
            homologation_id=homologation_id,
        )
        self.homologation_id = homologation_id


class PaymentRecordNotFound(NotFound):
    code = "payment_record_not_found"

    def __init__(self, gateway_payment_id: str):
        super().__init__(
            f"Payment record not found for gateway payment {gateway_payment_id}",
            gateway_payment_id=gateway_payment_id,
        )
        self.gateway_payment_id = gateway_payment_id


class DocumentNotFound(NotFound):
    code = "document_not_found"

    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} not found", document_id=document_id)
        self.document_id = document_id


class InvalidTransition(HomologationServiceError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current_status: str, target_status: str, reason: str | None = None):
        message = f"Cannot move homologation from {current_status} to {target_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            current_status=current_status,
            target_status=target_status,
            reason=reason,
        )
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason


class HomologationNotEditable(HomologationServiceError):
    code = "homologation_not_editable"
    status_code = 409

    def __init__(self, homologation_id: str, status: str):
        super().__init__(
            f"Homologation {homologation_id} is {status}; only drafts can be edited",
            homologation_id=homologation_id,
            status=status,
        )


class VersionConflict(HomologationServiceError):
    code = "version_conflict"
    status_code = 409

    def __init__(self, entity_id: str, expected_version: int, actual_version: int | None = None):
        super().__init__(
            f"Version conflict on {entity_id}: expected {expected_version}, found {actual_version}",
            entity_id=entity_id,
            expected_version=expected_version,
            actual_version=actual_version,
        )
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class UpstreamUnavailable(HomologationServiceError):
    code = "upstream_unavailable"
    status_code = 503
    retryable = True


class GatewayUnavailable(UpstreamUnavailable):
    code = "gateway_unavailable"


class StorageUnavailable(UpstreamUnavailable):
    code = "storage_unavailable"


class DatastoreUnavailable(UpstreamUnavailable):
    code = "datastore_unavailable"
