"""
Routes: applicant side. Open a case, edit it while draft,
upload documents and request a payment preference.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile

from src.api.dependencies import Services, require_datastore
from src.api.schemas.requests import (
    HomologationCreateRequest,
    HomologationUpdateRequest,
    PreferenceRequestBody,
)
from src.api.schemas.responses import (
    DocumentResponse,
    HomologationResponse,
    PaymentResponse,
    PreferenceResponse,
    UploadResponse,
)

router = APIRouter()


@router.post("/homologations", response_model=HomologationResponse, status_code=201)
async def create_homologation(body: HomologationCreateRequest, services: Services = Depends(require_datastore)):
    """Start the wizard: new case in draft, payment pending, no documents."""
    homologation = await services.manage.create(**body.model_dump())
    return HomologationResponse.from_entity(homologation)


@router.get("/homologations/{homologation_id}", response_model=HomologationResponse)
async def get_homologation(homologation_id: str, services: Services = Depends(require_datastore)):
    return HomologationResponse.from_entity(await services.manage.get(homologation_id))


@router.patch("/homologations/{homologation_id}", response_model=HomologationResponse)
async def update_homologation(
    homologation_id: str,
    body: HomologationUpdateRequest,
    services: Services = Depends(require_datastore),
):
    """Edit owner/vehicle data. Drafts only; `expectedVersion` must match."""
    homologation = await services.manage.update_details(homologation_id, body.expected_version, body.changes())
    return HomologationResponse.from_entity(homologation)


@router.get("/homologations/{homologation_id}/documents", response_model=list[DocumentResponse])
async def list_documents(homologation_id: str, services: Services = Depends(require_datastore)):
    await services.manage.get(homologation_id)
    documents = await services.homologations.list_documents(homologation_id)
    return [DocumentResponse.from_entity(d) for d in documents]


@router.get("/homologations/{homologation_id}/payments", response_model=list[PaymentResponse])
async def list_payments(homologation_id: str, services: Services = Depends(require_datastore)):
    await services.manage.get(homologation_id)
    payments = await services.payments.list_for_homologation(homologation_id)
    return [PaymentResponse.from_entity(p) for p in payments]


@router.post("/documents/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile | None = File(default=None),
    homologationId: str | None = Form(default=None),
    documentType: str | None = Form(default=None),
    documentName: str | None = Form(default=None),
    services: Services = Depends(require_datastore),
):
    """
    Upload one document for a draft homologation.

    Multipart fields: file, homologationId, documentType, documentName.
    """
    data = await file.read() if file is not None else None
    result = await services.upload.execute(
        homologation_id=homologationId,
        document_type=documentType,
        document_name=documentName,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        data=data,
    )
    return UploadResponse(document=DocumentResponse.from_entity(result.document), url=result.url)


@router.post("/payments/preference", response_model=PreferenceResponse)
async def create_payment_preference(body: PreferenceRequestBody, services: Services = Depends(require_datastore)):
    created = await services.preferences.execute(
        homologation_id=body.homologation_id,
        amount=body.amount,
        description=body.description,
    )
    return PreferenceResponse(preference_id=created.preference_id, init_point=created.init_point)
