"""
Tests: intake, document upload and payment preference.
"""

import re
from decimal import Decimal

import pytest

from src.core.entities.document import DocType
from src.core.entities.homologation import HomologationPaymentStatus, HomologationStatus, VehicleType
from src.core.entities.payment import PaymentStatus
from src.core.exceptions import (
    GatewayUnavailable,
    HomologationNotEditable,
    HomologationNotFound,
    StorageUnavailable,
    ValidationError,
    VersionConflict,
)
from src.core.use_cases.create_payment_preference import CreatePaymentPreferenceUseCase
from src.core.use_cases.manage_homologation import ManageHomologationUseCase
from src.core.use_cases.upload_document import UploadDocumentUseCase
from tests.fakes import make_homologation


@pytest.fixture
def manage(homologations, clock):
    return ManageHomologationUseCase(homologations, clock=clock)


@pytest.fixture
def upload(homologations, storage, clock):
    return UploadDocumentUseCase(homologations, storage, max_upload_bytes=1024, clock=clock)


@pytest.fixture
def preferences(homologations, payments, gateway):
    return CreatePaymentPreferenceUseCase(
        homologations=homologations,
        payments=payments,
        gateway=gateway,
        site_url="https://homologar.test/",
        notification_url="https://api.homologar.test/api/v1/webhooks/mercadopago",
    )


def upload_args(**overrides):
    args = dict(
        homologation_id="h-1",
        document_type="vehicle_title",
        document_name="Título del tráiler",
        filename="titulo.PDF",
        content_type="application/pdf",
        data=b"%PDF-1.4",
    )
    args.update(overrides)
    return args


class TestManageHomologation:

    @pytest.mark.asyncio
    async def test_create_starts_as_draft(self, manage, homologations):
        h = await manage.create(
            owner_full_name="Lucía Fernández",
            owner_national_id="30111222",
            vehicle_type="motorhome",
            brand="Acme",
        )

        assert h.status == HomologationStatus.DRAFT
        assert h.payment_status == HomologationPaymentStatus.PENDING
        assert h.documents == []
        assert h.version == 1
        assert h.vehicle_type == VehicleType.MOTORHOME
        assert h.id in homologations.rows

    @pytest.mark.asyncio
    async def test_create_requires_owner(self, manage):
        with pytest.raises(ValidationError) as exc_info:
            await manage.create(owner_full_name="  ", owner_national_id="30111222")
        assert exc_info.value.data["fields"] == ["owner_full_name"]

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_vehicle_type(self, manage):
        with pytest.raises(ValidationError):
            await manage.create(owner_full_name="A", owner_national_id="1", vehicle_type="bicycle")

    @pytest.mark.asyncio
    async def test_update_details_bumps_version(self, manage, homologations):
        await homologations.add(make_homologation())

        updated = await manage.update_details("h-1", 1, {"brand": "Baxter", "axles": 2})

        assert updated.brand == "Baxter"
        assert updated.axles == 2
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_update_details_only_in_draft(self, manage, homologations):
        await homologations.add(make_homologation(status=HomologationStatus.SUBMITTED, paid=True))
        with pytest.raises(HomologationNotEditable):
            await manage.update_details("h-1", 1, {"brand": "Baxter"})

    @pytest.mark.asyncio
    async def test_update_details_stale_version(self, manage, homologations):
        await homologations.add(make_homologation(version=5))
        with pytest.raises(VersionConflict):
            await manage.update_details("h-1", 4, {"brand": "Baxter"})

    @pytest.mark.asyncio
    async def test_update_details_rejects_workflow_fields(self, manage, homologations):
        await homologations.add(make_homologation())
        with pytest.raises(ValidationError):
            await manage.update_details("h-1", 1, {"status": "approved"})

    @pytest.mark.asyncio
    async def test_find_filters_by_status(self, manage, homologations):
        await homologations.add(make_homologation("h-1"))
        await homologations.add(make_homologation("h-2", status=HomologationStatus.SUBMITTED, paid=True))

        total, rows = await manage.find(status="submitted")

        assert total == 1
        assert [h.id for h in rows] == ["h-2"]
        with pytest.raises(ValidationError):
            await manage.find(status="archived")


class TestUploadDocument:

    @pytest.mark.asyncio
    async def test_upload_appends_document(self, upload, homologations, storage):
        await homologations.add(make_homologation())

        result = await upload.execute(**upload_args())

        assert result.document.doc_type == DocType.VEHICLE_TITLE
        assert re.fullmatch(r"h-1/vehicle_title_\d+\.pdf", result.document.storage_key)
        assert result.document.storage_key in storage.objects
        assert result.url == result.document.file_url
        assert result.homologation.documents == ["doc-1", result.document.id]
        assert result.homologation.version == 2

    @pytest.mark.asyncio
    async def test_vehicle_photo_is_a_document(self, upload, homologations):
        await homologations.add(make_homologation())
        result = await upload.execute(
            **upload_args(document_type="photo", filename="lateral.jpg", content_type="image/jpeg")
        )
        assert result.document.doc_type == DocType.PHOTO
        assert re.fullmatch(r"h-1/photo_\d+\.jpg", result.document.storage_key)
        assert result.document.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_missing_extension_defaults_to_bin(self, upload, homologations):
        await homologations.add(make_homologation())
        result = await upload.execute(**upload_args(filename="scan"))
        assert result.document.storage_key.endswith(".bin")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"homologation_id": None},
            {"document_type": ""},
            {"document_name": None},
            {"data": None},
        ],
    )
    async def test_missing_fields(self, upload, overrides):
        with pytest.raises(ValidationError) as exc_info:
            await upload.execute(**upload_args(**overrides))
        assert exc_info.value.message.startswith("Missing required parameters")

    @pytest.mark.asyncio
    async def test_rejects_empty_oversized_and_unknown_type(self, upload, homologations):
        await homologations.add(make_homologation())
        with pytest.raises(ValidationError):
            await upload.execute(**upload_args(data=b""))
        with pytest.raises(ValidationError):
            await upload.execute(**upload_args(data=b"x" * 2048))
        with pytest.raises(ValidationError):
            await upload.execute(**upload_args(document_type="selfie"))

    @pytest.mark.asyncio
    async def test_unknown_homologation(self, upload):
        with pytest.raises(HomologationNotFound):
            await upload.execute(**upload_args())

    @pytest.mark.asyncio
    async def test_submitted_homologation_is_not_editable(self, upload, homologations, storage):
        await homologations.add(make_homologation(status=HomologationStatus.SUBMITTED, paid=True))
        with pytest.raises(HomologationNotEditable):
            await upload.execute(**upload_args())
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_storage_failure_creates_no_document(self, upload, homologations, storage):
        await homologations.add(make_homologation())
        storage.error = StorageUnavailable("bucket offline")

        with pytest.raises(StorageUnavailable):
            await upload.execute(**upload_args())

        assert homologations.rows["h-1"].documents == ["doc-1"]
        assert homologations.rows["h-1"].version == 1


class TestCreatePaymentPreference:

    @pytest.mark.asyncio
    async def test_creates_pending_payment(self, preferences, homologations, payments, gateway):
        await homologations.add(make_homologation())

        created = await preferences.execute("h-1", "15000.50")

        assert created.preference_id == "pref-1"
        assert created.init_point.startswith("https://mp.test/checkout")
        assert created.payment.status == PaymentStatus.PENDING
        assert created.payment.amount == Decimal("15000.50")
        assert payments.rows[created.payment.id].preference_id == "pref-1"

        [request] = gateway.preferences
        assert request.external_reference == "h-1"
        assert request.items[0].title == "Homologación h-1"
        assert request.back_urls["success"] == "https://homologar.test/homologar/h-1/payment/success"
        assert request.notification_url.endswith("/webhooks/mercadopago")

    @pytest.mark.asyncio
    async def test_description_overrides_title(self, preferences, homologations, gateway):
        await homologations.add(make_homologation())
        await preferences.execute("h-1", 100, description="Tasa de homologación")
        assert gateway.preferences[0].items[0].title == "Tasa de homologación"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [None, "", "abc", 0, "-5"])
    async def test_invalid_amount(self, preferences, homologations, amount):
        await homologations.add(make_homologation())
        with pytest.raises(ValidationError):
            await preferences.execute("h-1", amount)

    @pytest.mark.asyncio
    async def test_unknown_homologation(self, preferences):
        with pytest.raises(HomologationNotFound):
            await preferences.execute("missing", 100)

    @pytest.mark.asyncio
    async def test_already_paid(self, preferences, homologations):
        await homologations.add(make_homologation(paid=True))
        with pytest.raises(ValidationError):
            await preferences.execute("h-1", 100)

    @pytest.mark.asyncio
    async def test_gateway_failure_records_nothing(self, preferences, homologations, payments, gateway):
        await homologations.add(make_homologation())
        gateway.error = GatewayUnavailable("MercadoPago returned 502")

        with pytest.raises(GatewayUnavailable):
            await preferences.execute("h-1", 100)

        assert payments.rows == {}
