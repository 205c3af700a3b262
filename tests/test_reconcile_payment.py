"""
Tests: payment webhook reconciliation.
"""

import logging
from copy import deepcopy

import pytest
import pytest_asyncio

from src.core.entities.homologation import HomologationPaymentStatus, HomologationStatus
from src.core.entities.payment import PaymentStatus
from src.core.exceptions import GatewayUnavailable, PaymentRecordNotFound, ValidationError
from src.core.use_cases.reconcile_payment import (
    WEBHOOK_ACTOR,
    GatewayNotification,
    ReconcilePaymentUseCase,
    map_gateway_status,
)
from tests.fakes import NOW, make_homologation, make_payment


def payment_notification(payment_id="mp-1") -> GatewayNotification:
    return GatewayNotification(type="payment", payment_id=payment_id)


@pytest.fixture
def use_case(gateway, payments, homologations, table, clock):
    return ReconcilePaymentUseCase(
        gateway=gateway,
        payments=payments,
        homologations=homologations,
        table=table,
        sync_attempts=3,
        clock=clock,
    )


@pytest_asyncio.fixture
async def seeded(homologations, payments):
    await homologations.add(make_homologation(paid=False))
    await payments.add(make_payment())


class TestGatewayNotification:

    def test_json_body(self):
        n = GatewayNotification.from_payload({"type": "payment", "data": {"id": 123}})
        assert n.type == "payment"
        assert n.payment_id == "123"

    def test_query_string_variants(self):
        assert GatewayNotification.from_payload({}, {"type": "payment", "data.id": "9"}).payment_id == "9"
        n = GatewayNotification.from_payload(None, {"topic": "payment", "id": "7"})
        assert (n.type, n.payment_id) == ("payment", "7")

    def test_missing_id(self):
        assert GatewayNotification.from_payload({"type": "payment"}).payment_id is None


class TestStatusMapping:

    @pytest.mark.parametrize(
        "gateway_status,expected",
        [
            ("approved", PaymentStatus.APPROVED),
            ("authorized", PaymentStatus.APPROVED),
            ("pending", PaymentStatus.PENDING),
            ("in_process", PaymentStatus.PENDING),
            ("rejected", PaymentStatus.REJECTED),
            ("cancelled", PaymentStatus.REJECTED),
            ("refunded", PaymentStatus.REFUNDED),
            ("charged_back", PaymentStatus.REFUNDED),
        ],
    )
    def test_known_statuses(self, gateway_status, expected):
        assert map_gateway_status(gateway_status) == expected

    def test_unknown_status_is_pending_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert map_gateway_status("in_mediation") == PaymentStatus.PENDING
        assert "in_mediation" in caplog.text


class TestReconcilePayment:

    @pytest.mark.asyncio
    async def test_non_payment_notification_is_ignored(self, use_case, gateway):
        result = await use_case.execute(GatewayNotification(type="merchant_order", payment_id="1"))
        assert result.received and result.ignored
        assert gateway.get_calls == 0

    @pytest.mark.asyncio
    async def test_payment_notification_without_id(self, use_case):
        with pytest.raises(ValidationError):
            await use_case.execute(GatewayNotification(type="payment"))

    @pytest.mark.asyncio
    async def test_approved_links_payment_and_submits_homologation(
        self, use_case, gateway, payments, homologations, seeded
    ):
        gateway.set_payment("mp-1", "approved", external_reference="h-1")

        result = await use_case.execute(payment_notification())

        payment = payments.rows["p-1"]
        assert payment.status == PaymentStatus.APPROVED
        assert payment.gateway_payment_id == "mp-1"
        assert result.payment_changed and not result.stale

        h = homologations.rows["h-1"]
        assert h.payment_status == HomologationPaymentStatus.PAID
        assert h.status == HomologationStatus.SUBMITTED
        assert h.submission_date == NOW
        assert result.homologation_synced
        assert result.homologation_status == HomologationStatus.SUBMITTED

        [entry] = homologations.audit
        assert entry.actor == WEBHOOK_ACTOR
        assert entry.new_status == HomologationStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_locates_by_preference_id(self, use_case, gateway, payments, seeded):
        gateway.set_payment("mp-1", "pending", preference_id="pref-1")

        result = await use_case.execute(payment_notification())

        assert result.payment_id == "p-1"
        assert payments.rows["p-1"].gateway_payment_id == "mp-1"

    @pytest.mark.asyncio
    async def test_redelivery_is_idempotent(self, use_case, gateway, payments, homologations, seeded):
        gateway.set_payment("mp-1", "approved", external_reference="h-1")
        await use_case.execute(payment_notification())
        payment_after_first = deepcopy(payments.rows["p-1"])
        homologation_after_first = deepcopy(homologations.rows["h-1"])
        updates = homologations.update_calls

        result = await use_case.execute(payment_notification())

        assert not result.payment_changed
        assert not result.homologation_synced
        assert payments.rows["p-1"] == payment_after_first
        assert homologations.rows["h-1"] == homologation_after_first
        assert homologations.update_calls == updates
        assert len(homologations.audit) == 1

    @pytest.mark.asyncio
    async def test_late_pending_does_not_downgrade_approved(self, use_case, gateway, payments, seeded):
        gateway.set_payment("mp-1", "approved", external_reference="h-1")
        await use_case.execute(payment_notification())

        gateway.set_payment("mp-1", "pending", external_reference="h-1")
        result = await use_case.execute(payment_notification())

        assert result.stale
        assert not result.payment_changed
        assert payments.rows["p-1"].status == PaymentStatus.APPROVED

    @pytest.mark.asyncio
    async def test_refund_after_approval(self, use_case, gateway, payments, homologations, seeded):
        gateway.set_payment("mp-1", "approved", external_reference="h-1")
        await use_case.execute(payment_notification())
        homologation_before = deepcopy(homologations.rows["h-1"])

        gateway.set_payment("mp-1", "refunded", external_reference="h-1")
        result = await use_case.execute(payment_notification())

        assert result.payment_status == PaymentStatus.REFUNDED
        assert payments.rows["p-1"].status == PaymentStatus.REFUNDED
        assert homologations.rows["h-1"] == homologation_before

    @pytest.mark.asyncio
    async def test_rejected_payment_leaves_homologation(self, use_case, gateway, payments, homologations, seeded):
        gateway.set_payment("mp-1", "rejected", external_reference="h-1")

        result = await use_case.execute(payment_notification())

        assert payments.rows["p-1"].status == PaymentStatus.REJECTED
        assert result.homologation_status is None
        assert homologations.rows["h-1"].payment_status == HomologationPaymentStatus.PENDING
        assert homologations.update_calls == 0

    @pytest.mark.asyncio
    async def test_unknown_payment_mutates_nothing(self, use_case, gateway, payments, homologations, seeded):
        gateway.set_payment("mp-404", "approved")
        payments_before = deepcopy(payments.rows)
        homologations_before = deepcopy(homologations.rows)

        with pytest.raises(PaymentRecordNotFound) as exc_info:
            await use_case.execute(payment_notification("mp-404"))

        assert exc_info.value.status_code == 404
        assert payments.rows == payments_before
        assert homologations.rows == homologations_before

    @pytest.mark.asyncio
    async def test_gateway_unavailable_propagates(self, use_case, gateway, payments, seeded):
        gateway.error = GatewayUnavailable("MercadoPago timed out")

        with pytest.raises(GatewayUnavailable) as exc_info:
            await use_case.execute(payment_notification())

        assert exc_info.value.retryable
        assert payments.rows["p-1"].status == PaymentStatus.PENDING
        assert payments.update_calls == 0

    @pytest.mark.asyncio
    async def test_paid_without_documents_stays_draft(self, use_case, gateway, homologations, payments, caplog):
        await homologations.add(make_homologation(documents=()))
        await payments.add(make_payment())
        gateway.set_payment("mp-1", "approved", external_reference="h-1")

        with caplog.at_level(logging.WARNING):
            result = await use_case.execute(payment_notification())

        h = homologations.rows["h-1"]
        assert h.payment_status == HomologationPaymentStatus.PAID
        assert h.status == HomologationStatus.DRAFT
        assert result.homologation_status == HomologationStatus.DRAFT
        assert homologations.audit == []
        assert "at least one document" in caplog.text

    @pytest.mark.asyncio
    async def test_homologation_sync_failure_keeps_payment_and_heals_on_redelivery(
        self, use_case, gateway, payments, homologations, seeded
    ):
        gateway.set_payment("mp-1", "approved", external_reference="h-1")
        homologations.fail_updates = RuntimeError("connection reset")

        result = await use_case.execute(payment_notification())

        assert payments.rows["p-1"].status == PaymentStatus.APPROVED
        assert not result.homologation_synced
        assert homologations.rows["h-1"].status == HomologationStatus.DRAFT

        homologations.fail_updates = None
        result = await use_case.execute(payment_notification())

        assert not result.payment_changed
        assert result.homologation_synced
        assert homologations.rows["h-1"].status == HomologationStatus.SUBMITTED
        assert homologations.rows["h-1"].payment_status == HomologationPaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_homologation_sync_retries_on_version_conflict(
        self, use_case, gateway, homologations, seeded
    ):
        gateway.set_payment("mp-1", "approved", external_reference="h-1")
        homologations.conflicts_remaining = 1

        result = await use_case.execute(payment_notification())

        assert result.homologation_synced
        assert homologations.rows["h-1"].status == HomologationStatus.SUBMITTED
        assert homologations.update_calls == 2

    @pytest.mark.asyncio
    async def test_retry_after_rejected_attempt_records_new_payment(
        self, use_case, gateway, payments, homologations, seeded
    ):
        gateway.set_payment("mp-1", "rejected", external_reference="h-1", preference_id="pref-1")
        await use_case.execute(payment_notification("mp-1"))

        gateway.set_payment("mp-2", "approved", external_reference="h-1", preference_id="pref-1")
        result = await use_case.execute(payment_notification("mp-2"))

        assert len(payments.rows) == 2
        assert payments.rows["p-1"].status == PaymentStatus.REJECTED
        assert payments.rows["p-1"].gateway_payment_id == "mp-1"

        retry = payments.rows[result.payment_id]
        assert result.payment_id != "p-1"
        assert retry.status == PaymentStatus.APPROVED
        assert retry.gateway_payment_id == "mp-2"
        assert retry.preference_id == "pref-1"
        assert retry.amount == payments.rows["p-1"].amount

        h = homologations.rows["h-1"]
        assert h.payment_status == HomologationPaymentStatus.PAID
        assert h.status == HomologationStatus.SUBMITTED

        # re-delivery finds the new attempt by its gateway id
        again = await use_case.execute(payment_notification("mp-2"))
        assert again.payment_id == result.payment_id
        assert not again.payment_changed
        assert len(payments.rows) == 2

    @pytest.mark.asyncio
    async def test_retry_found_by_external_reference_only(self, use_case, gateway, payments, seeded):
        gateway.set_payment("mp-1", "rejected", external_reference="h-1")
        await use_case.execute(payment_notification("mp-1"))

        gateway.set_payment("mp-2", "pending", external_reference="h-1")
        result = await use_case.execute(payment_notification("mp-2"))

        assert result.payment_id != "p-1"
        assert payments.rows[result.payment_id].status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_second_payment_on_approved_checkout_is_not_recorded(
        self, use_case, gateway, payments, seeded
    ):
        gateway.set_payment("mp-1", "approved", external_reference="h-1", preference_id="pref-1")
        await use_case.execute(payment_notification("mp-1"))

        gateway.set_payment("mp-2", "approved", external_reference="h-1", preference_id="pref-1")
        with pytest.raises(PaymentRecordNotFound):
            await use_case.execute(payment_notification("mp-2"))
        assert len(payments.rows) == 1

    @pytest.mark.asyncio
    async def test_paid_without_owner_contact_stays_draft(self, use_case, gateway, homologations, payments):
        await homologations.add(make_homologation(owner_email=""))
        await payments.add(make_payment())
        gateway.set_payment("mp-1", "approved", external_reference="h-1")

        result = await use_case.execute(payment_notification())

        assert result.homologation_synced
        assert result.homologation_status == HomologationStatus.DRAFT
        assert homologations.rows["h-1"].payment_status == HomologationPaymentStatus.PAID
        assert homologations.audit == []
