import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from app.core.exceptions import (
    InventoryError,
    InvalidTransitionError,
    PartiallyAppliedError,
    PaymentError,
)
from app.models.booking import BookingStatus
from app.services.booking_service import BookingService
from app.services.inventory_service import InMemoryInventoryService
from app.services.notification_service import LoggingNotificationService
from app.services.payment_service import MockPaymentService

D1 = datetime(2030, 1, 10, 14, 0, tzinfo=timezone.utc)
D2 = datetime(2030, 1, 12, 10, 0, tzinfo=timezone.utc)


def make_mocked_service():
    payment = AsyncMock()
    payment.process_payment.return_value = "pay_1"
    inventory = AsyncMock()
    inventory.check_availability.return_value = True
    return BookingService(payment, inventory, AsyncMock(), timezone="UTC"), payment, inventory


@pytest.mark.asyncio
async def test_concurrent_confirms_charge_once():
    service, payment, inventory = make_mocked_service()

    async def slow_payment(*args):
        await asyncio.sleep(0.01)
        return "pay_1"

    payment.process_payment.side_effect = slow_payment
    booking = await service.create_booking("U1", "I1", D1, D2, 100)

    results = await asyncio.gather(
        service.confirm_booking(booking.id, "card"),
        service.confirm_booking(booking.id, "card"),
        return_exceptions=True,
    )

    confirmed = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(confirmed) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidTransitionError)
    assert payment.process_payment.await_count == 1
    assert inventory.reserve_item.await_count == 1


@pytest.mark.asyncio
async def test_different_bookings_confirm_concurrently():
    service, payment, _ = make_mocked_service()
    first = await service.create_booking("U1", "I1", D1, D2, 100)
    second = await service.create_booking("U2", "I2", D1, D2, 50)

    results = await asyncio.gather(
        service.confirm_booking(first.id, "card"),
        service.confirm_booking(second.id, "card"),
    )

    assert [b.status for b in results] == [BookingStatus.CONFIRMED, BookingStatus.CONFIRMED]
    assert payment.process_payment.await_count == 2


@pytest.mark.asyncio
async def test_failed_reservation_refunds_payment():
    service, payment, inventory = make_mocked_service()
    inventory.reserve_item.side_effect = InventoryError("taken")
    booking = await service.create_booking("U1", "I1", D1, D2, 100)

    with pytest.raises(InventoryError):
        await service.confirm_booking(booking.id, "card")

    payment.refund_payment.assert_awaited_once_with("pay_1")
    stored = service.get_booking(booking.id)
    assert stored.status == BookingStatus.PENDING
    assert stored.payment_id is None


@pytest.mark.asyncio
async def test_failed_refund_after_failed_reservation_is_partially_applied():
    service, payment, inventory = make_mocked_service()
    inventory.reserve_item.side_effect = InventoryError("taken")
    payment.refund_payment.side_effect = PaymentError("gateway down")
    booking = await service.create_booking("U1", "I1", D1, D2, 100)

    with pytest.raises(PartiallyAppliedError) as exc_info:
        await service.confirm_booking(booking.id, "card")

    assert exc_info.value.booking_id == booking.id
    assert exc_info.value.payment_id == "pay_1"
    assert isinstance(exc_info.value.__cause__, PaymentError)
    assert service.get_booking(booking.id).status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_failed_release_after_refund_is_partially_applied():
    service, payment, inventory = make_mocked_service()
    booking = await service.create_booking("U1", "I1", D1, D2, 100)
    await service.confirm_booking(booking.id, "card")
    inventory.release_item.side_effect = InventoryError("nothing reserved")

    with pytest.raises(PartiallyAppliedError) as exc_info:
        await service.cancel_booking(booking.id)

    assert exc_info.value.payment_id == "pay_1"
    payment.refund_payment.assert_awaited_once_with("pay_1")
    assert service.get_booking(booking.id).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_overlapping_pending_bookings_only_one_confirms():
    payments = MockPaymentService()
    inventory = InMemoryInventoryService()
    notifier = LoggingNotificationService()
    service = BookingService(payments, inventory, notifier, timezone="UTC")

    # Availability is only checked on create, so both get through
    first = await service.create_booking("U1", "I1", D1, D2, 100)
    second = await service.create_booking("U2", "I1", D1, D2, 100)
    assert len(service.get_active_bookings_by_item("I1")) == 2

    await service.confirm_booking(first.id, "card")
    with pytest.raises(InventoryError):
        await service.confirm_booking(second.id, "card")

    # The loser's payment was captured then refunded
    assert len(payments.payments) == 2
    assert len(payments.refunded) == 1
    assert service.get_booking(second.id).status == BookingStatus.PENDING
    assert inventory.reservations["I1"] == [(D1, D2)]


@pytest.mark.asyncio
async def test_timed_out_reservation_refunds_payment():
    service, payment, inventory = make_mocked_service()

    async def slow_reservation(*args):
        await asyncio.sleep(1)

    inventory.reserve_item.side_effect = slow_reservation
    booking = await service.create_booking("U1", "I1", D1, D2, 100)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(service.confirm_booking(booking.id, "card"), 0.05)

    payment.process_payment.assert_awaited_once()
    payment.refund_payment.assert_awaited_once_with("pay_1")
    stored = service.get_booking(booking.id)
    assert stored.status == BookingStatus.PENDING
    assert stored.payment_id is None
