import asyncio
from collections import defaultdict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PartiallyAppliedError,
    TooEarlyError,
)
from app.core.logger import logger
from app.models.booking import Booking, BookingStatus
from app.services.booking_store import BookingStore, InMemoryBookingStore
from app.services.contracts import InventoryService, NotificationService, PaymentService


class BookingService:
    """
    Booking state machine. Validates each transition against the current
    status, drives the payment and inventory collaborators in a fixed order,
    commits the new status to the store and then notifies (best effort).

    Transitions of one booking are serialized by a per-booking lock, so two
    concurrent confirms cannot both charge the customer.
    """

    def __init__(
        self,
        payment_service: PaymentService,
        inventory_service: InventoryService,
        notification_service: NotificationService,
        store: Optional[BookingStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        timezone: Optional[str] = None,
    ):
        self.payment_service = payment_service
        self.inventory_service = inventory_service
        self.notification_service = notification_service
        self.store = store if store is not None else InMemoryBookingStore()
        self.tz = ZoneInfo(timezone or settings.TIMEZONE)
        self.clock = clock or (lambda: datetime.now(self.tz))
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # --- helpers ---

    def _aware(self, dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.tz)
        return dt

    def _now(self) -> datetime:
        return self._aware(self.clock())

    def _load(self, booking_id: str) -> Booking:
        booking = self.store.get(booking_id)
        if booking is None:
            logger.warning(f"⚠️ Booking {booking_id} not found")
            raise NotFoundError(booking_id)
        return booking

    def _lock_for(self, booking_id: str) -> asyncio.Lock:
        # Only known bookings get a lock
        if booking_id not in self._locks:
            self._load(booking_id)
        return self._locks[booking_id]

    def _check_transition(self, booking: Booking, target: BookingStatus) -> None:
        if not booking.can_transition_to(target):
            logger.warning(f"⚠️ Rejected {booking.status.value} -> {target.value} for booking {booking.id}")
            raise InvalidTransitionError(booking.id, booking.status.value, target.value)

    def _commit(self, booking: Booking, **changes) -> Booking:
        # updated_at never goes backwards, even if the clock does
        updated_at = max(self._now(), booking.updated_at)
        updated = booking.model_copy(update={**changes, "updated_at": updated_at})
        self.store.put(updated)
        logger.info(f"✅ Booking {updated.id}: {booking.status.value} -> {updated.status.value}")
        return updated

    async def _notify(self, send: Callable[[str, str], Awaitable[None]], booking: Booking) -> None:
        try:
            await send(booking.user_id, booking.id)
        except Exception as e:
            logger.error(f"❌ Notification for booking {booking.id} failed: {e}")

    # --- operations ---

    async def create_booking(
        self,
        user_id: str,
        item_id: str,
        start_date: datetime,
        end_date: datetime,
        total_price: Union[Decimal, int, float, str],
    ) -> Booking:
        """
        Create a PENDING booking once the item is available for the range.
        Availability is only checked here; the item is reserved on confirm.
        """
        if not isinstance(start_date, datetime) or not isinstance(end_date, datetime):
            raise InvalidInputError("Start and end date must be datetimes")
        start_date, end_date = self._aware(start_date), self._aware(end_date)
        if start_date >= end_date:
            raise InvalidInputError("Start date must be before end date")

        try:
            price = Decimal(str(total_price))
        except InvalidOperation:
            raise InvalidInputError(f"Invalid total price: {total_price!r}")
        if not price.is_finite() or price < 0:
            raise InvalidInputError(f"Invalid total price: {total_price!r}")

        logger.info(f"📥 Booking request - user: {user_id}, item: {item_id}, {start_date.isoformat()} -> {end_date.isoformat()}")

        is_available = await self.inventory_service.check_availability(item_id, start_date, end_date)
        if not is_available:
            logger.warning(f"⚠️ Item {item_id} not available for {start_date.isoformat()} -> {end_date.isoformat()}")
            raise ConflictError("Item is not available for the selected dates")

        now = self._now()
        booking = Booking(
            user_id=user_id,
            item_id=item_id,
            start_date=start_date,
            end_date=end_date,
            total_price=price,
            status=BookingStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.store.put(booking)
        logger.info(f"🆕 Booking {booking.id} created for user {user_id}")

        await self._notify(self.notification_service.send_booking_created_notification, booking)
        return booking

    async def confirm_booking(self, booking_id: str, payment_method: str) -> Booking:
        """
        Take the payment, reserve the item, then mark the booking CONFIRMED.

        If the reservation fails the captured payment is refunded and the
        reservation error is re-raised; the booking stays PENDING. If that
        refund fails too, PartiallyAppliedError is raised. A cancelled
        reservation is compensated the same way before re-raising.
        """
        async with self._lock_for(booking_id):
            booking = self._load(booking_id)
            self._check_transition(booking, BookingStatus.CONFIRMED)

            payment_id = await self.payment_service.process_payment(
                booking.user_id, booking.total_price, payment_method
            )

            try:
                await self.inventory_service.reserve_item(booking.item_id, booking.start_date, booking.end_date)
            except BaseException as e:
                # Cancellation (e.g. a caller timeout) also leaves a captured payment
                logger.error(f"❌ Reservation for booking {booking_id} failed: {e!r}. Refunding {payment_id}")
                await self._refund_after_failed_reservation(booking, payment_id, e)
                raise

            booking = self._commit(booking, status=BookingStatus.CONFIRMED, payment_id=payment_id)

        await self._notify(self.notification_service.send_booking_confirmed_notification, booking)
        return booking

    async def _refund_after_failed_reservation(self, booking: Booking, payment_id: str, error: BaseException) -> None:
        try:
            await self.payment_service.refund_payment(payment_id)
        except Exception as refund_error:
            logger.critical(f"🔥 Payment {payment_id} for booking {booking.id} captured but not refunded: {refund_error}")
            raise PartiallyAppliedError(
                f"Reservation failed ({error!r}) and payment {payment_id} could not be refunded",
                booking_id=booking.id,
                payment_id=payment_id,
            ) from refund_error
        logger.info(f"↩️ Payment {payment_id} refunded after failed reservation")

    async def cancel_booking(self, booking_id: str) -> Booking:
        """
        Refund the payment if one was taken, release the item if it was
        reserved, then mark the booking CANCELLED. payment_id is kept.
        """
        async with self._lock_for(booking_id):
            booking = self._load(booking_id)
            self._check_transition(booking, BookingStatus.CANCELLED)

            refunded = False
            if booking.payment_id:
                await self.payment_service.refund_payment(booking.payment_id)
                refunded = True

            if booking.status == BookingStatus.CONFIRMED:
                try:
                    await self.inventory_service.release_item(booking.item_id, booking.start_date, booking.end_date)
                except Exception as e:
                    if not refunded:
                        raise
                    logger.critical(f"🔥 Payment {booking.payment_id} refunded but item {booking.item_id} still reserved: {e}")
                    raise PartiallyAppliedError(
                        f"Payment {booking.payment_id} was refunded but the item could not be released ({e})",
                        booking_id=booking.id,
                        payment_id=booking.payment_id,
                    ) from e

            booking = self._commit(booking, status=BookingStatus.CANCELLED)

        await self._notify(self.notification_service.send_booking_cancelled_notification, booking)
        return booking

    async def complete_booking(self, booking_id: str) -> Booking:
        """Mark a CONFIRMED booking COMPLETED once its end date has passed."""
        async with self._lock_for(booking_id):
            booking = self._load(booking_id)
            self._check_transition(booking, BookingStatus.COMPLETED)

            if self._now() < booking.end_date:
                logger.warning(f"⚠️ Booking {booking_id} ends {booking.end_date.isoformat()}, too early to complete")
                raise TooEarlyError("Booking end date has not passed yet")

            booking = self._commit(booking, status=BookingStatus.COMPLETED)

        await self._notify(self.notification_service.send_booking_completed_notification, booking)
        return booking

    # --- queries ---

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.store.get(booking_id)

    def get_bookings_by_user(self, user_id: str) -> List[Booking]:
        return self.store.list_by_user(user_id)

    def get_bookings_by_item(self, item_id: str) -> List[Booking]:
        return self.store.list_by_item(item_id)

    def get_active_bookings_by_item(self, item_id: str) -> List[Booking]:
        return self.store.list_active_by_item(item_id)
