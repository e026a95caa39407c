"""
Contracts of the external capabilities the booking orchestrator consumes.
Real gateway, calendar and delivery integrations implement these; the
in-memory stand-ins in this package are for development and tests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol


class PaymentService(Protocol):
    async def process_payment(self, user_id: str, amount: Decimal, method: str) -> str:
        """Capture a payment and return its id. Raises on decline or gateway failure."""
        ...

    async def refund_payment(self, payment_id: str) -> None:
        """Raises if the payment is unknown, already refunded or the gateway fails."""
        ...


class InventoryService(Protocol):
    async def check_availability(self, item_id: str, start_date: datetime, end_date: datetime) -> bool: ...

    async def reserve_item(self, item_id: str, start_date: datetime, end_date: datetime) -> None:
        """Raises if the range is no longer available."""
        ...

    async def release_item(self, item_id: str, start_date: datetime, end_date: datetime) -> None:
        """Raises if nothing was reserved for the range."""
        ...


class NotificationService(Protocol):
    async def send_booking_created_notification(self, user_id: str, booking_id: str) -> None: ...
    async def send_booking_confirmed_notification(self, user_id: str, booking_id: str) -> None: ...
    async def send_booking_cancelled_notification(self, user_id: str, booking_id: str) -> None: ...
    async def send_booking_completed_notification(self, user_id: str, booking_id: str) -> None: ...
