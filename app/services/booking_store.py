from typing import Dict, List, Optional, Protocol

from app.models.booking import ACTIVE_STATUSES, Booking


class BookingStore(Protocol):
    """Keyed persistence of booking records."""

    def put(self, booking: Booking) -> None: ...
    def get(self, booking_id: str) -> Optional[Booking]: ...
    def list_by_user(self, user_id: str) -> List[Booking]: ...
    def list_by_item(self, item_id: str) -> List[Booking]: ...
    def list_active_by_item(self, item_id: str) -> List[Booking]: ...


class InMemoryBookingStore:
    """
    Process-local store. Records live for the lifetime of the process and are
    never deleted; cancelled and completed bookings stay queryable.
    """

    def __init__(self):
        self._bookings: Dict[str, Booking] = {}

    def put(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking

    def get(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def list_by_user(self, user_id: str) -> List[Booking]:
        return [b for b in self._bookings.values() if b.user_id == user_id]

    def list_by_item(self, item_id: str) -> List[Booking]:
        return [b for b in self._bookings.values() if b.item_id == item_id]

    def list_active_by_item(self, item_id: str) -> List[Booking]:
        return [
            b for b in self._bookings.values()
            if b.item_id == item_id and b.status in ACTIVE_STATUSES
        ]

    def __len__(self) -> int:
        return len(self._bookings)

    def __contains__(self, booking_id: object) -> bool:
        return booking_id in self._bookings
