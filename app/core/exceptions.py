from typing import Optional


class BookingError(Exception):
    """Base class for every failure raised by the booking orchestrator."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInputError(BookingError):
    pass


class ConflictError(BookingError):
    pass


class NotFoundError(BookingError):
    def __init__(self, booking_id: str) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class InvalidTransitionError(BookingError):
    def __init__(self, booking_id: str, current: str, target: str) -> None:
        self.booking_id = booking_id
        self.current = current
        self.target = target
        super().__init__(f"Booking {booking_id} cannot move from {current} to {target}")


class TooEarlyError(BookingError):
    pass


class PartiallyAppliedError(BookingError):
    """
    A collaborator step succeeded, a later one failed and the earlier one
    could not be undone. Needs operator intervention.
    """

    def __init__(self, message: str, booking_id: str, payment_id: Optional[str] = None) -> None:
        self.booking_id = booking_id
        self.payment_id = payment_id
        super().__init__(message)


# --- Collaborator errors (propagated unchanged by the orchestrator) ---

class CollaboratorError(Exception):
    pass


class PaymentError(CollaboratorError):
    pass


class InventoryError(CollaboratorError):
    pass


class NotificationError(CollaboratorError):
    pass
