from decimal import Decimal
from enum import Enum
from typing import Optional
from datetime import datetime
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field

class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED" # reserved, no operation produces it

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
    BookingStatus.REFUNDED: set(),
}

ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

class Booking(BaseModel):
    # Transitions go through model_copy(update=...) in BookingService
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    item_id: str
    start_date: datetime
    end_date: datetime
    total_price: Decimal = Field(ge=0)
    status: BookingStatus = BookingStatus.PENDING
    payment_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def can_transition_to(self, status: BookingStatus) -> bool:
        return status in BOOKING_TRANSITIONS.get(self.status, set())
