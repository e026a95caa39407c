from typing import List, Tuple

from app.core.logger import logger

MESSAGES = {
    "created": "Rezervace {booking_id} vytvořena, čeká na platbu.",
    "confirmed": "Rezervace {booking_id} potvrzena.",
    "cancelled": "Rezervace {booking_id} byla zrušena.",
    "completed": "Rezervace {booking_id} dokončena. Děkujeme!",
}

class LoggingNotificationService:
    """
    Notification stand-in: renders the message for each lifecycle event and
    writes it to the log instead of delivering it.
    """

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []

    async def _send(self, event: str, user_id: str, booking_id: str) -> None:
        body = MESSAGES[event].format(booking_id=booking_id)
        logger.info(f"📤 [{event}] -> user {user_id}: {body}")
        self.sent.append((event, user_id, booking_id))

    async def send_booking_created_notification(self, user_id: str, booking_id: str) -> None:
        await self._send("created", user_id, booking_id)

    async def send_booking_confirmed_notification(self, user_id: str, booking_id: str) -> None:
        await self._send("confirmed", user_id, booking_id)

    async def send_booking_cancelled_notification(self, user_id: str, booking_id: str) -> None:
        await self._send("cancelled", user_id, booking_id)

    async def send_booking_completed_notification(self, user_id: str, booking_id: str) -> None:
        await self._send("completed", user_id, booking_id)
