import asyncio
from datetime import datetime, timedelta

from app.core.config import Settings, settings as default_settings
from app.core.logger import setup_logging, logger
from app.services.booking_service import BookingService
from app.services.booking_store import InMemoryBookingStore
from app.services.inventory_service import InMemoryInventoryService
from app.services.notification_service import LoggingNotificationService
from app.services.payment_service import MockPaymentService

def create_booking_service(settings: Settings = None) -> BookingService:
    """
    Wire the orchestrator with the in-memory collaborators.
    """
    settings = settings or default_settings
    return BookingService(
        payment_service=MockPaymentService(settings.DECLINED_PAYMENT_METHODS),
        inventory_service=InMemoryInventoryService(),
        notification_service=LoggingNotificationService(),
        store=InMemoryBookingStore(),
        timezone=settings.TIMEZONE,
    )

async def run_demo(service: BookingService = None) -> BookingService:
    service = service or create_booking_service()
    now = datetime.now(service.tz)

    # 1. Future stay: create -> confirm -> cancel
    logger.info("🚀 Demo 1: create -> confirm -> cancel")
    booking = await service.create_booking("user-1", "cabin-7", now + timedelta(days=7), now + timedelta(days=9), 250)
    booking = await service.confirm_booking(booking.id, "card")
    booking = await service.cancel_booking(booking.id)
    logger.info(f"🏁 Booking {booking.id} ended as {booking.status.value} (payment {booking.payment_id})")

    # 2. Past stay: create -> confirm -> complete
    logger.info("🚀 Demo 2: create -> confirm -> complete")
    booking = await service.create_booking("user-2", "kayak-3", now - timedelta(days=3), now - timedelta(days=1), 80)
    booking = await service.confirm_booking(booking.id, "card")
    booking = await service.complete_booking(booking.id)
    logger.info(f"🏁 Booking {booking.id} ended as {booking.status.value}")

    return service

if __name__ == "__main__":
    setup_logging()
    logger.info(f"🚀 Starting {default_settings.PROJECT_NAME} ({default_settings.ENVIRONMENT})")
    asyncio.run(run_demo())
    logger.info("🛑 Demo finished")
