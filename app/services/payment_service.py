from decimal import Decimal
from typing import Dict, Iterable, Optional, Set
from uuid import uuid4

from app.core.config import settings
from app.core.exceptions import PaymentError
from app.core.logger import logger


class MockPaymentService:
    """
    In-memory payment gateway. Captures everything except the configured
    declined methods and refunds each captured payment at most once.
    """

    def __init__(self, declined_methods: Optional[Iterable[str]] = None):
        if declined_methods is None:
            declined_methods = settings.DECLINED_PAYMENT_METHODS
        self.declined_methods: Set[str] = set(declined_methods)
        self.payments: Dict[str, Decimal] = {}
        self.refunded: Set[str] = set()

    async def process_payment(self, user_id: str, amount: Decimal, method: str) -> str:
        if amount < 0:
            raise PaymentError(f"Invalid payment amount {amount}")
        if method in self.declined_methods:
            logger.warning(f"💳 Payment declined for user {user_id} (method: {method})")
            raise PaymentError(f"Payment method '{method}' was declined")

        payment_id = f"pay_{uuid4().hex[:12]}"
        self.payments[payment_id] = Decimal(str(amount))
        logger.info(f"💳 Payment {payment_id} captured: {amount} from user {user_id}")
        return payment_id

    async def refund_payment(self, payment_id: str) -> None:
        if payment_id not in self.payments:
            raise PaymentError(f"Unknown payment {payment_id}")
        if payment_id in self.refunded:
            raise PaymentError(f"Payment {payment_id} already refunded")

        self.refunded.add(payment_id)
        logger.info(f"💸 Payment {payment_id} refunded ({self.payments[payment_id]})")
