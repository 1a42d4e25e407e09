import logging

from services.domain import PAYMENT_COMPLETED, PAYMENT_REFUNDED
from services.errors import PaymentError

logger = logging.getLogger(__name__)


class StubPaymentGateway:
    """
    Stand-in for a real gateway: every charge is accepted unless the stub
    is configured to decline.
    """

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.charges = []
        self.refunds = []

    def charge(self, amount: int, payer) -> str:
        if amount < 0:
            raise PaymentError("Charge amount must not be negative")
        if not self.succeed:
            logger.info("Stub payment declined: amount=%s payer=%s", amount, getattr(payer, "user_id", payer))
            raise PaymentError("Payment declined")

        self.charges.append((amount, getattr(payer, "user_id", None)))
        logger.debug("Stub payment accepted: amount=%s", amount)
        return PAYMENT_COMPLETED

    def refund(self, amount: int, payer) -> str:
        self.refunds.append((amount, getattr(payer, "user_id", None)))
        logger.info("Stub refund issued: amount=%s payer=%s", amount, getattr(payer, "user_id", payer))
        return PAYMENT_REFUNDED
