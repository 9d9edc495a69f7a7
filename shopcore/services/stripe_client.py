# shopcore/services/stripe_client.py
import json
import uuid
from typing import Any, Callable

import stripe

from shopcore.domain.errors import ProcessorError, SignatureInvalid
from shopcore.utils.settings import STRIPE_WEBHOOK_TOLERANCE_SECONDS
from shopcore.utils.logging import get_logger
from shopcore.utils.retry import stripe_retry

logger = get_logger(__name__)


class StripeClient:
    """
    Per-store payment-processor client over the stripe SDK.

    Every call carries an idempotency key generated once per logical call,
    so retries after a dropped connection cannot create duplicates.
    Results come back as plain dicts holding only what the services read.
    """

    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    def create_coupon(self, amount_off: int, currency: str, name: str) -> dict:
        coupon = self._call(
            stripe.Coupon.create,
            "coupon",
            amount_off=amount_off,
            currency=currency.lower(),
            duration="once",
            name=name,
        )
        return {"id": coupon["id"]}

    def create_checkout_session(self, params: dict) -> dict:
        session = self._call(stripe.checkout.Session.create, "checkout session", **params)
        return {"id": session["id"], "url": session["url"]}

    def create_refund(self, payment_intent: str, amount: int | None = None) -> dict:
        params: dict[str, Any] = {"payment_intent": payment_intent}
        if amount is not None:
            params["amount"] = amount

        refund = self._call(stripe.Refund.create, "refund", **params)
        return {"id": refund["id"], "amount": refund["amount"], "status": refund["status"]}

    def _call(self, method: Callable, what: str, **params):
        idempotency_key = str(uuid.uuid4())
        logger.info(f"Stripe create {what} (key {idempotency_key})")
        try:
            return self._send(method, idempotency_key, params)
        except stripe.StripeError as e:
            message = e.user_message or str(e) or type(e).__name__
            logger.warning(f"Stripe create {what} failed: {message}")
            raise ProcessorError(message)

    @stripe_retry()
    def _send(self, method: Callable, idempotency_key: str, params: dict):
        return method(api_key=self.secret_key, idempotency_key=idempotency_key, **params)

    @staticmethod
    def verify_webhook(
        payload: bytes,
        signature_header: str,
        secret: str,
        tolerance: int | None = None,
    ) -> dict:
        """
        Checks a Stripe-Signature header against the endpoint secret and
        returns the event as a plain dict. A tolerance of 0 skips the
        timestamp check.
        """
        tolerance = STRIPE_WEBHOOK_TOLERANCE_SECONDS if tolerance is None else tolerance

        try:
            stripe.Webhook.construct_event(payload, signature_header, secret, tolerance)
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalid(str(e) or "Invalid signature")
        except ValueError:
            raise SignatureInvalid("Signed payload is not valid JSON")

        return json.loads(payload)


def client_for_store(store) -> StripeClient:
    return StripeClient(store.stripe_secret_key)
