"""HMAC-SHA256 signatures used by the payment provider.

Client confirmations are signed over ``"<gateway_order_id>|<gateway_payment_id>"``
with the key secret; webhooks are signed over the raw request body with the
webhook secret. Both are lowercase hex digests.
"""

import hashlib
import hmac


def sign(secret: str, message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    return sign(secret, f"{gateway_order_id}|{gateway_payment_id}")


def matches(expected: str, provided: str | None) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.strip().encode("utf-8"))
