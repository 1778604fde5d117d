from __future__ import annotations

import hashlib
import hmac


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature(payment_id: str, subscription_id: str, secret: str) -> str:
    # Razorpay checkout signs "<payment_id>|<subscription_id>" with the key secret.
    return hmac_sha256_hex(secret, f"{payment_id}|{subscription_id}".encode("utf-8"))


def verify_payment_signature(payment_id: str, subscription_id: str, signature: str, secret: str) -> bool:
    if not (payment_id and subscription_id and signature and secret):
        return False
    expected = payment_signature(payment_id, subscription_id, secret)
    return hmac.compare_digest(expected, signature.strip())


def verify_webhook_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    """HMAC-SHA256 over the exact bytes received; re-serialised JSON will not match."""
    if not (signature and secret):
        return False
    expected = hmac_sha256_hex(secret, raw_body or b"")
    return hmac.compare_digest(expected, signature.strip())
