"""HMAC signatures for outbound webhook payloads."""

import hashlib
import hmac
import secrets

SIGNATURE_ALGORITHM = "sha256"
SIGNATURE_PREFIX = f"{SIGNATURE_ALGORITHM}="


class SignatureCodec:
    """Signs and verifies payload bytes with a per-endpoint secret.

    The signature always covers the exact bytes sent on the wire. Signing a
    re-serialized copy of the payload would make receivers reject requests
    that differ only in whitespace or key order.
    """

    @staticmethod
    def generate_secret() -> str:
        """Generate a new endpoint secret (32 random bytes, hex encoded)."""
        return secrets.token_hex(32)

    @staticmethod
    def sign(payload: bytes, secret: str) -> str:
        """Compute the signature header value for *payload*.

        Args:
            payload: Serialized request body
            secret: Endpoint secret

        Returns:
            Signature in the form ``sha256=<hex digest>``
        """
        digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
        return f"{SIGNATURE_PREFIX}{digest}"

    @classmethod
    def verify(cls, payload: bytes, signature: str, secret: str) -> bool:
        """Check a signature in constant time.

        Args:
            payload: Raw request body as received
            signature: Value of the signature header
            secret: Endpoint secret

        Returns:
            True if the signature matches
        """
        if not signature or not signature.startswith(SIGNATURE_PREFIX):
            return False
        expected = cls.sign(payload, secret)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
