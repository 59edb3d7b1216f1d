"""Tests for payload signing."""

import hashlib
import hmac

from shop_webhooks.webhooks.signature import SignatureCodec


def test_sign_format() -> None:
    signature = SignatureCodec.sign(b'{"order_id":1}', "secret")

    expected = hmac.new(b"secret", b'{"order_id":1}', hashlib.sha256).hexdigest()
    assert signature == f"sha256={expected}"


def test_verify_round_trip() -> None:
    body = '{"order_id":"ord_1","total":"19.99","note":"café"}'.encode("utf-8")
    signature = SignatureCodec.sign(body, "s3cret")

    assert SignatureCodec.verify(body, signature, "s3cret") is True


def test_verify_rejects_single_byte_tamper() -> None:
    body = b'{"order_id":"ord_1","total":"19.99"}'
    signature = SignatureCodec.sign(body, "s3cret")

    for index in range(len(body)):
        tampered = bytearray(body)
        tampered[index] ^= 0x01
        assert SignatureCodec.verify(bytes(tampered), signature, "s3cret") is False


def test_verify_rejects_wrong_secret() -> None:
    body = b"payload"
    assert SignatureCodec.verify(body, SignatureCodec.sign(body, "a"), "b") is False


def test_verify_malformed_signature() -> None:
    """Malformed headers are a mismatch, not an error."""
    body = b"payload"
    digest = SignatureCodec.sign(body, "s").removeprefix("sha256=")

    assert SignatureCodec.verify(body, "", "s") is False
    assert SignatureCodec.verify(body, digest, "s") is False
    assert SignatureCodec.verify(body, "md5=abc", "s") is False
    assert SignatureCodec.verify(body, "sha256=not-hex", "s") is False


def test_generate_secret() -> None:
    first = SignatureCodec.generate_secret()
    second = SignatureCodec.generate_secret()

    assert len(first) == 64
    int(first, 16)
    assert first != second
