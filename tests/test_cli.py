"""Tests for CLI commands."""

from contextlib import asynccontextmanager

import pytest
from typer.testing import CliRunner

from shop_webhooks.cli import commands
from shop_webhooks.webhooks.schemas import WebhookStats
from shop_webhooks.webhooks.signature import SignatureCodec

runner = CliRunner()


@pytest.fixture
def fake_service(mocker):
    service = mocker.AsyncMock()

    @asynccontextmanager
    async def context():
        yield service

    mocker.patch.object(commands, "webhook_service_context", context)
    return service


def test_version() -> None:
    result = runner.invoke(commands.app, ["version"])

    assert result.exit_code == 0
    assert "Shop Webhooks" in result.output


def test_sign() -> None:
    result = runner.invoke(commands.app, ["sign", '{"order_id":"ord_1"}', "--secret", "s3cret"])

    assert result.exit_code == 0
    assert result.output.strip() == SignatureCodec.sign(b'{"order_id":"ord_1"}', "s3cret")


def test_sign_from_file(tmp_path) -> None:
    body = tmp_path / "body.json"
    body.write_bytes(b'{"a":1}')

    result = runner.invoke(commands.app, ["sign", "--file", str(body), "--secret", "k"])

    assert result.output.strip() == SignatureCodec.sign(b'{"a":1}', "k")


def test_sign_requires_payload() -> None:
    result = runner.invoke(commands.app, ["sign", "--secret", "k"])

    assert result.exit_code == 2


def test_verify() -> None:
    signature = SignatureCodec.sign(b"hello", "k")

    valid = runner.invoke(commands.app, ["verify", signature, "hello", "--secret", "k"])
    tampered = runner.invoke(commands.app, ["verify", signature, "hellO", "--secret", "k"])

    assert valid.exit_code == 0
    assert "valid" in valid.output
    assert tampered.exit_code == 1


def test_retry_due(fake_service) -> None:
    fake_service.retry_due_deliveries.return_value = 2

    result = runner.invoke(commands.app, ["retry-due", "--limit", "5"])

    assert result.exit_code == 0
    assert "Retried 2 deliveries" in result.output
    fake_service.retry_due_deliveries.assert_awaited_once_with(5)


def test_stats(fake_service) -> None:
    fake_service.get_webhook_stats.return_value = WebhookStats(
        by_status={"active": 2},
        total_endpoints=2,
        active_endpoints=2,
        total_events=4,
        pending_events=0,
        total_deliveries=6,
        successful_deliveries=5,
        failed_deliveries=1,
        pending_deliveries=0,
        average_response_time=120.5,
        success_rate=0.8333,
    )

    result = runner.invoke(commands.app, ["stats"])

    assert result.exit_code == 0
    assert "0.8333" in result.output
    assert "endpoints active" in result.output
