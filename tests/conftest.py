"""Shared fixtures: temporary SQLite storage and a recording HTTP receiver."""

import asyncio
from typing import Any, AsyncIterator, Optional

import httpx
import pytest

from shop_webhooks.core.config import Settings
from shop_webhooks.storage.database.base import close_db, create_engine_for_url, create_session_factory, init_db
from shop_webhooks.storage.database.repository import SQLAlchemyWebhookRepository
from shop_webhooks.webhooks.schemas import EndpointCreate
from shop_webhooks.webhooks.service import WebhookService


class Receiver:
    """Stands in for subscriber servers; responses are configured per host."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, dict[str, Any]] = {}

    def respond(
        self,
        host: str,
        status: int = 200,
        body: str = "ok",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self._routes[host] = {"status": status, "body": body, "error": error, "delay": delay}

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get(request.url.host, {"status": 200, "body": "ok", "error": None, "delay": 0.0})
        if route["delay"]:
            await asyncio.sleep(route["delay"])
        if route["error"] is not None:
            raise route["error"]
        return httpx.Response(route["status"], text=route["body"])


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, APP_ENV="test", CACHE_TTL_STATS=0)  # type: ignore


@pytest.fixture
async def db_engine(tmp_path):
    # File database: concurrent deliveries each open their own connection
    engine = create_engine_for_url(
        f"sqlite+aiosqlite:///{tmp_path}/webhooks.db",
        connect_args={"timeout": 30},
    )
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def repository(db_engine) -> SQLAlchemyWebhookRepository:
    return SQLAlchemyWebhookRepository(create_session_factory(db_engine))


@pytest.fixture
def receiver() -> Receiver:
    return Receiver()


@pytest.fixture
async def http_client(receiver: Receiver) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(receiver)) as client:
        yield client


@pytest.fixture
def service(repository, http_client, settings) -> WebhookService:
    return WebhookService(repository, http_client, settings)


@pytest.fixture
def endpoint_data():
    """Factory for endpoint registration payloads."""

    def make(host: str = "hooks.example.com", **overrides: Any) -> EndpointCreate:
        values: dict[str, Any] = {
            "name": f"{host} receiver",
            "url": f"https://{host}/webhooks",
            "event_types": ["order.created"],
        }
        values.update(overrides)
        return EndpointCreate(**values)

    return make
