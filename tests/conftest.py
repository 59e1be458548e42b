"""Shared pytest fixtures."""

import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from fakes import FakeDatabase, FakeTransactions, MailOutbox, RecordingMailer
from gatekeep.app import App
from gatekeep.config import Config
from gatekeep.core.core import Core
from gatekeep.core.modules.oauth.service import OAuthService


class OAuthProviderStub:
    """Programmable OAuth provider behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.responses: dict[str, tuple[int, dict[str, Any]]] = {}
        self.errors: dict[str, Exception] = {}
        self.requests: list[httpx.Request] = []

    def respond(self, url: str, status_code: int = 200, payload: dict[str, Any] | None = None) -> None:
        self.responses[url] = (status_code, payload or {})

    def raise_error(self, url: str, error: Exception) -> None:
        self.errors[url] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if url in self.errors:
            raise self.errors[url]
        if url in self.responses:
            status_code, payload = self.responses[url]
            return httpx.Response(status_code, json=payload)
        return httpx.Response(404, content=json.dumps({"error": "not_found"}).encode())


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        database_url="mongodb://localhost:27017/gatekeep_test",
        jwt_secret="gatekeep-test-signing-secret-" * 3,
        jwt_issuer="gatekeep-test",
        smtp_host="smtp.test",
        mail_sender="noreply@gatekeep.test",
        kakao_client_id="kakao-client",
        kakao_client_secret="kakao-secret",
        files_path=str(tmp_path / "files"),
        files_base_url="https://files.gatekeep.test/api/v1/files",
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def transactions(database: FakeDatabase) -> FakeTransactions:
    return FakeTransactions(database)


@pytest.fixture
def outbox() -> MailOutbox:
    return MailOutbox()


@pytest.fixture
def oauth_provider() -> OAuthProviderStub:
    return OAuthProviderStub()


@pytest.fixture
def oauth(config: Config, oauth_provider: OAuthProviderStub) -> OAuthService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(oauth_provider.handler))
    return OAuthService(config, client=client)


@pytest_asyncio.fixture
async def app(
    config: Config,
    database: FakeDatabase,
    transactions: FakeTransactions,
    outbox: MailOutbox,
    oauth: OAuthService,
) -> AsyncGenerator[App]:
    app = App(
        config,
        database=database,  # type: ignore[arg-type]
        transactions=transactions,  # type: ignore[arg-type]
        mailer=RecordingMailer(config, outbox),
        oauth=oauth,
    )
    async with app.lifespan():
        yield app


@pytest.fixture
def core(app: App) -> Core:
    return app._core


@pytest.fixture
def sign_up(app: App, outbox: MailOutbox) -> Callable[..., Any]:
    """Join an account and return an async helper that signs it in."""

    async def sign_up_and_in(email: str = "alice@example.com", nickname: str = "alice") -> tuple[str, Any]:
        await app.join(email, nickname)
        await app.send_otp(email)
        otp = outbox.sent[-1].params["otp"]
        profile = await app.sign_in(email, otp)
        return profile.access_token, profile

    return sign_up_and_in
