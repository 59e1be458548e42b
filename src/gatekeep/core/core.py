from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from gatekeep.config import Config
from gatekeep.core.db import Transactions
from gatekeep.core.modules.mail.service import MailService
from gatekeep.core.modules.oauth.service import OAuthService
from gatekeep.core.token import TokenCodec

if TYPE_CHECKING:
    from gatekeep.core.modules.account.service import AccountService
    from gatekeep.core.modules.archive.service import ArchiveService
    from gatekeep.core.modules.file.service import FileService
    from gatekeep.core.modules.session.service import SessionService

logger = structlog.get_logger(__name__)


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    account: AccountService
    session: SessionService
    archive: ArchiveService
    file: FileService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        service_configs = [
            ("account", "gatekeep.core.modules.account.service", "AccountService"),
            ("session", "gatekeep.core.modules.session.service", "SessionService"),
            ("archive", "gatekeep.core.modules.archive.service", "ArchiveService"),
            ("file", "gatekeep.core.modules.file.service", "FileService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in self._services:
            await service.on_stop()


class Core:
    """Container providing config, database, collaborators and all service instances.

    The database, transaction runner, mailer and OAuth client can be injected;
    otherwise they are built from config.
    """

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    database: AsyncDatabase[dict[str, Any]]
    transactions: Transactions
    token_codec: TokenCodec
    mailer: MailService
    oauth: OAuthService
    services: Services

    def __init__(
        self,
        config: Config,
        database: AsyncDatabase[dict[str, Any]] | None = None,
        transactions: Transactions | None = None,
        mailer: MailService | None = None,
        oauth: OAuthService | None = None,
    ) -> None:
        self.config = config
        self.mongo_client = None
        if database is None:
            self.mongo_client = AsyncMongoClient(
                config.database_url,
                uuidRepresentation="standard",
                tz_aware=True,
                timeoutMS=config.database_timeout_ms,
            )
            database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        if transactions is None:
            if self.mongo_client is None:
                raise ValueError("Transactions must be provided together with an injected database")
            transactions = Transactions(self.mongo_client)
        self.database = database
        self.transactions = transactions
        self.token_codec = TokenCodec(config.jwt_secret, config.jwt_issuer)
        self.mailer = mailer or MailService(config)
        self.oauth = oauth or OAuthService(config)
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.services.start_all()
        logger.info("core_started", database=self.database.name)

    async def on_stop(self) -> None:
        """Stop services, then close HTTP and MongoDB connections."""
        await self.services.stop_all()
        await self.oauth.aclose()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
