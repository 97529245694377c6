"""Application bootstrap and service routing.

Composition root: the only place where concrete adapters are chosen and
injected into the services.  Each process builds exactly one stack
(identity, profile or gateway) and binds one adapter per port.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import uvicorn
from fastapi import FastAPI

from usersync import __version__

from .api.gateway_app import create_gateway_app
from .api.identity_app import create_identity_app
from .api.profile_app import create_profile_app
from .bus.adapters import EventPublisher, EventSubscriber
from .bus.factory import create_broker
from .core.config import Settings, load_settings
from .core.enums import ServiceRole
from .core.errors import TransportFailure
from .core.interfaces import IMessageBroker
from .identity.passwords import PasswordHasher
from .identity.service import IdentityService
from .identity.tokens import SessionTokens
from .observability import metrics
from .observability.logger import get_logger, setup_logging
from .profile.service import ProfileService
from .storage.memory_store import InMemoryProjectionRepository, InMemoryUserRepository

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stacks
# ---------------------------------------------------------------------------

@dataclass
class IdentityStack:
    settings: Settings
    repository: InMemoryUserRepository
    broker: IMessageBroker
    publisher: EventPublisher
    service: IdentityService
    app: FastAPI = field(repr=False)

    async def start(self) -> None:
        """Connect the bus.  An unreachable bus is not fatal here:
        registrations still succeed, their events are simply dropped."""
        try:
            await self.broker.connect()
        except TransportFailure as exc:
            logger.warning("Event bus unreachable, events will be dropped: %s", exc)

    async def stop(self) -> None:
        await self.broker.close()


@dataclass
class ProfileStack:
    settings: Settings
    repository: InMemoryProjectionRepository
    broker: IMessageBroker
    subscriber: EventSubscriber
    service: ProfileService
    app: FastAPI = field(repr=False)

    async def start(self) -> None:
        """Connect the bus and register the projection handlers.

        If the bus cannot be reached the service still serves reads from
        its own store; it just never hears about new users.
        """
        try:
            await self.broker.connect()
            await self.service.bind(self.subscriber)
        except TransportFailure as exc:
            logger.error("Event bus unreachable, projections will not update: %s", exc)

    async def stop(self) -> None:
        await self.broker.close()


@dataclass
class GatewayStack:
    settings: Settings
    app: FastAPI = field(repr=False)

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


def build_identity(
    settings: Settings, broker: IMessageBroker | None = None,
) -> IdentityStack:
    """Wire the identity service: in-memory store + bus publisher."""
    broker = broker or create_broker(settings.bus)
    repository = InMemoryUserRepository()
    publisher = EventPublisher(broker, channel_prefix=settings.bus.channel_prefix)
    service = IdentityService(
        repository=repository,
        publisher=publisher,
        hasher=PasswordHasher(rounds=settings.security.bcrypt_rounds),
        tokens=SessionTokens(nbytes=settings.security.token_bytes),
        min_password_length=settings.security.min_password_length,
    )
    return IdentityStack(
        settings=settings,
        repository=repository,
        broker=broker,
        publisher=publisher,
        service=service,
        app=create_identity_app(service),
    )


def build_profile(
    settings: Settings, broker: IMessageBroker | None = None,
) -> ProfileStack:
    """Wire the profile service: in-memory store + bus subscriber."""
    broker = broker or create_broker(settings.bus)
    repository = InMemoryProjectionRepository()
    subscriber = EventSubscriber(broker, channel_prefix=settings.bus.channel_prefix)
    service = ProfileService(repository)
    return ProfileStack(
        settings=settings,
        repository=repository,
        broker=broker,
        subscriber=subscriber,
        service=service,
        app=create_profile_app(service),
    )


def build_gateway(settings: Settings) -> GatewayStack:
    return GatewayStack(settings=settings, app=create_gateway_app(settings.gateway))


def build_stack(
    settings: Settings,
) -> IdentityStack | ProfileStack | GatewayStack:
    """Build the stack for ``settings.service``."""
    if settings.service == ServiceRole.IDENTITY:
        return build_identity(settings)
    if settings.service == ServiceRole.PROFILE:
        return build_profile(settings)
    return build_gateway(settings)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

async def run(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Main entry point. Load config, wire one service, serve HTTP."""

    # 1. Load settings (once; never reloaded)
    settings = load_settings(config_path=config_path, overrides=overrides)
    settings.validate_security()

    # 2. Set up logging
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format.value,
        service=settings.service.value,
    )
    log = get_logger(__name__)
    log.info(
        "starting",
        service=settings.service.value,
        port=settings.http.port,
        bus=settings.bus.backend.value,
    )
    metrics.set_service_info(settings.service.value, __version__)

    # 3. Wire and start
    stack = build_stack(settings)
    await stack.start()

    # 4. Serve until interrupted
    server = uvicorn.Server(
        uvicorn.Config(
            stack.app,
            host=settings.http.host,
            port=settings.http.port,
            log_config=None,
        )
    )
    try:
        await server.serve()
    finally:
        await stack.stop()
        log.info("shutdown complete", service=settings.service.value)


async def run_dev(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    profile_port: int = 3002,
) -> None:
    """Run identity and profile in one process over a shared MemoryBroker.

    For local development only: both services still own separate stores
    and talk only through the bus.
    """
    from .bus.memory_broker import MemoryBroker

    settings = load_settings(config_path=config_path, overrides=overrides)
    settings.validate_security()
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format.value,
        service="dev",
    )

    broker = MemoryBroker()
    identity = build_identity(settings, broker=broker)
    profile = build_profile(settings, broker=broker)
    await identity.start()
    await profile.start()

    servers = [
        uvicorn.Server(uvicorn.Config(
            identity.app, host=settings.http.host, port=settings.http.port,
            log_config=None,
        )),
        uvicorn.Server(uvicorn.Config(
            profile.app, host=settings.http.host, port=profile_port,
            log_config=None,
        )),
    ]
    logger.info(
        "Dev mode: identity on %d, profile on %d",
        settings.http.port, profile_port,
    )
    tasks = [asyncio.create_task(s.serve()) for s in servers]
    try:
        # A signal only reaches one server; stop the other with it.
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for server in servers:
            server.should_exit = True
        await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        await profile.stop()
        await identity.stop()
