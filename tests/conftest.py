"""Shared fixtures for the usersync test suite."""

from __future__ import annotations

import pytest

from usersync.bus.adapters import EventPublisher, EventSubscriber
from usersync.bus.memory_broker import MemoryBroker
from usersync.core.config import BusConfig, SecurityConfig, Settings
from usersync.core.enums import BusBackend
from usersync.identity.passwords import PasswordHasher
from usersync.identity.service import IdentityService
from usersync.identity.tokens import SessionTokens
from usersync.main import build_identity, build_profile
from usersync.profile.service import ProfileService
from usersync.storage.memory_store import (
    InMemoryProjectionRepository,
    InMemoryUserRepository,
)

# Minimum bcrypt cost keeps the suite fast.
FAST_ROUNDS = 4


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    """Settings for in-process tests: memory bus, cheap hashing."""
    return Settings(
        bus=BusConfig(backend=BusBackend.MEMORY),
        security=SecurityConfig(bcrypt_rounds=FAST_ROUNDS),
    )


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------

@pytest.fixture
async def memory_broker() -> MemoryBroker:
    """Return a connected MemoryBroker."""
    broker = MemoryBroker()
    await broker.connect()
    return broker


@pytest.fixture
def publisher(memory_broker) -> EventPublisher:
    return EventPublisher(memory_broker)


@pytest.fixture
def subscriber(memory_broker) -> EventSubscriber:
    return EventSubscriber(memory_broker)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def projection_repo() -> InMemoryProjectionRepository:
    return InMemoryProjectionRepository()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def identity_service(user_repo, publisher) -> IdentityService:
    return IdentityService(
        repository=user_repo,
        publisher=publisher,
        hasher=PasswordHasher(rounds=FAST_ROUNDS),
        tokens=SessionTokens(),
    )


@pytest.fixture
async def profile_service(projection_repo, subscriber) -> ProfileService:
    """ProfileService already bound to the shared broker."""
    service = ProfileService(projection_repo)
    await service.bind(subscriber)
    return service


@pytest.fixture
async def stacks(settings):
    """Identity and profile stacks sharing one MemoryBroker, started."""
    broker = MemoryBroker()
    identity = build_identity(settings, broker=broker)
    profile = build_profile(settings, broker=broker)
    await identity.start()
    await profile.start()
    yield identity, profile
    await profile.stop()
    await identity.stop()
