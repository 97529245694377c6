"""Enumerations shared across services."""

from __future__ import annotations

from enum import Enum


class ServiceRole(str, Enum):
    """Which process a composition root is building."""

    IDENTITY = "identity"
    PROFILE = "profile"
    GATEWAY = "gateway"


class BusBackend(str, Enum):
    """Broker implementation bound to the bus ports."""

    MEMORY = "memory"
    REDIS = "redis"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"
