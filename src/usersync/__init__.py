"""usersync: identity and profile services kept in sync by events."""

__version__ = "0.1.0"
