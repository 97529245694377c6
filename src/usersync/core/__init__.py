"""Shared contracts: models, events, ports, errors and configuration."""
