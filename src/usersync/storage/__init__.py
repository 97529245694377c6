"""Storage adapters for the repository ports."""
