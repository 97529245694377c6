"""Identity service: authoritative user records and credentials."""
