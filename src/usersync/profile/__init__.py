"""Profile service: the derived user projection."""
