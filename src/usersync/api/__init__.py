"""FastAPI adapters exposing each service over HTTP."""
