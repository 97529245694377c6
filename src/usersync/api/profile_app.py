"""HTTP surface of the profile service.

Serves only from the profile store.  Works whether or not the identity
service is up; a user whose registration event has not arrived (or never
will) is a plain 404 here.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from usersync.profile.service import ProfileService

from .responses import install_common, ok


class ProfileUpdate(BaseModel):
    # Unknown keys reach the service, which rejects them by name.
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    email: str | None = None


def create_profile_app(service: ProfileService) -> FastAPI:
    """Create the profile FastAPI application around *service*."""
    app = FastAPI(title="usersync profile", docs_url=None, redoc_url=None)
    app.state.profile = service
    install_common(app, "profile")

    @app.get("/users")
    async def list_users() -> JSONResponse:
        users = await service.get_all()
        return ok({"users": [u.to_wire() for u in users]})

    @app.get("/users/{user_id}")
    async def get_user(user_id: str) -> JSONResponse:
        user = await service.get_by_id(user_id)
        return ok({"user": user.to_wire()})

    @app.put("/users/{user_id}")
    async def update_user(user_id: str, body: ProfileUpdate) -> JSONResponse:
        fields = {**body.model_dump(exclude_unset=True), **(body.model_extra or {})}
        user = await service.update(user_id, fields)
        return ok({"user": user.to_wire()})

    return app
