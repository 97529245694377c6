"""HTTP surface of the identity service.

Thin adapter: parses requests, calls ``IdentityService``, wraps the
result.  The credential hash never appears in any body; only
``PublicUser`` crosses this boundary.
"""

from __future__ import annotations

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from usersync.core.errors import UnauthorizedError
from usersync.identity.service import IdentityService

from .responses import install_common, ok


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    name: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


def _bearer(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError("Missing bearer token")
    return token.strip()


def create_identity_app(service: IdentityService) -> FastAPI:
    """Create the identity FastAPI application around *service*."""
    app = FastAPI(title="usersync identity", docs_url=None, redoc_url=None)
    app.state.identity = service
    install_common(app, "identity")

    @app.post("/auth/register")
    async def register(body: RegisterRequest) -> JSONResponse:
        result = await service.register(body.email, body.name, body.password)
        return ok(result.to_wire(), status_code=201)

    @app.post("/auth/login")
    async def login(body: LoginRequest) -> JSONResponse:
        result = await service.login(body.email, body.password)
        return ok(result.to_wire())

    @app.post("/auth/verify/{user_id}")
    async def verify(user_id: str) -> JSONResponse:
        user = await service.verify_email(user_id)
        return ok({"user": user.to_wire()})

    @app.get("/auth/me")
    async def me(authorization: str | None = Header(default=None)) -> JSONResponse:
        user = await service.authenticate(_bearer(authorization))
        return ok({"user": user.to_wire()})

    @app.post("/auth/logout")
    async def logout(authorization: str | None = Header(default=None)) -> JSONResponse:
        service.logout(_bearer(authorization))
        return ok({"loggedOut": True})

    @app.put("/auth/password")
    async def change_password(
        body: ChangePasswordRequest,
        authorization: str | None = Header(default=None),
    ) -> JSONResponse:
        user = await service.authenticate(_bearer(authorization))
        updated = await service.change_password(
            user.id, body.current_password, body.new_password,
        )
        return ok({"user": updated.to_wire()})

    return app
