"""CLI entry point: one command per service process."""

from __future__ import annotations

import click

from .core.enums import ServiceRole


def _overrides(service: ServiceRole, host: str | None, port: int | None) -> dict:
    overrides: dict = {"service": service.value}
    http: dict = {}
    if host:
        http["host"] = host
    if port:
        http["port"] = port
    if http:
        overrides["http"] = http
    return overrides


def _run(config: str | None, overrides: dict) -> None:
    import asyncio

    from .main import run

    asyncio.run(run(config_path=config, overrides=overrides))


@click.group()
def main() -> None:
    """usersync identity/profile services."""


@main.command()
@click.option("--config", default="configs/identity.toml", help="Config file path (TOML)")
@click.option("--host", default=None, help="Listen host override")
@click.option("--port", default=None, type=int, help="Listen port override")
def identity(config: str | None, host: str | None, port: int | None) -> None:
    """Run the identity service (registration, login, verification)."""
    _run(config, _overrides(ServiceRole.IDENTITY, host, port))


@main.command()
@click.option("--config", default="configs/profile.toml", help="Config file path (TOML)")
@click.option("--host", default=None, help="Listen host override")
@click.option("--port", default=None, type=int, help="Listen port override")
def profile(config: str | None, host: str | None, port: int | None) -> None:
    """Run the profile service (user projection)."""
    _run(config, _overrides(ServiceRole.PROFILE, host, port))


@main.command()
@click.option("--config", default="configs/gateway.toml", help="Config file path (TOML)")
@click.option("--host", default=None, help="Listen host override")
@click.option("--port", default=None, type=int, help="Listen port override")
def gateway(config: str | None, host: str | None, port: int | None) -> None:
    """Run the edge router in front of both services."""
    _run(config, _overrides(ServiceRole.GATEWAY, host, port))


@main.command()
@click.option("--config", default=None, help="Config file path (TOML)")
@click.option("--port", default=3001, type=int, help="Identity service port")
@click.option("--profile-port", default=3002, type=int, help="Profile service port")
def dev(config: str | None, port: int, profile_port: int) -> None:
    """Run identity and profile in one process over an in-memory bus."""
    import asyncio

    from .main import run_dev

    overrides = {"http": {"port": port}, "bus": {"backend": "memory"}}
    asyncio.run(run_dev(config_path=config, overrides=overrides, profile_port=profile_port))


@main.command("show-config")
@click.option("--config", default=None, help="Config file path (TOML)")
def show_config(config: str | None) -> None:
    """Print the effective settings as JSON, without secrets."""
    from .core.config import load_settings

    settings = load_settings(config_path=config)
    click.echo(settings.model_dump_json(indent=2, exclude={"bus": {"password"}}))


if __name__ == "__main__":
    main()
