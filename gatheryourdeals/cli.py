"""Click CLI commands for server administration."""

from __future__ import annotations

import asyncio
import sys

import click

from gatheryourdeals.config import Settings, get_settings
from gatheryourdeals.errors import AuthError
from gatheryourdeals.main import NO_ADMIN_MESSAGE
from gatheryourdeals.services.logging_service import configure_logging
from gatheryourdeals.wiring import (
    StartupReport,
    build_services,
    close_backends,
    open_backends,
    prepare_startup,
)

MIN_PASSWORD_LENGTH = 8


def _prompt_new_password(label: str = "Password") -> str:
    """Prompt for a password twice and validate it.

    Raises:
        click.ClickException: If the entries differ or the password is too short
    """
    password = click.prompt(label, hide_input=True)
    confirmation = click.prompt(f"Confirm {label.lower()}", hide_input=True)

    if password != confirmation:
        raise click.ClickException("passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise click.ClickException(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return password


async def _run_init(settings: Settings) -> None:
    services = build_services(settings)
    await open_backends(services)
    try:
        if await services.auth.has_admin():
            click.echo("Admin account already exists. No changes made.")
            return

        click.echo("Create the admin account.")
        username = click.prompt("Username").strip()
        password = _prompt_new_password()

        try:
            admin = await services.auth.bootstrap_admin(username, password)
        except AuthError as e:
            raise click.ClickException(e.message)

        click.echo(f"Admin account '{admin.username}' created.")
    finally:
        await close_backends(services)


async def _run_reset_password(settings: Settings, username: str, password: str) -> None:
    services = build_services(settings)
    await open_backends(services)
    try:
        await services.auth.reset_password(username, password)
    except AuthError as e:
        raise click.ClickException(e.message)
    finally:
        await close_backends(services)


async def _check_startup(settings: Settings) -> StartupReport:
    services = build_services(settings)
    await open_backends(services)
    try:
        return await prepare_startup(services, settings)
    finally:
        await close_backends(services)


@click.group()
def cli() -> None:
    """GatherYourDeals auth server: bootstrap, run and administer."""
    configure_logging(get_settings().log_level)


@cli.command()
def init() -> None:
    """Apply migrations and create the first admin account."""
    asyncio.run(_run_init(get_settings()))


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to settings).")
@click.option("--port", default=None, type=int, help="Bind port (defaults to settings).")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP server. Refuses to start without an admin account."""
    settings = get_settings()
    report = asyncio.run(_check_startup(settings))

    if not report.has_admin:
        click.echo(f"Error: {NO_ADMIN_MESSAGE}", err=True)
        sys.exit(1)

    import uvicorn

    uvicorn.run(
        "gatheryourdeals.main:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@cli.group()
def admin() -> None:
    """Account administration."""


@admin.command("reset-password")
def reset_password() -> None:
    """Set a new password for an existing user."""
    username = click.prompt("Username").strip()
    password = _prompt_new_password("New password")

    asyncio.run(_run_reset_password(get_settings(), username, password))
    click.echo(f"Password for '{username}' updated.")
