"""Backend selection, service construction, and the startup sequence."""

from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from gatheryourdeals.config import Settings
from gatheryourdeals.repositories import ClientRepository, TokenStore, UserRepository
from gatheryourdeals.services.auth_service import AuthService
from gatheryourdeals.services.authorizer import RequestAuthorizer
from gatheryourdeals.services.client_service import ClientService
from gatheryourdeals.services.password_service import PasswordHasher
from gatheryourdeals.services.token_service import TokenManager

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a request handler or CLI command needs, built once."""

    users: UserRepository
    clients: ClientRepository
    tokens: TokenStore
    auth: AuthService
    token_manager: TokenManager
    client_service: ClientService
    authorizer: RequestAuthorizer
    uses_postgres: bool = False
    uses_redis: bool = False


@dataclass(frozen=True)
class StartupReport:
    """Result of the startup sequence.

    ``has_admin`` is the serve precondition: the server must not start
    without an admin account.
    """

    has_admin: bool
    seeded_clients: list[str] = field(default_factory=list)


def build_services(
    settings: Settings,
    users: UserRepository | None = None,
    clients: ClientRepository | None = None,
    tokens: TokenStore | None = None,
    hasher: PasswordHasher | None = None,
) -> Services:
    """Wire repositories and services for the configured backends.

    Explicit repositories override the configured backend; tests pass
    in-memory ones.
    """
    uses_postgres = False
    uses_redis = False

    if users is None or clients is None:
        if settings.storage_backend == "postgres":
            from gatheryourdeals.repositories.postgres import (
                PostgresClientRepository,
                PostgresUserRepository,
            )

            users = users or PostgresUserRepository()
            clients = clients or PostgresClientRepository()
            uses_postgres = True
        else:
            from gatheryourdeals.repositories.memory import (
                InMemoryClientRepository,
                InMemoryUserRepository,
            )

            users = users or InMemoryUserRepository()
            clients = clients or InMemoryClientRepository()

    if tokens is None:
        if settings.token_backend == "redis":
            from gatheryourdeals.repositories.redis_store import RedisTokenStore

            tokens = RedisTokenStore()
            uses_redis = True
        else:
            from gatheryourdeals.repositories.memory import InMemoryTokenStore

            tokens = InMemoryTokenStore()

    hasher = hasher or PasswordHasher(rounds=settings.bcrypt_rounds)
    token_manager = TokenManager(
        clients,
        tokens,
        access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
    )

    return Services(
        users=users,
        clients=clients,
        tokens=tokens,
        auth=AuthService(users, hasher),
        token_manager=token_manager,
        client_service=ClientService(clients),
        authorizer=RequestAuthorizer(token_manager, users),
        uses_postgres=uses_postgres,
        uses_redis=uses_redis,
    )


async def open_backends(services: Services) -> None:
    """Connect to the stores the services use and apply migrations."""
    if services.uses_postgres:
        from gatheryourdeals.database import init_database, run_migrations

        await init_database()
        await run_migrations()

    if services.uses_redis:
        from gatheryourdeals.services.redis_service import get_redis

        await get_redis()


async def close_backends(services: Services) -> None:
    if services.uses_postgres:
        from gatheryourdeals.database import close_database

        await close_database()

    if services.uses_redis:
        from gatheryourdeals.services.redis_service import close_redis

        await close_redis()


async def prepare_startup(services: Services, settings: Settings) -> StartupReport:
    """Seed clients on first boot and evaluate the admin precondition.

    Backends must already be open.
    """
    seeded = await services.client_service.seed_clients(settings.oauth_clients)
    has_admin = await services.auth.has_admin()

    logger.info("startup_checked", has_admin=has_admin, seeded_clients=seeded)
    return StartupReport(has_admin=has_admin, seeded_clients=seeded)
