"""tokengate - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tokengate.api import api_router
from tokengate.core import Settings, async_session_maker, setup_logging
from tokengate.core import settings as default_settings
from tokengate.core.logging import get_logger
from tokengate.middleware import AuthenticationMiddleware
from tokengate.services.auth_gate import AuthenticationGate
from tokengate.services.identity import CredentialVerifier, IdentityLookup
from tokengate.services.revocation import RevocationStore, create_revocation_store
from tokengate.services.token_codec import SigningKey, TokenCodec
from tokengate.services.token_lifecycle import TokenLifecycleManager
from tokengate.services.users import UserDirectory

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _revocation_cleanup_loop(store: RevocationStore, interval: float) -> None:
    """Periodically drop expired entries from a process-local store."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await store.cleanup_expired()
            if removed > 0:
                logger.info(f"Cleaned up {removed} expired revocation entries")
        except Exception:
            logger.exception("Error cleaning up revocation entries")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    config: Settings = app.state.settings
    setup_logging(
        level=config.log_level,
        format_type="dev" if config.debug else "structured",
    )
    logger.info(f"Starting {config.app_name} v{config.app_version}")

    cleanup_task = asyncio.create_task(
        _revocation_cleanup_loop(
            app.state.revocation_store, config.revocation_cleanup_interval_seconds
        ),
        name="revocation-cleanup",
    )
    cleanup_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await app.state.revocation_store.close()


def create_app(
    config: Settings | None = None,
    *,
    identities: IdentityLookup | None = None,
    credential_verifier: CredentialVerifier | None = None,
    revocation_store: RevocationStore | None = None,
    signing_key: SigningKey | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the database-backed user directory, the
    configured revocation backend and a key from settings (or a fresh
    per-process key).
    """
    config = config or default_settings

    app = FastAPI(
        title=config.app_name,
        description="Bearer token issuance, rotation and revocation",
        version=config.app_version,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
    )

    # Explicit None checks: an empty in-memory store is falsy
    if identities is None or credential_verifier is None:
        directory = UserDirectory(async_session_maker)
        if identities is None:
            identities = directory
        if credential_verifier is None:
            credential_verifier = directory
    if revocation_store is None:
        revocation_store = create_revocation_store(
            config.redis_url,
            key_prefix=config.revocation_key_prefix,
            socket_timeout=config.revocation_check_timeout_seconds,
        )
    if signing_key is None:
        signing_key = SigningKey.from_secret(config.jwt_secret_key, config.jwt_algorithm)
    codec = TokenCodec(signing_key)

    app.state.settings = config
    app.state.token_codec = codec
    app.state.revocation_store = revocation_store
    app.state.credential_verifier = credential_verifier
    app.state.token_lifecycle = TokenLifecycleManager(
        codec,
        identities,
        access_ttl=timedelta(seconds=config.access_token_expire_seconds),
        refresh_ttl=timedelta(days=config.refresh_token_expire_days),
        rotation_threshold=timedelta(hours=config.refresh_rotation_threshold_hours),
    )
    app.state.auth_gate = AuthenticationGate(
        codec,
        revocation_store,
        identities,
        revocation_timeout=config.revocation_check_timeout_seconds,
    )

    app.add_middleware(AuthenticationMiddleware)

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on 401 responses from the gate too.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    app.include_router(api_router)

    return app


# Application instance
app = create_app()
