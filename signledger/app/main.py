"""
FastAPI entrypoint for the signature ledger service.

The service records hash-commitment signatures against uploaded PDFs and
emits finalized artifacts (protocol page(s) in front, digest header on
every page). The signing core itself is stateless; the session store
wired here only remembers the current ledger and the device token.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from fastapi import FastAPI

from signledger.app.api.routes import router
from signledger.app.config import SignLedgerConfig
from signledger.app.coordinator.assembler import DocumentAssembler
from signledger.app.session.ledger_repository import LedgerRepository
from signledger.app.session.store import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)

logger = logging.getLogger("signledger.main")


def get_app_version() -> str:
    try:
        return version("signledger")
    except PackageNotFoundError:
        return "0.1.0"


def _build_store(config: SignLedgerConfig) -> KeyValueStore:
    if config.SESSION_STORE_PATH is not None:
        return JsonFileKeyValueStore(config.SESSION_STORE_PATH)
    return InMemoryKeyValueStore()


def create_app(
    config: Optional[SignLedgerConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> FastAPI:
    """
    Build the application.

    ``config`` and ``store`` are for tests and explicit wiring; when
    omitted, configuration is read from the environment at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            settings = config or SignLedgerConfig.from_env()
        except Exception:
            logger.exception("invalid_signledger_configuration")
            raise

        logging.basicConfig(
            level=settings.LOG_LEVEL,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

        app.state.config = settings
        app.state.repository = LedgerRepository(store or _build_store(settings))
        app.state.assembler = DocumentAssembler(settings)

        logger.info(
            "signledger_startup",
            extra={
                "version": get_app_version(),
                "hash_chain": settings.ENABLE_HASH_CHAIN,
                "persistent_session": settings.SESSION_STORE_PATH is not None,
            },
        )
        yield
        logger.info("signledger_shutdown")

    app = FastAPI(
        title="Signature Ledger Service",
        description=(
            "Hash-commitment signatures and finalized PDF artifacts "
            "with a signature protocol page"
        ),
        version=get_app_version(),
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
