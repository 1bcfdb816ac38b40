"""
certchain — Application Entry Point

FastAPI application exposing certificate issuance and verification.

`uvicorn certchain.main:app` or `certchain serve`
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load .env file before any configuration is loaded
load_dotenv()

from certchain import __version__
from certchain.api.routers.certificates import request_validation_error
from certchain.api.routers.certificates import router as certificates_router
from certchain.config import load_config
from certchain.systems.certificates.pipeline import CertificatePipeline
from certchain.telemetry.logging import setup_logging

if TYPE_CHECKING:
    from certchain.config import CertChainConfig

logger = structlog.get_logger("certchain.main")


def create_app(
    config: CertChainConfig | None = None,
    pipeline: CertificatePipeline | None = None,
) -> FastAPI:
    """
    Build the HTTP app. A supplied pipeline is used as is and left open
    on shutdown; otherwise one is wired from the configuration.
    """
    config = config or load_config(os.environ.get("CERTCHAIN_CONFIG_PATH", "config/default.yaml"))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.logging)
        app.state.config = config

        owns_pipeline = pipeline is None
        app.state.pipeline = pipeline or CertificatePipeline.from_config(config)
        logger.info(
            "certchain_started",
            rpc_url=config.ledger.rpc_url,
            port=config.server.port,
            metadata_path=config.store.metadata_path,
        )
        try:
            yield
        finally:
            if owns_pipeline:
                await app.state.pipeline.uploader.close()
            logger.info("certchain_stopped")

    app = FastAPI(
        title="certchain",
        description="Ledger-anchored certificate issuance and verification",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(RequestValidationError, request_validation_error)
    app.include_router(certificates_router)
    return app


app = create_app()
