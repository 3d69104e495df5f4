from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import constants
from hub import SignalHub
from logging_config import get_logger, setup_logging
from routers.health import health_router
from routers.signaling import signaling_router
from schemas.config import RelayConfig

# Setup logging
setup_logging(log_level=constants.LOG_LEVEL, log_file=constants.LOG_FILE)
logger = get_logger(__name__)


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    config = config or RelayConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Fresh state per server run, bound to the running event loop
        hub = SignalHub(config)
        app.state.hub = hub
        await hub.start()
        try:
            yield
        finally:
            await hub.stop()

    app = FastAPI(title="Signal Relay", lifespan=lifespan)
    app.state.config = config

    # Only the HTTP endpoints are affected; the socket does its own origin check
    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    app.include_router(signaling_router)
    app.include_router(health_router)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
