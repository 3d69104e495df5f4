import uvicorn

import constants
from logging_config import get_logger, setup_logging

# Setup logging before importing app
setup_logging(log_level=constants.LOG_LEVEL, log_file=constants.LOG_FILE)

from schemas.config import RelayConfig

logger = get_logger(__name__)


class RelayServer(uvicorn.Server):
    """uvicorn server that lets the hub say goodbye first.

    uvicorn closes open WebSockets with 1012 before the lifespan shutdown
    runs, so ``server-shutdown{}`` has to go out from here.
    """

    async def shutdown(self, sockets=None) -> None:
        hub = getattr(self.config.app.state, "hub", None)
        if hub is not None:
            await hub.stop()
        await super().shutdown(sockets=sockets)


def build_server(app, config: RelayConfig) -> RelayServer:
    server_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        # Oversized frames are refused by the transport before they reach the hub
        ws_max_size=config.max_message_size,
        # Transport-level keepalive; unanswered pings close the socket
        ws_ping_interval=config.heartbeat_interval,
        ws_ping_timeout=config.heartbeat_interval,
        timeout_graceful_shutdown=int(config.shutdown_grace_period) + 1,
        log_config=None,
    )
    return RelayServer(server_config)


def main():
    from app import app

    config = app.state.config
    logger.info(f"Starting signal relay on {config.host}:{config.port}")
    build_server(app, config).run()


if __name__ == "__main__":
    main()
