import asyncio
import time
from typing import Any, Callable, Dict

from fastapi import WebSocket, WebSocketDisconnect, status

from backend import ConnectionRecord, RoomRegistry
from exceptions import RelayError
from gatekeeper import Gatekeeper, source_address
from logging_config import get_logger
from message_router import MessageRouter
from ratelimit import ConnectionRateLimiter, SourceRateLimiter
from schemas import messages
from schemas.config import RelayConfig
from supervisor import LivenessSupervisor, RoomReaper

logger = get_logger(__name__)


class SignalHub:
    """Owns every piece of process-wide relay state.

    Created empty at startup (see the app lifespan), torn down by ``stop``.
    ``connections`` is the id -> record lookup used by the liveness probe and
    by shutdown.
    """

    def __init__(self, config: RelayConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.clock = clock
        self.connections: Dict[str, ConnectionRecord] = {}

        self.registry = RoomRegistry(config.dedup_max_size, config.dedup_ttl, clock=clock)
        self.source_limiter = SourceRateLimiter(config.source_rate_window, config.source_rate_max, clock=clock)
        self.gatekeeper = Gatekeeper(config.allowed_origins, self.source_limiter)
        self.router = MessageRouter(
            self.registry,
            ConnectionRateLimiter(config.conn_rate_window, config.conn_rate_max, clock=clock),
            config.max_message_size,
        )
        self.liveness = LivenessSupervisor(config.heartbeat_interval, self.registry, self.connections)
        self.reaper = RoomReaper(config.room_sweep_interval, self.registry, config.max_room_age, clock=clock)

        self.started_at = clock()
        self.stopping = False
        self._drained = asyncio.Event()
        self._drained.set()

    async def start(self) -> None:
        self.liveness.start()
        self.reaper.start()
        cfg = self.config
        logger.info("Signal relay started")
        logger.info(f"Max message: {cfg.max_message_size} bytes")
        logger.info(f"Rate limit: {cfg.conn_rate_max} msgs/{cfg.conn_rate_window}s per connection, "
                    f"{cfg.source_rate_max} connections/{cfg.source_rate_window}s per source")
        logger.info(f"Heartbeat: {cfg.heartbeat_interval}s, room sweep: {cfg.room_sweep_interval}s, "
                    f"max room age: {cfg.max_room_age}s")
        if cfg.allowed_origins:
            logger.info(f"Allowed origins: {', '.join(cfg.allowed_origins)}")
        else:
            logger.info("Allowed origins: same-origin only")

    async def stop(self) -> None:
        """Notify every connection, close it, and wait for the serve loops to drain.

        The whole sequence is bounded by one ``shutdown_grace_period``. Called
        by the server before it closes sockets and again from the app lifespan;
        only the first call does anything.
        """
        if self.stopping:
            return
        self.stopping = True
        await self.liveness.stop()
        await self.reaper.stop()

        connections = list(self.connections.values())
        if connections:
            logger.info(f"Shutting down, notifying {len(connections)} connections")
            try:
                await asyncio.wait_for(self._drain(connections), timeout=self.config.shutdown_grace_period)
            except asyncio.TimeoutError:
                logger.warning(f"{len(self.connections)} connections still open after grace period")
        logger.info("Signal relay stopped")

    async def _drain(self, connections) -> None:
        await asyncio.gather(*(self._shutdown_connection(c) for c in connections))
        await self._drained.wait()

    async def _shutdown_connection(self, connection: ConnectionRecord) -> None:
        await connection.send(messages.frame("server-shutdown"))
        await connection.terminate(code=status.WS_1001_GOING_AWAY)

    async def serve(self, websocket: WebSocket) -> None:
        """Admit, accept and run the receive loop for one WebSocket."""
        source = source_address(
            websocket.client.host if websocket.client else None,
            websocket.headers.get("x-forwarded-for"),
            self.config.trust_proxy,
        )

        if self.stopping:
            await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
            return

        try:
            self.gatekeeper.admit(websocket.headers.get("origin"), websocket.headers.get("host"), source)
        except RelayError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        connection = ConnectionRecord(
            websocket=websocket,
            source=source,
            connected_at=self.clock(),
            send_timeout=self.config.send_timeout,
        )
        self._register(connection)
        logger.debug(f"Connection {connection.id} accepted from {source} ({len(self.connections)} open)")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await self.router.handle(connection, raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection.id}: {e}", exc_info=True)
        finally:
            await self.registry.leave(connection)
            self._unregister(connection)
            if connection.is_open:
                await connection.terminate(code=status.WS_1000_NORMAL_CLOSURE)

    def _register(self, connection: ConnectionRecord) -> None:
        self.connections[connection.id] = connection
        self._drained.clear()

    def _unregister(self, connection: ConnectionRecord) -> None:
        if self.connections.pop(connection.id, None) is None:
            return
        if not self.connections:
            self._drained.set()
        logger.info(
            f"Connection {connection.id} from {connection.source} closed after "
            f"{self.clock() - connection.connected_at:.1f}s ({len(self.connections)} open)"
        )

    def stats(self) -> Dict[str, Any]:
        return {
            "rooms": len(self.registry),
            "connections": len(self.connections),
            "uptime_seconds": round(self.clock() - self.started_at, 3),
        }
