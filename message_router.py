from typing import Union

from backend import ConnectionRecord, RoomRegistry
from exceptions import ConnectionRateExceeded, MalformedFrame, RelayError
from logging_config import get_logger
from ratelimit import ConnectionRateLimiter
from schemas import messages

logger = get_logger(__name__)


class MessageRouter:
    """Turns inbound frames into registry calls.

    Every RelayError raised while handling a frame is answered with one bare
    error frame; nothing here closes the connection.
    """

    def __init__(self, registry: RoomRegistry, rate_limiter: ConnectionRateLimiter, max_message_size: int):
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.max_message_size = max_message_size

    async def handle(self, connection: ConnectionRecord, raw: Union[str, bytes]) -> None:
        try:
            await self._handle(connection, raw)
        except RelayError as e:
            logger.debug(f"Frame from connection {connection.id} rejected: {e.kind}")
            await connection.send(messages.error())

    async def _handle(self, connection: ConnectionRecord, raw: Union[str, bytes]) -> None:
        if not self.rate_limiter.allow(connection):
            logger.warning(f"Connection {connection.id} rate limited")
            raise ConnectionRateExceeded()

        size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)
        if size > self.max_message_size:
            raise MalformedFrame()

        frame = messages.parse_frame(raw)
        connection.alive = True
        logger.debug(f"Received {frame.type} from connection {connection.id}")

        if frame.type == "create":
            await self.registry.create(frame.room, connection)
        elif frame.type == "join":
            await self.registry.join(frame.room, connection)
        elif frame.type == "signal":
            await self.registry.relay(connection, frame.data)
        elif frame.type == "leave":
            await self.registry.leave(connection)
            await connection.send(messages.frame("left"))
        elif frame.type == "pong":
            # liveness already recorded above
            pass
