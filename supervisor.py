import asyncio
import time
from typing import Callable, Dict, Optional

from backend import ConnectionRecord, RoomRegistry
from logging_config import get_logger
from schemas import messages

logger = get_logger(__name__)


class PeriodicTask:
    """Runs ``run_once`` every ``interval`` seconds until stopped.

    A failing iteration is logged and the loop carries on.
    """

    name = "periodic"

    def __init__(self, interval: float):
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name=self.name)
            logger.debug(f"Started {self.name} task (interval {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug(f"Stopped {self.name} task")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in {self.name} task: {e}", exc_info=True)

    async def run_once(self) -> None:
        raise NotImplementedError


class LivenessSupervisor(PeriodicTask):
    """Application-level heartbeat.

    Transport pongs never reach an ASGI app; uvicorn answers them itself and
    closes the socket when they stop (``ws_ping_interval`` / ``ws_ping_timeout``
    are derived from the same heartbeat interval). So a connection counts as
    responsive while its transport is open or while it keeps sending frames
    (``pong{}`` included); only records whose socket is gone are reaped here.
    """

    name = "liveness"

    def __init__(self, interval: float, registry: RoomRegistry, connections: Dict[str, ConnectionRecord]):
        super().__init__(interval)
        self.registry = registry
        self.connections = connections

    async def run_once(self) -> int:
        """Ping every connection once. Returns the number of connections reaped."""
        dead = []
        pings = []
        for connection in list(self.connections.values()):
            if not connection.is_open:
                dead.append(connection)
                continue
            if not connection.alive:
                # uvicorn still sees transport pongs, so the socket stays
                logger.debug(f"Connection {connection.id} sent nothing since the last ping")
            connection.alive = False
            pings.append(connection.send(messages.frame("ping")))

        for connection in dead:
            logger.info(f"Connection {connection.id} stopped responding, terminating")
            await self.registry.leave(connection)
            await connection.terminate()

        if pings:
            await asyncio.gather(*pings)
        return len(dead)


class RoomReaper(PeriodicTask):
    name = "room-reaper"

    def __init__(self, interval: float, registry: RoomRegistry, max_room_age: float,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(interval)
        self.registry = registry
        self.max_room_age = max_room_age
        self.clock = clock

    async def run_once(self) -> int:
        """Sweep all rooms. Returns the number of rooms removed."""
        removed = 0
        for code in self.registry.codes():
            async with self.registry.lock_for(code):
                room = self.registry.get(code)
                if room is None:
                    continue
                if self.clock() - room.created_at > self.max_room_age:
                    logger.info(f"Room {code} exceeded max age, closing")
                    await self.registry.evict(room, notify=True)
                    removed += 1
                elif not any(occupant.is_open for occupant in room.occupants()):
                    logger.info(f"Room {code} has no open connections, removing")
                    await self.registry.evict(room, notify=False)
                    removed += 1
                else:
                    room.dedup.purge()
        if removed:
            logger.info(f"Room sweep removed {removed} rooms ({len(self.registry)} remaining)")
        return removed
