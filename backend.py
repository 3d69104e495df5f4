import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from fastapi.websockets import WebSocketState

import constants
from dedup import DedupCache, fingerprint
from exceptions import AlreadyInRoom, NotInRoom, RoomConflict, RoomFull, RoomNotFound, SelfJoin
from logging_config import get_logger
from schemas import messages

logger = get_logger(__name__)

LOCK_STRIPES = 64


class Role(str, Enum):
    HOST = "host"
    GUEST = "guest"


class RoomState(str, Enum):
    EMPTY = "EMPTY"
    ONE_PEER = "ONE_PEER"
    TWO_PEERS = "TWO_PEERS"


@dataclass(eq=False)
class ConnectionRecord:
    """Per-connection metadata. The hub maps ``id`` to this record; the record
    points at the socket, never the other way round."""

    websocket: Any
    source: str = "unknown"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: float = field(default_factory=time.monotonic)
    room_code: Optional[str] = None
    role: Optional[Role] = None
    rate_window_start: float = 0.0
    rate_count: int = 0
    alive: bool = True
    terminated: bool = False
    send_timeout: float = constants.SEND_TIMEOUT
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_open(self) -> bool:
        if self.terminated:
            return False
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    async def send(self, message: Dict[str, Any]) -> bool:
        """Best-effort send bounded by ``send_timeout``; never raises."""
        if not self.is_open:
            return False
        text = json.dumps(message, separators=(",", ":"))
        try:
            await asyncio.wait_for(self._send_locked(text), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send to connection {self.id} timed out after {self.send_timeout}s")
            return False
        except Exception as e:
            logger.debug(f"Send to connection {self.id} failed: {e}")
            return False

    async def _send_locked(self, text: str) -> None:
        async with self.send_lock:
            await self.websocket.send_text(text)

    async def terminate(self, code: int = 1001) -> None:
        if self.terminated:
            return
        self.terminated = True
        try:
            await asyncio.wait_for(self.websocket.close(code=code), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Close of connection {self.id} timed out")
        except Exception as e:
            logger.debug(f"Error closing connection {self.id}: {e}")


@dataclass(eq=False)
class Room:
    code: str
    host: Optional[ConnectionRecord]
    created_at: float
    dedup: DedupCache
    guest: Optional[ConnectionRecord] = None

    @property
    def state(self) -> RoomState:
        if self.host is None:
            return RoomState.EMPTY
        if self.guest is None:
            return RoomState.ONE_PEER
        return RoomState.TWO_PEERS

    def occupants(self) -> List[ConnectionRecord]:
        return [c for c in (self.host, self.guest) if c is not None]

    def other(self, connection: ConnectionRecord) -> Optional[ConnectionRecord]:
        if connection is self.host:
            return self.guest
        if connection is self.guest:
            return self.host
        return None


class RoomRegistry:
    """Authoritative room map and pairing state machine.

    Every read-modify-write on a room runs under ``lock_for(code)``. Locks are
    striped by code hash so a code's lock never changes for the life of the
    process, even while the room itself comes and goes.
    """

    def __init__(self, dedup_max_size: int, dedup_ttl: float, clock: Callable[[], float] = time.monotonic,
                 lock_stripes: int = LOCK_STRIPES):
        self.dedup_max_size = dedup_max_size
        self.dedup_ttl = dedup_ttl
        self.clock = clock
        self._rooms: Dict[str, Room] = {}
        self._locks = [asyncio.Lock() for _ in range(lock_stripes)]

    def lock_for(self, code: str) -> asyncio.Lock:
        return self._locks[hash(code) % len(self._locks)]

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(messages.normalize_room_code(code))

    def codes(self) -> List[str]:
        return list(self._rooms)

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: str) -> bool:
        return self.get(code) is not None

    async def create(self, code: str, requester: ConnectionRecord) -> str:
        code = messages.normalize_room_code(code)
        async with self.lock_for(code):
            if code in self._rooms:
                logger.info(f"Create rejected for connection {requester.id}: room {code} already exists")
                raise RoomConflict()
            if requester.room_code is not None:
                raise AlreadyInRoom()

            room = Room(
                code=code,
                host=requester,
                created_at=self.clock(),
                dedup=DedupCache(self.dedup_max_size, self.dedup_ttl, clock=self.clock),
            )
            self._rooms[code] = room
            requester.room_code = code
            requester.role = Role.HOST
            await requester.send(messages.created(code))

        logger.info(f"Room {code} created by connection {requester.id} ({len(self._rooms)} rooms)")
        return code

    async def join(self, code: str, requester: ConnectionRecord) -> str:
        code = messages.normalize_room_code(code)
        async with self.lock_for(code):
            room = self._rooms.get(code)
            if room is None:
                logger.info(f"Join rejected for connection {requester.id}: room {code} not found")
                raise RoomNotFound()
            if room.state is RoomState.TWO_PEERS:
                logger.info(f"Join rejected for connection {requester.id}: room {code} is full")
                raise RoomFull()
            if room.host is requester:
                raise SelfJoin()
            if requester.room_code is not None:
                raise AlreadyInRoom()

            room.guest = requester
            requester.room_code = code
            requester.role = Role.GUEST
            await requester.send(messages.joined(code))
            await room.host.send(messages.frame("peer-joined"))

        logger.info(f"Connection {requester.id} joined room {code}")
        return code

    async def leave(self, connection: ConnectionRecord) -> bool:
        """Detach ``connection`` from its room. Safe to call any number of times.

        Returns True if a slot was actually vacated.
        """
        code = connection.room_code
        if code is None:
            return False

        async with self.lock_for(code):
            if connection.room_code != code:
                # Detached while waiting for the lock (room evicted)
                return False
            connection.room_code = None
            connection.role = None

            room = self._rooms.get(code)
            if room is None:
                return False

            if room.host is connection:
                # Keep the room ONE_PEER by promoting the guest
                room.host, room.guest = room.guest, None
                if room.host is not None:
                    room.host.role = Role.HOST
            elif room.guest is connection:
                room.guest = None
            else:
                return False

            if room.host is None:
                del self._rooms[code]
                logger.info(f"Room {code} deleted (empty)")
            else:
                await room.host.send(messages.frame("peer-left"))
                logger.info(f"Connection {connection.id} left room {code}, one peer remains")

        return True

    async def relay(self, connection: ConnectionRecord, payload: Any) -> bool:
        """Forward ``payload`` to the other occupant. Returns True if it was delivered."""
        code = connection.room_code
        if code is None:
            raise NotInRoom()

        async with self.lock_for(code):
            room = self._rooms.get(code)
            if room is None or connection.room_code != code:
                return False

            digest = fingerprint(payload)
            if room.dedup.has(digest):
                logger.debug(f"Duplicate signal from connection {connection.id} in room {code} dropped")
                return False
            room.dedup.add(digest)

            target = room.other(connection)
            if target is None or not target.is_open:
                return False
            return await target.send(messages.signal(payload))

    async def close_room(self, code: str, notify: bool = True) -> bool:
        code = messages.normalize_room_code(code)
        async with self.lock_for(code):
            room = self._rooms.get(code)
            if room is None:
                return False
            await self.evict(room, notify=notify)
        return True

    async def evict(self, room: Room, notify: bool = True) -> None:
        """Remove ``room`` and detach its occupants. Caller holds ``lock_for(room.code)``."""
        if self._rooms.get(room.code) is room:
            del self._rooms[room.code]
        for occupant in room.occupants():
            occupant.room_code = None
            occupant.role = None
            if notify:
                await occupant.send(messages.frame("room-closed"))
        room.host = None
        room.guest = None
        logger.info(f"Room {room.code} closed")
