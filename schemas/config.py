from pydantic import BaseModel, Field
from typing import List

import constants


class RelayConfig(BaseModel):
    host: str = constants.HOST
    port: int = Field(default=constants.PORT, ge=0, le=65535)

    heartbeat_interval: float = Field(default=constants.HEARTBEAT_INTERVAL, gt=0)
    room_sweep_interval: float = Field(default=constants.ROOM_SWEEP_INTERVAL, gt=0)
    max_room_age: float = Field(default=constants.MAX_ROOM_AGE, gt=0)
    max_message_size: int = Field(default=constants.MAX_MESSAGE_SIZE, gt=0)

    conn_rate_window: float = Field(default=constants.RATE_LIMIT_WINDOW, gt=0)
    conn_rate_max: int = Field(default=constants.RATE_LIMIT_MAX, ge=1)
    source_rate_window: float = Field(default=constants.SOURCE_RATE_WINDOW, gt=0)
    source_rate_max: int = Field(default=constants.SOURCE_RATE_MAX, ge=1)

    dedup_max_size: int = Field(default=constants.DEDUP_MAX_SIZE, ge=1)
    dedup_ttl: float = Field(default=constants.DEDUP_TTL, gt=0)

    allowed_origins: List[str] = Field(default_factory=lambda: list(constants.ALLOWED_ORIGINS))
    trust_proxy: bool = constants.TRUST_PROXY

    shutdown_grace_period: float = Field(default=constants.SHUTDOWN_GRACE_PERIOD, ge=0)
    send_timeout: float = Field(default=constants.SEND_TIMEOUT, gt=0)
