from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    rooms: int
    connections: int
    uptime_seconds: float
