from fastapi import APIRouter, WebSocket

signaling_router = APIRouter(tags=["signaling"])


@signaling_router.websocket("/")
@signaling_router.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket):
    """Rendezvous socket.

    Client frames: create{room}, join{room}, signal{data}, leave{}, pong{}.
    Server frames: created, joined, peer-joined, peer-left, signal, room-closed,
    left, ping, server-shutdown, and a bare error{} for any rejected frame.
    """
    await websocket.app.state.hub.serve(websocket)
