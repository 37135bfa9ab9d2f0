import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fanledger.realtime.hub import EventHub, RealtimeEvent
from fanledger.utils.deps import decode_principal

log = logging.getLogger(__name__)

router = APIRouter()

QUEUE_SIZE = 100


@router.websocket("/ws/creators/{creator_id}/events")
async def creator_events(ws: WebSocket, creator_id: str):
    principal = decode_principal(ws.query_params.get("token"))
    if principal is None or not principal.is_creator or principal.id != creator_id:
        await ws.close(code=4001)
        return

    hub: EventHub = ws.app.state.event_hub
    queue: asyncio.Queue[RealtimeEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)

    def enqueue(event: RealtimeEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            log.warning("realtime.dropped creator=%s type=%s", creator_id, event.type)

    try:
        unsubscribe = hub.subscribe(enqueue, creator_id=creator_id)
    except RuntimeError:
        await ws.close(code=4003)
        return

    async def forward() -> None:
        while True:
            event = await queue.get()
            await ws.send_json(event.to_dict())

    await ws.accept()
    log.info("realtime.connected creator=%s listeners=%d", creator_id, hub.listener_count)
    sender = asyncio.create_task(forward())
    try:
        # Client frames are ignored; reading surfaces the disconnect.
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        unsubscribe()
        log.info("realtime.disconnected creator=%s", creator_id)
