import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from taskboard.core.security import authenticate
from taskboard.core.websocket import event_from_client

logger = logging.getLogger(__name__)

router = APIRouter()

@router.websocket("/ws/tasks")
async def task_events_endpoint(websocket: WebSocket):
    manager = websocket.app.state.connections
    claims = authenticate(websocket, allow_query=True)
    if claims is None:
        logger.info("Rejected task-event socket: missing or invalid credential")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, claims)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except (ValueError, KeyError):
                # KeyError: a binary frame has no "text" part
                logger.debug("User %s sent a non-JSON frame", claims.user_id)
                continue
            event = event_from_client(frame)
            if event is None:
                logger.debug("User %s sent an unknown frame", claims.user_id)
                continue
            await manager.publish(event, owner_id=claims.user_id)
    except WebSocketDisconnect:
        logger.debug("User %s closed the task-event socket", claims.user_id)
    finally:
        manager.disconnect(websocket)
