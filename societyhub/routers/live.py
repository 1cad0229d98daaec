from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from fastapi.encoders import jsonable_encoder
from datetime import datetime
import asyncio
import json
import logging

from ..auth.dependencies import get_document_store
from ..auth.role_resolver import RoleResolver
from ..auth.session import AuthSession
from ..bindings.live_collection import LiveCollection
from ..bindings.state import BinderState
from ..core.errors import describe_error
from ..database.collections import COLLECTION_SCHEMAS
from ..database.store import DocumentStore
from .records import query_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])


def _frame(collection: str, state: BinderState, binder: LiveCollection) -> dict:
    if state.error:
        error = describe_error(binder.failure, f"live {collection}") if binder.failure else {"message": state.error}
        return {
            "type": "error",
            "collection": collection,
            "error": error,
            "timestamp": datetime.now().isoformat(),
        }
    payload = state.as_dict()
    return jsonable_encoder({
        "type": "snapshot",
        "collection": collection,
        "data": payload["data"],
        "count": len(payload["data"]),
        "timestamp": datetime.now().isoformat(),
    })


async def _send_states(websocket: WebSocket, queue: asyncio.Queue, collection: str, binder: LiveCollection):
    while True:
        state = await queue.get()
        # the bind's own loading transition carries nothing to show
        if state.loading:
            continue
        await websocket.send_json(_frame(collection, state, binder))


async def _receive_commands(websocket: WebSocket, binder: LiveCollection):
    while True:
        data = await websocket.receive_text()
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            await websocket.send_json({
                "type": "error",
                "message": "Invalid JSON format",
                "timestamp": datetime.now().isoformat()
            })
            continue

        message_type = message.get("type") if isinstance(message, dict) else None
        if message_type == "ping":
            await websocket.send_json({"type": "pong", "timestamp": datetime.now().isoformat()})
        elif message_type == "refresh":
            await binder.refresh()
        else:
            await websocket.send_json({
                "type": "error",
                "message": f"Unknown message type: {message_type}",
                "timestamp": datetime.now().isoformat()
            })


@router.websocket("/live/{collection}")
async def live_collection(
    websocket: WebSocket,
    collection: str,
    token: str = Query(..., description="Firebase ID token"),
    store: DocumentStore = Depends(get_document_store)
):
    """Stream a role-scoped collection as snapshot frames until the client disconnects"""
    if collection not in COLLECTION_SCHEMAS:
        await websocket.close(code=1008, reason=f"Unknown collection: {collection}")
        return

    session = AuthSession()
    identity = await session.sign_in_with_token(token)
    if identity is None:
        await websocket.close(code=1008, reason="Authentication failed")
        return

    await websocket.accept()

    resolver = RoleResolver(store, session)
    resolver.start()
    binder = None
    remove_listener = None

    try:
        await resolver.wait_resolved()
        logger.info(f"[Live] {identity.uid} ({resolver.role.value}) subscribed to {collection}")

        queue: asyncio.Queue = asyncio.Queue()
        binder = LiveCollection(store, collection, query_for(collection, resolver.context()), listen=True)
        remove_listener = binder.add_listener(queue.put_nowait)
        await binder.bind()

        sender = asyncio.create_task(_send_states(websocket, queue, collection, binder))
        receiver = asyncio.create_task(_receive_commands(websocket, binder))
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"[Live] Stream error on {collection}: {str(error)}")

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"[Live] WebSocket connection error: {str(e)}")
        await websocket.close(code=1011, reason="Internal server error")

    finally:
        if remove_listener:
            remove_listener()
        if binder:
            binder.close()
        resolver.stop()
        logger.info(f"[Live] {identity.uid} unsubscribed from {collection}")
