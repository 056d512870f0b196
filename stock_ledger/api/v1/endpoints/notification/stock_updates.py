import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession
from stock_ledger.api.dependencies import get_user_from_token, get_stock_broadcaster
from stock_ledger.core.database import get_async_session
from stock_ledger.services.notification.stock_broadcaster import StockUpdateBroadcaster
from stock_ledger.utils.clock import utcnow

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def stock_updates_websocket(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_async_session),
    broadcaster: StockUpdateBroadcaster = Depends(get_stock_broadcaster),
):
    """Push stockUpdate events to an authenticated client"""
    try:
        user = await get_user_from_token(token, db)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        # Only the handshake needs the database
        await db.close()

    await websocket.accept()
    broadcaster.add_connection(websocket)
    logger.info(f"Stock updates connected for user {user.id} ({broadcaster.connection_count} open)")

    try:
        await websocket.send_text(
            json.dumps(
                {
                    "type": "welcome",
                    "message": f"Subscribed to {broadcaster.channel}",
                    "timestamp": utcnow().isoformat(),
                }
            )
        )

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info(f"Stock updates disconnected for user {user.id}")
    finally:
        broadcaster.remove_connection(websocket)
