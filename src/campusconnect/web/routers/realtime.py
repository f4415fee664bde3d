"""Realtime chat over WebSocket, authenticated with single-use bridge tokens.

Protocol, one JSON object per text frame:

    client -> {"token": "<bridge token>"}            first frame, within the handshake timeout
    server -> {"event": "ready", "account_id": ...}
    client -> {"event": "subscribe", "channel": ...}
    client -> {"event": "unsubscribe", "channel": ...}
    client -> {"event": "message", "channel": ..., "content": ..., "temp_id": ...}
    server -> {"event": "message", ...} to every subscriber of the channel
    server -> {"event": "error", "message": ...}
"""

import asyncio
import json
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from campusconnect.app import App
from campusconnect.core.modules.realtime.hub import RealtimeConnection
from campusconnect.errors import AuthErrorKind, SessionError, UserError, ValidationError
from campusconnect.web.deps import AppDep, MemberDep
from campusconnect.web.openapi import ErrorResponse

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["realtime"])

NOT_AUTHORIZED = "Not authorized."


class RealtimeTokenResponse(BaseModel):
    success: bool = True
    token: str = Field(..., description="Bridge token for the WebSocket handshake")
    expires_in: int = Field(..., description="Seconds until the bridge token expires")
    account_id: UUID


@router.post(
    "/realtime/token",
    summary="Issue realtime token",
    description="Issue a short-lived, single-use token that authenticates the realtime WebSocket.",
    operation_id="issueRealtimeToken",
    responses={
        200: {"description": "Bridge token issued"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Not a member session"},
    },
)
async def issue_realtime_token(app: AppDep, identity: MemberDep) -> RealtimeTokenResponse:
    bridge = await app.issue_realtime_token(identity)
    return RealtimeTokenResponse(token=bridge.token, expires_in=bridge.expires_in, account_id=identity.account_id)


async def receive_frame(websocket: WebSocket) -> dict[str, Any]:
    """Read one JSON object frame. Raises ValueError on anything else."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    text = message.get("text")
    if text is None:
        raise ValueError("binary frames are not supported")
    frame = json.loads(text)
    if not isinstance(frame, dict):
        raise ValueError("frame must be a JSON object")
    return frame


async def send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "message": message})


async def authenticate_socket(app: App, websocket: WebSocket) -> RealtimeConnection | None:
    """Run the handshake; on failure report "Not authorized." and close."""
    close_code = status.WS_1008_POLICY_VIOLATION
    try:
        async with asyncio.timeout(app.config.realtime_handshake_timeout_seconds):
            frame = await receive_frame(websocket)
        token = frame.get("token")
        return await app.open_realtime_connection(token if isinstance(token, str) else None, websocket.send_json)
    except TimeoutError:
        logger.info("realtime_handshake_rejected", reason="timeout")
    except ValueError:
        logger.info("realtime_handshake_rejected", reason="malformed_frame")
    except SessionError as exc:
        if exc.kind is AuthErrorKind.DEPENDENCY_FAILURE:
            logger.warning("realtime_handshake_rejected", reason=str(exc.kind))
            close_code = status.WS_1011_INTERNAL_ERROR
        else:
            logger.info("realtime_handshake_rejected", reason=str(exc.kind))

    await send_error(websocket, NOT_AUTHORIZED)
    await websocket.close(code=close_code)
    return None


async def dispatch(app: App, connection: RealtimeConnection, websocket: WebSocket, frame: dict[str, Any]) -> None:
    event = frame.get("event")
    channel = frame.get("channel")
    if not isinstance(channel, str):
        raise ValidationError("Channel required.")

    match event:
        case "subscribe":
            app.subscribe(connection, channel)
            await websocket.send_json({"event": "subscribed", "channel": channel})
        case "unsubscribe":
            app.unsubscribe(connection, channel)
            await websocket.send_json({"event": "unsubscribed", "channel": channel})
        case "message":
            content = frame.get("content")
            temp_id = frame.get("temp_id")
            await app.publish(
                connection,
                channel,
                content if isinstance(content, str) else "",
                temp_id if isinstance(temp_id, str) else None,
            )
        case _:
            raise ValidationError("Unknown event.")


@router.websocket("/realtime")
async def realtime(websocket: WebSocket, app: AppDep) -> None:
    await websocket.accept()
    try:
        connection = await authenticate_socket(app, websocket)
    except WebSocketDisconnect:
        return
    if connection is None:
        return

    logger.info("realtime_connected", account_id=connection.claims.account_id, connection_id=connection.id)
    try:
        await websocket.send_json({"event": "ready", "account_id": str(connection.claims.account_id)})
        while True:
            try:
                frame = await receive_frame(websocket)
            except ValueError:
                await send_error(websocket, "Invalid frame.")
                continue
            try:
                await dispatch(app, connection, websocket, frame)
            except UserError as exc:
                await send_error(websocket, str(exc))
    except WebSocketDisconnect:
        logger.info("realtime_disconnected", account_id=connection.claims.account_id, connection_id=connection.id)
    finally:
        app.close_realtime_connection(connection)
