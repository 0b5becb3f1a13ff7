"""WebSocket endpoint — the transport for the real-time channel.

Learn: Each client connects to /ws?token=... (or sends an
`Authorization: Bearer` header). The handler:
1. Authenticates before accepting — a bad credential is refused (4001)
2. Without a handshake credential, accepts and waits a bounded time for
   an {"type": "authenticate"} frame — silence is closed with 4008
3. Runs a reader task (frames → typed commands → lifecycle manager)
   and a writer task (connection outbox → frames)
4. On any exit, runs the lifecycle manager's disconnect cleanup (a
   handshake that fails for any other reason closes with 1011)

This is a long-lived connection — one per app session.
"""

import asyncio

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from checkin.auth.verifier import extract_bearer
from checkin.errors import AuthenticationFailure
from checkin.realtime.connection import Connection
from checkin.realtime.lifecycle import ConnectionLifecycleManager
from checkin.realtime.messages import Authenticate, parse_command

logger = structlog.get_logger()
router = APIRouter()

CLOSE_AUTH_FAILED = 4001
CLOSE_HANDSHAKE_TIMEOUT = 4008
CLOSE_SERVER_ERROR = 1011


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket):
    """WebSocket endpoint for live event rooms."""
    manager: ConnectionLifecycleManager = websocket.app.state.lifecycle
    connection = manager.open()

    # ── Authentication ──────────────────────────────────────
    credential = websocket.query_params.get("token") or extract_bearer(
        websocket.headers.get("authorization")
    )

    try:
        if credential:
            await manager.authenticate(connection, credential)
            await websocket.accept()
        else:
            await websocket.accept()
            await asyncio.wait_for(
                _authenticate_first_frame(websocket, manager, connection),
                timeout=manager.handshake_timeout,
            )
    except asyncio.TimeoutError:
        await manager.disconnect(connection, reason="handshake_timeout")
        await websocket.close(
            code=CLOSE_HANDSHAKE_TIMEOUT, reason="Authentication timed out"
        )
        return
    except AuthenticationFailure as e:
        await manager.disconnect(connection, reason="auth_failed")
        await websocket.close(code=CLOSE_AUTH_FAILED, reason=str(e))
        return
    except WebSocketDisconnect:
        await manager.disconnect(connection, reason="client_closed")
        return
    except Exception as e:
        logger.error(
            "realtime.handshake_failed", connection_id=connection.id, error=str(e)
        )
        await manager.disconnect(connection, reason="handshake_error")
        await websocket.close(code=CLOSE_SERVER_ERROR, reason="Authentication failed")
        return

    # ── Connection established ──────────────────────────────
    writer = asyncio.create_task(_pump_outbox(websocket, connection))
    reader = asyncio.create_task(_read_commands(websocket, manager, connection))

    try:
        # Wait for either to finish (usually client disconnect)
        done, _ = await asyncio.wait(
            [writer, reader],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            if task.exception() is not None:
                logger.warning(
                    "realtime.transport_error",
                    connection_id=connection.id,
                    error=str(task.exception()),
                )
    finally:
        # Also reached when the server cancels this handler on shutdown.
        for task in (writer, reader):
            task.cancel()
        await manager.disconnect(connection, reason="transport_closed")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()


async def _authenticate_first_frame(
    websocket: WebSocket,
    manager: ConnectionLifecycleManager,
    connection: Connection,
) -> None:
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    raw = message.get("text")
    if raw is None:
        raise AuthenticationFailure("Authentication token required")
    try:
        command = parse_command(raw)
    except ValidationError:
        raise AuthenticationFailure("Authentication token required")
    if not isinstance(command, Authenticate):
        raise AuthenticationFailure("Authentication token required")
    await manager.authenticate(connection, command.token)


async def _read_commands(
    websocket: WebSocket,
    manager: ConnectionLifecycleManager,
    connection: Connection,
) -> None:
    """Parse inbound frames and hand them to the lifecycle manager."""
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                command = parse_command(raw)
            except ValidationError as e:
                logger.debug(
                    "realtime.invalid_frame",
                    connection_id=connection.id,
                    errors=e.error_count(),
                )
                manager.reject(connection, "Invalid message", "INVALID_MESSAGE")
                continue
            await manager.handle(connection, command)
    except WebSocketDisconnect:
        pass


async def _pump_outbox(websocket: WebSocket, connection: Connection) -> None:
    """Forward queued notifications to the client until the outbox closes."""
    while True:
        payload = await connection.outbox.get()
        if payload is None:
            return
        await websocket.send_json(payload)
