# carelink/api/v1/endpoints/realtime.py
import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from carelink.api.v1.endpoints.auth import resolve_user_from_token
from carelink.core.database import session_scope
from carelink.services.change_feed import change_feed
from carelink.services.permission_service import AdminSurface
from carelink.services.user_role_service import get_user_role_set

router = APIRouter()
logger = logging.getLogger(__name__)


def _resolve_scope(token: str) -> tuple[UUID, UUID | None] | None:
    """
    (user_id, patient_id filter) for a token, or None if it is not valid.
    Consultation admins get the unfiltered feed.
    """
    with session_scope() as db:
        try:
            user = resolve_user_from_token(db, token)
        except HTTPException:
            return None
        roles = get_user_role_set(db, user.id)
        patient_filter = None if roles.can_access(AdminSurface.CONSULTATIONS) else user.id
        return user.id, patient_filter


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/consultations")
async def consultation_changes(websocket: WebSocket, token: str = Query(...)):
    """
    Push a refetch hint whenever a consultation in the caller's scope changes.

    Closed by the server (code 4001) when the user signs out or their roles
    change; clients reconnect to be re-scoped.
    """
    scope = await run_in_threadpool(_resolve_scope, token)
    if scope is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id, patient_filter = scope
    await websocket.accept()
    listener = change_feed.listen(
        user_id=user_id,
        patient_id=patient_filter,
        loop=asyncio.get_running_loop(),
    )
    disconnect_task = asyncio.create_task(_wait_for_disconnect(websocket))

    try:
        await websocket.send_json({"type": "subscribed", "scope": listener.scope})
        while True:
            next_message = asyncio.create_task(listener.get())
            done, _ = await asyncio.wait(
                {next_message, disconnect_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if disconnect_task in done:
                next_message.cancel()
                break

            message = next_message.result()
            if message is None:
                await websocket.close(code=4001, reason=listener.close_reason or "closed")
                break
            await websocket.send_json(message)
    except WebSocketDisconnect:
        pass
    finally:
        disconnect_task.cancel()
        listener.close()
        logger.debug("Change feed listener closed for user=%s", user_id)
