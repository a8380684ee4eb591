from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from typing import Optional
from models.notification import NotificationModel, NotificationPage
from models.notification_prefs import NotificationPrefsModel, NotificationPrefsUpdate
from models.user import UserModel
from notifications.repository import NotificationRepository, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from notifications.sources import UserDirectory
from routes.deps import (
    CredentialsError,
    get_current_user,
    get_notification_repository,
    get_user_directory,
    resolve_user,
)
from logging_config import get_logger

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])
logger = get_logger("notifications")


@router.get("", response_model=NotificationPage)
async def get_notifications(
    unread_only: bool = False,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[str] = None,
    type_filter: Optional[str] = None,
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    """Notifications for the current user, newest first. Pass ``next_cursor`` back as ``cursor`` for the next page."""
    try:
        return await repo.list_for_user(
            current_user.id,
            current_user.tenant_id,
            unread_only=unread_only,
            limit=limit,
            cursor=cursor,
            type_filter=type_filter,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid cursor")


@router.get("/unread-count")
async def get_unread_count(
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    count = await repo.unread_count(current_user.id, current_user.tenant_id)
    return {"count": count}


@router.get("/preferences", response_model=NotificationPrefsModel)
async def get_preferences(
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    """Stored preferences, or the all-enabled defaults when the user never saved any."""
    prefs = await repo.get_preferences(current_user.id)
    if prefs is None:
        return NotificationPrefsModel(user_id=current_user.id, tenant_id=current_user.tenant_id)
    return prefs


@router.patch("/preferences", response_model=NotificationPrefsModel)
async def update_preferences(
    updates: NotificationPrefsUpdate,
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    changes = updates.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    prefs = await repo.upsert_preferences(current_user.id, current_user.tenant_id, changes)
    logger.info(f"Notification preferences updated", extra={"data": {"fields": sorted(changes)}})
    return prefs


@router.patch("/{notification_id}/read", response_model=NotificationModel)
async def mark_as_read(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    notification = await repo.mark_read(notification_id, current_user.id, current_user.tenant_id)
    if notification is None:
        logger.warning(f"Notification not found for mark-as-read", extra={"data": {"notification_id": notification_id}})
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/mark-all-read")
async def mark_all_read(
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    updated = await repo.mark_all_read(current_user.id, current_user.tenant_id)
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/dismiss", response_model=NotificationModel)
async def dismiss_notification(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    notification = await repo.dismiss(notification_id, current_user.id, current_user.tenant_id)
    if notification is None:
        logger.warning(f"Notification not found for dismiss", extra={"data": {"notification_id": notification_id}})
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/dismiss-all")
async def dismiss_all(
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    dismissed = await repo.dismiss_all(current_user.id, current_user.tenant_id)
    return {"success": True, "dismissed": dismissed}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    repo: NotificationRepository = Depends(get_notification_repository),
):
    deleted = await repo.delete(notification_id, current_user.id, current_user.tenant_id)
    return {"success": True, "deleted": deleted}


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: str = Query(...),
    users: UserDirectory = Depends(get_user_directory),
):
    """Live ``notification:new`` events for the token's user. Client messages are ignored (keepalive)."""
    try:
        user = await resolve_user(token, users)
    except CredentialsError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.notifications.connections
    await manager.connect(user.id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user.id, websocket)
