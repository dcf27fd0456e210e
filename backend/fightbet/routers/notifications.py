from fastapi import APIRouter, Depends, Query
from fightbet.core.deps import get_current_user, get_notifications
from fightbet.models.user import User
from fightbet.services.notifications import NotificationService, notification_dict

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

@router.get("")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    items = await notifications.list_for_user(user.id, unread_only=unread_only, limit=limit, offset=offset)
    return [notification_dict(n) for n in items]

@router.get("/unread-count")
async def unread_count(
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    return {"count": await notifications.unread_count(user.id)}

@router.post("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    return {"updated": await notifications.mark_all_read(user.id)}

@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    await notifications.mark_read(user.id, notification_id)
    return {"message": "read"}

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notifications),
):
    await notifications.remove(user.id, notification_id)
    return {"message": "deleted"}
