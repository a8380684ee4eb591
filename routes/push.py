from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
from models.user import UserModel
from models.push_subscription import PushSubscriptionModel, PushUnsubscribeModel
from routes.deps import get_current_user, get_push_subscriptions
from config import config
from logging_config import get_logger

router = APIRouter(prefix="/api/push", tags=["Push Notifications"])
logger = get_logger("push")

@router.get("/vapid-public-key")
async def get_vapid_public_key():
    """Return the VAPID public key for the frontend to use when subscribing."""
    public_key = config.VAPID_PUBLIC_KEY
    if not public_key:
        raise HTTPException(status_code=500, detail="VAPID_PUBLIC_KEY is not configured on the server")
    return {"public_key": public_key}

@router.post("/subscribe")
async def subscribe_push(
    subscription: PushSubscriptionModel,
    current_user: UserModel = Depends(get_current_user),
    subscriptions = Depends(get_push_subscriptions),
):
    """Save a push subscription; used when the user has no live notification socket."""
    # Endpoint identifies the browser subscription, so re-subscribing is an upsert
    await subscriptions.update_one(
        {"user_id": current_user.id, "endpoint": subscription.endpoint},
        {
            "$set": {
                "keys": subscription.keys.model_dump(),
                "tenant_id": current_user.tenant_id,
            },
            "$setOnInsert": {"created_at": datetime.now(timezone.utc)},
        },
        upsert=True
    )

    logger.info(f"Push subscription saved", extra={"data": {"user_id": current_user.id}})
    return {"message": "Subscription saved"}

@router.delete("/subscribe")
async def unsubscribe_push(
    subscription: PushUnsubscribeModel,
    current_user: UserModel = Depends(get_current_user),
    subscriptions = Depends(get_push_subscriptions),
):
    result = await subscriptions.delete_one({
        "user_id": current_user.id,
        "endpoint": subscription.endpoint
    })

    if result.deleted_count > 0:
        logger.info(f"Push subscription removed", extra={"data": {"user_id": current_user.id}})

    return {"message": "Subscription removed"}
