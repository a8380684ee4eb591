import asyncio
import json
from pywebpush import webpush, WebPushException
from config import config
from logging_config import get_logger

logger = get_logger("push_utils")


def push_configured() -> bool:
    return bool(config.VAPID_PRIVATE_KEY and config.VAPID_CLAIM_EMAIL)


async def send_push_notification(subscriptions, user_id: str, title: str, message: str, url: str = "/") -> int:
    """
    Send a Web Push Notification to all stored subscriptions for a user.
    ``subscriptions`` is the push_subscriptions collection.
    Returns the number of successful pushes.
    """
    if not push_configured():
        logger.debug("VAPID keys not configured. Skipping push notification.")
        return 0

    subs = await subscriptions.find({"user_id": user_id}).to_list(10)
    if not subs:
        return 0

    vapid_claims = {"sub": config.VAPID_CLAIM_EMAIL}
    payload = json.dumps({
        "title": title,
        "body": message,
        "data": {"url": url},
    })

    success_count = 0
    endpoints_to_remove = []

    for sub in subs:
        sub_info = {"endpoint": sub["endpoint"], "keys": sub["keys"]}
        try:
            # pywebpush is blocking; keep it off the event loop
            await asyncio.to_thread(
                webpush,
                subscription_info=sub_info,
                data=payload,
                vapid_private_key=config.VAPID_PRIVATE_KEY,
                vapid_claims=vapid_claims,
            )
            success_count += 1
        except WebPushException as ex:
            # 404/410: the browser dropped the subscription
            if ex.response is not None and ex.response.status_code in (410, 404):
                endpoints_to_remove.append(sub["endpoint"])
            else:
                logger.error(f"Failed to send Web Push: {repr(ex)}")

    if endpoints_to_remove:
        await subscriptions.delete_many({
            "user_id": user_id,
            "endpoint": {"$in": endpoints_to_remove}
        })
        logger.info(f"Removed {len(endpoints_to_remove)} expired push subscriptions for user {user_id}")

    return success_count
