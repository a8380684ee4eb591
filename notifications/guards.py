"""
Delivery gates run before a notification is written.

The two gates fail in opposite directions on lookup errors: the tenant check
is an isolation boundary and denies, the preference check allows so that a
preference-store outage does not drop every notification.
"""

from typing import Optional

from models.notification_prefs import preference_field
from logging_config import get_logger

logger = get_logger("notification_guards")


async def validate_user_tenant(users, user_id: str, tenant_id: Optional[str]) -> bool:
    """True when ``user_id`` may receive a notification scoped to ``tenant_id``."""
    if not tenant_id:
        return True

    try:
        user = await users.get_user(user_id)
    except Exception as exc:
        logger.warning(
            f"Tenant lookup failed, denying delivery: {exc}",
            extra={"data": {"user_id": user_id, "tenant_id": tenant_id}},
        )
        return False

    if user is None:
        return False
    return user.tenant_id == tenant_id


async def should_notify_user(preferences, user_id: str, notification_type: str) -> bool:
    """True unless the user explicitly switched this notification type off."""
    field = preference_field(notification_type)
    if field is None:
        return True

    try:
        prefs = await preferences.get_preferences(user_id)
    except Exception as exc:
        logger.warning(
            f"Preference lookup failed, delivering anyway: {exc}",
            extra={"data": {"user_id": user_id, "type": notification_type}},
        )
        return True

    if prefs is None:
        return True
    return getattr(prefs, field, True) is not False
