# fire-and-forget redis pub/sub; a failed publish is logged and dropped
from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import redis
from fastapi.encoders import jsonable_encoder

from agency_crm.config import settings
from agency_crm.redis_client import redis_client

logger = logging.getLogger("agency-crm.events")

TASK_UPDATED = "task:updated"
TASK_STATUS_CHANGED = "task:status_changed"
TASK_DEPENDENCY_ADDED = "task:dependency_added"
TASK_DEPENDENCY_REMOVED = "task:dependency_removed"
CAMPAIGN_UPDATED = "campaign:updated"
CLIENT_UPDATED = "client:updated"
INVOICE_UPDATED = "invoice:updated"
ACTIVITY_ADDED = "activity:added"
NOTIFICATION = "notification"

def _send(channel: str, event: str, data: dict[str, Any]) -> bool:
    if not settings.events_enabled:
        return False

    message = json.dumps({"event": event, "data": jsonable_encoder(data)})
    try:
        redis_client.publish(channel, message)
    except redis.RedisError as e:
        logger.warning("dropped event %s on %s: %s", event, channel, e)
        return False
    return True

def publish(event: str, data: dict[str, Any]) -> bool:
    return _send(settings.events_channel, event, data)

def notify_user(user_id: uuid.UUID, *, type: str, title: str, message: str, link: str | None = None) -> bool:
    channel = f"{settings.events_user_channel_prefix}{user_id}"
    return _send(
        channel,
        NOTIFICATION,
        {"type": type, "title": title, "message": message, "link": link},
    )
