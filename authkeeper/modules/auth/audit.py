"""Security audit trail stored in a capped Redis list."""

import json
import logging
from datetime import UTC, datetime
from typing import Optional

logger = logging.getLogger(__name__)

AUDIT_KEY = "auth:audit"
AUDIT_MAX_EVENTS = 10000


class AuditLog:
    """
    Records security events for later review.

    Without a Redis client (in-memory deployments, tests) events only go to
    the application log.
    """

    def __init__(self, redis_client=None, key: str = AUDIT_KEY):
        self.redis = redis_client
        self.key = key

    async def record(self, event_type: str, data: dict, correlation_id: Optional[str] = None):
        """
        Log security event for audit with optional correlation ID.

        Args:
            event_type: Type of security event
            data: Event data (never include token values or passwords)
            correlation_id: Optional request correlation ID
        """
        event = {
            "type": event_type,
            "data": data,
            "correlation_id": correlation_id,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        logger.info(f"audit {event_type}: {data}")

        if self.redis:
            await self.redis.lpush(self.key, json.dumps(event))
            await self.redis.ltrim(self.key, 0, AUDIT_MAX_EVENTS - 1)
