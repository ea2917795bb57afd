"""Activity logging helpers.

Best-effort audit trail: failures should not break the main request.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from flask import has_request_context, request

from extensions import db

logger = logging.getLogger(__name__)


def log_activity(
    *,
    user_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> None:
    try:
        from models.user import ActivityLog

        in_request = has_request_context()
        log = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=(request.remote_addr if in_request else None),
            user_agent=(request.user_agent.string[:255] if in_request and request.user_agent else None),
        )
        db.session.add(log)
        db.session.commit()
    except Exception as e:
        logger.warning("Activity log '%s' not recorded: %s", action, e)
        try:
            db.session.rollback()
        except Exception:
            pass
