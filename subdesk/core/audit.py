# subdesk/core/audit.py
"""
Deletion trail for subdesk records.

Removing a client, subscription, invoice or weekly broadcast appends one JSON
object per line to ``logs/audit.log`` naming who removed what, and from where.
The file is opened on the first entry so that importing the app never touches
the filesystem.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request

from ..models.user import User

LOG_DIR = "logs"
AUDIT_LOG_FILE = os.path.join(LOG_DIR, "audit.log")

audit_logger = logging.getLogger("subdesk.audit")
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False


def _audit_log() -> logging.Logger:
    if not audit_logger.handlers:
        os.makedirs(os.path.dirname(AUDIT_LOG_FILE) or ".", exist_ok=True)
        handler = logging.FileHandler(AUDIT_LOG_FILE, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger.addHandler(handler)
    return audit_logger


def caller_ip(request: Optional[Request]) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the peer address."""
    if request is None:
        return "unknown"
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def log_action(
    action: str,
    resource_type: str,
    resource_id: str,
    user: Optional[User] = None,
    request: Optional[Request] = None,
    details: Optional[dict] = None,
    status: str = "success",
) -> dict:
    """Append one entry such as ``DELETE invoice <id>`` and return it."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.upper(),
        "resource_type": resource_type,
        "resource_id": str(resource_id),
        "user": user.email if user else "anonymous",
        "ip_address": caller_ip(request),
        "status": status,
    }
    if details:
        entry["details"] = details
    _audit_log().info(json.dumps(entry, ensure_ascii=False))
    return entry
