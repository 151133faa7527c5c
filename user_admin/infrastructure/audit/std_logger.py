import json
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger

SECRET_KEYS = {"password", "password_hash", "plain_password", "avatar_data"}


class StdAuditLogger(AuditLogger):
    def __init__(self, logger_name: str = "user_admin.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, user_id: Optional[int] = None, email: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        safe_details = {k: v for k, v in (details or {}).items() if k not in SECRET_KEYS}
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "user_id": user_id,
            "email_hash": hashlib.sha256(email.lower().encode()).hexdigest() if email else None,
            "success": success,
            "details": safe_details,
        }
        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, f"AUDIT: {json.dumps(entry, default=str)}")
