"""Immutable audit logging of privileged actions."""

from typing import Optional, Dict, Any
import logging

from sqlalchemy.exc import SQLAlchemyError

from xuibot.db.models import AuditLog
from xuibot.utils.time_helpers import utcnow

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Immutable audit trail (INSERT only, NEVER DELETE/UPDATE).
    
    Records host registrations, monitor start/stop and admin state changes.
    """
    
    def __init__(self, db):
        """
        Args:
            db: DatabaseConnection instance
        """
        self.db = db
    
    async def log(
        self,
        user_id: int,
        action: str,
        status: str = "success",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log action to audit trail.
        
        Args:
            user_id: Who performed the action
            action: What action (e.g., "host.added")
            status: "success" or "failure"
            resource_type: "host", "user" or "monitor"
            resource_id: ID of affected resource
            error_code: Error code if failed
            details: Additional context as dict
        
        Examples:
            >>> await audit_logger.log(
            ...     user_id=123,
            ...     action="host.added",
            ...     resource_type="host",
            ...     resource_id="7",
            ...     details={"url": "https://panel:2053"}
            ... )
        """
        entry = AuditLog(
            user_id=user_id,
            action=action,
            status=status,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            error_code=error_code,
            details=details or {},
            created_at=utcnow(),
        )
        
        try:
            async with self.db.session() as session:
                session.add(entry)
                await session.commit()
        except SQLAlchemyError as e:
            # Audit failure must not break the action being audited
            logger.critical(f"AUDIT_FAILURE: Could not log {action} for user {user_id}: {e}")
            return
        
        logger.info(
            f"AUDIT: {action} | user={user_id} | status={status} | "
            f"resource={resource_type}:{resource_id}"
        )
