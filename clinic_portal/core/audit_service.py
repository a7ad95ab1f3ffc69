from sqlalchemy.orm import Session
from fastapi import Request
from typing import Optional, Dict, Any, List

from .audit_models import AuditLog

async def create_audit_log(
    db: Session,
    action: str,
    identity_id: Optional[str] = None,
    request: Optional[Request] = None,
    details: Optional[Dict[str, Any]] = None,
    commit: bool = True
) -> AuditLog:
    """
    Creates an audit log entry.

    Args:
        db: The database session.
        action: A string describing the action performed (e.g., 'STAFF_ACCOUNT_PROVISIONED').
        identity_id: The identity that performed the action (if applicable).
        request: The FastAPI request object to extract IP address (if available).
        details: Additional context. Must not contain passwords or hashes.
        commit: Commit immediately. Pass False to make the entry part of the
            caller's open transaction, so it is only kept if the change is.

    Returns:
        The created AuditLog object.
    """
    ip_address = None
    if request and request.client:
        ip_address = request.client.host

    audit_entry = AuditLog(
        identity_id=identity_id,
        action=action,
        ip_address=ip_address,
        details=details
    )
    db.add(audit_entry)
    if commit:
        db.commit()
        db.refresh(audit_entry)
    return audit_entry


def list_audit_logs(
    db: Session,
    identity_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0
) -> List[AuditLog]:
    """
    Retrieves audit logs, newest first, optionally filtered by acting identity.
    """
    query = db.query(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    if identity_id:
        query = query.filter(AuditLog.identity_id == identity_id)
    return query.offset(offset).limit(limit).all()
