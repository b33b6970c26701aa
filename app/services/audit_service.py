from __future__ import annotations

from sqlalchemy.orm import Session

from app.models import AuditLog, AuthEvent
from app.services.export_service import ReportSpec

AUTH_LOGIN = 'AUTH_LOGIN'
AUTH_LOGOUT = 'AUTH_LOGOUT'
REPORT_EXPORTED = 'REPORT_EXPORTED'
REPORT_DOWNLOADED = 'REPORT_DOWNLOADED'


def log_auth_event(
    db: Session,
    *,
    attempted_username: str,
    success: bool,
    ip: str | None,
    user_agent: str | None,
    principal_id: int | None = None,
    failure_reason: str | None = None,
) -> None:
    db.add(
        AuthEvent(
            attempted_username=attempted_username,
            success=success,
            failure_reason=failure_reason,
            principal_id=principal_id,
            ip=ip,
            user_agent=user_agent,
        )
    )


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    organization_id: int | None,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            actor_principal_id=actor_principal_id,
            organization_id=organization_id,
            action=action,
            ip=ip,
            meta=metadata or {},
        )
    )


def log_report_event(db: Session, *, action: str, spec: ReportSpec, ip: str | None, **details) -> None:
    """Audit a report export or download; the token itself is never recorded."""
    metadata = {
        'format': spec.format.value,
        'start_date': spec.start_date.isoformat(),
        'end_date': spec.end_date.isoformat(),
        'user_id': spec.user_id,
        'file_name': spec.file_name,
    }
    metadata.update(details)
    log_audit(
        db,
        actor_principal_id=spec.requested_by,
        action=action,
        organization_id=spec.organization_id,
        ip=ip,
        metadata=metadata,
    )
