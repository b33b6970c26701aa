from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.dependencies import get_client_ip
from app.models import Principal as PrincipalModel
from app.security.passwords import verify_password
from app.security.sessions import create_web_session, revoke_web_session
from app.services.audit_service import AUTH_LOGIN, AUTH_LOGOUT, log_audit, log_auth_event

router = APIRouter(tags=['auth'])

INVALID_CREDENTIALS = 'Invalid username or password'


def _reject_login(db: Session, *, username: str, reason: str, principal_id: int | None, ip, user_agent) -> JSONResponse:
    log_auth_event(
        db,
        attempted_username=username,
        success=False,
        failure_reason=reason,
        principal_id=principal_id,
        ip=ip,
        user_agent=user_agent,
    )
    db.commit()
    return JSONResponse({'success': False, 'message': INVALID_CREDENTIALS}, status_code=401)


@router.post('/login')
async def login_submit(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    username = str(form.get('username', '')).strip()
    password = str(form.get('password', ''))
    ip = get_client_ip(request)
    user_agent = request.headers.get('user-agent')

    principal = db.execute(select(PrincipalModel).where(PrincipalModel.username == username)).scalar_one_or_none()
    if not principal:
        verify_password(password, None)
        return _reject_login(db, username=username, reason='UNKNOWN_USERNAME', principal_id=None, ip=ip, user_agent=user_agent)
    if not principal.active:
        return _reject_login(
            db, username=username, reason='INACTIVE_PRINCIPAL', principal_id=principal.id, ip=ip, user_agent=user_agent
        )
    if not verify_password(password, principal.password_hash):
        return _reject_login(db, username=username, reason='BAD_PASSWORD', principal_id=principal.id, ip=ip, user_agent=user_agent)

    token = create_web_session(db, principal.id, ip=ip, user_agent=user_agent)
    principal.last_login_at = datetime.now(tz=timezone.utc)
    log_auth_event(
        db,
        attempted_username=username,
        success=True,
        failure_reason=None,
        principal_id=principal.id,
        ip=ip,
        user_agent=user_agent,
    )
    log_audit(
        db,
        actor_principal_id=principal.id,
        action=AUTH_LOGIN,
        organization_id=principal.organization_id,
        ip=ip,
        metadata={'username': username},
    )
    db.commit()

    response = JSONResponse(
        {
            'success': True,
            'data': {
                'id': principal.id,
                'username': principal.username,
                'role': principal.role.value,
                'organizationId': principal.organization_id,
            },
        }
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db)):
    principal = getattr(request.state, 'principal', None)
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        revoke_web_session(db, token)

    log_audit(
        db,
        actor_principal_id=principal.id if principal else None,
        action=AUTH_LOGOUT,
        organization_id=principal.organization_id if principal else None,
        ip=get_client_ip(request),
        metadata={},
    )
    db.commit()

    response = JSONResponse({'success': True})
    response.delete_cookie(settings.session_cookie_name)
    return response
