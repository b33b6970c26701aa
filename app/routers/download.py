from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.dependencies import get_client_ip, get_token_broker
from app.errors import INVALID_DOWNLOAD_LINK
from app.services.audit_service import REPORT_DOWNLOADED, log_report_event
from app.services.download_token_service import DownloadTokenBroker
from app.services.export_service import generate_report
from app.services.record_store import SqlRecordStore

router = APIRouter(tags=['download'])


@router.get('/download/{token}')
def download_report(
    token: str,
    request: Request,
    broker: DownloadTokenBroker = Depends(get_token_broker),
    db: Session = Depends(get_db),
):
    spec = broker.redeem(token)
    if spec is None:
        raise HTTPException(status_code=403, detail=INVALID_DOWNLOAD_LINK)

    # Only what was bound at issuance drives the report.
    report = generate_report(SqlRecordStore(db), spec)

    log_report_event(
        db,
        action=REPORT_DOWNLOADED,
        spec=spec,
        ip=get_client_ip(request),
        bytes=len(report.content),
    )
    db.commit()

    return StreamingResponse(
        iter([report.content]),
        media_type=report.media_type,
        headers={'Content-Disposition': f'attachment; filename="{report.file_name}"'},
    )
