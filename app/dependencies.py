from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.services.download_token_service import DownloadTokenBroker
from app.services.record_store import SqlRecordStore


def get_token_broker(request: Request) -> DownloadTokenBroker:
    return request.app.state.download_tokens


def get_record_store(db: Session = Depends(get_db)) -> SqlRecordStore:
    return SqlRecordStore(db)


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None
