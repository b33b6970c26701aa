from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.auth import Principal, assert_report_scope, get_current_principal, is_owner
from app.config import settings
from app.db import get_db
from app.dependencies import get_client_ip, get_record_store, get_token_broker
from app.logging_utils import get_logger
from app.services.audit_service import REPORT_EXPORTED, log_report_event
from app.services.download_token_service import DownloadTokenBroker
from app.services.export_service import ReportSpec, build_export_rows, generate_report
from app.services.filter_parsing import parse_date_range, parse_entry_type, parse_optional_id, parse_report_format
from app.services.record_store import RecordStore, ReportFilter
from app.services.report_data_service import group_truck_records, list_report_templates, paginate
from app.services.summary_service import summarize

LOGGER = get_logger(__name__)

router = APIRouter(prefix='/api/reports', tags=['reports'])

DELIVERY_MODES = {'inline', 'link'}


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: str | None = Field(default=None, alias='startDate')
    end_date: str | None = Field(default=None, alias='endDate')
    format: str | None = 'csv'
    delivery: str | None = 'link'
    user_id: int | None = Field(default=None, alias='userId')


def build_report_filter(request: Request, principal: Principal) -> ReportFilter:
    params = request.query_params
    try:
        start_date, end_date = parse_date_range(params.get('startDate'), params.get('endDate'))
        requested_user_id = parse_optional_id(params.get('userId'), field='userId')
        entry_type = parse_entry_type(params.get('entryType'))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    material_type = (params.get('materialType') or '').strip() or None
    truck_number = (params.get('truckNumber') or '').strip().upper() or None
    return ReportFilter(
        organization_id=principal.organization_id,
        start_date=start_date,
        end_date=end_date,
        user_id=assert_report_scope(principal, requested_user_id),
        entry_type=entry_type,
        material_type=material_type,
        truck_number=truck_number,
    )


@router.get('/summary')
def report_summary(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    store: RecordStore = Depends(get_record_store),
):
    report_filter = build_report_filter(request, principal)
    summary = summarize(store, report_filter)
    return {'success': True, 'data': {'summary': summary.as_dict()}}


@router.get('/data')
def report_data(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    store: RecordStore = Depends(get_record_store),
):
    report_filter = build_report_filter(request, principal)
    params = request.query_params
    group_by = (params.get('groupBy') or 'date').strip()
    descending = (params.get('sortOrder') or 'desc').strip().lower() != 'asc'
    if group_by == 'user' and not is_owner(principal):
        raise HTTPException(status_code=403, detail='Owner access required')

    try:
        page_number = int(params.get('page') or 1)
        limit = int(params.get('limit') or 50)
        records = store.list_truck_records(report_filter)
        rows = build_export_rows(records, [])
        if not descending:
            rows.reverse()
        page = paginate(rows, page=page_number, limit=limit)
        grouped = group_truck_records(records, group_by=group_by, descending=descending)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    summary = summarize(store, report_filter)
    return {
        'success': True,
        'data': {
            'entries': [row.as_dict() for row in page.items],
            'summary': summary.as_dict(),
            'groupedData': [row.as_dict() for row in grouped],
            'filters': {
                'startDate': report_filter.start_date.isoformat(),
                'endDate': report_filter.end_date.isoformat(),
                'entryType': report_filter.entry_type.value if report_filter.entry_type else None,
                'materialType': report_filter.material_type,
                'truckNumber': report_filter.truck_number,
                'userId': report_filter.user_id,
                'groupBy': group_by,
            },
            'pagination': {
                'currentPage': page.page,
                'totalPages': page.total_pages,
                'totalEntries': page.total,
                'entriesPerPage': page.limit,
            },
        },
    }


@router.get('/templates')
def report_templates(principal: Principal = Depends(get_current_principal)):
    return {'success': True, 'data': {'templates': list_report_templates(include_owner_templates=is_owner(principal))}}


@router.post('/export')
def export_report(
    payload: ExportRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    store: RecordStore = Depends(get_record_store),
    broker: DownloadTokenBroker = Depends(get_token_broker),
):
    delivery = (payload.delivery or 'link').strip().lower()
    try:
        start_date, end_date = parse_date_range(payload.start_date, payload.end_date)
        report_format = parse_report_format(payload.format)
        if delivery not in DELIVERY_MODES:
            raise ValueError(f'Unsupported delivery mode: {payload.delivery}')
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    spec = ReportSpec(
        organization_id=principal.organization_id,
        start_date=start_date,
        end_date=end_date,
        format=report_format,
        created_at=datetime.now(tz=timezone.utc),
        user_id=assert_report_scope(principal, payload.user_id),
        requested_by=principal.id,
    )

    if delivery == 'inline':
        report = generate_report(store, spec)
        LOGGER.info(
            'Inline %s export for organization=%s range=%s..%s (%s bytes)',
            report_format.value,
            spec.organization_id,
            start_date.isoformat(),
            end_date.isoformat(),
            len(report.content),
        )
        log_report_event(db, action=REPORT_EXPORTED, spec=spec, ip=get_client_ip(request), delivery=delivery)
        db.commit()
        return StreamingResponse(
            iter([report.content]),
            media_type=report.media_type,
            headers={'Content-Disposition': f'attachment; filename="{report.file_name}"'},
        )

    token = broker.issue(spec)
    log_report_event(db, action=REPORT_EXPORTED, spec=spec, ip=get_client_ip(request), delivery=delivery)
    db.commit()
    return {
        'success': True,
        'message': f'Export generated in {report_format.value.upper()} format',
        'data': {
            'downloadUrl': f'{settings.public_base_url.rstrip("/")}/download/{token}',
            'fileName': spec.file_name,
            'expiresInSeconds': int(broker.ttl.total_seconds()),
        },
    }
