from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request

from app.auth import Principal, assert_report_scope, get_current_principal
from app.dependencies import get_record_store
from app.services.dashboard_service import (
    PERIODS,
    build_dashboard_summary,
    build_financial_metrics,
    resolve_period,
)
from app.services.filter_parsing import parse_date_range, parse_optional_id
from app.services.record_store import RecordStore, ReportFilter

router = APIRouter(prefix='/api/dashboard', tags=['dashboard'])


def _dashboard_filter(request: Request, principal: Principal, *, default_period: str) -> tuple[ReportFilter, str]:
    params = request.query_params
    period = (params.get('period') or default_period).strip().lower()
    try:
        requested_user_id = parse_optional_id(params.get('userId'), field='userId')
        if params.get('startDate') and params.get('endDate'):
            start_date, end_date = parse_date_range(params.get('startDate'), params.get('endDate'))
            period = 'custom'
        else:
            if period not in PERIODS:
                raise ValueError(f'Unsupported period: {period}')
            date_range = resolve_period(period, today=date.today())
            start_date, end_date = date_range.start_date, date_range.end_date
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    report_filter = ReportFilter(
        organization_id=principal.organization_id,
        start_date=start_date,
        end_date=end_date,
        user_id=assert_report_scope(principal, requested_user_id),
    )
    return report_filter, period


@router.get('/summary')
def dashboard_summary(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    store: RecordStore = Depends(get_record_store),
):
    report_filter, period = _dashboard_filter(request, principal, default_period='week')
    data = build_dashboard_summary(store, report_filter, today=date.today())
    return {'success': True, 'data': {'period': period, **data}}


@router.get('/financial')
def financial_metrics(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    store: RecordStore = Depends(get_record_store),
):
    report_filter, period = _dashboard_filter(request, principal, default_period='month')
    data = build_financial_metrics(store, report_filter)
    return {'success': True, 'data': {'period': period, **data}}
