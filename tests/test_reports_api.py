from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from support import sqlite_session_factory

from app.dependencies import get_record_store
from app.main import create_app
from app.models import AuditLog, EntryType, Organization, OtherExpense, Principal, PrincipalRole, TruckEntry
from app.security.passwords import hash_password
from app.services.download_token_service import DownloadTokenBroker

JUNE_RANGE = {'startDate': '2024-06-01', 'endDate': '2024-06-30'}


class FakeClock:
    def __init__(self) -> None:
        self.current = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class UnavailableRecordStore:
    def _fail(self, *_args, **_kwargs):
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    truck_totals_by_type = _fail
    expense_totals = _fail
    list_truck_records = _fail
    list_expense_records = _fail


class ReportApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.owner_hash = hash_password('ownerpass')
        cls.clerk_hash = hash_password('clerkpass')

    def setUp(self) -> None:
        self.session_factory = sqlite_session_factory()
        self.clock = FakeClock()
        self.broker = DownloadTokenBroker(ttl=timedelta(seconds=120), clock=self.clock)
        self.app = create_app(session_factory=self.session_factory, token_broker=self.broker)
        self.client = TestClient(self.app)
        self.addCleanup(self.client.close)
        self.seed()

    def seed(self) -> None:
        with self.session_factory() as db:
            org = Organization(name='Sri Crusher')
            db.add(org)
            db.flush()
            owner = Principal(
                organization_id=org.id, username='owner', password_hash=self.owner_hash, role=PrincipalRole.OWNER, active=True
            )
            clerk = Principal(
                organization_id=org.id, username='clerk', password_hash=self.clerk_hash, role=PrincipalRole.USER, active=True
            )
            db.add_all([owner, clerk])
            db.flush()
            db.add_all(
                [
                    TruckEntry(
                        organization_id=org.id,
                        user_id=clerk.id,
                        truck_number='KA01AB1234',
                        truck_name='Ravi',
                        entry_type=EntryType.SALES,
                        material_type='3/4" Jalli',
                        units=Decimal('10'),
                        rate_per_unit=Decimal('22000'),
                        entry_date=date(2024, 6, 10),
                        entry_time='09:15',
                    ),
                    TruckEntry(
                        organization_id=org.id,
                        user_id=owner.id,
                        truck_number='KA09EF9012',
                        truck_name='Manju',
                        entry_type=EntryType.RAW_STONE,
                        units=Decimal('8'),
                        rate_per_unit=Decimal('18000'),
                        entry_date=date(2024, 6, 10),
                        entry_time='14:05',
                    ),
                    OtherExpense(
                        organization_id=org.id,
                        user_id=owner.id,
                        expense_name='Diesel',
                        amount=Decimal('5000'),
                        expense_date=date(2024, 6, 11),
                    ),
                ]
            )
            db.commit()
            self.owner_id = owner.id
            self.clerk_id = clerk.id

    def login(self, username: str, password: str, client: TestClient | None = None) -> None:
        response = (client or self.client).post('/login', data={'username': username, 'password': password})
        self.assertEqual(response.status_code, 200, response.text)

    def export_link(self, **payload) -> dict:
        response = self.client.post('/api/reports/export', json={**JUNE_RANGE, 'delivery': 'link', **payload})
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()['data']

    def test_summary_requires_login(self) -> None:
        response = self.client.get('/api/reports/summary', params=JUNE_RANGE)
        self.assertEqual(response.status_code, 401)

    def test_bad_password_is_rejected(self) -> None:
        response = self.client.post('/login', data={'username': 'owner', 'password': 'wrong'})
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()['success'])

    def test_owner_summary_totals(self) -> None:
        self.login('owner', 'ownerpass')

        response = self.client.get('/api/reports/summary', params=JUNE_RANGE)

        self.assertEqual(response.status_code, 200)
        summary = response.json()['data']['summary']
        self.assertEqual(summary['totalSales'], 220000.0)
        self.assertEqual(summary['totalRawStone'], 144000.0)
        self.assertEqual(summary['totalOtherExpenses'], 5000.0)
        self.assertEqual(summary['totalExpenses'], 149000.0)
        self.assertEqual(summary['netProfit'], 71000.0)
        self.assertEqual(summary['totalEntries'], 3)

    def test_clerk_summary_is_scoped_to_own_entries(self) -> None:
        self.login('clerk', 'clerkpass')

        summary = self.client.get('/api/reports/summary', params=JUNE_RANGE).json()['data']['summary']

        self.assertEqual(summary['totalSales'], 220000.0)
        self.assertEqual(summary['totalRawStone'], 0.0)
        self.assertEqual(summary['salesCount'], 1)

    def test_clerk_cannot_request_another_users_report(self) -> None:
        self.login('clerk', 'clerkpass')

        summary = self.client.get('/api/reports/summary', params={**JUNE_RANGE, 'userId': str(self.owner_id)})
        export = self.client.post('/api/reports/export', json={**JUNE_RANGE, 'userId': self.owner_id})

        self.assertEqual(summary.status_code, 403)
        self.assertEqual(export.status_code, 403)
        self.assertEqual(self.broker.pending_count(), 0)

    def test_invalid_export_parameters_are_rejected(self) -> None:
        self.login('owner', 'ownerpass')
        cases = [
            {'startDate': '2024-06-30', 'endDate': '2024-06-01'},
            {'startDate': 'June', 'endDate': '2024-06-30'},
            {'endDate': '2024-06-30'},
            {**JUNE_RANGE, 'format': 'xlsx'},
            {**JUNE_RANGE, 'delivery': 'email'},
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                response = self.client.post('/api/reports/export', json=payload)
                self.assertEqual(response.status_code, 400)
        self.assertEqual(self.broker.pending_count(), 0)

    def test_link_download_works_once(self) -> None:
        self.login('owner', 'ownerpass')
        data = self.export_link(format='csv')

        self.assertEqual(data['fileName'], 'crusher-report-2024-06-01-to-2024-06-30.csv')
        self.assertEqual(data['expiresInSeconds'], 120)
        self.assertTrue(data['downloadUrl'].startswith('/download/'))

        first = self.client.get(data['downloadUrl'])
        second = self.client.get(data['downloadUrl'])

        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.headers['content-type'].startswith('text/csv'))
        self.assertIn('attachment; filename="crusher-report-2024-06-01-to-2024-06-30.csv"', first.headers['content-disposition'])
        self.assertEqual(first.headers['cache-control'], 'no-store')
        self.assertIn('Net Profit,71000.00', first.text)
        self.assertEqual(second.status_code, 403)
        self.assertEqual(second.json()['detail'], 'Invalid or expired download link')

    def test_link_download_needs_no_session(self) -> None:
        self.login('owner', 'ownerpass')
        data = self.export_link(format='pdf')

        with TestClient(self.app) as anonymous:
            response = anonymous.get(data['downloadUrl'])

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers['content-type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_expired_link_is_rejected(self) -> None:
        self.login('owner', 'ownerpass')
        data = self.export_link()

        self.clock.advance(121)
        response = self.client.get(data['downloadUrl'])

        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.broker.pending_count(), 0)

    def test_forged_link_is_rejected(self) -> None:
        response = self.client.get('/download/not-a-real-token')
        self.assertEqual(response.status_code, 403)

    def test_clerk_link_only_contains_clerk_entries(self) -> None:
        self.login('clerk', 'clerkpass')
        data = self.export_link()

        body = self.client.get(data['downloadUrl']).text

        self.assertIn('KA01AB1234', body)
        self.assertNotIn('KA09EF9012', body)

    def test_inline_export_streams_file(self) -> None:
        self.login('owner', 'ownerpass')

        response = self.client.post('/api/reports/export', json={**JUNE_RANGE, 'format': 'pdf', 'delivery': 'inline'})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.content.startswith(b'%PDF'))
        self.assertIn('crusher-report-2024-06-01-to-2024-06-30.pdf', response.headers['content-disposition'])
        self.assertEqual(self.broker.pending_count(), 0)

    def test_exports_and_downloads_are_audited(self) -> None:
        self.login('owner', 'ownerpass')
        data = self.export_link()
        self.client.get(data['downloadUrl'])

        with self.session_factory() as db:
            actions = db.execute(select(AuditLog.action).order_by(AuditLog.id)).scalars().all()

        self.assertEqual(actions, ['AUTH_LOGIN', 'REPORT_EXPORTED', 'REPORT_DOWNLOADED'])

    def test_report_data_groups_and_paginates(self) -> None:
        self.login('owner', 'ownerpass')

        response = self.client.get('/api/reports/data', params={**JUNE_RANGE, 'groupBy': 'truck', 'limit': '1'})

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(len(data['entries']), 1)
        self.assertEqual(data['pagination']['totalEntries'], 2)
        self.assertEqual(data['pagination']['totalPages'], 2)
        self.assertEqual({row['key'] for row in data['groupedData']}, {'KA01AB1234', 'KA09EF9012'})

    def test_user_grouping_is_owner_only(self) -> None:
        self.login('clerk', 'clerkpass')

        response = self.client.get('/api/reports/data', params={**JUNE_RANGE, 'groupBy': 'user'})

        self.assertEqual(response.status_code, 403)

    def test_templates_depend_on_role(self) -> None:
        self.login('clerk', 'clerkpass')
        clerk_ids = {template['id'] for template in self.client.get('/api/reports/templates').json()['data']['templates']}

        self.assertNotIn('user-performance', clerk_ids)
        self.assertIn('financial-summary', clerk_ids)

    def test_store_outage_maps_to_service_unavailable(self) -> None:
        self.login('owner', 'ownerpass')
        self.app.dependency_overrides[get_record_store] = UnavailableRecordStore
        self.addCleanup(self.app.dependency_overrides.clear)

        response = self.client.get('/api/reports/summary', params=JUNE_RANGE)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['detail'], 'Database connection error')

    def test_logout_ends_session(self) -> None:
        self.login('owner', 'ownerpass')

        self.assertEqual(self.client.post('/logout').status_code, 200)
        response = self.client.get('/api/reports/summary', params=JUNE_RANGE)

        self.assertEqual(response.status_code, 401)


class DashboardApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = sqlite_session_factory()
        self.client = TestClient(create_app(session_factory=self.session_factory))
        self.addCleanup(self.client.close)
        with self.session_factory() as db:
            org = Organization(name='Sri Crusher')
            db.add(org)
            db.flush()
            owner = Principal(
                organization_id=org.id,
                username='owner',
                password_hash=hash_password('ownerpass'),
                role=PrincipalRole.OWNER,
                active=True,
            )
            db.add(owner)
            db.flush()
            db.add(
                TruckEntry(
                    organization_id=org.id,
                    user_id=owner.id,
                    truck_number='KA01AB1234',
                    truck_name='Ravi',
                    entry_type=EntryType.SALES,
                    material_type='Dust',
                    units=Decimal('2'),
                    rate_per_unit=Decimal('1500'),
                    entry_date=date.today(),
                    entry_time='08:00',
                )
            )
            db.commit()
        self.client.post('/login', data={'username': 'owner', 'password': 'ownerpass'})

    def test_today_dashboard(self) -> None:
        response = self.client.get('/api/dashboard/summary', params={'period': 'today'})

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['period'], 'today')
        self.assertEqual(data['todayEntries'], 1)
        self.assertEqual(data['summary']['totalSales'], 3000.0)
        self.assertEqual(data['materialBreakdown'][0]['key'], 'Dust')
        self.assertEqual(data['topTrucks'][0]['key'], 'KA01AB1234')

    def test_unknown_period_is_rejected(self) -> None:
        response = self.client.get('/api/dashboard/summary', params={'period': 'decade'})
        self.assertEqual(response.status_code, 400)

    def test_financial_metrics_compare_previous_period(self) -> None:
        response = self.client.get('/api/dashboard/financial', params={'period': 'today'})

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['currentPeriod']['totalSales'], 3000.0)
        self.assertEqual(data['previousPeriod']['totalSales'], 0.0)
        self.assertEqual(data['growth']['sales'], 0.0)


if __name__ == '__main__':
    unittest.main()
