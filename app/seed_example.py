from datetime import date
from decimal import Decimal

from sqlalchemy import select

from app.db import SessionLocal, engine
from app.models import (
    Base,
    EntryType,
    MaterialType,
    Organization,
    OtherExpense,
    Principal,
    PrincipalRole,
    TruckEntry,
)
from app.security.passwords import hash_password


def seed() -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        organization = db.execute(select(Organization).where(Organization.name == 'Sri Crusher')).scalar_one_or_none()
        if not organization:
            organization = Organization(name='Sri Crusher')
            db.add(organization)
            db.flush()

        owner = db.execute(select(Principal).where(Principal.username == 'owner')).scalar_one_or_none()
        if not owner:
            owner = Principal(
                organization_id=organization.id,
                username='owner',
                password_hash=hash_password('ownerpass'),
                role=PrincipalRole.OWNER,
                active=True,
            )
            db.add(owner)

        clerk = db.execute(select(Principal).where(Principal.username == 'clerk')).scalar_one_or_none()
        if not clerk:
            clerk = Principal(
                organization_id=organization.id,
                username='clerk',
                password_hash=hash_password('clerkpass'),
                role=PrincipalRole.USER,
                active=True,
            )
            db.add(clerk)
        db.flush()

        has_entries = db.execute(
            select(TruckEntry.id).where(TruckEntry.organization_id == organization.id).limit(1)
        ).first()
        if not has_entries:
            today = date.today()
            db.add_all(
                [
                    TruckEntry(
                        organization_id=organization.id,
                        user_id=clerk.id,
                        truck_number='KA01AB1234',
                        truck_name='Ravi',
                        entry_type=EntryType.SALES,
                        material_type=MaterialType.JALLI_3_4.value,
                        units=Decimal('10'),
                        rate_per_unit=Decimal('22000'),
                        entry_date=today,
                        entry_time='09:15',
                    ),
                    TruckEntry(
                        organization_id=organization.id,
                        user_id=clerk.id,
                        truck_number='KA05CD5678',
                        truck_name='Suresh',
                        entry_type=EntryType.SALES,
                        material_type=MaterialType.M_SAND.value,
                        units=Decimal('5'),
                        rate_per_unit=Decimal('20000'),
                        entry_date=today,
                        entry_time='11:40',
                    ),
                    TruckEntry(
                        organization_id=organization.id,
                        user_id=owner.id,
                        truck_number='KA09EF9012',
                        truck_name='Manju',
                        entry_type=EntryType.RAW_STONE,
                        units=Decimal('8'),
                        rate_per_unit=Decimal('18000'),
                        entry_date=today,
                        entry_time='14:05',
                    ),
                    OtherExpense(
                        organization_id=organization.id,
                        user_id=owner.id,
                        expense_name='Diesel',
                        amount=Decimal('5000'),
                        expense_date=today,
                    ),
                ]
            )

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
