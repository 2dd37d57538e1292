"""
Seed the IT Asset Tracker database with sample equipment.

Rows are built as DataFrames, created In Stock through the lifecycle
operations and then walked to their target status, so every sample record
passes the same validation as one entered through the API. A CSV copy of the
inventory is written to data/.
"""
import asyncio
import os
import sys
from pathlib import Path

import pandas as pd

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend'))

import assets as asset_ops
from database import async_session, engine
from errors import AssetError
from maintenance import ensure_indexes
from models import AssetStatus
from schemas import AssetCreate, AssetTransition


def generate_sample_inventory():
    """Sample equipment with the status each item should end up in"""
    data = {
        'category': ['Laptop', 'Laptop', 'Monitor', 'Monitor', 'Keyboard', 'Mouse', 'Headset', 'Laptop'],
        'model': [
            'ThinkPad T14', 'MacBook Pro 14', 'Dell U2720Q', 'Dell U2720Q',
            'Logitech MX Keys', 'Logitech MX Master 3', 'Jabra Evolve2 65', 'ThinkPad X1 Carbon',
        ],
        'serial_number': [
            'PF3ABC12', 'C02XYZ99', 'CN0U2720A1', 'CN0U2720A2',
            'LGMXK0001', 'LGMXM0001', 'JBR650001', 'PF3XYZ77',
        ],
        'location': ['HQ Floor 2', 'HQ Floor 3', 'HQ Floor 2', 'Warehouse', 'HQ Floor 2', 'Warehouse', 'Branch A', 'Branch A'],
        'purchase_price': [1450.0, 2399.0, 520.0, 520.0, 99.0, 89.0, 210.0, 1890.0],
        'purchase_date': pd.to_datetime([
            '2023-02-10', '2024-05-01', '2022-11-20', '2022-11-20',
            '2024-01-15', '2024-01-15', '2023-08-30', '2021-03-12',
        ]),
        'warranty_expiry_date': pd.to_datetime([
            '2026-02-10', '2027-05-01', '2025-11-20', '2025-11-20',
            '2026-01-15', None, '2025-08-30', '2024-03-12',
        ]),
        'target_status': ['In Use', 'In Use', 'In Use', 'In Stock', 'In Stock', 'Damaged', 'E-Waste', 'Removed'],
    }
    return pd.DataFrame(data)


def generate_assignees():
    """Employees receiving the In Use samples, in row order"""
    data = {
        'assignee_name': ['Priya Raman', 'Tom Becker', 'Priya Raman'],
        'position': ['Data Analyst', 'Engineering Manager', 'Data Analyst'],
        'employee_email': ['priya.raman@example.com', 'tom.becker@example.com', 'priya.raman@example.com'],
        'phone_number': ['4155550101', '4155550102', '4155550101'],
        'department': ['Finance', 'Engineering', 'Finance'],
    }
    return pd.DataFrame(data)


# Transitions used to reach each target status from In Stock
PATHS = {
    'In Stock': [],
    'In Use': ['In Use'],
    'Damaged': ['Damaged'],
    'E-Waste': ['Damaged', 'E-Waste'],
    'Removed': ['Damaged', 'Removed'],
}


def _optional_date(value):
    return None if pd.isna(value) else value.date()


async def seed(inventory: pd.DataFrame, assignees: pd.DataFrame) -> int:
    await ensure_indexes(engine, async_session)
    people = iter(assignees.to_dict('records'))
    created = 0

    async with async_session() as session:
        for row in inventory.to_dict('records'):
            payload = AssetCreate(
                serial_number=row['serial_number'],
                category=row['category'],
                model=row['model'],
                location=row['location'],
                purchase_price=row['purchase_price'],
                purchase_date=_optional_date(row['purchase_date']),
                warranty_expiry_date=_optional_date(row['warranty_expiry_date']),
            )
            try:
                asset = await asset_ops.create_asset(session, payload)
                for step in PATHS[row['target_status']]:
                    fields = {}
                    if step == 'In Use':
                        fields = next(people)
                    elif step == 'Damaged':
                        fields = {'damage_description': 'Sample damage report'}
                    elif step == 'Removed':
                        fields = {'mark_deleted': True}
                    asset = await asset_ops.transition_asset(
                        session, asset.id, AssetTransition(status=AssetStatus(step), **fields)
                    )
            except AssetError as e:
                print(f"✗ Skipped {row['serial_number']}: {e.message}")
                continue
            created += 1
            print(f"✓ {asset.asset_id} ({asset.serial_number}) -> {asset.status}")

    await engine.dispose()
    return created


if __name__ == '__main__':
    data_dir = Path(__file__).parent / 'data'
    data_dir.mkdir(exist_ok=True)

    inventory = generate_sample_inventory()
    inventory.to_csv(data_dir / 'sample_inventory.csv', index=False)
    print(f"✓ Created: {data_dir / 'sample_inventory.csv'}")

    print("Seeding sample equipment...")
    count = asyncio.run(seed(inventory, generate_assignees()))
    print(f"\n✨ {count} sample assets created successfully!")
