"""
Lifecycle operations against a real (SQLite) store.
"""

from datetime import date
from uuid import uuid4

import pytest
from pydantic import ValidationError

import assets as asset_ops
import store
from database import async_session
from errors import Conflict, DuplicateKey, NotFound, ValidationFailed
from lifecycle import plan_update
from models import ASSIGNEE_FIELDS, Asset, AssetStatus, utcnow
from schemas import AssetEdit, AssetTransition


S = AssetStatus

ASSIGNEE = {
    "assignee_name": "Jane Doe",
    "position": "Engineer",
    "employee_email": "jane.doe@example.com",
    "phone_number": "5551234567",
    "department": "IT",
}


async def move(session, asset, status, **fields):
    return await asset_ops.transition_asset(session, asset.id, AssetTransition(status=status, **fields))


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_in_stock(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset(asset_id="LAP-001"))

        assert asset.status == "In Stock"
        assert asset.asset_id == "LAP-001"
        assert asset.is_deleted is False
        assert asset.version == 1
        assert asset.created_at is not None

    @pytest.mark.asyncio
    async def test_timestamps_are_timezone_aware(self, session, new_asset):
        for column in ("created_at", "updated_at"):
            assert Asset.__table__.c[column].type.timezone is True
        assert utcnow().tzinfo is not None

        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.DAMAGED)
        assert asset.updated_at >= asset.created_at

    @pytest.mark.asyncio
    async def test_generates_asset_id(self, session, new_asset):
        first = await asset_ops.create_asset(session, new_asset())
        second = await asset_ops.create_asset(session, new_asset())
        monitor = await asset_ops.create_asset(session, new_asset(category="Monitor"))

        assert first.asset_id == "LAP-001"
        assert second.asset_id == "LAP-002"
        assert monitor.asset_id == "MON-001"

    @pytest.mark.asyncio
    async def test_create_directly_in_use(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset(status=S.IN_USE, **ASSIGNEE))
        assert asset.status == "In Use"
        assert asset.employee_email == "jane.doe@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_serial_number(self, session, new_asset):
        a = await asset_ops.create_asset(session, new_asset(serial_number="SN12345", model="A"))

        with pytest.raises(DuplicateKey) as exc_info:
            await asset_ops.create_asset(session, new_asset(serial_number="SN12345", model="B"))
        assert exc_info.value.field == "serialNumber"

        stored = await store.reload(session, a.id)
        assert stored.model == "A"
        assert stored.serial_number == "SN12345"
        assert await store.count_assets(session) == 1

    @pytest.mark.asyncio
    async def test_duplicate_asset_id_against_deleted_record(self, session, new_asset):
        a = await asset_ops.create_asset(session, new_asset(asset_id="LAP-001"))
        await asset_ops.soft_delete_asset(session, a.id)

        with pytest.raises(DuplicateKey) as exc_info:
            await asset_ops.create_asset(session, new_asset(asset_id="LAP-001"))
        assert exc_info.value.field == "assetId"

    @pytest.mark.asyncio
    async def test_empty_serial_numbers_do_not_collide(self, session, new_asset):
        await asset_ops.create_asset(session, new_asset(serial_number=""))
        await asset_ops.create_asset(session, new_asset(serial_number=None))
        assert await store.count_assets(session, Asset.serial_number.is_(None)) == 2

    @pytest.mark.asyncio
    async def test_generated_id_skips_taken_value(self, session, new_asset):
        old = await asset_ops.create_asset(session, new_asset())
        await asset_ops.create_asset(session, new_asset())
        await asset_ops.soft_delete_asset(session, old.id)

        # one active laptop left, but LAP-002 is taken
        assert await asset_ops.next_asset_id(session, "Laptop") == "LAP-003"


class TestTransition:

    @pytest.mark.asyncio
    async def test_assign_without_email_fails(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        fields = {k: v for k, v in ASSIGNEE.items() if k != "employee_email"}

        with pytest.raises(ValidationFailed) as exc_info:
            await move(session, asset, S.IN_USE, **fields)
        assert exc_info.value.field == "employeeEmail"

        stored = await store.reload(session, asset.id)
        assert stored.status == "In Stock"
        assert stored.assignee_name is None
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_in_use_to_e_waste_clears_assignee(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.IN_USE, **ASSIGNEE)
        assert asset.assignee_name == "Jane Doe"

        asset = await move(session, asset, S.E_WASTE)

        assert asset.status == "E-Waste"
        for name in ASSIGNEE_FIELDS:
            assert getattr(asset, name) is None

    @pytest.mark.asyncio
    async def test_damage_and_repair(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.DAMAGED, damage_description="Cracked screen")
        assert asset.damage_description == "Cracked screen"

        asset = await move(session, asset, S.IN_STOCK)
        assert asset.status == "In Stock"
        assert asset.damage_description is None

    @pytest.mark.asyncio
    async def test_updated_at_and_version_bumped(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        created_at, updated_at = asset.created_at, asset.updated_at

        asset = await move(session, asset, S.DAMAGED)

        assert asset.version == 2
        assert asset.updated_at >= updated_at
        assert asset.created_at == created_at

    @pytest.mark.asyncio
    async def test_disallowed_transition(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        with pytest.raises(ValidationFailed) as exc_info:
            await move(session, asset, S.E_WASTE)
        assert exc_info.value.field == "status"

    @pytest.mark.asyncio
    async def test_remove_and_mark_deleted(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.DAMAGED)
        asset = await move(session, asset, S.REMOVED, mark_deleted=True)

        assert asset.status == "Removed"
        assert asset.is_deleted is True

    @pytest.mark.asyncio
    async def test_mark_deleted_only_with_removed(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        with pytest.raises(ValidationFailed):
            await move(session, asset, S.DAMAGED, mark_deleted=True)

    @pytest.mark.asyncio
    async def test_same_status_is_field_edit(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.IN_USE, **ASSIGNEE)

        asset = await move(session, asset, S.IN_USE, location="Floor 3")

        assert asset.status == "In Use"
        assert asset.location == "Floor 3"
        assert asset.assignee_name == "Jane Doe"

    @pytest.mark.asyncio
    async def test_serial_change_collision(self, session, new_asset):
        await asset_ops.create_asset(session, new_asset(serial_number="TAKEN01"))
        asset = await asset_ops.create_asset(session, new_asset(serial_number="FREE001"))

        with pytest.raises(DuplicateKey) as exc_info:
            await move(session, asset, S.DAMAGED, serial_number="TAKEN01")
        assert exc_info.value.field == "serialNumber"

        stored = await store.reload(session, asset.id)
        assert stored.status == "In Stock"
        assert stored.serial_number == "FREE001"

    @pytest.mark.asyncio
    async def test_missing_record(self, session):
        with pytest.raises(NotFound):
            await asset_ops.transition_asset(session, uuid4(), AssetTransition(status=S.DAMAGED))

    @pytest.mark.asyncio
    async def test_deleted_record_not_transitioned(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        await asset_ops.soft_delete_asset(session, asset.id)
        with pytest.raises(NotFound):
            await move(session, asset, S.DAMAGED)


class TestEdit:

    @pytest.mark.asyncio
    async def test_edit_fields(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await asset_ops.edit_asset(
            session, asset.id,
            AssetEdit(location="Warehouse", warranty_expiry_date=date(2030, 1, 1), comment="null"),
        )
        assert asset.location == "Warehouse"
        assert asset.warranty_expiry_date == date(2030, 1, 1)
        assert asset.comment is None
        assert asset.status == "In Stock"

    def test_edit_cannot_carry_status(self):
        with pytest.raises(ValidationError):
            AssetEdit(status="Damaged")

    @pytest.mark.asyncio
    async def test_stale_version_conflict(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        await asset_ops.edit_asset(session, asset.id, AssetEdit(location="A", expected_version=1))

        with pytest.raises(Conflict) as exc_info:
            await asset_ops.edit_asset(session, asset.id, AssetEdit(location="B", expected_version=1))
        assert exc_info.value.actual == 2

        stored = await store.reload(session, asset.id)
        assert stored.location == "A"

    @pytest.mark.asyncio
    async def test_edit_in_use_revalidates_assignee(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.IN_USE, **ASSIGNEE)
        with pytest.raises(ValidationFailed) as exc_info:
            await asset_ops.edit_asset(session, asset.id, AssetEdit(employee_email=""))
        assert exc_info.value.field == "employeeEmail"


class TestDeleteAndPurge:

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_status(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await asset_ops.soft_delete_asset(session, asset.id)

        assert asset.is_deleted is True
        assert asset.status == "In Stock"
        assert await asset_ops.list_active(session) == []
        assert [a.id for a in await asset_ops.list_removed(session)] == [asset.id]

    @pytest.mark.asyncio
    async def test_soft_delete_missing(self, session):
        with pytest.raises(NotFound):
            await asset_ops.soft_delete_asset(session, uuid4())

    @pytest.mark.asyncio
    async def test_purge_removed(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.DAMAGED)
        asset = await move(session, asset, S.REMOVED)

        await asset_ops.purge_asset(session, asset.id)

        assert await store.count_assets(session) == 0
        with pytest.raises(NotFound):
            await asset_ops.purge_asset(session, asset.id)

    @pytest.mark.asyncio
    async def test_purge_requires_removed_view(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        with pytest.raises(ValidationFailed):
            await asset_ops.purge_asset(session, asset.id)


class TestInterleavedWrites:
    """Two sessions read the same record before either writes."""

    FIRST_DAMAGED_THEN_STOCK = [
        (S.DAMAGED, {"damage_description": "Dropped"}),
        (S.IN_STOCK, {}),
    ]
    FIRST_IN_USE_THEN_DAMAGED = [
        (S.IN_USE, ASSIGNEE),
        (S.DAMAGED, {"damage_description": "Cracked"}),
    ]

    async def read_then_write_in_order(self, asset_id, plans):
        sessions = [async_session() for _ in plans]
        try:
            reads = [await store.find_one(s, asset_id) for s in sessions]
            for s in sessions:
                await s.commit()
            for s, current, (status, fields) in zip(sessions, reads, plans):
                changes = plan_update(asset_ops.current_values(current), fields, status)
                await store.update_by_id(s, asset_id, changes)
        finally:
            for s in sessions:
                await s.close()

    def assert_consistent(self, stored, status):
        assert stored.status == status.value
        if status != S.IN_USE:
            assert all(getattr(stored, name) is None for name in ASSIGNEE_FIELDS)
        if status != S.DAMAGED:
            assert stored.damage_description is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", [[0, 1], [1, 0]])
    async def test_damage_and_return_from_stock(self, session, new_asset, order):
        asset = await asset_ops.create_asset(session, new_asset())
        plans = [self.FIRST_DAMAGED_THEN_STOCK[i] for i in order]

        await self.read_then_write_in_order(asset.id, plans)

        stored = await store.reload(session, asset.id)
        last_status, last_fields = plans[-1]
        self.assert_consistent(stored, last_status)
        assert stored.damage_description == last_fields.get("damage_description")
        assert stored.version == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", [[0, 1], [1, 0]])
    async def test_assign_and_damage_from_stock(self, session, new_asset, order):
        asset = await asset_ops.create_asset(session, new_asset())
        plans = [self.FIRST_IN_USE_THEN_DAMAGED[i] for i in order]

        await self.read_then_write_in_order(asset.id, plans)

        stored = await store.reload(session, asset.id)
        self.assert_consistent(stored, plans[-1][0])
        if plans[-1][0] == S.IN_USE:
            assert stored.employee_email == ASSIGNEE["employee_email"]
        else:
            assert stored.damage_description == "Cracked"

    @pytest.mark.asyncio
    async def test_stale_read_cannot_leave_assignee_behind(self, session, new_asset):
        asset = await asset_ops.create_asset(session, new_asset())
        asset = await move(session, asset, S.IN_USE, **ASSIGNEE)

        plans = [(S.DAMAGED, {"damage_description": "Cracked"}), (S.IN_STOCK, {})]
        await self.read_then_write_in_order(asset.id, plans)

        stored = await store.reload(session, asset.id)
        self.assert_consistent(stored, S.IN_STOCK)
