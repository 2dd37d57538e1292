"""
Persistence helpers for equipment records.

Thin async functions over an AsyncSession: find, find_one, insert,
update_by_id, delete_by_id, count and the uniqueness checks. Every write is a
single statement against one row followed by a commit, so a record is never
left with half of a change applied.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import func, select

from errors import Conflict, DuplicateKey, NotFound
from models import Asset, utcnow


logger = logging.getLogger(__name__)

# Column name -> API field name for the unique keys
UNIQUE_KEYS = {
    "asset_id": "assetId",
    "serial_number": "serialNumber",
}


async def find_assets(session, *conditions, order_by=None, limit: Optional[int] = None) -> List[Asset]:
    """Return assets matching all conditions."""
    query = select(Asset)
    for condition in conditions:
        query = query.where(condition)
    if order_by is not None:
        query = query.order_by(*order_by) if isinstance(order_by, (list, tuple)) else query.order_by(order_by)
    if limit:
        query = query.limit(limit)
    result = await session.exec(query)
    return list(result.all())


async def find_one(session, asset_id: UUID, include_deleted: bool = False) -> Asset:
    """
    Get a record by primary key.

    Raises:
        NotFound: No such record, or it is soft-deleted and include_deleted is False
    """
    result = await session.exec(select(Asset).where(Asset.id == asset_id))
    asset = result.first()
    if asset is None or (asset.is_deleted and not include_deleted):
        raise NotFound("Asset", asset_id)
    return asset


async def count_assets(session, *conditions) -> int:
    query = select(func.count()).select_from(Asset)
    for condition in conditions:
        query = query.where(condition)
    result = await session.exec(query)
    return result.one()


async def ensure_unique(session, values: Dict[str, Any], exclude_id: Optional[UUID] = None) -> None:
    """
    Check assetId / serialNumber against every record, deleted ones included.

    Raises:
        DuplicateKey: naming the first key that is already taken
    """
    for column, field in UNIQUE_KEYS.items():
        value = values.get(column)
        if not value:
            continue
        query = select(Asset.id).where(getattr(Asset, column) == value)
        if exclude_id is not None:
            query = query.where(Asset.id != exclude_id)
        result = await session.exec(query)
        if result.first() is not None:
            raise DuplicateKey(field)


async def _duplicate_from_integrity_error(session, values: Dict[str, Any], exclude_id=None) -> DuplicateKey:
    """Identify which unique key a failed commit collided on."""
    try:
        await ensure_unique(session, values, exclude_id=exclude_id)
    except DuplicateKey as exc:
        return exc
    # A concurrent writer got there first and the row is not visible yet;
    # report the first key the caller supplied
    for column, field in UNIQUE_KEYS.items():
        if values.get(column):
            return DuplicateKey(field)
    return DuplicateKey("assetId")


async def insert_asset(session, values: Dict[str, Any]) -> Asset:
    """Insert a new record, enforcing the unique keys."""
    await ensure_unique(session, values)

    asset = Asset(**values)
    session.add(asset)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise await _duplicate_from_integrity_error(session, values)
    await session.refresh(asset)
    return asset


async def update_by_id(
    session,
    asset_id: UUID,
    changes: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> Asset:
    """
    Apply changes to one record in a single UPDATE.

    updated_at and version are always bumped. With expected_version the row
    is only written if its version still matches; otherwise the last write wins.

    Raises:
        NotFound: The record vanished before the write
        Conflict: expected_version is stale
        DuplicateKey: A unique key collided at commit time
    """
    values = dict(changes)
    values["updated_at"] = utcnow()
    values["version"] = Asset.version + 1

    stmt = update(Asset).where(Asset.id == asset_id)
    if expected_version is not None:
        stmt = stmt.where(Asset.version == expected_version)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    try:
        result = await session.execute(stmt)
        if result.rowcount == 0:
            current = await session.exec(select(Asset.version).where(Asset.id == asset_id))
            actual = current.first()
            # nothing was written; commit keeps loaded instances usable
            await session.commit()
            if actual is None:
                raise NotFound("Asset", asset_id)
            raise Conflict(expected_version, actual)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise await _duplicate_from_integrity_error(session, changes, exclude_id=asset_id)

    return await reload(session, asset_id)


async def reload(session, asset_id: UUID) -> Asset:
    """Fetch the stored row, bypassing whatever the session has cached."""
    result = await session.exec(
        select(Asset).where(Asset.id == asset_id).execution_options(populate_existing=True)
    )
    asset = result.first()
    if asset is None:
        raise NotFound("Asset", asset_id)
    return asset


async def delete_by_id(session, asset_id: UUID) -> None:
    result = await session.execute(delete(Asset).where(Asset.id == asset_id))
    if result.rowcount == 0:
        await session.commit()
        raise NotFound("Asset", asset_id)
    await session.commit()
