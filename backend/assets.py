"""
Equipment operations: create, transition, field edit, soft delete, purge.

These are the only entry points that write equipment records. Status rules
come from lifecycle.py; persistence from store.py. Every operation either
persists its whole change or raises a domain error with the store untouched.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlmodel import col, or_

from errors import AssetError, ValidationFailed
from lifecycle import EDITABLE_FIELDS, plan_new_record, plan_update
from models import Asset, AssetStatus
from queries import count_by_category
from schemas import CONTROL_KEYS, AssetCreate, AssetEdit, AssetTransition
import store


logger = logging.getLogger(__name__)


def current_values(asset: Asset) -> dict:
    values = {name: getattr(asset, name) for name in EDITABLE_FIELDS}
    values["status"] = asset.status
    return values


def _overrides(payload) -> dict:
    """Fields the caller actually sent, minus the control keys."""
    sent = payload.model_dump(exclude_unset=True)
    return {k: v for k, v in sent.items() if k not in CONTROL_KEYS}


def category_prefix(category: Optional[str]) -> str:
    """First three letters of the category, upper-cased; OTH when empty."""
    category = (category or "").strip()
    return category[:3].upper() if category else "OTH"


async def next_asset_id(session, category: str) -> str:
    """
    Next sequential identifier for a category, e.g. LAP-003.

    The suffix is the count of active records in the category plus one.
    Soft-deleted records keep their identifiers, so a taken candidate is
    skipped until a free one is found.
    """
    prefix = category_prefix(category)
    number = await count_by_category(session, category) + 1
    while True:
        candidate = f"{prefix}-{number:03d}"
        taken = await store.count_assets(session, Asset.asset_id == candidate)
        if not taken:
            return candidate
        number += 1


async def create_asset(session, payload: AssetCreate) -> Asset:
    """
    Create a record in In Stock (or In Use when assigned right away).

    Raises:
        ValidationFailed: Bad initial status or missing fields for it
        DuplicateKey: assetId or serialNumber already taken
    """
    fields = _overrides(payload)
    if not (fields.get("asset_id") or "").strip():
        fields["asset_id"] = await next_asset_id(session, payload.category)

    try:
        values = plan_new_record(fields, payload.status)
        asset = await store.insert_asset(session, values)
    except AssetError as exc:
        logger.warning(f"Rejected new asset: {exc.message}")
        raise

    logger.info(f"Created asset {asset.asset_id} ({asset.status})")
    return asset


async def get_asset(session, asset_id: UUID, include_deleted: bool = True) -> Asset:
    return await store.find_one(session, asset_id, include_deleted=include_deleted)


async def _apply(session, asset: Asset, overrides: dict, target: Optional[AssetStatus],
                 expected_version: Optional[int], extra: Optional[dict] = None) -> Asset:
    current = current_values(asset)
    changes = plan_update(current, overrides, target)
    if extra:
        changes.update(extra)

    await store.ensure_unique(
        session,
        {k: changes[k] for k in store.UNIQUE_KEYS if changes[k] != current[k]},
        exclude_id=asset.id,
    )
    return await store.update_by_id(session, asset.id, changes, expected_version=expected_version)


async def transition_asset(session, asset_id: UUID, payload: AssetTransition) -> Asset:
    """
    Move a record to payload.status, applying the field side effects.

    A request for the current status is handled as a field-only edit.
    mark_deleted additionally soft-deletes a record moved to Removed.

    Raises:
        NotFound: No active record with that id
        ValidationFailed: Transition not allowed or target fields invalid
        DuplicateKey: Changed assetId / serialNumber collides
        Conflict: expected_version is stale
    """
    asset = await store.find_one(session, asset_id)
    source = asset.status
    extra = None
    if payload.mark_deleted:
        if payload.status != AssetStatus.REMOVED:
            raise ValidationFailed("markDeleted", "only allowed when moving to 'Removed'")
        extra = {"is_deleted": True}

    try:
        updated = await _apply(session, asset, _overrides(payload), payload.status,
                               payload.expected_version, extra)
    except AssetError as exc:
        logger.warning(f"Rejected transition of {asset_id} to {payload.status.value}: {exc.message}")
        raise

    if source == updated.status:
        logger.info(f"Edited asset {updated.asset_id} ({updated.status})")
    else:
        logger.info(f"Asset {updated.asset_id} moved {source} -> {updated.status}")
    return updated


async def edit_asset(session, asset_id: UUID, payload: AssetEdit) -> Asset:
    """
    Change descriptive fields without touching status.

    Raises:
        NotFound, ValidationFailed, DuplicateKey, Conflict
    """
    asset = await store.find_one(session, asset_id)
    try:
        updated = await _apply(session, asset, _overrides(payload), None, payload.expected_version)
    except AssetError as exc:
        logger.warning(f"Rejected edit of {asset_id}: {exc.message}")
        raise
    logger.info(f"Edited asset {updated.asset_id} ({updated.status})")
    return updated


async def soft_delete_asset(session, asset_id: UUID) -> Asset:
    """
    Flag a record as deleted. Status is left alone; the caller decides
    whether to transition it to Removed as well.
    """
    asset = await store.find_one(session, asset_id, include_deleted=True)
    if asset.is_deleted:
        return asset
    updated = await store.update_by_id(session, asset.id, {"is_deleted": True})
    logger.info(f"Soft-deleted asset {updated.asset_id} ({updated.status})")
    return updated


async def purge_asset(session, asset_id: UUID) -> None:
    """
    Physically delete a record. Only records in the removed view
    (status Removed or soft-deleted) can be purged.
    """
    asset = await store.find_one(session, asset_id, include_deleted=True)
    if not (asset.is_deleted or asset.status == AssetStatus.REMOVED.value):
        raise ValidationFailed("status", "only removed or deleted assets can be purged")
    label = asset.asset_id
    await store.delete_by_id(session, asset.id)
    logger.info(f"Purged asset {label}")


async def list_active(session) -> List[Asset]:
    """All records that are not soft-deleted, newest first."""
    return await store.find_assets(
        session,
        col(Asset.is_deleted).is_(False),
        order_by=col(Asset.created_at).desc(),
    )


async def list_removed(session) -> List[Asset]:
    """Records with status Removed or the soft-delete flag, most recently changed first."""
    return await store.find_assets(
        session,
        or_(Asset.status == AssetStatus.REMOVED.value, col(Asset.is_deleted).is_(True)),
        order_by=col(Asset.updated_at).desc(),
    )
