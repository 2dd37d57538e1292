"""
Read-only reporting queries over the equipment table.

Shared by the REST endpoints and the lifecycle operations (asset id
generation). Nothing here writes; each function runs its own SELECTs, so a
transition committed meanwhile may or may not be reflected.
"""

from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlmodel import col, func, or_, select

from config import WARRANTY_WINDOW_DAYS
from models import Asset, AssetStatus


# Statuses never reported as having an expiring warranty
WARRANTY_EXCLUDED_STATUSES = (
    AssetStatus.E_WASTE.value,
    AssetStatus.DAMAGED.value,
    AssetStatus.REMOVED.value,
)

# Active statuses and the summary key each is reported under
SUMMARY_KEYS = OrderedDict([
    (AssetStatus.IN_USE.value, "in_use"),
    (AssetStatus.IN_STOCK.value, "in_stock"),
    (AssetStatus.DAMAGED.value, "damaged"),
    (AssetStatus.E_WASTE.value, "e_waste"),
])


def _not_deleted():
    return col(Asset.is_deleted).is_(False)


async def get_summary(session) -> Dict[str, int]:
    """
    Count records per status.

    The four active statuses count non-deleted records only. removed counts
    every record with status Removed or the soft-delete flag, each once.
    """
    query = (
        select(Asset.status, func.count(Asset.id))
        .where(_not_deleted())
        .group_by(Asset.status)
    )
    result = await session.exec(query)
    per_status = {status: count for status, count in result.all()}

    summary = {key: per_status.get(status, 0) for status, key in SUMMARY_KEYS.items()}
    summary["total_assets"] = sum(summary.values())

    removed_query = select(func.count(Asset.id)).where(
        or_(Asset.status == AssetStatus.REMOVED.value, col(Asset.is_deleted).is_(True))
    )
    result = await session.exec(removed_query)
    summary["removed"] = result.one()
    return summary


async def get_total_value(session) -> float:
    """Sum of purchase_price over non-deleted records; 0 when there are none."""
    result = await session.exec(
        select(func.coalesce(func.sum(Asset.purchase_price), 0)).where(_not_deleted())
    )
    return float(result.one() or 0)


async def get_expiring_warranty(
    session,
    now: Optional[Union[date, datetime]] = None,
    days: int = WARRANTY_WINDOW_DAYS,
) -> List[Asset]:
    """
    Active records whose warranty ends within [now, now + days], both ends
    inclusive. Damaged, E-Waste and Removed records are left out, as are
    records without a warranty date. Order is unspecified.
    """
    if now is None:
        now = date.today()
    start = now.date() if isinstance(now, datetime) else now
    end = start + timedelta(days=days)

    query = select(Asset).where(
        _not_deleted(),
        col(Asset.warranty_expiry_date).is_not(None),
        col(Asset.warranty_expiry_date) >= start,
        col(Asset.warranty_expiry_date) <= end,
        col(Asset.status).not_in(WARRANTY_EXCLUDED_STATUSES),
    )
    result = await session.exec(query)
    return list(result.all())


async def get_grouped_by_assignee(session) -> List[Dict[str, Any]]:
    """
    In Use records grouped by employee email, sorted by email.

    Name, position, phone and department come from the oldest record of
    each group.
    """
    query = (
        select(Asset)
        .where(_not_deleted(), Asset.status == AssetStatus.IN_USE.value)
        .order_by(col(Asset.created_at), col(Asset.id))
    )
    result = await session.exec(query)

    groups: Dict[Any, Dict[str, Any]] = {}
    for asset in result.all():
        group = groups.get(asset.employee_email)
        if group is None:
            group = groups[asset.employee_email] = {
                "employee_email": asset.employee_email,
                "assignee_name": asset.assignee_name,
                "position": asset.position,
                "phone_number": asset.phone_number,
                "department": asset.department,
                "assets": [],
                "count": 0,
            }
        group["assets"].append(asset)
        group["count"] += 1

    return sorted(groups.values(), key=lambda g: g["employee_email"] or "")


def group_by_model(assets: Iterable[Asset]) -> List[Dict[str, Any]]:
    """
    Group any set of records by model, in first-seen order.

    Records without a model land under "Unknown Model"; a group's category
    is the category of its first record.
    """
    groups: Dict[str, Dict[str, Any]] = OrderedDict()
    for asset in assets:
        key = asset.model or "Unknown Model"
        if key not in groups:
            groups[key] = {
                "model": key,
                "category": asset.category or "",
                "assets": [],
                "count": 0,
            }
        groups[key]["assets"].append(asset)
        groups[key]["count"] += 1
    return list(groups.values())


async def get_assets_by_status(session, status: AssetStatus) -> List[Asset]:
    query = (
        select(Asset)
        .where(_not_deleted(), Asset.status == status.value)
        .order_by(col(Asset.created_at).desc())
    )
    result = await session.exec(query)
    return list(result.all())


async def count_by_category(session, category: str) -> int:
    """Number of non-deleted records with exactly this category."""
    result = await session.exec(
        select(func.count(Asset.id)).where(_not_deleted(), Asset.category == category)
    )
    return result.one()


async def search_assets(session, query: str, limit: int = 100) -> List[Asset]:
    """
    Search non-deleted assets across identifiers, model, category, location
    and assignee (case-insensitive partial match).
    """
    pattern = f"%{query}%"
    search_query = select(Asset).where(
        _not_deleted(),
        or_(
            col(Asset.asset_id).ilike(pattern),
            col(Asset.serial_number).ilike(pattern),
            col(Asset.model).ilike(pattern),
            col(Asset.category).ilike(pattern),
            col(Asset.location).ilike(pattern),
            col(Asset.assignee_name).ilike(pattern),
            col(Asset.employee_email).ilike(pattern),
        )
    ).order_by(col(Asset.created_at).desc()).limit(limit)

    result = await session.exec(search_query)
    return list(result.all())
