"""
Store maintenance run at startup (and on demand).

Renames duplicate serial numbers so the unique indexes on the equipment
table can be (re)created on a store that was filled before they existed.

Usage:
    python maintenance.py
"""

import asyncio
import logging
from typing import Dict, List

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, col, func, select

from models import Asset, utcnow


logger = logging.getLogger(__name__)


async def cleanup_duplicate_serial_numbers(session) -> Dict[str, int]:
    """
    Keep the first record of every duplicate serial-number group and rename
    the rest to <serial>_DUPLICATE_<n>.

    "First" is the oldest record (created_at, then id). A generated name that
    is already in use is skipped in favour of the next n. Running this again
    finds no duplicates and changes nothing.

    Returns:
        {"groups_fixed": ..., "renamed": ...}
    """
    logger.info("Checking for duplicate serial numbers...")

    duplicate_serials = (
        select(Asset.serial_number)
        .where(col(Asset.serial_number).is_not(None), Asset.serial_number != "")
        .group_by(Asset.serial_number)
        .having(func.count(Asset.id) > 1)
    )
    result = await session.exec(duplicate_serials)
    serials: List[str] = list(result.all())

    if not serials:
        logger.info("No duplicate serial numbers found.")
        return {"groups_fixed": 0, "renamed": 0}

    result = await session.exec(
        select(Asset.serial_number).where(col(Asset.serial_number).is_not(None))
    )
    taken = set(result.all())

    renamed = 0
    for serial in sorted(serials):
        result = await session.exec(
            select(Asset.id)
            .where(Asset.serial_number == serial)
            .order_by(col(Asset.created_at), col(Asset.id))
        )
        ids = list(result.all())

        suffix = 0
        for record_id in ids[1:]:
            suffix += 1
            new_serial = f"{serial}_DUPLICATE_{suffix}"
            while new_serial in taken:
                suffix += 1
                new_serial = f"{serial}_DUPLICATE_{suffix}"
            taken.add(new_serial)

            await session.execute(
                update(Asset)
                .where(Asset.id == record_id)
                .values(serial_number=new_serial, updated_at=utcnow(), version=Asset.version + 1)
                .execution_options(synchronize_session=False)
            )
            renamed += 1
            logger.info(f"Updated duplicate serial number for ID {record_id} to: {new_serial}")

    await session.commit()
    logger.info(f"Fixed {len(serials)} duplicate serial number groups")
    return {"groups_fixed": len(serials), "renamed": renamed}


def _create_unique_indexes(sync_conn) -> None:
    for index in Asset.__table__.indexes:
        if index.unique:
            index.create(sync_conn, checkfirst=True)


async def ensure_indexes(engine, session_factory) -> bool:
    """
    Create the tables and the unique indexes. On a duplicate-key failure run
    the serial-number cleanup and try once more.

    Returns:
        True when the indexes are in place
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(_create_unique_indexes)
        logger.info("Equipment indexes synchronized successfully")
        return True
    except IntegrityError:
        logger.warning("Duplicate key error detected. Attempting to clean up duplicates...")

    async with session_factory() as session:
        await cleanup_duplicate_serial_numbers(session)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(_create_unique_indexes)
    except IntegrityError:
        logger.exception("Failed to sync indexes even after cleanup")
        return False
    logger.info("Equipment indexes synchronized successfully after cleanup")
    return True


async def main():
    from database import async_session, engine

    await ensure_indexes(engine, async_session)
    async with async_session() as session:
        stats = await cleanup_duplicate_serial_numbers(session)
    print(f"Renamed {stats['renamed']} serial number(s) in {stats['groups_fixed']} group(s)")
    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
